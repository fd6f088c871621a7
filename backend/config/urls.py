"""
URL configuration for the chat relay.
"""
from django.urls import path, include

urlpatterns = [
    path('', include('apps.rag.urls')),
]
