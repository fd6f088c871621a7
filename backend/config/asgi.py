"""
ASGI config for the chat relay.

Served by daphne (see the `serve` management command).
"""
import os

from django.core.asgi import get_asgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')

application = get_asgi_application()
