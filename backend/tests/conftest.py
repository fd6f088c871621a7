"""
Shared test setup: configure Django before test modules import app code.
"""
import os

import django
import pytest

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')
os.environ.setdefault('LLM_API_KEY', 'test-key')
# Tests never reach a real database; the default alias stays sqlite so
# queries can be compiled without a PostgreSQL server.
os.environ['DATABASE_URL'] = ''
os.environ['NEON_DB_URL'] = ''
django.setup()

from apps.rag.embeddings import reset_embedding_client  # noqa: E402
from apps.rag.llm_client import reset_completion_client  # noqa: E402
from apps.rag.retrieval import reset_document_store  # noqa: E402


@pytest.fixture(autouse=True)
def reset_cached_clients():
    """Drop process-wide client instances between tests."""
    yield
    reset_embedding_client()
    reset_completion_client()
    reset_document_store()
