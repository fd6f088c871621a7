"""
Tests for the document store and retrieval pipeline.

The documents table lives in PostgreSQL with pgvector, so the Document
manager is replaced with a mock that returns canned rows.
"""
import re

import pytest
from unittest.mock import patch, MagicMock

from django.db import OperationalError, ProgrammingError
from pgvector.django import CosineDistance, L2Distance, MaxInnerProduct

from apps.rag.errors import EmbeddingError, StorageError
from apps.rag.models import Document
from apps.rag.retrieval import (
    DocumentStore,
    ContextDocument,
    retrieve_context,
    DEFAULT_TOP_K,
)


def mock_manager(rows=None, error=None) -> MagicMock:
    """
    Build a Document.objects replacement.

    The chain using().annotate().order_by().values_list()[:k] yields rows
    (or raises error when evaluated).
    """
    manager = MagicMock()
    sliced = manager.using.return_value.annotate.return_value \
        .order_by.return_value.values_list.return_value.__getitem__
    if error is not None:
        # Django querysets are lazy; the error surfaces on evaluation
        failing = MagicMock()
        failing.__iter__.side_effect = error
        sliced.return_value = failing
    else:
        sliced.return_value = rows or []
    return manager


def query_chain(manager: MagicMock):
    """Return the mocks for each step of the search query chain."""
    using = manager.using
    annotate = using.return_value.annotate
    order_by = annotate.return_value.order_by
    values_list = order_by.return_value.values_list
    return using, annotate, order_by, values_list


# ============================================================================
# DocumentStore Tests
# ============================================================================

class TestDocumentStore:
    """Tests for DocumentStore.search."""

    def test_default_top_k_is_three(self):
        """Should retrieve three documents by default."""
        assert DEFAULT_TOP_K == 3

    def test_preserves_database_row_order(self):
        """Should return rows in the order the query yields them, unsorted."""
        rows = [("doc at 0.1", 0.1), ("doc at 0.3", 0.3), ("doc at 0.2", 0.2)]
        manager = mock_manager(rows)

        with patch.object(Document, 'objects', manager):
            result = DocumentStore(distance='l2').search([0.1, 0.2], top_k=3)

        assert result == [
            ContextDocument(content="doc at 0.1", distance=0.1),
            ContextDocument(content="doc at 0.3", distance=0.3),
            ContextDocument(content="doc at 0.2", distance=0.2),
        ]

    @pytest.mark.parametrize("name,operator", [
        ('l2', '<->'),
        ('cosine', '<=>'),
        ('inner_product', '<#>'),
    ])
    def test_compiled_query_orders_ascending_and_limits(self, name, operator):
        """Should compile to ORDER BY <distance> ASC LIMIT top_k."""
        queryset = DocumentStore(distance=name).build_queryset([1.0, 2.0], top_k=3)

        sql = str(queryset.query)

        assert '"documents"' in sql
        assert f'"embedding" {operator} ' in sql
        assert re.search(r'ORDER BY .+ ASC LIMIT 3$', sql)
        assert 'DESC' not in sql

    def test_unembedded_rows_are_kept(self):
        """Should keep a row whose embedding is NULL, with no distance."""
        manager = mock_manager([("doc a", 0.1), ("unembedded doc", None)])

        with patch.object(Document, 'objects', manager):
            result = DocumentStore().search([1.0], top_k=3)

        assert result == [
            ContextDocument(content="doc a", distance=0.1),
            ContextDocument(content="unembedded doc", distance=None),
        ]

    def test_rows_without_content_are_kept(self):
        """Should return None content as-is rather than failing."""
        manager = mock_manager([(None, 0.2), ("doc b", 0.4)])

        with patch.object(Document, 'objects', manager):
            result = DocumentStore().search([1.0], top_k=3)

        assert [d.content for d in result] == [None, "doc b"]

    def test_orders_by_distance_and_limits(self):
        """Should annotate distance, order ascending, and slice to top_k."""
        manager = mock_manager([("a", 0.0)])
        using, annotate, order_by, values_list = query_chain(manager)

        with patch.object(Document, 'objects', manager):
            DocumentStore(distance='l2').search([1.0, 2.0], top_k=3)

        using.assert_called_once_with('default')
        distance_expr = annotate.call_args.kwargs['distance']
        assert isinstance(distance_expr, L2Distance)
        order_by.assert_called_once_with('distance')
        values_list.assert_called_once_with('content', 'distance')
        values_list.return_value.__getitem__.assert_called_once_with(slice(None, 3, None))

    @pytest.mark.parametrize("name,expr_class", [
        ('l2', L2Distance),
        ('cosine', CosineDistance),
        ('inner_product', MaxInnerProduct),
    ])
    def test_distance_operator_selection(self, name, expr_class):
        """Should use the pgvector expression for the configured distance."""
        manager = mock_manager([])
        _, annotate, _, _ = query_chain(manager)

        with patch.object(Document, 'objects', manager):
            DocumentStore(distance=name).search([1.0])

        assert isinstance(annotate.call_args.kwargs['distance'], expr_class)

    def test_unknown_distance_rejected(self):
        """Should refuse an unknown distance name."""
        with pytest.raises(ValueError, match="Unknown vector distance"):
            DocumentStore(distance='manhattan')

    def test_database_alias_is_injectable(self):
        """Should query through the given database alias."""
        manager = mock_manager([])
        using, _, _, _ = query_chain(manager)

        with patch.object(Document, 'objects', manager):
            DocumentStore(using='replica').search([1.0])

        using.assert_called_once_with('replica')

    def test_fewer_rows_than_top_k(self):
        """Should return fewer documents when the table is small."""
        manager = mock_manager([("only one", 0.4)])

        with patch.object(Document, 'objects', manager):
            result = DocumentStore().search([1.0], top_k=3)

        assert [d.content for d in result] == ["only one"]

    def test_empty_table(self):
        """Should return an empty list, not raise, when nothing matches."""
        with patch.object(Document, 'objects', mock_manager([])):
            assert DocumentStore().search([1.0]) == []

    @pytest.mark.parametrize("error", [
        OperationalError("connection refused"),
        ProgrammingError("different vector dimensions 3 and 1536"),
    ])
    def test_database_errors_become_storage_error(self, error):
        """Should wrap database failures in StorageError."""
        with patch.object(Document, 'objects', mock_manager(error=error)):
            with pytest.raises(StorageError) as exc_info:
                DocumentStore().search([1.0])

        assert exc_info.value.__cause__ is error


# ============================================================================
# retrieve_context Tests
# ============================================================================

class TestRetrieveContext:
    """Tests for the embed-then-search pipeline."""

    def test_embeds_then_searches(self):
        """Should search with the query's embedding and return contents."""
        embedder = MagicMock()
        embedder.embed.return_value = [0.5, 0.5]
        store = MagicMock()
        store.search.return_value = [
            ContextDocument(content="near", distance=0.1),
            ContextDocument(content="far", distance=0.9),
        ]

        result = retrieve_context("question", embedder=embedder, store=store, top_k=3)

        embedder.embed.assert_called_once_with("question")
        store.search.assert_called_once_with([0.5, 0.5], top_k=3)
        assert result == ["near", "far"]

    def test_top_k_defaults_to_setting(self):
        """Should use RAG_TOP_K when top_k is not given."""
        embedder = MagicMock()
        embedder.embed.return_value = [1.0]
        store = MagicMock()
        store.search.return_value = []

        with patch('apps.rag.retrieval.settings') as mock_settings:
            mock_settings.RAG_TOP_K = 5
            retrieve_context("q", embedder=embedder, store=store)

        store.search.assert_called_once_with([1.0], top_k=5)

    def test_embedding_error_propagates(self):
        """Should propagate EmbeddingError and skip the search."""
        embedder = MagicMock()
        embedder.embed.side_effect = EmbeddingError("Embedding service error: 500")
        store = MagicMock()

        with pytest.raises(EmbeddingError):
            retrieve_context("q", embedder=embedder, store=store)

        store.search.assert_not_called()

    def test_storage_error_propagates(self):
        """Should propagate StorageError from the store."""
        embedder = MagicMock()
        embedder.embed.return_value = [1.0]
        store = MagicMock()
        store.search.side_effect = StorageError("Document store error")

        with pytest.raises(StorageError):
            retrieve_context("q", embedder=embedder, store=store)
