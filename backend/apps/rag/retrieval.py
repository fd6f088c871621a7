"""
Retrieval service for chat queries.

Performs vector similarity search over the documents table to find
the stored contents nearest to a user's message.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional

from django.conf import settings
from django.db import DatabaseError
from pgvector.django import CosineDistance, L2Distance, MaxInnerProduct

from apps.rag.embeddings import EmbeddingClient, get_embedding_client
from apps.rag.errors import StorageError
from apps.rag.models import Document

logger = logging.getLogger(__name__)

# Default number of documents to retrieve
DEFAULT_TOP_K = 3

# pgvector distance expressions, all ordered ascending (nearest first).
# MaxInnerProduct is the negative inner product (<#>), so ascending still
# means most similar first.
DISTANCE_FUNCTIONS = {
    'l2': L2Distance,              # <->
    'cosine': CosineDistance,      # <=>
    'inner_product': MaxInnerProduct,  # <#>
}


@dataclass
class ContextDocument:
    """
    A retrieved document content with its distance from the query.

    Rows without an embedding sort after all embedded rows and come back
    with distance None; rows without content come back with content None.
    """
    content: Optional[str]
    distance: Optional[float]


class DocumentStore:
    """
    Read-only handle on the documents table.

    Bound to a Django database alias so callers (and tests) can choose
    which connection is used. Connection lifetime is owned by Django:
    persistent per thread (CONN_MAX_AGE) and re-established after a
    failure (CONN_HEALTH_CHECKS).
    """

    def __init__(self, using: str = 'default', distance: Optional[str] = None):
        distance = distance or getattr(settings, 'VECTOR_DISTANCE', 'l2')
        if distance not in DISTANCE_FUNCTIONS:
            raise ValueError(
                f"Unknown vector distance '{distance}', "
                f"expected one of {sorted(DISTANCE_FUNCTIONS)}"
            )
        self.using = using
        self.distance = distance

    def build_queryset(self, query_embedding: List[float], top_k: int = DEFAULT_TOP_K):
        """
        Build the (lazy) nearest-neighbor query.

        Equivalent to:
            SELECT content, embedding <-> %s AS distance
            FROM documents ORDER BY distance ASC LIMIT %s
        """
        distance_expr = DISTANCE_FUNCTIONS[self.distance]('embedding', query_embedding)

        return (
            Document.objects.using(self.using)
            .annotate(distance=distance_expr)
            .order_by('distance')
            .values_list('content', 'distance')[:top_k]
        )

    def search(self, query_embedding: List[float], top_k: int = DEFAULT_TOP_K) -> List[ContextDocument]:
        """
        Retrieve the top-k documents nearest to a query embedding.

        Args:
            query_embedding: Vector embedding of the user's message
            top_k: Maximum number of documents to return

        Returns:
            ContextDocument list ordered nearest first; may be empty

        Raises:
            StorageError: If the database is unavailable or rejects the query
        """
        queryset = self.build_queryset(query_embedding, top_k=top_k)

        try:
            rows = list(queryset)
        except DatabaseError as e:
            logger.error(f"Document search failed ({self.distance}, top_k={top_k}): {e}")
            raise StorageError(f"Document store error: {e}") from e

        documents = [
            ContextDocument(
                content=content,
                distance=float(distance) if distance is not None else None,
            )
            for content, distance in rows
        ]

        unembedded = sum(1 for doc in documents if doc.distance is None)
        if unembedded:
            logger.warning(f"{unembedded} retrieved documents have no embedding")

        if documents and documents[0].distance is not None:
            logger.info(
                f"Retrieved {len(documents)} documents "
                f"(requested top_k={top_k}, nearest={documents[0].distance:.4f})"
            )
        else:
            logger.info(f"Retrieved {len(documents)} documents (requested top_k={top_k})")

        return documents


_store_instance: Optional[DocumentStore] = None


def get_document_store() -> DocumentStore:
    """Get the process-wide document store handle."""
    global _store_instance
    if _store_instance is None:
        _store_instance = DocumentStore()
    return _store_instance


def reset_document_store():
    """Reset the cached store handle. Useful for testing."""
    global _store_instance
    _store_instance = None


def retrieve_context(
    query: str,
    embedder: Optional[EmbeddingClient] = None,
    store: Optional[DocumentStore] = None,
    top_k: Optional[int] = None,
) -> List[Optional[str]]:
    """
    Full retrieval pipeline for a user message.

    Args:
        query: The user's message
        embedder: Embedding client (defaults to the configured one)
        store: Document store (defaults to the configured one)
        top_k: Number of documents to retrieve (defaults to RAG_TOP_K)

    Returns:
        Document contents, nearest first, at most top_k long

    Raises:
        EmbeddingError: If the query cannot be embedded
        StorageError: If the similarity query fails
    """
    embedder = embedder or get_embedding_client()
    store = store or get_document_store()
    top_k = top_k or getattr(settings, 'RAG_TOP_K', DEFAULT_TOP_K)

    query_embedding = embedder.embed(query)
    documents = store.search(query_embedding, top_k=top_k)

    return [doc.content for doc in documents]
