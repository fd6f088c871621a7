"""
Embedding service for chat queries.

Calls an OpenAI-compatible /embeddings endpoint to turn the user's
message into a vector in the same space as the stored documents.
"""
import logging
from typing import Dict, List, Optional

import httpx
from django.conf import settings

from apps.rag.errors import EmbeddingError

logger = logging.getLogger(__name__)

# Maximum number of response body characters written to the log
LOG_BODY_PREVIEW = 500


class EmbeddingClient:
    """Client for an OpenAI-compatible embedding API."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        extra_headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = (base_url or getattr(
            settings, 'EMBEDDING_API_BASE_URL', 'https://openrouter.ai/api/v1'
        )).rstrip('/')
        self.api_key = api_key if api_key is not None else getattr(settings, 'LLM_API_KEY', '')
        self.model = model or getattr(settings, 'EMBEDDING_MODEL', 'openai/text-embedding-3-small')
        self.timeout = timeout or getattr(settings, 'EMBEDDING_TIMEOUT', 60)
        self.extra_headers = (
            extra_headers if extra_headers is not None
            else getattr(settings, 'LLM_EXTRA_HEADERS', {})
        )
        self.dimensions = getattr(settings, 'EMBEDDING_DIMENSIONS', None)
        self.transport = transport

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            **self.extra_headers,
        }

    def embed(self, text: str) -> List[float]:
        """
        Generate an embedding vector for a single text.

        Args:
            text: The user's message, passed through unchanged

        Returns:
            Embedding vector as list of floats

        Raises:
            EmbeddingError: If the call fails or the response has no embedding
        """
        logger.info(f"Requesting embedding: model={self.model}, chars={len(text)}")

        try:
            with httpx.Client(timeout=float(self.timeout), transport=self.transport) as client:
                response = client.post(
                    f"{self.base_url}/embeddings",
                    json={
                        "model": self.model,
                        "input": text,
                    },
                    headers=self.headers,
                )
                response.raise_for_status()
                data = response.json()

        except httpx.HTTPStatusError as e:
            body = e.response.text[:LOG_BODY_PREVIEW]
            logger.error(f"Embedding request failed with {e.response.status_code}: {body}")
            raise EmbeddingError(f"Embedding service error: {e.response.status_code}") from e
        except httpx.TimeoutException as e:
            logger.error(f"Embedding request timed out: {e}")
            raise EmbeddingError("Embedding service timed out") from e
        except httpx.RequestError as e:
            logger.error(f"Embedding connection error: {e}")
            raise EmbeddingError("Could not connect to embedding service") from e
        except ValueError as e:
            logger.error(f"Embedding response is not valid JSON: {e}")
            raise EmbeddingError("Invalid response from embedding service") from e

        return self._extract_embedding(data)

    def _extract_embedding(self, data) -> List[float]:
        # Expected shape: {"data": [{"embedding": [...]}, ...]}
        try:
            results = data["data"]
            if not results:
                raise IndexError("empty data")
            embedding = results[0]["embedding"]
        except (KeyError, IndexError, TypeError) as e:
            logger.error(
                f"Unexpected embedding response structure ({e}): "
                f"{str(data)[:LOG_BODY_PREVIEW]}"
            )
            raise EmbeddingError("Invalid response from embedding service") from e

        if not isinstance(embedding, list) or not embedding:
            logger.error(f"Embedding is missing or empty: {str(data)[:LOG_BODY_PREVIEW]}")
            raise EmbeddingError("Invalid response from embedding service")

        # Dimension mismatches surface as database errors; only warn here
        if self.dimensions and len(embedding) != self.dimensions:
            logger.warning(
                f"Embedding dimension mismatch: expected {self.dimensions}, "
                f"got {len(embedding)}"
            )

        logger.debug(f"Generated embedding with {len(embedding)} dimensions")
        return embedding


_client_instance: Optional[EmbeddingClient] = None


def get_embedding_client() -> EmbeddingClient:
    """Get the process-wide embedding client, creating it on first use."""
    global _client_instance
    if _client_instance is None:
        _client_instance = EmbeddingClient()
    return _client_instance


def reset_embedding_client():
    """Reset the cached client instance. Useful for testing."""
    global _client_instance
    _client_instance = None


def embed(text: str) -> List[float]:
    """Embed text with the configured client."""
    return get_embedding_client().embed(text)
