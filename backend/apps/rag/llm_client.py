"""
Chat completion client.

Sends the fixed three-message RAG prompt (instructions, retrieved
context, user message) to an OpenAI-compatible /chat/completions API.

Works with: OpenRouter, OpenAI, Groq, Together, local servers, etc.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import httpx
from django.conf import settings

from apps.rag.errors import CompletionError

logger = logging.getLogger(__name__)

# Maximum number of response body characters written to the log
LOG_BODY_PREVIEW = 500

SYSTEM_PROMPT = "You are a helpful assistant. Answer only using the context below."


@dataclass
class LLMMessage:
    """A message in a chat conversation."""
    role: str  # "system" or "user"
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


def build_context_block(context: Sequence[Optional[str]]) -> str:
    """Join retrieved contents, nearest first, one per line (None as an empty line)."""
    return "\n".join(text if text is not None else "" for text in context)


def build_messages(user_message: str, context: Sequence[Optional[str]]) -> List[LLMMessage]:
    """
    Build the prompt sent to the model.

    Always three messages, in order: the answering rules, the context
    block (present even when empty), and the user's message verbatim.
    """
    return [
        LLMMessage(role="system", content=SYSTEM_PROMPT),
        LLMMessage(role="system", content=f"Context:\n{build_context_block(context)}"),
        LLMMessage(role="user", content=user_message),
    ]


class CompletionClient:
    """LLM client for OpenAI-compatible chat completion APIs."""

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
            settings, 'LLM_API_BASE_URL', 'https://openrouter.ai/api/v1'
        )).rstrip('/')
        self.api_key = api_key if api_key is not None else getattr(settings, 'LLM_API_KEY', '')
        self.model = model or getattr(settings, 'LLM_MODEL', 'openai/gpt-4o-mini')
        self.timeout = timeout or getattr(settings, 'LLM_TIMEOUT', 120)
        self.extra_headers = (
            extra_headers if extra_headers is not None
            else getattr(settings, 'LLM_EXTRA_HEADERS', {})
        )
        self.temperature = getattr(settings, 'LLM_TEMPERATURE', None)
        self.max_tokens = getattr(settings, 'LLM_MAX_TOKENS', None)
        self.transport = transport

    @property
    def model_name(self) -> str:
        return self.model

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            **self.extra_headers,
        }

    def build_request_body(self, messages: List[LLMMessage]) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "model": self.model,
            "messages": [msg.to_dict() for msg in messages],
        }
        # Only sent when configured; otherwise the provider default applies
        if self.temperature is not None:
            body["temperature"] = self.temperature
        if self.max_tokens is not None:
            body["max_tokens"] = self.max_tokens
        return body

    def chat(self, messages: List[LLMMessage]) -> str:
        """
        Send a chat completion request.

        Args:
            messages: List of messages in the conversation

        Returns:
            Content of the first choice's message

        Raises:
            CompletionError: If the request fails or the response is malformed
        """
        logger.info(f"Calling chat completion: model={self.model}, messages={len(messages)}")

        try:
            with httpx.Client(timeout=float(self.timeout), transport=self.transport) as client:
                response = client.post(
                    f"{self.base_url}/chat/completions",
                    json=self.build_request_body(messages),
                    headers=self.headers,
                )
                response.raise_for_status()
                data = response.json()

        except httpx.HTTPStatusError as e:
            body = e.response.text[:LOG_BODY_PREVIEW]
            logger.error(f"Chat completion failed with {e.response.status_code}: {body}")
            raise CompletionError(f"Chat service error: {e.response.status_code}") from e
        except httpx.TimeoutException as e:
            logger.error(f"Chat completion timed out: {e}")
            raise CompletionError("Chat service timed out") from e
        except httpx.RequestError as e:
            logger.error(f"Chat completion connection error: {e}")
            raise CompletionError("Could not connect to chat service") from e
        except ValueError as e:
            logger.error(f"Chat completion response is not valid JSON: {e}")
            raise CompletionError("Invalid response from chat service") from e

        # Expected shape: {"choices": [{"message": {"content": "..."}}]}
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            logger.error(
                f"Unexpected chat completion structure ({e}): "
                f"{str(data)[:LOG_BODY_PREVIEW]}"
            )
            raise CompletionError("Invalid response from chat service") from e

        if not isinstance(content, str):
            logger.error(f"Chat completion content is not text: {str(data)[:LOG_BODY_PREVIEW]}")
            raise CompletionError("Invalid response from chat service")

        logger.info(f"Chat completion response: {len(content)} chars")
        return content

    def complete(self, user_message: str, context: Sequence[Optional[str]]) -> str:
        """Answer a user message from the retrieved context."""
        return self.chat(build_messages(user_message, context))


# =============================================================================
# Client Factory
# =============================================================================

_client_instance: Optional[CompletionClient] = None


def get_completion_client() -> CompletionClient:
    """Get the process-wide completion client, creating it on first use."""
    global _client_instance
    if _client_instance is None:
        logger.info("Using OpenAI-compatible API for chat completion")
        _client_instance = CompletionClient()
    return _client_instance


def reset_completion_client():
    """Reset the cached client instance. Useful for testing."""
    global _client_instance
    _client_instance = None


def complete(user_message: str, context: Sequence[Optional[str]]) -> str:
    """Convenience wrapper around the configured client's complete()."""
    return get_completion_client().complete(user_message, context)
