"""
Chat service for RAG.

Sequences the three pipeline steps for one message: embed the message,
retrieve the nearest documents, and ask the LLM to answer from them.
Each step runs to completion before the next starts; failures propagate
as RAGError subclasses to the caller.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional

from apps.rag.embeddings import EmbeddingClient, get_embedding_client
from apps.rag.llm_client import CompletionClient, get_completion_client
from apps.rag.retrieval import DocumentStore, get_document_store, retrieve_context

logger = logging.getLogger(__name__)


@dataclass
class ChatReply:
    """Reply to a single chat message."""
    reply: str
    context: List[Optional[str]]

    def to_dict(self) -> dict:
        """Convert to the JSON response body (context stays server-side)."""
        return {"reply": self.reply}


class ChatService:
    """Retrieval-then-generation pipeline with injectable collaborators."""

    def __init__(
        self,
        embedder: Optional[EmbeddingClient] = None,
        store: Optional[DocumentStore] = None,
        llm: Optional[CompletionClient] = None,
        top_k: Optional[int] = None,
    ):
        self.embedder = embedder or get_embedding_client()
        self.store = store or get_document_store()
        self.llm = llm or get_completion_client()
        self.top_k = top_k

    def reply(self, message: str) -> ChatReply:
        """
        Answer a message using retrieved context.

        Raises:
            EmbeddingError: If the message cannot be embedded
            StorageError: If the similarity search fails
            CompletionError: If the LLM call fails
        """
        context = retrieve_context(
            message,
            embedder=self.embedder,
            store=self.store,
            top_k=self.top_k,
        )
        logger.info(f"Answering message ({len(message)} chars) with {len(context)} context documents")

        answer = self.llm.complete(message, context)
        return ChatReply(reply=answer, context=context)


def get_chat_service() -> ChatService:
    """Build a chat service from the configured clients."""
    return ChatService()
