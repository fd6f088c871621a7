"""
Error taxonomy for the chat pipeline.

Every failure inside the pipeline is raised as a RAGError subclass tagged
with the stage that produced it. The chat endpoint catches RAGError at the
boundary, logs the stage, and renders a single generic error body.
"""
from enum import Enum


class PipelineStage(str, Enum):
    """Stage of the chat pipeline where an error originated."""
    EMBEDDING = 'embedding'
    STORAGE = 'storage'
    COMPLETION = 'completion'


class RAGError(Exception):
    """Base class for all chat pipeline failures."""
    stage: PipelineStage


class EmbeddingError(RAGError):
    """Raised when the remote embedding call fails or returns a malformed body."""
    stage = PipelineStage.EMBEDDING


class StorageError(RAGError):
    """Raised when the document store is unreachable or rejects the query."""
    stage = PipelineStage.STORAGE


class CompletionError(RAGError):
    """Raised when the remote chat completion call fails or returns a malformed body."""
    stage = PipelineStage.COMPLETION
