"""
Document model over the externally owned documents table.

The table is populated by a separate ingestion process; this service only
reads it, so the model is unmanaged and no migrations are generated.
"""
from django.conf import settings
from django.db import models
from pgvector.django import VectorField


class Document(models.Model):
    """
    A stored document with its precomputed embedding.

    The embedding must come from the same model as query embeddings
    (settings.EMBEDDING_MODEL), otherwise similarity search fails.
    """
    content = models.TextField(
        help_text="The text content returned as chat context"
    )

    # Dimension is informational only for an unmanaged table
    embedding = VectorField(
        dimensions=getattr(settings, 'EMBEDDING_DIMENSIONS', None),
        null=True,
        blank=True,
        help_text="Vector embedding of content"
    )

    class Meta:
        managed = False
        db_table = 'documents'

    def __str__(self):
        preview = self.content[:50] + '...' if len(self.content) > 50 else self.content
        return f"Document {self.pk}: {preview}"
