"""
RAG (Retrieval Augmented Generation) chat app.

Provides:
- Message embedding via a remote embedding API
- Nearest-neighbor retrieval from the pgvector documents table
- Chat completion with the retrieved context
- The POST /chat endpoint
"""
