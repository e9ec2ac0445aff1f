"""
Corpus loading and embedding generation for counsel search.
"""

from .corpus import DocumentCorpusLoader, STOP_WORDS
from .embeddings import Embedder, create_embedder, document_embedding_text

__all__ = [
    'DocumentCorpusLoader', 'STOP_WORDS',
    'Embedder', 'create_embedder', 'document_embedding_text',
]
