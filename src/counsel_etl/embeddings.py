#!/usr/bin/env python3
"""
Embedding providers for semantic search.
Turns document and query text into vectors for the OpenSearch kNN index.
"""

import hashlib
import logging
import os
from typing import Dict, List, Optional

import numpy as np
import requests

from counsel_search.config import (
    EmbeddingProvider,
    OllamaProvider,
    OpenAIProvider,
    SentenceTransformerProvider,
)
from counsel_search.schema import Document

logger = logging.getLogger(__name__)

# Leading characters of a document used for its embedding text
MAX_EMBEDDING_CHARS = 4000


class Embedder:
    """Base embedder with a content-hash cache."""

    def __init__(self):
        self._cache: Dict[str, List[float]] = {}

    @staticmethod
    def _content_hash(text: str) -> str:
        return hashlib.sha256(text.encode('utf-8')).hexdigest()

    def embed_query(self, text: str) -> List[float]:
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """
        Embed texts, serving repeats from the cache.

        Args:
            texts: Texts to embed

        Returns:
            One vector per input text, same order
        """
        results: List[Optional[List[float]]] = []
        missing = []

        for text in texts:
            cached = self._cache.get(self._content_hash(text))
            results.append(cached)
            if cached is None:
                missing.append(text)

        if missing:
            missing = list(dict.fromkeys(missing))
            vectors = self._encode(missing)
            for text, vector in zip(missing, vectors):
                self._cache[self._content_hash(text)] = vector
            results = [self._cache[self._content_hash(text)] for text in texts]

        return results

    def _encode(self, texts: List[str]) -> List[List[float]]:
        raise NotImplementedError


class SentenceTransformerEmbedder(Embedder):
    """Local sentence-transformers model, loaded on first use."""

    def __init__(self, provider: SentenceTransformerProvider):
        super().__init__()
        self.provider = provider
        self._model = None

    def _load_model(self):
        if self._model is None:
            from sentence_transformers import SentenceTransformer

            logger.info(f"Loading embedding model: {self.provider.model_name}")
            cache_folder = str(self.provider.cache_dir) if self.provider.cache_dir else None
            self._model = SentenceTransformer(self.provider.model_name, cache_folder=cache_folder)
        return self._model

    def _encode(self, texts: List[str]) -> List[List[float]]:
        model = self._load_model()
        embeddings = model.encode(
            texts,
            normalize_embeddings=True,  # Cosine similarity ready
            show_progress_bar=False,
            convert_to_numpy=True,
        )
        return [np.asarray(vector, dtype=np.float32).tolist() for vector in embeddings]


class OllamaEmbedder(Embedder):
    """Embeddings from an Ollama daemon's /api/embeddings endpoint."""

    def __init__(self, provider: OllamaProvider, timeout: float = 30.0):
        super().__init__()
        self.provider = provider
        self.timeout = timeout

    def _encode(self, texts: List[str]) -> List[List[float]]:
        url = f"{self.provider.host.rstrip('/')}/api/embeddings"
        vectors = []
        for text in texts:
            response = requests.post(
                url,
                json={"model": self.provider.model, "prompt": text},
                timeout=self.timeout,
            )
            response.raise_for_status()
            vectors.append(response.json()["embedding"])
        return vectors


class OpenAIEmbedder(Embedder):
    """Embeddings from the OpenAI /embeddings endpoint."""

    def __init__(self, provider: OpenAIProvider, timeout: float = 30.0):
        super().__init__()
        self.provider = provider
        self.timeout = timeout

    def _encode(self, texts: List[str]) -> List[List[float]]:
        api_key = os.environ.get(self.provider.api_key_env)
        if not api_key:
            raise RuntimeError(f"Environment variable {self.provider.api_key_env} is not set")

        response = requests.post(
            f"{self.provider.base_url.rstrip('/')}/embeddings",
            headers={"Authorization": f"Bearer {api_key}"},
            json={"model": self.provider.model, "input": texts},
            timeout=self.timeout,
        )
        response.raise_for_status()

        data = sorted(response.json()["data"], key=lambda item: item["index"])
        return [item["embedding"] for item in data]


def create_embedder(provider: EmbeddingProvider) -> Embedder:
    """Build the embedder matching a configured provider."""
    if isinstance(provider, SentenceTransformerProvider):
        return SentenceTransformerEmbedder(provider)
    if isinstance(provider, OllamaProvider):
        return OllamaEmbedder(provider)
    if isinstance(provider, OpenAIProvider):
        return OpenAIEmbedder(provider)
    raise TypeError(f"Unsupported embedding provider: {type(provider).__name__}")


def document_embedding_text(doc: Document) -> str:
    """Title plus leading content, the text a document is embedded from."""
    return f"{doc.title}\n\n{doc.content}"[:MAX_EMBEDDING_CHARS].strip()
