#!/usr/bin/env python3
"""
Semantic search backend.
kNN queries against an OpenSearch index of document embeddings, plus index
management and bulk loading of the corpus.
"""

import logging
from typing import Any, Dict, List, Optional, Protocol

from opensearchpy import OpenSearch, RequestsHttpConnection
from opensearchpy.exceptions import OpenSearchException
from opensearchpy.helpers import bulk
from tqdm import tqdm

from counsel_etl.embeddings import Embedder, create_embedder, document_embedding_text

from .config import VectorConfig
from .errors import EngineQueryError
from .schema import Category, Document, VectorMatch

logger = logging.getLogger(__name__)


class VectorSearchClient(Protocol):
    """Anything that can answer semantic queries for the orchestrator."""

    def search(self, query: str, category: Optional[Category] = None,
               limit: int = 20, threshold: Optional[float] = None) -> List[VectorMatch]:
        ...

    def health_check(self) -> bool:
        ...


class OpenSearchVectorClient:
    """
    kNN vector search over OpenSearch.

    Documents are stored with their metadata (category, work item, file name,
    title, path) next to an embedding field, so hits can be mapped back to
    corpus documents.
    """

    def __init__(self,
                 config: Optional[VectorConfig] = None,
                 client: Optional[OpenSearch] = None,
                 embedder: Optional[Embedder] = None):
        """
        Initialize vector client.

        Args:
            config: Connection and index settings
            client: Pre-built OpenSearch client (built from config when omitted)
            embedder: Query/document embedder (built from config when omitted)
        """
        self.config = config or VectorConfig()
        self.client = client or self._build_client(self.config)
        self.embedder = embedder or create_embedder(self.config.embeddings)

    @staticmethod
    def _build_client(config: VectorConfig) -> OpenSearch:
        auth = None
        if config.username and config.password:
            auth = (config.username, config.password)

        return OpenSearch(
            hosts=[{'host': config.host, 'port': config.port}],
            http_auth=auth,
            use_ssl=config.use_ssl,
            verify_certs=config.verify_certs,
            connection_class=RequestsHttpConnection,
            timeout=config.timeout_seconds,
        )

    def build_knn_query(self, embedding: List[float], limit: int,
                        category: Optional[Category] = None) -> Dict[str, Any]:
        """kNN query body, optionally filtered to one category."""
        knn_clause: Dict[str, Any] = {
            "vector": embedding,
            "k": limit,
        }
        if category is not None:
            knn_clause["filter"] = {"term": {"category": category.value}}

        return {
            "size": limit,
            "query": {"knn": {self.config.embedding_field: knn_clause}},
            "_source": {"excludes": [self.config.embedding_field]},
        }

    def search(self, query: str, category: Optional[Category] = None,
               limit: int = 20, threshold: Optional[float] = None) -> List[VectorMatch]:
        """
        Execute a kNN search.

        Args:
            query: Free-text query, embedded before searching
            category: Restrict to one category
            limit: Number of neighbours to request
            threshold: Minimum similarity (defaults to config.default_threshold)

        Returns:
            Matches with similarity >= threshold, best first

        Raises:
            EngineQueryError: Embedding or OpenSearch request failed
        """
        min_similarity = self.config.default_threshold if threshold is None else threshold

        try:
            embedding = self.embedder.embed_query(query)
        except Exception as e:
            raise EngineQueryError("vector", f"Query embedding failed: {e}") from e

        body = self.build_knn_query(embedding, limit, category)
        try:
            response = self.client.search(
                index=self.config.index_name,
                body=body,
                request_timeout=self.config.timeout_seconds,
            )
        except OpenSearchException as e:
            raise EngineQueryError("vector", f"OpenSearch error during vector search: {e}") from e

        matches = []
        for hit in response.get('hits', {}).get('hits', []):
            match = self._to_match(hit)
            if match.similarity >= min_similarity:
                matches.append(match)

        logger.debug(f"Vector search '{query}': {len(matches)} matches above {min_similarity}")
        return matches

    @staticmethod
    def _to_match(hit: Dict[str, Any]) -> VectorMatch:
        source = hit.get('_source', {})
        # cosinesimil scores are (1 + cos) / 2, already within 0..1
        similarity = max(0.0, min(1.0, float(hit.get('_score') or 0.0)))

        return VectorMatch(
            id=str(hit.get('_id', '')),
            similarity=similarity,
            document=source.get('content', ''),
            metadata={
                key: source[key]
                for key in ('category', 'work_item', 'file_name', 'title', 'file_path')
                if key in source
            },
        )

    def health_check(self) -> bool:
        """True when the cluster answers and the index exists."""
        try:
            return bool(self.client.ping()) and bool(
                self.client.indices.exists(index=self.config.index_name))
        except Exception as e:
            logger.debug(f"Vector backend health check failed: {e}")
            return False

    def get_index_mapping(self) -> Dict[str, Any]:
        """Mapping for document metadata plus an HNSW cosine kNN field."""
        return {
            "properties": {
                "doc_id": {"type": "keyword"},
                "category": {"type": "keyword"},
                "work_item": {"type": "keyword"},
                "file_name": {"type": "keyword"},
                "file_path": {"type": "keyword", "index": False},
                "title": {"type": "text"},
                "content": {"type": "text"},
                "keywords": {"type": "keyword"},
                "last_modified": {"type": "date"},
                self.config.embedding_field: {
                    "type": "knn_vector",
                    "dimension": self.config.embedding_dimension,
                    "method": {
                        "name": "hnsw",
                        "space_type": "cosinesimil",
                        "engine": "lucene",
                        "parameters": {
                            "ef_construction": 512,
                            "m": 16
                        }
                    }
                },
            }
        }

    def ensure_index(self, force_recreate: bool = False) -> bool:
        """
        Create the kNN index if needed.

        Returns:
            True if the index was created, False if it already existed
        """
        index_name = self.config.index_name

        if self.client.indices.exists(index=index_name):
            if not force_recreate:
                logger.info(f"Index {index_name} already exists")
                return False
            logger.info(f"Deleting existing index: {index_name}")
            self.client.indices.delete(index=index_name)

        logger.info(f"Creating index: {index_name}")
        self.client.indices.create(
            index=index_name,
            body={
                "settings": {"index": {"knn": True, "knn.algo_param.ef_search": 512}},
                "mappings": self.get_index_mapping(),
            },
        )
        return True

    def prepare_document(self, doc: Document, embedding: List[float]) -> Dict[str, Any]:
        """OpenSearch source for one corpus document."""
        return {
            "doc_id": doc.doc_id,
            "category": doc.category.value,
            "work_item": doc.work_item,
            "file_name": doc.file_name,
            "file_path": doc.file_path,
            "title": doc.title,
            "content": doc.content,
            "keywords": doc.keywords,
            "last_modified": doc.last_modified.isoformat() if doc.last_modified else None,
            self.config.embedding_field: embedding,
        }

    def index_documents(self, documents: List[Document], batch_size: int = 64,
                        show_progress: bool = True) -> Dict[str, Any]:
        """
        Embed and bulk index documents.

        Args:
            documents: Corpus documents to index
            batch_size: Documents embedded and sent per bulk request
            show_progress: Display a tqdm progress bar

        Returns:
            Indexing statistics
        """
        total_docs = len(documents)
        successful = 0
        errors = []

        batches = range(0, total_docs, batch_size)
        for start in tqdm(batches, desc="Indexing documents", disable=not show_progress):
            batch = documents[start:start + batch_size]
            embeddings = self.embedder.embed_batch([document_embedding_text(doc) for doc in batch])

            actions = [
                {
                    "_index": self.config.index_name,
                    "_id": doc.doc_id,
                    "_source": self.prepare_document(doc, embedding),
                }
                for doc, embedding in zip(batch, embeddings)
            ]

            success_count, failed_items = bulk(
                self.client,
                actions,
                chunk_size=len(actions),
                raise_on_error=False,
                request_timeout=60,
            )
            successful += success_count
            if failed_items:
                errors.extend(failed_items)

        self.client.indices.refresh(index=self.config.index_name)
        logger.info(f"Bulk indexing completed: {successful}/{total_docs} successful")

        return {
            "total": total_docs,
            "successful": successful,
            "failed": total_docs - successful,
            "errors": errors[:10],
        }
