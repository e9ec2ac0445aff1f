#!/usr/bin/env python3
"""
Hybrid Search Orchestrator - fans a query out to the vector, keyword and fuzzy
engines concurrently and fuses whatever answers into one ranked response.
An engine that fails, times out or finds nothing only changes the weights and
the status report; it never fails the search.
"""

import asyncio
import logging
import threading
import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from pydantic import ValidationError

from counsel_etl.corpus import DocumentCorpusLoader

from .blend import ResultBlender, availability_weights
from .config import FuzzyConfig, SearchEngineConfig
from .errors import InvalidQueryParameters
from .fuzzy_index import FuzzyIndex
from .keyword_index import KeywordIndex
from .schema import (
    Category,
    Document,
    DocumentKey,
    Engine,
    EngineHit,
    EngineStatus,
    EngineStatusSet,
    HybridSearchResponse,
    SearchOptions,
    VectorMatch,
)
from .vector_client import OpenSearchVectorClient, VectorSearchClient

logger = logging.getLogger(__name__)


@dataclass
class EngineOutcome:
    """Result of running one engine for one query."""
    engine: Engine
    hits: List[EngineHit] = field(default_factory=list)
    error: Optional[str] = None
    elapsed_ms: int = 0

    @property
    def available(self) -> bool:
        return self.error is None and len(self.hits) > 0

    def status(self) -> EngineStatus:
        return EngineStatus(available=self.available, error=self.error)


@dataclass(frozen=True)
class _IndexSnapshot:
    """Corpus and both local indexes, published together as one reference."""
    keyword: KeywordIndex
    fuzzy: FuzzyIndex
    documents: Dict[DocumentKey, Document] = field(default_factory=dict)
    keys_by_id: Dict[str, DocumentKey] = field(default_factory=dict)
    indexed_at: Optional[datetime] = None

    @classmethod
    def build(cls, documents: List[Document], fuzzy_config: FuzzyConfig,
              indexed_at: Optional[datetime] = None) -> "_IndexSnapshot":
        keyword = KeywordIndex()
        keyword.build(documents, indexed_at)
        fuzzy = FuzzyIndex(fuzzy_config)
        fuzzy.build(documents, indexed_at)

        by_key = {doc.key: doc for doc in documents}
        return cls(
            keyword=keyword,
            fuzzy=fuzzy,
            documents=by_key,
            keys_by_id={key.doc_id: key for key in by_key},
            indexed_at=indexed_at,
        )


class HybridSearchOrchestrator:
    """
    Coordinates the three search engines over one corpus.

    Build one per corpus and share it. Indexes are immutable snapshots; a
    rebuild swaps in new ones while readers keep the reference they took.
    """

    def __init__(self,
                 config: Optional[SearchEngineConfig] = None,
                 vector_client: Optional[VectorSearchClient] = None,
                 loader: Optional[DocumentCorpusLoader] = None):
        """
        Initialize orchestrator.

        Args:
            config: Engine configuration (defaults to SearchEngineConfig())
            vector_client: Semantic backend; built from config.vector when omitted
                and vector search is enabled
            loader: Corpus loader; built from config.corpus.root when omitted
        """
        self.config = config or SearchEngineConfig()
        self.loader = loader or DocumentCorpusLoader(self.config.corpus.root)

        if vector_client is None and self.config.vector.enabled:
            vector_client = OpenSearchVectorClient(self.config.vector)
        self.vector_client = vector_client

        self.blender = ResultBlender(snippet_length=self.config.fuzzy.snippet_length)

        self._snapshot = _IndexSnapshot(keyword=KeywordIndex(), fuzzy=FuzzyIndex(self.config.fuzzy))
        self._rebuild_lock = threading.Lock()

    @property
    def keyword_index(self):
        return self._snapshot.keyword

    @keyword_index.setter
    def keyword_index(self, index):
        self._snapshot = replace(self._snapshot, keyword=index)

    @property
    def fuzzy_index(self):
        return self._snapshot.fuzzy

    @fuzzy_index.setter
    def fuzzy_index(self, index):
        self._snapshot = replace(self._snapshot, fuzzy=index)

    @property
    def is_initialized(self) -> bool:
        return self._snapshot.indexed_at is not None

    @property
    def documents(self) -> List[Document]:
        return list(self._snapshot.documents.values())

    def initialize(self) -> int:
        """
        Scan the whole corpus and (re)build the keyword and fuzzy indexes.

        Returns:
            Number of indexed documents
        """
        with self._rebuild_lock:
            # The next update picks up anything modified after the scan started
            scan_started = datetime.now(timezone.utc)
            if not self.loader.corpus_exists():
                logger.warning(f"Corpus not found at {self.loader.root}; indexes will be empty")
                documents = []
            else:
                documents = self.loader.parse_all()
            self._publish(documents, scan_started)
            return len(documents)

    def update_index(self, since: Optional[datetime] = None) -> int:
        """
        Reindex documents modified after `since`.

        Args:
            since: Cut-off time (defaults to the start of the last scan)

        Returns:
            Number of added or changed documents
        """
        if not self.is_initialized:
            return self.initialize()

        with self._rebuild_lock:
            snapshot = self._snapshot
            cutoff = since or snapshot.indexed_at
            scan_started = datetime.now(timezone.utc)
            if not self.loader.corpus_exists():
                logger.warning(f"Corpus not found at {self.loader.root}; nothing to update")
                return 0

            modified = self.loader.get_modified_since(cutoff)

            documents = {
                key: doc for key, doc in snapshot.documents.items()
                if Path(doc.file_path).exists()
            }
            for doc in modified:
                documents[doc.key] = doc

            self._publish(list(documents.values()), scan_started)
            logger.info(f"Updated index with {len(modified)} modified documents")
            return len(modified)

    def _publish(self, documents: List[Document], indexed_at: datetime):
        self._snapshot = _IndexSnapshot.build(documents, self.config.fuzzy, indexed_at)

    async def search(self,
                     query: str,
                     category: Optional[Union[Category, str]] = None,
                     limit: Optional[int] = None,
                     threshold: Optional[float] = None) -> HybridSearchResponse:
        """
        Execute hybrid search across all engines.

        Args:
            query: Free-text query
            category: Restrict results to one category
            limit: Maximum results (default 10)
            threshold: Minimum vector similarity

        Returns:
            Fused results with per-engine status and the weights used

        Raises:
            InvalidQueryParameters: Query, limit, category or threshold invalid
        """
        start_time = time.time()
        options = self._validate(query, category, limit, threshold)

        if not self.is_initialized:
            await asyncio.to_thread(self.initialize)

        snapshot = self._snapshot
        candidate_limit = options.limit * self.config.fusion.candidate_multiplier

        outcomes = await asyncio.gather(
            self._run_vector(options, snapshot, candidate_limit),
            self._run_local(Engine.KEYWORD, snapshot.keyword.search, options, candidate_limit),
            self._run_local(Engine.FUZZY, snapshot.fuzzy.search, options, candidate_limit),
        )
        by_engine = {outcome.engine: outcome for outcome in outcomes}

        status = EngineStatusSet(
            vector=by_engine[Engine.VECTOR].status(),
            keyword=by_engine[Engine.KEYWORD].status(),
            fuzzy=by_engine[Engine.FUZZY].status(),
        )
        weights = availability_weights(status.available_engines())

        results = self.blender.blend(
            {outcome.engine: outcome.hits for outcome in outcomes if outcome.available},
            weights,
            options.query,
            options.limit,
        )

        execution_time_ms = int((time.time() - start_time) * 1000)
        logger.info(f"Search '{options.query}': {len(results)} results in {execution_time_ms}ms "
                    f"({status.summary()})")

        return HybridSearchResponse(
            query=options.query,
            results=results,
            status=status,
            weights=weights,
            execution_time_ms=execution_time_ms,
            score_stats=self.blender.calculate_score_stats(results),
        )

    @staticmethod
    def _validate(query, category, limit, threshold) -> SearchOptions:
        params = {"query": query, "category": category, "threshold": threshold}
        if limit is not None:
            params["limit"] = limit
        try:
            return SearchOptions(**params)
        except ValidationError as e:
            raise InvalidQueryParameters(str(e)) from e

    async def _run_local(self,
                         engine: Engine,
                         search_fn: Callable[..., List[EngineHit]],
                         options: SearchOptions,
                         limit: int) -> EngineOutcome:
        """Run an in-memory engine in a worker thread; failures become outcomes."""
        start = time.time()
        try:
            hits = await asyncio.to_thread(search_fn, options.query, limit, options.category)
        except Exception as e:
            logger.warning(f"{engine.value} search failed: {e}")
            return EngineOutcome(engine, error=str(e) or type(e).__name__)

        elapsed_ms = int((time.time() - start) * 1000)
        logger.debug(f"{engine.value} search: {len(hits)} hits in {elapsed_ms}ms")
        return EngineOutcome(engine, hits=hits, elapsed_ms=elapsed_ms)

    async def _run_vector(self,
                          options: SearchOptions,
                          snapshot: _IndexSnapshot,
                          candidate_limit: int) -> EngineOutcome:
        """Query the vector backend under the configured timeout."""
        if self.vector_client is None:
            return EngineOutcome(Engine.VECTOR, error="vector search disabled")

        timeout = self.config.vector.timeout_seconds
        limit = max(self.config.vector.candidates, candidate_limit)
        start = time.time()

        try:
            matches = await asyncio.wait_for(
                asyncio.to_thread(
                    self.vector_client.search,
                    options.query,
                    options.category,
                    limit,
                    options.threshold,
                ),
                timeout=timeout,
            )
            hits = self._vector_hits(matches, snapshot, options.category)
        except asyncio.TimeoutError:
            logger.warning(f"vector search timed out after {timeout}s")
            return EngineOutcome(Engine.VECTOR, error=f"timed out after {timeout}s")
        except Exception as e:
            logger.warning(f"vector search failed: {e}")
            return EngineOutcome(Engine.VECTOR, error=str(e) or type(e).__name__)

        elapsed_ms = int((time.time() - start) * 1000)
        logger.debug(f"vector search: {len(hits)} hits in {elapsed_ms}ms")
        return EngineOutcome(Engine.VECTOR, hits=hits, elapsed_ms=elapsed_ms)

    def _vector_hits(self, matches: List[Union[VectorMatch, dict]], snapshot: _IndexSnapshot,
                     category: Optional[Category]) -> List[EngineHit]:
        """Map vector matches (models or plain records) onto corpus documents."""
        hits = []
        for match in matches:
            if not isinstance(match, VectorMatch):
                match = VectorMatch.model_validate(match)
            key = self._vector_key(match, snapshot)
            if key is None:
                logger.warning(f"Dropping vector match {match.id!r}: cannot identify document")
                continue
            if category is not None and key.category != category:
                continue

            doc = snapshot.documents.get(key)
            if doc is None:
                doc = Document(
                    title=match.metadata.get('title') or key.file_name,
                    content=match.document,
                    category=key.category,
                    work_item=key.work_item,
                    file_name=key.file_name,
                    file_path=match.metadata.get('file_path', ''),
                )

            hits.append(EngineHit(
                engine=Engine.VECTOR,
                key=key,
                score=match.similarity,
                matched_document=doc,
            ))
        return hits

    @staticmethod
    def _vector_key(match: VectorMatch, snapshot: _IndexSnapshot) -> Optional[DocumentKey]:
        metadata = match.metadata
        if all(metadata.get(name) for name in ('category', 'work_item', 'file_name')):
            try:
                category = Category(metadata['category'])
            except ValueError:
                return None
            return DocumentKey(category, str(metadata['work_item']), str(metadata['file_name']))

        return snapshot.keys_by_id.get(match.id)

    async def get_engine_status(self) -> EngineStatusSet:
        """Check every engine without running a query."""
        snapshot = self._snapshot
        return EngineStatusSet(
            vector=await self._vector_health(),
            keyword=self._local_health(snapshot.keyword.is_available()),
            fuzzy=self._local_health(snapshot.fuzzy.is_available()),
        )

    async def _vector_health(self) -> EngineStatus:
        if self.vector_client is None:
            return EngineStatus(available=False, error="vector search disabled")

        timeout = self.config.vector.timeout_seconds
        try:
            healthy = await asyncio.wait_for(
                asyncio.to_thread(self.vector_client.health_check), timeout=timeout)
        except asyncio.TimeoutError:
            return EngineStatus(available=False, error=f"health check timed out after {timeout}s")
        except Exception as e:
            logger.warning(f"vector health check failed: {e}")
            return EngineStatus(available=False, error=str(e) or type(e).__name__)

        if not healthy:
            return EngineStatus(available=False, error="health check failed")
        return EngineStatus(available=True)

    def _local_health(self, index_available: bool) -> EngineStatus:
        if not self.loader.corpus_exists():
            return EngineStatus(available=False, error=f"corpus not found at {self.loader.root}")
        if not self.is_initialized:
            return EngineStatus(available=False, error="index not built")
        if not index_available:
            return EngineStatus(available=False, error="index is empty")
        return EngineStatus(available=True)

    def get_suggestions(self, partial_query: str, limit: int = 5) -> List[str]:
        if not self.is_initialized:
            self.initialize()
        return self.fuzzy_index.get_suggestions(partial_query, limit)

    def get_related_terms(self, query: str, limit: int = 3) -> List[str]:
        if not self.is_initialized:
            self.initialize()
        return self.fuzzy_index.get_related_terms(query, limit)

    def get_stats(self) -> Dict[str, object]:
        """Index statistics for both local engines."""
        return {
            "corpus_root": str(self.loader.root),
            "corpus_exists": self.loader.corpus_exists(),
            "keyword": self.keyword_index.get_stats(),
            "fuzzy": self.fuzzy_index.get_stats(),
        }
