#!/usr/bin/env python3
"""
Approximate (typo tolerant) search engine.

Each document is compared against the query field by field with rapidfuzz.
Field similarities under the field threshold are ignored, the rest are
combined with the configured field weights:

    similarity = sum(weight[f] * sim[f])      distance = 1 - similarity

Documents with distance above max_distance are rejected and the engine score
is 1 - distance. The index also answers autocomplete suggestions and related
term lookups.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from rapidfuzz import fuzz, process
from rapidfuzz.utils import default_process

from .config import FuzzyConfig
from .schema import Category, Document, Engine, EngineHit
from .snippet import highlight_matches, make_snippet

logger = logging.getLogger(__name__)

RELATED_TERMS_SOURCE_HITS = 5
RELATED_TERM_MIN_LENGTH = 4


@dataclass(frozen=True)
class _FuzzySnapshot:
    documents: Tuple[Document, ...] = ()
    indexed_at: Optional[datetime] = None


@dataclass
class _FieldMatch:
    similarity: float
    matched_text: str


class FuzzyIndex:
    """Weighted multi-field approximate matcher."""

    def __init__(self, config: Optional[FuzzyConfig] = None):
        self.config = config or FuzzyConfig()
        self._snapshot = _FuzzySnapshot()

    @property
    def is_built(self) -> bool:
        return self._snapshot.indexed_at is not None

    def build(self, documents: List[Document], indexed_at: Optional[datetime] = None):
        self._snapshot = _FuzzySnapshot(
            documents=tuple(documents),
            indexed_at=indexed_at or datetime.now(timezone.utc),
        )
        logger.info(f"Indexed {len(documents)} documents for fuzzy search")

    def search(self, query: str, limit: int = 10,
               category: Optional[Category] = None) -> List[EngineHit]:
        """
        Fuzzy search across title, content, keywords and file name.

        Args:
            query: Free-text query
            limit: Maximum hits to return
            category: Restrict to one category

        Returns:
            Hits with score = 1 - distance, best first
        """
        snapshot = self._snapshot
        if not query.strip():
            return []

        hits = []
        for doc in snapshot.documents:
            if category is not None and doc.category != category:
                continue

            similarity, provenance = self._score_document(query, doc)
            distance = 1.0 - similarity
            if distance > self.config.max_distance:
                continue

            hits.append(EngineHit(
                engine=Engine.FUZZY,
                key=doc.key,
                score=1.0 - distance,
                matched_document=doc,
                match_provenance=provenance,
            ))

        hits.sort(key=lambda hit: (-hit.score, hit.key.doc_id))
        logger.debug(f"Fuzzy search '{query}': {len(hits)} hits")
        return hits[:limit]

    def _score_document(self, query: str, doc: Document) -> Tuple[float, List[str]]:
        field_matches = {
            "title": self._text_similarity(query, doc.title),
            "content": self._text_similarity(query, doc.content),
            "keywords": self._keyword_similarity(query, doc.keywords),
            "file_name": self._text_similarity(query, doc.file_name),
        }

        similarity = 0.0
        provenance = []
        for name, match in field_matches.items():
            if match.similarity < self.config.field_threshold:
                continue
            similarity += self.config.field_weights.get(name, 0.0) * match.similarity
            provenance.append(f"{name}:{match.matched_text}")

        return min(similarity, 1.0), provenance

    @staticmethod
    def _text_similarity(query: str, text: str) -> _FieldMatch:
        """Best-aligned substring similarity when text is at least as long as the query."""
        if not text:
            return _FieldMatch(0.0, "")

        query_clean = default_process(query)
        text_clean = default_process(text)
        if not query_clean or not text_clean:
            return _FieldMatch(0.0, "")

        if len(text_clean) >= len(query_clean):
            alignment = fuzz.partial_ratio_alignment(query_clean, text_clean)
            if alignment is None:
                return _FieldMatch(0.0, "")
            matched = text_clean[alignment.dest_start:alignment.dest_end]
            return _FieldMatch(alignment.score / 100.0, matched)

        return _FieldMatch(fuzz.ratio(query_clean, text_clean) / 100.0, text_clean)

    @staticmethod
    def _keyword_similarity(query: str, keywords: List[str]) -> _FieldMatch:
        """Mean over query words of the best keyword ratio."""
        words = default_process(query).split()
        if not words or not keywords:
            return _FieldMatch(0.0, "")

        total = 0.0
        matched = []
        for word in words:
            best = process.extractOne(word, keywords, scorer=fuzz.ratio, processor=default_process)
            if best is None:
                continue
            keyword, score, _ = best
            total += score / 100.0
            matched.append(keyword)

        return _FieldMatch(total / len(words), ",".join(dict.fromkeys(matched)))

    def get_suggestions(self, partial_query: str, limit: int = 5) -> List[str]:
        """
        Autocomplete candidates for a partial query.

        Whole titles containing the partial query, plus title words and
        keywords that start with it; shortest first.
        """
        if len(partial_query) < 1:
            return []

        query_lower = partial_query.lower()
        suggestions = {}

        for doc in self._snapshot.documents:
            if query_lower in doc.title.lower():
                suggestions.setdefault(doc.title, None)

            for word in doc.title.split():
                if word.lower().startswith(query_lower) and len(word) > len(query_lower):
                    suggestions.setdefault(word, None)

        for doc in self._snapshot.documents:
            for keyword in doc.keywords:
                if keyword.lower().startswith(query_lower) and len(keyword) > len(query_lower):
                    suggestions.setdefault(keyword, None)

        return sorted(suggestions, key=len)[:limit]

    def get_related_terms(self, query: str, limit: int = 3) -> List[str]:
        """Keywords of the closest fuzzy matches, excluding the query itself."""
        query_lower = query.lower()
        related = {}

        for hit in self.search(query, limit=RELATED_TERMS_SOURCE_HITS):
            for keyword in hit.matched_document.keywords:
                if keyword.lower() != query_lower and len(keyword) >= RELATED_TERM_MIN_LENGTH:
                    related.setdefault(keyword, None)

        return list(related)[:limit]

    def snippet(self, content: str, query: str, max_length: Optional[int] = None) -> str:
        return make_snippet(content, query, max_length or self.config.snippet_length)

    @staticmethod
    def highlight_matches(text: str, terms: List[str]) -> str:
        return highlight_matches(text, terms)

    def get_stats(self) -> Dict[str, object]:
        snapshot = self._snapshot
        return {
            "total_documents": len(snapshot.documents),
            "last_indexed": snapshot.indexed_at,
        }

    def is_available(self) -> bool:
        return len(self._snapshot.documents) > 0
