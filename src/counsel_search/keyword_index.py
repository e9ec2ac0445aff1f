#!/usr/bin/env python3
"""
In-memory keyword engine.
Exact/substring matching over title, file name, keywords and content with a
field-weighted relevance score and match provenance.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, FrozenSet, List, Optional, Set

from .schema import Category, Document, DocumentKey, Engine, EngineHit

logger = logging.getLogger(__name__)

# Points per query word, by field
TITLE_POINTS = 3.0
FILENAME_POINTS = 2.0
KEYWORD_POINTS = 2.0
CONTENT_POINTS_PER_OCCURRENCE = 0.5
CONTENT_POINTS_CAP = 2.0
# Total points that map to a score of 1.0
NORMALIZATION_POINTS = 10.0


@dataclass(frozen=True)
class _KeywordSnapshot:
    """Immutable index state; replaced as a whole on rebuild."""
    documents: Dict[DocumentKey, Document] = field(default_factory=dict)
    postings: Dict[str, FrozenSet[DocumentKey]] = field(default_factory=dict)
    indexed_at: Optional[datetime] = None


class KeywordIndex:
    """Field-weighted keyword search over an in-memory document set."""

    def __init__(self):
        self._snapshot = _KeywordSnapshot()

    @property
    def is_built(self) -> bool:
        return self._snapshot.indexed_at is not None

    def build(self, documents: List[Document], indexed_at: Optional[datetime] = None):
        """Index documents into a fresh snapshot and swap it in."""
        postings = defaultdict(set)
        documents_by_key = {}

        for doc in documents:
            documents_by_key[doc.key] = doc
            for term in self._document_terms(doc):
                postings[term].add(doc.key)

        self._snapshot = _KeywordSnapshot(
            documents=documents_by_key,
            postings={term: frozenset(keys) for term, keys in postings.items()},
            indexed_at=indexed_at or datetime.now(timezone.utc),
        )
        logger.info(f"Indexed {len(documents_by_key)} documents for keyword search "
                    f"({len(postings)} terms)")

    @staticmethod
    def _document_terms(doc: Document) -> Set[str]:
        """Whitespace tokens of every searchable field, lowercased."""
        terms = set(doc.title.lower().split())
        terms.update(doc.content.lower().split())
        terms.update(doc.file_name.lower().split())
        terms.update(keyword.lower() for keyword in doc.keywords)
        return terms

    def search(self, query: str, limit: int = 10,
               category: Optional[Category] = None) -> List[EngineHit]:
        """
        Search for documents containing any query word.

        Args:
            query: Free-text query, split on whitespace
            limit: Maximum hits to return
            category: Restrict to one category

        Returns:
            Hits sorted by score (descending), ties broken by document id
        """
        snapshot = self._snapshot
        query_words = self._query_words(query)
        if not query_words:
            return []

        hits = []
        for key in self._recall(snapshot, query_words):
            if category is not None and key.category != category:
                continue
            doc = snapshot.documents[key]
            score = self.calculate_relevance_score(query_words, doc)
            if score <= 0:
                continue
            hits.append(EngineHit(
                engine=Engine.KEYWORD,
                key=key,
                score=score,
                matched_document=doc,
                match_provenance=self.find_matches(query_words, doc),
            ))

        hits.sort(key=lambda hit: (-hit.score, hit.key.doc_id))
        logger.debug(f"Keyword search '{query}': {len(hits)} hits")
        return hits[:limit]

    @staticmethod
    def _query_words(query: str) -> List[str]:
        return query.lower().split()

    @staticmethod
    def _recall(snapshot: _KeywordSnapshot, query_words: List[str]) -> Set[DocumentKey]:
        """Candidate documents: any indexed term containing a query word."""
        candidates = set()
        for word in query_words:
            for term, keys in snapshot.postings.items():
                if word in term:
                    candidates.update(keys)
        return candidates

    @staticmethod
    def calculate_relevance_score(query_words: List[str], doc: Document) -> float:
        """Sum field points for each query word and normalize to 0..1."""
        title = doc.title.lower()
        file_name = doc.file_name.lower()
        keywords = [k.lower() for k in doc.keywords]
        content = doc.content.lower()

        points = 0.0
        for word in query_words:
            if word in title:
                points += TITLE_POINTS
            if word in file_name:
                points += FILENAME_POINTS
            if any(word in keyword for keyword in keywords):
                points += KEYWORD_POINTS
            # Capped so long documents do not dominate
            points += min(content.count(word) * CONTENT_POINTS_PER_OCCURRENCE, CONTENT_POINTS_CAP)

        return min(points / NORMALIZATION_POINTS, 1.0)

    @staticmethod
    def find_matches(query_words: List[str], doc: Document) -> List[str]:
        """Provenance tags such as 'title:auth' for every matching field/word pair."""
        matches = []
        for word in query_words:
            if word in doc.title.lower():
                matches.append(f"title:{word}")
            if word in doc.file_name.lower():
                matches.append(f"filename:{word}")
            if any(word in k.lower() for k in doc.keywords):
                matches.append(f"keyword:{word}")
            if word in doc.content.lower():
                matches.append(f"content:{word}")
        return list(dict.fromkeys(matches))

    def get_stats(self) -> Dict[str, object]:
        snapshot = self._snapshot
        return {
            "total_documents": len(snapshot.documents),
            "total_terms": len(snapshot.postings),
            "last_indexed": snapshot.indexed_at,
        }

    def is_available(self) -> bool:
        """True once built with at least one document."""
        return len(self._snapshot.documents) > 0
