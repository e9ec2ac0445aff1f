#!/usr/bin/env python3
"""
Rank fusion for hybrid search.
Chooses engine weights from engine availability and merges per-engine hits
into a single ranked list of HybridResult.
"""

import logging
from typing import Dict, FrozenSet, Iterable, List, Optional

import numpy as np

from .schema import DocumentKey, Engine, EngineHit, HybridResult
from .snippet import make_snippet

logger = logging.getLogger(__name__)

# Weight sets keyed by the engines that answered
ENGINE_WEIGHTS: Dict[FrozenSet[Engine], Dict[Engine, float]] = {
    frozenset({Engine.VECTOR, Engine.KEYWORD, Engine.FUZZY}):
        {Engine.VECTOR: 0.5, Engine.KEYWORD: 0.3, Engine.FUZZY: 0.2},
    frozenset({Engine.KEYWORD, Engine.FUZZY}):
        {Engine.KEYWORD: 0.6, Engine.FUZZY: 0.4},
    frozenset({Engine.VECTOR, Engine.FUZZY}):
        {Engine.VECTOR: 0.7, Engine.FUZZY: 0.3},
    frozenset({Engine.VECTOR, Engine.KEYWORD}):
        {Engine.VECTOR: 0.7, Engine.KEYWORD: 0.3},
}


def availability_weights(available: Iterable[Engine]) -> Dict[Engine, float]:
    """
    Weights for the engines that answered.

    A single engine gets 1.0; no engine at all yields zero for every engine.
    """
    engines = frozenset(available)
    if not engines:
        return {engine: 0.0 for engine in Engine}
    if len(engines) == 1:
        return {next(iter(engines)): 1.0}
    return dict(ENGINE_WEIGHTS[engines])


class ResultBlender:
    """Merges engine hits by document key into weighted hybrid results."""

    def __init__(self, snippet_length: int = 200):
        self.snippet_length = snippet_length

    def blend(self,
              hits_by_engine: Dict[Engine, List[EngineHit]],
              weights: Dict[Engine, float],
              query: str,
              limit: int) -> List[HybridResult]:
        """
        Fuse hits from several engines.

        The combined score is the weighted sum of engine scores; an engine that
        did not hit a document contributes zero for it. Representative fields
        come from the hit with the highest raw score, the earliest engine
        winning ties.

        Args:
            hits_by_engine: Hits from each available engine
            weights: Weight per engine (missing engines weigh zero)
            query: Original query, used for snippets
            limit: Maximum results to return

        Returns:
            Results sorted by combined score, ties by document id
        """
        groups: Dict[DocumentKey, Dict[Engine, EngineHit]] = {}

        for engine in Engine:
            for hit in hits_by_engine.get(engine, []):
                group = groups.setdefault(hit.key, {})
                existing = group.get(engine)
                if existing is None or hit.score > existing.score:
                    group[engine] = hit

        results = [self._merge(key, group, weights, query) for key, group in groups.items()]
        results.sort(key=lambda r: (-r.score, r.id))
        return results[:limit]

    def _merge(self, key: DocumentKey, group: Dict[Engine, EngineHit],
               weights: Dict[Engine, float], query: str) -> HybridResult:
        engines = [engine for engine in Engine if engine in group]

        representative: Optional[EngineHit] = None
        combined = 0.0
        provenance = []
        for engine in engines:
            hit = group[engine]
            combined += hit.score * weights.get(engine, 0.0)
            provenance.extend(hit.match_provenance)
            if representative is None or hit.score > representative.score:
                representative = hit

        doc = representative.matched_document
        matches = list(dict.fromkeys(provenance))

        return HybridResult(
            id=key.doc_id,
            title=doc.title,
            content=doc.content,
            category=key.category,
            work_item=key.work_item,
            file_name=key.file_name,
            file_path=doc.file_path,
            score=combined,
            engines=engines,
            snippet=make_snippet(doc.content, query, self.snippet_length),
            matches=matches or None,
        )

    @staticmethod
    def calculate_score_stats(results: List[HybridResult]) -> Dict[str, float]:
        """Min, max, mean and standard deviation of combined scores."""
        if not results:
            return {}

        scores = np.array([r.score for r in results], dtype=float)
        return {
            'score_min': float(scores.min()),
            'score_max': float(scores.max()),
            'score_mean': float(scores.mean()),
            'score_std': float(scores.std()),
        }
