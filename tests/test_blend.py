#!/usr/bin/env python3
"""
Tests for availability weights and rank fusion.
"""

import pytest

from counsel_search.blend import ResultBlender, availability_weights
from counsel_search.schema import Category, Document, Engine, EngineHit


def make_hit(engine, work_item, score, title=None, content="", provenance=None):
    doc = Document(
        title=title or work_item.title(),
        content=content,
        category=Category.FEATURE,
        work_item=work_item,
        file_name="doc.md",
        file_path=f"/corpus/features/{work_item}/doc.md",
    )
    return EngineHit(engine=engine, key=doc.key, score=score, matched_document=doc,
                     match_provenance=provenance or [])


class TestAvailabilityWeights:
    """Weight table by engine availability."""

    @pytest.mark.parametrize("available, expected", [
        ({Engine.VECTOR, Engine.KEYWORD, Engine.FUZZY},
         {Engine.VECTOR: 0.5, Engine.KEYWORD: 0.3, Engine.FUZZY: 0.2}),
        ({Engine.KEYWORD, Engine.FUZZY}, {Engine.KEYWORD: 0.6, Engine.FUZZY: 0.4}),
        ({Engine.VECTOR, Engine.FUZZY}, {Engine.VECTOR: 0.7, Engine.FUZZY: 0.3}),
        ({Engine.VECTOR, Engine.KEYWORD}, {Engine.VECTOR: 0.7, Engine.KEYWORD: 0.3}),
        ({Engine.FUZZY}, {Engine.FUZZY: 1.0}),
        ({Engine.VECTOR}, {Engine.VECTOR: 1.0}),
    ])
    def test_weight_sets(self, available, expected):
        weights = availability_weights(available)
        assert weights == expected
        assert sum(weights.values()) == pytest.approx(1.0)

    def test_no_engines(self):
        assert availability_weights([]) == {
            Engine.VECTOR: 0.0, Engine.KEYWORD: 0.0, Engine.FUZZY: 0.0
        }

    def test_table_is_not_mutated(self):
        weights = availability_weights([Engine.KEYWORD, Engine.FUZZY])
        weights[Engine.KEYWORD] = 99
        assert availability_weights([Engine.KEYWORD, Engine.FUZZY])[Engine.KEYWORD] == 0.6


class TestResultBlender:
    """Merging hits by document key."""

    def setup_method(self):
        self.blender = ResultBlender()
        self.weights = {Engine.VECTOR: 0.5, Engine.KEYWORD: 0.3, Engine.FUZZY: 0.2}

    def test_weighted_sum_without_renormalization(self):
        """An engine that missed a document contributes zero."""
        results = self.blender.blend(
            {Engine.KEYWORD: [make_hit(Engine.KEYWORD, "solo", 1.0)]},
            self.weights, "solo", 10)
        assert results[0].score == pytest.approx(0.3)

    def test_corroborated_document_scores_higher(self):
        """A document hit by two engines beats either single contribution."""
        results = self.blender.blend({
            Engine.KEYWORD: [make_hit(Engine.KEYWORD, "both", 0.5), make_hit(Engine.KEYWORD, "single", 0.5)],
            Engine.FUZZY: [make_hit(Engine.FUZZY, "both", 0.5)],
        }, self.weights, "query", 10)

        assert [r.work_item for r in results] == ["both", "single"]
        assert results[0].score == pytest.approx(0.5 * 0.3 + 0.5 * 0.2)
        assert results[0].score >= 0.5 * 0.3
        assert results[0].score >= 0.5 * 0.2

    def test_engines_listed_in_engine_order(self):
        results = self.blender.blend({
            Engine.FUZZY: [make_hit(Engine.FUZZY, "doc", 0.4)],
            Engine.VECTOR: [make_hit(Engine.VECTOR, "doc", 0.9)],
        }, self.weights, "doc", 10)
        assert results[0].engines == [Engine.VECTOR, Engine.FUZZY]

    def test_representative_is_highest_raw_score(self):
        results = self.blender.blend({
            Engine.VECTOR: [make_hit(Engine.VECTOR, "doc", 0.6, content="vector text")],
            Engine.KEYWORD: [make_hit(Engine.KEYWORD, "doc", 0.9, content="keyword text")],
        }, self.weights, "text", 10)
        assert results[0].content == "keyword text"

    def test_representative_tie_goes_to_first_engine(self):
        results = self.blender.blend({
            Engine.KEYWORD: [make_hit(Engine.KEYWORD, "doc", 0.7, content="keyword text")],
            Engine.FUZZY: [make_hit(Engine.FUZZY, "doc", 0.7, content="fuzzy text")],
        }, self.weights, "text", 10)
        assert results[0].content == "keyword text"

    def test_matches_are_provenance_union(self):
        results = self.blender.blend({
            Engine.KEYWORD: [make_hit(Engine.KEYWORD, "doc", 0.5, provenance=["title:doc", "content:doc"])],
            Engine.FUZZY: [make_hit(Engine.FUZZY, "doc", 0.5, provenance=["title:doc", "keywords:doc"])],
        }, self.weights, "doc", 10)
        assert results[0].matches == ["title:doc", "content:doc", "keywords:doc"]

    def test_no_provenance_gives_none(self):
        results = self.blender.blend(
            {Engine.VECTOR: [make_hit(Engine.VECTOR, "doc", 0.9)]}, self.weights, "doc", 10)
        assert results[0].matches is None

    def test_ties_broken_by_id_and_truncated(self):
        hits = [make_hit(Engine.KEYWORD, name, 0.5) for name in ("gamma", "alpha", "beta")]
        results = self.blender.blend({Engine.KEYWORD: hits}, self.weights, "q", 2)
        assert [r.work_item for r in results] == ["alpha", "beta"]

    def test_result_fields_and_snippet(self):
        results = self.blender.blend({
            Engine.KEYWORD: [make_hit(Engine.KEYWORD, "login", 0.8, title="Login",
                                      content="Refactor the login module")],
        }, self.weights, "login", 10)
        result = results[0]
        assert result.id == "feature-login-doc"
        assert result.category == Category.FEATURE
        assert result.file_name == "doc.md"
        assert result.snippet == "Refactor the login module"

    def test_empty_input(self):
        assert self.blender.blend({}, self.weights, "q", 10) == []


class TestScoreStats:

    def test_empty(self):
        assert ResultBlender.calculate_score_stats([]) == {}

    def test_distribution(self):
        blender = ResultBlender()
        results = blender.blend({
            Engine.KEYWORD: [make_hit(Engine.KEYWORD, "a", 1.0), make_hit(Engine.KEYWORD, "b", 0.5)],
        }, {Engine.KEYWORD: 1.0}, "q", 10)
        stats = ResultBlender.calculate_score_stats(results)
        assert stats["score_min"] == pytest.approx(0.5)
        assert stats["score_max"] == pytest.approx(1.0)
        assert stats["score_mean"] == pytest.approx(0.75)
        assert stats["score_std"] == pytest.approx(0.25)
