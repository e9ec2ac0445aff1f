#!/usr/bin/env python3
"""
Tests for YAML configuration loading.
"""

from pathlib import Path

import pytest

from counsel_search.config import (
    FuzzyConfig,
    OllamaProvider,
    OpenAIProvider,
    SearchEngineConfig,
    SentenceTransformerProvider,
    load_config,
)


class TestLoadConfig:

    def test_missing_file_gives_defaults(self, tmp_path):
        config = load_config(tmp_path / "absent.yml")
        assert config == SearchEngineConfig()
        assert config.fusion.candidate_multiplier == 2
        assert config.vector.candidates == 20
        assert config.fuzzy.field_threshold == 0.75
        assert config.fuzzy.max_distance == 0.8

    def test_partial_file_overrides(self, tmp_path):
        path = tmp_path / "search.yml"
        path.write_text(
            "corpus:\n"
            "  root: ~/work/counsel\n"
            "vector:\n"
            "  port: 9300\n"
            "  timeout_seconds: 2.5\n",
            encoding="utf-8",
        )
        config = load_config(path)
        assert config.corpus.root == Path.home() / "work" / "counsel"
        assert config.vector.port == 9300
        assert config.vector.timeout_seconds == 2.5
        assert config.vector.host == "localhost"

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "search.yml"
        path.write_text("", encoding="utf-8")
        assert load_config(path) == SearchEngineConfig()

    def test_non_mapping_rejected(self, tmp_path):
        path = tmp_path / "search.yml"
        path.write_text("- just\n- a list\n", encoding="utf-8")
        with pytest.raises(ValueError, match="mapping"):
            load_config(path)

    def test_invalid_values_rejected(self, tmp_path):
        path = tmp_path / "search.yml"
        path.write_text("vector:\n  port: 0\n", encoding="utf-8")
        with pytest.raises(ValueError, match="Invalid configuration"):
            load_config(path)


class TestEmbeddingProviders:
    """Discriminated provider union."""

    def test_default_provider(self):
        assert isinstance(SearchEngineConfig().vector.embeddings, SentenceTransformerProvider)

    @pytest.mark.parametrize("raw, expected", [
        ({"kind": "ollama", "model": "mxbai-embed-large"}, OllamaProvider),
        ({"kind": "openai"}, OpenAIProvider),
        ({"kind": "sentence_transformers"}, SentenceTransformerProvider),
    ])
    def test_provider_selected_by_kind(self, raw, expected):
        config = SearchEngineConfig(vector={"embeddings": raw})
        assert isinstance(config.vector.embeddings, expected)

    def test_unknown_provider_kind(self):
        with pytest.raises(ValueError):
            SearchEngineConfig(vector={"embeddings": {"kind": "cohere"}})


class TestFuzzyConfig:

    def test_weights_must_sum_to_one(self):
        with pytest.raises(ValueError):
            FuzzyConfig(field_weights={"title": 0.5, "content": 0.3})

    def test_unknown_field_rejected(self):
        with pytest.raises(ValueError):
            FuzzyConfig(field_weights={"title": 0.5, "body": 0.5})
