#!/usr/bin/env python3
"""
Tests for the counsel-search command line interface.
"""

import pytest
from click.testing import CliRunner

from counsel_search.cli import cli


@pytest.fixture
def config_file(tmp_path, corpus_root):
    path = tmp_path / "search.yml"
    path.write_text(f"corpus:\n  root: {corpus_root}\n", encoding="utf-8")
    return path


class TestCLI:
    """Commands run against a temporary corpus with the vector engine disabled."""

    def test_search(self, config_file):
        result = CliRunner().invoke(cli, ["--config", str(config_file), "--no-vector", "search", "database"])
        assert result.exit_code == 0, result.output
        assert "Database Backup" in result.output
        assert "disabled" in result.output

    def test_search_invalid_limit(self, config_file):
        result = CliRunner().invoke(
            cli, ["--config", str(config_file), "--no-vector", "search", "database", "--limit", "0"])
        assert result.exit_code == 2
        assert "Invalid query" in result.output

    def test_suggest(self, config_file):
        result = CliRunner().invoke(cli, ["--config", str(config_file), "--no-vector", "suggest", "pay"])
        assert result.exit_code == 0
        assert "Payment" in result.output

    def test_status(self, config_file):
        result = CliRunner().invoke(cli, ["--config", str(config_file), "--no-vector", "status"])
        assert result.exit_code == 0
        assert "Documents indexed: 5" in result.output

    def test_index_vectors_requires_vector_engine(self, config_file):
        result = CliRunner().invoke(cli, ["--config", str(config_file), "--no-vector", "index-vectors"])
        assert result.exit_code == 1
        assert "disabled" in result.output

    def test_bad_config(self, tmp_path):
        path = tmp_path / "search.yml"
        path.write_text("vector:\n  port: -1\n", encoding="utf-8")
        result = CliRunner().invoke(cli, ["--config", str(path), "status"])
        assert result.exit_code == 2
