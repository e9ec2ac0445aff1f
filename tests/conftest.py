"""Shared fixtures: temporary markdown corpora and stub vector clients."""

import time
from pathlib import Path
from typing import List, Optional

import pytest

from counsel_search.config import SearchEngineConfig
from counsel_search.schema import Category, VectorMatch

SAMPLE_DOCUMENTS = [
    ("features", "auth-refactor", "auth-refactor.md",
     "# Auth Refactor\n\nRefactor the login module to use token based authentication.\n"),
    ("features", "payment-gateway", "plan.md",
     "# Payment Gateway\n\nIntegrate the payment provider API. Handle refunds and webhooks.\n"),
    ("scripts", "db-backup", "backup.md",
     "# Database Backup\n\nNightly database backup script with rotation of old dumps.\n"),
    ("vibes", "ui-polish", "notes.md",
     "# UI Polish\n\nImprove spacing and colors on the dashboard.\n"),
    ("prompts", "code-review", "prompt.md",
     "# Code Review Prompt\n\nReview pull requests for security issues.\n"),
]


def write_doc(root: Path, directory: str, work_item: str, file_name: str, text: str) -> Path:
    path = root / directory / work_item / file_name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


@pytest.fixture
def corpus_root(tmp_path):
    """Corpus with one or two work items per category."""
    root = tmp_path / "counsel"
    for directory, work_item, file_name, text in SAMPLE_DOCUMENTS:
        write_doc(root, directory, work_item, file_name, text)
    return root


@pytest.fixture
def make_config():
    """Build a config for a corpus root with a short vector timeout."""
    def _make(root: Path, timeout: float = 0.5) -> SearchEngineConfig:
        return SearchEngineConfig(
            corpus={"root": str(root)},
            vector={"timeout_seconds": timeout},
        )
    return _make


class StubVectorClient:
    """Returns a fixed list of matches and records calls."""

    def __init__(self, matches: Optional[List[VectorMatch]] = None, healthy: bool = True):
        self.matches = matches or []
        self.healthy = healthy
        self.calls = []

    def search(self, query, category=None, limit=20, threshold=None):
        self.calls.append({"query": query, "category": category, "limit": limit, "threshold": threshold})
        return list(self.matches)

    def health_check(self):
        return self.healthy


class FailingVectorClient:
    """Simulates an unreachable backend."""

    def __init__(self, message: str = "connection refused"):
        self.message = message

    def search(self, query, category=None, limit=20, threshold=None):
        raise ConnectionError(self.message)

    def health_check(self):
        return False


class SlowVectorClient:
    """Answers only after a delay, to exercise the timeout."""

    def __init__(self, delay: float):
        self.delay = delay

    def search(self, query, category=None, limit=20, threshold=None):
        time.sleep(self.delay)
        return []

    def health_check(self):
        time.sleep(self.delay)
        return True


def vector_match(category: Category, work_item: str, file_name: str, similarity: float,
                 document: str = "") -> VectorMatch:
    stem = file_name[:-3] if file_name.endswith(".md") else file_name
    return VectorMatch(
        id=f"{category.value}-{work_item}-{stem}",
        similarity=similarity,
        document=document,
        metadata={"category": category.value, "work_item": work_item, "file_name": file_name},
    )
