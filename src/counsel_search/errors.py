"""
Exception types for the hybrid search engine.

Only InvalidQueryParameters ever reaches a caller of
HybridSearchOrchestrator.search(); the others are raised at the point of
failure and converted into skipped documents or engine status entries.
"""


class CounselSearchError(Exception):
    """Base class for search engine errors."""


class InvalidQueryParameters(CounselSearchError, ValueError):
    """Search request was malformed (blank query, bad limit or threshold)."""


class EngineQueryError(CounselSearchError):
    """A single engine failed to answer a query."""

    def __init__(self, engine: str, message: str):
        super().__init__(message)
        self.engine = engine
        self.message = message


class FileReadError(CounselSearchError):
    """A corpus file could not be read or decoded."""

    def __init__(self, path, reason: str):
        super().__init__(f"Cannot read {path}: {reason}")
        self.path = path
        self.reason = reason
