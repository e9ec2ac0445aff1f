#!/usr/bin/env python3
"""
Schema definitions for the counsel hybrid search engine.
Documents, per-engine hits, engine status and fused results.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, NamedTuple, Optional

from pydantic import BaseModel, Field, field_validator


class Category(str, Enum):
    """Work item categories; each lives in its plural directory."""
    FEATURE = "feature"
    SCRIPT = "script"
    VIBE = "vibe"
    PROMPT = "prompt"

    @property
    def directory_name(self) -> str:
        return f"{self.value}s"


class Engine(str, Enum):
    """The three search backends, in fusion order."""
    VECTOR = "vector"
    KEYWORD = "keyword"
    FUZZY = "fuzzy"


class DocumentKey(NamedTuple):
    """Composite document identity."""
    category: Category
    work_item: str
    file_name: str

    @property
    def doc_id(self) -> str:
        stem = self.file_name[:-3] if self.file_name.endswith(".md") else self.file_name
        return f"{self.category.value}-{self.work_item}-{stem}"


@dataclass(frozen=True)
class Document:
    """A parsed markdown file from a work item directory."""
    title: str
    content: str
    category: Category
    work_item: str
    file_name: str
    file_path: str
    keywords: List[str] = field(default_factory=list)
    last_modified: Optional[datetime] = None

    @property
    def key(self) -> DocumentKey:
        return DocumentKey(self.category, self.work_item, self.file_name)

    @property
    def doc_id(self) -> str:
        return self.key.doc_id


@dataclass
class EngineHit:
    """Raw result from a single engine, score in 0..1."""
    engine: Engine
    key: DocumentKey
    score: float
    matched_document: Document
    match_provenance: List[str] = field(default_factory=list)


class EngineStatus(BaseModel):
    """Availability of one engine for one call."""
    available: bool = False
    error: Optional[str] = None


class EngineStatusSet(BaseModel):
    """Status of all three engines, produced fresh per call."""
    vector: EngineStatus = Field(default_factory=EngineStatus)
    keyword: EngineStatus = Field(default_factory=EngineStatus)
    fuzzy: EngineStatus = Field(default_factory=EngineStatus)

    def get(self, engine: Engine) -> EngineStatus:
        return getattr(self, engine.value)

    def available_engines(self) -> List[Engine]:
        return [engine for engine in Engine if self.get(engine).available]

    def summary(self) -> str:
        """One line report, e.g. 'engines available: keyword; vector unavailable (timeout)'."""
        available = [engine.value for engine in self.available_engines()]
        parts = [f"engines available: {', '.join(available) if available else 'none'}"]
        for engine in Engine:
            status = self.get(engine)
            if not status.available:
                reason = status.error or "no results"
                parts.append(f"{engine.value} unavailable ({reason})")
        return "; ".join(parts)


class SearchOptions(BaseModel):
    """Validated search request."""
    query: str = Field(min_length=1, max_length=1000, description="Free-text query")
    category: Optional[Category] = None
    limit: int = Field(ge=1, le=200, default=10, description="Number of results to return")
    threshold: Optional[float] = Field(ge=0.0, le=1.0, default=None,
                                       description="Minimum vector similarity")

    @field_validator('query')
    @classmethod
    def validate_query(cls, v):
        if not v.strip():
            raise ValueError("Query must contain at least one non-whitespace character")
        return v


class VectorMatch(BaseModel):
    """Single match returned by a vector search client."""
    id: str
    similarity: float = Field(ge=0.0, le=1.0)
    document: str = ""
    metadata: Dict[str, Any] = Field(default_factory=dict)


class HybridResult(BaseModel):
    """Fused search result."""
    id: str
    title: str
    content: str
    category: Category
    work_item: str
    file_name: str
    file_path: str
    score: float
    engines: List[Engine] = Field(min_length=1)
    snippet: str = ""
    matches: Optional[List[str]] = None


class HybridSearchResponse(BaseModel):
    """Complete hybrid search response with per-engine status."""
    query: str
    results: List[HybridResult]
    status: EngineStatusSet
    weights: Dict[Engine, float] = Field(default_factory=dict)
    execution_time_ms: int = 0

    # Combined score distribution
    score_stats: Dict[str, float] = Field(default_factory=dict)
