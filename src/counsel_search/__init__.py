#!/usr/bin/env python3
"""
Counsel hybrid search.
Fuses semantic (OpenSearch kNN), keyword and fuzzy search over a local corpus
of markdown work items.
"""

from .schema import (
    Category, Engine, DocumentKey, Document, EngineHit,
    EngineStatus, EngineStatusSet, SearchOptions, VectorMatch,
    HybridResult, HybridSearchResponse
)
from .config import SearchEngineConfig, load_config
from .errors import CounselSearchError, InvalidQueryParameters, EngineQueryError, FileReadError

from .keyword_index import KeywordIndex
from .fuzzy_index import FuzzyIndex
from .blend import ResultBlender, availability_weights

__all__ = [
    # Schema classes
    'Category', 'Engine', 'DocumentKey', 'Document', 'EngineHit',
    'EngineStatus', 'EngineStatusSet', 'SearchOptions', 'VectorMatch',
    'HybridResult', 'HybridSearchResponse',

    # Configuration and errors
    'SearchEngineConfig', 'load_config',
    'CounselSearchError', 'InvalidQueryParameters', 'EngineQueryError', 'FileReadError',

    # Core components
    'KeywordIndex', 'FuzzyIndex',
    'ResultBlender', 'availability_weights',
]
