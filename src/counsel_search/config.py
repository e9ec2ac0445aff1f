"""
Configuration for the counsel hybrid search engine.

Settings live in a YAML file (default ~/.counsel/search.yml). Every section is
optional; missing keys fall back to the defaults declared below.

Example:
    corpus:
      root: ~/.counsel
    vector:
      host: localhost
      port: 9200
      timeout_seconds: 5
      embeddings:
        kind: ollama
        model: nomic-embed-text
"""

import logging
from pathlib import Path
from typing import Annotated, Dict, Literal, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".counsel" / "search.yml"


class CorpusConfig(BaseModel):
    """Location of the markdown corpus."""
    root: Path = Field(default_factory=lambda: Path.home() / ".counsel")

    @field_validator('root', mode='before')
    @classmethod
    def expand_root(cls, v):
        return Path(v).expanduser()


class FusionConfig(BaseModel):
    """Rank fusion parameters."""
    # Engines are asked for limit * candidate_multiplier hits
    candidate_multiplier: int = Field(ge=1, le=10, default=2)


class FuzzyConfig(BaseModel):
    """Approximate matching parameters."""
    field_weights: Dict[str, float] = Field(default_factory=lambda: {
        "title": 0.4,
        "content": 0.3,
        "keywords": 0.2,
        "file_name": 0.1,
    })
    field_threshold: float = Field(ge=0.0, le=1.0, default=0.75)
    max_distance: float = Field(ge=0.0, le=1.0, default=0.8)
    snippet_length: int = Field(ge=20, le=2000, default=200)

    @field_validator('field_weights')
    @classmethod
    def validate_fields(cls, v):
        allowed = {"title", "content", "keywords", "file_name"}
        unknown = set(v) - allowed
        if unknown:
            raise ValueError(f"Unknown fuzzy fields: {sorted(unknown)}. Must be among {sorted(allowed)}")
        total = sum(v.values())
        if abs(total - 1.0) > 0.001:
            raise ValueError(f"Fuzzy field weights must sum to 1.0, got {total}")
        return v


class SentenceTransformerProvider(BaseModel):
    """Local sentence-transformers model."""
    kind: Literal["sentence_transformers"] = "sentence_transformers"
    model_name: str = "sentence-transformers/all-MiniLM-L6-v2"
    cache_dir: Optional[Path] = None


class OllamaProvider(BaseModel):
    """Embeddings served by a local Ollama daemon."""
    kind: Literal["ollama"] = "ollama"
    host: str = "http://localhost:11434"
    model: str = "nomic-embed-text"


class OpenAIProvider(BaseModel):
    """OpenAI embeddings API; the key is read from the named environment variable."""
    kind: Literal["openai"] = "openai"
    model: str = "text-embedding-3-small"
    api_key_env: str = "OPENAI_API_KEY"
    base_url: str = "https://api.openai.com/v1"


EmbeddingProvider = Annotated[
    Union[SentenceTransformerProvider, OllamaProvider, OpenAIProvider],
    Field(discriminator="kind"),
]


class VectorConfig(BaseModel):
    """OpenSearch kNN backend used by the semantic engine."""
    enabled: bool = True
    host: str = "localhost"
    port: int = Field(ge=1, le=65535, default=9200)
    use_ssl: bool = False
    verify_certs: bool = False
    username: Optional[str] = None
    password: Optional[str] = None
    index_name: str = "counsel-documents"
    embedding_field: str = "embedding"
    embedding_dimension: int = Field(ge=1, default=384)
    timeout_seconds: float = Field(gt=0.0, default=5.0)
    candidates: int = Field(ge=1, le=500, default=20)
    default_threshold: float = Field(ge=0.0, le=1.0, default=0.5)
    embeddings: EmbeddingProvider = Field(default_factory=SentenceTransformerProvider)


class SearchEngineConfig(BaseModel):
    """Top level configuration passed to HybridSearchOrchestrator."""
    corpus: CorpusConfig = Field(default_factory=CorpusConfig)
    fusion: FusionConfig = Field(default_factory=FusionConfig)
    fuzzy: FuzzyConfig = Field(default_factory=FuzzyConfig)
    vector: VectorConfig = Field(default_factory=VectorConfig)


def load_config(path: Optional[Union[str, Path]] = None) -> SearchEngineConfig:
    """
    Load configuration from a YAML file.

    Args:
        path: Config file path (defaults to ~/.counsel/search.yml)

    Returns:
        Parsed configuration; defaults when the file does not exist
    """
    config_path = Path(path).expanduser() if path else DEFAULT_CONFIG_PATH

    if not config_path.exists():
        logger.debug(f"No config file at {config_path}, using defaults")
        return SearchEngineConfig()

    with open(config_path, 'r', encoding='utf-8') as file:
        raw = yaml.safe_load(file) or {}

    if not isinstance(raw, dict):
        raise ValueError(f"Config file {config_path} must contain a mapping, got {type(raw).__name__}")

    try:
        config = SearchEngineConfig(**raw)
    except ValidationError as e:
        raise ValueError(f"Invalid configuration in {config_path}: {e}") from e

    logger.info(f"Loaded search configuration from {config_path}")
    return config
