"""aifamily configuration management.

Loads configuration from .env files and YAML config files, merges them,
and provides validated settings via pydantic models.
"""

from __future__ import annotations

import logging
import os
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class StorageBackend(str, Enum):
    """Supported durable store backends."""
    MEMORY = "memory"
    JSON = "json"
    SQLITE = "sqlite"


class EmbeddingBackend(str, Enum):
    """Supported embedding strategies."""
    HASH = "hash"
    RANDOM = "random"
    OPENAI = "openai"


class StorageConfig(BaseModel):
    """Configuration for the durable key-value store."""

    backend: StorageBackend = StorageBackend.SQLITE
    path: str = "memory.db"


class RelevanceConfig(BaseModel):
    """Thresholds and weights used when ranking memories."""

    similarity_threshold: float = 0.2
    keyword_threshold: float = 0.2
    partial_match_weight: float = 0.5
    min_token_length: int = 3
    default_limit: int = 5

    @field_validator("similarity_threshold", "keyword_threshold", "partial_match_weight")
    @classmethod
    def validate_unit_interval(cls, v: float) -> float:
        """Ensure thresholds and weights are in valid range."""
        if not 0.0 <= v <= 1.0:
            raise ValueError("thresholds and weights must be between 0.0 and 1.0")
        return v

    @field_validator("min_token_length", "default_limit")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Ensure counts are positive."""
        if v <= 0:
            raise ValueError("min_token_length and default_limit must be positive")
        return v


class EmbeddingConfig(BaseModel):
    """Configuration for the embedding provider."""

    backend: EmbeddingBackend = EmbeddingBackend.HASH
    dimensions: int = 256
    model: str = "text-embedding-3-small"

    @field_validator("dimensions")
    @classmethod
    def validate_dimensions(cls, v: int) -> int:
        """Ensure dimensions is positive."""
        if v <= 0:
            raise ValueError("dimensions must be positive")
        return v


class GenerationConfig(BaseModel):
    """Configuration for the generation provider adapter."""

    openai_models: list[str] = Field(
        default_factory=lambda: ["gpt-4o-mini", "gpt-4o", "gpt-4", "gpt-3.5-turbo-0125"]
    )
    groq_models: list[str] = Field(
        default_factory=lambda: ["llama3-8b-8192", "llama3-70b-8192", "mixtral-8x7b-32768"]
    )
    test_prompt: str = "Hello, this is a test message to verify the API connection."
    temperature: float | None = None
    timeout: float = 60.0

    @field_validator("openai_models", "groq_models")
    @classmethod
    def validate_models(cls, v: list[str]) -> list[str]:
        """Ensure every provider has at least one candidate model."""
        if not v:
            raise ValueError("candidate model list must not be empty")
        return v

    @field_validator("temperature")
    @classmethod
    def validate_temperature(cls, v: float | None) -> float | None:
        """Ensure temperature is in valid range."""
        if v is not None and not 0.0 <= v <= 2.0:
            raise ValueError("temperature must be between 0.0 and 2.0")
        return v

    @field_validator("timeout")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        """Ensure timeout is positive."""
        if v <= 0:
            raise ValueError("timeout must be positive")
        return v


class AIFamilyConfig(BaseSettings):
    """
    aifamily's main configuration.

    Loads from:
    1. .env file (via pydantic-settings)
    2. YAML config files (via load() classmethod)
    3. Environment variables with AIFAMILY_ prefix

    Environment variables override YAML values. When no API key is
    configured, OPENAI_API_KEY is used.
    """

    model_config = SettingsConfigDict(
        env_prefix="AIFAMILY_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Core settings (from .env)
    data_dir: str = "~/.aifamily"
    log_level: str = "INFO"
    name: str = "AI Family Toolkit"
    version: str = "1.0.0"
    api_key: str = ""
    default_user_id: str = "default_user"

    storage: StorageConfig = Field(default_factory=StorageConfig)
    relevance: RelevanceConfig = Field(default_factory=RelevanceConfig)
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    generation: GenerationConfig = Field(default_factory=GenerationConfig)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log_level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return v.upper()

    @model_validator(mode="after")
    def expand_data_dir(self) -> "AIFamilyConfig":
        """Expand user home directory in data_dir."""
        self.data_dir = str(Path(self.data_dir).expanduser())
        return self

    @model_validator(mode="after")
    def fallback_api_key(self) -> "AIFamilyConfig":
        """Fall back to OPENAI_API_KEY when no key is configured."""
        if not self.api_key:
            self.api_key = os.environ.get("OPENAI_API_KEY", "")
        return self

    @property
    def storage_path(self) -> Path:
        """Resolve the store path relative to data_dir."""
        path = Path(self.storage.path).expanduser()
        if not path.is_absolute():
            path = Path(self.data_dir) / path
        return path

    @classmethod
    def load(
        cls,
        yaml_path: Path | str | None = None,
        env_file: str | None = ".env",
    ) -> "AIFamilyConfig":
        """
        Load configuration from YAML and environment.

        Args:
            yaml_path: Path to YAML config file. If None, searches default locations.
            env_file: Path to .env file.

        Returns:
            Validated AIFamilyConfig instance.
        """
        yaml_file = cls._find_yaml_config(yaml_path)

        yaml_data: dict[str, Any] = {}
        if yaml_file and yaml_file.exists():
            yaml_data = cls._load_yaml_file(yaml_file)
            logger.debug(f"Loaded config from {yaml_file}")

        # Top-level 'aifamily' section holds core settings; other sections are
        # the nested models and are merged alongside it.
        if "aifamily" in yaml_data:
            merged_data = dict(yaml_data["aifamily"] or {})
            merged_data.update({k: v for k, v in yaml_data.items() if k != "aifamily"})
            yaml_data = merged_data

        if env_file and Path(env_file).exists():
            config = cls(_env_file=env_file, **yaml_data)
        else:
            config = cls(**yaml_data)

        Path(config.data_dir).mkdir(parents=True, exist_ok=True)

        return config

    @classmethod
    def _find_yaml_config(cls, yaml_path: Path | str | None) -> Path | None:
        """Find the YAML config file to load."""
        if yaml_path:
            return Path(yaml_path)

        default_locations = [
            Path("config/aifamily.yaml"),
            Path("config/aifamily.yml"),
            Path.home() / ".aifamily" / "config.yaml",
        ]

        for location in default_locations:
            if location.exists():
                return location

        return None

    @classmethod
    def _load_yaml_file(cls, path: Path) -> dict[str, Any]:
        """Load YAML file and return parsed data."""
        try:
            with path.open("r") as f:
                return yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            logger.warning(f"Failed to parse YAML file {path}: {e}")
            return {}

    def get_log_config(self) -> dict[str, Any]:
        """Get logging configuration dict for use with logging.config."""
        return {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "standard": {
                    "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                    "datefmt": "%Y-%m-%d %H:%M:%S",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "level": self.log_level,
                    "formatter": "standard",
                },
            },
            "root": {
                "level": self.log_level,
                "handlers": ["console"],
            },
        }
