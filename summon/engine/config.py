"""Configuration management for the Summon matching core."""

from pathlib import Path
from typing import List, Optional

import yaml
from loguru import logger
from pydantic import BaseModel, Field, field_validator


class SearchConfig(BaseModel):
    default_limit: int = 10
    cache_size: int = 256
    max_query_length: int = 256

    @field_validator('default_limit', 'cache_size')
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("must not be negative")
        return v

    @field_validator('max_query_length')
    @classmethod
    def validate_query_length(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_query_length must be at least 1")
        return v


class SnippetsConfig(BaseModel):
    max_buffer_length: int = 50
    rules_path: Optional[Path] = None

    @field_validator('max_buffer_length')
    @classmethod
    def validate_buffer(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_buffer_length must be at least 1")
        return v


class FilesConfig(BaseModel):
    directories: List[Path] = Field(default_factory=list)
    extensions: Optional[List[str]] = None
    max_depth: int = 3
    max_files_per_dir: int = 100

    @field_validator('directories')
    @classmethod
    def expand_directories(cls, v: List[Path]) -> List[Path]:
        return [Path(d).expanduser() for d in v]

    @field_validator('extensions')
    @classmethod
    def normalize_extensions(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        if v is None:
            return v
        return [ext.lower().lstrip(".") for ext in v if ext.strip(". ")]

    @field_validator('max_depth', 'max_files_per_dir')
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v


class LoggingConfig(BaseModel):
    level: str = "INFO"
    file: Optional[Path] = None
    rotation: str = "1 day"
    retention: str = "7 days"

    @field_validator('level')
    @classmethod
    def validate_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {v}")
        return level


class Config(BaseModel):
    """Main configuration for the matching engines and the CLI."""

    search: SearchConfig = Field(default_factory=SearchConfig)
    snippets: SnippetsConfig = Field(default_factory=SnippetsConfig)
    files: FilesConfig = Field(default_factory=FilesConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "Config":
        """Load configuration from YAML file."""
        if config_path is None:
            # Try default locations
            candidates = [
                Path("summon.yaml"),
                Path.home() / ".config" / "summon" / "config.yaml",
                Path("/etc/summon/config.yaml"),
            ]
            for candidate in candidates:
                if candidate.exists():
                    config_path = candidate
                    break
            else:
                raise FileNotFoundError(
                    f"No config file found. Searched: {[str(c) for c in candidates]}"
                )

        logger.info(f"Loading config from: {config_path}")
        with open(config_path, 'r') as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError(
                f"{config_path}: expected a mapping at the top level, got {type(data).__name__}"
            )
        return cls(**data)

    @classmethod
    def load_or_default(cls, config_path: Optional[Path] = None) -> "Config":
        """Like load(), but fall back to defaults when no file exists."""
        try:
            return cls.load(config_path)
        except FileNotFoundError as e:
            if config_path is not None:
                raise
            logger.debug(f"Using default config: {e}")
            return cls()

    def save(self, config_path: Path) -> None:
        """Save configuration to YAML file."""
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, 'w') as f:
            yaml.safe_dump(self.model_dump(mode="json"), f, default_flow_style=False)
