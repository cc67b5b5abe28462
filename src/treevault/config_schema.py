"""Unified configuration schema for treevault.

Defines Pydantic models for the unified config structure with dedicated
sections for the engine, sync defaults, versioning defaults and logging.
Also converts the sections into the option objects the engines consume.

Usage:
    from treevault.config_schema import UnifiedConfig, build_config

    raw = load_hierarchical_config()
    unified = build_config(raw)
    options = unified.sync_options(dry_run=True)
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, Field, field_validator

from treevault.core.identity import HASH_ALGORITHMS
from treevault.sync.models import DEFAULT_SYNC_EXCLUDES, ConflictPolicy, SyncOptions
from treevault.versioning.models import (
    DEFAULT_MAX_VERSIONS,
    DEFAULT_REPOSITORY_DIR,
    DEFAULT_VERSIONING_EXCLUDES,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class EngineConfig(BaseModel):
    """Resource limits shared by every operation."""

    hash_algorithm: str = Field(
        default="sha256", description="Content hash algorithm"
    )
    max_workers: int = Field(
        default=4,
        ge=1,
        le=64,
        description="Maximum concurrent per-file operations (1-64)",
    )
    timeout: float | None = Field(
        default=None,
        gt=0,
        description="Seconds before a sync run is cancelled (unset: no limit)",
    )

    model_config = {"frozen": True}

    @field_validator("hash_algorithm")
    @classmethod
    def _known_algorithm(cls, value: str) -> str:
        value = value.lower()
        if value not in HASH_ALGORITHMS:
            raise ValueError(
                f"Unknown hash algorithm '{value}'. "
                f"Valid algorithms: {', '.join(HASH_ALGORITHMS)}"
            )
        return value


class SyncDefaultsConfig(BaseModel):
    """Defaults applied to sync calls that pass no options."""

    exclude_patterns: list[str] = Field(
        default_factory=lambda: list(DEFAULT_SYNC_EXCLUDES)
    )
    conflict_resolution: ConflictPolicy = ConflictPolicy.NEWER
    preserve_timestamps: bool = True
    include_hidden: bool = False

    model_config = {"frozen": True}


class VersioningConfig(BaseModel):
    """Defaults for newly initialized repositories."""

    max_versions: int = Field(default=DEFAULT_MAX_VERSIONS, ge=1)
    store_metadata: bool = True
    duplicate_snapshot_payload: bool = True
    exclude_patterns: list[str] = Field(
        default_factory=lambda: list(DEFAULT_VERSIONING_EXCLUDES)
    )
    repository_dir_name: str = DEFAULT_REPOSITORY_DIR

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Aggregates all config sections. Every section has sensible defaults,
    so ``UnifiedConfig()`` (zero-config) is always valid.
    """

    engine: EngineConfig = Field(default_factory=EngineConfig)
    sync: SyncDefaultsConfig = Field(default_factory=SyncDefaultsConfig)
    versioning: VersioningConfig = Field(default_factory=VersioningConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}

    def sync_options(self, **overrides: Any) -> SyncOptions:
        """Build ``SyncOptions`` from the config, then apply *overrides*."""
        values: dict[str, Any] = {
            "exclude_patterns": list(self.sync.exclude_patterns),
            "conflict_resolution": self.sync.conflict_resolution,
            "preserve_timestamps": self.sync.preserve_timestamps,
            "include_hidden": self.sync.include_hidden,
            "max_workers": self.engine.max_workers,
            "timeout": self.engine.timeout,
            "hash_algorithm": self.engine.hash_algorithm,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return SyncOptions(**values)


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Missing sections get their defaults.
    Unknown top-level sections are ignored with a warning.

    Args:
        raw_data: Merged configuration dictionary.

    Returns:
        Validated ``UnifiedConfig`` instance.
    """
    if not raw_data:
        return UnifiedConfig()

    known = set(UnifiedConfig.model_fields)
    for key in raw_data:
        if key not in known:
            logger.warning("Ignoring unknown config section '%s'", key)

    return UnifiedConfig(**{k: v for k, v in raw_data.items() if k in known})
