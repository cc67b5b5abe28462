"""Configuration entry point.

Reads settings from explicit overrides, environment variables, ``.env``
files and YAML config files.

Precedence (highest to lowest):
    Explicit overrides > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    TREEVAULT_HASH_ALGORITHM: Content hash algorithm (optional, default: sha256)
    TREEVAULT_MAX_WORKERS: Max concurrent per-file operations (optional, default: 4)
    TREEVAULT_TIMEOUT: Seconds before a sync run is cancelled (optional)
    TREEVAULT_MAX_VERSIONS: Versions kept per file in new repositories (optional, default: 10)
    LOG_LEVEL: Logging level (optional)
"""

from __future__ import annotations

import logging
import os
from typing import Any

from dotenv import find_dotenv, load_dotenv

from .config_loader import load_hierarchical_config
from .config_schema import UnifiedConfig, build_config

logger = logging.getLogger(__name__)

# env var -> (section, key, parser, accepted range)
_ENV_OVERRIDES: dict[str, tuple[str, str, type, tuple[float, float] | None]] = {
    "TREEVAULT_HASH_ALGORITHM": ("engine", "hash_algorithm", str, None),
    "TREEVAULT_MAX_WORKERS": ("engine", "max_workers", int, (1, 64)),
    "TREEVAULT_TIMEOUT": ("engine", "timeout", float, (0.001, float("inf"))),
    "TREEVAULT_MAX_VERSIONS": ("versioning", "max_versions", int, (1, float("inf"))),
}


def _parse_env(name: str, raw: str, parser: type, bounds: tuple[float, float] | None) -> Any:
    try:
        value = parser(raw.strip())
    except ValueError:
        raise ValueError(
            f"Invalid {name} '{raw}': must be a {parser.__name__}"
        ) from None
    if bounds is not None and not (bounds[0] <= value <= bounds[1]):
        low, high = bounds
        limit = f"at least {low:g}" if high == float("inf") else f"between {low:g} and {high:g}"
        raise ValueError(f"Invalid {name} '{raw}': must be {limit}")
    return value


def apply_env_overrides(raw: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of *raw* with ``TREEVAULT_*`` environment values applied.

    Raises:
        ValueError: If an environment value cannot be parsed or is out of range.
    """
    merged = {
        key: dict(value) if isinstance(value, dict) else value
        for key, value in raw.items()
    }
    for name, (section, key, parser, bounds) in _ENV_OVERRIDES.items():
        env_value = os.getenv(name)
        if env_value is None or env_value == "":
            continue
        merged.setdefault(section, {})[key] = _parse_env(
            name, env_value, parser, bounds
        )

    level = os.getenv("LOG_LEVEL")
    if level:
        merged.setdefault("logging", {})["level"] = level.upper()
    return merged


def load_config(
    overrides: dict[str, dict[str, Any]] | None = None,
    *,
    use_dotenv: bool = True,
    use_files: bool = True,
) -> UnifiedConfig:
    """Load configuration with unified precedence.

    Args:
        overrides: Section-keyed values that win over every other source,
            e.g. ``{"engine": {"max_workers": 8}}``.
        use_dotenv: Load the nearest ``.env`` file at or above the working
            directory first.
        use_files: Read YAML config files (disable for hermetic callers).

    Returns:
        Validated ``UnifiedConfig`` instance.

    Raises:
        ValueError: If any source provides an invalid value.
    """
    if use_dotenv:
        load_dotenv(find_dotenv(usecwd=True))

    raw = load_hierarchical_config() if use_files else {}
    raw = apply_env_overrides(raw)
    for section, values in (overrides or {}).items():
        merged = dict(raw.get(section) or {})
        merged.update({k: v for k, v in values.items() if v is not None})
        raw[section] = merged

    config = build_config(raw)
    logger.debug(
        "Loaded config: hash=%s workers=%d max_versions=%d",
        config.engine.hash_algorithm,
        config.engine.max_workers,
        config.versioning.max_versions,
    )
    return config
