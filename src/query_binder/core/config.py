from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

_TRUTHY = {"1", "true", "yes", "on"}


def _env_flag(name: str, default: bool = False) -> bool:
    v = os.getenv(name)
    if v is None or v.strip() == "":
        return default
    return v.strip().lower() in _TRUTHY


@dataclass(frozen=True, slots=True)
class BinderSettings:
    """Runtime knobs for the binder. Everything is read from the environment."""
    lenient_unknown_types: bool = False     # pass raw strings through for types with no converter
    sequence_delimiter: str = ","           # separator used to split sequence-shaped fields
    log_level: str = "WARNING"


def load_settings() -> BinderSettings:
    """
    Build settings from `QUERY_BINDER_*` environment variables.

    - `QUERY_BINDER_LENIENT_UNKNOWN_TYPES`: `1`/`true`/`yes`/`on` to enable
    - `QUERY_BINDER_SEQUENCE_DELIMITER`: single character, defaults to `,`
    - `QUERY_BINDER_LOG_LEVEL`: any `logging` level name
    """
    delimiter = os.getenv("QUERY_BINDER_SEQUENCE_DELIMITER") or ","
    if len(delimiter) != 1:
        raise ValueError(f"QUERY_BINDER_SEQUENCE_DELIMITER must be a single character, got {delimiter!r}")

    return BinderSettings(
        lenient_unknown_types=_env_flag("QUERY_BINDER_LENIENT_UNKNOWN_TYPES"),
        sequence_delimiter=delimiter,
        log_level=(os.getenv("QUERY_BINDER_LOG_LEVEL") or "WARNING").upper(),
    )


@lru_cache(maxsize=1)
def get_settings() -> BinderSettings:
    """Process-wide settings, read once. Call `get_settings.cache_clear()` after changing the env."""
    return load_settings()
