from __future__ import annotations

from pathlib import Path
from typing import Iterator

import pytest

from query_binder.binding.registry import DEFAULT_REGISTRY
from query_binder.binding.schema import clear_cache
from query_binder.core.config import BinderSettings, get_settings


def _find_repo_root(start: Path) -> Path:
    marker = "pyproject.toml"
    cur = start.resolve()
    for p in (cur, *cur.parents):
        if (p / marker).exists():
            return p
    raise RuntimeError(f"Could not find repo root from: {start}")


@pytest.fixture(scope="session")
def repo_root() -> Path:
    """The absolute path to the repo root (finds by walking up to `pyproject.toml`)."""
    return _find_repo_root(Path(__file__))


@pytest.fixture(autouse=True)
def fresh_binder_state(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """
    Every test starts with an empty descriptor cache, env-free settings,
    and leaves the default converter registry as it found it.
    """
    for name in ("QUERY_BINDER_LENIENT_UNKNOWN_TYPES", "QUERY_BINDER_SEQUENCE_DELIMITER", "QUERY_BINDER_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    clear_cache()
    before = dict(DEFAULT_REGISTRY._converters)

    yield

    DEFAULT_REGISTRY._converters = before
    get_settings.cache_clear()
    clear_cache()


@pytest.fixture
def strict_settings() -> BinderSettings:
    return BinderSettings()


@pytest.fixture
def lenient_settings() -> BinderSettings:
    return BinderSettings(lenient_unknown_types=True)
