from __future__ import annotations

import dataclasses
import importlib
from datetime import date, time
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping
from urllib.parse import parse_qs
from uuid import UUID


def load_model(spec: str) -> type:
    """
    Import a model class from a `package.module:ClassName` reference.

    Nested classes are reachable with dots after the colon (`module:Outer.Inner`).
    """
    module_name, sep, qualname = spec.partition(":")
    if not sep or not module_name or not qualname:
        raise ValueError(f"model must look like 'package.module:ClassName', got {spec!r}")

    obj: Any = importlib.import_module(module_name)
    for part in qualname.split("."):
        obj = getattr(obj, part)

    if not isinstance(obj, type):
        raise ValueError(f"{spec!r} is not a class")
    return obj


def parse_query_string(query: str) -> dict[str, list[str]]:
    """Split a raw query string (leading `?` optional). Blank values are kept, the binder decides what they mean."""
    return parse_qs(query.lstrip("?"), keep_blank_values=True)


def to_jsonable(v: Any) -> Any:
    """Render a bound record (and its field values) with JSON-safe types."""
    if dataclasses.is_dataclass(v) and not isinstance(v, type):
        return {f.name: to_jsonable(getattr(v, f.name)) for f in dataclasses.fields(v)}
    if isinstance(v, Enum):
        return v.name
    if isinstance(v, (date, time)):
        # `datetime` is a `date`
        return v.isoformat()
    if isinstance(v, (Decimal, UUID)):
        return str(v)
    if isinstance(v, Mapping):
        return {str(k): to_jsonable(x) for k, x in v.items()}
    if isinstance(v, (list, tuple, set, frozenset)):
        items = [to_jsonable(x) for x in v]
        return sorted(items, key=str) if isinstance(v, (set, frozenset)) else items
    return v
