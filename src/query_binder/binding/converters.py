from __future__ import annotations

import logging
import types
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Mapping, NewType, Optional, Union, get_origin
from uuid import UUID

from query_binder.core.config import BinderSettings, get_settings

from .primitives import (
    ConversionError,
    parse_bool,
    parse_date_yyyy_mm_dd,
    parse_datetime_iso,
    parse_decimal,
    parse_enum,
    parse_float,
    parse_int32,
    parse_int64,
    parse_text,
    parse_time_hh_mm,
    parse_uuid,
)
from .registry import DEFAULT_REGISTRY, ConverterRegistry
from .types import ErrorCode

logger = logging.getLogger(__name__)

# Width markers. A plain `int` annotation binds as 64-bit.
Int32 = NewType("Int32", int)
Int64 = NewType("Int64", int)


class ScalarKind(str, Enum):
    """Every scalar shape a field (or a sequence element) can take."""
    string = "string"
    boolean = "boolean"
    int32 = "int32"
    int64 = "int64"
    decimal = "decimal"
    float = "float"
    uuid = "uuid"
    date = "date"
    time = "time"
    datetime = "datetime"
    enum = "enum"
    custom = "custom"       # resolved through the converter registry at bind time


@dataclass(frozen=True, slots=True)
class ScalarType:
    """A classified scalar: which grammar applies, to what python type, and whether `None` is allowed."""
    kind: ScalarKind
    target: Any
    nullable: bool = False

    @property
    def type_name(self) -> str:
        return getattr(self.target, "__name__", str(self.target))


# Order matters: `bool` is an `int` subclass and `datetime` a `date` subclass,
# so lookups are by identity, never `issubclass`.
_BUILTIN_KINDS: dict[Any, ScalarKind] = {
    str: ScalarKind.string,
    bool: ScalarKind.boolean,
    Int32: ScalarKind.int32,
    Int64: ScalarKind.int64,
    int: ScalarKind.int64,
    Decimal: ScalarKind.decimal,
    float: ScalarKind.float,
    UUID: ScalarKind.uuid,
    date: ScalarKind.date,
    time: ScalarKind.time,
    datetime: ScalarKind.datetime,
}

_PARSERS: dict[ScalarKind, Callable[[str], Any]] = {
    ScalarKind.string: parse_text,
    ScalarKind.boolean: parse_bool,
    ScalarKind.int32: parse_int32,
    ScalarKind.int64: parse_int64,
    ScalarKind.decimal: parse_decimal,
    ScalarKind.float: parse_float,
    ScalarKind.uuid: parse_uuid,
    ScalarKind.date: parse_date_yyyy_mm_dd,
    ScalarKind.time: parse_time_hh_mm,
    ScalarKind.datetime: parse_datetime_iso,
}

_ZEROS: dict[ScalarKind, Any] = {
    ScalarKind.string: "",
    ScalarKind.boolean: False,
    ScalarKind.int32: 0,
    ScalarKind.int64: 0,
    ScalarKind.decimal: Decimal(0),
    ScalarKind.float: 0.0,
}


def unwrap_optional(tp: Any) -> tuple[Any, bool]:
    """
    Strip one `Optional[...]` / `X | None` layer.

    Returns `(inner, nullable)`. Unions with more than one non-`None` member
    are returned untouched, the caller decides they're unsupported.
    """
    args = getattr(tp, "__args__", None)
    if args and _is_union(tp) and type(None) in args:
        rest = tuple(a for a in args if a is not type(None))
        if len(rest) == 1:
            return rest[0], True
    return tp, False


def _is_union(tp: Any) -> bool:
    origin = get_origin(tp)
    return origin is Union or origin is types.UnionType


def classify_scalar(tp: Any) -> Optional[ScalarType]:
    """
    Classify a declared annotation as a scalar, or `None` when it isn't one.

    Any concrete class that isn't built in or an `Enum` classifies as `custom`;
    whether it can actually be converted is decided at bind time.
    """
    inner, nullable = unwrap_optional(tp)

    kind = _BUILTIN_KINDS.get(inner)
    # user `NewType`s bind as the type they wrap; `Int32`/`Int64` are matched above
    while kind is None and hasattr(inner, "__supertype__"):
        inner = inner.__supertype__
        kind = _BUILTIN_KINDS.get(inner)
    if kind is not None:
        return ScalarType(kind, inner, nullable)

    # generic aliases are never scalars, `list[int]` passes the `type` check on 3.10
    if isinstance(inner, type) and get_origin(inner) is None:
        if issubclass(inner, Enum):
            return ScalarType(ScalarKind.enum, inner, nullable)
        if inner is object or inner is Any or issubclass(inner, Mapping):
            return None
        return ScalarType(ScalarKind.custom, inner, nullable)

    return None


def zero_value(scalar: ScalarType) -> Any:
    """The value a field of this scalar type holds before anything is bound to it."""
    if scalar.nullable:
        return None
    return _ZEROS.get(scalar.kind)


def convert(
    raw: str,
    scalar: ScalarType,
    *,
    registry: ConverterRegistry = DEFAULT_REGISTRY,
    settings: Optional[BinderSettings] = None,
) -> Any:
    """
    Convert one raw string to `scalar`'s type.

    Never raises for bad input: a `ConversionError` is *returned* so the caller
    can aggregate it with other fields' errors.
    """
    try:
        if scalar.kind is ScalarKind.enum:
            return parse_enum(raw, scalar.target)
        if scalar.kind is ScalarKind.custom:
            return _convert_custom(raw, scalar, registry=registry, settings=settings or get_settings())
        return _PARSERS[scalar.kind](raw)
    except ConversionError as e:
        return e


def _convert_custom(
    raw: str,
    scalar: ScalarType,
    *,
    registry: ConverterRegistry,
    settings: BinderSettings,
) -> Any:
    conv = registry.get(scalar.target)
    if conv is not None:
        try:
            return conv(raw)
        except ConversionError:
            raise
        except Exception:
            # any converter failure is a format error for this field, never a crash of the bind call
            raise ConversionError(ErrorCode.invalid_value, f"Invalid {scalar.type_name}.")

    if settings.lenient_unknown_types:
        logger.debug("no converter for %s, passing raw value through", scalar.type_name)
        return raw

    raise ConversionError(ErrorCode.unsupported_type, f"No converter registered for {scalar.type_name}.")
