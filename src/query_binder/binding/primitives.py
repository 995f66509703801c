from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any
from uuid import UUID

from .types import ErrorCode


@dataclass(frozen=True, slots=True)
class ConversionError(Exception):
    """A raw value could not be converted to its declared type."""
    code: ErrorCode             # classifies the failure
    detail: str                 # message surfaced to the caller, per field

    def __str__(self) -> str:
        return self.detail


INT32_MIN, INT32_MAX = -(2**31), 2**31 - 1
INT64_MIN, INT64_MAX = -(2**63), 2**63 - 1

# `re.ASCII` keeps `\d` from matching non latin digits that `int()` would accept.
_INT_RE = re.compile(r"[+-]?\d+", re.ASCII)
_GROUPED = r"(?:\d{1,3}(?:,\d{3})+|\d+)"
_DECIMAL_RE = re.compile(rf"[+-]?(?:{_GROUPED}(?:\.\d*)?|\.\d+)", re.ASCII)
_FLOAT_RE = re.compile(rf"[+-]?(?:{_GROUPED}(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?", re.ASCII)
_FLOAT_SPECIALS = {"nan", "infinity", "+infinity", "-infinity"}
_UUID_RE = re.compile(r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}")
_DATE_RE = re.compile(r"\d{4}-\d{2}-\d{2}", re.ASCII)
_TIME_LONG_RE = re.compile(r"\d{2}:\d{2}:\d{2}", re.ASCII)
_TIME_SHORT_RE = re.compile(r"\d{2}:\d{2}", re.ASCII)


def is_blank(v: Any) -> bool:
    """`None`, empty and whitespace-only values all count as "not supplied"."""
    if v is None:
        return True
    return isinstance(v, str) and v.strip() == ""


## -- text / bool

def parse_text(raw: str) -> str:
    """Strings are returned verbatim, there is no failure mode."""
    return raw


def parse_bool(raw: str) -> bool:
    """Strict `true`/`false`, case-insensitive. `1`/`yes` are rejected on purpose."""
    s = raw.strip().lower()
    if s == "true":
        return True
    if s == "false":
        return False
    raise ConversionError(ErrorCode.invalid_bool, "Expected boolean.")


## -- integers

def _parse_bounded_int(raw: str, *, lo: int, hi: int, message: str) -> int:
    s = raw.strip()
    # guard: "1_000", "1.0" and "1e3" are all accepted by something in python, none are integers here
    if not _INT_RE.fullmatch(s):
        raise ConversionError(ErrorCode.invalid_int, message)
    # `int()` refuses very long digit strings, and anything past 19 significant digits is out of range anyway
    if len(s.lstrip("+-").lstrip("0")) > 19:
        raise ConversionError(ErrorCode.invalid_int, message)
    v = int(s)
    if v < lo or v > hi:
        raise ConversionError(ErrorCode.invalid_int, message)
    return v


def parse_int32(raw: str) -> int:
    """Parse a base-10 integer within the signed 32-bit range."""
    return _parse_bounded_int(raw, lo=INT32_MIN, hi=INT32_MAX, message="Expected integer.")


def parse_int64(raw: str) -> int:
    """Parse a base-10 integer within the signed 64-bit range."""
    return _parse_bounded_int(raw, lo=INT64_MIN, hi=INT64_MAX, message="Expected long.")


## -- numerics, invariant formatting (period separator, optional `,` grouping)

def parse_decimal(raw: str) -> Decimal:
    """
    Parse a fixed-point number.

    Accepts `12`, `-12.50`, `.5` and grouped forms like `1,234.5`.
    Exponents are rejected, a decimal is never written in scientific notation here.
    """
    s = raw.strip()
    if not _DECIMAL_RE.fullmatch(s):
        raise ConversionError(ErrorCode.invalid_numeric, "Expected decimal.")
    try:
        return Decimal(s.replace(",", ""))
    except InvalidOperation:
        raise ConversionError(ErrorCode.invalid_numeric, "Expected decimal.")


def parse_float(raw: str) -> float:
    """Parse a floating-point number. Exponents, `NaN` and `Infinity` are allowed."""
    s = raw.strip()
    if s.lower() in _FLOAT_SPECIALS:
        return float(s)
    if not _FLOAT_RE.fullmatch(s):
        raise ConversionError(ErrorCode.invalid_numeric, "Expected double.")
    return float(s.replace(",", ""))


## -- identifiers

def parse_uuid(raw: str) -> UUID:
    """Canonical hyphenated form only: `xxxxxxxx-xxxx-xxxx-xxxx-xxxxxxxxxxxx`."""
    s = raw.strip()
    if not _UUID_RE.fullmatch(s):
        raise ConversionError(ErrorCode.invalid_uuid, "Expected GUID.")
    return UUID(s)


## -- temporal

def parse_datetime_iso(raw: str) -> datetime:
    """
    Accepts the ISO forms:
    - `2026-02-10T12:34:56Z`
    - `2026-02-10T12:34:56.123+02:00`
    - `2026-02-10T12:34:56`  (kept naive, no timezone is assumed)
    - `2026-02-10`           (midnight)
    """
    s = raw.strip()
    if s.endswith(("Z", "z")):
        s = s[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(s)
    except ValueError:
        raise ConversionError(ErrorCode.invalid_timestamp, "Expected ISO 8601 DateTime.")


def parse_date_yyyy_mm_dd(raw: str) -> date:
    """Parse a date written exactly as `YYYY-MM-DD`."""
    s = raw.strip()
    if not _DATE_RE.fullmatch(s):
        raise ConversionError(ErrorCode.invalid_timestamp, "Expected yyyy-MM-dd.")
    try:
        return date.fromisoformat(s)
    except ValueError:
        # well formed but impossible, ex: 2026-02-30
        raise ConversionError(ErrorCode.invalid_timestamp, "Expected yyyy-MM-dd.")


def parse_time_hh_mm(raw: str) -> time:
    """Parse `HH:MM:SS`, falling back to `HH:MM`."""
    s = raw.strip()
    for pattern, fmt in ((_TIME_LONG_RE, "%H:%M:%S"), (_TIME_SHORT_RE, "%H:%M")):
        if pattern.fullmatch(s):
            try:
                return datetime.strptime(s, fmt).time()
            except ValueError:
                break
    raise ConversionError(ErrorCode.invalid_timestamp, "Expected HH:mm or HH:mm:ss.")


## -- enums

def parse_enum(raw: str, enum_type: type[Enum]) -> Enum:
    """
    Case-insensitive match on member names first, then on member values.

    The failure message lists every member name so callers can correct the request.
    """
    s = raw.strip().casefold()
    members = list(enum_type)
    for m in members:
        if m.name.casefold() == s:
            return m
    for m in members:
        if str(m.value).casefold() == s:
            return m
    names = ",".join(m.name for m in members)
    raise ConversionError(ErrorCode.invalid_enum, f"Expected one of: {names}.")
