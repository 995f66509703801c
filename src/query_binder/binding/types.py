from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, Iterator, Mapping, TypeVar

T = TypeVar("T")


class ErrorCode(str, Enum):
    """Typed conversion failure classifications."""
    invalid_bool = "invalid_bool"
    invalid_int = "invalid_int"                 # covers both 32 and 64 bit ranges
    invalid_numeric = "invalid_numeric"         # decimal and float
    invalid_uuid = "invalid_uuid"
    invalid_timestamp = "invalid_timestamp"     # also used for date and time errors
    invalid_enum = "invalid_enum"
    invalid_value = "invalid_value"             # registered converter rejected the value
    unsupported_type = "unsupported_type"


@dataclass(frozen=True, slots=True)
class BindResult(Generic[T]):
    """
    Outcome of a single bind call.

    `value` is always a usable record: fields that failed are left at their zero value.
    `errors` maps a field's external name to a human readable message.
    """
    value: T
    errors: Mapping[str, str] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        """`True` only when no field reported an error."""
        return not self.errors

    def __iter__(self) -> Iterator[object]:
        # allows `value, errors, ok = try_bind(...)`
        yield self.value
        yield self.errors
        yield self.success
