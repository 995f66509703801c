from __future__ import annotations

import collections.abc as cabc
from enum import Enum
from typing import Any, Callable, Optional, get_args, get_origin

from .converters import ScalarType, convert
from .primitives import ConversionError


class ContainerKind(str, Enum):
    """How the converted elements of a sequence-shaped field are assembled."""
    list = "list"               # growable, `list[X]`
    tuple = "tuple"             # fixed size, `tuple[X, ...]`
    set = "set"
    frozenset = "frozenset"
    sequence = "sequence"       # abstract `Sequence[X]` / `Iterable[X]` / `Collection[X]`, built as a tuple


_CONCRETE: dict[Any, ContainerKind] = {
    list: ContainerKind.list,
    tuple: ContainerKind.tuple,
    set: ContainerKind.set,
    frozenset: ContainerKind.frozenset,
    cabc.Sequence: ContainerKind.sequence,
    cabc.Iterable: ContainerKind.sequence,
    cabc.Collection: ContainerKind.sequence,
    cabc.MutableSequence: ContainerKind.list,
    cabc.Set: ContainerKind.frozenset,
    cabc.MutableSet: ContainerKind.set,
}

_BUILDERS: dict[ContainerKind, Callable[[list[Any]], Any]] = {
    ContainerKind.list: list,
    ContainerKind.tuple: tuple,
    ContainerKind.set: set,
    ContainerKind.frozenset: frozenset,
    ContainerKind.sequence: tuple,
}


def classify_container(tp: Any) -> Optional[tuple[ContainerKind, Any]]:
    """
    Return `(container, element_annotation)` for sequence-shaped annotations, else `None`.

    `tuple[X, ...]` is the only tuple form accepted, fixed-arity tuples like
    `tuple[int, str]` aren't homogeneous sequences. Bare `list`/`tuple` without
    an element type bind their elements as `str`.
    """
    if tp in (list, tuple, set, frozenset):
        return _CONCRETE[tp], str

    origin = get_origin(tp)
    kind = _CONCRETE.get(origin)
    if kind is None:
        return None

    args = get_args(tp)
    if origin is tuple:
        if len(args) != 2 or args[1] is not Ellipsis:
            return None
        return kind, args[0]
    if len(args) != 1:
        return None
    return kind, args[0]


def empty_container(kind: ContainerKind) -> Any:
    return _BUILDERS[kind]([])


def split_values(raw: str, delimiter: str = ",") -> list[str]:
    """Split on `delimiter`, trim every part and drop the empty ones."""
    return [p for p in (part.strip() for part in raw.split(delimiter)) if p]


def bind_sequence(
    raw: str,
    element: ScalarType,
    container: ContainerKind,
    *,
    delimiter: str = ",",
    **convert_kwargs: Any,
) -> Any:
    """
    Bind a delimited raw value into a container of converted elements.

    Stops at the first element that fails and returns its `ConversionError`
    (prefixed with the element and its 0-based position); no partial container
    is ever produced.
    """
    out: list[Any] = []
    for i, part in enumerate(split_values(raw, delimiter)):
        v = convert(part, element, **convert_kwargs)
        if isinstance(v, ConversionError):
            return ConversionError(v.code, f"Invalid item {part!r} at position {i}: {v.detail}")
        out.append(v)
    return _BUILDERS[container](out)
