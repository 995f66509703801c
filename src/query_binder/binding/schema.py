from __future__ import annotations

import dataclasses
import logging
import threading
from dataclasses import MISSING, dataclass
from typing import Any, Callable, Optional, Sequence, TypeVar, get_type_hints, overload

from .converters import ScalarType, classify_scalar, unwrap_optional, zero_value
from .errors import NotBindableType
from .sequences import ContainerKind, classify_container, empty_container

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=type)

# Keys used in `dataclasses.field(metadata=...)`.
QUERY_NAME = "query_name"
QUERY_DEFAULT = "query_default"

_MARKER = "__query_model__"


## -- declaration helpers

@overload
def query_model(cls: T, /) -> T: ...
@overload
def query_model(cls: None = None, /, **dataclass_kwargs: Any) -> Callable[[T], T]: ...

def query_model(cls: Optional[T] = None, /, **dataclass_kwargs: Any) -> Any:
    """
    Mark a class as bindable from a query string.

    A plain class is turned into a keyword-only dataclass (extra keyword arguments
    are forwarded to `dataclass`). An existing dataclass is only marked.
    The mark isn't inherited: subclasses must be decorated themselves.
    """
    def wrap(c: T) -> T:
        # `is_dataclass` is true for an undecorated subclass of a dataclass, check its own dict
        if "__dataclass_fields__" not in c.__dict__:
            opts = {"kw_only": True, **dataclass_kwargs}
            c = dataclass(**opts)(c)
        setattr(c, _MARKER, True)
        return c

    if cls is None:
        return wrap
    return wrap(cls)


def query_field(
    name: Optional[str] = None,
    *,
    default: Any = MISSING,
    zero: Any = MISSING,
    **field_kwargs: Any,
) -> Any:
    """
    Declare a field's query binding metadata.

    - `name` overrides the external (query string) name, otherwise the attribute name is used.
    - `default` is applied only when the parameter is absent or blank. It is *not* the
      dataclass default: a field that fails to convert keeps its zero value instead.
    - `zero` sets the dataclass default, i.e. the value a fresh record starts with.

    Remaining keyword arguments (`default_factory`, `repr`, ...) go to `dataclasses.field`.
    """
    metadata = dict(field_kwargs.pop("metadata", None) or {})
    if name is not None:
        metadata[QUERY_NAME] = name
    if default is not MISSING:
        metadata[QUERY_DEFAULT] = default
    if zero is not MISSING:
        field_kwargs["default"] = zero
    return dataclasses.field(metadata=metadata, **field_kwargs)


def is_query_model(cls: Any) -> bool:
    """Whether `cls` itself (not merely a base class) was marked with `@query_model`."""
    return isinstance(cls, type) and cls.__dict__.get(_MARKER) is True


## -- descriptors

@dataclass(frozen=True, slots=True)
class FieldDescriptor:
    """Everything the binder needs to know about one writable field."""
    attr_name: str                          # attribute on the record
    external_name: str                      # key looked up in the query mapping
    scalar: ScalarType                      # the field's type, or its element type for sequences
    container: Optional[ContainerKind]      # set only for sequence-shaped fields
    make_zero: Callable[[], Any]            # fresh zero value, called once per bind
    default: Any = MISSING                  # query default, `MISSING` when none is declared
    nullable: bool = False                  # the field itself is Optional, element nullability lives on `scalar`

    @property
    def is_sequence(self) -> bool:
        return self.container is not None

    @property
    def has_default(self) -> bool:
        return self.default is not MISSING

    def render_one_line(self) -> str:
        """How a descriptor is listed in the terminal."""
        shape = self.scalar.kind.value
        if self.container is not None:
            shape = f"{self.container.value}[{shape}]"
        if self.nullable:
            shape += "?"
        line = f"{self.external_name} -> {self.attr_name}: {shape}"
        if self.has_default:
            line += f" default={self.default!r}"
        return line


@dataclass(frozen=True, slots=True)
class ModelSchema:
    """Resolved binding plan for one query model type."""
    model: type
    fields: tuple[FieldDescriptor, ...]
    # init fields skipped at resolution time, with the value they're constructed with
    unbound: tuple[tuple[str, Callable[[], Any]], ...] = ()


def _dataclass_zero(f: dataclasses.Field) -> Optional[Callable[[], Any]]:
    """The record's own zero for a field, when the dataclass declares one."""
    if f.default is not MISSING:
        value = f.default
        return lambda: value
    if f.default_factory is not MISSING:
        return f.default_factory
    return None


def _describe_field(f: dataclasses.Field, annotation: Any) -> Optional[FieldDescriptor]:
    """Classify one field. `None` means the shape isn't supported and the field is skipped."""
    inner, nullable = unwrap_optional(annotation)

    container: Optional[ContainerKind] = None
    seq = classify_container(inner)
    if seq is not None:
        container, element = seq
        scalar = classify_scalar(element)
        # a sequence of sequences, or of something unclassifiable, isn't supported
        if scalar is None or classify_container(unwrap_optional(element)[0]) is not None:
            return None
    else:
        scalar = classify_scalar(annotation)
        if scalar is None:
            return None

    make_zero = _dataclass_zero(f)
    if make_zero is None:
        if container is not None:
            kind = container
            make_zero = (lambda: None) if nullable else (lambda: empty_container(kind))
        else:
            zero = zero_value(scalar)
            make_zero = lambda: zero

    return FieldDescriptor(
        attr_name=f.name,
        external_name=f.metadata.get(QUERY_NAME, f.name),
        scalar=scalar,
        container=container,
        make_zero=make_zero,
        default=f.metadata.get(QUERY_DEFAULT, MISSING),
        nullable=nullable,
    )


def _build_schema(cls: type) -> ModelSchema:
    if not is_query_model(cls):
        raise NotBindableType(cls, "type is not marked with @query_model")

    try:
        hints = get_type_hints(cls)
    except (NameError, TypeError) as e:
        # unresolvable forward references: fall back to the raw annotations, string ones get skipped
        logger.warning("could not resolve annotations of %s: %s", cls.__qualname__, e)
        hints = {}

    fields: list[FieldDescriptor] = []
    unbound: list[tuple[str, Callable[[], Any]]] = []
    seen: dict[str, str] = {}

    for f in dataclasses.fields(cls):
        if not f.init:
            continue

        annotation = hints.get(f.name, f.type)
        desc = None if isinstance(annotation, str) else _describe_field(f, annotation)
        if desc is None:
            logger.warning(
                "%s.%s: unsupported field type %r, field will not be bound",
                cls.__qualname__, f.name, annotation,
            )
            unbound.append((f.name, _dataclass_zero(f) or (lambda: None)))
            continue

        # lookups are case-insensitive, so are collisions
        key = desc.external_name.casefold()
        if key in seen:
            raise NotBindableType(
                cls,
                f"fields {seen[key]!r} and {f.name!r} both bind query parameter {desc.external_name!r}",
            )
        seen[key] = f.name
        fields.append(desc)

    logger.debug("resolved %d bindable field(s) for %s", len(fields), cls.__qualname__)
    return ModelSchema(model=cls, fields=tuple(fields), unbound=tuple(unbound))


## -- cache

_CACHE: dict[type, ModelSchema] = {}
_CACHE_LOCK = threading.Lock()


def resolve_schema(cls: type) -> ModelSchema:
    """
    Resolve (once per type) the binding plan of a query model.

    Raises `NotBindableType` for unmarked types and for external name collisions.
    """
    schema = _CACHE.get(cls)
    if schema is not None:
        return schema
    with _CACHE_LOCK:
        # another thread may have finished while we waited
        schema = _CACHE.get(cls)
        if schema is None:
            schema = _build_schema(cls)
            _CACHE[cls] = schema
    return schema


def resolve_fields(cls: type) -> Sequence[FieldDescriptor]:
    """Ordered field descriptors of a query model, see `resolve_schema`."""
    return resolve_schema(cls).fields


def clear_cache() -> None:
    with _CACHE_LOCK:
        _CACHE.clear()
