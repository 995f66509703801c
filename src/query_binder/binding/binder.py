from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Sequence, TypeVar, Union

from query_binder.core.config import BinderSettings, get_settings

from .converters import convert
from .errors import BindingFailed
from .primitives import ConversionError, is_blank
from .registry import DEFAULT_REGISTRY, ConverterRegistry
from .schema import FieldDescriptor, resolve_schema
from .sequences import bind_sequence
from .types import BindResult

logger = logging.getLogger(__name__)

T = TypeVar("T")

# A parsed query string: `parse_qs` output, a plain `dict[str, str]`, or a multidict-like mapping.
RawValue = Union[str, Sequence[str], None]
QueryInput = Mapping[str, RawValue]


def normalize_query(query: QueryInput, delimiter: str = ",") -> dict[str, Optional[str]]:
    """
    Fold a query mapping into `{casefolded key: single raw string}`.

    - keys that differ only by case are merged, in mapping order.
    - several values for one key are joined with `delimiter`, so `?id=1&id=2` reads like `?id=1,2`.
    - `None` values (and keys with no values at all) become `None`.
    """
    merged: dict[str, list[str]] = {}
    for k, v in query.items():
        bucket = merged.setdefault(str(k).casefold(), [])
        if v is None:
            continue
        if isinstance(v, str):
            bucket.append(v)
        else:
            bucket.extend(str(x) for x in v if x is not None)

    return {k: (delimiter.join(vs) if vs else None) for k, vs in merged.items()}


@dataclass(frozen=True)
class QueryBinder:
    """
    Bind query mappings onto `@query_model` records.

    Every field is attempted, failures never stop the loop:
    - absent or blank parameter: the field's query default, else its zero value (never an error)
    - sequence-shaped field: split and converted element by element
    - anything else: converted as a single scalar
    - a failed conversion is recorded under the field's external name and the field keeps its zero value
    """
    registry: ConverterRegistry = DEFAULT_REGISTRY
    settings: Optional[BinderSettings] = field(default=None)

    def _settings(self) -> BinderSettings:
        return self.settings or get_settings()

    def _bind_field(self, f: FieldDescriptor, raw: str, settings: BinderSettings) -> Any:
        if f.is_sequence:
            return bind_sequence(
                raw,
                f.scalar,
                f.container,
                delimiter=settings.sequence_delimiter,
                registry=self.registry,
                settings=settings,
            )
        return convert(raw, f.scalar, registry=self.registry, settings=settings)

    def try_bind(self, cls: type[T], query: QueryInput) -> BindResult[T]:
        """
        Bind `query` onto a fresh `cls` and report per-field errors alongside it.

        Only a type-level problem raises (`NotBindableType`); field errors are returned.
        """
        schema = resolve_schema(cls)
        settings = self._settings()
        lookup = normalize_query(query, settings.sequence_delimiter)

        values: dict[str, Any] = {name: make_zero() for name, make_zero in schema.unbound}
        errors: dict[str, str] = {}

        ## -- Binding loop
        for f in schema.fields:
            raw = lookup.get(f.external_name.casefold())

            # absent or blank: default if declared, otherwise zero. Not an error.
            if is_blank(raw):
                values[f.attr_name] = copy.copy(f.default) if f.has_default else f.make_zero()
                continue

            v = self._bind_field(f, raw, settings)
            if isinstance(v, ConversionError):
                errors[f.external_name] = v.detail
                values[f.attr_name] = f.make_zero()
                continue

            values[f.attr_name] = v

        if errors:
            logger.debug("bound %s with %d field error(s): %s", cls.__qualname__, len(errors), sorted(errors))

        return BindResult(value=cls(**values), errors=errors)

    def bind(self, cls: type[T], query: QueryInput) -> T:
        """Strict variant of `try_bind`: raises `BindingFailed` carrying every field error."""
        result = self.try_bind(cls, query)
        if not result.success:
            raise BindingFailed("Invalid query parameters.", result.errors)
        return result.value


_DEFAULT_BINDER = QueryBinder()


def try_bind(cls: type[T], query: QueryInput, *, settings: Optional[BinderSettings] = None) -> BindResult[T]:
    """`QueryBinder.try_bind` on the default converter registry."""
    binder = _DEFAULT_BINDER if settings is None else QueryBinder(settings=settings)
    return binder.try_bind(cls, query)


def bind(cls: type[T], query: QueryInput, *, settings: Optional[BinderSettings] = None) -> T:
    """`QueryBinder.bind` on the default converter registry."""
    binder = _DEFAULT_BINDER if settings is None else QueryBinder(settings=settings)
    return binder.bind(cls, query)
