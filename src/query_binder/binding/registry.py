from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Optional, Protocol, TypeVar, overload

logger = logging.getLogger(__name__)

C = TypeVar("C", bound=Callable[[str], Any])


class StringConverter(Protocol):
    """Turns one raw query value into an instance of a custom type. Raises `ValueError`/`TypeError` on bad input."""
    def __call__(self, raw: str, /) -> Any: ...


class ConverterRegistry:
    """
    Converters for types the binder has no built-in grammar for.

    Lookups walk the target's MRO, so a converter registered for a base class
    also serves its subclasses unless a more specific one exists.
    Writes are serialized; reads never block.
    """

    def __init__(self) -> None:
        self._converters: dict[type, StringConverter] = {}
        self._lock = threading.Lock()

    def register(self, target: type, converter: StringConverter) -> None:
        with self._lock:
            # copy-on-write so concurrent readers never see a dict mid-resize
            updated = dict(self._converters)
            updated[target] = converter
            self._converters = updated
        logger.debug("registered converter for %s", target.__qualname__)

    def unregister(self, target: type) -> None:
        with self._lock:
            updated = dict(self._converters)
            updated.pop(target, None)
            self._converters = updated

    def get(self, target: type) -> Optional[StringConverter]:
        converters = self._converters
        for klass in getattr(target, "__mro__", (target,)):
            conv = converters.get(klass)
            if conv is not None:
                return conv
        return None

    def __contains__(self, target: object) -> bool:
        return isinstance(target, type) and self.get(target) is not None


DEFAULT_REGISTRY = ConverterRegistry()


@overload
def register_converter(target: type) -> Callable[[C], C]: ...
@overload
def register_converter(target: type, converter: C) -> C: ...

def register_converter(target: type, converter: Optional[C] = None) -> Any:
    """
    Register a string converter on the default registry.

    Usable directly, `register_converter(Money, Money.parse)`,
    or as a decorator:

        @register_converter(Money)
        def _money(raw: str) -> Money: ...
    """
    if converter is not None:
        DEFAULT_REGISTRY.register(target, converter)
        return converter

    def decorator(fn: C) -> C:
        DEFAULT_REGISTRY.register(target, fn)
        return fn

    return decorator
