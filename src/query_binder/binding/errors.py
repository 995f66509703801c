from __future__ import annotations

from typing import Any, Mapping


class QueryBindError(Exception):
    """Base class for every error raised by the binder."""


class NotBindableType(QueryBindError, TypeError):
    """
    The target type can't be bound at all.

    Raised before any field is processed, either because the class was never
    marked with `@query_model` or because its field declarations collide.
    """

    def __init__(self, target: type, detail: str) -> None:
        self.target = target
        self.detail = detail
        super().__init__(f"{getattr(target, '__name__', target)!s}: {detail}")


class BindingFailed(QueryBindError, ValueError):
    """One or more query parameters failed to bind (strict entry point only)."""

    def __init__(self, message: str, errors: Mapping[str, str]) -> None:
        self.message = message
        self.errors = dict(errors)
        super().__init__(message)

    def __str__(self) -> str:
        fields = ", ".join(sorted(self.errors))
        return f"{self.message} ({fields})" if fields else self.message

    def to_problem_details(self) -> dict[str, Any]:
        """
        Shape the failure as an RFC 7807 style validation body.

        Lets an HTTP layer answer with 400 and per-field feedback instead of a 500.
        """
        return {
            "title": self.message,
            "status": 400,
            "errors": dict(self.errors),
        }
