"""Argument and state checks that raise WrappedFailure.

Meant for programmer errors: a broken contract should fail loudly at the
call site rather than be patched over with a default.

Usage:
    def load(path, retries):
        require_non_blank(path, "path")
        require_true(retries >= 0, "retries must not be negative")
"""

from __future__ import annotations

from typing import Any, TypeVar

from .failure import WrappedFailure

T = TypeVar("T")


def _is_blank(text: Any) -> bool:
    return text is None or not str(text).strip()


def require_non_null(value: T | None, name: str | None = None) -> T:
    """Return ``value``, or raise WrappedFailure if it is None."""
    if value is None:
        if _is_blank(name):
            name = "object"
        raise WrappedFailure(f"Assert: {name} is None")
    return value


def require_non_blank(text: str | None, name: str | None = None) -> str:
    """Return ``text``, or raise WrappedFailure if it is None or whitespace."""
    if _is_blank(text):
        if _is_blank(name):
            name = "string"
        raise WrappedFailure(f"Assert: {name} is blank")
    return text  # type: ignore[return-value]


def require_true(condition: bool, message: str) -> None:
    if not condition:
        raise WrappedFailure(message)


def require_false(condition: bool, message: str) -> None:
    if condition:
        raise WrappedFailure(message)
