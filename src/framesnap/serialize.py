"""Safe stringification of snapshot values."""

from __future__ import annotations

from collections.abc import Iterable
from re import Pattern
from typing import Any

from .config import FailureConfig

TRUNC_MARKER = "...[TRUNC]"


def redact_text(text: str, redactors: Iterable[Pattern[str]]) -> str:
    """Replace every match of the compiled patterns with [REDACTED]."""
    for rx in redactors:
        text = rx.sub("[REDACTED]", text)
    return text


def truncate_str(s: str, max_len: int) -> str:
    """Cut ``s`` to at most ``max_len`` characters, marker included."""
    if len(s) <= max_len:
        return s
    return s[: max_len - len(TRUNC_MARKER)] + TRUNC_MARKER


def safe_str(x: Any, cfg: FailureConfig) -> str | None:
    """Stringify a snapshot value, keeping None as None.

    Strings are stored as is (no quoting), everything else goes through
    ``str()`` with a fallback for objects whose ``__str__`` raises.
    Redaction runs before truncation so a secret cut in half is still hidden.
    """
    if x is None:
        return None
    if isinstance(x, str):
        text = x
    else:
        try:
            text = str(x)
        except Exception:
            text = f"<unprintable {type(x).__name__}>"
    return truncate_str(redact_text(text, cfg.redactors), cfg.max_value_len)
