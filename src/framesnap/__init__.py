"""Wrapped failures with per-frame snapshots of runtime values."""

from __future__ import annotations

from typing import Any

from .capture import current_stack, qualified_name
from .config import FailureConfig
from .failure import CauseInfo, WrappedFailure, adopt
from .frames import CapturedFrame, FrameIndex, Snapshot, SourceLocation, locate_boundary_frame
from .preconditions import require_false, require_non_blank, require_non_null, require_true
from .serialize import safe_str

__version__ = "0.1.0"
__all__ = [
    "CapturedFrame",
    "CauseInfo",
    "FailureConfig",
    "FrameIndex",
    "Snapshot",
    "SourceLocation",
    "WrappedFailure",
    "adopt",
    "require_false",
    "require_non_blank",
    "require_non_null",
    "require_true",
    "snapshot_section",
]


class snapshot_section:  # noqa: N801
    """Context manager that adopts failures and attaches values on the way out.

    Usage:
        with snapshot_section(user_id=user_id) as section:
            row = fetch(user_id)
            section.snap("row", row)
            ...

    Any ``Exception`` leaving the block is adopted; the recorded values are
    attached to the frame holding the ``with`` statement. A failure already
    wrapped on this thread keeps propagating as is, anything else is raised
    as a WrappedFailure chained from the original.
    """

    def __init__(self, **values: Any) -> None:
        self.values: dict[str, Any] = dict(values)

    def snap(self, name: str, value: Any) -> None:
        """Record (or overwrite) a value to attach if the block fails."""
        self.values[name] = value

    def __enter__(self) -> snapshot_section:
        return self

    def __exit__(self, tp, exc: BaseException | None, tb) -> bool:
        if exc is None or not isinstance(exc, Exception):
            return False

        failure = WrappedFailure.adopt(exc)
        # The frame right below this __exit__ is the one with the `with`
        index = locate_boundary_frame(current_stack(), qualified_name(snapshot_section))
        if failure is not exc and isinstance(exc, WrappedFailure):
            # Re-rooted from another thread: drop this __exit__ frame too
            failure._prune_to(index)

        try:
            for name, value in self.values.items():
                failure._attach_at(index, Snapshot(name, safe_str(value, failure.config)))
        except Exception as e:
            failure._warn(f"section attach failed: {e!r}")

        if failure is exc:
            return False
        raise failure from exc
