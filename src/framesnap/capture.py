"""Raw stack capture from live frames and tracebacks."""

from __future__ import annotations

import sys
from types import FrameType, TracebackType

from .frames import SourceLocation


def qualified_name(cls: type) -> str:
    """Return ``module.Qualname`` for a class, bare for builtins."""
    module = getattr(cls, "__module__", None)
    if not module or module == "builtins":
        return cls.__qualname__
    return f"{module}.{cls.__qualname__}"


def location_of(frame: FrameType, lineno: int | None = None) -> SourceLocation:
    """Describe a frame as a source location.

    ``lineno`` overrides the frame's current line, which is what traceback
    entries carry for frames that already unwound.
    """
    code = frame.f_code
    module = frame.f_globals.get("__name__") or "<unknown>"
    owner, _, function = code.co_qualname.rpartition(".")
    type_name = f"{module}.{owner}" if owner else module
    if lineno is None:
        lineno = frame.f_lineno
    return SourceLocation(
        type_name=type_name,
        function=function,
        lineno=lineno or 0,
        filename=code.co_filename,
    )


def _walk_back(frame: FrameType | None) -> list[SourceLocation]:
    stack = []
    while frame is not None:
        stack.append(location_of(frame))
        frame = frame.f_back
    return stack


def current_stack(skip: int = 0) -> list[SourceLocation]:
    """Capture the calling thread's stack, most recent first.

    The first entry is the caller of this function; ``skip`` drops that
    many further frames from the top.
    """
    try:
        frame = sys._getframe(1 + skip)
    except ValueError:  # skip deeper than the stack
        return []
    return _walk_back(frame)


def stack_from_traceback(tb: TracebackType | None) -> list[SourceLocation]:
    """Rebuild the full stack at an exception's raise point.

    A traceback only covers the frames between the handler and the raise
    point, so the frames above the handler are taken from ``f_back`` of the
    outermost traceback frame. An exception that was never raised has no
    traceback and yields an empty stack.
    """
    if tb is None:
        return []

    # Walk tb objects outermost first
    entries = []
    outermost = tb.tb_frame
    cur = tb
    while cur is not None:
        entries.append(location_of(cur.tb_frame, cur.tb_lineno))
        cur = cur.tb_next

    # Reverse so the raise site is first
    entries.reverse()
    return entries + _walk_back(outermost.f_back)
