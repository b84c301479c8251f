"""Text rendering of failure headers and captured frames."""

from __future__ import annotations

from collections.abc import Sequence

from .frames import CapturedFrame

FRAME_MARKER = "->> "


def format_header(
    token: int,
    thread_id: int,
    message: str | None,
    cause_type_name: str | None,
    cause_message: str | None,
) -> str:
    """Build the one-line failure summary.

    Example: ``-:[123]:- Thread id: 140. lookup failed. Cause: KeyError. Msg: 'k'. ``
    """
    parts = [f"-:[{token}]:- ", f"Thread id: {thread_id}. "]
    if message is not None:
        parts.append(f"{message}. ")
    if cause_type_name is not None:
        parts.append(f"Cause: {cause_type_name}. Msg: {cause_message}. ")
    return "".join(parts)


def format_frame(frame: CapturedFrame) -> str:
    """Render one frame line without the trailing newline."""
    loc = frame.location
    line = f"{FRAME_MARKER}{frame.index.value}:{loc.type_name}.{loc.function}[{loc.lineno}]"
    if frame.snapshots:
        line += ": " + "".join(str(s) for s in frame.snapshots)
    return line


def format_frames(frames: Sequence[CapturedFrame], max_frames: int) -> str:
    """Render up to ``max_frames`` frames, most recent first.

    Frames past the cap are the oldest ones and are dropped silently.
    """
    if not frames:
        return ""
    return "".join(format_frame(frame) + "\n" for frame in frames[:max_frames])
