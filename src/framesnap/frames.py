"""Frame model: snapshots, reverse frame indices and captured frames."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import ClassVar


@dataclass(frozen=True)
class Snapshot:
    """A named value observed at one stack frame.

    The value is stringified by the caller before it gets here;
    ``None`` means the observed value itself was ``None``.
    """

    name: str
    value: str | None

    def __str__(self) -> str:
        return f"[{self.name}={self.value}]"


@dataclass(frozen=True)
class SourceLocation:
    """One call site of a captured stack.

    ``type_name`` is the declaring scope of the code object: ``module.Class``
    for methods (nested scopes included) and just ``module`` for plain
    functions. Boundary matching is done against it.
    """

    type_name: str
    function: str
    lineno: int
    filename: str = ""

    def __str__(self) -> str:
        return f"{self.type_name}.{self.function}[{self.lineno}]"


@dataclass(frozen=True, order=True)
class FrameIndex:
    """Stack position numbered in reverse: 0 is the oldest frame.

    For a stack of length N the most recent frame is N-1. A frame keeps its
    number when frames above or below it are dropped, and the same frame
    gets the same number whether it is read from a live stack or from a
    traceback captured on the same thread.
    """

    value: int

    UNDEFINED: ClassVar[FrameIndex]

    @property
    def is_undefined(self) -> bool:
        return self.value == _UNDEFINED_VALUE

    def __str__(self) -> str:
        return str(self.value)


_UNDEFINED_VALUE = -1
FrameIndex.UNDEFINED = FrameIndex(_UNDEFINED_VALUE)


def locate_boundary_frame(
    stack: Sequence[SourceLocation], boundary: str | tuple[str, ...]
) -> FrameIndex:
    """Find the first frame below the frames of a boundary type.

    Scans ``stack`` (most recent first) for the first frame whose
    ``type_name`` ends with ``boundary`` (or any of them, for a tuple), then
    returns the index of the next frame that does not. Frames above the
    first boundary frame are skipped, which is where the capture helpers
    themselves sit.

    Recursive call sites that re-enter the boundary type are not told
    apart: only the topmost contiguous run of boundary frames is skipped.

    Returns:
        The reverse index of the located frame, or ``FrameIndex.UNDEFINED``
        when the stack is empty, the boundary never shows up, or nothing
        follows it.
    """
    current = len(stack)
    inside_boundary = False

    for location in stack:
        current -= 1

        if location.type_name.endswith(boundary):
            inside_boundary = True
            continue

        if not inside_boundary:
            continue

        return FrameIndex(current)

    return FrameIndex.UNDEFINED


@dataclass
class CapturedFrame:
    """One recorded stack position plus the snapshots attached to it."""

    index: FrameIndex
    location: SourceLocation
    snapshots: list[Snapshot] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.index is None:
            raise ValueError("index is None")
        if self.location is None:
            raise ValueError("location is None")

    def add_snapshot(self, snapshot: Snapshot | None) -> None:
        if snapshot is None:
            return
        self.snapshots.append(snapshot)


def build_frames(raw_stack: Sequence[SourceLocation]) -> list[CapturedFrame]:
    """Wrap a most-recent-first stack into captured frames.

    The first (most recent) location gets the highest index, ``len - 1``,
    and the last one gets ``0``.
    """
    if raw_stack is None:
        raise ValueError("raw_stack is None")

    number = len(raw_stack)
    frames = []
    for location in raw_stack:
        number -= 1
        frames.append(CapturedFrame(FrameIndex(number), location))
    return frames
