"""The wrapped failure exception and its adoption rules."""

from __future__ import annotations

import sys
import threading
import uuid
from collections.abc import Mapping, Sequence
from typing import Any, ClassVar, NamedTuple

from .capture import current_stack, qualified_name, stack_from_traceback
from .config import FailureConfig
from .frames import (
    CapturedFrame,
    FrameIndex,
    Snapshot,
    SourceLocation,
    build_frames,
    locate_boundary_frame,
)
from .output import format_frames, format_header
from .serialize import safe_str

_MASK32 = (1 << 32) - 1
_MASK64 = (1 << 64) - 1
_INT32_MIN = -(1 << 31)
_INT32_MAX = (1 << 31) - 1


class CauseInfo(NamedTuple):
    type_name: str
    message: str | None


def _fold_uuid(value: uuid.UUID) -> int:
    """Fold a 128-bit UUID into a signed 32-bit integer."""
    bits = value.int
    hilo = (bits >> 64) ^ (bits & _MASK64)
    folded = ((hilo >> 32) ^ hilo) & _MASK32
    if folded > _INT32_MAX:
        folded -= 1 << 32
    return folded


def token_for(failure_id: uuid.UUID) -> int:
    """Return the non-negative diagnostic token for a failure id."""
    folded = _fold_uuid(failure_id)
    if folded == _INT32_MIN:
        folded = _INT32_MAX
    return abs(folded)


def _exception_message(exc: BaseException) -> str | None:
    try:
        text = str(exc)
    except Exception:
        text = f"<unprintable {type(exc).__name__}>"
    return text or None


class WrappedFailure(Exception):
    """An unexpected failure carrying its stack and attached snapshots.

    Code that catches any exception adopts it, attaches the values it knows
    about while the failure travels up the stack, and re-raises::

        try:
            load(path)
        except Exception as e:
            failure = WrappedFailure.adopt(e)
            failure.attach("path", path)
            raise failure from e

    Snapshots land on the frame of the code calling ``attach``, so each
    level of the call chain annotates its own line of the rendered trace.
    Adopting a failure again on the thread that created it returns the same
    instance; adopting it on another thread starts a new failure that
    carries the first one's rendering as its message.

    ``str()`` gives the one-line summary, ``render()`` the full trace.
    Instances are not safe for concurrent mutation.
    """

    config: ClassVar[FailureConfig] = FailureConfig.from_env()

    def __init__(
        self,
        message: str | None = None,
        *,
        stack: Sequence[SourceLocation] | None = None,
    ) -> None:
        if message is None:
            super().__init__()
        else:
            super().__init__(message)
        self.message = message
        self.failure_id = uuid.uuid4()
        self.thread_id = threading.get_ident()
        self.cause_type_name: str | None = None
        self.cause_message: str | None = None
        if stack is None:
            # Start at whoever called __init__
            stack = current_stack(skip=1)
        self._frames: list[CapturedFrame] = build_frames(stack)

    @classmethod
    def wrap(cls, exc: BaseException) -> WrappedFailure:
        """Wrap a foreign exception, keeping the stack it was raised with."""
        failure = cls(stack=stack_from_traceback(exc.__traceback__))
        failure.cause_type_name = qualified_name(type(exc))
        failure.cause_message = _exception_message(exc)
        return failure

    @classmethod
    def _from_other_thread(cls, other: WrappedFailure) -> WrappedFailure:
        failure = cls(f"[Cause failure: {other.render()}]")
        failure.cause_type_name = other.cause_type_name
        failure.cause_message = other.cause_message

        # Drop our own adoption frames, keep the adopting caller and below
        own_stack = [frame.location for frame in failure._frames]
        failure._prune_to(locate_boundary_frame(own_stack, failure._boundary_names()))
        return failure

    @classmethod
    def adopt(cls, failure: BaseException | None) -> WrappedFailure:
        """Convert any exception into a wrapped failure.

        * ``None`` gives a fresh failure without a message.
        * A wrapped failure created on the calling thread is returned as is.
        * A wrapped failure from another thread becomes a new failure rooted
          at the caller's stack.
        * Anything else is wrapped with its own traceback.
        """
        if failure is None:
            # Caller bug upstream; still must not raise here
            return cls()

        if isinstance(failure, WrappedFailure):
            if failure.thread_id == threading.get_ident():
                return failure
            return cls._from_other_thread(failure)

        return cls.wrap(failure)

    @property
    def frames(self) -> tuple[CapturedFrame, ...]:
        """Captured frames, most recent first."""
        return tuple(self._frames)

    @property
    def cause_info(self) -> CauseInfo | None:
        if self.cause_type_name is None:
            return None
        return CauseInfo(self.cause_type_name, self.cause_message)

    @property
    def diagnostic_token(self) -> int:
        """Stable non-negative number safe to show to end users."""
        return token_for(self.failure_id)

    def _boundary_names(self) -> tuple[str, ...]:
        return tuple(
            qualified_name(klass)
            for klass in type(self).__mro__
            if isinstance(klass, type) and issubclass(klass, WrappedFailure)
        )

    def _warn(self, text: str) -> None:
        if self.config.debug:
            sys.stderr.write(f"framesnap: {text}\n")

    def _prune_to(self, index: FrameIndex) -> None:
        if index.is_undefined:
            return
        if not any(frame.index == index for frame in self._frames):
            return
        while self._frames[0].index != index:
            del self._frames[0]

    def _attach_at(self, index: FrameIndex, snapshot: Snapshot) -> None:
        if not self._frames:
            return

        # Linear search is fine, stacks are short
        if not index.is_undefined:
            for frame in self._frames:
                if frame.index == index:
                    frame.add_snapshot(snapshot)
                    return

        # Oldest frames are the first to be cut from the rendering
        self._frames[0].add_snapshot(snapshot)

    def attach(self, name: str, value: Any) -> None:
        """Attach ``name=value`` to the frame of the calling code.

        Falls back to the most recent frame when the caller's frame is not
        part of this failure's stack. Does nothing on a failure without
        frames and never raises.
        """
        if not self._frames:
            return
        try:
            snapshot = Snapshot(name, safe_str(value, self.config))
            index = locate_boundary_frame(current_stack(), self._boundary_names())
            self._attach_at(index, snapshot)
        except Exception as e:
            self._warn(f"attach failed for {name!r}: {e!r}")

    def attach_all(self, values: Mapping[str, Any]) -> None:
        """Attach several values to the calling frame, in mapping order."""
        for name, value in values.items():
            self.attach(name, value)

    def summary(self) -> str:
        """One-line header: token, thread, message and cause."""
        try:
            return format_header(
                self.diagnostic_token,
                self.thread_id,
                self.message,
                self.cause_type_name,
                self.cause_message,
            )
        except Exception as e:
            self._warn(f"summary failed: {e!r}")
            return f"failed to summarize {type(self).__name__}: {e!r}"

    def render(self, config: FailureConfig | None = None) -> str:
        """Full diagnostic text: summary line plus the capped frame list."""
        cfg = config or self.config
        try:
            header = f"{qualified_name(type(self))}: {self.summary()}\n"
            return header + format_frames(self._frames, cfg.max_frames)
        except Exception as e:
            self._warn(f"render failed: {e!r}")
            return f"failed to render {type(self).__name__}: {e!r}"

    def __str__(self) -> str:
        return self.summary()


adopt = WrappedFailure.adopt
