"""Configuration dataclass for failure rendering and snapshot values."""

from __future__ import annotations

import os
import re
import sys
from dataclasses import dataclass, field
from re import Pattern

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class FailureConfig:
    """Configuration for snapshot stringification and failure rendering.

    ``redact`` patterns are compiled once here, so a broken pattern is
    reported when the config is built rather than while a failure is
    being annotated.
    """

    max_frames: int = 32
    max_value_len: int = 500
    redact: tuple[str | Pattern[str], ...] = field(default_factory=tuple)
    debug: bool = False
    redactors: tuple[Pattern[str], ...] = field(
        init=False, repr=False, compare=False, default=()
    )

    def __post_init__(self) -> None:
        if self.max_frames < 1:
            raise ValueError("max_frames must be at least 1")
        if self.max_value_len < 16:
            raise ValueError("max_value_len must be at least 16")
        compiled = []
        for pattern in self.redact:
            if not isinstance(pattern, str):
                compiled.append(pattern)
                continue
            try:
                compiled.append(re.compile(pattern))
            except re.error as e:
                raise ValueError(f"invalid redact pattern {pattern!r}: {e}") from None
        object.__setattr__(self, "redactors", tuple(compiled))

    @classmethod
    def from_env(cls) -> FailureConfig:
        """Build a config from FRAMESNAP_* environment variables.

        An unusable FRAMESNAP_MAX_FRAMES falls back to the default cap, so a
        bad environment never breaks importing the package.
        """
        debug = os.getenv("FRAMESNAP_DEBUG", "").lower() in _TRUTHY
        raw_frames = os.getenv("FRAMESNAP_MAX_FRAMES", "").strip()
        if not raw_frames:
            return cls(debug=debug)
        try:
            return cls(max_frames=int(raw_frames), debug=debug)
        except ValueError:
            if debug:
                sys.stderr.write(
                    f"framesnap: ignoring FRAMESNAP_MAX_FRAMES={raw_frames!r}\n"
                )
            return cls(debug=debug)
