from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True)
class MegaprompterError(Exception):
    """Base exception for errors raised by the megaprompter tools."""

    def __str__(self) -> str:
        return getattr(self, "message", super().__str__())


@dataclass(frozen=True)
class NotADirectoryTargetError(MegaprompterError):
    """Raised when the target path does not exist or is not a directory."""

    path: Path
    message: str = "Target path is not a directory."


@dataclass(frozen=True)
class NotACodeProjectError(MegaprompterError):
    """Raised when a directory shows no sign of being a code project."""

    path: Path
    evidence: list[str] = field(default_factory=list)
    message: str = "Safety stop: This directory does not appear to be a code project."


@dataclass(frozen=True)
class ArtifactWriteError(MegaprompterError):
    """Raised when an artifact file could not be written or came out empty."""

    path: Path
    reason: str = ""
    message: str = "Failed to write artifact."


@dataclass(frozen=True)
class ConflictingModeError(MegaprompterError):
    """Raised when mutually exclusive modes are requested together (or none is)."""

    message: str = "Exactly one of --create or --get must be given."
