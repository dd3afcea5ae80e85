"""
Custom exception types used across stash-lens.

Defining explicit error classes makes it easier for the CLI and higher
layers to distinguish between "git reported an error", "git could not be
started at all" and "git answered with something we cannot read".
"""

from __future__ import annotations

from typing import Optional, Sequence


class StashLensError(Exception):
    """Base class for all stash-lens specific errors."""


class ConfigError(StashLensError):
    """Raised when a configuration value is not recognized."""


class ProcessFailure(StashLensError):
    """
    Raised when an external command exits with a non-zero status.

    The captured streams are kept verbatim so callers can log or show
    them without re-running the command.
    """

    def __init__(self, exit_code: int, stderr: str, stdout: str = "") -> None:
        self.exit_code = exit_code
        self.stderr = stderr
        self.stdout = stdout
        super().__init__(f"{stderr}{stdout}".strip() or f"exit code {exit_code}")

    @property
    def is_launch_failure(self) -> bool:
        return False


class LaunchFailure(ProcessFailure):
    """Raised when the command could not be started (missing binary, permissions)."""

    def __init__(self, message: str) -> None:
        super().__init__(-1, f"[launch] {message}")

    @property
    def is_launch_failure(self) -> bool:
        return True


class StashParseError(StashLensError):
    """
    Raised when git output does not have the expected structure.

    For stash listings, ``records`` holds the well-formed entries that
    were parsed from the same output, so one bad record does not hide
    the others.
    """

    def __init__(
        self,
        message: str,
        raw: Optional[Sequence[str]] = None,
        records: Optional[Sequence[object]] = None,
    ) -> None:
        super().__init__(message)
        self.raw = list(raw or [])
        self.records = list(records or [])


class StashFilesError(StashLensError):
    """Raised when the file list of a stash could not be fetched."""


class UnsupportedOperationError(StashLensError):
    """Raised when a requested operation does not apply to the given entity."""


class UnsupportedFileKindError(UnsupportedOperationError):
    """Raised when content cannot be resolved for a file-change kind or side."""
