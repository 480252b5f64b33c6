# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Exception hierarchy shared by the cleanup engine."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .orchestrator import CleanupResult


class CleanupError(Exception):
    """Base class for every error raised by :mod:`wscleanup`."""


class ConfigError(CleanupError):
    """Raised when cleanup configuration is invalid.

    Malformed globs and command templates are rejected here, before any build
    touches the filesystem.
    """


class CleanupStateError(CleanupError):
    """Raised when a cleanup phase is requested from the wrong build phase."""


class DeletionError(CleanupError):
    """Describe a single path that could not be removed."""

    def __init__(self, path: Path, reason: str) -> None:
        """Initialise the error with the failing ``path`` and a ``reason``.

        Args:
            path: Filesystem path that could not be removed.
            reason: Human-readable explanation of the failure.
        """

        super().__init__(f"Cannot delete {path}: {reason}")
        self.path = path
        self.reason = reason


class ExternalCommandError(DeletionError):
    """Raised when an external delete command fails to launch or exits non-zero."""

    def __init__(self, path: Path, command: str, exit_code: int | None, output: str = "") -> None:
        """Initialise the error with command metadata.

        Args:
            path: Target path handed to the command.
            command: Resolved command line that was executed.
            exit_code: Exit status, ``None`` when the process never started.
            output: Combined stdout/stderr captured from the process.
        """

        reason = "command could not be launched" if exit_code is None else f"command exited with status {exit_code}"
        super().__init__(path, reason)
        self.command = command
        self.exit_code = exit_code
        self.output = output


class PreBuildCleanupError(CleanupError):
    """Raised when pre-build cleanup leaves the workspace in an unreliable state."""

    def __init__(self, result: CleanupResult) -> None:
        """Initialise the error with the failing cleanup ``result``.

        Args:
            result: Aggregated cleanup result containing the failures.
        """

        failures = result.failures
        super().__init__(f"Pre-build cleanup failed for {len(failures)} path(s)")
        self.result = result


__all__ = [
    "CleanupError",
    "CleanupStateError",
    "ConfigError",
    "DeletionError",
    "ExternalCommandError",
    "PreBuildCleanupError",
]
