# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Interfaces the cleanup engine consumes from the build runner."""

# pylint: disable=too-few-public-methods -- Protocol definitions intentionally expose minimal method surfaces.

from __future__ import annotations

from abc import abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .workspace import BuildContext


@dataclass(slots=True, frozen=True)
class PathEntry:
    """Describe one directory entry returned by :meth:`BuildRunner.list_entries`."""

    path: Path
    is_dir: bool

    @property
    def name(self) -> str:
        """Return the final component of the entry path."""

        return self.path.name


@dataclass(slots=True, frozen=True)
class ProcessOutcome:
    """Exit status and combined output of an external command."""

    exit_code: int
    output: str = ""

    @property
    def succeeded(self) -> bool:
        """Return ``True`` when the process exited with status zero."""

        return self.exit_code == 0


@runtime_checkable
class BuildRunner(Protocol):
    """Services the job runner exposes to the cleanup engine.

    Implementations own the workspace roots; the engine only borrows them to
    list and remove entries.
    """

    @abstractmethod
    def list_entries(self, directory: Path) -> Sequence[PathEntry]:
        """Return the direct children of ``directory``.

        Raises:
            FileNotFoundError: If ``directory`` no longer exists.
        """
        raise NotImplementedError

    @abstractmethod
    def remove(self, path: Path) -> None:
        """Remove ``path`` recursively.

        Raises:
            FileNotFoundError: If ``path`` does not exist.
            OSError: If the path exists but cannot be removed.
        """
        raise NotImplementedError

    @abstractmethod
    def move_aside(self, path: Path, trash: Path) -> Path:
        """Move ``path`` into the ``trash`` directory and return its new location.

        Raises:
            OSError: If the entry cannot be moved.
        """
        raise NotImplementedError

    @abstractmethod
    def run_process(self, args: Sequence[str]) -> ProcessOutcome:
        """Run ``args`` without a shell and return its outcome.

        Raises:
            OSError: If the process cannot be launched.
        """
        raise NotImplementedError

    @abstractmethod
    def get_parent_build(self, context: BuildContext) -> BuildContext | None:
        """Return the matrix parent of ``context``, ``None`` when it is gone."""
        raise NotImplementedError

    @abstractmethod
    def append_to_build_log(self, context: BuildContext, line: str) -> None:
        """Append ``line`` to the build log of ``context``."""
        raise NotImplementedError

    @abstractmethod
    def mark_build_failed(self, context: BuildContext) -> None:
        """Flag ``context`` as failed because of cleanup errors."""
        raise NotImplementedError


__all__ = ["BuildRunner", "PathEntry", "ProcessOutcome"]
