# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Build contexts and workspace root aggregation for matrix builds."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from threading import Lock
from typing import Final

from .errors import CleanupStateError
from .interfaces import BuildRunner
from .models import BuildStatus, OutcomeFlags


class MatrixRole(StrEnum):
    """Position of a build inside a matrix (multi-axis) build."""

    NONE = "none"
    PARENT = "parent"
    CHILD = "child"


class BuildPhase(StrEnum):
    """Lifecycle phases a build passes through around cleanup."""

    RUNNING = "running"
    BUILDING = "building"
    TERMINAL = "terminal"
    DONE = "done"


@dataclass(slots=True, eq=False)
class BuildContext:
    """Per-execution view of a build handed to the cleanup engine.

    ``parent_ref`` names the matrix parent of a child build; the parent itself
    is looked up through the runner each time it is needed.
    """

    name: str
    workspace_root: Path
    matrix_role: MatrixRole = MatrixRole.NONE
    parent_ref: str | None = None
    terminal_status: BuildStatus | None = None
    parameters: Mapping[str, str] = field(default_factory=dict)
    phase: BuildPhase = BuildPhase.RUNNING
    _lock: Lock = field(default_factory=Lock, repr=False)

    def __post_init__(self) -> None:
        if self.matrix_role is MatrixRole.CHILD and not self.parent_ref:
            raise ValueError(f"matrix child build '{self.name}' requires a parent reference")
        if self.terminal_status is not None and self.phase is BuildPhase.RUNNING:
            self.phase = BuildPhase.TERMINAL

    def start_build(self) -> None:
        """Move from the pre-build phase into build step execution."""

        with self._lock:
            if self.phase is not BuildPhase.RUNNING:
                raise CleanupStateError(f"build '{self.name}' cannot start from phase '{self.phase}'")
            self.phase = BuildPhase.BUILDING

    def finish(self, status: BuildStatus) -> None:
        """Record the terminal ``status`` of the build.

        Raises:
            CleanupStateError: If post-build cleanup already ran.
        """

        with self._lock:
            if self.phase is BuildPhase.DONE:
                raise CleanupStateError(f"build '{self.name}' already completed its cleanup")
            self.terminal_status = status
            self.phase = BuildPhase.TERMINAL

    def claim_post_build(self) -> bool:
        """Atomically mark post-build cleanup as taken.

        Returns:
            bool: ``False`` when cleanup already ran for this context.

        Raises:
            CleanupStateError: If the build has not reached a terminal status.
        """

        with self._lock:
            if self.phase is BuildPhase.DONE:
                return False
            if self.phase is not BuildPhase.TERMINAL or self.terminal_status is None:
                raise CleanupStateError(f"build '{self.name}' has no terminal status yet")
            self.phase = BuildPhase.DONE
            return True


RootResolver = Callable[[BuildContext, OutcomeFlags, BuildRunner], list[Path]]


def _own_root(context: BuildContext, _flags: OutcomeFlags, _runner: BuildRunner) -> list[Path]:
    return [context.workspace_root]


def _child_roots(context: BuildContext, flags: OutcomeFlags, runner: BuildRunner) -> list[Path]:
    roots = [context.workspace_root]
    if not flags.cleanup_matrix_parent:
        return roots
    parent = runner.get_parent_build(context)
    if parent is not None:
        roots.append(parent.workspace_root)
    return roots


_RESOLVERS: Final[dict[MatrixRole, RootResolver]] = {
    MatrixRole.NONE: _own_root,
    MatrixRole.PARENT: _own_root,
    MatrixRole.CHILD: _child_roots,
}


class WorkspaceAggregator:
    """Resolve the workspace roots a post-build cleanup must process."""

    def __init__(self, runner: BuildRunner) -> None:
        self._runner = runner

    def roots(self, context: BuildContext, flags: OutcomeFlags) -> list[Path]:
        """Return the ordered, de-duplicated roots for ``context``.

        Args:
            context: Build whose cleanup is being resolved.
            flags: Outcome flags; only ``cleanup_matrix_parent`` is consulted.

        Returns:
            list[Path]: The build's own root first, followed by the matrix
            parent's root when a child is configured to clean it.
        """

        resolver = _RESOLVERS[context.matrix_role]
        ordered: list[Path] = []
        seen: set[Path] = set()
        for root in resolver(context, flags, self._runner):
            key = root.absolute()
            if key in seen:
                continue
            seen.add(key)
            ordered.append(root)
        return ordered


__all__ = ["BuildContext", "BuildPhase", "MatrixRole", "WorkspaceAggregator"]
