# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Remove selected workspace entries natively or through an external command."""

from __future__ import annotations

import shlex
from collections.abc import Collection, Iterable, Sequence
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from threading import Lock, Thread
from typing import Final
from uuid import uuid4

from .errors import DeletionError, ExternalCommandError
from .interfaces import BuildRunner
from .logging import warn
from .models import PATH_PLACEHOLDER, CleanupSpec
from .workspace import BuildContext

ALREADY_ABSENT: Final[str] = "already absent"
DRY_RUN: Final[str] = "dry run"
LEFT_EMPTY: Final[str] = "left empty"
DEFERRED: Final[str] = "deferred"
TRASH_MARKER: Final[str] = "_ws-cleanup_"


class DeletionStatus(StrEnum):
    """Outcome of processing a single path."""

    DELETED = "deleted"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(slots=True, frozen=True)
class PathResult:
    """Outcome of deleting one path, with command output when one ran."""

    path: Path
    status: DeletionStatus
    reason: str = ""
    output: str = ""
    command: str | None = None

    @property
    def failed(self) -> bool:
        """Return ``True`` when the path could not be removed."""

        return self.status is DeletionStatus.FAILED


def resolve_command(template: str, path: Path) -> tuple[str, list[str]]:
    """Substitute ``path`` into ``template``.

    The placeholder is replaced by plain string substitution in both the
    display line and the argument tokens, so characters such as ``$`` or
    ``\\`` in the path are copied verbatim. The template is tokenised before
    substitution and the path always stays inside a single argument.

    Args:
        template: Command template holding at most one ``%s`` placeholder.
        path: Absolute path of the entry to delete.

    Returns:
        tuple[str, list[str]]: The resolved command line as logged and the
        argument vector to execute.
    """

    target = str(path)
    tokens = shlex.split(template)
    if PATH_PLACEHOLDER not in template:
        return f"{template} {target}", [*tokens, target]
    line = template.replace(PATH_PLACEHOLDER, target, 1)
    args = [token.replace(PATH_PLACEHOLDER, target, 1) for token in tokens]
    return line, args


_DEFERRED_LOCK = Lock()
_DEFERRED: list[Thread] = []


def wait_for_deferred(timeout: float | None = None) -> None:
    """Block until background wipeouts started so far have finished."""

    with _DEFERRED_LOCK:
        pending = list(_DEFERRED)
        _DEFERRED.clear()
    for thread in pending:
        thread.join(timeout)


class DeletionExecutor:
    """Delete planned paths and report a result per path.

    Processing never stops at the first failure; every path gets a result.
    """

    def __init__(self, runner: BuildRunner, *, dry_run: bool = False) -> None:
        self._runner = runner
        self._dry_run = dry_run

    @property
    def dry_run(self) -> bool:
        """Return ``True`` when paths are reported but never removed."""

        return self._dry_run

    def delete(
        self,
        paths: Sequence[Path],
        spec: CleanupSpec,
        *,
        root: Path,
        context: BuildContext,
        whole_tree: bool = False,
        protected: Collection[Path] = (),
    ) -> list[PathResult]:
        """Delete ``paths`` beneath ``root`` according to ``spec``.

        Args:
            paths: Collapsed deletion targets produced by a pattern set.
            spec: Cleanup specification selecting native or external mode.
            root: Workspace root the targets belong to. It is never removed.
            context: Build whose log receives one line per deletion attempt.
            whole_tree: ``True`` when every entry of ``root`` was selected,
                enabling a deferred wipeout in native mode.
            protected: Directories an Exclude rule keeps; never pruned as empty.

        Returns:
            list[PathResult]: One result per target, plus one per directory
            pruned because it was left empty.
        """

        if self._dry_run:
            return [self._report_dry_run(path, context) for path in paths]
        if spec.external_command is not None:
            template = spec.external_command
            results = [self._run_external(path, template, spec, context) for path in paths]
        elif whole_tree and not spec.disable_deferred_wipeout and paths:
            results = self._wipe_deferred(paths, root, context)
        else:
            results = [self._remove(path, context) for path in paths]
        if spec.delete_directories_left_empty:
            deleted = [result.path for result in results if result.status is DeletionStatus.DELETED]
            results.extend(self._prune_empty_parents(deleted, root, context, frozenset(protected)))
        return results

    def record_unlistable(self, directory: Path, reason: str, context: BuildContext) -> PathResult:
        """Report a directory whose contents could not be read as a failed path."""

        return self._failure(DeletionError(directory, f"cannot list directory: {reason}"), context)

    def _report_dry_run(self, path: Path, context: BuildContext) -> PathResult:
        self._runner.append_to_build_log(context, f"DRY RUN: would remove {path}")
        return PathResult(path=path, status=DeletionStatus.SKIPPED, reason=DRY_RUN)

    def _remove(self, path: Path, context: BuildContext, *, reason: str = "") -> PathResult:
        self._runner.append_to_build_log(context, f"Deleting {path}")
        try:
            self._runner.remove(path)
        except FileNotFoundError:
            return PathResult(path=path, status=DeletionStatus.SKIPPED, reason=ALREADY_ABSENT)
        except OSError as exc:
            return self._failure(DeletionError(path, exc.strerror or str(exc)), context)
        return PathResult(path=path, status=DeletionStatus.DELETED, reason=reason)

    def _run_external(self, path: Path, template: str, spec: CleanupSpec, context: BuildContext) -> PathResult:
        line, args = resolve_command(template, path)
        self._runner.append_to_build_log(context, f"Using command: {line}")
        try:
            outcome = self._runner.run_process(args)
        except OSError as exc:
            return self._failure(ExternalCommandError(path, line, None, str(exc)), context)
        if outcome.succeeded:
            return PathResult(path=path, status=DeletionStatus.DELETED, output=outcome.output, command=line)
        if spec.tolerate_missing_targets and not self._present(path):
            return PathResult(
                path=path,
                status=DeletionStatus.SKIPPED,
                reason=ALREADY_ABSENT,
                output=outcome.output,
                command=line,
            )
        return self._failure(ExternalCommandError(path, line, outcome.exit_code, outcome.output), context)

    def _wipe_deferred(self, paths: Sequence[Path], root: Path, context: BuildContext) -> list[PathResult]:
        """Move every entry aside and delete the trash directory in the background."""

        trash = root.parent / f".{root.name}{TRASH_MARKER}{uuid4().hex[:12]}"
        results: list[PathResult] = []
        for path in paths:
            self._runner.append_to_build_log(context, f"Deleting {path} ({DEFERRED})")
            try:
                self._runner.move_aside(path, trash)
            except FileNotFoundError:
                results.append(PathResult(path=path, status=DeletionStatus.SKIPPED, reason=ALREADY_ABSENT))
                continue
            except OSError:
                results.append(self._remove(path, context))
                continue
            results.append(PathResult(path=path, status=DeletionStatus.DELETED, reason=DEFERRED))
        self._dispose_later(trash)
        return results

    def _dispose_later(self, trash: Path) -> None:
        thread = Thread(target=self._dispose, args=(trash,), name=f"wipeout-{trash.name}", daemon=True)
        with _DEFERRED_LOCK:
            _DEFERRED[:] = [pending for pending in _DEFERRED if pending.is_alive()]
            _DEFERRED.append(thread)
        thread.start()

    def _dispose(self, trash: Path) -> None:
        try:
            self._runner.remove(trash)
        except FileNotFoundError:
            return
        except OSError as exc:
            warn(f"Deferred wipeout left {trash} behind: {exc}", use_emoji=True)

    def _prune_empty_parents(
        self,
        deleted: Iterable[Path],
        root: Path,
        context: BuildContext,
        protected: frozenset[Path],
    ) -> list[PathResult]:
        candidates: set[Path] = set()
        for path in deleted:
            for parent in path.parents:
                if parent == root or not parent.is_relative_to(root):
                    break
                if parent not in protected:
                    candidates.add(parent)
        results: list[PathResult] = []
        for directory in sorted(candidates, key=lambda item: len(item.parts), reverse=True):
            try:
                if self._runner.list_entries(directory):
                    continue
            except OSError:
                continue
            results.append(self._remove(directory, context, reason=LEFT_EMPTY))
        return results

    def _present(self, path: Path) -> bool:
        try:
            entries = self._runner.list_entries(path.parent)
        except FileNotFoundError:
            return False
        except OSError:
            return True
        return any(entry.name == path.name for entry in entries)

    def _failure(self, error: DeletionError, context: BuildContext) -> PathResult:
        self._runner.append_to_build_log(context, str(error))
        command = error.command if isinstance(error, ExternalCommandError) else None
        output = error.output if isinstance(error, ExternalCommandError) else ""
        return PathResult(
            path=error.path,
            status=DeletionStatus.FAILED,
            reason=error.reason,
            output=output,
            command=command,
        )


__all__ = [
    "ALREADY_ABSENT",
    "DeletionExecutor",
    "DeletionStatus",
    "PathResult",
    "resolve_command",
    "wait_for_deferred",
]
