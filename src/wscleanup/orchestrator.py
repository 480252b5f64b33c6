# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Compose pattern selection, deletion, policy and aggregation per build phase."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import StrEnum
from itertools import repeat
from pathlib import Path

from .errors import PreBuildCleanupError
from .executor import DeletionExecutor, DeletionStatus, PathResult
from .interfaces import BuildRunner
from .logging import ok, warn
from .models import CleanupSpec, OutcomeFlags
from .patterns import PatternSet
from .policy import parameter_enabled, should_clean
from .runner import LocalBuildRunner
from .workspace import BuildContext, BuildPhase, WorkspaceAggregator


class CleanupPhase(StrEnum):
    """Lifecycle point a cleanup ran at."""

    PRE_BUILD = "pre-build"
    POST_BUILD = "post-build"


@dataclass(slots=True)
class RootResult:
    """Per-root outcome of a cleanup run."""

    root: Path
    results: list[PathResult] = field(default_factory=list)
    missing: bool = False

    @property
    def failures(self) -> list[PathResult]:
        """Return the results of paths that could not be removed."""

        return [result for result in self.results if result.failed]


@dataclass(slots=True)
class CleanupResult:
    """Aggregate outcome of one cleanup invocation."""

    phase: CleanupPhase
    roots: list[RootResult] = field(default_factory=list)
    skipped_reason: str | None = None
    build_failed: bool = False

    @property
    def ran(self) -> bool:
        """Return ``True`` when the cleanup was not gated off."""

        return self.skipped_reason is None

    @property
    def results(self) -> list[PathResult]:
        """Return every per-path result across all roots."""

        return [result for root in self.roots for result in root.results]

    @property
    def paths(self) -> list[Path]:
        """Return every path the run processed, in root order."""

        return [result.path for result in self.results]

    @property
    def failures(self) -> list[PathResult]:
        """Return every failed per-path result across all roots."""

        return [result for root in self.roots for result in root.failures]

    @property
    def removed(self) -> list[Path]:
        """Return the paths deleted during the run."""

        return [result.path for result in self.results if result.status is DeletionStatus.DELETED]

    @property
    def ok(self) -> bool:
        """Return ``True`` when no path failed."""

        return not self.failures


class CleanupOrchestrator:
    """Run cleanup at the pre-build and post-build points of a build."""

    def __init__(
        self,
        runner: BuildRunner,
        *,
        dry_run: bool = False,
        max_workers: int = 1,
        use_emoji: bool = True,
    ) -> None:
        """Bind the orchestrator to a runner.

        Args:
            runner: Build runner services used for listing, deleting and logging.
            dry_run: When ``True`` report what would be removed without removing it.
            max_workers: Number of roots processed concurrently in post-build runs.
            use_emoji: Whether console summaries include emoji glyphs.
        """

        self._runner = runner
        self._executor = DeletionExecutor(runner, dry_run=dry_run)
        self._aggregator = WorkspaceAggregator(runner)
        self._max_workers = max(1, max_workers)
        self._use_emoji = use_emoji

    def run_pre_build_cleanup(self, spec: CleanupSpec, context: BuildContext) -> CleanupResult:
        """Clean the build's own root before any build step runs.

        Args:
            spec: Cleanup specification to apply.
            context: Build about to start.

        Returns:
            CleanupResult: Result for the single workspace root. ``skipped_reason``
            is set when the build parameter named by ``spec.cleanup_parameter``
            is not ``true``.

        Raises:
            PreBuildCleanupError: If any path failed; the build is marked failed
                first, since it must not run on a partially cleaned workspace.
        """

        result = CleanupResult(phase=CleanupPhase.PRE_BUILD)
        if not parameter_enabled(spec.cleanup_parameter, context.parameters):
            result.skipped_reason = f"build parameter '{spec.cleanup_parameter}' is not true"
            self._runner.append_to_build_log(context, f"Workspace cleanup skipped: {result.skipped_reason}")
            if context.phase is BuildPhase.RUNNING:
                context.start_build()
            return result
        result.roots.append(self._clean_root(context.workspace_root, spec, context))
        if context.phase is BuildPhase.RUNNING:
            context.start_build()
        if result.failures:
            result.build_failed = True
            self._runner.mark_build_failed(context)
            self._report_failures(result, context)
            raise PreBuildCleanupError(result)
        self._summarise(result, context)
        return result

    def run_post_build_cleanup(
        self,
        spec: CleanupSpec,
        flags: OutcomeFlags | None,
        context: BuildContext,
    ) -> CleanupResult:
        """Clean every root resolved for a finished build when the policy allows it.

        Args:
            spec: Cleanup specification to apply.
            flags: Outcome flags gating the run; ``None`` disables cleanup.
            context: Build that reached a terminal status.

        Returns:
            CleanupResult: Aggregated result, with ``skipped_reason`` set when
            the policy or a previous run prevented cleanup.

        Raises:
            CleanupStateError: If the build has no terminal status yet.
        """

        result = CleanupResult(phase=CleanupPhase.POST_BUILD)
        if not context.claim_post_build():
            result.skipped_reason = "cleanup already ran for this build"
            return result
        status = context.terminal_status
        if flags is None or status is None or not should_clean(status, flags):
            result.skipped_reason = f"cleanup not configured for status '{status}'"
            return result

        roots = self._aggregator.roots(context, flags)
        if self._max_workers > 1 and len(roots) > 1:
            with ThreadPoolExecutor(max_workers=self._max_workers) as pool:
                result.roots.extend(pool.map(self._clean_root, roots, repeat(spec), repeat(context)))
        else:
            result.roots.extend(self._clean_root(root, spec, context) for root in roots)

        if result.failures:
            self._report_failures(result, context)
            if flags.fail_build_on_cleanup_error:
                result.build_failed = True
                self._runner.mark_build_failed(context)
        else:
            self._summarise(result, context)
        return result

    def _clean_root(self, root: Path, spec: CleanupSpec, context: BuildContext) -> RootResult:
        """Select and delete entries beneath a single root.

        A root that is already gone, or cannot be reached, counts as clean.
        Subdirectories that cannot be listed are reported as failed paths
        while the rest of the root is still processed.
        """

        root = root.absolute()
        try:
            self._runner.list_entries(root)
        except FileNotFoundError:
            self._runner.append_to_build_log(context, f"Workspace {root} is already gone; nothing to clean")
            return RootResult(root=root, missing=True)
        except OSError as exc:
            reason = exc.strerror or str(exc)
            self._runner.append_to_build_log(context, f"Workspace {root} is unreachable ({reason}); nothing to clean")
            return RootResult(root=root, missing=True)
        patterns = PatternSet(spec.patterns)
        selection = patterns.scan(root, self._runner)
        results = [
            self._executor.record_unlistable(directory, reason, context)
            for directory, reason in selection.unlistable
        ]
        results.extend(
            self._executor.delete(
                selection.targets,
                spec,
                root=root,
                context=context,
                whole_tree=patterns.is_whole_tree_wipe and selection.complete,
                protected=selection.protected,
            )
        )
        return RootResult(root=root, results=results)

    def _summarise(self, result: CleanupResult, context: BuildContext) -> None:
        if self._executor.dry_run:
            line = f"Dry run complete; {len(result.results)} paths would be removed"
        else:
            line = f"Removed {len(result.removed)} paths"
        self._runner.append_to_build_log(context, line)
        ok(f"{context.name}: {line}", use_emoji=self._use_emoji)

    def _report_failures(self, result: CleanupResult, context: BuildContext) -> None:
        failures = result.failures
        line = f"Cleanup failed for {len(failures)} path(s)"
        self._runner.append_to_build_log(context, line)
        warn(f"{context.name}: {line}", use_emoji=self._use_emoji)
        for failure in failures:
            warn(f"  {failure.path}: {failure.reason}", use_emoji=self._use_emoji)


def run_pre_build_cleanup(
    spec: CleanupSpec,
    context: BuildContext,
    *,
    runner: BuildRunner | None = None,
) -> CleanupResult:
    """Run pre-build cleanup for ``context`` using ``runner`` or the local filesystem."""

    return CleanupOrchestrator(runner or LocalBuildRunner()).run_pre_build_cleanup(spec, context)


def run_post_build_cleanup(
    spec: CleanupSpec,
    flags: OutcomeFlags | None,
    context: BuildContext,
    *,
    runner: BuildRunner | None = None,
) -> CleanupResult:
    """Run post-build cleanup for ``context`` using ``runner`` or the local filesystem."""

    return CleanupOrchestrator(runner or LocalBuildRunner()).run_post_build_cleanup(spec, flags, context)


__all__ = [
    "CleanupOrchestrator",
    "CleanupPhase",
    "CleanupResult",
    "RootResult",
    "run_post_build_cleanup",
    "run_pre_build_cleanup",
]
