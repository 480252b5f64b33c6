# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Tests for build contexts and workspace root aggregation."""

from __future__ import annotations

from pathlib import Path

import pytest

from wscleanup.errors import CleanupStateError
from wscleanup.models import BuildStatus, OutcomeFlags
from wscleanup.runner import LocalBuildRunner
from wscleanup.workspace import BuildContext, BuildPhase, MatrixRole, WorkspaceAggregator


def _matrix(runner: LocalBuildRunner, tmp_path: Path) -> tuple[BuildContext, BuildContext]:
    parent = runner.register(
        BuildContext(name="matrix", workspace_root=tmp_path / "parent", matrix_role=MatrixRole.PARENT)
    )
    child = runner.register(
        BuildContext(
            name="matrix/axis=a",
            workspace_root=tmp_path / "child",
            matrix_role=MatrixRole.CHILD,
            parent_ref="matrix",
        )
    )
    return parent, child


def test_plain_build_cleans_its_own_root(tmp_path: Path, runner: LocalBuildRunner) -> None:
    context = BuildContext(name="job", workspace_root=tmp_path)

    assert WorkspaceAggregator(runner).roots(context, OutcomeFlags.always(cleanup_matrix_parent=True)) == [tmp_path]


def test_matrix_parent_cleans_only_its_own_root(tmp_path: Path, runner: LocalBuildRunner) -> None:
    parent, _child = _matrix(runner, tmp_path)

    roots = WorkspaceAggregator(runner).roots(parent, OutcomeFlags(cleanup_matrix_parent=True))

    assert roots == [tmp_path / "parent"]


def test_matrix_child_adds_parent_root_when_enabled(tmp_path: Path, runner: LocalBuildRunner) -> None:
    _parent, child = _matrix(runner, tmp_path)
    aggregator = WorkspaceAggregator(runner)

    assert aggregator.roots(child, OutcomeFlags()) == [tmp_path / "child"]
    assert aggregator.roots(child, OutcomeFlags(cleanup_matrix_parent=True)) == [
        tmp_path / "child",
        tmp_path / "parent",
    ]


def test_parent_is_resolved_when_roots_are_requested(tmp_path: Path, runner: LocalBuildRunner) -> None:
    _parent, child = _matrix(runner, tmp_path)
    aggregator = WorkspaceAggregator(runner)
    flags = OutcomeFlags(cleanup_matrix_parent=True)

    runner.unregister("matrix")
    assert aggregator.roots(child, flags) == [tmp_path / "child"]

    runner.register(BuildContext(name="matrix", workspace_root=tmp_path / "moved", matrix_role=MatrixRole.PARENT))
    assert aggregator.roots(child, flags) == [tmp_path / "child", tmp_path / "moved"]


def test_shared_root_is_listed_once(tmp_path: Path, runner: LocalBuildRunner) -> None:
    runner.register(BuildContext(name="matrix", workspace_root=tmp_path, matrix_role=MatrixRole.PARENT))
    child = BuildContext(name="cell", workspace_root=tmp_path, matrix_role=MatrixRole.CHILD, parent_ref="matrix")

    assert WorkspaceAggregator(runner).roots(child, OutcomeFlags(cleanup_matrix_parent=True)) == [tmp_path]


def test_child_requires_parent_reference(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="requires a parent reference"):
        BuildContext(name="cell", workspace_root=tmp_path, matrix_role=MatrixRole.CHILD)


def test_context_phase_transitions(tmp_path: Path) -> None:
    context = BuildContext(name="job", workspace_root=tmp_path)
    assert context.phase is BuildPhase.RUNNING

    context.start_build()
    assert context.phase is BuildPhase.BUILDING
    with pytest.raises(CleanupStateError):
        context.start_build()

    context.finish(BuildStatus.SUCCESS)
    assert context.phase is BuildPhase.TERMINAL
    assert context.claim_post_build()
    assert context.phase is BuildPhase.DONE
    assert not context.claim_post_build()
    with pytest.raises(CleanupStateError):
        context.finish(BuildStatus.FAILURE)


def test_claim_requires_terminal_status(tmp_path: Path) -> None:
    context = BuildContext(name="job", workspace_root=tmp_path)

    with pytest.raises(CleanupStateError, match="no terminal status"):
        context.claim_post_build()


def test_terminal_status_at_construction_skips_to_terminal(tmp_path: Path) -> None:
    context = BuildContext(name="job", workspace_root=tmp_path, terminal_status=BuildStatus.ABORTED)

    assert context.phase is BuildPhase.TERMINAL
