# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Tests for native and external-command deletion."""

from __future__ import annotations

from pathlib import Path

import pytest

from tests.helpers.runners import RefusingRunner
from tests.helpers.workspace import listing, populate
from wscleanup import executor as executor_module
from wscleanup.executor import (
    ALREADY_ABSENT,
    DeletionExecutor,
    DeletionStatus,
    resolve_command,
    wait_for_deferred,
)
from wscleanup.models import CleanupSpec
from wscleanup.runner import LocalBuildRunner
from wscleanup.workspace import BuildContext


@pytest.fixture
def context(workspace: Path) -> BuildContext:
    return BuildContext(name="job", workspace_root=workspace)


def test_native_delete_removes_targets_and_logs(
    workspace: Path, runner: LocalBuildRunner, context: BuildContext
) -> None:
    populate(workspace, "a.txt", "build/out.o", "keep.txt")
    targets = [workspace / "a.txt", workspace / "build"]

    results = DeletionExecutor(runner).delete(targets, CleanupSpec(), root=workspace, context=context)

    assert [result.status for result in results] == [DeletionStatus.DELETED, DeletionStatus.DELETED]
    assert listing(workspace) == {"keep.txt"}
    assert runner.log_lines(context) == [f"Deleting {workspace / 'a.txt'}", f"Deleting {workspace / 'build'}"]


def test_already_absent_path_is_skipped(workspace: Path, runner: LocalBuildRunner, context: BuildContext) -> None:
    results = DeletionExecutor(runner).delete([workspace / "ghost"], CleanupSpec(), root=workspace, context=context)

    assert results[0].status is DeletionStatus.SKIPPED
    assert results[0].reason == ALREADY_ABSENT
    assert not results[0].failed


def test_failure_does_not_stop_remaining_paths(workspace: Path, context: BuildContext) -> None:
    populate(workspace, "a.txt", "b.txt", "c.txt")
    runner = RefusingRunner(workspace / "b.txt")
    targets = [workspace / name for name in ("a.txt", "b.txt", "c.txt")]

    results = DeletionExecutor(runner).delete(targets, CleanupSpec(), root=workspace, context=context)

    assert [result.status for result in results] == [
        DeletionStatus.DELETED,
        DeletionStatus.FAILED,
        DeletionStatus.DELETED,
    ]
    assert results[1].reason == "Permission denied"
    assert listing(workspace) == {"b.txt"}
    assert f"Cannot delete {workspace / 'b.txt'}: Permission denied" in runner.log_lines(context)


def test_dry_run_reports_without_removing(workspace: Path, runner: LocalBuildRunner, context: BuildContext) -> None:
    populate(workspace, "a.txt")

    executor = DeletionExecutor(runner, dry_run=True)
    results = executor.delete([workspace / "a.txt"], CleanupSpec(), root=workspace, context=context)

    assert executor.dry_run
    assert results[0].status is DeletionStatus.SKIPPED
    assert listing(workspace) == {"a.txt"}
    assert runner.log_lines(context) == [f"DRY RUN: would remove {workspace / 'a.txt'}"]


def test_external_command_receives_special_characters_verbatim(
    workspace: Path, runner: LocalBuildRunner, context: BuildContext
) -> None:
    name = "\\s! Dozen for 5$ only!"
    populate(workspace, name, "other.txt")
    target = workspace / name
    spec = CleanupSpec(external_command="rm %s")

    results = DeletionExecutor(runner).delete([target], spec, root=workspace, context=context)

    assert results[0].status is DeletionStatus.DELETED
    assert results[0].command == f"rm {target}"
    assert listing(workspace) == {"other.txt"}
    assert runner.log_lines(context) == [f"Using command: rm {target}"]


def test_external_command_without_placeholder_appends_path(
    workspace: Path, runner: LocalBuildRunner, context: BuildContext
) -> None:
    populate(workspace, "a.txt")
    spec = CleanupSpec(external_command="rm -f")

    results = DeletionExecutor(runner).delete([workspace / "a.txt"], spec, root=workspace, context=context)

    assert results[0].status is DeletionStatus.DELETED
    assert listing(workspace) == set()
    assert runner.log_lines(context) == [f"Using command: rm -f {workspace / 'a.txt'}"]


def test_failing_command_reports_exit_status_and_output(
    workspace: Path, runner: LocalBuildRunner, context: BuildContext
) -> None:
    populate(workspace, "a.txt")
    target = workspace / "a.txt"
    spec = CleanupSpec(external_command="sh -c 'echo refusing %s; exit 3'")

    results = DeletionExecutor(runner).delete([target], spec, root=workspace, context=context)

    assert results[0].status is DeletionStatus.FAILED
    assert results[0].reason == "command exited with status 3"
    assert results[0].output.strip() == f"refusing {target}"
    assert listing(workspace) == {"a.txt"}


def test_failing_command_on_absent_target_is_tolerated(
    workspace: Path, runner: LocalBuildRunner, context: BuildContext
) -> None:
    spec = CleanupSpec(external_command="rm %s")

    results = DeletionExecutor(runner).delete([workspace / "ghost"], spec, root=workspace, context=context)

    assert results[0].status is DeletionStatus.SKIPPED
    assert results[0].reason == ALREADY_ABSENT


def test_absent_target_fails_when_tolerance_disabled(
    workspace: Path, runner: LocalBuildRunner, context: BuildContext
) -> None:
    spec = CleanupSpec(external_command="rm %s", tolerate_missing_targets=False)

    results = DeletionExecutor(runner).delete([workspace / "ghost"], spec, root=workspace, context=context)

    assert results[0].failed
    assert results[0].reason.startswith("command exited with status")


def test_unknown_command_fails_to_launch(workspace: Path, runner: LocalBuildRunner, context: BuildContext) -> None:
    populate(workspace, "a.txt")
    spec = CleanupSpec(external_command="wscleanup-no-such-tool %s")

    results = DeletionExecutor(runner).delete([workspace / "a.txt"], spec, root=workspace, context=context)

    assert results[0].failed
    assert results[0].reason == "command could not be launched"
    assert listing(workspace) == {"a.txt"}


def test_directories_left_empty_are_pruned(workspace: Path, runner: LocalBuildRunner, context: BuildContext) -> None:
    populate(workspace, "a/b/c.txt", "a/d/e.txt", "x/y.txt", "x/z.txt")
    spec = CleanupSpec(delete_directories_left_empty=True)
    targets = [workspace / "a/b/c.txt", workspace / "a/d/e.txt", workspace / "x/y.txt"]

    results = DeletionExecutor(runner).delete(targets, spec, root=workspace, context=context)

    assert listing(workspace) == {"x", "x/z.txt"}
    pruned = {result.path for result in results if result.reason == "left empty"}
    assert pruned == {workspace / "a", workspace / "a/b", workspace / "a/d"}


def test_empty_directories_kept_by_default(workspace: Path, runner: LocalBuildRunner, context: BuildContext) -> None:
    populate(workspace, "a/b/c.txt")

    DeletionExecutor(runner).delete([workspace / "a/b/c.txt"], CleanupSpec(), root=workspace, context=context)

    assert listing(workspace) == {"a", "a/b"}


def test_whole_tree_wipe_is_deferred(workspace: Path, runner: LocalBuildRunner, context: BuildContext) -> None:
    populate(workspace, "a.txt", "b/c.txt")
    targets = [workspace / "a.txt", workspace / "b"]

    results = DeletionExecutor(runner).delete(targets, CleanupSpec(), root=workspace, context=context, whole_tree=True)

    assert all(result.status is DeletionStatus.DELETED for result in results)
    assert {result.reason for result in results} == {"deferred"}
    assert listing(workspace) == set()
    wait_for_deferred()
    assert [entry.name for entry in workspace.parent.iterdir()] == ["ws"]


def test_deferred_wipeout_can_be_disabled(workspace: Path, runner: LocalBuildRunner, context: BuildContext) -> None:
    populate(workspace, "a.txt")
    spec = CleanupSpec(disable_deferred_wipeout=True)

    results = DeletionExecutor(runner).delete(
        [workspace / "a.txt"], spec, root=workspace, context=context, whole_tree=True
    )

    assert results[0].reason == ""
    assert runner.log_lines(context) == [f"Deleting {workspace / 'a.txt'}"]


@pytest.mark.parametrize(
    ("template", "expected_line", "expected_args"),
    [
        ("rm -rf %s", "rm -rf /ws/a$b c", ["rm", "-rf", "/ws/a$b c"]),
        ("rm", "rm /ws/a$b c", ["rm", "/ws/a$b c"]),
        ("mover --target=%s --force", "mover --target=/ws/a$b c --force", ["mover", "--target=/ws/a$b c", "--force"]),
        ("sh -c 'rm \"%s\"'", "sh -c 'rm \"/ws/a$b c\"'", ["sh", "-c", 'rm "/ws/a$b c"']),
    ],
)
def test_resolve_command_substitutes_literally(template: str, expected_line: str, expected_args: list[str]) -> None:
    line, args = resolve_command(template, Path("/ws/a$b c"))

    assert line == expected_line
    assert args == expected_args


def test_protected_directories_are_not_pruned(workspace: Path, runner: LocalBuildRunner, context: BuildContext) -> None:
    populate(workspace, "src/main.o", "obj/x.o")
    spec = CleanupSpec(delete_directories_left_empty=True)
    targets = [workspace / "src/main.o", workspace / "obj/x.o"]

    DeletionExecutor(runner).delete(targets, spec, root=workspace, context=context, protected={workspace / "src"})

    assert listing(workspace) == {"src"}


def test_unlistable_directory_is_reported_as_failure(
    workspace: Path, runner: LocalBuildRunner, context: BuildContext
) -> None:
    result = DeletionExecutor(runner).record_unlistable(workspace / "locked", "Permission denied", context)

    assert result.failed
    assert result.reason == "cannot list directory: Permission denied"
    assert runner.log_lines(context) == [
        f"Cannot delete {workspace / 'locked'}: cannot list directory: Permission denied"
    ]


def test_finished_wipeouts_are_not_retained(workspace: Path, runner: LocalBuildRunner, context: BuildContext) -> None:
    executor = DeletionExecutor(runner)
    for name in ("first.txt", "second.txt"):
        populate(workspace, name)
        for thread in list(executor_module._DEFERRED):
            thread.join()
        executor.delete([workspace / name], CleanupSpec(), root=workspace, context=context, whole_tree=True)

    assert len(executor_module._DEFERRED) == 1
