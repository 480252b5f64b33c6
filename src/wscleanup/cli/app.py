# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""CLI application exposing the pre-build and post-build cleanup entry points."""

from __future__ import annotations

from pathlib import Path

import typer

from ..config import CleanupConfig, load_config
from ..errors import CleanupStateError, ConfigError, PreBuildCleanupError
from ..executor import wait_for_deferred
from ..console import detect_tty
from ..logging import fail, section, warn
from ..orchestrator import CleanupOrchestrator, CleanupResult
from ..runner import LocalBuildRunner
from ..workspace import BuildContext, MatrixRole
from .options import (
    CLEANUP_PARAMETER_OPTION,
    CLEAN_PARENT_OPTION,
    COMMAND_OPTION,
    CONFIG_OPTION,
    DEFERRED_OPTION,
    DELETE_DIRS_OPTION,
    DRY_RUN_OPTION,
    EMOJI_OPTION,
    EXCLUDE_OPTION,
    FAIL_BUILD_OPTION,
    INCLUDE_OPTION,
    NAME_OPTION,
    ON_OPTION,
    PARAM_OPTION,
    PARENT_ROOT_OPTION,
    ROOT_OPTION,
    STATUS_OPTION,
    SpecOverrides,
    apply_flag_overrides,
    normalize_cli_values,
    parse_parameters,
)

CONFIG_ERROR_EXIT: int = 2
BUILD_FAILED_EXIT: int = 1

app = typer.Typer(
    name="wscleanup",
    help="Delete workspace files before or after a CI build.",
    no_args_is_help=True,
    add_completion=False,
)


def _load(root: Path, config_path: Path | None, *, emoji: bool) -> CleanupConfig:
    try:
        return load_config(root, path=config_path)
    except ConfigError as exc:
        fail(str(exc), use_emoji=emoji)
        raise typer.Exit(code=CONFIG_ERROR_EXIT) from exc


def _report_skip(result: CleanupResult, *, emoji: bool) -> None:
    if result.skipped_reason is not None:
        warn(f"Cleanup skipped: {result.skipped_reason}", use_emoji=emoji)


@app.command("pre-build")
def pre_build(
    root: ROOT_OPTION = Path("."),
    config_path: CONFIG_OPTION = None,
    name: NAME_OPTION = None,
    include: INCLUDE_OPTION = None,
    exclude: EXCLUDE_OPTION = None,
    command: COMMAND_OPTION = None,
    delete_empty_dirs: DELETE_DIRS_OPTION = None,
    deferred: DEFERRED_OPTION = None,
    cleanup_parameter: CLEANUP_PARAMETER_OPTION = None,
    param: PARAM_OPTION = None,
    dry_run: DRY_RUN_OPTION = False,
    emoji: EMOJI_OPTION = True,
) -> None:
    """Clean the workspace before the build starts; any failure aborts with status 1."""

    root = root.absolute()
    config = _load(root, config_path, emoji=emoji)
    overrides = SpecOverrides(
        includes=normalize_cli_values(include),
        excludes=normalize_cli_values(exclude),
        command=command,
        delete_empty_dirs=delete_empty_dirs,
        deferred=deferred,
        cleanup_parameter=cleanup_parameter,
    )
    try:
        spec = overrides.apply(config.pre_build)
    except ConfigError as exc:
        fail(str(exc), use_emoji=emoji)
        raise typer.Exit(code=CONFIG_ERROR_EXIT) from exc

    section(f"Cleaning {root}", use_color=detect_tty())
    runner = LocalBuildRunner(echo=True, use_emoji=emoji)
    context = runner.register(
        BuildContext(name=name or root.name, workspace_root=root, parameters=parse_parameters(param))
    )
    orchestrator = CleanupOrchestrator(runner, dry_run=dry_run, use_emoji=emoji)
    try:
        result = orchestrator.run_pre_build_cleanup(spec, context)
    except PreBuildCleanupError as exc:
        fail(str(exc), use_emoji=emoji)
        raise typer.Exit(code=BUILD_FAILED_EXIT) from exc
    finally:
        wait_for_deferred()
    _report_skip(result, emoji=emoji)


@app.command("post-build")
def post_build(
    status: STATUS_OPTION,
    root: ROOT_OPTION = Path("."),
    config_path: CONFIG_OPTION = None,
    name: NAME_OPTION = None,
    include: INCLUDE_OPTION = None,
    exclude: EXCLUDE_OPTION = None,
    command: COMMAND_OPTION = None,
    delete_empty_dirs: DELETE_DIRS_OPTION = None,
    deferred: DEFERRED_OPTION = None,
    parent_root: PARENT_ROOT_OPTION = None,
    clean_parent: CLEAN_PARENT_OPTION = None,
    on: ON_OPTION = None,
    fail_build: FAIL_BUILD_OPTION = None,
    dry_run: DRY_RUN_OPTION = False,
    emoji: EMOJI_OPTION = True,
) -> None:
    """Clean the workspace of a finished build when its status is enabled."""

    root = root.absolute()
    config = _load(root, config_path, emoji=emoji)
    overrides = SpecOverrides(
        includes=normalize_cli_values(include),
        excludes=normalize_cli_values(exclude),
        command=command,
        delete_empty_dirs=delete_empty_dirs,
        deferred=deferred,
    )
    try:
        spec = overrides.apply(config.post_build)
    except ConfigError as exc:
        fail(str(exc), use_emoji=emoji)
        raise typer.Exit(code=CONFIG_ERROR_EXIT) from exc
    flags = apply_flag_overrides(config.flags, statuses=on, clean_parent=clean_parent, fail_build=fail_build)

    section(f"Cleaning {root}", use_color=detect_tty())
    runner = LocalBuildRunner(echo=True, use_emoji=emoji)
    build_name = name or root.name
    if parent_root is None:
        context = BuildContext(name=build_name, workspace_root=root, terminal_status=status)
    else:
        parent = runner.register(
            BuildContext(
                name=f"{build_name}-parent",
                workspace_root=parent_root.absolute(),
                matrix_role=MatrixRole.PARENT,
            )
        )
        context = BuildContext(
            name=build_name,
            workspace_root=root,
            matrix_role=MatrixRole.CHILD,
            parent_ref=parent.name,
            terminal_status=status,
        )
    runner.register(context)

    orchestrator = CleanupOrchestrator(runner, dry_run=dry_run, use_emoji=emoji)
    try:
        result = orchestrator.run_post_build_cleanup(spec, flags, context)
    except CleanupStateError as exc:
        fail(str(exc), use_emoji=emoji)
        raise typer.Exit(code=CONFIG_ERROR_EXIT) from exc
    finally:
        wait_for_deferred()
    _report_skip(result, emoji=emoji)
    if result.build_failed:
        raise typer.Exit(code=BUILD_FAILED_EXIT)


def main() -> None:
    """Console-script entry point."""

    app()


__all__ = ["app", "main"]
