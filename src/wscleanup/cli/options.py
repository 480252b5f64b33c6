# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Shared option declarations and spec overrides for the cleanup CLI."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated

import typer

from ..models import BuildStatus, CleanupSpec, OutcomeFlags, PatternKind, validate_spec
from ..policy import STATUS_FLAGS

ROOT_OPTION = Annotated[
    Path,
    typer.Option("--root", "-r", help="Workspace root to clean."),
]
CONFIG_OPTION = Annotated[
    Path | None,
    typer.Option("--config", "-c", help="Configuration file (defaults to .wscleanup.toml or pyproject.toml)."),
]
NAME_OPTION = Annotated[
    str | None,
    typer.Option("--name", help="Build name used in log output (defaults to the root directory name)."),
]
INCLUDE_OPTION = Annotated[
    list[str] | None,
    typer.Option("--include", "-i", help="Glob selecting entries to delete (repeatable)."),
]
EXCLUDE_OPTION = Annotated[
    list[str] | None,
    typer.Option("--exclude", "-e", help="Glob protecting entries from deletion (repeatable)."),
]
COMMAND_OPTION = Annotated[
    str | None,
    typer.Option("--command", help="External delete command; '%s' is replaced by each path."),
]
DELETE_DIRS_OPTION = Annotated[
    bool | None,
    typer.Option("--delete-empty-dirs/--keep-empty-dirs", help="Remove directories left empty by the cleanup."),
]
DEFERRED_OPTION = Annotated[
    bool | None,
    typer.Option("--deferred/--no-deferred", help="Move a whole-tree wipe aside and delete it in the background."),
]
DRY_RUN_OPTION = Annotated[
    bool,
    typer.Option("--dry-run", help="Show what would be removed."),
]
EMOJI_OPTION = Annotated[
    bool,
    typer.Option("--emoji/--no-emoji", help="Toggle emoji output."),
]
STATUS_OPTION = Annotated[
    BuildStatus,
    typer.Option("--status", "-s", help="Terminal status of the finished build."),
]
PARENT_ROOT_OPTION = Annotated[
    Path | None,
    typer.Option("--parent-root", help="Workspace root of the matrix parent; marks the build as a matrix child."),
]
CLEAN_PARENT_OPTION = Annotated[
    bool | None,
    typer.Option("--clean-parent/--no-clean-parent", help="Also clean the matrix parent's workspace."),
]
ON_OPTION = Annotated[
    list[BuildStatus] | None,
    typer.Option("--on", help="Terminal status that triggers cleanup (repeatable, replaces configured flags)."),
]
FAIL_BUILD_OPTION = Annotated[
    bool | None,
    typer.Option("--fail-build/--no-fail-build", help="Exit non-zero when a path cannot be deleted."),
]
CLEANUP_PARAMETER_OPTION = Annotated[
    str | None,
    typer.Option("--cleanup-parameter", help="Build parameter that must be 'true' for pre-build cleanup to run."),
]
PARAM_OPTION = Annotated[
    list[str] | None,
    typer.Option("--param", "-p", help="Build parameter as NAME=VALUE (repeatable)."),
]


def normalize_cli_values(values: Sequence[str] | None) -> tuple[str, ...]:
    """Return sanitized CLI values preserving order."""

    if not values:
        return ()
    return tuple(stripped for entry in values if (stripped := entry.strip()))


def parse_parameters(values: Sequence[str] | None) -> dict[str, str]:
    """Return build parameters parsed from ``NAME=VALUE`` entries.

    Raises:
        typer.BadParameter: If an entry has no ``=`` or an empty name.
    """

    parameters: dict[str, str] = {}
    for entry in normalize_cli_values(values):
        name, separator, value = entry.partition("=")
        if not separator or not name.strip():
            raise typer.BadParameter(f"expected NAME=VALUE, got '{entry}'", param_hint="--param")
        parameters[name.strip()] = value
    return parameters


@dataclass(slots=True, frozen=True)
class SpecOverrides:
    """Command-line adjustments applied on top of a configured spec."""

    includes: tuple[str, ...] = ()
    excludes: tuple[str, ...] = ()
    command: str | None = None
    delete_empty_dirs: bool | None = None
    deferred: bool | None = None
    cleanup_parameter: str | None = None

    def apply(self, spec: CleanupSpec | None) -> CleanupSpec:
        """Return ``spec`` with overrides applied.

        Extra include rules come after the configured ones and extra exclude
        rules come last, so command-line excludes always win.

        Args:
            spec: Configured spec, ``None`` when the phase is not configured.

        Returns:
            CleanupSpec: Validated spec combining configuration and overrides.

        Raises:
            ConfigError: If an override is malformed.
        """

        base = spec or CleanupSpec()
        payload = base.model_dump(mode="json")
        payload["patterns"] = [
            *payload["patterns"],
            *({"glob": glob, "kind": PatternKind.INCLUDE} for glob in self.includes),
            *({"glob": glob, "kind": PatternKind.EXCLUDE} for glob in self.excludes),
        ]
        if self.command is not None:
            payload["external_command"] = self.command
        if self.delete_empty_dirs is not None:
            payload["delete_directories_left_empty"] = self.delete_empty_dirs
        if self.deferred is not None:
            payload["disable_deferred_wipeout"] = not self.deferred
        if self.cleanup_parameter is not None:
            payload["cleanup_parameter"] = self.cleanup_parameter
        return validate_spec(payload)


def apply_flag_overrides(
    flags: OutcomeFlags,
    *,
    statuses: Sequence[BuildStatus] | None,
    clean_parent: bool | None,
    fail_build: bool | None,
) -> OutcomeFlags:
    """Return ``flags`` updated from post-build command-line options."""

    updates: dict[str, bool] = {}
    if statuses:
        selected = set(statuses)
        updates.update({flag: status in selected for status, flag in STATUS_FLAGS.items()})
    if clean_parent is not None:
        updates["cleanup_matrix_parent"] = clean_parent
    if fail_build is not None:
        updates["fail_build_on_cleanup_error"] = fail_build
    return flags.model_copy(update=updates) if updates else flags


__all__ = [
    "SpecOverrides",
    "apply_flag_overrides",
    "normalize_cli_values",
    "parse_parameters",
]
