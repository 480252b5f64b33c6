# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Configuration models describing what to clean and when."""

from __future__ import annotations

import shlex
from collections.abc import Mapping
from enum import StrEnum
from typing import Final

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .errors import ConfigError

PATH_PLACEHOLDER: Final[str] = "%s"
PARENT_SEGMENT: Final[str] = ".."


class PatternKind(StrEnum):
    """Enumerate the verdicts a pattern rule can produce."""

    INCLUDE = "include"
    EXCLUDE = "exclude"


class BuildStatus(StrEnum):
    """Enumerate terminal build statuses reported by the job runner."""

    SUCCESS = "success"
    UNSTABLE = "unstable"
    FAILURE = "failure"
    ABORTED = "aborted"
    NOT_BUILT = "not_built"


class PatternRule(BaseModel):
    """Single include/exclude glob evaluated relative to a workspace root."""

    model_config = ConfigDict(frozen=True)

    glob: str
    kind: PatternKind = PatternKind.INCLUDE

    @field_validator("glob")
    @classmethod
    def _validate_glob(cls, value: str) -> str:
        """Reject globs that can never match a root-relative path.

        Args:
            value: Raw glob text supplied by configuration.

        Returns:
            str: Glob with any trailing separator removed.

        Raises:
            ValueError: If the glob is blank, absolute, escapes the root or
                contains a NUL byte.
        """

        stripped = value.strip()
        if not stripped:
            raise ValueError("glob must not be empty")
        if "\0" in stripped:
            raise ValueError("glob must not contain NUL bytes")
        if stripped.startswith("/"):
            raise ValueError(f"glob '{value}' must be relative to the workspace root")
        if PARENT_SEGMENT in stripped.split("/"):
            raise ValueError(f"glob '{value}' must not escape the workspace root")
        return stripped.rstrip("/")

    @classmethod
    def include(cls, glob: str) -> PatternRule:
        """Return an include rule for ``glob``."""

        return cls(glob=glob, kind=PatternKind.INCLUDE)

    @classmethod
    def exclude(cls, glob: str) -> PatternRule:
        """Return an exclude rule for ``glob``."""

        return cls(glob=glob, kind=PatternKind.EXCLUDE)


class CleanupSpec(BaseModel):
    """Immutable description of one cleanup action attached to a job."""

    model_config = ConfigDict(frozen=True)

    patterns: tuple[PatternRule, ...] = ()
    delete_directories_left_empty: bool = False
    external_command: str | None = None
    disable_deferred_wipeout: bool = False
    tolerate_missing_targets: bool = True
    cleanup_parameter: str | None = None

    @field_validator("patterns", mode="before")
    @classmethod
    def _coerce_patterns(cls, value: object) -> object:
        """Accept bare strings as include rules."""

        if isinstance(value, (list, tuple)):
            return tuple({"glob": item} if isinstance(item, str) else item for item in value)
        return value

    @field_validator("cleanup_parameter")
    @classmethod
    def _blank_parameter(cls, value: str | None) -> str | None:
        """Treat a blank parameter name as unset."""

        if value is None or not value.strip():
            return None
        return value.strip()

    @field_validator("external_command")
    @classmethod
    def _validate_command(cls, value: str | None) -> str | None:
        """Validate the external command template.

        Args:
            value: Command template, ``None`` for native deletion.

        Returns:
            str | None: The template, or ``None`` when blank.

        Raises:
            ValueError: If the template holds more than one placeholder or
                cannot be tokenised.
        """

        if value is None or not value.strip():
            return None
        if value.count(PATH_PLACEHOLDER) > 1:
            raise ValueError(f"command template may contain at most one '{PATH_PLACEHOLDER}' placeholder")
        try:
            tokens = shlex.split(value)
        except ValueError as exc:
            raise ValueError(f"command template cannot be parsed: {exc}") from exc
        if not tokens or tokens[0] == PATH_PLACEHOLDER:
            raise ValueError("command template must start with an executable")
        return value

    @property
    def uses_external_command(self) -> bool:
        """Return ``True`` when matched paths are handed to an external command."""

        return self.external_command is not None


class OutcomeFlags(BaseModel):
    """Post-build switches keyed on the build's terminal status."""

    model_config = ConfigDict(frozen=True)

    on_success: bool = False
    on_unstable: bool = False
    on_failure: bool = False
    on_not_built: bool = False
    on_aborted: bool = False
    cleanup_matrix_parent: bool = False
    fail_build_on_cleanup_error: bool = False

    @classmethod
    def always(cls, **overrides: bool) -> OutcomeFlags:
        """Return flags that clean after every terminal status."""

        values = dict.fromkeys(("on_success", "on_unstable", "on_failure", "on_not_built", "on_aborted"), True)
        values.update(overrides)
        return cls(**values)


def validate_spec(payload: Mapping[str, object]) -> CleanupSpec:
    """Return a :class:`CleanupSpec` built from ``payload``.

    Args:
        payload: Raw mapping, typically a TOML table.

    Returns:
        CleanupSpec: Validated specification.

    Raises:
        ConfigError: If the payload is invalid.
    """

    try:
        return CleanupSpec.model_validate(dict(payload))
    except ValidationError as exc:
        raise ConfigError(_describe_validation_error(exc)) from exc


def validate_flags(payload: Mapping[str, object]) -> OutcomeFlags:
    """Return :class:`OutcomeFlags` built from ``payload``.

    Raises:
        ConfigError: If the payload is invalid.
    """

    try:
        return OutcomeFlags.model_validate(dict(payload))
    except ValidationError as exc:
        raise ConfigError(_describe_validation_error(exc)) from exc


def _describe_validation_error(exc: ValidationError) -> str:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"]) or "<root>"
        messages.append(f"{location}: {error['msg']}")
    return "; ".join(messages)


__all__ = [
    "BuildStatus",
    "CleanupSpec",
    "OutcomeFlags",
    "PATH_PLACEHOLDER",
    "PatternKind",
    "PatternRule",
    "validate_flags",
    "validate_spec",
]
