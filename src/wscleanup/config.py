# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Load job cleanup configuration from TOML documents."""

from __future__ import annotations

import os
import re
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Final

from pydantic import BaseModel, ConfigDict, Field

from .errors import ConfigError
from .models import CleanupSpec, OutcomeFlags, validate_flags, validate_spec

CONFIG_FILENAME: Final[str] = ".wscleanup.toml"
PYPROJECT_FILENAME: Final[str] = "pyproject.toml"
PYPROJECT_TOOL_KEY: Final[str] = "tool"
PYPROJECT_SECTION_KEY: Final[str] = "wscleanup"
PRE_BUILD_KEY: Final[str] = "pre_build"
POST_BUILD_KEY: Final[str] = "post_build"
FLAGS_KEY: Final[str] = "flags"

_ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")


class CleanupConfig(BaseModel):
    """Cleanup actions attached to a job definition.

    ``pre_build`` and ``post_build`` are ``None`` when the job does not
    configure that phase.
    """

    model_config = ConfigDict(frozen=True)

    pre_build: CleanupSpec | None = None
    post_build: CleanupSpec | None = None
    flags: OutcomeFlags = Field(default_factory=OutcomeFlags)
    source: str = "defaults"


def load_config(root: Path, *, path: Path | None = None, env: Mapping[str, str] | None = None) -> CleanupConfig:
    """Return the cleanup configuration for the workspace at ``root``.

    Precedence: an explicit ``path``, then ``.wscleanup.toml`` in ``root``,
    then ``[tool.wscleanup]`` in ``root/pyproject.toml``, then defaults.

    Args:
        root: Directory searched for configuration files.
        path: Explicit configuration file overriding discovery.
        env: Environment used for ``${VAR}`` expansion, defaults to ``os.environ``.

    Returns:
        CleanupConfig: Validated configuration.

    Raises:
        ConfigError: If a file cannot be read or holds invalid settings.
    """

    environment = os.environ if env is None else env
    if path is not None:
        if not path.is_file():
            raise ConfigError(f"Configuration file {path} does not exist")
        return parse_config(_read_toml(path), source=str(path), env=environment)

    candidate = root / CONFIG_FILENAME
    if candidate.is_file():
        return parse_config(_read_toml(candidate), source=str(candidate), env=environment)

    pyproject = root / PYPROJECT_FILENAME
    if pyproject.is_file():
        tool_section = _read_toml(pyproject).get(PYPROJECT_TOOL_KEY)
        if isinstance(tool_section, Mapping) and isinstance(tool_section.get(PYPROJECT_SECTION_KEY), Mapping):
            return parse_config(
                tool_section[PYPROJECT_SECTION_KEY],
                source=f"{pyproject} [tool.wscleanup]",
                env=environment,
            )
    return CleanupConfig()


def parse_config(
    data: Mapping[str, Any],
    *,
    source: str = "<memory>",
    env: Mapping[str, str] | None = None,
) -> CleanupConfig:
    """Validate a raw configuration mapping.

    Raises:
        ConfigError: If any section is malformed.
    """

    document = _expand_env(data, os.environ if env is None else env)
    unknown = sorted(set(document) - {PRE_BUILD_KEY, POST_BUILD_KEY, FLAGS_KEY})
    if unknown:
        raise ConfigError(f"{source}: unknown section(s): {', '.join(unknown)}")
    try:
        return CleanupConfig(
            pre_build=_section_spec(document, PRE_BUILD_KEY),
            post_build=_section_spec(document, POST_BUILD_KEY),
            flags=validate_flags(_section(document, FLAGS_KEY) or {}),
            source=source,
        )
    except ConfigError as exc:
        raise ConfigError(f"{source}: {exc}") from exc


def _section(document: Mapping[str, Any], key: str) -> Mapping[str, Any] | None:
    value = document.get(key)
    if value is None:
        return None
    if not isinstance(value, Mapping):
        raise ConfigError(f"[{key}] must be a table")
    return value


def _section_spec(document: Mapping[str, Any], key: str) -> CleanupSpec | None:
    section = _section(document, key)
    if section is None:
        return None
    try:
        return validate_spec(section)
    except ConfigError as exc:
        raise ConfigError(f"[{key}] {exc}") from exc


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as handle:
            return tomllib.load(handle)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise ConfigError(f"Cannot read configuration {path}: {exc}") from exc


def _expand_env(value: Any, env: Mapping[str, str]) -> Any:
    if isinstance(value, str):
        return _ENV_VAR_PATTERN.sub(lambda match: env.get(match.group(1), match.group(0)), value)
    if isinstance(value, Mapping):
        return {key: _expand_env(item, env) for key, item in value.items()}
    if isinstance(value, list):
        return [_expand_env(item, env) for item in value]
    return value


__all__ = ["CONFIG_FILENAME", "CleanupConfig", "load_config", "parse_config"]
