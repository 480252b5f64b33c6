# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Workspace cleanup engine for CI build runners."""

from __future__ import annotations

from importlib import metadata

from .errors import CleanupError, ConfigError, PreBuildCleanupError
from .models import BuildStatus, CleanupSpec, OutcomeFlags, PatternKind, PatternRule
from .orchestrator import CleanupOrchestrator, CleanupResult, run_post_build_cleanup, run_pre_build_cleanup
from .workspace import BuildContext, MatrixRole

__all__ = [
    "BuildContext",
    "BuildStatus",
    "CleanupError",
    "CleanupOrchestrator",
    "CleanupResult",
    "CleanupSpec",
    "ConfigError",
    "MatrixRole",
    "OutcomeFlags",
    "PatternKind",
    "PatternRule",
    "PreBuildCleanupError",
    "__version__",
    "run_post_build_cleanup",
    "run_pre_build_cleanup",
]

try:
    __version__ = metadata.version("ws-cleanup")
except metadata.PackageNotFoundError:  # pragma: no cover - local development fallback
    __version__ = "0.0.0"
