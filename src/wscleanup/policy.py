# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Decide whether cleanup fires for a build."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Final

from .models import BuildStatus, OutcomeFlags

STATUS_FLAGS: Final[dict[BuildStatus, str]] = {
    BuildStatus.SUCCESS: "on_success",
    BuildStatus.UNSTABLE: "on_unstable",
    BuildStatus.FAILURE: "on_failure",
    BuildStatus.ABORTED: "on_aborted",
    BuildStatus.NOT_BUILT: "on_not_built",
}
TRUE_VALUE: Final[str] = "true"


def should_clean(status: BuildStatus, flags: OutcomeFlags | None) -> bool:
    """Return whether post-build cleanup runs for ``status``.

    The decision is the value of the single flag mapped to ``status``; no
    other flag takes part. Unset flags mean no cleanup.

    Args:
        status: Terminal status reported by the build.
        flags: Configured outcome flags, ``None`` when the feature is unset.

    Returns:
        bool: ``True`` when cleanup should run.
    """

    if flags is None:
        return False
    return bool(getattr(flags, STATUS_FLAGS[BuildStatus(status)]))


def parameter_enabled(name: str | None, parameters: Mapping[str, str]) -> bool:
    """Return whether the build parameter gating pre-build cleanup allows it.

    Without a gating parameter cleanup always runs. Otherwise the parameter
    must be present and equal to ``true`` (case-insensitive).
    """

    if name is None:
        return True
    return parameters.get(name, "").strip().lower() == TRUE_VALUE


__all__ = ["STATUS_FLAGS", "parameter_enabled", "should_clean"]
