# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Shared pytest fixtures."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from wscleanup.executor import wait_for_deferred
from wscleanup.runner import LocalBuildRunner


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Return an empty workspace root with a private parent directory.

    Deferred wipeouts park entries next to the root, so the root must not be
    ``tmp_path`` itself.
    """

    root = tmp_path / "ws"
    root.mkdir()
    return root


@pytest.fixture
def runner() -> LocalBuildRunner:
    """Return a local runner that keeps build logs in memory."""

    return LocalBuildRunner()


@pytest.fixture(autouse=True)
def _join_deferred_wipeouts() -> Iterator[None]:
    yield
    wait_for_deferred()
