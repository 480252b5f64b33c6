# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Tests for the subprocess execution wrapper."""

from __future__ import annotations

from pathlib import Path

import pytest

from wscleanup.process import CommandOptions, SubprocessExecutionError, run_command


def test_run_command_captures_merged_output(tmp_path: Path) -> None:
    completed = run_command(
        ["sh", "-c", "echo out; echo err >&2"],
        options=CommandOptions(cwd=tmp_path, merge_stderr=True),
    )

    assert completed.returncode == 0
    assert completed.stdout.split() == ["out", "err"]


def test_run_command_raises_on_failure_when_checked() -> None:
    with pytest.raises(SubprocessExecutionError) as excinfo:
        run_command(["sh", "-c", "exit 4"])

    assert excinfo.value.returncode == 4


def test_run_command_returns_failure_when_unchecked() -> None:
    completed = run_command(["sh", "-c", "exit 4"], options=CommandOptions(check=False))

    assert completed.returncode == 4


def test_run_command_reports_timeout() -> None:
    completed = run_command(["sleep", "5"], options=CommandOptions(check=False, timeout=0.2))

    assert completed.returncode == 124
    assert "timed out" in completed.stdout


def test_missing_executable_raises_file_not_found() -> None:
    with pytest.raises(FileNotFoundError):
        run_command(["wscleanup-no-such-tool"])


def test_empty_command_is_rejected() -> None:
    with pytest.raises(ValueError):
        run_command([])
