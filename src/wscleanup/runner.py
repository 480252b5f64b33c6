# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Local filesystem implementation of the build runner services."""

from __future__ import annotations

import os
import shutil
from collections import defaultdict
from collections.abc import Sequence
from pathlib import Path
from threading import Lock

from .interfaces import PathEntry, ProcessOutcome
from .logging import info
from .process import CommandOptions, run_command
from .workspace import BuildContext


class LocalBuildRunner:
    """Serve cleanup requests against the local filesystem.

    Builds are registered by name so matrix children can resolve their parent
    when cleanup runs. Build log lines are kept per build and optionally
    mirrored to the console.
    """

    def __init__(self, *, echo: bool = False, use_emoji: bool = True, timeout: float | None = None) -> None:
        self._echo = echo
        self._use_emoji = use_emoji
        self._command_options = CommandOptions(check=False, merge_stderr=True, timeout=timeout)
        self._builds: dict[str, BuildContext] = {}
        self._logs: defaultdict[str, list[str]] = defaultdict(list)
        self._failed: set[str] = set()
        self._lock = Lock()

    def register(self, context: BuildContext) -> BuildContext:
        """Make ``context`` resolvable by name and return it."""

        with self._lock:
            self._builds[context.name] = context
        return context

    def unregister(self, name: str) -> None:
        """Forget the build registered under ``name``."""

        with self._lock:
            self._builds.pop(name, None)

    def log_lines(self, context: BuildContext) -> list[str]:
        """Return a copy of the build log recorded for ``context``."""

        with self._lock:
            return list(self._logs[context.name])

    def is_failed(self, context: BuildContext) -> bool:
        """Return ``True`` when cleanup flagged ``context`` as failed."""

        with self._lock:
            return context.name in self._failed

    def list_entries(self, directory: Path) -> Sequence[PathEntry]:
        """Return the direct children of ``directory`` without following symlinks."""

        with os.scandir(directory) as iterator:
            return [PathEntry(path=Path(entry.path), is_dir=entry.is_dir(follow_symlinks=False)) for entry in iterator]

    def remove(self, path: Path) -> None:
        """Remove ``path``, recursing into real directories only.

        Raises:
            FileNotFoundError: If ``path`` does not exist.
            OSError: If the path cannot be removed.
        """

        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path, onexc=_ignore_missing)
        else:
            path.unlink()

    def move_aside(self, path: Path, trash: Path) -> Path:
        """Move ``path`` into ``trash``, creating the directory on first use."""

        trash.mkdir(parents=True, exist_ok=True)
        destination = trash / path.name
        os.replace(path, destination)
        return destination

    def run_process(self, args: Sequence[str]) -> ProcessOutcome:
        """Run ``args`` without a shell and capture combined output."""

        completed = run_command(args, options=self._command_options)
        return ProcessOutcome(exit_code=completed.returncode, output=completed.stdout or "")

    def get_parent_build(self, context: BuildContext) -> BuildContext | None:
        """Return the registered build named by ``context.parent_ref``."""

        if context.parent_ref is None:
            return None
        with self._lock:
            return self._builds.get(context.parent_ref)

    def append_to_build_log(self, context: BuildContext, line: str) -> None:
        """Record ``line`` in the build log, echoing it when enabled."""

        with self._lock:
            self._logs[context.name].append(line)
        if self._echo:
            info(line, use_emoji=self._use_emoji)

    def mark_build_failed(self, context: BuildContext) -> None:
        """Flag ``context`` as failed."""

        with self._lock:
            self._failed.add(context.name)


def _ignore_missing(function: object, path: str, exc: BaseException) -> None:
    """``shutil.rmtree`` error hook tolerating entries removed concurrently."""

    if isinstance(exc, FileNotFoundError):
        return
    raise exc


__all__ = ["LocalBuildRunner"]
