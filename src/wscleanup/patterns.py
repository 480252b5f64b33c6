# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Ordered include/exclude glob rules selecting workspace entries."""

from __future__ import annotations

import glob
import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from .interfaces import BuildRunner, PathEntry
from .models import PatternKind, PatternRule


@dataclass(slots=True)
class Selection:
    """Entries selected beneath one root and the collapsed deletion targets.

    Attributes:
        selected: Every selected entry, files and directories alike.
        targets: Minimal list of paths to delete. A selected directory whose
            whole subtree is selected appears once, in place of its contents.
        complete: ``True`` when every entry beneath the root was selected.
        protected: Directories kept by an explicit Exclude rule, directly or
            through an ancestor. They must survive even when left empty.
        unlistable: Directories whose contents could not be read, with the
            reason.
    """

    selected: list[Path] = field(default_factory=list)
    targets: list[Path] = field(default_factory=list)
    complete: bool = True
    protected: set[Path] = field(default_factory=set)
    unlistable: list[tuple[Path, str]] = field(default_factory=list)

    def merge(self, child: Selection) -> None:
        """Fold the bookkeeping of a nested directory scan into this one."""

        self.selected.extend(child.selected)
        self.protected.update(child.protected)
        self.unlistable.extend(child.unlistable)


class PatternSet:
    """Evaluate an ordered rule list against the entries of a workspace root.

    The last matching rule decides an entry's verdict. Entries no rule
    matches inherit the verdict of their closest matched ancestor, and fall
    back to the default verdict otherwise: Include when the list holds no
    Include rule (an empty list wipes the whole tree), Exclude otherwise.
    """

    def __init__(self, rules: Sequence[PatternRule] = ()) -> None:
        self._rules = tuple(rules)
        self._compiled = tuple((_compile(rule.glob), rule.kind) for rule in self._rules)
        has_include = any(rule.kind is PatternKind.INCLUDE for rule in self._rules)
        self._default = PatternKind.EXCLUDE if has_include else PatternKind.INCLUDE

    @property
    def rules(self) -> tuple[PatternRule, ...]:
        """Return the rules in evaluation order."""

        return self._rules

    @property
    def is_whole_tree_wipe(self) -> bool:
        """Return ``True`` when the rule list is empty and every entry is selected."""

        return not self._rules

    def verdict(self, relative: str, inherited: PatternKind | None = None) -> tuple[PatternKind, PatternKind | None]:
        """Return the verdict for a root-relative path.

        Args:
            relative: ``/``-separated path relative to the workspace root.
            inherited: Verdict carried down from a matched ancestor.

        Returns:
            tuple[PatternKind, PatternKind | None]: The verdict, and the
            verdict descendants inherit (``None`` when nothing matched).
        """

        matched: PatternKind | None = None
        for regex, kind in self._compiled:
            if regex.match(relative):
                matched = kind
        if matched is not None:
            return matched, matched
        if inherited is not None:
            return inherited, inherited
        return self._default, None

    def scan(self, root: Path, runner: BuildRunner) -> Selection:
        """Walk ``root`` through ``runner`` and classify every entry.

        A root that no longer exists yields an empty selection. Directories
        that cannot be listed are recorded in ``unlistable`` and the walk
        continues with their siblings.
        """

        return self._scan(runner, root, "", None)

    def select(self, root: Path, runner: BuildRunner) -> set[Path]:
        """Return the absolute paths of every selected entry under ``root``."""

        return set(self.scan(root, runner).selected)

    def plan(self, root: Path, runner: BuildRunner) -> list[Path]:
        """Return the collapsed deletion targets under ``root``."""

        return self.scan(root, runner).targets

    def _scan(self, runner: BuildRunner, directory: Path, prefix: str, inherited: PatternKind | None) -> Selection:
        selection = Selection()
        try:
            entries = _list_entries(runner, directory)
        except OSError as exc:
            selection.unlistable.append((directory, exc.strerror or str(exc)))
            selection.complete = False
            return selection
        for entry in entries:
            relative = f"{prefix}{entry.name}"
            kind, carried = self.verdict(relative, inherited)
            chosen = kind is PatternKind.INCLUDE
            if chosen:
                selection.selected.append(entry.path)
            if not entry.is_dir:
                if chosen:
                    selection.targets.append(entry.path)
                else:
                    selection.complete = False
                continue
            if not chosen and carried is PatternKind.EXCLUDE:
                selection.protected.add(entry.path)
            child = self._scan(runner, entry.path, f"{relative}/", carried)
            selection.merge(child)
            if chosen and child.complete:
                selection.targets.append(entry.path)
            else:
                selection.targets.extend(child.targets)
                selection.complete = False
        return selection


def _compile(pattern: str) -> re.Pattern[str]:
    """Translate a glob into an anchored, case-sensitive regular expression."""

    return re.compile(glob.translate(pattern, recursive=True, include_hidden=True, seps="/"))


def _list_entries(runner: BuildRunner, directory: Path) -> list[PathEntry]:
    """Return sorted entries of ``directory``; a vanished directory is empty."""

    try:
        entries = runner.list_entries(directory)
    except FileNotFoundError:
        return []
    return sorted(entries, key=lambda entry: entry.name)


__all__ = ["PatternSet", "Selection"]
