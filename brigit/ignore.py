"""Repositories excluded from scanning and enforcement."""

from __future__ import annotations

import typing as typ
from pathlib import Path

from .models import TARGET_SEPARATOR, RepositoryTarget

if typ.TYPE_CHECKING:
    import collections.abc as cabc


class IgnoreRegistry:
    """Immutable set of (organization, repository) pairs to skip."""

    def __init__(self, entries: cabc.Iterable[RepositoryTarget] = ()) -> None:
        """Freeze the provided entries."""
        self._entries = frozenset(
            (entry.organization, entry.name) for entry in entries
        )

    def contains(self, organization: str, repository: str) -> bool:
        """Return True when the pair is ignored (case-sensitive)."""
        return (organization, repository) in self._entries

    def __contains__(self, target: object) -> bool:
        """Support `target in registry` for repository targets."""
        if not isinstance(target, RepositoryTarget):
            return False
        return self.contains(target.organization, target.name)

    def __len__(self) -> int:
        """Return the number of ignored repositories."""
        return len(self._entries)


def _parse_ignore_line(line: str) -> RepositoryTarget | None:
    stripped = line.strip()
    if not stripped or stripped.startswith("#"):
        return None
    organization, separator, repository = stripped.partition(TARGET_SEPARATOR)
    organization = organization.strip()
    repository = repository.strip()
    if not separator or not organization or not repository:
        return None
    return RepositoryTarget(organization=organization, name=repository)


def parse_ignore_lines(lines: cabc.Iterable[str]) -> IgnoreRegistry:
    """Build a registry from ignore-file lines.

    Blank lines, comments, and malformed entries are skipped silently; an
    ignore list is advisory and must never abort a run.
    """
    entries = [
        entry for line in lines if (entry := _parse_ignore_line(line)) is not None
    ]
    return IgnoreRegistry(entries)


def load_ignore_registry(path: Path | None) -> IgnoreRegistry:
    """Load the ignore list, treating a missing file as an empty registry."""
    if path is None:
        return IgnoreRegistry()
    target = Path(path)
    if not target.is_file():
        return IgnoreRegistry()
    return parse_ignore_lines(target.read_text(encoding="utf-8").splitlines())
