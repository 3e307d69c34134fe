"""Target-list files in `organization:repository` form."""

from __future__ import annotations

import logging
import typing as typ
from pathlib import Path

from .errors import BrigitError, InvalidTargetError
from .models import RepositoryTarget

if typ.TYPE_CHECKING:
    import collections.abc as cabc

_logger = logging.getLogger(__name__)


class TargetFileNotFoundError(BrigitError):
    """Raised when a target-list file does not exist."""

    def __init__(self, path: Path) -> None:
        """Initialise the error with the missing path."""
        super().__init__(f"Repositories file {path} not found.")


def parse_target_line(line: str) -> RepositoryTarget | None:
    """Parse one line, returning None for blanks and comments.

    Raises InvalidTargetError for lines that are neither.
    """
    stripped = line.strip()
    if not stripped or stripped.startswith("#"):
        return None
    return RepositoryTarget.parse(stripped)


def deduplicate_targets(
    targets: cabc.Iterable[RepositoryTarget],
) -> list[RepositoryTarget]:
    """Remove duplicate targets while preserving first occurrence order."""
    return list(dict.fromkeys(targets))


def parse_target_lines(
    lines: cabc.Iterable[str], *, source: str = "<input>"
) -> list[RepositoryTarget]:
    """Parse target lines, skipping malformed ones with a warning."""
    targets: list[RepositoryTarget] = []
    for number, line in enumerate(lines, start=1):
        try:
            target = parse_target_line(line)
        except InvalidTargetError as error:
            _logger.warning("%s:%d: skipping line: %s", source, number, error)
            continue
        if target is not None:
            targets.append(target)
    return deduplicate_targets(targets)


def load_targets(path: Path) -> list[RepositoryTarget]:
    """Read a target-list file into an ordered, deduplicated list."""
    target_path = Path(path)
    if not target_path.is_file():
        raise TargetFileNotFoundError(target_path)
    lines = target_path.read_text(encoding="utf-8").splitlines()
    return parse_target_lines(lines, source=str(target_path))


def write_targets(path: Path, targets: cabc.Iterable[RepositoryTarget]) -> Path:
    """Write targets one per line so the file can feed a follow-up run."""
    target_path = Path(path)
    target_path.parent.mkdir(parents=True, exist_ok=True)
    body = "".join(f"{target.render()}\n" for target in targets)
    target_path.write_text(body, encoding="utf-8")
    return target_path
