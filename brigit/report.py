"""Run report: per-repository outcomes and their summary."""

from __future__ import annotations

import dataclasses
import enum
import typing as typ

from .targets import write_targets

if typ.TYPE_CHECKING:
    from pathlib import Path

    from .models import RepositoryTarget


class Status(enum.StrEnum):
    """Terminal classification for a processed target."""

    OK = "OK"
    NOK = "NOK"
    ARCHIVED = "ARCHIVED"
    IGNORED = "IGNORED"
    SKIPPED = "SKIPPED"
    ERROR = "ERROR"


# Statuses that never need a follow-up run.
SETTLED_STATUSES = frozenset({Status.OK, Status.IGNORED, Status.ARCHIVED})
FAILURE_STATUSES = frozenset({Status.NOK, Status.ERROR})


@dataclasses.dataclass(frozen=True, slots=True)
class RepositoryOutcome:
    """Captured outcome for a processed repository."""

    target: RepositoryTarget
    status: Status
    detail: str | None = None

    def render(self) -> str:
        """Return a concise human readable summary."""
        if self.detail:
            return f"{self.target.slug}: {self.detail}"
        return f"{self.target.slug}: {self.status}"


@dataclasses.dataclass(frozen=True, slots=True)
class RunReport:
    """Ordered outcomes of one scan or enforce invocation."""

    mode: str
    outcomes: tuple[RepositoryOutcome, ...] = ()
    cancelled: bool = False

    def count(self, status: Status) -> int:
        """Return how many outcomes carry the status."""
        return sum(1 for outcome in self.outcomes if outcome.status == status)

    @property
    def match_count(self) -> int:
        """Targets that match (scan) or were applied (enforce)."""
        return self.count(Status.OK)

    @property
    def mismatch_count(self) -> int:
        """Targets classified NOK."""
        return self.count(Status.NOK)

    @property
    def error_count(self) -> int:
        """Targets classified ERROR."""
        return self.count(Status.ERROR)

    @property
    def ignored_count(self) -> int:
        """Targets skipped through the ignore list."""
        return self.count(Status.IGNORED)

    @property
    def archived_count(self) -> int:
        """Archived targets."""
        return self.count(Status.ARCHIVED)

    @property
    def skipped_count(self) -> int:
        """Targets skipped for run-specific reasons."""
        return self.count(Status.SKIPPED)

    def counts(self) -> dict[Status, int]:
        """Return a count for every status, including zeros."""
        return {status: self.count(status) for status in Status}

    @property
    def non_compliant(self) -> tuple[RepositoryOutcome, ...]:
        """Outcomes that still need attention in a follow-up run.

        Only the first outcome of each target counts; later occurrences are
        duplicate skips and say nothing about the repository itself.
        """
        seen: set[RepositoryTarget] = set()
        pending: list[RepositoryOutcome] = []
        for outcome in self.outcomes:
            if outcome.target in seen:
                continue
            seen.add(outcome.target)
            if outcome.status not in SETTLED_STATUSES:
                pending.append(outcome)
        return tuple(pending)

    @property
    def non_compliant_targets(self) -> tuple[RepositoryTarget, ...]:
        """Targets for a follow-up enforcement run, in report order."""
        return tuple(outcome.target for outcome in self.non_compliant)

    @property
    def has_failures(self) -> bool:
        """Return True when any target is NOK or ERROR."""
        return any(outcome.status in FAILURE_STATUSES for outcome in self.outcomes)

    @property
    def exit_code(self) -> int:
        """Process exit code signalling the run outcome."""
        return 1 if self.has_failures else 0


def write_issues_file(report: RunReport, path: Path) -> Path:
    """Write the non-compliant targets as an `organization:repository` list."""
    return write_targets(path, report.non_compliant_targets)


def render_table(report: RunReport) -> str:
    """Render a fixed-width repository/status table."""
    headers = ("REPOSITORY", "STATUS")
    rows = [
        headers,
        *((outcome.target.slug, str(outcome.status)) for outcome in report.outcomes),
    ]

    widths = [max(len(row[i]) for row in rows) for i in range(len(headers))]
    lines: list[str] = []
    for idx, row in enumerate(rows):
        parts = [cell.ljust(widths[i]) for i, cell in enumerate(row)]
        lines.append("  ".join(parts).rstrip())
        if idx == 0:
            lines.append("  ".join("-" * width for width in widths))
    return "\n".join(lines)


def render_summary(report: RunReport) -> str:
    """Render per-status counts followed by repositories with issues."""
    lines = ["Summary:"]
    lines.extend(
        f"- {status}: {count}" for status, count in report.counts().items()
    )
    lines.append(f"- Total processed: {len(report.outcomes)}")
    if report.cancelled:
        lines.append("- Run cancelled before every target was dispatched.")
    if issues := report.non_compliant:
        lines.append("")
        lines.append("Repositories with issues:")
        lines.extend(f"- {outcome.render()}" for outcome in issues)
    return "\n".join(lines)
