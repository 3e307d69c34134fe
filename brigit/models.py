"""Shared data structures for branch protection reconciliation."""

from __future__ import annotations

import dataclasses
import typing as typ

from .errors import InvalidTargetError

TARGET_SEPARATOR = ":"

# Projection fields in declaration order; diffs are reported in this order.
PROJECTION_FIELDS: tuple[str, ...] = (
    "required_status_checks",
    "enforce_admins",
    "required_approving_review_count",
    "dismiss_stale_reviews",
    "require_code_owner_reviews",
    "require_last_push_approval",
    "dismissal_restrictions",
    "restrictions",
    "required_linear_history",
    "allow_force_pushes",
    "allow_deletions",
    "block_creations",
    "required_conversation_resolution",
    "lock_branch",
    "allow_fork_syncing",
)

DEFAULT_COMPARE_FIELDS: tuple[str, ...] = (
    "required_status_checks",
    "enforce_admins",
    "required_approving_review_count",
    "restrictions",
)


@dataclasses.dataclass(frozen=True, slots=True)
class RepositoryTarget:
    """Single (organization, repository) pair considered during a run."""

    organization: str
    name: str

    def __post_init__(self) -> None:
        """Reject empty identifiers."""
        if not self.organization or not self.name:
            raise InvalidTargetError(f"{self.organization}:{self.name}")

    @classmethod
    def parse(cls, value: str) -> RepositoryTarget:
        """Build a target from `organization:repository` text."""
        organization, separator, name = value.partition(TARGET_SEPARATOR)
        if not separator:
            raise InvalidTargetError(value)
        organization = organization.strip()
        name = name.strip()
        if not organization or not name:
            raise InvalidTargetError(value)
        return cls(organization=organization, name=name)

    @property
    def slug(self) -> str:
        """Return the owner/repo slug used by the GitHub API."""
        return f"{self.organization}/{self.name}"

    def render(self) -> str:
        """Return the `organization:repository` form used in target files."""
        return f"{self.organization}{TARGET_SEPARATOR}{self.name}"


@dataclasses.dataclass(frozen=True, slots=True)
class RequiredStatusChecks:
    """Status check requirements for the protected branch."""

    strict: bool
    contexts: tuple[str, ...] = ()


@dataclasses.dataclass(frozen=True, slots=True)
class DismissalRestrictions:
    """Users and teams allowed to dismiss pull request reviews."""

    users: frozenset[str] = frozenset()
    teams: frozenset[str] = frozenset()


@dataclasses.dataclass(frozen=True, slots=True)
class RequiredPullRequestReviews:
    """Review requirements; unset values are filled by policy normalization."""

    required_approving_review_count: int | None = None
    dismiss_stale_reviews: bool | None = None
    require_code_owner_reviews: bool | None = None
    require_last_push_approval: bool | None = None
    dismissal_restrictions: DismissalRestrictions | None = None


@dataclasses.dataclass(frozen=True, slots=True)
class PushRestrictions:
    """Actors allowed to push to the protected branch."""

    users: frozenset[str] = frozenset()
    teams: frozenset[str] = frozenset()
    apps: frozenset[str] = frozenset()


@dataclasses.dataclass(frozen=True)
class ProtectionSettings:
    """Branch protection fields shared by desired and live state.

    ``None`` means the value was not declared (policy) or not reported
    (live state). For ``required_status_checks`` and ``restrictions`` a
    ``None`` value also means "disabled", matching the GitHub payload.
    """

    required_status_checks: RequiredStatusChecks | None = None
    enforce_admins: bool | None = None
    required_pull_request_reviews: RequiredPullRequestReviews | None = None
    restrictions: PushRestrictions | None = None
    required_linear_history: bool | None = None
    allow_force_pushes: bool | None = None
    allow_deletions: bool | None = None
    block_creations: bool | None = None
    required_conversation_resolution: bool | None = None
    lock_branch: bool | None = None
    allow_fork_syncing: bool | None = None


@dataclasses.dataclass(frozen=True)
class ProtectionPolicy(ProtectionSettings):
    """Desired protection state plus the fields that decide compliance."""

    compare: tuple[str, ...] = DEFAULT_COMPARE_FIELDS


@dataclasses.dataclass(frozen=True)
class BranchProtection(ProtectionSettings):
    """Live protection state reported by the hosting API.

    ``extras`` keeps server-populated fields (URLs, signature settings)
    that have no policy counterpart; they never take part in comparison.
    """

    extras: typ.Mapping[str, typ.Any] = dataclasses.field(
        default_factory=dict, compare=False, hash=False
    )
