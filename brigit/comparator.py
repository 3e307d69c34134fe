"""Projection comparison between live protection and the desired policy.

Only the fields named by the policy's ``compare`` list take part, so the
server-populated metadata GitHub adds to every protection response (URLs,
signature settings, check app ids) never causes a mismatch on its own.
"""

from __future__ import annotations

import dataclasses
import typing as typ

from .models import (
    PROJECTION_FIELDS,
    DismissalRestrictions,
    PushRestrictions,
    RequiredStatusChecks,
)

if typ.TYPE_CHECKING:
    from .models import ProtectionPolicy, ProtectionSettings

ABSENT_FIELD = "branch_protection"

# None in the policy means "must be disabled" for these; for every other
# field it means "not declared" and the field is left out of the comparison.
_NULLABLE_FIELDS = frozenset(
    {"required_status_checks", "dismissal_restrictions", "restrictions"}
)


def _review_value(name: str) -> typ.Callable[[ProtectionSettings], object]:
    def accessor(settings: ProtectionSettings) -> object:
        reviews = settings.required_pull_request_reviews
        if reviews is None:
            return None
        return getattr(reviews, name)

    return accessor


def _attribute(name: str) -> typ.Callable[[ProtectionSettings], object]:
    def accessor(settings: ProtectionSettings) -> object:
        return getattr(settings, name)

    return accessor


_REVIEW_FIELDS = frozenset(
    {
        "required_approving_review_count",
        "dismiss_stale_reviews",
        "require_code_owner_reviews",
        "require_last_push_approval",
        "dismissal_restrictions",
    }
)

_ACCESSORS: dict[str, typ.Callable[[ProtectionSettings], object]] = {
    field: _review_value(field) if field in _REVIEW_FIELDS else _attribute(field)
    for field in PROJECTION_FIELDS
}


@dataclasses.dataclass(frozen=True, slots=True)
class FieldDifference:
    """One projected field whose live value differs from the policy."""

    field: str
    expected: object
    actual: object

    def render(self) -> str:
        """Return `field: expected X, actual Y`."""
        expected = _format_value(self.expected)
        actual = _format_value(self.actual)
        return f"{self.field}: expected {expected}, actual {actual}"


@dataclasses.dataclass(frozen=True, slots=True)
class ComparisonResult:
    """Outcome of a projection comparison; empty differences means MATCH."""

    differences: tuple[FieldDifference, ...] = ()

    @property
    def matches(self) -> bool:
        """Return True when no projected field differs."""
        return not self.differences

    def render(self) -> str:
        """Join the differences into a single detail string."""
        return "; ".join(difference.render() for difference in self.differences)


def _canonical(field: str, value: object) -> object:
    if isinstance(value, RequiredStatusChecks):
        return (value.strict, tuple(sorted(value.contexts)))
    if field == "dismissal_restrictions" and value == DismissalRestrictions():
        return None
    return value


def _format_value(value: object) -> str:
    match value:
        case None:
            return "none"
        case bool():
            return str(value).lower()
        case RequiredStatusChecks(strict=strict, contexts=contexts):
            return f"strict={str(strict).lower()} contexts=[{', '.join(contexts)}]"
        case DismissalRestrictions(users=users, teams=teams):
            return (
                f"users=[{', '.join(sorted(users))}] "
                f"teams=[{', '.join(sorted(teams))}]"
            )
        case PushRestrictions(users=users, teams=teams, apps=apps):
            return (
                f"users=[{', '.join(sorted(users))}] "
                f"teams=[{', '.join(sorted(teams))}] "
                f"apps=[{', '.join(sorted(apps))}]"
            )
        case _:
            return str(value)


def compare(
    live: ProtectionSettings | None, policy: ProtectionPolicy
) -> ComparisonResult:
    """Compare live protection against the policy's projection.

    Absent live protection always mismatches. Differences follow the
    declaration order of the protection fields.
    """
    if live is None:
        return ComparisonResult(
            (FieldDifference(field=ABSENT_FIELD, expected="enabled", actual="absent"),)
        )
    selected = set(policy.compare)
    differences: list[FieldDifference] = []
    for field in PROJECTION_FIELDS:
        if field not in selected:
            continue
        accessor = _ACCESSORS[field]
        expected = accessor(policy)
        if expected is None and field not in _NULLABLE_FIELDS:
            continue
        actual = accessor(live)
        if _canonical(field, expected) != _canonical(field, actual):
            differences.append(
                FieldDifference(field=field, expected=expected, actual=actual)
            )
    return ComparisonResult(tuple(differences))
