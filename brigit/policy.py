"""Desired-state policy parsing, normalization, and lookup."""

from __future__ import annotations

import dataclasses
import json
import typing as typ
from pathlib import Path

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from .errors import BrigitError
from .models import (
    DEFAULT_COMPARE_FIELDS,
    PROJECTION_FIELDS,
    DismissalRestrictions,
    ProtectionPolicy,
    PushRestrictions,
    RequiredPullRequestReviews,
    RequiredStatusChecks,
)

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from .models import RepositoryTarget

DEFAULT_POLICY_KEY = "default"
DEFAULT_REVIEW_COUNT = 1

_FLAG_FIELDS = (
    "required_linear_history",
    "allow_force_pushes",
    "allow_deletions",
    "block_creations",
    "required_conversation_resolution",
    "lock_branch",
    "allow_fork_syncing",
)

_KNOWN_KEYS = frozenset(
    {
        "required_status_checks",
        "enforce_admins",
        "required_pull_request_reviews",
        "restrictions",
        "compare",
        *_FLAG_FIELDS,
    }
)

_yaml = YAML(typ="safe")


class PolicyConfigurationError(BrigitError):
    """Raised when the policy document cannot be loaded at all."""

    def __init__(self, path: Path, detail: str) -> None:
        """Initialise the error with the document path and cause."""
        super().__init__(f"Cannot load policy configuration {path}: {detail}")


class MalformedPolicyError(BrigitError):
    """Raised when a single policy entry is invalid."""

    def __init__(self, key: str, detail: str) -> None:
        """Initialise the error with the policy key and cause."""
        self.key = key
        self.detail = detail
        super().__init__(f"Policy {key!r} is malformed: {detail}")


def _require_bool(value: object, field: str) -> bool | None:
    if value is None or isinstance(value, bool):
        return value
    message = f"{field} must be a boolean"
    raise ValueError(message)


def _require_mapping(value: object, field: str) -> cabc.Mapping[str, typ.Any]:
    if isinstance(value, dict):
        return value
    message = f"{field} must be a mapping"
    raise ValueError(message)


T = typ.TypeVar("T")


def _or(value: T | None, default: T) -> T:
    return default if value is None else value


def _string_set(
    payload: cabc.Mapping[str, typ.Any], key: str, field: str
) -> frozenset[str]:
    values = payload.get(key) or []
    if isinstance(values, str) or not isinstance(values, list):
        message = f"{field}.{key} must be a list of strings"
        raise ValueError(message)
    return frozenset(str(value) for value in values)


def _parse_status_checks(value: object) -> RequiredStatusChecks | None:
    if value is None:
        return None
    payload = _require_mapping(value, "required_status_checks")
    contexts = payload.get("contexts") or []
    if isinstance(contexts, str) or not isinstance(contexts, list):
        message = "required_status_checks.contexts must be a list of strings"
        raise ValueError(message)
    strict = _require_bool(payload.get("strict"), "required_status_checks.strict")
    return RequiredStatusChecks(
        strict=bool(strict),
        contexts=tuple(str(context) for context in contexts),
    )


def _parse_dismissal_restrictions(value: object) -> DismissalRestrictions | None:
    if value is None:
        return None
    field = "required_pull_request_reviews.dismissal_restrictions"
    payload = _require_mapping(value, field)
    return DismissalRestrictions(
        users=_string_set(payload, "users", field),
        teams=_string_set(payload, "teams", field),
    )


def _parse_review_count(value: object) -> int | None:
    # The API range is not validated here; out-of-range counts fail on write.
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        message = "required_approving_review_count must be an integer"
        raise ValueError(message)
    return value


def _parse_reviews(value: object) -> RequiredPullRequestReviews | None:
    if value is None:
        return None
    payload = _require_mapping(value, "required_pull_request_reviews")
    prefix = "required_pull_request_reviews"
    return RequiredPullRequestReviews(
        required_approving_review_count=_parse_review_count(
            payload.get("required_approving_review_count")
        ),
        dismiss_stale_reviews=_require_bool(
            payload.get("dismiss_stale_reviews"), f"{prefix}.dismiss_stale_reviews"
        ),
        require_code_owner_reviews=_require_bool(
            payload.get("require_code_owner_reviews"),
            f"{prefix}.require_code_owner_reviews",
        ),
        require_last_push_approval=_require_bool(
            payload.get("require_last_push_approval"),
            f"{prefix}.require_last_push_approval",
        ),
        dismissal_restrictions=_parse_dismissal_restrictions(
            payload.get("dismissal_restrictions")
        ),
    )


def _parse_restrictions(value: object) -> PushRestrictions | None:
    if value is None:
        return None
    payload = _require_mapping(value, "restrictions")
    return PushRestrictions(
        users=_string_set(payload, "users", "restrictions"),
        teams=_string_set(payload, "teams", "restrictions"),
        apps=_string_set(payload, "apps", "restrictions"),
    )


def _parse_compare(value: object) -> tuple[str, ...]:
    if value is None:
        return DEFAULT_COMPARE_FIELDS
    if isinstance(value, str) or not isinstance(value, list):
        message = "compare must be a list of field names"
        raise ValueError(message)
    fields = tuple(str(item) for item in value)
    if unknown := [field for field in fields if field not in PROJECTION_FIELDS]:
        message = f"compare names unknown fields: {', '.join(unknown)}"
        raise ValueError(message)
    return fields


def policy_from_mapping(key: str, data: object) -> ProtectionPolicy:
    """Parse one policy entry shaped like the GitHub protection payload."""
    try:
        payload = _require_mapping(data, "policy")
        if unknown := sorted(str(key) for key in payload if key not in _KNOWN_KEYS):
            message = f"unknown keys: {', '.join(unknown)}"
            raise ValueError(message)
        flags = {
            field: _require_bool(payload.get(field), field) for field in _FLAG_FIELDS
        }
        return ProtectionPolicy(
            required_status_checks=_parse_status_checks(
                payload.get("required_status_checks")
            ),
            enforce_admins=_require_bool(payload.get("enforce_admins"), "enforce_admins"),
            required_pull_request_reviews=_parse_reviews(
                payload.get("required_pull_request_reviews")
            ),
            restrictions=_parse_restrictions(payload.get("restrictions")),
            compare=_parse_compare(payload.get("compare")),
            **flags,
        )
    except ValueError as error:
        raise MalformedPolicyError(key, str(error)) from error


def normalize_policy(policy: ProtectionPolicy) -> ProtectionPolicy:
    """Return a fully-specified policy with the documented defaults applied."""
    reviews = policy.required_pull_request_reviews or RequiredPullRequestReviews()
    normalized_reviews = RequiredPullRequestReviews(
        required_approving_review_count=_or(
            reviews.required_approving_review_count, DEFAULT_REVIEW_COUNT
        ),
        dismiss_stale_reviews=_or(reviews.dismiss_stale_reviews, False),
        require_code_owner_reviews=_or(reviews.require_code_owner_reviews, False),
        require_last_push_approval=_or(reviews.require_last_push_approval, False),
        dismissal_restrictions=reviews.dismissal_restrictions,
    )
    return dataclasses.replace(
        policy,
        enforce_admins=_or(policy.enforce_admins, False),
        required_pull_request_reviews=normalized_reviews,
    )


class PolicyStore:
    """Read-only mapping of policy keys to normalized policies."""

    def __init__(
        self,
        policies: cabc.Mapping[str, ProtectionPolicy],
        invalid: cabc.Mapping[str, str] | None = None,
    ) -> None:
        """Normalize every policy once so consumers never see partial ones."""
        self._policies = {
            key: normalize_policy(policy) for key, policy in policies.items()
        }
        self._invalid = dict(invalid or {})

    @classmethod
    def from_document(cls, document: cabc.Mapping[str, typ.Any]) -> PolicyStore:
        """Build a store, recording malformed entries instead of failing."""
        policies: dict[str, ProtectionPolicy] = {}
        invalid: dict[str, str] = {}
        for key, entry in document.items():
            try:
                policies[str(key)] = policy_from_mapping(str(key), entry)
            except MalformedPolicyError as error:
                invalid[str(key)] = error.detail
        return cls(policies, invalid)

    def __len__(self) -> int:
        """Return the number of usable policies."""
        return len(self._policies)

    @property
    def keys(self) -> tuple[str, ...]:
        """Expose the usable policy keys."""
        return tuple(self._policies)

    @staticmethod
    def candidate_keys(organization: str, repository: str) -> tuple[str, ...]:
        """Return lookup keys from most to least specific."""
        return (f"{organization}/{repository}", organization, DEFAULT_POLICY_KEY)

    def resolve(self, organization: str, repository: str) -> ProtectionPolicy | None:
        """Return the most specific policy, or None when nothing applies.

        Raises MalformedPolicyError when the most specific matching entry
        exists but could not be parsed.
        """
        for key in self.candidate_keys(organization, repository):
            if key in self._invalid:
                raise MalformedPolicyError(key, self._invalid[key])
            if (policy := self._policies.get(key)) is not None:
                return policy
        return None

    def resolve_target(self, target: RepositoryTarget) -> ProtectionPolicy | None:
        """Resolve the policy for a repository target."""
        return self.resolve(target.organization, target.name)


def _read_document(path: Path) -> object:
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        return json.loads(text)
    return _yaml.load(text)


def load_policy_store(path: Path) -> PolicyStore:
    """Load the policy document from JSON or YAML.

    A document that is missing, unreadable, or empty is fatal for the
    whole run; individual malformed entries are not.
    """
    target = Path(path)
    if not target.is_file():
        raise PolicyConfigurationError(target, "file not found")
    try:
        document = _read_document(target)
    except (OSError, ValueError, YAMLError) as error:
        raise PolicyConfigurationError(target, str(error)) from error
    if not isinstance(document, dict) or not document:
        raise PolicyConfigurationError(target, "expected a non-empty mapping")
    return PolicyStore.from_document(document)
