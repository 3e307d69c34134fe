"""Thin GitHub REST adapter implementing the protection client."""

from __future__ import annotations

import logging
import typing as typ
from urllib.parse import quote

import requests

from .client import (
    BranchNotProtectedError,
    PermissionDeniedError,
    ProtectionClientError,
    RepositoryNotFoundError,
    TierRequiredError,
)
from .models import (
    BranchProtection,
    DismissalRestrictions,
    PushRestrictions,
    RequiredPullRequestReviews,
    RequiredStatusChecks,
)

if typ.TYPE_CHECKING:
    from .models import ProtectionPolicy

_logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_TIMEOUT = 30

_TIER_MARKERS = ("upgrade to github pro", "make this repository public")
_NOT_PROTECTED_MARKER = "branch not protected"
_RATE_LIMIT_MARKER = "rate limit"
_FLAG_FIELDS = (
    "required_linear_history",
    "allow_force_pushes",
    "allow_deletions",
    "block_creations",
    "required_conversation_resolution",
    "lock_branch",
    "allow_fork_syncing",
)
_KNOWN_FIELDS = frozenset(
    {
        "required_status_checks",
        "enforce_admins",
        "required_pull_request_reviews",
        "restrictions",
        *_FLAG_FIELDS,
    }
)


def classify_failure(
    method: str, path: str, response: requests.Response
) -> ProtectionClientError:
    """Map a failed response onto the protection client error variants."""
    detail = response.text[:400]
    message = f"{method} {path} failed: {response.status_code} {detail}"
    lowered = detail.lower()
    if any(marker in lowered for marker in _TIER_MARKERS):
        return TierRequiredError(message)
    if response.status_code == 404:
        if _NOT_PROTECTED_MARKER in lowered:
            return BranchNotProtectedError(message)
        return RepositoryNotFoundError(message)
    if response.status_code == 403 and _RATE_LIMIT_MARKER not in lowered:
        return PermissionDeniedError(message)
    return ProtectionClientError(message)


class GithubProtectionClient:
    """Protection client backed by the GitHub REST API."""

    def __init__(
        self,
        *,
        token: str,
        api_url: str = DEFAULT_API_URL,
        timeout: int = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        """Configure a GitHub session scoped to the provided token."""
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
                "User-Agent": "brigit",
            }
        )

    def is_archived(self, organization: str, repository: str) -> bool:
        """Return the repository's archived flag."""
        data = self._get_json(self._repository_path(organization, repository))
        return bool(data.get("archived", False))

    def branch_exists(self, organization: str, repository: str, branch: str) -> bool:
        """Return True when the branch can be read."""
        path = self._branch_path(organization, repository, branch)
        try:
            self._request("GET", path)
        except RepositoryNotFoundError:
            return False
        return True

    def get_protection(
        self, organization: str, repository: str, branch: str
    ) -> BranchProtection:
        """Fetch branch protection settings for the branch."""
        data = self._get_json(self._protection_path(organization, repository, branch))
        return parse_branch_protection(data)

    def put_protection(
        self,
        organization: str,
        repository: str,
        branch: str,
        policy: ProtectionPolicy,
    ) -> None:
        """Replace branch protection with the normalized policy."""
        self._request(
            "PUT",
            self._protection_path(organization, repository, branch),
            payload=protection_payload(policy),
        )

    # Internal helpers -------------------------------------------------

    @staticmethod
    def _repository_path(organization: str, repository: str) -> str:
        owner = quote(organization, safe="")
        name = quote(repository, safe="")
        return f"/repos/{owner}/{name}"

    @classmethod
    def _branch_path(cls, organization: str, repository: str, branch: str) -> str:
        base = cls._repository_path(organization, repository)
        encoded = quote(branch, safe="")
        return f"{base}/branches/{encoded}"

    @classmethod
    def _protection_path(
        cls, organization: str, repository: str, branch: str
    ) -> str:
        return f"{cls._branch_path(organization, repository, branch)}/protection"

    def _get_json(self, path: str) -> dict[str, typ.Any]:
        response = self._request("GET", path)
        try:
            data = response.json()
        except ValueError as error:
            message = f"GET {path} returned a response that could not be parsed."
            raise ProtectionClientError(message) from error
        if not isinstance(data, dict):
            message = f"GET {path} returned an unexpected payload."
            raise ProtectionClientError(message)
        return data

    def _request(
        self,
        method: str,
        path: str,
        *,
        payload: dict[str, typ.Any] | None = None,
    ) -> requests.Response:
        url = f"{self.api_url}{path}"
        try:
            response = self.session.request(
                method, url, json=payload, timeout=self.timeout
            )
        except requests.Timeout as error:
            message = f"{method} {path} timed out after {self.timeout}s."
            raise ProtectionClientError(message) from error
        except requests.RequestException as error:
            message = f"{method} {path} failed: {error}"
            raise ProtectionClientError(message) from error
        _logger.debug(
            "%s %s -> %s: %s", method, path, response.status_code, response.text
        )
        if response.status_code >= 400:
            raise classify_failure(method, path, response)
        return response


def _enabled(payload: dict[str, typ.Any], key: str) -> bool | None:
    entry = payload.get(key)
    if isinstance(entry, dict):
        return bool(entry.get("enabled", False))
    if isinstance(entry, bool):
        return entry
    return None


def _names(entries: object, key: str) -> frozenset[str]:
    if not isinstance(entries, list):
        return frozenset()
    return frozenset(
        str(entry[key]) if isinstance(entry, dict) else str(entry)
        for entry in entries
        if not isinstance(entry, dict) or key in entry
    )


def _parse_status_checks(
    payload: dict[str, typ.Any] | None,
) -> RequiredStatusChecks | None:
    if not payload:
        return None
    contexts = payload.get("contexts") or []
    return RequiredStatusChecks(
        strict=bool(payload.get("strict", False)),
        contexts=tuple(str(ctx) for ctx in contexts),
    )


def _parse_pull_request_reviews(
    payload: dict[str, typ.Any] | None,
) -> RequiredPullRequestReviews | None:
    if not payload:
        return None
    dismissal = payload.get("dismissal_restrictions")
    restrictions = (
        DismissalRestrictions(
            users=_names(dismissal.get("users"), "login"),
            teams=_names(dismissal.get("teams"), "slug"),
        )
        if isinstance(dismissal, dict)
        else None
    )
    return RequiredPullRequestReviews(
        required_approving_review_count=int(
            payload.get("required_approving_review_count", 0)
        ),
        dismiss_stale_reviews=bool(payload.get("dismiss_stale_reviews", False)),
        require_code_owner_reviews=bool(
            payload.get("require_code_owner_reviews", False)
        ),
        require_last_push_approval=bool(
            payload.get("require_last_push_approval", False)
        ),
        dismissal_restrictions=restrictions,
    )


def _parse_restrictions(payload: dict[str, typ.Any] | None) -> PushRestrictions | None:
    if not payload:
        return None
    return PushRestrictions(
        users=_names(payload.get("users"), "login"),
        teams=_names(payload.get("teams"), "slug"),
        apps=_names(payload.get("apps"), "slug"),
    )


def parse_branch_protection(data: dict[str, typ.Any]) -> BranchProtection:
    """Convert a protection response into live protection state."""
    try:
        return BranchProtection(
            required_status_checks=_parse_status_checks(
                data.get("required_status_checks")
            ),
            enforce_admins=_enabled(data, "enforce_admins"),
            required_pull_request_reviews=_parse_pull_request_reviews(
                data.get("required_pull_request_reviews")
            ),
            restrictions=_parse_restrictions(data.get("restrictions")),
            extras={
                key: value for key, value in data.items() if key not in _KNOWN_FIELDS
            },
            **{field: _enabled(data, field) for field in _FLAG_FIELDS},
        )
    except (AttributeError, TypeError, ValueError) as error:
        message = f"Protection response could not be parsed: {error}"
        raise ProtectionClientError(message) from error


def protection_payload(policy: ProtectionPolicy) -> dict[str, typ.Any]:
    """Build the PUT body for a normalized policy."""
    checks = policy.required_status_checks
    reviews = policy.required_pull_request_reviews
    restrictions = policy.restrictions
    payload: dict[str, typ.Any] = {
        "required_status_checks": (
            {"strict": checks.strict, "contexts": list(checks.contexts)}
            if checks is not None
            else None
        ),
        "enforce_admins": policy.enforce_admins,
        "required_pull_request_reviews": None,
        "restrictions": (
            {
                "users": sorted(restrictions.users),
                "teams": sorted(restrictions.teams),
                "apps": sorted(restrictions.apps),
            }
            if restrictions is not None
            else None
        ),
    }
    if reviews is not None:
        review_payload: dict[str, typ.Any] = {
            "required_approving_review_count": reviews.required_approving_review_count,
            "dismiss_stale_reviews": reviews.dismiss_stale_reviews,
            "require_code_owner_reviews": reviews.require_code_owner_reviews,
            "require_last_push_approval": reviews.require_last_push_approval,
        }
        if (dismissal := reviews.dismissal_restrictions) is not None:
            review_payload["dismissal_restrictions"] = {
                "users": sorted(dismissal.users),
                "teams": sorted(dismissal.teams),
            }
        payload["required_pull_request_reviews"] = review_payload
    for field in _FLAG_FIELDS:
        if (value := getattr(policy, field)) is not None:
            payload[field] = value
    return payload
