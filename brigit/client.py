"""Protection client interface consumed by the reconciler.

Adapters classify raw API failures into the error variants below so the
reconciler never inspects response text.
"""

from __future__ import annotations

import typing as typ

from .errors import BrigitError

if typ.TYPE_CHECKING:
    from .models import BranchProtection, ProtectionPolicy


class ProtectionClientError(BrigitError):
    """Generic read or write failure; carries the raw detail."""

    def __init__(self, detail: str) -> None:
        """Store the detail so operators can debug the failure."""
        self.detail = detail
        super().__init__(detail)


class RepositoryNotFoundError(ProtectionClientError):
    """Raised when a repository or branch is missing or hidden from the caller."""


class PermissionDeniedError(ProtectionClientError):
    """Raised when the repository exists but the caller lacks admin rights."""


class BranchNotProtectedError(ProtectionClientError):
    """Raised when the branch has no protection configured."""


class TierRequiredError(ProtectionClientError):
    """Raised when the plan does not support protection on this repository."""


class ProtectionClient(typ.Protocol):
    """Capabilities the reconciler needs from the hosting API."""

    def is_archived(self, organization: str, repository: str) -> bool:
        """Return True when the repository is archived."""
        ...

    def branch_exists(self, organization: str, repository: str, branch: str) -> bool:
        """Return True when the branch exists."""
        ...

    def get_protection(
        self, organization: str, repository: str, branch: str
    ) -> BranchProtection:
        """Return live protection; raise BranchNotProtectedError when none."""
        ...

    def put_protection(
        self,
        organization: str,
        repository: str,
        branch: str,
        policy: ProtectionPolicy,
    ) -> None:
        """Replace the branch protection with the provided policy."""
        ...
