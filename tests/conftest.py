"""Shared pytest fixtures for brigit tests."""

from __future__ import annotations

import pytest

from brigit.models import (
    ProtectionPolicy,
    RepositoryTarget,
    RequiredPullRequestReviews,
)
from brigit.policy import PolicyStore
from tests.helpers.protection import FakeProtectionClient


@pytest.fixture
def default_policy() -> ProtectionPolicy:
    """Return a policy requiring admins and one approval."""
    return ProtectionPolicy(
        enforce_admins=True,
        required_pull_request_reviews=RequiredPullRequestReviews(
            required_approving_review_count=1
        ),
    )


@pytest.fixture
def policy_store(default_policy: ProtectionPolicy) -> PolicyStore:
    """Return a store holding only the default policy."""
    return PolicyStore({"default": default_policy})


@pytest.fixture
def fake_client() -> FakeProtectionClient:
    """Return an empty in-memory protection client."""
    return FakeProtectionClient()


@pytest.fixture
def target() -> RepositoryTarget:
    """Return the canonical svc-a target."""
    return RepositoryTarget(organization="acme", name="svc-a")
