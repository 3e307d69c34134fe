"""Helpers for discovering repositories within GitHub organizations."""

from __future__ import annotations

import asyncio
import typing as typ

from github3 import GitHub
from github3.exceptions import (
    ConnectionError as GitHubConnectionError,
)
from github3.exceptions import (
    ForbiddenError,
    GitHubError,
    NotFoundError,
)

from .errors import BrigitError
from .models import RepositoryTarget
from .targets import deduplicate_targets

Runner = typ.Callable[
    [typ.Callable[[], list[RepositoryTarget]]],
    typ.Awaitable[list[RepositoryTarget]],
]

ERROR_NO_ORGANIZATIONS = "Specify at least one organization to list."


def _no_organizations_error() -> BrigitError:
    return BrigitError(ERROR_NO_ORGANIZATIONS)


def _organization_not_found_error(organization: str) -> BrigitError:
    message = f"Organization {organization!r} was not found on GitHub."
    return BrigitError(message)


def _organization_forbidden_error(organization: str) -> BrigitError:
    message = f"Access to organization {organization!r} is forbidden."
    return BrigitError(message)


def _github_api_error(error: Exception) -> BrigitError:
    message = f"GitHub API error: {error}"
    return BrigitError(message)


def _connection_error(error: Exception) -> BrigitError:
    parts: list[str] = []
    current: BaseException | None = error
    seen: set[int] = set()
    while current and id(current) not in seen:
        seen.add(id(current))
        text = str(current).strip()
        if text and text not in parts:
            parts.append(text)
        current = current.__cause__ or current.__context__

    detail = "; caused by: ".join(parts) if parts else repr(error)
    suggestion = (
        "Unable to contact GitHub over HTTPS. This usually means your TLS "
        "configuration or certificate store needs attention. If you are "
        "behind an intercepting proxy, export REQUESTS_CA_BUNDLE (or "
        "SSL_CERT_FILE) with the proxy's root certificate."
    )
    message = f"{suggestion}\nOriginal error: {detail}"
    return BrigitError(message)


async def list_organization_targets(
    organizations: typ.Sequence[str],
    *,
    token: str | None = None,
    runner: Runner | None = None,
    client_factory: typ.Callable[[], GitHub] | None = None,
) -> list[RepositoryTarget]:
    """Return repository targets across the provided organizations."""
    if not organizations:
        raise _no_organizations_error()

    runner_fn = runner or (lambda thunk: asyncio.to_thread(thunk))
    factory = client_factory or (lambda: GitHub(token=token))
    client = factory()

    tasks = [
        _list_single_organization(client, organization, runner_fn)
        for organization in organizations
    ]
    results = await asyncio.gather(*tasks)

    combined: list[RepositoryTarget] = []
    for organization_targets in results:
        combined.extend(organization_targets)
    return deduplicate_targets(combined)


async def _list_single_organization(
    client: GitHub,
    organization: str,
    runner: Runner,
) -> list[RepositoryTarget]:
    def fetch() -> list[RepositoryTarget]:
        generator = client.repositories_by(organization, type="owner", number=-1)
        targets: list[RepositoryTarget] = []
        for repo in generator:
            name = getattr(repo, "name", None)
            if not name:
                continue
            owner = getattr(getattr(repo, "owner", None), "login", None)
            targets.append(
                RepositoryTarget(organization=owner or organization, name=name)
            )
        targets.sort(key=lambda target: target.name)
        return targets

    try:
        return await runner(fetch)
    except NotFoundError as error:
        raise _organization_not_found_error(organization) from error
    except ForbiddenError as error:
        raise _organization_forbidden_error(organization) from error
    except GitHubConnectionError as error:
        raise _connection_error(error) from error
    except GitHubError as error:
        raise _github_api_error(error) from error
