"""Behavioural tests for the `brigit check` and `brigit set` commands."""

from __future__ import annotations

import pytest
from pytest_bdd import given, parsers, scenarios, then, when

from brigit import cli
from brigit.client import TierRequiredError
from brigit.models import (
    ProtectionPolicy,
    RequiredPullRequestReviews,
)
from brigit.policy import normalize_policy
from tests.helpers.protection import live_from_policy

from .conftest import BrigitWorkspace, RunResult

scenarios("features/reconcile.feature")


def _policy_entry(approvals: int) -> dict[str, object]:
    return {
        "required_status_checks": None,
        "enforce_admins": True,
        "required_pull_request_reviews": {
            "required_approving_review_count": approvals
        },
        "restrictions": None,
    }


@given(
    parsers.cfparse(
        "a default policy requiring admin enforcement and {approvals:d} approval"
    )
)
def given_default_policy(brigit_workspace: BrigitWorkspace, approvals: int) -> None:
    """Record the default policy entry."""
    brigit_workspace.policies["default"] = _policy_entry(approvals)


@given(parsers.cfparse('a policy for "{key}" requiring {approvals:d} approvals'))
def given_override_policy(
    brigit_workspace: BrigitWorkspace, key: str, approvals: int
) -> None:
    """Record a repository or organization override."""
    brigit_workspace.policies[key] = _policy_entry(approvals)


@given(parsers.cfparse('the repository "{slug}" protected with {approvals:d} approval'))
def given_protected_repository(
    brigit_workspace: BrigitWorkspace, slug: str, approvals: int
) -> None:
    """Script a repository whose live protection mirrors a policy."""
    policy = normalize_policy(
        ProtectionPolicy(
            enforce_admins=True,
            required_pull_request_reviews=RequiredPullRequestReviews(
                required_approving_review_count=approvals
            ),
        )
    )
    brigit_workspace.client.add(slug, protection=live_from_policy(policy))


@given(parsers.cfparse('the repository "{slug}" is archived'))
def given_archived_repository(brigit_workspace: BrigitWorkspace, slug: str) -> None:
    """Script an archived repository."""
    brigit_workspace.client.add(slug, archived=True)


@given(parsers.cfparse('the repository "{slug}" requires a paid tier'))
def given_tier_restricted_repository(
    brigit_workspace: BrigitWorkspace, slug: str
) -> None:
    """Script a private repository on a plan without protection support."""
    brigit_workspace.client.add(
        slug,
        write_error=TierRequiredError(
            "Upgrade to GitHub Pro or make this repository public"
        ),
    )


@given(parsers.cfparse('the ignore list contains "{entry}"'))
def given_ignored_repository(brigit_workspace: BrigitWorkspace, entry: str) -> None:
    """Add an entry to the ignore list."""
    brigit_workspace.ignored.append(entry)


@when(parsers.cfparse('I run brigit {command} for "{target}"'))
def when_run_brigit(
    brigit_workspace: BrigitWorkspace,
    cli_invocation: dict[str, RunResult],
    capsys: pytest.CaptureFixture[str],
    command: str,
    target: str,
) -> None:
    """Execute the CLI against a single target."""
    brigit_workspace.write()
    organization, _, repository = target.partition(":")
    returncode = cli.main([command, "-o", organization, "-r", repository])
    cli_invocation["result"] = RunResult(
        stdout=capsys.readouterr().out,
        returncode=returncode,
    )


@then(parsers.cfparse("the exit code is {code:d}"))
def then_exit_code(cli_invocation: dict[str, RunResult], code: int) -> None:
    """Validate the process exit code."""
    assert cli_invocation["result"].returncode == code


@then(parsers.cfparse('"{slug}" is reported as "{status}"'))
def then_status_reported(
    cli_invocation: dict[str, RunResult], slug: str, status: str
) -> None:
    """Validate the status column for the repository."""
    rows = [line.split() for line in cli_invocation["result"].stdout.splitlines()]
    assert [slug, status] in rows


@then(parsers.cfparse('the output mentions "{text}"'))
def then_output_mentions(cli_invocation: dict[str, RunResult], text: str) -> None:
    """Validate free-form output."""
    assert text in cli_invocation["result"].stdout


@then(parsers.cfparse('no protection was written for "{slug}"'))
def then_nothing_written(brigit_workspace: BrigitWorkspace, slug: str) -> None:
    """Ensure no write reached the API."""
    assert brigit_workspace.client.call_count("put_protection", slug) == 0
