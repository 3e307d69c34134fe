"""Command line entry points for brigit."""

from __future__ import annotations

import asyncio
import contextlib
import dataclasses
import logging
import signal
import threading
import typing as typ
from pathlib import Path  # noqa: TC003
from typing import Annotated  # noqa: ICN003

from cyclopts import App, Parameter

from .config import resolve_settings
from .errors import BrigitError
from .github import GithubProtectionClient
from .ignore import load_ignore_registry
from .listing import list_organization_targets
from .models import RepositoryTarget
from .policy import load_policy_store
from .reconcile import Mode, reconcile
from .report import render_summary, render_table, write_issues_file
from .targets import load_targets

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from .config import Settings

app = App(help="Audit and enforce branch protection across GitHub repositories.")

ERROR_MISSING_GITHUB_TOKEN = (
    "GITHUB_TOKEN is required; "  # noqa: S105
    "pass --token or export the environment variable."
)
ERROR_REPOSITORY_WITHOUT_ORGANIZATION = (
    "Organization (-o) must be specified when specifying a repository (-r)."
)
ERROR_NO_TARGETS_SCAN = (
    "Provide -f <repos_file>, -o <organization>, or both -o and -r."
)
ERROR_NO_TARGETS_ENFORCE = (
    "Provide either -f <repos_file> or both -o <organization> and -r <repository>."
)
ERROR_EMPTY_TARGETS = "No repositories to process."

LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


@dataclasses.dataclass(frozen=True, slots=True)
class RunOptions:
    """Options shared by the check and set commands."""

    organization: Annotated[
        str | None, Parameter(name=["--organization", "-o"])
    ] = None
    repository: Annotated[str | None, Parameter(name=["--repository", "-r"])] = None
    file: Annotated[Path | None, Parameter(name=["--file", "-f"])] = None
    config: Path | None = None
    ignore_file: Path | None = None
    branch: str | None = None
    workers: int | None = None
    timeout: int | None = None
    issues_file: Path | None = None
    token: str | None = None
    api_url: str | None = None
    debug: Annotated[bool, Parameter(name=["--debug", "-d"])] = False


def _configure_logging(*, debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format=LOG_FORMAT,
    )


def _collect_targets(
    mode: Mode, options: RunOptions, settings: Settings
) -> list[RepositoryTarget]:
    if options.repository and not options.organization:
        raise BrigitError(ERROR_REPOSITORY_WITHOUT_ORGANIZATION)
    if options.file is not None:
        targets = load_targets(options.file)
    elif options.organization and options.repository:
        targets = [
            RepositoryTarget(organization=options.organization, name=options.repository)
        ]
    elif options.organization and mode == Mode.SCAN:
        targets = asyncio.run(
            list_organization_targets((options.organization,), token=settings.token)
        )
    elif mode == Mode.SCAN:
        raise BrigitError(ERROR_NO_TARGETS_SCAN)
    else:
        raise BrigitError(ERROR_NO_TARGETS_ENFORCE)
    if not targets:
        raise BrigitError(ERROR_EMPTY_TARGETS)
    return targets


@contextlib.contextmanager
def _cancel_on_interrupt(cancel: threading.Event) -> cabc.Iterator[None]:
    """Turn the first SIGINT into a graceful drain; the second one aborts."""
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    def handler(signum: int, frame: object) -> None:
        if cancel.is_set():
            raise KeyboardInterrupt
        print("brigit: cancelling; waiting for in-flight repositories to finish")
        cancel.set()

    previous = signal.signal(signal.SIGINT, handler)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


def _run(mode: Mode, options: RunOptions) -> int:
    _configure_logging(debug=options.debug)
    settings = resolve_settings(
        token=options.token,
        api_url=options.api_url,
        config=options.config,
        ignore_file=options.ignore_file,
        branch=options.branch,
        workers=options.workers,
        timeout=options.timeout,
    )
    if not settings.token:
        raise BrigitError(ERROR_MISSING_GITHUB_TOKEN)
    policies = load_policy_store(settings.policy_path)
    ignored = load_ignore_registry(settings.ignore_path)
    targets = _collect_targets(mode, options, settings)
    client = GithubProtectionClient(
        token=settings.token, api_url=settings.api_url, timeout=settings.timeout
    )

    verb = "Checking" if mode == Mode.SCAN else "Setting"
    print(f"{verb} branch protection for {len(targets)} repository/repositories...")
    cancel = threading.Event()
    with _cancel_on_interrupt(cancel):
        report = reconcile(
            targets,
            mode,
            policies,
            ignored,
            client,
            branch=settings.branch,
            workers=settings.workers,
            cancel=cancel,
        )

    print(render_table(report))
    print()
    print(render_summary(report))
    if options.issues_file is not None:
        path = write_issues_file(report, options.issues_file)
        print()
        print(f"Repositories with issues written to: {path}")
    return report.exit_code


@app.command()
def check(options: Annotated[RunOptions, Parameter(name="*")]) -> int:
    """Report whether each repository's branch protection matches the policy."""
    return _run(Mode.SCAN, options)


@app.command(name="set")
def set_protection(options: Annotated[RunOptions, Parameter(name="*")]) -> int:
    """Apply the policy's branch protection to each repository."""
    return _run(Mode.ENFORCE, options)


def main(argv: list[str] | tuple[str, ...] | None = None) -> int:
    """Entry point for the brigit CLI."""
    try:
        result = app(argv)
    except BrigitError as error:
        print(f"brigit: {error}")
        return 1
    return int(result or 0)


if __name__ == "__main__":
    raise SystemExit(main())
