"""Compliance reconciliation across a batch of repository targets.

Each target runs through a fixed pipeline: ignore check, archive check,
branch check, policy resolution, then either a projection comparison
(scan) or a write of the normalized policy (enforce). Every check
short-circuits and every target ends with exactly one outcome.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import typing as typ

from .client import (
    BranchNotProtectedError,
    PermissionDeniedError,
    ProtectionClientError,
    RepositoryNotFoundError,
    TierRequiredError,
)
from .comparator import compare
from .policy import MalformedPolicyError, normalize_policy
from .report import RepositoryOutcome, RunReport, Status

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from .client import ProtectionClient
    from .ignore import IgnoreRegistry
    from .models import ProtectionPolicy, RepositoryTarget
    from .policy import PolicyStore

_logger = logging.getLogger(__name__)

DEFAULT_BRANCH = "main"
DETAIL_BRANCH_MISSING = "branch does not exist"
DETAIL_NO_POLICY = "no policy configured"
DETAIL_NOT_PROTECTED = "no branch protection enabled"
DETAIL_TIER_REQUIRED = "requires a paid tier for private repositories"
DETAIL_NOT_FOUND = "not found or insufficient permission"
DETAIL_PERMISSION_DENIED = "exists but the caller lacks admin rights"
DETAIL_DUPLICATE = "duplicate target"
DETAIL_CANCELLED = "run cancelled"

Runner = typ.Callable[
    [typ.Callable[[], RepositoryOutcome]], typ.Awaitable[RepositoryOutcome]
]


class Mode(enum.StrEnum):
    """Whether a run only reports or also writes the policy."""

    SCAN = "scan"
    ENFORCE = "enforce"


class CancelSignal(typ.Protocol):
    """Cooperative cancellation flag, satisfied by `threading.Event`."""

    def is_set(self) -> bool:
        """Return True once cancellation has been requested."""
        ...


def _describe(error: ProtectionClientError) -> str:
    if isinstance(error, RepositoryNotFoundError):
        return DETAIL_NOT_FOUND
    if isinstance(error, PermissionDeniedError):
        return DETAIL_PERMISSION_DENIED
    return error.detail


class Reconciler:
    """Classify targets against the policy store through a protection client."""

    def __init__(
        self,
        client: ProtectionClient,
        policies: PolicyStore,
        ignored: IgnoreRegistry,
        *,
        branch: str = DEFAULT_BRANCH,
    ) -> None:
        """Store the collaborators; none of them change during a run."""
        self.client = client
        self.policies = policies
        self.ignored = ignored
        self.branch = branch

    def process(self, target: RepositoryTarget, mode: Mode) -> RepositoryOutcome:
        """Run the pipeline for one target and return its outcome.

        Unexpected exceptions become ERROR outcomes so one target can never
        abort the rest of the run.
        """
        try:
            outcome = self._classify(target, mode)
        except Exception as error:  # noqa: BLE001
            _logger.exception("%s: unexpected failure", target.slug)
            outcome = RepositoryOutcome(
                target, Status.ERROR, str(error) or type(error).__name__
            )
        if outcome.detail:
            _logger.info("%s: %s (%s)", target.slug, outcome.status, outcome.detail)
        else:
            _logger.info("%s: %s", target.slug, outcome.status)
        return outcome

    def _classify(self, target: RepositoryTarget, mode: Mode) -> RepositoryOutcome:
        org, repo = target.organization, target.name
        if self.ignored.contains(org, repo):
            return RepositoryOutcome(target, Status.IGNORED)

        _logger.debug("%s: checking archive state", target.slug)
        try:
            archived = self.client.is_archived(org, repo)
        except ProtectionClientError as error:
            return RepositoryOutcome(target, Status.ERROR, _describe(error))
        if archived:
            return RepositoryOutcome(target, Status.ARCHIVED)

        _logger.debug("%s: checking branch %s", target.slug, self.branch)
        try:
            exists = self.client.branch_exists(org, repo, self.branch)
        except ProtectionClientError as error:
            return RepositoryOutcome(target, Status.ERROR, _describe(error))
        if not exists:
            return RepositoryOutcome(target, Status.ERROR, DETAIL_BRANCH_MISSING)

        try:
            policy = self.policies.resolve_target(target)
        except MalformedPolicyError as error:
            return RepositoryOutcome(target, Status.ERROR, str(error))
        if policy is None:
            return RepositoryOutcome(target, Status.ERROR, DETAIL_NO_POLICY)

        if mode == Mode.ENFORCE:
            return self._enforce(target, policy)
        return self._scan(target, policy)

    def _scan(
        self, target: RepositoryTarget, policy: ProtectionPolicy
    ) -> RepositoryOutcome:
        _logger.debug("%s: fetching protection", target.slug)
        try:
            live = self.client.get_protection(
                target.organization, target.name, self.branch
            )
        except BranchNotProtectedError:
            return RepositoryOutcome(target, Status.NOK, DETAIL_NOT_PROTECTED)
        except TierRequiredError:
            return RepositoryOutcome(target, Status.NOK, DETAIL_TIER_REQUIRED)
        except ProtectionClientError as error:
            return RepositoryOutcome(target, Status.ERROR, _describe(error))

        result = compare(live, policy)
        if result.matches:
            return RepositoryOutcome(target, Status.OK)
        return RepositoryOutcome(target, Status.NOK, result.render())

    def _enforce(
        self, target: RepositoryTarget, policy: ProtectionPolicy
    ) -> RepositoryOutcome:
        _logger.debug("%s: applying protection", target.slug)
        try:
            self.client.put_protection(
                target.organization, target.name, self.branch, normalize_policy(policy)
            )
        except TierRequiredError:
            return RepositoryOutcome(target, Status.NOK, DETAIL_TIER_REQUIRED)
        except (RepositoryNotFoundError, PermissionDeniedError) as error:
            return RepositoryOutcome(target, Status.ERROR, _describe(error))
        except ProtectionClientError as error:
            return RepositoryOutcome(target, Status.NOK, error.detail)
        return RepositoryOutcome(target, Status.OK)

    async def reconcile_async(
        self,
        targets: cabc.Iterable[RepositoryTarget],
        mode: Mode,
        *,
        workers: int = 1,
        cancel: CancelSignal | None = None,
        runner: Runner | None = None,
    ) -> RunReport:
        """Process targets on a bounded pool, preserving input order.

        Once `cancel` is set no new target is dispatched; in-flight targets
        finish and the rest are reported as SKIPPED.
        """
        if workers < 1:
            message = "workers must be at least 1"
            raise ValueError(message)
        run = runner or (lambda thunk: asyncio.to_thread(thunk))
        semaphore = asyncio.Semaphore(workers)
        slots: list[asyncio.Task[RepositoryOutcome] | RepositoryOutcome] = []
        seen: set[RepositoryTarget] = set()
        cancelled = False

        def _cancel_requested() -> bool:
            return cancel is not None and cancel.is_set()

        async def dispatch(target: RepositoryTarget) -> RepositoryOutcome:
            try:
                return await run(lambda: self.process(target, mode))
            finally:
                semaphore.release()

        for target in targets:
            if cancelled or _cancel_requested():
                cancelled = True
                slots.append(
                    RepositoryOutcome(target, Status.SKIPPED, DETAIL_CANCELLED)
                )
                continue
            if target in seen:
                slots.append(
                    RepositoryOutcome(target, Status.SKIPPED, DETAIL_DUPLICATE)
                )
                continue
            seen.add(target)
            await semaphore.acquire()
            if _cancel_requested():
                semaphore.release()
                cancelled = True
                slots.append(
                    RepositoryOutcome(target, Status.SKIPPED, DETAIL_CANCELLED)
                )
                continue
            slots.append(asyncio.create_task(dispatch(target)))

        tasks = [slot for slot in slots if isinstance(slot, asyncio.Task)]
        await asyncio.gather(*tasks)
        outcomes = tuple(
            slot.result() if isinstance(slot, asyncio.Task) else slot for slot in slots
        )
        if cancelled:
            _logger.warning("Run cancelled; undispatched targets were skipped.")
        return RunReport(mode=str(mode), outcomes=outcomes, cancelled=cancelled)


def reconcile(
    targets: cabc.Iterable[RepositoryTarget],
    mode: Mode,
    policy_store: PolicyStore,
    ignore_registry: IgnoreRegistry,
    protection_client: ProtectionClient,
    *,
    branch: str = DEFAULT_BRANCH,
    workers: int = 1,
    cancel: CancelSignal | None = None,
) -> RunReport:
    """Scan or enforce branch protection for every target."""
    reconciler = Reconciler(
        protection_client, policy_store, ignore_registry, branch=branch
    )
    return asyncio.run(
        reconciler.reconcile_async(targets, mode, workers=workers, cancel=cancel)
    )
