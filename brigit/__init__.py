"""Audit and enforce branch protection across GitHub repositories."""

from __future__ import annotations

from .models import BranchProtection, ProtectionPolicy, RepositoryTarget
from .reconcile import Mode, reconcile
from .report import RepositoryOutcome, RunReport, Status

__all__ = [
    "BranchProtection",
    "Mode",
    "ProtectionPolicy",
    "RepositoryOutcome",
    "RepositoryTarget",
    "RunReport",
    "Status",
    "reconcile",
]
