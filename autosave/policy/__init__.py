"""Autosave decision policy."""

from autosave.policy.evaluator import AutosavePolicy, PolicyResult
from autosave.policy.guard import LinkedJournalGuard
from autosave.policy.rules import (
    compute_delta,
    has_sufficient_balance,
    is_excluded,
    matching_keyword,
)

__all__ = [
    "AutosavePolicy",
    "LinkedJournalGuard",
    "PolicyResult",
    "compute_delta",
    "has_sufficient_balance",
    "is_excluded",
    "matching_keyword",
]
