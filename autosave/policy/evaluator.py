"""
Autosave Policy

Applies the rules to one transaction, in a fixed order:

1. EXCLUSION - a tag matches an exclude keyword
2. DELTA     - nothing to round up
3. FLOOR     - balance after the withdrawal is not above the minimum
4. IDENTITY  - no journal id, or the journal is already linked

The first failing check decides. A transaction passing all four is a
candidate; what happens to it (dry run or write) is up to the flow.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from autosave.config.settings import AutosaveSettings
from autosave.models.ledger import Transaction
from autosave.models.run import Decision
from autosave.policy.guard import LinkedJournalGuard
from autosave.policy.rules import ZERO, compute_delta, has_sufficient_balance, matching_keyword


@dataclass(frozen=True)
class PolicyResult:
    """Verdict for one transaction."""
    decision: Decision
    delta: Decimal = ZERO
    matched_keyword: Optional[str] = None

    @property
    def qualifies(self) -> bool:
        return self.decision == Decision.CANDIDATE


class AutosavePolicy:
    """Evaluates transactions against the configured autosave rules."""

    def __init__(self, settings: AutosaveSettings):
        self._round_to = settings.round_to
        self._min_balance = settings.min_balance
        self._exclude_keywords = settings.exclude_keywords_list

    def evaluate(
        self,
        transaction: Transaction,
        guard: LinkedJournalGuard,
    ) -> PolicyResult:
        keyword = matching_keyword(transaction, self._exclude_keywords)
        if keyword is not None:
            return PolicyResult(Decision.EXCLUDED, matched_keyword=keyword)

        delta = compute_delta(transaction.absolute_amount, self._round_to)
        if delta == ZERO:
            return PolicyResult(Decision.NO_DELTA)

        if not has_sufficient_balance(transaction.balance_after, self._min_balance):
            return PolicyResult(Decision.BELOW_FLOOR, delta=delta)

        if transaction.journal_id is None:
            return PolicyResult(Decision.MISSING_JOURNAL_ID, delta=delta)
        if guard.is_linked(transaction.journal_id):
            return PolicyResult(Decision.ALREADY_LINKED, delta=delta)

        return PolicyResult(Decision.CANDIDATE, delta=delta)
