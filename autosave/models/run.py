"""
Run Result Models

Every transaction visited by a run ends in exactly one Decision. The
RunReport collects them so callers (the CLI, tests) can see what a run
did without parsing log output.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class Decision(str, Enum):
    """Outcome of evaluating one transaction."""
    EXCLUDED = "excluded"                      # Tag matched an exclude keyword
    NO_DELTA = "no_delta"                      # Nothing to round up
    BELOW_FLOOR = "below_floor"                # Balance after not above minimum
    MISSING_JOURNAL_ID = "missing_journal_id"
    ALREADY_LINKED = "already_linked"          # Journal already part of a link
    CANDIDATE = "candidate"                    # Qualifies, dry run
    CREATED = "created"                        # Transfer and link written
    FAILED = "failed"                          # A write failed

    @property
    def is_skip(self) -> bool:
        return self in SKIP_DECISIONS


SKIP_DECISIONS = frozenset({
    Decision.EXCLUDED,
    Decision.NO_DELTA,
    Decision.BELOW_FLOOR,
    Decision.MISSING_JOURNAL_ID,
    Decision.ALREADY_LINKED,
})


class TransactionOutcome(BaseModel):
    """What happened to one source transaction."""

    journal_id: Optional[int] = None
    description: str = ""
    decision: Decision
    delta: Optional[Decimal] = None
    matched_keyword: Optional[str] = None
    transfer_journal_id: Optional[int] = Field(
        default=None,
        description="Journal id of the created transfer, if any"
    )
    error_message: Optional[str] = None


class RunReport(BaseModel):
    """Summary of one autosave run."""

    correlation_id: UUID
    start_date: date
    end_date: date
    dry_run: bool = False
    outcomes: list[TransactionOutcome] = Field(default_factory=list)

    def count(self, decision: Decision) -> int:
        return sum(1 for o in self.outcomes if o.decision == decision)

    @property
    def created_count(self) -> int:
        return self.count(Decision.CREATED)

    @property
    def candidate_count(self) -> int:
        return self.count(Decision.CANDIDATE)

    @property
    def failed_count(self) -> int:
        return self.count(Decision.FAILED)

    @property
    def skipped_count(self) -> int:
        return sum(1 for o in self.outcomes if o.decision.is_skip)

    @property
    def has_failures(self) -> bool:
        return self.failed_count > 0

    def summary(self) -> dict[str, int]:
        return {
            "visited": len(self.outcomes),
            "created": self.created_count,
            "candidates": self.candidate_count,
            "skipped": self.skipped_count,
            "failed": self.failed_count,
        }
