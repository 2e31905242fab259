"""
Audit Models for Firefly Autosave

Every decision the flow takes is logged as an audit event. This provides:
1. A line per transaction an operator can read after a run
2. The ids needed to reconcile a half-finished autosave by hand
3. Structured fields for machine-readable (JSON) log output

DESIGN DECISION: The description of each event is the human-readable
status line. Everything else goes into details.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every step of a run has its own event type.
    """
    # Run lifecycle
    RUN_STARTED = "run_started"
    RUN_FINISHED = "run_finished"
    LINK_TYPE_RESOLVED = "link_type_resolved"

    # Decisions
    TRANSACTION_EXCLUDED = "transaction_excluded"
    TRANSACTION_SKIPPED = "transaction_skipped"
    AUTOSAVE_CANDIDATE = "autosave_candidate"

    # Writes
    AUTOSAVE_CREATED = "autosave_created"
    TRANSFER_FAILED = "transfer_failed"
    LINK_FAILED = "link_failed"

    # System events
    FETCH_FAILED = "fetch_failed"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - which journal is this about?
    journal_id: Optional[int] = Field(
        default=None,
        description="Source journal the event relates to"
    )

    # Correlation - all events of one run share it
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID of the run that produced the event"
    )

    description: str = Field(
        ...,
        description="Human-readable status line"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.

        The description is left out; it is the log message itself.
        """
        log_dict = {
            "event_type": self.event_type.value,
            "journal_id": self.journal_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            **self.details,
        }
        if self.error_message:
            log_dict["error_message"] = self.error_message
        return {k: v for k, v in log_dict.items() if v is not None}


def _money(value: Decimal) -> str:
    return f"{value:.2f}"


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_excluded(12, "Coffee", "coffee", run_id)
        event = AuditEventBuilder.autosave_created(12, 99, "Coffee", run_id)
    """

    @staticmethod
    def run_started(
        account_id: int,
        start_date: str,
        end_date: str,
        dry_run: bool,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RUN_STARTED,
            correlation_id=correlation_id,
            description="Auto-save started" + (" (dry run)" if dry_run else ""),
            details={
                "account_id": account_id,
                "start": start_date,
                "end": end_date,
                "dry_run": dry_run,
            },
        )

    @staticmethod
    def run_finished(
        summary: dict[str, int],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RUN_FINISHED,
            correlation_id=correlation_id,
            description="Auto-save finished",
            details=dict(summary),
        )

    @staticmethod
    def link_type_resolved(
        name: str,
        link_type_id: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LINK_TYPE_RESOLVED,
            severity=AuditSeverity.DEBUG,
            correlation_id=correlation_id,
            description=f'Link type "{name}" resolved to #{link_type_id}',
            details={
                "link_type_name": name,
                "link_type_id": link_type_id,
            },
        )

    @staticmethod
    def transaction_excluded(
        journal_id: Optional[int],
        description: str,
        keyword: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_EXCLUDED,
            journal_id=journal_id,
            correlation_id=correlation_id,
            description=f'SKIP (Tag): "{description}" --> Excluded_Keyword "{keyword}" found',
            details={
                "keyword": keyword,
            },
        )

    @staticmethod
    def transaction_skipped(
        journal_id: Optional[int],
        description: str,
        reason: str,
        correlation_id: UUID,
        delta: Optional[Decimal] = None,
    ) -> AuditEvent:
        details: dict[str, Any] = {"reason": reason}
        if delta is not None:
            details["delta"] = _money(delta)
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_SKIPPED,
            severity=AuditSeverity.DEBUG,
            journal_id=journal_id,
            correlation_id=correlation_id,
            description=f'SKIP ({reason}): #{journal_id} "{description}"',
            details=details,
        )

    @staticmethod
    def autosave_candidate(
        journal_id: int,
        description: str,
        amount: Decimal,
        delta: Decimal,
        date: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.AUTOSAVE_CANDIDATE,
            journal_id=journal_id,
            correlation_id=correlation_id,
            description=(
                f'Autosave candidate: Original #{journal_id} "{description}" '
                f"amount={amount} -> delta={_money(delta)} date={date}"
            ),
            details={
                "amount": str(amount),
                "delta": _money(delta),
                "date": date,
            },
        )

    @staticmethod
    def autosave_created(
        journal_id: int,
        transfer_journal_id: int,
        description: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.AUTOSAVE_CREATED,
            journal_id=journal_id,
            correlation_id=correlation_id,
            description=(
                f"OK: created auto-save transfer (Journal #{transfer_journal_id}) "
                f'and linked to original #{journal_id} "{description}"'
            ),
            details={
                "transfer_journal_id": transfer_journal_id,
            },
        )

    @staticmethod
    def transfer_failed(
        journal_id: int,
        description: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSFER_FAILED,
            severity=AuditSeverity.ERROR,
            journal_id=journal_id,
            correlation_id=correlation_id,
            description=(
                f'FAILED: could not create auto-save transfer for original #{journal_id} "{description}"'
            ),
            error_message=error_message,
        )

    @staticmethod
    def link_failed(
        journal_id: int,
        transfer_journal_id: Optional[int],
        description: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LINK_FAILED,
            severity=AuditSeverity.CRITICAL,
            journal_id=journal_id,
            correlation_id=correlation_id,
            description=(
                f"PARTIAL: auto-save transfer (Journal #{transfer_journal_id}) was created "
                f'but linking it to original #{journal_id} "{description}" failed. '
                "Link or delete the transfer manually."
            ),
            details={
                "transfer_journal_id": transfer_journal_id,
            },
            error_message=error_message,
        )

    @staticmethod
    def fetch_failed(
        resource: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FETCH_FAILED,
            severity=AuditSeverity.ERROR,
            correlation_id=correlation_id,
            description=f"FAILED: could not load {resource} from the ledger",
            details={
                "resource": resource,
            },
            error_message=error_message,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
