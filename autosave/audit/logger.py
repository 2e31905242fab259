"""
Audit Logger

DESIGN DECISION: Every decision the flow takes is logged. This provides:
1. One status line per transaction for the operator
2. The ids needed to reconcile a failed write by hand
3. Debug output for silent skips when running verbose

The audit logger:
- Writes through structlog (console or JSON rendering)
- Tags every event of a run with the same correlation ID
"""

import logging
import sys
from typing import IO, Optional
from uuid import UUID, uuid4

import structlog

from autosave.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from autosave.models.ledger import Transaction
from autosave.models.run import Decision


LOGGER_NAME = "autosave"


def configure_logging(
    verbose: bool = False,
    log_format: str = "console",
    stream: Optional[IO[str]] = None,
) -> None:
    """
    Configure structlog for the process.

    Called once by the entrypoint. Library code only calls
    structlog.get_logger().
    """
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        format="%(message)s",
        stream=stream or sys.stdout,
        level=level,
        force=True,
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if log_format == "json"
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


class AuditLogger:
    """
    Central audit logging service for one run.

    The event description is the log message; event type, journal id,
    correlation id and details become structured fields.
    """

    def __init__(self, correlation_id: Optional[UUID] = None):
        """
        Initialize audit logger.

        Args:
            correlation_id: ID shared by all events of the run.
                            A new one is created if omitted.
        """
        self.correlation_id = correlation_id or create_correlation_id()
        self._logger = structlog.get_logger(LOGGER_NAME)

    def log(self, event: AuditEvent) -> None:
        """Log an audit event at the level matching its severity."""
        log_dict = event.to_log_dict()

        if event.severity == AuditSeverity.CRITICAL:
            self._logger.critical(event.description, **log_dict)
        elif event.severity == AuditSeverity.ERROR:
            self._logger.error(event.description, **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning(event.description, **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug(event.description, **log_dict)
        else:
            self._logger.info(event.description, **log_dict)

    def log_run_started(
        self,
        account_id: int,
        start_date: str,
        end_date: str,
        dry_run: bool,
    ) -> None:
        self.log(AuditEventBuilder.run_started(
            account_id=account_id,
            start_date=start_date,
            end_date=end_date,
            dry_run=dry_run,
            correlation_id=self.correlation_id,
        ))

    def log_run_finished(self, summary: dict[str, int]) -> None:
        self.log(AuditEventBuilder.run_finished(
            summary=summary,
            correlation_id=self.correlation_id,
        ))

    def log_link_type_resolved(self, name: str, link_type_id: int) -> None:
        self.log(AuditEventBuilder.link_type_resolved(
            name=name,
            link_type_id=link_type_id,
            correlation_id=self.correlation_id,
        ))

    def log_excluded(self, transaction: Transaction, keyword: str) -> None:
        """Log a tag exclusion (always visible)."""
        self.log(AuditEventBuilder.transaction_excluded(
            journal_id=transaction.journal_id,
            description=transaction.description,
            keyword=keyword,
            correlation_id=self.correlation_id,
        ))

    def log_skipped(
        self,
        transaction: Transaction,
        decision: Decision,
        delta=None,
    ) -> None:
        """Log a silent skip (visible with verbose only)."""
        self.log(AuditEventBuilder.transaction_skipped(
            journal_id=transaction.journal_id,
            description=transaction.description,
            reason=decision.value,
            delta=delta,
            correlation_id=self.correlation_id,
        ))

    def log_candidate(self, transaction: Transaction, delta, date: str) -> None:
        self.log(AuditEventBuilder.autosave_candidate(
            journal_id=transaction.journal_id,
            description=transaction.description,
            amount=transaction.absolute_amount,
            delta=delta,
            date=date,
            correlation_id=self.correlation_id,
        ))

    def log_created(self, transaction: Transaction, transfer_journal_id: int) -> None:
        self.log(AuditEventBuilder.autosave_created(
            journal_id=transaction.journal_id,
            transfer_journal_id=transfer_journal_id,
            description=transaction.description,
            correlation_id=self.correlation_id,
        ))

    def log_transfer_failed(self, transaction: Transaction, error_message: str) -> None:
        self.log(AuditEventBuilder.transfer_failed(
            journal_id=transaction.journal_id,
            description=transaction.description,
            error_message=error_message,
            correlation_id=self.correlation_id,
        ))

    def log_link_failed(
        self,
        transaction: Transaction,
        transfer_journal_id: Optional[int],
        error_message: str,
    ) -> None:
        self.log(AuditEventBuilder.link_failed(
            journal_id=transaction.journal_id,
            transfer_journal_id=transfer_journal_id,
            description=transaction.description,
            error_message=error_message,
            correlation_id=self.correlation_id,
        ))

    def log_fetch_failed(self, resource: str, error_message: str) -> None:
        self.log(AuditEventBuilder.fetch_failed(
            resource=resource,
            error_message=error_message,
            correlation_id=self.correlation_id,
        ))

    def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
    ) -> None:
        self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=self.correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    One per run; every event of the run carries it.
    """
    return uuid4()
