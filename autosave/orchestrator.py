"""
Main Orchestrator for Firefly Autosave

This module ties together all the components and defines the
end-to-end autosave run:

1. Load  → transactions of the window and all existing links (once)
2. Guard → snapshot of every journal that already takes part in a link
3. Decide → exclusion, delta, floor, identity (pure, per split)
4. Write → create transfer, then link it to the original

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing is written in dry-run mode; the check sits before any write
- A journal is never autosaved twice
- Every decision is audited
- A transfer whose link failed is reported, never rolled back
"""

from datetime import date, timedelta
from typing import Optional

from autosave.audit import AuditLogger
from autosave.config.settings import AutosaveSettings, ConfigError, Settings
from autosave.models.ledger import AutosavePayload, Transaction, TransactionGroup, to_date_only
from autosave.models.run import Decision, RunReport, TransactionOutcome
from autosave.policy import AutosavePolicy, LinkedJournalGuard, PolicyResult
from autosave.services.ledger import (
    FetchError,
    FireflyClient,
    FireflyLedgerGateway,
    LedgerGatewayInterface,
    LinkWriteError,
    WriteError,
)


DEFAULT_START_DATE = date(2000, 1, 1)


def resolve_window(days: int, today: Optional[date] = None) -> tuple[date, date]:
    """
    Date window to scan.

    A positive lookback scans the last `days` days up to today;
    0 scans everything since DEFAULT_START_DATE.
    """
    end = today or date.today()
    start = end - timedelta(days=days) if days > 0 else DEFAULT_START_DATE
    return start, end


class AutosaveFlow:
    """
    Orchestrates one autosave run.

    Flow:
    1. Resolve link type (by name, if configured)
    2. Fetch transactions and links
    3. Build the linked-journal guard
    4. For every split of every group: decide, then (unless dry run)
       create the transfer and its link

    Transactions are processed strictly one after the other.
    """

    def __init__(
        self,
        gateway: LedgerGatewayInterface,
        settings: AutosaveSettings,
        audit_logger: Optional[AuditLogger] = None,
        today: Optional[date] = None,
    ):
        self._gateway = gateway
        self._settings = settings
        self._policy = AutosavePolicy(settings)
        self._audit_logger = audit_logger or AuditLogger()
        self._today = today

    def run(self) -> RunReport:
        """
        Execute one autosave run.

        Returns:
            RunReport with one outcome per visited split

        Raises:
            ConfigError: If the configured link type name does not exist
            FetchError: If transactions, links or link types cannot be read
            WriteError: If a write fails and stop_on_write_error is set
        """
        settings = self._settings
        start, end = resolve_window(settings.days, self._today)

        report = RunReport(
            correlation_id=self._audit_logger.correlation_id,
            start_date=start,
            end_date=end,
            dry_run=settings.dry_run,
        )

        self._audit_logger.log_run_started(
            account_id=settings.source_account_id,
            start_date=start.isoformat(),
            end_date=end.isoformat(),
            dry_run=settings.dry_run,
        )

        link_type_id = self._resolve_link_type_id()
        groups = self._fetch("transactions", lambda: self._gateway.fetch_transactions(
            settings.source_account_id,
            start,
            end,
            settings.only_type,
        ))
        links = self._fetch("transaction links", self._gateway.fetch_links)
        guard = LinkedJournalGuard.from_links(links)

        for transaction in self._iter_transactions(groups):
            outcome = self.process_transaction(transaction, guard, link_type_id)
            report.outcomes.append(outcome)

        self._audit_logger.log_run_finished(report.summary())

        return report

    def process_transaction(
        self,
        transaction: Transaction,
        guard: LinkedJournalGuard,
        link_type_id: Optional[int] = None,
    ) -> TransactionOutcome:
        """
        Decide on one split and, if it qualifies, write its autosave.

        Raises:
            WriteError: If a write fails and stop_on_write_error is set
        """
        result = self._policy.evaluate(transaction, guard)

        if result.decision == Decision.EXCLUDED:
            self._audit_logger.log_excluded(transaction, result.matched_keyword)
            return self._outcome(transaction, result)

        if not result.qualifies:
            self._audit_logger.log_skipped(
                transaction,
                result.decision,
                delta=result.delta or None,
            )
            return self._outcome(transaction, result)

        payload = self.build_payload(transaction, result)
        self._audit_logger.log_candidate(
            transaction,
            delta=result.delta,
            date=to_date_only(payload.date),
        )

        if self._settings.dry_run:
            return self._outcome(transaction, result)

        try:
            transfer_journal_id = self._write(
                transaction,
                payload,
                link_type_id or self._settings.link_type_id,
            )
        except WriteError as e:
            if self._settings.stop_on_write_error:
                raise
            return self._outcome(
                transaction,
                result,
                decision=Decision.FAILED,
                transfer_journal_id=getattr(e, "transfer_journal_id", None),
                error_message=str(e),
            )

        return self._outcome(
            transaction,
            result,
            decision=Decision.CREATED,
            transfer_journal_id=transfer_journal_id,
        )

    def build_payload(self, transaction: Transaction, result: PolicyResult) -> AutosavePayload:
        return AutosavePayload.for_transaction(
            transaction,
            delta=result.delta,
            source_id=self._settings.source_account_id,
            destination_id=self._settings.destination_account_id,
            tags=self._settings.autosave_tags,
        )

    def _write(
        self,
        transaction: Transaction,
        payload: AutosavePayload,
        link_type_id: int,
    ) -> int:
        """Create the transfer, then the link. Returns the transfer's journal id."""
        try:
            transfer_journal_id = self._gateway.create_transfer(payload)
        except WriteError as e:
            self._audit_logger.log_transfer_failed(transaction, str(e))
            raise

        try:
            self._gateway.create_link(
                transaction.journal_id,
                transfer_journal_id,
                link_type_id,
            )
        except WriteError as e:
            self._audit_logger.log_link_failed(transaction, transfer_journal_id, str(e))
            raise LinkWriteError(
                f"Auto-save transfer #{transfer_journal_id} was created but could not be "
                f"linked to original #{transaction.journal_id}: {e}",
                source_journal_id=transaction.journal_id,
                transfer_journal_id=transfer_journal_id,
            ) from e

        self._audit_logger.log_created(transaction, transfer_journal_id)
        return transfer_journal_id

    def _resolve_link_type_id(self) -> int:
        name = self._settings.link_type_name
        if not name:
            return self._settings.link_type_id

        link_types = self._fetch("link types", self._gateway.fetch_link_types)
        wanted = name.strip().lower()
        for link_type in link_types:
            if link_type.name.strip().lower() == wanted:
                self._audit_logger.log_link_type_resolved(name, link_type.id)
                return link_type.id

        known = ", ".join(sorted(lt.name for lt in link_types)) or "none"
        message = f'Unknown link type "{name}" (known: {known})'
        self._audit_logger.log_error("config_error", message)
        raise ConfigError(message)

    def _fetch(self, resource: str, loader):
        try:
            return loader()
        except FetchError as e:
            self._audit_logger.log_fetch_failed(resource, str(e))
            raise

    @staticmethod
    def _iter_transactions(groups: list[TransactionGroup]):
        for group in groups:
            yield from group.transactions

    @staticmethod
    def _outcome(
        transaction: Transaction,
        result: PolicyResult,
        decision: Optional[Decision] = None,
        transfer_journal_id: Optional[int] = None,
        error_message: Optional[str] = None,
    ) -> TransactionOutcome:
        return TransactionOutcome(
            journal_id=transaction.journal_id,
            description=transaction.description,
            decision=decision or result.decision,
            delta=result.delta or None,
            matched_keyword=result.matched_keyword,
            transfer_journal_id=transfer_journal_id,
            error_message=error_message,
        )


def create_app_components(
    settings: Settings,
    audit_logger: Optional[AuditLogger] = None,
) -> tuple[AutosaveFlow, FireflyClient]:
    """
    Factory function to create the run's components.

    Returns:
        (autosave_flow, firefly_client) - the caller owns the client
        and closes it when the run is over.
    """
    client = FireflyClient(settings.firefly)
    gateway = FireflyLedgerGateway(client)
    flow = AutosaveFlow(
        gateway=gateway,
        settings=settings.autosave,
        audit_logger=audit_logger,
    )
    return flow, client
