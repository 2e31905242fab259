"""
Tests for the autosave flow.

Integration-style: the real policy and models, an in-memory ledger.
"""

import io
import json
import logging
from datetime import date
from decimal import Decimal

import pytest
from structlog.testing import capture_logs

from autosave.audit import AuditLogger, configure_logging
from autosave.config.settings import ConfigError
from autosave.models.ledger import Link, LinkType, TransactionGroup
from autosave.models.run import Decision
from autosave.orchestrator import DEFAULT_START_DATE, AutosaveFlow, resolve_window
from autosave.services.ledger import FetchError, LinkWriteError, WriteError


def _messages(logs):
    return [entry["event"] for entry in logs]


class TestResolveWindow:
    """Tests for the scan window."""

    def test_lookback_days(self):
        assert resolve_window(7, date(2024, 3, 31)) == (date(2024, 3, 24), date(2024, 3, 31))

    def test_zero_days_scans_from_default_start(self):
        assert resolve_window(0, date(2024, 3, 31)) == (DEFAULT_START_DATE, date(2024, 3, 31))
        assert DEFAULT_START_DATE == date(2000, 1, 1)


class TestAutosaveRun:
    """End-to-end runs against an in-memory ledger."""

    def test_creates_transfer_and_link(self, make_settings, make_transaction, make_ledger, today):
        ledger = make_ledger(make_transaction(journal_id=101, amount="19.30", balance_after="500"))
        flow = AutosaveFlow(ledger, make_settings(), today=today)

        with capture_logs() as logs:
            report = flow.run()

        assert len(ledger.transfers) == 1
        payload = ledger.transfers[0]
        assert payload.amount == "0.70"
        assert payload.source_id == 1
        assert payload.destination_id == 2
        assert payload.type == "transfer"
        assert payload.tags == ["autosave", "__autosave__"]
        assert payload.date == "2024-03-05T00:00:00+00:00"

        assert ledger.created_links == [(101, 9000, 1)]

        assert report.created_count == 1
        outcome = report.outcomes[0]
        assert outcome.decision == Decision.CREATED
        assert outcome.transfer_journal_id == 9000
        assert outcome.delta == Decimal("0.70")

        messages = _messages(logs)
        assert (
            'OK: created auto-save transfer (Journal #9000) and linked to original #101 "Groceries"'
            in messages
        )

    def test_candidate_line_content(self, make_settings, make_transaction, make_ledger, today):
        ledger = make_ledger(make_transaction())
        flow = AutosaveFlow(ledger, make_settings(), today=today)

        with capture_logs() as logs:
            flow.run()

        candidate = next(e for e in logs if e.get("event_type") == "autosave_candidate")
        assert candidate["event"] == (
            'Autosave candidate: Original #101 "Groceries" amount=19.30 -> delta=0.70 date=2024-03-05'
        )
        assert candidate["journal_id"] == 101
        assert candidate["delta"] == "0.70"

    def test_fetches_configured_window_and_type(self, make_settings, make_ledger, today):
        ledger = make_ledger()
        flow = AutosaveFlow(ledger, make_settings(days=30, only_type="withdrawal"), today=today)

        flow.run()

        assert ledger.fetch_calls[0] == (
            "transactions", 1, date(2024, 3, 1), date(2024, 3, 31), "withdrawal"
        )
        assert ("links",) in ledger.fetch_calls

    def test_dry_run_writes_nothing(self, make_settings, make_transaction, make_ledger, today):
        ledger = make_ledger(make_transaction())
        flow = AutosaveFlow(ledger, make_settings(dry_run=True), today=today)

        with capture_logs() as logs:
            report = flow.run()

        assert ledger.write_count == 0
        assert report.candidate_count == 1
        assert report.outcomes[0].decision == Decision.CANDIDATE
        assert any(m.startswith("Autosave candidate: Original #101") for m in _messages(logs))

    def test_split_group_only_qualifying_leg_is_written(
        self, make_settings, make_transaction, make_ledger, today
    ):
        group = TransactionGroup(
            id="77",
            transactions=[
                make_transaction(journal_id=201, amount="12.40", tags=[]),
                make_transaction(journal_id=202, amount="3.10", tags=["Coffee"]),
            ],
        )
        ledger = make_ledger()
        ledger.groups = [group]
        flow = AutosaveFlow(ledger, make_settings(exclude_keywords="coffee"), today=today)

        with capture_logs() as logs:
            report = flow.run()

        assert [p.source_journal_id for p in ledger.transfers] == [201]
        assert ledger.transfers[0].amount == "7.60"
        assert [o.decision for o in report.outcomes] == [Decision.CREATED, Decision.EXCLUDED]
        assert report.outcomes[1].matched_keyword == "coffee"
        assert any(m.startswith('SKIP (Tag): "Groceries"') for m in _messages(logs))

    def test_second_run_is_idempotent(self, make_settings, make_transaction, make_ledger, today):
        ledger = make_ledger(
            make_transaction(journal_id=101, amount="19.30"),
            make_transaction(journal_id=102, amount="4.25"),
        )
        settings = make_settings()

        first = AutosaveFlow(ledger, settings, today=today).run()
        writes_after_first = ledger.write_count
        second = AutosaveFlow(ledger, settings, today=today).run()

        assert first.created_count == 2
        assert ledger.write_count == writes_after_first
        assert second.created_count == 0
        assert {o.decision for o in second.outcomes} == {Decision.ALREADY_LINKED}

    def test_any_link_type_blocks(self, make_settings, make_transaction, make_ledger, today):
        ledger = make_ledger(
            make_transaction(journal_id=101),
            links=[Link(inward_id=555, outward_id=101, link_type_id=4)],
        )

        report = AutosaveFlow(ledger, make_settings(), today=today).run()

        assert ledger.write_count == 0
        assert report.outcomes[0].decision == Decision.ALREADY_LINKED

    def test_floor_boundary(self, make_settings, make_transaction, make_ledger, today):
        ledger = make_ledger(
            make_transaction(journal_id=101, balance_after="20.00"),
            make_transaction(journal_id=102, balance_after="20.01"),
        )

        report = AutosaveFlow(ledger, make_settings(min_balance=Decimal("20")), today=today).run()

        assert [p.source_journal_id for p in ledger.transfers] == [102]
        assert report.outcomes[0].decision == Decision.BELOW_FLOOR

    def test_unknown_balance_is_not_blocked(self, make_settings, make_transaction, make_ledger, today):
        ledger = make_ledger(make_transaction(balance_after=None))

        report = AutosaveFlow(ledger, make_settings(min_balance=Decimal("100000")), today=today).run()

        assert report.created_count == 1

    def test_silent_skips_are_debug_only(self, make_settings, make_transaction, make_ledger, today):
        ledger = make_ledger(
            make_transaction(journal_id=101, amount="20.00"),
            make_transaction(journal_id=None),
        )

        with capture_logs() as logs:
            report = AutosaveFlow(ledger, make_settings(), today=today).run()

        skips = [e for e in logs if e.get("event_type") == "transaction_skipped"]
        assert [e["log_level"] for e in skips] == ["debug", "debug"]
        assert [o.decision for o in report.outcomes] == [
            Decision.NO_DELTA,
            Decision.MISSING_JOURNAL_ID,
        ]
        assert ledger.write_count == 0

    def test_correlation_id_on_every_event(self, make_settings, make_transaction, make_ledger, today):
        audit_logger = AuditLogger()
        ledger = make_ledger(make_transaction())
        flow = AutosaveFlow(ledger, make_settings(), audit_logger=audit_logger, today=today)

        with capture_logs() as logs:
            report = flow.run()

        assert report.correlation_id == audit_logger.correlation_id
        assert {e["correlation_id"] for e in logs} == {str(audit_logger.correlation_id)}
        assert _messages(logs)[0] == "Auto-save started"
        assert _messages(logs)[-1] == "Auto-save finished"


class TestWriteFailures:
    """Tests for failed writes."""

    def test_transfer_failure_aborts_run_by_default(
        self, make_settings, make_transaction, make_ledger, today
    ):
        ledger = make_ledger(
            make_transaction(journal_id=101),
            make_transaction(journal_id=102),
        )
        ledger.fail_transfer_for = {101}
        flow = AutosaveFlow(ledger, make_settings(), today=today)

        with capture_logs() as logs:
            with pytest.raises(WriteError):
                flow.run()

        assert ledger.write_count == 0
        assert any(e.get("event_type") == "transfer_failed" for e in logs)

    def test_link_failure_is_reported_as_partial(
        self, make_settings, make_transaction, make_ledger, today
    ):
        ledger = make_ledger(make_transaction(journal_id=101))
        ledger.fail_link_for = {101}
        flow = AutosaveFlow(ledger, make_settings(), today=today)

        with capture_logs() as logs:
            with pytest.raises(LinkWriteError) as exc_info:
                flow.run()

        assert exc_info.value.source_journal_id == 101
        assert exc_info.value.transfer_journal_id == 9000
        assert len(ledger.transfers) == 1
        assert ledger.created_links == []

        partial = next(e for e in logs if e.get("event_type") == "link_failed")
        assert partial["log_level"] == "critical"
        assert partial["event"].startswith("PARTIAL: auto-save transfer (Journal #9000)")
        assert "original #101" in partial["event"]

    def test_continue_on_write_error(self, make_settings, make_transaction, make_ledger, today):
        ledger = make_ledger(
            make_transaction(journal_id=101),
            make_transaction(journal_id=102),
            make_transaction(journal_id=103),
        )
        ledger.fail_transfer_for = {101}
        ledger.fail_link_for = {102}
        flow = AutosaveFlow(ledger, make_settings(stop_on_write_error=False), today=today)

        report = flow.run()

        assert [o.decision for o in report.outcomes] == [
            Decision.FAILED,
            Decision.FAILED,
            Decision.CREATED,
        ]
        assert report.outcomes[0].transfer_journal_id is None
        assert report.outcomes[1].transfer_journal_id == 9000
        assert report.has_failures is True
        assert ledger.created_links == [(103, 9001, 1)]


class TestFetchFailures:
    """Read failures are fatal for the whole run."""

    @pytest.mark.parametrize("resource", ["transactions", "links"])
    def test_fetch_failure_aborts_before_writes(
        self, resource, make_settings, make_transaction, make_ledger, today
    ):
        ledger = make_ledger(make_transaction())
        ledger.fail_fetch = resource

        with capture_logs() as logs:
            with pytest.raises(FetchError):
                AutosaveFlow(ledger, make_settings(), today=today).run()

        assert ledger.write_count == 0
        assert any(e.get("event_type") == "fetch_failed" for e in logs)


class TestLinkTypeResolution:
    """Tests for LINK_TYPE_NAME."""

    def test_name_resolves_to_id(self, make_settings, make_transaction, make_ledger, today):
        ledger = make_ledger(
            make_transaction(),
            link_types=[
                LinkType(id=1, name="Related"),
                LinkType(id=5, name="Autosave"),
            ],
        )
        flow = AutosaveFlow(ledger, make_settings(link_type_name="autosave"), today=today)

        flow.run()

        assert ledger.created_links == [(101, 9000, 5)]

    def test_unknown_name_is_config_error(self, make_settings, make_transaction, make_ledger, today):
        ledger = make_ledger(make_transaction(), link_types=[LinkType(id=1, name="Related")])
        flow = AutosaveFlow(ledger, make_settings(link_type_name="Missing"), today=today)

        with pytest.raises(ConfigError, match="Unknown link type"):
            flow.run()

        assert ledger.write_count == 0

    def test_id_used_without_name(self, make_settings, make_transaction, make_ledger, today):
        ledger = make_ledger(make_transaction())
        AutosaveFlow(ledger, make_settings(link_type_id=3), today=today).run()

        assert ("link_types",) not in ledger.fetch_calls
        assert ledger.created_links == [(101, 9000, 3)]


class TestLogOutput:
    """Rendered log lines, with logging configured like the CLI does."""

    @pytest.fixture
    def log_stream(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield io.StringIO()
        root.handlers[:] = handlers
        root.setLevel(level)

    @pytest.fixture
    def ledger(self, make_ledger, make_transaction):
        return make_ledger(
            make_transaction(journal_id=101, amount="19.30"),
            make_transaction(journal_id=102, amount="40.00"),
        )

    def test_console_hides_silent_skips(self, log_stream, ledger, make_settings, today):
        configure_logging(verbose=False, log_format="console", stream=log_stream)

        AutosaveFlow(ledger, make_settings(dry_run=True), today=today).run()

        output = log_stream.getvalue()
        assert 'Autosave candidate: Original #101 "Groceries"' in output
        assert "Auto-save finished" in output
        assert "SKIP (no_delta)" not in output

    def test_verbose_json_shows_silent_skips(self, log_stream, ledger, make_settings, today):
        configure_logging(verbose=True, log_format="json", stream=log_stream)

        AutosaveFlow(ledger, make_settings(dry_run=True), today=today).run()

        entries = [json.loads(line) for line in log_stream.getvalue().splitlines() if line]
        skip = next(e for e in entries if e.get("event_type") == "transaction_skipped")
        assert skip["event"] == 'SKIP (no_delta): #102 "Groceries"'
        assert skip["level"] == "debug"
        assert skip["journal_id"] == 102
        assert {e["logger"] for e in entries} == {"autosave"}
        assert entries[0]["event"] == "Auto-save started (dry run)"
