"""
Shared fixtures for Firefly Autosave tests.

Tests never talk to a real ledger: the flow runs against
InMemoryLedgerGateway, the Firefly client against httpx.MockTransport.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

import pytest
import structlog

from autosave.config.settings import AutosaveSettings
from autosave.models.ledger import AutosavePayload, Link, LinkType, Transaction, TransactionGroup
from autosave.services.ledger import FetchError, LedgerGatewayInterface, LinkWriteError, WriteError


SETTINGS_ENV_VARS = [
    "FIREFLY_URL",
    "FIREFLY_TOKEN",
    "FIREFLY_TIMEOUT_SECONDS",
    "FIREFLY_PAGE_SIZE",
    "FIREFLY_READ_ATTEMPTS",
    "ACCOUNT",
    "DESTINATION",
    "AMOUNT",
    "SOURCE_ACCOUNT_ID",
    "DESTINATION_ACCOUNT_ID",
    "ROUND_TO",
    "DAYS",
    "MIN_BALANCE",
    "DRY_RUN",
    "EXCLUDE_KEYWORDS",
    "ONLY_TYPE",
    "AUTOSAVE_TAG",
    "LINK_TYPE_ID",
    "LINK_TYPE_NAME",
    "VERBOSE",
    "LOG_FORMAT",
    "STOP_ON_WRITE_ERROR",
]


class InMemoryLedgerGateway(LedgerGatewayInterface):
    """
    Ledger double that records every call.

    Created links are stored, so a second run against the same instance
    sees them, like it would against a real ledger.
    """

    def __init__(
        self,
        groups: Optional[list[TransactionGroup]] = None,
        links: Optional[list[Link]] = None,
        link_types: Optional[list[LinkType]] = None,
        first_journal_id: int = 9000,
    ):
        self.groups = list(groups or [])
        self.links = list(links or [])
        self.link_types = list(link_types or [])
        self._next_journal_id = first_journal_id

        self.transfers: list[AutosavePayload] = []
        self.created_links: list[tuple[int, int, int]] = []
        self.fetch_calls: list[tuple] = []

        self.fail_fetch: Optional[str] = None
        self.fail_transfer_for: set[int] = set()
        self.fail_link_for: set[int] = set()

    @property
    def write_count(self) -> int:
        return len(self.transfers) + len(self.created_links)

    def fetch_transactions(self, account_id, start, end, type_filter=None):
        self.fetch_calls.append(("transactions", account_id, start, end, type_filter))
        if self.fail_fetch == "transactions":
            raise FetchError("Failed to load transactions: HTTP 500")
        return list(self.groups)

    def fetch_links(self):
        self.fetch_calls.append(("links",))
        if self.fail_fetch == "links":
            raise FetchError("Failed to load transaction links: HTTP 500")
        return list(self.links)

    def fetch_link_types(self):
        self.fetch_calls.append(("link_types",))
        if self.fail_fetch == "link_types":
            raise FetchError("Failed to load link types: HTTP 500")
        return list(self.link_types)

    def create_transfer(self, payload):
        if payload.source_journal_id in self.fail_transfer_for:
            raise WriteError(f"Failed to create auto-save transfer for #{payload.source_journal_id}")
        self.transfers.append(payload)
        journal_id = self._next_journal_id
        self._next_journal_id += 1
        return journal_id

    def create_link(self, inward_id, outward_id, link_type_id):
        if inward_id in self.fail_link_for:
            raise LinkWriteError(
                f"Failed to link #{inward_id} to #{outward_id}",
                source_journal_id=inward_id,
                transfer_journal_id=outward_id,
            )
        self.created_links.append((inward_id, outward_id, link_type_id))
        self.links.append(Link(
            id=str(len(self.links) + 1),
            inward_id=inward_id,
            outward_id=outward_id,
            link_type_id=link_type_id,
        ))


@pytest.fixture(autouse=True)
def isolated_settings_environment(monkeypatch, tmp_path):
    """Keep real env vars and stray .env files out of the settings under test."""
    for name in SETTINGS_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    yield
    structlog.reset_defaults()


@pytest.fixture
def make_settings():
    def _make(**overrides) -> AutosaveSettings:
        values = {
            "source_account_id": 1,
            "destination_account_id": 2,
            "round_to": Decimal("20"),
            "min_balance": Decimal("20"),
        }
        values.update(overrides)
        return AutosaveSettings(_env_file=None, **values)
    return _make


@pytest.fixture
def make_transaction():
    def _make(
        journal_id: Optional[int] = 101,
        amount: str = "19.30",
        balance_after: Optional[str] = "500",
        tags: Optional[list[str]] = None,
        description: str = "Groceries",
        date: str = "2024-03-05",
    ) -> Transaction:
        return Transaction(
            journal_id=journal_id,
            description=description,
            amount=Decimal(amount),
            date=date,
            tags=tags or [],
            balance_after=Decimal(balance_after) if balance_after is not None else None,
        )
    return _make


@pytest.fixture
def make_ledger():
    def _make(*transactions: Transaction, **kwargs) -> InMemoryLedgerGateway:
        groups = [
            TransactionGroup(id=str(i), transactions=[t])
            for i, t in enumerate(transactions, start=1)
        ]
        return InMemoryLedgerGateway(groups=groups, **kwargs)
    return _make


@pytest.fixture
def today() -> date:
    return date(2024, 3, 31)
