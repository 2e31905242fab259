"""
Abstract Ledger Gateway Interface

DESIGN DECISION: The autosave flow only talks to the ledger through this
interface. This allows us to:
1. Keep the decision logic free of HTTP details
2. Use an in-memory ledger for testing
3. Point the flow at a different ledger backend later

The interface is intentionally small - just the reads and writes one
autosave run needs. There is no caching and no retry at this level.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Optional

from autosave.models.ledger import AutosavePayload, Link, LinkType, TransactionGroup


class LedgerGatewayInterface(ABC):
    """
    Abstract interface for ledger access.

    Any ledger implementation (Firefly III, in-memory, ...) must
    implement these methods.
    """

    @abstractmethod
    def fetch_transactions(
        self,
        account_id: int,
        start: date,
        end: date,
        type_filter: Optional[str] = None,
    ) -> list[TransactionGroup]:
        """
        List the transaction groups of an account in a date window.

        Args:
            account_id: Account to list
            start: First day of the window (inclusive)
            end: Last day of the window (inclusive)
            type_filter: Restrict to one transaction type (e.g. 'withdrawal')

        Returns:
            The complete window; paging is the implementation's job

        Raises:
            FetchError: If the ledger cannot be read
        """
        pass

    @abstractmethod
    def fetch_links(self) -> list[Link]:
        """
        List every transaction link visible to the credential.

        Raises:
            FetchError: If the ledger cannot be read
        """
        pass

    @abstractmethod
    def fetch_link_types(self) -> list[LinkType]:
        """
        List the link types known to the ledger.

        Raises:
            FetchError: If the ledger cannot be read
        """
        pass

    @abstractmethod
    def create_transfer(self, payload: AutosavePayload) -> int:
        """
        Create the autosave transfer.

        Args:
            payload: The transfer to create

        Returns:
            Journal id of the created transfer

        Raises:
            WriteError: On any non-success response
        """
        pass

    @abstractmethod
    def create_link(
        self,
        inward_id: int,
        outward_id: int,
        link_type_id: int,
    ) -> None:
        """
        Link the original journal (inward) to its autosave (outward).

        Raises:
            LinkWriteError: On any non-success response
        """
        pass


class LedgerError(Exception):
    """Base exception for ledger operations."""
    pass


class FetchError(LedgerError):
    """The ledger could not be read. Fatal for the whole run."""
    pass


class WriteError(LedgerError):
    """A write to the ledger failed."""
    pass


class LinkWriteError(WriteError):
    """
    The link could not be created.

    When raised by the flow after a transfer was created, both journal
    ids are set: the transfer exists in the ledger without its link.
    """

    def __init__(
        self,
        message: str,
        source_journal_id: Optional[int] = None,
        transfer_journal_id: Optional[int] = None,
    ):
        self.source_journal_id = source_journal_id
        self.transfer_journal_id = transfer_journal_id
        super().__init__(message)
