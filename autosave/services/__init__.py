"""Services package."""

from autosave.services.ledger import (
    FetchError,
    FireflyAPIError,
    FireflyClient,
    FireflyLedgerGateway,
    LedgerError,
    LedgerGatewayInterface,
    LinkWriteError,
    WriteError,
)

__all__ = [
    "FetchError",
    "FireflyAPIError",
    "FireflyClient",
    "FireflyLedgerGateway",
    "LedgerError",
    "LedgerGatewayInterface",
    "LinkWriteError",
    "WriteError",
]
