"""
Ledger Services Package

Provides the abstract gateway interface and its Firefly III implementation.
"""

from autosave.services.ledger.interface import (
    FetchError,
    LedgerError,
    LedgerGatewayInterface,
    LinkWriteError,
    WriteError,
)
from autosave.services.ledger.firefly import (
    FireflyAPIError,
    FireflyClient,
    FireflyLedgerGateway,
    FireflyTransportError,
)

__all__ = [
    # Interface
    "LedgerGatewayInterface",
    # Exceptions
    "FetchError",
    "LedgerError",
    "LinkWriteError",
    "WriteError",
    # Firefly III implementation
    "FireflyAPIError",
    "FireflyClient",
    "FireflyLedgerGateway",
    "FireflyTransportError",
]
