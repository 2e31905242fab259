"""
Firefly III Ledger Implementation

Talks to the Firefly III REST API (v6) with httpx.

Endpoints used:
- GET  /accounts/{id}/transactions?start=...&end=...&type=...
- GET  /transaction-links
- GET  /link-types
- POST /transactions
- POST /transaction-links   (payload: link_type_id, inward_id, outward_id)

DESIGN DECISION: Only reads are retried, and only when the request
never produced an HTTP response (connection errors, timeouts). A write
is sent exactly once; a second attempt could move money twice.
"""

from datetime import date
from typing import Any, Optional

import httpx
from pydantic import ValidationError
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential
from tenacity.wait import wait_base

from autosave import __version__
from autosave.config.settings import FireflySettings
from autosave.models.ledger import AutosavePayload, Link, LinkType, TransactionGroup
from autosave.services.ledger.interface import (
    FetchError,
    LedgerGatewayInterface,
    LinkWriteError,
    WriteError,
)


class FireflyAPIError(Exception):
    """The Firefly API call failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class FireflyTransportError(FireflyAPIError):
    """The request never got an HTTP response (connection error, timeout)."""
    pass


def _error_message(data: Any, status_code: int) -> str:
    """Pull the most useful message out of a Firefly error body."""
    if isinstance(data, dict):
        if data.get("message"):
            return str(data["message"])
        errors = data.get("errors")
        if isinstance(errors, list) and errors:
            first = errors[0]
            if isinstance(first, dict) and first.get("detail"):
                return str(first["detail"])
        if isinstance(errors, dict) and errors:
            field, messages = next(iter(errors.items()))
            if isinstance(messages, list) and messages:
                return f"{field}: {messages[0]}"
    return f"HTTP {status_code}"


class FireflyClient:
    """
    Low-level Firefly III API client.

    Handles authentication, JSON decoding, error mapping and paging.
    """

    def __init__(
        self,
        settings: FireflySettings,
        transport: Optional[httpx.BaseTransport] = None,
        retry_wait: Optional[wait_base] = None,
    ):
        self._settings = settings
        self._transport = transport
        self._client: Optional[httpx.Client] = None
        self._read_retry = Retrying(
            stop=stop_after_attempt(settings.read_attempts),
            wait=retry_wait or wait_exponential(multiplier=1, min=2, max=10),
            retry=retry_if_exception_type(FireflyTransportError),
            reraise=True,
        )

    def _get_client(self) -> httpx.Client:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.Client(
                base_url=self._settings.api_base_url,
                headers={
                    "Accept": "application/json",
                    "Content-Type": "application/json",
                    "Authorization": f"Bearer {self._settings.token}",
                    "User-Agent": f"firefly-autosave/{__version__}",
                },
                timeout=self._settings.timeout_seconds,
                transport=self._transport,
            )
        return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self) -> "FireflyClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]] = None,
        json_body: Optional[dict[str, Any]] = None,
    ) -> dict:
        if params:
            params = {k: v for k, v in params.items() if v is not None}

        try:
            response = self._get_client().request(method, path, params=params, json=json_body)
        except httpx.TimeoutException as e:
            raise FireflyTransportError(f"Request timed out: {method} {path}") from e
        except httpx.TransportError as e:
            raise FireflyTransportError(f"Connection error on {method} {path}: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = None

        if not response.is_success:
            raise FireflyAPIError(
                f"Firefly API error: {_error_message(data, response.status_code)}",
                status_code=response.status_code,
            )
        if not isinstance(data, dict):
            raise FireflyAPIError(
                f"Invalid JSON response (HTTP {response.status_code})",
                status_code=response.status_code,
            )
        return data

    def get(self, path: str, params: Optional[dict[str, Any]] = None) -> dict:
        return self._read_retry(self._request, "GET", path, params=params)

    def post(self, path: str, body: dict[str, Any]) -> dict:
        return self._request("POST", path, json_body=body)

    def get_all(self, path: str, params: Optional[dict[str, Any]] = None) -> list[dict]:
        """
        Collect the 'data' items of every page of a list endpoint.

        Follows meta.pagination.total_pages; a response without
        pagination info is treated as the only page.
        """
        items: list[dict] = []
        page = 1
        while True:
            data = self.get(
                path,
                {**(params or {}), "limit": self._settings.page_size, "page": page},
            )
            items.extend(data.get("data") or [])

            pagination = (data.get("meta") or {}).get("pagination") or {}
            total_pages = int(pagination.get("total_pages") or 1)
            if page >= total_pages:
                return items
            page += 1


class FireflyLedgerGateway(LedgerGatewayInterface):
    """Ledger gateway backed by the Firefly III API."""

    def __init__(self, client: FireflyClient):
        self._client = client

    def fetch_transactions(
        self,
        account_id: int,
        start: date,
        end: date,
        type_filter: Optional[str] = None,
    ) -> list[TransactionGroup]:
        try:
            items = self._client.get_all(
                f"/accounts/{account_id}/transactions",
                {
                    "start": start.isoformat(),
                    "end": end.isoformat(),
                    "type": type_filter,
                },
            )
            return [TransactionGroup.from_api(item) for item in items]
        except FireflyAPIError as e:
            raise FetchError(f"Failed to load transactions of account #{account_id}: {e}") from e
        except (ValidationError, KeyError, TypeError) as e:
            raise FetchError(f"Unexpected transaction data for account #{account_id}: {e}") from e

    def fetch_links(self) -> list[Link]:
        try:
            return [Link.from_api(item) for item in self._client.get_all("/transaction-links")]
        except FireflyAPIError as e:
            raise FetchError(f"Failed to load transaction links: {e}") from e
        except (ValidationError, KeyError, TypeError) as e:
            raise FetchError(f"Unexpected transaction link data: {e}") from e

    def fetch_link_types(self) -> list[LinkType]:
        try:
            return [LinkType.from_api(item) for item in self._client.get_all("/link-types")]
        except FireflyAPIError as e:
            raise FetchError(f"Failed to load link types: {e}") from e
        except (ValidationError, KeyError, TypeError, ValueError) as e:
            raise FetchError(f"Unexpected link type data: {e}") from e

    def create_transfer(self, payload: AutosavePayload) -> int:
        try:
            created = self._client.post("/transactions", payload.to_request())
        except FireflyAPIError as e:
            raise WriteError(
                f"Failed to create auto-save transfer for #{payload.source_journal_id}: {e}"
            ) from e

        try:
            journal_id = created["data"]["attributes"]["transactions"][0]["transaction_journal_id"]
            return int(journal_id)
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise WriteError(
                f"Transfer for #{payload.source_journal_id} was sent but the response "
                "holds no journal id"
            ) from e

    def create_link(
        self,
        inward_id: int,
        outward_id: int,
        link_type_id: int,
    ) -> None:
        try:
            self._client.post(
                "/transaction-links",
                {
                    "link_type_id": link_type_id,
                    "inward_id": inward_id,
                    "outward_id": outward_id,
                },
            )
        except FireflyAPIError as e:
            raise LinkWriteError(
                f"Failed to link #{inward_id} to #{outward_id}: {e}",
                source_journal_id=inward_id,
                transfer_journal_id=outward_id,
            ) from e
