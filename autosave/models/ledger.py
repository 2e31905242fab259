"""
Ledger Data Models for Firefly Autosave

These models mirror the parts of the Firefly III API the autosave flow
reads and writes. They are designed to:
1. Normalize the API's loose typing (ids and amounts arrive as strings)
2. Be immutable read-only copies for the duration of one run
3. Produce the exact request bodies the API expects

DESIGN DECISION: Amounts are Decimal end to end. Nothing here ever goes
through float.
"""

import re
from decimal import Decimal
from typing import Any, Iterator, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


DATE_ONLY_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

TRANSFER_DESCRIPTION_TEMPLATE = "Auto-save for transaction #{journal_id}"
TRANSFER_NOTES_TEMPLATE = "bezieht sich auf [{journal_id}], {description}"


def _optional_id(value: Any) -> Optional[int]:
    """Ledger ids arrive as strings; empty, zero and missing mean 'no id'."""
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    number = int(value)
    return number or None


def to_iso_datetime(value: str) -> str:
    """Promote a date-only string to midnight UTC; leave timestamps alone."""
    if DATE_ONLY_PATTERN.match(value):
        return f"{value}T00:00:00+00:00"
    return value


def to_date_only(value: str) -> str:
    return value[:10]


# =============================================================================
# READ MODELS
# =============================================================================

class Transaction(BaseModel):
    """
    One split of a ledger transaction group.

    Split transactions have several of these per group, and every one
    is evaluated on its own.
    """
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        extra="ignore",
    )

    journal_id: Optional[int] = Field(
        default=None,
        alias="transaction_journal_id",
        description="Ledger id of this split"
    )
    description: str = Field(
        default="",
        description="Transaction description"
    )
    amount: Decimal = Field(
        ...,
        description="Amount as reported by the ledger"
    )
    date: str = Field(
        ...,
        description="ISO date or timestamp"
    )
    tags: list[str] = Field(
        default_factory=list,
        description="Tags on this split"
    )
    balance_after: Optional[Decimal] = Field(
        default=None,
        alias="source_balance_after",
        description="Source account balance after this split; None when unknown"
    )

    @field_validator("journal_id", mode="before")
    @classmethod
    def parse_journal_id(cls, v: Any) -> Optional[int]:
        return _optional_id(v)

    @field_validator("description", mode="before")
    @classmethod
    def none_description(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("tags", mode="before")
    @classmethod
    def normalize_tags(cls, v: Any) -> list[str]:
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        return [str(tag) for tag in v if tag is not None]

    @field_validator("balance_after", mode="before")
    @classmethod
    def empty_balance(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def absolute_amount(self) -> Decimal:
        return abs(self.amount)


class TransactionGroup(BaseModel):
    """A ledger entry holding one or more splits."""
    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    transactions: list[Transaction] = Field(default_factory=list)

    @classmethod
    def from_api(cls, data: dict) -> "TransactionGroup":
        attributes = data.get("attributes") or {}
        return cls(
            id=str(data["id"]) if data.get("id") is not None else None,
            transactions=[
                Transaction.model_validate(split)
                for split in attributes.get("transactions") or []
            ],
        )


class Link(BaseModel):
    """A directed relation between two journals."""
    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    inward_id: Optional[int] = None
    outward_id: Optional[int] = None
    link_type_id: Optional[int] = None

    @field_validator("inward_id", "outward_id", "link_type_id", mode="before")
    @classmethod
    def parse_ids(cls, v: Any) -> Optional[int]:
        return _optional_id(v)

    @classmethod
    def from_api(cls, data: dict) -> "Link":
        attributes = data.get("attributes") or {}
        return cls(
            id=str(data["id"]) if data.get("id") is not None else None,
            inward_id=attributes.get("inward_id"),
            outward_id=attributes.get("outward_id"),
            link_type_id=attributes.get("link_type_id"),
        )

    def journal_ids(self) -> Iterator[int]:
        """Yield the endpoints that are set."""
        if self.inward_id:
            yield self.inward_id
        if self.outward_id:
            yield self.outward_id


class LinkType(BaseModel):
    """A link classifier known to the ledger (e.g. 'Related')."""
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    inward: Optional[str] = None
    outward: Optional[str] = None

    @classmethod
    def from_api(cls, data: dict) -> "LinkType":
        attributes = data.get("attributes") or {}
        return cls(
            id=int(data["id"]),
            name=attributes.get("name") or "",
            inward=attributes.get("inward"),
            outward=attributes.get("outward"),
        )


# =============================================================================
# WRITE MODELS
# =============================================================================

class AutosavePayload(BaseModel):
    """
    The transfer created for one source transaction.

    CRITICAL: amount is the already computed delta, formatted with two
    decimals. It is never recomputed here.
    """
    model_config = ConfigDict(frozen=True)

    source_journal_id: int = Field(
        ...,
        description="Journal the autosave is created for"
    )
    type: str = "transfer"
    date: str = Field(
        ...,
        description="Full ISO timestamp"
    )
    amount: str = Field(
        ...,
        pattern=r"^\d+\.\d{2}$",
        description="Delta with two decimals"
    )
    source_id: int
    destination_id: int
    description: str
    notes: str
    tags: list[str]

    @classmethod
    def for_transaction(
        cls,
        transaction: Transaction,
        delta: Decimal,
        source_id: int,
        destination_id: int,
        tags: list[str],
    ) -> "AutosavePayload":
        """Build the autosave transfer for a qualifying transaction."""
        if transaction.journal_id is None:
            raise ValueError("Cannot build an autosave for a transaction without journal id")

        return cls(
            source_journal_id=transaction.journal_id,
            date=to_iso_datetime(transaction.date),
            amount=f"{delta:.2f}",
            source_id=source_id,
            destination_id=destination_id,
            description=TRANSFER_DESCRIPTION_TEMPLATE.format(
                journal_id=transaction.journal_id,
            ),
            notes=TRANSFER_NOTES_TEMPLATE.format(
                journal_id=transaction.journal_id,
                description=transaction.description,
            ),
            tags=list(tags),
        )

    def to_request(self) -> dict:
        """Request body for POST /transactions."""
        return {
            "transactions": [
                {
                    "type": self.type,
                    "date": self.date,
                    "amount": self.amount,
                    "source_id": str(self.source_id),
                    "destination_id": str(self.destination_id),
                    "description": self.description,
                    "notes": self.notes,
                    "tags": list(self.tags),
                }
            ],
        }
