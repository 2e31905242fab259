"""
Data Models Package

This package contains all Pydantic models used by Firefly Autosave.
Everything read from or written to the ledger goes through these schemas.
"""

from autosave.models.ledger import (
    AutosavePayload,
    Link,
    LinkType,
    Transaction,
    TransactionGroup,
    to_date_only,
    to_iso_datetime,
)
from autosave.models.run import (
    Decision,
    RunReport,
    TransactionOutcome,
)
from autosave.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "AutosavePayload",
    "Link",
    "LinkType",
    "Transaction",
    "TransactionGroup",
    "to_date_only",
    "to_iso_datetime",
    # Run models
    "Decision",
    "RunReport",
    "TransactionOutcome",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
