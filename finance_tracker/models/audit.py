"""
Audit Models for Finance Tracker

Every fetch cycle and every write attempt is logged for audit purposes.
This provides:
1. Traceability of what each snapshot was computed from
2. Debugging information when a collection fails to load
3. A record of every budget override the user confirmed

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Reads
    LEDGER_FETCHED = "ledger_fetched"
    COLLECTION_FETCH_FAILED = "collection_fetch_failed"
    ROW_DROPPED = "row_dropped"
    SNAPSHOT_COMPUTED = "snapshot_computed"
    STALE_FETCH_DISCARDED = "stale_fetch_discarded"
    CHANGE_RECEIVED = "change_received"

    # Writes
    RECORD_INSERTED = "record_inserted"
    RECORD_UPDATED = "record_updated"
    RECORD_DELETED = "record_deleted"
    WRITE_FAILED = "write_failed"

    # Local business rules
    EXPENSE_REJECTED_INSUFFICIENT_BALANCE = "expense_rejected_insufficient_balance"
    BUDGET_OVERRIDE_REQUESTED = "budget_override_requested"
    BUDGET_OVERRIDE_CONFIRMED = "budget_override_confirmed"
    BUDGET_OVERRIDE_DECLINED = "budget_override_declined"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


class AuditEvent(BaseModel):
    """
    A single audit event.

    One row of the audit worksheet, one line of the structured log.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Event id; also the first worksheet column"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="UTC time the event was recorded"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - which table/record is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Ledger table or 'snapshot'"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="Store identifier of the record, if any"
    )

    # Correlation - one fetch cycle or one write attempt
    correlation_id: Optional[UUID] = None

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="True for writes and override decisions made by the user"
    )

    def to_log_dict(self) -> dict[str, Any]:
        """Flat, JSON-safe view of the event for structlog."""
        return self.model_dump(mode="json")

    def to_sheets_row(self) -> list[str]:
        """One worksheet row, in AUDIT_COLUMNS order. Missing values are ""."""
        data = self.model_dump(mode="json")
        data["details_json"] = json.dumps(self.details, default=str) if self.details else ""
        data["is_user_action"] = str(self.is_user_action)
        return ["" if data.get(column) is None else str(data[column]) for column in AUDIT_COLUMNS]

    @classmethod
    def from_sheets_row(cls, row: list) -> "AuditEvent":
        """
        Rebuild an event from a worksheet row.

        Raises:
            ValueError: If the row does not hold a valid event
        """
        cells = dict(zip(AUDIT_COLUMNS, list(row) + [""] * (len(AUDIT_COLUMNS) - len(row))))
        details_json = cells.pop("details_json")
        data = {column: value or None for column, value in cells.items()}
        data["description"] = cells["description"]
        data["details"] = json.loads(details_json) if details_json else {}
        data["is_user_action"] = cells["is_user_action"].lower() == "true"
        return cls.model_validate(data)


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.ledger_fetched(owner, counts, failed, correlation_id)
        event = AuditEventBuilder.row_dropped("expenses", row_id, reason, correlation_id)
    """

    @staticmethod
    def ledger_fetched(
        owner: str,
        counts: dict[str, int],
        failed_tables: list[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_FETCHED,
            severity=AuditSeverity.WARNING if failed_tables else AuditSeverity.INFO,
            entity_type="ledger",
            correlation_id=correlation_id,
            description=(
                f"Ledger fetched for {owner}"
                + (f" ({len(failed_tables)} collection(s) failed)" if failed_tables else "")
            ),
            details={
                "owner": owner,
                "counts": counts,
                "failed_tables": failed_tables,
            },
        )

    @staticmethod
    def collection_fetch_failed(
        table: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COLLECTION_FETCH_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type=table,
            correlation_id=correlation_id,
            description=f"Fetch of {table} failed; continuing with an empty collection",
            error_message=error_message,
        )

    @staticmethod
    def row_dropped(
        table: str,
        row_id: Optional[str],
        reason: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ROW_DROPPED,
            severity=AuditSeverity.WARNING,
            entity_type=table,
            entity_id=row_id,
            correlation_id=correlation_id,
            description=f"Malformed {table} row dropped",
            details={"reason": reason},
        )

    @staticmethod
    def snapshot_computed(
        generation: int,
        balance: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_COMPUTED,
            severity=AuditSeverity.DEBUG,
            entity_type="snapshot",
            correlation_id=correlation_id,
            description=f"Snapshot #{generation} computed",
            details={"generation": generation, "balance": balance},
        )

    @staticmethod
    def stale_fetch_discarded(
        generation: int,
        current_generation: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STALE_FETCH_DISCARDED,
            severity=AuditSeverity.DEBUG,
            entity_type="snapshot",
            correlation_id=correlation_id,
            description=f"Fetch #{generation} discarded (current is #{current_generation})",
            details={
                "generation": generation,
                "current_generation": current_generation,
            },
        )

    @staticmethod
    def change_received(table: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CHANGE_RECEIVED,
            severity=AuditSeverity.DEBUG,
            entity_type=table,
            description=f"Change notification for {table}",
        )

    @staticmethod
    def record_written(
        event_type: AuditEventType,
        table: str,
        row_id: Optional[str],
        correlation_id: UUID,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        verb = {
            AuditEventType.RECORD_INSERTED: "inserted into",
            AuditEventType.RECORD_UPDATED: "updated in",
            AuditEventType.RECORD_DELETED: "deleted from",
        }[event_type]
        return AuditEvent(
            event_type=event_type,
            entity_type=table,
            entity_id=row_id,
            correlation_id=correlation_id,
            description=f"Record {verb} {table}",
            details=details or {},
            is_user_action=True,
        )

    @staticmethod
    def write_failed(
        table: str,
        operation: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WRITE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type=table,
            correlation_id=correlation_id,
            description=f"{operation.capitalize()} on {table} failed",
            error_message=error_message,
            details={"operation": operation},
        )

    @staticmethod
    def insufficient_balance(
        amount: str,
        balance: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_REJECTED_INSUFFICIENT_BALANCE,
            severity=AuditSeverity.WARNING,
            entity_type="expenses",
            correlation_id=correlation_id,
            description=f"Expense of {amount} rejected: balance is {balance}",
            details={"amount": amount, "balance": balance},
            is_user_action=True,
        )

    @staticmethod
    def budget_override(
        event_type: AuditEventType,
        category: str,
        amount: str,
        limit: str,
        spent: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        description = {
            AuditEventType.BUDGET_OVERRIDE_REQUESTED: "Budget limit would be exceeded",
            AuditEventType.BUDGET_OVERRIDE_CONFIRMED: "User confirmed budget override",
            AuditEventType.BUDGET_OVERRIDE_DECLINED: "User declined budget override",
        }[event_type]
        return AuditEvent(
            event_type=event_type,
            severity=AuditSeverity.INFO,
            entity_type="expenses",
            correlation_id=correlation_id,
            description=f"{description} for {category}",
            details={
                "category": category,
                "amount": amount,
                "limit": limit,
                "spent_this_month": spent,
            },
            is_user_action=event_type != AuditEventType.BUDGET_OVERRIDE_REQUESTED,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
