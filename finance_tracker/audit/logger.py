"""
Audit Logger

DESIGN DECISION: Every fetch cycle and every write attempt is logged.
This provides:
1. Traceability of what each snapshot was computed from
2. A record of partial fetches and dropped rows
3. A history of budget overrides the user confirmed

Persisting an event never raises: a broken audit store is logged and
the fetch or write carries on. Events of one fetch cycle or one write
attempt share a correlation id.
"""

import logging
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from finance_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from finance_tracker.services.storage import AuditStorageInterface


# JSON lines through the stdlib logging tree
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(log_level: str = "INFO") -> None:
    """Route structlog output through the stdlib root logger at `log_level`."""
    logging.basicConfig(format="%(message)s", level=log_level.upper())
    logging.getLogger().setLevel(log_level.upper())


_LEVELS = {
    AuditSeverity.DEBUG: "debug",
    AuditSeverity.INFO: "info",
    AuditSeverity.WARNING: "warning",
    AuditSeverity.ERROR: "error",
    AuditSeverity.CRITICAL: "critical",
}


class AuditLogger:
    """
    Writes each event to the structlog output at the event's severity,
    then appends it to the audit store if there is one.
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Args:
            storage: Where events are persisted; None keeps them in the
                    local log only.
        """
        self._storage = storage
        self._logger = structlog.get_logger("finance_tracker.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Record one event.

        Returns:
            False only when a configured store failed to persist it
        """
        log_method = getattr(self._logger, _LEVELS[event.severity])
        log_method("audit_event", **event.to_log_dict())

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Audit persistence is best effort
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_ledger_fetched(
        self,
        owner: str,
        counts: dict[str, int],
        failed_tables: list[str],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.ledger_fetched(
            owner=owner,
            counts=counts,
            failed_tables=failed_tables,
            correlation_id=correlation_id,
        ))

    async def log_collection_failed(
        self,
        table: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.collection_fetch_failed(
            table=table,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_row_dropped(
        self,
        table: str,
        row_id: Optional[str],
        reason: str,
        correlation_id: Optional[UUID],
    ) -> None:
        await self.log(AuditEventBuilder.row_dropped(
            table=table,
            row_id=row_id,
            reason=reason,
            correlation_id=correlation_id,
        ))

    async def log_snapshot_computed(
        self,
        generation: int,
        balance: Decimal,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.snapshot_computed(
            generation=generation,
            balance=str(balance),
            correlation_id=correlation_id,
        ))

    async def log_stale_fetch(
        self,
        generation: int,
        current_generation: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.stale_fetch_discarded(
            generation=generation,
            current_generation=current_generation,
            correlation_id=correlation_id,
        ))

    async def log_change_received(self, table: str) -> None:
        await self.log(AuditEventBuilder.change_received(table))

    async def log_record_written(
        self,
        event_type: AuditEventType,
        table: str,
        row_id: Optional[str],
        correlation_id: UUID,
        details: Optional[dict] = None,
    ) -> None:
        """Log a successful insert, update or delete."""
        await self.log(AuditEventBuilder.record_written(
            event_type=event_type,
            table=table,
            row_id=row_id,
            correlation_id=correlation_id,
            details=details,
        ))

    async def log_write_failed(
        self,
        table: str,
        operation: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.write_failed(
            table=table,
            operation=operation,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_insufficient_balance(
        self,
        amount: Decimal,
        balance: Decimal,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.insufficient_balance(
            amount=str(amount),
            balance=str(balance),
            correlation_id=correlation_id,
        ))

    async def log_budget_override(
        self,
        event_type: AuditEventType,
        category: str,
        amount: Decimal,
        limit: Optional[Decimal],
        spent: Decimal,
        correlation_id: UUID,
    ) -> None:
        """Log an override request, confirmation or decline."""
        await self.log(AuditEventBuilder.budget_override(
            event_type=event_type,
            category=category,
            amount=str(amount),
            limit=str(limit),
            spent=str(spent),
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """New id shared by the events of one fetch cycle or write attempt."""
    return uuid4()
