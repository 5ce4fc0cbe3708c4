"""
In-Memory Storage Implementation

Holds ledger rows and audit events in process memory. Used by the tests
and for running the flows without a backend.

Failures can be injected per table (`failing_tables`) or for every write
(`fail_writes`). `writes` records each successful write in order.
"""

from collections import defaultdict
from datetime import datetime
from typing import Awaitable, Callable, Optional
from uuid import UUID, uuid4

from finance_tracker.models.audit import AuditEvent
from finance_tracker.models.ledger import LedgerTable
from finance_tracker.services.storage.interface import (
    AuditStorageInterface,
    LedgerStorageInterface,
    NotFoundError,
    Row,
    StorageError,
)
from finance_tracker.services.storage.rows import select_rows
from finance_tracker.validation.parser import OWNER_FIELD


class InMemoryLedgerStorage(LedgerStorageInterface):
    """Ledger tables as lists of dicts."""

    def __init__(
        self,
        rows: Optional[dict[LedgerTable, list[Row]]] = None,
        before_read: Optional[Callable[[LedgerTable], Awaitable[None]]] = None,
    ):
        self._tables: dict[LedgerTable, list[Row]] = defaultdict(list)
        for table, table_rows in (rows or {}).items():
            self._tables[LedgerTable(table)] = [dict(row) for row in table_rows]
        self.before_read = before_read
        self.failing_tables: set[LedgerTable] = set()
        self.fail_writes = False
        self.writes: list[tuple[str, LedgerTable, Row]] = []

    def rows(self, table: LedgerTable) -> list[Row]:
        """Copy of every stored row of a table, all owners."""
        return [dict(row) for row in self._tables[table]]

    async def fetch_rows(
        self,
        table: LedgerTable,
        owner_id: str,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        order_by: Optional[str] = None,
        descending: bool = True,
    ) -> list[Row]:
        if self.before_read is not None:
            await self.before_read(table)
        if table in self.failing_tables:
            raise StorageError(f"Failed to read {table.value}")
        return select_rows(
            self._tables[table],
            owner_id,
            date_from=date_from,
            date_to=date_to,
            order_by=order_by,
            descending=descending,
        )

    def _check_writable(self, operation: str, table: LedgerTable) -> None:
        if self.fail_writes:
            raise StorageError(f"Failed to {operation} {table.value}")

    def _find(self, table: LedgerTable, owner_id: str, row_id: str) -> Optional[int]:
        for index, row in enumerate(self._tables[table]):
            if str(row.get("id")) == row_id and str(row.get(OWNER_FIELD)) == owner_id:
                return index
        return None

    async def insert_row(self, table: LedgerTable, owner_id: str, row: Row) -> Row:
        self._check_writable("insert into", table)
        stored = dict(row)
        stored["id"] = uuid4().hex
        stored[OWNER_FIELD] = owner_id
        stored.setdefault("created_at", datetime.now().isoformat())
        self._tables[table].append(stored)
        self.writes.append(("insert", table, dict(stored)))
        return dict(stored)

    async def update_row(
        self,
        table: LedgerTable,
        owner_id: str,
        row_id: str,
        changes: Row,
    ) -> Row:
        self._check_writable("update", table)
        index = self._find(table, owner_id, row_id)
        if index is None:
            raise NotFoundError(f"No {table.value} row with id {row_id}")
        stored = self._tables[table][index]
        stored.update({k: v for k, v in changes.items() if k not in ("id", OWNER_FIELD)})
        self.writes.append(("update", table, dict(stored)))
        return dict(stored)

    async def delete_row(self, table: LedgerTable, owner_id: str, row_id: str) -> bool:
        self._check_writable("delete from", table)
        index = self._find(table, owner_id, row_id)
        if index is None:
            return False
        removed = self._tables[table].pop(index)
        self.writes.append(("delete", table, removed))
        return True


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self.events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return sorted(self.events, key=lambda e: e.timestamp, reverse=True)[:limit]
