"""
Storage Interfaces

DESIGN DECISION: The aggregation core never talks to a backend directly.
It reads and writes untyped rows through this interface, so the store
can be Google Sheets, an in-memory fake for tests, or anything else.

Rows are plain dicts keyed by column name. Typing them is the job of
the validation package, not of the store.

The interface is intentionally small: filtered reads by owner, plus
insert/update/delete by id. There are no transactions.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from finance_tracker.models.audit import AuditEvent
from finance_tracker.models.ledger import LedgerTable

Row = dict[str, Any]


class LedgerStorageInterface(ABC):
    """
    Abstract interface for the ledger tables (income, expenses, budgets, goals).

    Any storage implementation must implement these methods. Every call
    is scoped to one owner.
    """

    @abstractmethod
    async def fetch_rows(
        self,
        table: LedgerTable,
        owner_id: str,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        order_by: Optional[str] = None,
        descending: bool = True,
    ) -> list[Row]:
        """
        Read the owner's rows of one table.

        Args:
            table: Table to read
            owner_id: Only rows owned by this user are returned
            date_from: Keep rows dated on or after this instant
            date_to: Keep rows dated on or before this instant
            order_by: Column to sort by (store order if None)
            descending: Sort direction when order_by is given

        Returns:
            Untyped rows

        Raises:
            StorageError: If the read fails
        """
        pass

    @abstractmethod
    async def insert_row(self, table: LedgerTable, owner_id: str, row: Row) -> Row:
        """
        Insert a row.

        The store assigns the id and stamps the owner.

        Returns:
            The row as stored

        Raises:
            StorageError: If the insert fails
        """
        pass

    @abstractmethod
    async def update_row(
        self,
        table: LedgerTable,
        owner_id: str,
        row_id: str,
        changes: Row,
    ) -> Row:
        """
        Apply a partial update to one row.

        Returns:
            The row as stored after the update

        Raises:
            NotFoundError: If the owner has no row with this id
            StorageError: If the update fails
        """
        pass

    @abstractmethod
    async def delete_row(self, table: LedgerTable, owner_id: str, row_id: str) -> bool:
        """
        Delete one row.

        Returns:
            True if a row was deleted, False if none matched

        Raises:
            StorageError: If the delete fails
        """
        pass


class AuditStorageInterface(ABC):
    """
    Where audit events are persisted.

    Append-only: nothing here updates or removes an event.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Persist one event.

        Returns:
            False if the backend could not store it
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (one fetch cycle or write attempt).

        Returns:
            The events, oldest first
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        The latest `limit` events, newest first.
        """
        pass


class StorageError(Exception):
    """A backend read or write failed."""
    pass


class NotFoundError(StorageError):
    """No row with the requested id for this owner."""
    pass


class ConnectionError(StorageError):
    """The backend could not be reached or authenticated."""
    pass
