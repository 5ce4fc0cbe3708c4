"""
Google Sheets Ledger Storage

DESIGN DECISION: Google Sheets is the backend because:
1. Users can view and fix their ledger directly in Sheets
2. A shared spreadsheet is all the setup there is

TRADEOFFS:
- One worksheet per table, all owners share it (rows carry user_id)
- No transactions and no server-side filtering (we filter in Python)
- Every cell is text; typing happens in the validation package

gspread is synchronous. Reads and writes run in a worker thread so the
orchestrator's concurrent fan-out actually overlaps the HTTP calls.
"""

import asyncio
from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, retry_if_not_exception_type, stop_after_attempt, wait_exponential

from finance_tracker.config import GoogleSheetsSettings, get_settings
from finance_tracker.models.audit import AUDIT_COLUMNS, AuditEvent
from finance_tracker.models.ledger import LedgerTable
from finance_tracker.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    LedgerStorageInterface,
    NotFoundError,
    Row,
    StorageError,
)
from finance_tracker.services.storage.rows import select_rows, to_cell
from finance_tracker.validation.parser import OWNER_FIELD

logger = structlog.get_logger("finance_tracker.storage")


# Column layout of each ledger worksheet
TABLE_COLUMNS: dict[LedgerTable, list[str]] = {
    LedgerTable.INCOME: [
        "id", OWNER_FIELD, "title", "amount", "category", "date", "created_at",
    ],
    LedgerTable.EXPENSES: [
        "id", OWNER_FIELD, "title", "amount", "category", "date", "created_at",
    ],
    LedgerTable.BUDGETS: [
        "id", OWNER_FIELD, "category", "amount", "period", "end_date", "created_at",
    ],
    LedgerTable.GOALS: [
        "id", OWNER_FIELD, "title", "progress_ratio", "deadline", "category", "created_at",
    ],
}


class GoogleSheetsClient:
    """
    Owns the gspread connection and the worksheet lookup.

    Connecting is lazy and retried; worksheets are created on first use.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Authorize with the service account key, once per client.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """The spreadsheet named by `spreadsheet_id`."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(self._settings.spreadsheet_id)
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create(self, title: str, columns: list[str], rows: int) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            return spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(title=title, rows=rows, cols=len(columns))
            sheet.append_row(columns)
            return sheet

    def sheet_name(self, table: LedgerTable) -> str:
        return getattr(self._settings, f"{table.value}_sheet_name")

    def get_table_sheet(self, table: LedgerTable) -> gspread.Worksheet:
        """Get or create the worksheet of a ledger table."""
        return self._get_or_create(self.sheet_name(table), TABLE_COLUMNS[table], rows=1000)

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the audit worksheet."""
        return self._get_or_create(self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000)


def _records(sheet: gspread.Worksheet, columns: list[str]) -> list[tuple[int, Row]]:
    """
    (sheet row number, row dict) for every non-empty data row.

    Columns are mapped by position; short rows are padded with "".
    """
    records = []
    # Row 1 is the header
    for number, values in enumerate(sheet.get_all_values()[1:], start=2):
        if not values or not any(values):
            continue
        padded = list(values) + [""] * (len(columns) - len(values))
        records.append((number, dict(zip(columns, padded))))
    return records


class GoogleSheetsLedgerStorage(LedgerStorageInterface):
    """
    Google Sheets implementation of the ledger tables.

    Each table lives in its own worksheet with one record per row.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _read(self, table: LedgerTable) -> list[tuple[int, Row]]:
        sheet = self._client.get_table_sheet(table)
        return _records(sheet, TABLE_COLUMNS[table])

    def _locate(self, table: LedgerTable, owner_id: str, row_id: str) -> Optional[tuple[int, Row]]:
        for number, row in self._read(table):
            if row["id"] == row_id and row[OWNER_FIELD] == owner_id:
                return number, row
        return None

    async def fetch_rows(
        self,
        table: LedgerTable,
        owner_id: str,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        order_by: Optional[str] = None,
        descending: bool = True,
    ) -> list[Row]:
        """Read the owner's rows of one worksheet."""
        try:
            records = await asyncio.to_thread(self._read, table)
        except Exception as e:
            raise StorageError(f"Failed to read {table.value}: {e}")
        return select_rows(
            (row for _, row in records),
            owner_id,
            date_from=date_from,
            date_to=date_to,
            order_by=order_by,
            descending=descending,
        )

    def _append(self, table: LedgerTable, stored: Row) -> None:
        # Already written by an earlier attempt whose response was lost
        if any(row["id"] == stored["id"] for _, row in self._read(table)):
            return
        sheet = self._client.get_table_sheet(table)
        values = [to_cell(stored.get(column)) for column in TABLE_COLUMNS[table]]
        sheet.append_row(values, value_input_option="RAW")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _append_retrying(self, table: LedgerTable, stored: Row) -> None:
        try:
            await asyncio.to_thread(self._append, table, stored)
        except Exception as e:
            raise StorageError(f"Failed to insert into {table.value}: {e}")

    async def insert_row(self, table: LedgerTable, owner_id: str, row: Row) -> Row:
        """
        Append a row.

        The id is generated once per insert, so every retry appends the same
        row and skips it if an earlier attempt already wrote it.
        """
        stored = {column: row.get(column) for column in TABLE_COLUMNS[table]}
        stored["id"] = str(uuid4())
        stored[OWNER_FIELD] = owner_id
        stored["created_at"] = stored.get("created_at") or datetime.now()
        await self._append_retrying(table, stored)
        return {column: to_cell(value) for column, value in stored.items()}

    def _update(self, table: LedgerTable, owner_id: str, row_id: str, changes: Row) -> Row:
        located = self._locate(table, owner_id, row_id)
        if located is None:
            raise NotFoundError(f"No {table.value} row with id {row_id}")
        number, current = located

        sheet = self._client.get_table_sheet(table)
        columns = TABLE_COLUMNS[table]
        for column, value in changes.items():
            if column in ("id", OWNER_FIELD) or column not in columns:
                continue
            current[column] = to_cell(value)
            sheet.update_cell(number, columns.index(column) + 1, current[column])
        return current

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_not_exception_type(NotFoundError),
        reraise=True,
    )
    async def update_row(
        self,
        table: LedgerTable,
        owner_id: str,
        row_id: str,
        changes: Row,
    ) -> Row:
        """Update the changed cells of one row."""
        try:
            return await asyncio.to_thread(self._update, table, owner_id, row_id, changes)
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update {table.value}: {e}")

    def _delete(self, table: LedgerTable, owner_id: str, row_id: str) -> bool:
        located = self._locate(table, owner_id, row_id)
        if located is None:
            return False
        self._client.get_table_sheet(table).delete_rows(located[0])
        return True

    async def delete_row(self, table: LedgerTable, owner_id: str, row_id: str) -> bool:
        """Delete one row by id."""
        try:
            return await asyncio.to_thread(self._delete, table, owner_id, row_id)
        except Exception as e:
            raise StorageError(f"Failed to delete from {table.value}: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Audit trail in its own worksheet, one event per row.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    async def append_event(self, event: AuditEvent) -> bool:
        """Append one event; failures are logged and reported as False."""
        try:
            await asyncio.to_thread(self._append_event, event)
            return True
        except Exception as e:
            # Audit logging must not break the main flow
            logger.warning("audit_append_failed", error=str(e))
            return False

    def _append_event(self, event: AuditEvent) -> None:
        sheet = self._client.get_audit_sheet()
        sheet.append_row(event.to_sheets_row(), value_input_option="RAW")

    def _events(self) -> list[AuditEvent]:
        sheet = self._client.get_audit_sheet()
        events = []
        for row in sheet.get_all_values()[1:]:
            if not row or not row[0]:
                continue
            try:
                events.append(AuditEvent.from_sheets_row(row))
            except (ValueError, IndexError):
                continue
        return events

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Events of one fetch cycle or write attempt, oldest first."""
        try:
            events = [
                e for e in await asyncio.to_thread(self._events)
                if e.correlation_id == correlation_id
            ]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Latest events, newest first."""
        try:
            events = await asyncio.to_thread(self._events)
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        # Newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
