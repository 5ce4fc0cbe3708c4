"""
Main Orchestrator for Finance Tracker

This module ties together all the components and defines the
end-to-end flows for:
1. Fetch (four concurrent reads → parse → aggregate → publish snapshot)
2. Expense entry (draft → balance check → budget check → confirm → write)
3. Other records (income, budgets, goals, deletes)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Rows are typed before anything is aggregated
- A failed read empties one collection, never the whole screen
- Only the latest fetch of an active session may replace the snapshot
- No expense is written past a failed balance check
- Every step is audited

Writes never patch the snapshot in place. They publish a change event,
and the session re-runs the whole fetch+aggregate cycle.
"""

import asyncio
import inspect
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Optional, Union
from uuid import UUID

import structlog
from pydantic import BaseModel, ConfigDict, PrivateAttr

from finance_tracker.audit import AuditLogger, configure_logging, create_correlation_id
from finance_tracker.config import get_settings
from finance_tracker.models.audit import AuditEventType
from finance_tracker.models.ledger import (
    Budget,
    BudgetDraft,
    BudgetPeriod,
    Goal,
    GoalDraft,
    LedgerData,
    LedgerTable,
    Transaction,
    TransactionDraft,
    TransactionKind,
)
from finance_tracker.models.reports import AggregateSnapshot
from finance_tracker.reporting import aggregate
from finance_tracker.services.realtime import ChangeEvent, ChangeFeed
from finance_tracker.services.storage import (
    AuditStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    Row,
    StorageError,
)
from finance_tracker.validation import (
    ExpenseCheck,
    ExpenseCheckOutcome,
    check_amount_ceiling,
    check_expense,
    parse_budget,
    parse_goal,
    parse_rows,
    parse_transaction,
)

logger = structlog.get_logger("finance_tracker.orchestrator")

Clock = Callable[[], datetime]

# Sort order of each read; budgets keep store order (first match wins)
FETCH_ORDER: dict[LedgerTable, Optional[str]] = {
    LedgerTable.INCOME: "date",
    LedgerTable.EXPENSES: "date",
    LedgerTable.BUDGETS: None,
    LedgerTable.GOALS: None,
}


# =============================================================================
# ERRORS AND RESULTS
# =============================================================================

class LedgerWriteError(Exception):
    """
    A write to the store failed.

    Transport, auth and backend failures only; the attempt is over and
    the user has to retry. Local business rules never raise this.
    """

    def __init__(self, table: LedgerTable, operation: str, cause: StorageError):
        super().__init__(f"Could not {operation} {table.value}: {cause}")
        self.table = table
        self.operation = operation
        self.cause = cause


class OverrideAlreadyUsedError(Exception):
    """A pending expense was confirmed or declined a second time."""
    pass


class SubmissionStatus(str, Enum):
    SAVED = "saved"
    REJECTED = "rejected"
    NEEDS_CONFIRMATION = "needs_confirmation"
    DECLINED = "declined"


class PendingExpense(BaseModel):
    """
    An expense waiting for the user to confirm a budget override.

    Single use: it can be confirmed or declined exactly once.
    """

    draft: TransactionDraft
    check: ExpenseCheck
    correlation_id: UUID

    _consumed: bool = PrivateAttr(default=False)

    @property
    def is_consumed(self) -> bool:
        return self._consumed

    def consume(self) -> None:
        if self._consumed:
            raise OverrideAlreadyUsedError("This budget override was already used")
        self._consumed = True


class ExpenseSubmission(BaseModel):
    """Outcome of submitting, confirming or declining an expense."""

    status: SubmissionStatus
    check: Optional[ExpenseCheck] = None
    pending: Optional[PendingExpense] = None
    record: Optional[Transaction] = None
    message: str = ""


class SessionView(BaseModel):
    """The ledger of one fetch and the snapshot computed from it."""
    model_config = ConfigDict(frozen=True)

    generation: int
    ledger: LedgerData
    snapshot: AggregateSnapshot


async def _call(callback: Callable, *args: Any) -> None:
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


# =============================================================================
# FETCH
# =============================================================================

class LedgerFetcher:
    """
    Fetch Orchestrator.

    Flow:
    1. Read income, expenses, budgets and goals concurrently
    2. Wait for all four to settle
    3. Empty any collection whose read failed
    4. Parse rows into entities, dropping malformed ones
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger

    async def fetch(
        self,
        owner_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> LedgerData:
        """
        Load the owner's ledger.

        Never raises for a failed read: the collection is empty and
        listed in `failed_tables`.
        """
        correlation_id = correlation_id or create_correlation_id()
        tables = list(LedgerTable)

        results = await asyncio.gather(
            *(
                self._storage.fetch_rows(table, owner_id, order_by=FETCH_ORDER[table])
                for table in tables
            ),
            return_exceptions=True,
        )

        collections: dict[LedgerTable, list] = {}
        failed: list[LedgerTable] = []
        dropped = 0
        for table, result in zip(tables, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                failed.append(table)
                collections[table] = []
                if self._audit_logger:
                    await self._audit_logger.log_collection_failed(
                        table=table.value,
                        error_message=str(result),
                        correlation_id=correlation_id,
                    )
                continue

            outcome = parse_rows(table, result)
            collections[table] = outcome.items
            dropped += len(outcome.dropped)
            if self._audit_logger:
                for row_id, reason in outcome.dropped:
                    await self._audit_logger.log_row_dropped(
                        table=table.value,
                        row_id=row_id,
                        reason=reason,
                        correlation_id=correlation_id,
                    )

        ledger = LedgerData(
            owner=owner_id,
            income=tuple(collections[LedgerTable.INCOME]),
            expenses=tuple(collections[LedgerTable.EXPENSES]),
            budgets=tuple(collections[LedgerTable.BUDGETS]),
            goals=tuple(collections[LedgerTable.GOALS]),
            failed_tables=tuple(failed),
            dropped_rows=dropped,
        )

        if self._audit_logger:
            await self._audit_logger.log_ledger_fetched(
                owner=owner_id,
                counts={table.value: len(collections[table]) for table in tables},
                failed_tables=[table.value for table in failed],
                correlation_id=correlation_id,
            )
        return ledger


# =============================================================================
# SESSION
# =============================================================================

SnapshotListener = Callable[[SessionView], Any]


class LedgerSession:
    """
    One screen's view of the ledger.

    The session holds the latest SessionView and replaces it wholesale on
    every refresh. Listeners are called with each new view.

    CRITICAL: Last fetch wins. Every refresh takes a new generation
    number; a fetch that completes after a newer one started, or after
    the session was deactivated, is discarded.
    """

    def __init__(
        self,
        owner_id: str,
        fetcher: LedgerFetcher,
        change_feed: Optional[ChangeFeed] = None,
        audit_logger: Optional[AuditLogger] = None,
        clock: Clock = datetime.now,
    ):
        self.owner_id = owner_id
        self._fetcher = fetcher
        self._change_feed = change_feed
        self._audit_logger = audit_logger
        self._clock = clock
        self._generation = 0
        self._active = False
        self._view: Optional[SessionView] = None
        self._listeners: list[SnapshotListener] = []

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def view(self) -> Optional[SessionView]:
        return self._view

    @property
    def snapshot(self) -> Optional[AggregateSnapshot]:
        return self._view.snapshot if self._view else None

    def add_listener(self, listener: SnapshotListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: SnapshotListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def activate(self) -> Optional[SessionView]:
        """Start listening for changes and load the ledger."""
        if not self._active:
            self._active = True
            if self._change_feed is not None:
                self._change_feed.subscribe(self._on_change)
        return await self.refresh()

    def deactivate(self) -> None:
        """Stop listening; any fetch still in flight becomes stale."""
        self._active = False
        self._generation += 1
        if self._change_feed is not None:
            self._change_feed.unsubscribe(self._on_change)

    async def ensure_view(self) -> SessionView:
        """The current view, activating the session first if needed."""
        if self._active and self._view is not None:
            return self._view
        view = await self.activate()
        if view is None:
            view = self._view
        if view is None:
            raise RuntimeError("Ledger could not be loaded for this session")
        return view

    async def refresh(self) -> Optional[SessionView]:
        """
        Re-run the whole fetch+aggregate cycle.

        Returns:
            The new view, or None if this fetch was superseded
        """
        self._generation += 1
        generation = self._generation
        correlation_id = create_correlation_id()

        ledger = await self._fetcher.fetch(self.owner_id, correlation_id)

        if not self._active or generation != self._generation:
            if self._audit_logger:
                await self._audit_logger.log_stale_fetch(
                    generation=generation,
                    current_generation=self._generation,
                    correlation_id=correlation_id,
                )
            return None

        snapshot = aggregate(
            ledger.income,
            ledger.expenses,
            ledger.budgets,
            ledger.goals,
            now=self._clock(),
        )
        view = SessionView(generation=generation, ledger=ledger, snapshot=snapshot)
        self._view = view

        if self._audit_logger:
            await self._audit_logger.log_snapshot_computed(
                generation=generation,
                balance=snapshot.balance,
                correlation_id=correlation_id,
            )

        for listener in list(self._listeners):
            try:
                await _call(listener, view)
            except Exception as e:
                if self._audit_logger:
                    await self._audit_logger.log_error(
                        error_type="snapshot_listener_failed",
                        error_message=str(e),
                        details={"generation": generation},
                        correlation_id=correlation_id,
                    )
                else:
                    logger.error("snapshot_listener_failed", error=str(e))
        return view

    async def _on_change(self, event: ChangeEvent) -> None:
        if self._audit_logger:
            await self._audit_logger.log_change_received(event.table.value)
        await self.refresh()


# =============================================================================
# WRITES
# =============================================================================

class _LedgerWriter:
    """
    Shared write path: issue the call, audit it, publish the change.

    Store failures become LedgerWriteError.
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        owner_id: str,
        change_feed: Optional[ChangeFeed] = None,
        audit_logger: Optional[AuditLogger] = None,
        clock: Clock = datetime.now,
    ):
        self._storage = storage
        self._owner_id = owner_id
        self._change_feed = change_feed
        self._audit_logger = audit_logger
        self._clock = clock
        self._settings = get_settings()

    async def _failed(self, table: LedgerTable, operation: str, error: StorageError, correlation_id: UUID):
        if self._audit_logger:
            await self._audit_logger.log_write_failed(
                table=table.value,
                operation=operation,
                error_message=str(error),
                correlation_id=correlation_id,
            )
        return LedgerWriteError(table, operation, error)

    async def _written(
        self,
        event_type: AuditEventType,
        table: LedgerTable,
        row_id: Optional[str],
        correlation_id: UUID,
        details: Optional[dict] = None,
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log_record_written(
                event_type=event_type,
                table=table.value,
                row_id=row_id,
                correlation_id=correlation_id,
                details=details,
            )
        if self._change_feed is not None:
            await self._change_feed.publish(table)

    async def _insert(self, table: LedgerTable, row: Row, correlation_id: UUID) -> Row:
        try:
            stored = await self._storage.insert_row(table, self._owner_id, row)
        except StorageError as e:
            raise await self._failed(table, "insert", e, correlation_id) from e
        await self._written(AuditEventType.RECORD_INSERTED, table, stored.get("id"), correlation_id)
        return stored

    async def _update(self, table: LedgerTable, row_id: str, changes: Row, correlation_id: UUID) -> Row:
        try:
            stored = await self._storage.update_row(table, self._owner_id, row_id, changes)
        except StorageError as e:
            raise await self._failed(table, "update", e, correlation_id) from e
        await self._written(AuditEventType.RECORD_UPDATED, table, row_id, correlation_id)
        return stored

    async def _delete(self, table: LedgerTable, row_id: str, correlation_id: UUID) -> bool:
        try:
            deleted = await self._storage.delete_row(table, self._owner_id, row_id)
        except StorageError as e:
            raise await self._failed(table, "delete", e, correlation_id) from e
        if deleted:
            await self._written(AuditEventType.RECORD_DELETED, table, row_id, correlation_id)
        return deleted

    def _transaction_row(self, draft: TransactionDraft) -> Row:
        return {
            "title": draft.title,
            "amount": draft.amount,
            "category": draft.category,
            "date": self._clock(),
        }


class ExpenseEntryFlow(_LedgerWriter):
    """
    Orchestrates adding an expense.

    Flow:
    1. Draft → validated (pydantic) and checked against the amount ceiling
    2. Balance check against the session's latest snapshot (hard stop)
    3. Budget check against this month's category spend (soft)
    4. Over budget → PAUSE, the user confirms or declines the override
    5. Write → publish change → session re-fetches

    An expense that fails the balance check is NEVER written.
    """

    def __init__(
        self,
        session: LedgerSession,
        storage: LedgerStorageInterface,
        change_feed: Optional[ChangeFeed] = None,
        audit_logger: Optional[AuditLogger] = None,
        clock: Clock = datetime.now,
    ):
        super().__init__(storage, session.owner_id, change_feed, audit_logger, clock)
        self._session = session

    async def _check(self, draft: TransactionDraft, skip_budget_check: bool) -> ExpenseCheck:
        view = await self._session.ensure_view()
        return check_expense(
            draft,
            view.snapshot,
            view.ledger.budgets,
            skip_budget_check=skip_budget_check,
            settings=self._settings.reporting,
        )

    async def _reject(self, check: ExpenseCheck, correlation_id: UUID) -> ExpenseSubmission:
        if self._audit_logger:
            await self._audit_logger.log_insufficient_balance(
                amount=check.amount,
                balance=check.balance,
                correlation_id=correlation_id,
            )
        return ExpenseSubmission(
            status=SubmissionStatus.REJECTED,
            check=check,
            message=check.message,
        )

    async def _save(self, draft: TransactionDraft, check: ExpenseCheck, correlation_id: UUID) -> ExpenseSubmission:
        stored = await self._insert(LedgerTable.EXPENSES, self._transaction_row(draft), correlation_id)
        return ExpenseSubmission(
            status=SubmissionStatus.SAVED,
            check=check,
            record=parse_transaction(stored, TransactionKind.EXPENSE),
            message="Expense saved",
        )

    async def _budget_event(self, event_type: AuditEventType, check: ExpenseCheck, correlation_id: UUID) -> None:
        if self._audit_logger:
            await self._audit_logger.log_budget_override(
                event_type=event_type,
                category=check.category,
                amount=check.amount,
                limit=check.limit,
                spent=check.spent_this_month,
                correlation_id=correlation_id,
            )

    async def submit(self, draft: Union[TransactionDraft, dict]) -> ExpenseSubmission:
        """
        Submit a new expense.

        Returns:
            SAVED, REJECTED (insufficient balance) or NEEDS_CONFIRMATION
            with a PendingExpense for `confirm`/`decline`

        Raises:
            pydantic.ValidationError: If the draft is invalid
            ValueError: If the amount exceeds the configured ceiling
            LedgerWriteError: If the store rejects the write
        """
        if not isinstance(draft, TransactionDraft):
            draft = TransactionDraft.model_validate(draft)
        check_amount_ceiling(draft.amount, self._settings.app.max_transaction_amount)
        correlation_id = create_correlation_id()

        check = await self._check(draft, skip_budget_check=False)

        if check.outcome == ExpenseCheckOutcome.INSUFFICIENT_BALANCE:
            return await self._reject(check, correlation_id)

        if check.outcome == ExpenseCheckOutcome.BUDGET_EXCEEDED:
            await self._budget_event(AuditEventType.BUDGET_OVERRIDE_REQUESTED, check, correlation_id)
            return ExpenseSubmission(
                status=SubmissionStatus.NEEDS_CONFIRMATION,
                check=check,
                pending=PendingExpense(draft=draft, check=check, correlation_id=correlation_id),
                message=check.message,
            )

        return await self._save(draft, check, correlation_id)

    async def confirm(self, pending: PendingExpense) -> ExpenseSubmission:
        """
        Write a pending expense despite the budget limit.

        The override skips the budget check only; the balance is checked
        again against the session's latest snapshot.

        Raises:
            OverrideAlreadyUsedError: If `pending` was already confirmed or declined
            LedgerWriteError: If the store rejects the write
        """
        pending.consume()
        correlation_id = pending.correlation_id

        check = await self._check(pending.draft, skip_budget_check=True)
        if check.outcome == ExpenseCheckOutcome.INSUFFICIENT_BALANCE:
            return await self._reject(check, correlation_id)

        await self._budget_event(AuditEventType.BUDGET_OVERRIDE_CONFIRMED, pending.check, correlation_id)
        return await self._save(pending.draft, check, correlation_id)

    async def decline(self, pending: PendingExpense) -> ExpenseSubmission:
        """Drop a pending expense without writing anything."""
        pending.consume()
        await self._budget_event(
            AuditEventType.BUDGET_OVERRIDE_DECLINED,
            pending.check,
            pending.correlation_id,
        )
        return ExpenseSubmission(
            status=SubmissionStatus.DECLINED,
            check=pending.check,
            message="Expense not saved",
        )


class RecordFlow(_LedgerWriter):
    """
    Writes for income, budgets and goals, and deletes for any table.

    No local business rules apply to these beyond draft validation.
    """

    async def add_income(self, draft: Union[TransactionDraft, dict]) -> Transaction:
        if not isinstance(draft, TransactionDraft):
            draft = TransactionDraft.model_validate(draft)
        check_amount_ceiling(draft.amount, self._settings.app.max_transaction_amount)
        stored = await self._insert(
            LedgerTable.INCOME,
            self._transaction_row(draft),
            create_correlation_id(),
        )
        return parse_transaction(stored, TransactionKind.INCOME)

    async def save_budget(self, draft: Union[BudgetDraft, dict]) -> Budget:
        """Insert a monthly budget, or replace the one with `draft.id`."""
        if not isinstance(draft, BudgetDraft):
            draft = BudgetDraft.model_validate(draft)
        row = {
            "category": draft.category,
            "amount": draft.amount,
            "period": BudgetPeriod.MONTHLY.value,
            "end_date": draft.end_date,
        }
        correlation_id = create_correlation_id()
        if draft.id:
            stored = await self._update(LedgerTable.BUDGETS, draft.id, row, correlation_id)
        else:
            stored = await self._insert(LedgerTable.BUDGETS, row, correlation_id)
        return parse_budget(stored)

    async def save_goal(self, draft: Union[GoalDraft, dict]) -> Goal:
        """Insert a goal, or replace the one with `draft.id`."""
        if not isinstance(draft, GoalDraft):
            draft = GoalDraft.model_validate(draft)
        row = {
            "title": draft.title,
            "progress_ratio": draft.progress_ratio,
            "deadline": draft.deadline,
            "category": draft.category,
        }
        correlation_id = create_correlation_id()
        if draft.id:
            stored = await self._update(LedgerTable.GOALS, draft.id, row, correlation_id)
        else:
            stored = await self._insert(LedgerTable.GOALS, row, correlation_id)
        return parse_goal(stored)

    async def delete_record(self, table: LedgerTable, row_id: str) -> bool:
        """Delete a row; False if the owner has no row with this id."""
        return await self._delete(LedgerTable(table), row_id, create_correlation_id())


# =============================================================================
# FACTORY
# =============================================================================

class AppComponents(BaseModel):
    """Everything a client needs for one signed-in user."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    session: LedgerSession
    expense_flow: ExpenseEntryFlow
    record_flow: RecordFlow
    change_feed: ChangeFeed
    sheets_client: Optional[GoogleSheetsClient] = None


def create_app_components(
    owner_id: str,
    use_storage: bool = True,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        owner_id: Identifier of the signed-in user
        use_storage: Whether to initialize Google Sheets storage.
                    Set to False to run on in-memory storage.
    """
    settings = get_settings()
    configure_logging(settings.app.log_level)

    sheets_client = None
    ledger_storage: LedgerStorageInterface
    audit_storage: Optional[AuditStorageInterface]

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            ledger_storage = GoogleSheetsLedgerStorage(sheets_client)
            audit_storage = GoogleSheetsAuditStorage(sheets_client)
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", error=str(e))
            sheets_client = None
            ledger_storage = InMemoryLedgerStorage()
            audit_storage = None
    else:
        ledger_storage = InMemoryLedgerStorage()
        audit_storage = InMemoryAuditStorage()

    audit_logger = AuditLogger(audit_storage)
    change_feed = ChangeFeed()

    session = LedgerSession(
        owner_id=owner_id,
        fetcher=LedgerFetcher(ledger_storage, audit_logger),
        change_feed=change_feed,
        audit_logger=audit_logger,
    )
    return AppComponents(
        session=session,
        expense_flow=ExpenseEntryFlow(session, ledger_storage, change_feed, audit_logger),
        record_flow=RecordFlow(ledger_storage, owner_id, change_feed, audit_logger),
        change_feed=change_feed,
        sheets_client=sheets_client,
    )
