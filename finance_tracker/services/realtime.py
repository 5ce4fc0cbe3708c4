"""
Change Feed

Opaque "something changed in table X" notifications. A change carries no
payload anyone depends on; subscribers treat it purely as a trigger to
re-fetch.

Handlers may be plain functions or coroutine functions. A failing
handler is logged and does not stop delivery to the others.
"""

import inspect
from datetime import datetime
from typing import Awaitable, Callable, Iterable, NamedTuple, Optional, Union

import structlog

from finance_tracker.models.ledger import LedgerTable

logger = structlog.get_logger("finance_tracker.realtime")

ALL_TABLES = "*"


class ChangeEvent(NamedTuple):
    table: LedgerTable
    ts: str


ChangeHandler = Callable[[ChangeEvent], Union[None, Awaitable[None]]]


class ChangeFeed:
    """In-process publish/subscribe of table change events."""

    def __init__(self):
        self._subscribers: dict[str, list[ChangeHandler]] = {}

    def subscribe(
        self,
        handler: ChangeHandler,
        tables: Optional[Iterable[LedgerTable]] = None,
    ) -> None:
        """Subscribe to the given tables, or to every table if None."""
        keys = [ALL_TABLES] if tables is None else [LedgerTable(t).value for t in tables]
        for key in keys:
            handlers = self._subscribers.setdefault(key, [])
            if handler not in handlers:
                handlers.append(handler)

    def unsubscribe(self, handler: ChangeHandler) -> None:
        """Remove the handler from every table it was subscribed to."""
        for handlers in self._subscribers.values():
            if handler in handlers:
                handlers.remove(handler)

    def subscriber_count(self, table: Optional[LedgerTable] = None) -> int:
        return len(self._handlers_for(table))

    def _handlers_for(self, table: Optional[LedgerTable]) -> list[ChangeHandler]:
        keys = [ALL_TABLES] if table is None else [LedgerTable(table).value, ALL_TABLES]
        handlers: list[ChangeHandler] = []
        for key in keys:
            for handler in self._subscribers.get(key, []):
                if handler not in handlers:
                    handlers.append(handler)
        return handlers

    async def publish(self, table: LedgerTable) -> int:
        """
        Notify subscribers that `table` changed.

        Returns:
            Number of handlers that ran without raising
        """
        event = ChangeEvent(table=LedgerTable(table), ts=datetime.now().isoformat())
        delivered = 0
        # Copy: handlers may unsubscribe while being notified
        for handler in list(self._handlers_for(event.table)):
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
                delivered += 1
            except Exception as e:
                logger.error(
                    "change_handler_failed",
                    table=event.table.value,
                    error=str(e),
                )
        return delivered
