"""Incremental polling of vault contract events."""

import asyncio
from collections.abc import Callable
from typing import Any

from stellar_sdk.soroban_rpc import EventFilter, EventFilterType

from stellar_vault.constants import (
    EVENT_BACKFILL_LEDGERS,
    EVENT_BUFFER_SIZE,
    EVENT_PAGE_LIMIT,
    EVENT_POLL_INTERVAL_SECONDS,
)
from stellar_vault.models import EventPage, VaultEvent
from stellar_vault.parsing import parse_vault_event


async def initial_start_ledger(server: Any, *, backfill: int = EVENT_BACKFILL_LEDGERS) -> int:
    """Start roughly an hour back from the network's latest ledger, never below ledger 1."""
    latest = await server.get_latest_ledger()
    return max(1, int(latest.sequence) - backfill)


async def poll_vault_events(
    server: Any,
    contract_id: str,
    start_ledger: int | None = None,
    *,
    paging_cursor: str | None = None,
    limit: int = EVENT_PAGE_LIMIT,
) -> EventPage:
    """
    Fetch up to `limit` vault events from `start_ledger` onwards, or right after `paging_cursor`.

    Events with unknown topics or payloads that fail to decode are skipped. When the page is
    not full, the returned cursor is one past the latest ledger the RPC reported. A full page
    resumes from its last event instead: `paging_cursor` continues right after it, and
    `cursor` falls back to that event's ledger.
    """
    filters = [EventFilter(event_type=EventFilterType.CONTRACT, contract_ids=[contract_id])]
    if paging_cursor:
        ledger = start_ledger or 1
        response = await server.get_events(filters=filters, cursor=paging_cursor, limit=limit)
    else:
        ledger = start_ledger if start_ledger else await initial_start_ledger(server)
        response = await server.get_events(start_ledger=ledger, filters=filters, limit=limit)

    raw_events = list(response.events or [])
    events: list[VaultEvent] = []
    for raw in raw_events:
        try:
            event = parse_vault_event(raw)
        except Exception:  # pylint: disable=broad-exception-caught
            # A single malformed event must not abort the batch
            continue
        if event is not None:
            events.append(event)

    latest_ledger = int(response.latest_ledger or ledger)
    if limit and len(raw_events) >= limit:
        last = raw_events[-1]
        return EventPage(
            events=events,
            latest_ledger=latest_ledger,
            cursor=max(int(last.ledger), ledger),
            paging_cursor=str(last.id),
        )
    return EventPage(events=events, latest_ledger=latest_ledger, cursor=max(latest_ledger + 1, ledger))


class EventFeed:
    """
    Tails vault events into a newest-first buffer of at most `buffer_size` entries.

    The feed owns the cursor between polls and drops event ids it has already seen.
    `start()` schedules polling on an asyncio task; `stop()` must be awaited before teardown.
    """

    def __init__(
        self,
        server: Any,
        contract_id: str,
        *,
        interval: float = EVENT_POLL_INTERVAL_SECONDS,
        buffer_size: int = EVENT_BUFFER_SIZE,
        on_events: Callable[[list[VaultEvent]], None] | None = None,
    ) -> None:
        self.server = server
        self.contract_id = contract_id
        self.interval = interval
        self.buffer_size = buffer_size
        self.on_events = on_events
        self.cursor: int | None = None
        self.paging_cursor: str | None = None
        self.events: list[VaultEvent] = []
        self.last_error: str | None = None
        self._seen_ids: set[str] = set()
        self._stop = asyncio.Event()
        self._task: asyncio.Task | None = None

    @property
    def listening(self) -> bool:
        return self._task is not None and not self._task.done()

    async def poll_once(self) -> list[VaultEvent]:
        """Poll once, merge new events into the buffer and return them (newest first)."""
        try:
            page = await poll_vault_events(
                self.server, self.contract_id, self.cursor, paging_cursor=self.paging_cursor
            )
        except Exception as ex:  # pylint: disable=broad-exception-caught
            self.last_error = str(ex) or "Event polling failed"
            return []

        self.cursor = page.cursor
        self.paging_cursor = page.paging_cursor
        self.last_error = None
        fresh = [e for e in reversed(page.events) if e.tx_id not in self._seen_ids]
        self.events = (fresh + self.events)[: self.buffer_size]
        # Only buffered events and this page can come back on the next poll
        self._seen_ids = {e.tx_id for e in self.events} | {e.tx_id for e in page.events}
        if fresh and self.on_events is not None:
            self.on_events(fresh)
        return fresh

    def start(self) -> asyncio.Task:
        """Poll now and then every `interval` seconds until `stop()`. Returns the polling task."""
        if self._task is not None and not self._task.done():
            return self._task
        self._stop.clear()
        self._task = asyncio.create_task(self._run())
        return self._task

    async def stop(self) -> None:
        """Stop scheduling polls. A poll already in flight is allowed to finish."""
        self._stop.set()
        if self._task is not None:
            await self._task
            self._task = None

    async def _run(self) -> None:
        while not self._stop.is_set():
            await self.poll_once()
            if self.paging_cursor and self.last_error is None:
                # The last page was full, fetch the rest right away
                await asyncio.sleep(0)
                continue
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                continue
