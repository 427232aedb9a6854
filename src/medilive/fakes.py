# SPDX-License-Identifier: BSD-3-Clause
# Copyright (c) 2024 Scipp contributors (https://github.com/scipp)
"""
In-memory stand-ins for the backend and the event loop clock.

Used by the tests and the demo service.
"""

from __future__ import annotations

import heapq
import itertools
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from .config.models import TopicBinding
from .core.events import Record
from .realtime.backend import JOINED, ChangeCallback


class FakeTimerHandle:
    def __init__(self, when: float, callback: Callable[[], None]) -> None:
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """
    A scheduler with a manually advanced clock.

    Callbacks run synchronously from :py:meth:`advance`, in order of their due time.
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self._timers: list[tuple[float, int, FakeTimerHandle]] = []
        self._counter = itertools.count()

    def time(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[[], None]) -> FakeTimerHandle:
        handle = FakeTimerHandle(self._now + delay, callback)
        heapq.heappush(self._timers, (handle.when, next(self._counter), handle))
        return handle

    @property
    def pending(self) -> int:
        """Number of timers that are neither cancelled nor fired."""
        return sum(1 for _, _, handle in self._timers if not handle.cancelled)

    def advance(self, seconds: float) -> None:
        target = self._now + seconds
        while self._timers and self._timers[0][0] <= target:
            when, _, handle = heapq.heappop(self._timers)
            if handle.cancelled:
                continue
            self._now = when
            handle.callback()
        self._now = target


class FakeChannel:
    """Channel returned by :py:class:`FakeAnalyticsBackend`."""

    def __init__(
        self,
        name: str,
        bindings: Sequence[TopicBinding],
        on_event: ChangeCallback,
    ) -> None:
        self.name = name
        self.bindings = list(bindings)
        self.on_event = on_event
        self.state = JOINED
        self.release_count = 0

    @property
    def released(self) -> bool:
        return self.release_count > 0

    def accepts(self, table: str, event_type: str) -> bool:
        return any(
            binding.table == table and binding.event in ('*', event_type)
            for binding in self.bindings
        )


class FakeAnalyticsBackend:
    """
    In-memory backend that records all interactions.

    Tables are lists of records. Change events are injected with :py:meth:`emit`
    and delivered synchronously to all open channels bound to the table.
    """

    def __init__(self, tables: Mapping[str, list[Record]] | None = None) -> None:
        self.tables: dict[str, list[Record]] = {
            name: list(records) for name, records in (tables or {}).items()
        }
        self.query_calls: list[dict[str, Any]] = []
        self.channels: list[FakeChannel] = []
        self.failing_tables: set[str] = set()
        self.should_fail_subscribe = False
        self.unsubscribe_calls = 0

    @property
    def open_channels(self) -> list[FakeChannel]:
        return [channel for channel in self.channels if not channel.released]

    async def query(
        self,
        table: str,
        *,
        filters: Mapping[str, Any] | None = None,
        order_by: str,
        descending: bool = True,
        limit: int,
    ) -> list[Record]:
        self.query_calls.append(
            {
                'table': table,
                'filters': dict(filters or {}),
                'order_by': order_by,
                'descending': descending,
                'limit': limit,
            }
        )
        if table in self.failing_tables:
            raise ConnectionError(f"Query on {table} failed")
        rows = [
            row
            for row in self.tables.get(table, [])
            if all(row.get(key) == value for key, value in (filters or {}).items())
        ]
        rows.sort(key=lambda row: str(row.get(order_by, '')), reverse=descending)
        return rows[:limit]

    async def subscribe(
        self,
        channel_name: str,
        bindings: Sequence[TopicBinding],
        on_event: ChangeCallback,
    ) -> FakeChannel:
        if self.should_fail_subscribe:
            raise ConnectionError(f"Could not join channel {channel_name}")
        channel = FakeChannel(channel_name, bindings, on_event)
        self.channels.append(channel)
        return channel

    async def unsubscribe(self, handle: FakeChannel) -> None:
        self.unsubscribe_calls += 1
        if handle.released:
            return
        handle.release_count += 1
        handle.state = 'closed'

    def emit(self, table: str, event_type: str, record: Record) -> int:
        """Deliver a change to all open channels. Returns the number of deliveries."""
        payload = {'table': table, 'eventType': event_type, 'new': dict(record)}
        delivered = 0
        for channel in self.open_channels:
            if channel.accepts(table, event_type):
                channel.on_event(payload)
                delivered += 1
        return delivered
