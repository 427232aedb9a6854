# SPDX-License-Identifier: BSD-3-Clause
# Copyright (c) 2025 Scipp contributors (https://github.com/scipp)
"""
Protocols for the realtime backend consumed by the coordinator.

The backend is a Postgres-backed service with a REST query layer and a change feed,
such as Supabase. Records are plain mappings from column name to value.
"""

from collections.abc import Callable, Mapping, Sequence
from typing import Any, Protocol

from ..config.models import TopicBinding
from ..core.events import Record

JOINED = 'joined'

ChangeCallback = Callable[[Mapping[str, Any]], None]


class ChannelHandle(Protocol):
    """An open change-feed channel."""

    @property
    def state(self) -> str:
        """Connection state of the channel, ``'joined'`` if healthy."""
        ...


class AnalyticsBackend(Protocol):
    async def query(
        self,
        table: str,
        *,
        filters: Mapping[str, Any] | None = None,
        order_by: str,
        descending: bool = True,
        limit: int,
    ) -> list[Record]:
        """Return up to ``limit`` rows of ``table`` matching all ``filters``."""
        ...

    async def subscribe(
        self,
        channel_name: str,
        bindings: Sequence[TopicBinding],
        on_event: ChangeCallback,
    ) -> ChannelHandle:
        """
        Open one channel multiplexing all bindings.

        ``on_event`` is called on the event loop with payloads of the form
        ``{'table': ..., 'eventType': 'INSERT' | 'UPDATE', 'new': record}``.
        """
        ...

    async def unsubscribe(self, handle: ChannelHandle) -> None:
        """Release a channel. Releasing a channel twice has no effect."""
        ...
