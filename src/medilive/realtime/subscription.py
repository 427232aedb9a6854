# SPDX-License-Identifier: BSD-3-Clause
# Copyright (c) 2025 Scipp contributors (https://github.com/scipp)
from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from enum import Enum
from typing import Any

from ..config.models import SubscriptionSettings, ThrottleSettings
from ..core.events import ChangeEvent
from ..core.throttle import Environment, ThrottleController, make_buffer
from ..core.timers import Scheduler
from .backend import AnalyticsBackend, ChannelHandle
from .errors import SubscriptionOpenError
from .health import ConnectionHealthReporter
from .visibility import VisibilityGate


class SubscriptionState(Enum):
    CLOSED = 'closed'
    OPENING = 'opening'
    OPEN = 'open'


class SubscriptionManager:
    """
    Owns one multiplexed change-feed channel and the buffer of its events.

    Incoming events are buffered while the channel is open and the UI is visible.
    The buffer is flushed into ``on_flush`` once the throttle interval has passed
    without new events. The manager can be opened once and is released by
    :py:meth:`close`, which is safe to call any number of times.

    Parameters
    ----------
    backend:
        Backend providing the change feed.
    settings:
        Channel name, bindings and health check interval.
    throttle:
        Flush intervals and backpressure settings.
    environment:
        Device and network class of the client.
    gate:
        Visibility of the UI. Events are dropped while hidden.
    scheduler:
        Scheduler for the flush and health check timers.
    on_flush:
        Called with the buffered events in arrival order.
    on_connection_change:
        Called with the new connection state whenever it changes.
    """

    def __init__(
        self,
        *,
        backend: AnalyticsBackend,
        settings: SubscriptionSettings,
        throttle: ThrottleSettings,
        environment: Environment,
        gate: VisibilityGate,
        scheduler: Scheduler,
        on_flush: Callable[[list[ChangeEvent]], None],
        on_connection_change: Callable[[bool], None],
        logger: logging.Logger | None = None,
    ) -> None:
        self._backend = backend
        self._settings = settings
        self._environment = environment
        self._gate = gate
        self._on_flush = on_flush
        self._on_connection_change = on_connection_change
        self._logger = logger or logging.getLogger(__name__)

        self._buffer = make_buffer(environment, throttle)
        self._throttle = ThrottleController(
            scheduler=scheduler,
            environment=environment,
            settings=throttle,
            on_flush=self.flush,
        )
        self._health = ConnectionHealthReporter(
            scheduler=scheduler,
            interval=settings.health_check_interval_s,
            on_change=on_connection_change,
        )
        self._state = SubscriptionState.CLOSED
        self._handle: ChannelHandle | None = None
        self._released = False
        self.last_error: str | None = None

    @property
    def state(self) -> SubscriptionState:
        return self._state

    @property
    def handle(self) -> ChannelHandle | None:
        return self._handle

    @property
    def pending_events(self) -> int:
        return len(self._buffer)

    @property
    def flush_pending(self) -> bool:
        return self._throttle.pending

    @property
    def flush_interval(self) -> float:
        return self._throttle.interval

    @property
    def health(self) -> ConnectionHealthReporter:
        return self._health

    async def open(self) -> bool:
        """
        Open the channel.

        Returns
        -------
        :
            True if the channel is open. Failures are logged and reported via
            ``on_connection_change``, they are never raised.
        """
        if self._released:
            raise RuntimeError('Cannot reopen a closed subscription')
        if self._state is not SubscriptionState.CLOSED:
            return self._state is SubscriptionState.OPEN

        self._state = SubscriptionState.OPENING
        self._gate.add_listener(self)
        try:
            handle = await self._subscribe()
        except SubscriptionOpenError as e:
            self._state = SubscriptionState.CLOSED
            self._gate.remove_listener(self)
            self.last_error = str(e)
            self._logger.warning('%s, continuing without realtime updates', e)
            self._on_connection_change(False)
            return False

        if self._released:
            # Closed while waiting for the acknowledgement.
            await self._unsubscribe(handle)
            return False

        self._handle = handle
        self._state = SubscriptionState.OPEN
        self.last_error = None
        self._health.start(handle)
        self._logger.info(
            'Subscribed to %d topics on channel %s',
            len(self._settings.bindings),
            self._settings.channel_name,
        )
        self._on_connection_change(True)
        return True

    async def _subscribe(self) -> ChannelHandle:
        try:
            return await self._backend.subscribe(
                self._settings.channel_name, self._settings.bindings, self._on_event
            )
        except Exception as e:
            raise SubscriptionOpenError(
                f'Failed to open channel {self._settings.channel_name}: {e}'
            ) from e

    def _on_event(self, raw: Mapping[str, Any]) -> None:
        if self._state is not SubscriptionState.OPEN or not self._gate.visible:
            return
        event = ChangeEvent.from_payload(raw)
        if event is None:
            return
        self._buffer.push(event)
        self._throttle.touch()

    def flush(self) -> None:
        """Apply all buffered events now."""
        self._throttle.cancel()
        events = self._buffer.drain()
        if not events:
            return
        self._logger.debug('Flushing %d buffered events', len(events))
        self._on_flush(events)

    def on_hidden(self) -> None:
        self._throttle.cancel()
        if self._environment.is_mobile:
            dropped = self._buffer.clear()
            self._logger.info(
                'Pausing subscription, discarded %d buffered events', dropped
            )
        else:
            self._logger.info(
                'Pausing subscription, retaining %d buffered events',
                len(self._buffer),
            )

    def on_visible(self) -> None:
        self._logger.info('Resuming subscription')
        self.flush()

    async def close(self) -> None:
        """Cancel timers, apply remaining events and release the channel."""
        if self._released:
            return
        self._released = True
        self._health.stop()
        self._gate.remove_listener(self)
        self.flush()
        handle = self._handle
        self._handle = None
        self._state = SubscriptionState.CLOSED
        if handle is not None:
            await self._unsubscribe(handle)

    async def _unsubscribe(self, handle: ChannelHandle) -> None:
        try:
            await self._backend.unsubscribe(handle)
        except Exception:
            self._logger.exception(
                'Error releasing channel %s', self._settings.channel_name
            )
        else:
            self._logger.info('Released channel %s', self._settings.channel_name)

    async def __aenter__(self) -> SubscriptionManager:
        await self.open()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
