# SPDX-License-Identifier: BSD-3-Clause
# Copyright (c) 2025 Scipp contributors (https://github.com/scipp)
"""
Realtime analytics coordinator.

The coordinator keeps a :py:class:`Snapshot` of the analytics data up to date by
combining full fetches from the backend with buffered change-feed events. It is the
only owner of the snapshot. Consumers register callbacks and receive an immutable
:py:class:`AnalyticsState` after every change.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from ..config.models import AnalyticsConfig
from ..config.presets import preset_config
from ..core.events import ChangeEvent, Record
from ..core.merger import merge
from ..core.snapshot import Snapshot
from ..core.throttle import Environment, settle_delay
from ..core.timers import AsyncioScheduler, RepeatingTimer, Scheduler, SingleShotTimer
from .backend import AnalyticsBackend
from .errors import FetchError
from .fetcher import DataFetcher
from .subscription import SubscriptionManager, SubscriptionState
from .visibility import VisibilityGate


@dataclass(frozen=True, slots=True)
class AnalyticsState:
    """State of a coordinator as seen by its consumers."""

    snapshot: Snapshot
    loading: bool
    error: str | None
    connected: bool
    is_realtime: bool
    subscription_count: int

    @property
    def engagement(self) -> tuple[Record, ...]:
        return self.snapshot.engagement

    @property
    def behavior(self) -> tuple[Record, ...]:
        return self.snapshot.behavior

    @property
    def health(self) -> tuple[Record, ...]:
        return self.snapshot.health

    @property
    def last_updated(self) -> datetime:
        return self.snapshot.last_updated


StateCallback = Callable[[AnalyticsState], None]


class RealtimeAnalytics:
    """
    Keeps analytics data fresh using fetches, polling and a change feed.

    Parameters
    ----------
    backend:
        Query layer and change feed.
    config:
        Configuration of queries, throttling and subscription. Defaults to the
        shared defaults without polling.
    environment:
        Device and network class of the client. Defaults to desktop.
    scheduler:
        Scheduler for all timers. Defaults to the running asyncio event loop.
    visible:
        Initial visibility of the UI.
    logger:
        Logger to use instead of the module logger.
    """

    def __init__(
        self,
        backend: AnalyticsBackend,
        config: AnalyticsConfig | None = None,
        *,
        environment: Environment | None = None,
        scheduler: Scheduler | None = None,
        visible: bool = True,
        logger: logging.Logger | None = None,
    ) -> None:
        self._backend = backend
        self._config = config or AnalyticsConfig()
        self._environment = environment or Environment()
        self._scheduler = scheduler or AsyncioScheduler()
        self._logger = logger or logging.getLogger(__name__)
        self._fetcher = DataFetcher(backend, self._config, logger=self._logger)
        self._gate = VisibilityGate(visible)
        self._gate.add_listener(self)
        self._subscription: SubscriptionManager | None = None
        self._poll_timer = RepeatingTimer(self._scheduler)
        self._settle_timer = SingleShotTimer(self._scheduler)
        self._subscribers: list[StateCallback] = []
        self._tasks: set[asyncio.Task[Any]] = set()

        self._snapshot = Snapshot()
        self._loading = True
        self._error: str | None = None
        self._connected = False
        self._fetch_generation = 0
        self._started = False
        self._closed = False

    @property
    def config(self) -> AnalyticsConfig:
        return self._config

    @property
    def environment(self) -> Environment:
        return self._environment

    @property
    def snapshot(self) -> Snapshot:
        return self._snapshot

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def is_realtime(self) -> bool:
        return self._config.subscription.enabled and self._connected

    @property
    def subscription(self) -> SubscriptionManager | None:
        return self._subscription

    @property
    def subscription_count(self) -> int:
        if self._subscription is None:
            return 0
        return int(self._subscription.state is SubscriptionState.OPEN)

    @property
    def polling(self) -> bool:
        return self._poll_timer.running

    @property
    def visible(self) -> bool:
        return self._gate.visible

    @property
    def state(self) -> AnalyticsState:
        return AnalyticsState(
            snapshot=self._snapshot,
            loading=self._loading,
            error=self._error,
            connected=self._connected,
            is_realtime=self.is_realtime,
            subscription_count=self.subscription_count,
        )

    def register_subscriber(self, callback: StateCallback) -> None:
        """Register a callback receiving the state after every change."""
        self._subscribers.append(callback)

    def unregister_subscriber(self, callback: StateCallback) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    async def start(self) -> None:
        """Fetch the initial snapshot, then start the subscription and polling."""
        if self._closed:
            raise RuntimeError('Cannot start a closed coordinator')
        if self._started:
            return
        self._started = True
        await self._fetch()
        if self._closed:
            return
        if self._config.subscription.enabled:
            self._subscription = SubscriptionManager(
                backend=self._backend,
                settings=self._config.subscription,
                throttle=self._config.throttle,
                environment=self._environment,
                gate=self._gate,
                scheduler=self._scheduler,
                on_flush=self._apply_events,
                on_connection_change=self._set_connected,
                logger=self._logger,
            )
            await self._subscription.open()
        if self._config.refresh_interval_s is not None and not self._closed:
            self._poll_timer.start(
                self._config.refresh_interval_s, lambda: self._spawn(self._fetch())
            )

    async def refresh(self) -> bool:
        """
        Re-fetch the complete snapshot. Returns True on success.

        If the subscription failed to open, opening it is attempted again.
        """
        self._loading = True
        self._notify()
        fetched = await self._fetch()
        if (
            self._subscription is not None
            and self._subscription.state is SubscriptionState.CLOSED
            and not self._closed
        ):
            self._logger.info('Retrying subscription after failed open')
            await self._subscription.open()
        return fetched

    async def set_filter(self, filter: str | None) -> bool:
        """Change the filter value and re-fetch the snapshot."""
        self._config = self._config.model_copy(update={'filter': filter})
        return await self.refresh()

    def set_visible(self, visible: bool) -> None:
        self._gate.set_visible(visible)

    async def settle(self) -> None:
        """Wait for fetches started by timers to complete."""
        while self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def close(self) -> None:
        """Stop all timers and release the subscription. Safe to call repeatedly."""
        if self._closed:
            return
        self._closed = True
        self._poll_timer.stop()
        self._settle_timer.cancel()
        self._gate.remove_listener(self)
        if self._subscription is not None:
            await self._subscription.close()
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._logger.info('Realtime analytics closed')

    async def __aenter__(self) -> RealtimeAnalytics:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def on_hidden(self) -> None:
        self._settle_timer.cancel()

    def on_visible(self) -> None:
        if not self._started or self._closed or self.subscription_count == 0:
            # Polling alone keeps the snapshot fresh without a change feed.
            return
        delay = settle_delay(self._environment, self._config.visibility)
        self._settle_timer.start(delay, lambda: self._spawn(self._fetch()))

    async def _fetch(self) -> bool:
        self._fetch_generation += 1
        generation = self._fetch_generation
        try:
            snapshot = await self._fetcher.fetch_snapshot(
                self._config.filter, previous=self._snapshot
            )
        except FetchError as e:
            if generation != self._fetch_generation or self._closed:
                return False
            self._logger.error('%s', e)
            self._error = str(e)
            self._loading = False
            if not self._config.subscription.enabled:
                self._connected = False
            self._notify()
            return False

        if generation != self._fetch_generation or self._closed:
            self._logger.debug('Discarding result of superseded fetch')
            return False
        self._snapshot = snapshot
        self._error = None
        self._loading = False
        if not self._config.subscription.enabled:
            self._connected = True
        self._notify()
        return True

    def _apply_events(self, events: list[ChangeEvent]) -> None:
        self._snapshot = merge(self._snapshot, events, limits=self._config.limits)
        self._notify()

    def _set_connected(self, connected: bool) -> None:
        if connected == self._connected:
            return
        self._connected = connected
        self._notify()

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _notify(self) -> None:
        state = self.state
        for callback in list(self._subscribers):
            try:
                callback(state)
            except Exception:
                self._logger.exception('Error in analytics subscriber callback.')


def engagement_analytics(
    backend: AnalyticsBackend, specialty: str | None = None, **kwargs: Any
) -> RealtimeAnalytics:
    """News engagement analytics, polled every minute."""
    return RealtimeAnalytics(
        backend, preset_config('engagement', filter=specialty), **kwargs
    )


def user_behavior_analytics(
    backend: AnalyticsBackend, specialty: str | None = None, **kwargs: Any
) -> RealtimeAnalytics:
    """User session analytics, polled every two minutes."""
    return RealtimeAnalytics(
        backend, preset_config('user_behavior', filter=specialty), **kwargs
    )


def system_health_monitoring(
    backend: AnalyticsBackend, **kwargs: Any
) -> RealtimeAnalytics:
    """System health, polled every 30 seconds without a change feed."""
    return RealtimeAnalytics(backend, preset_config('system_health'), **kwargs)
