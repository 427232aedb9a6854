# SPDX-License-Identifier: BSD-3-Clause
# Copyright (c) 2025 Scipp contributors (https://github.com/scipp)
from __future__ import annotations

import logging
from collections.abc import Callable

from ..core.timers import RepeatingTimer, Scheduler
from .backend import JOINED, ChannelHandle


class ConnectionHealthReporter:
    """
    Periodically samples the state of a channel.

    The reporter only observes the channel. ``on_change`` is called whenever the
    sampled connection state differs from the previous sample.
    """

    def __init__(
        self,
        *,
        scheduler: Scheduler,
        interval: float,
        on_change: Callable[[bool], None],
    ) -> None:
        self._timer = RepeatingTimer(scheduler)
        self._interval = interval
        self._on_change = on_change
        self._handle: ChannelHandle | None = None
        self._connected = False
        self._logger = logging.getLogger(__name__)

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def running(self) -> bool:
        return self._timer.running

    def start(self, handle: ChannelHandle) -> None:
        # Started once the channel acknowledged the subscription.
        self._handle = handle
        self._connected = True
        self._timer.start(self._interval, self.check)

    def stop(self) -> None:
        self._timer.stop()
        self._handle = None

    def check(self) -> bool:
        """Sample the channel state now and return whether it is connected."""
        connected = self._handle is not None and self._handle.state == JOINED
        if connected != self._connected:
            self._connected = connected
            self._logger.info(
                'Channel %s', 'connected' if connected else 'disconnected'
            )
            self._on_change(connected)
        return connected
