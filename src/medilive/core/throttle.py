# SPDX-License-Identifier: BSD-3-Clause
# Copyright (c) 2025 Scipp contributors (https://github.com/scipp)
"""
Device and network aware flush policy for buffered change events.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from ..config.models import ThrottleSettings, VisibilitySettings
from .buffer import EventBuffer
from .timers import Scheduler, SingleShotTimer

MOBILE_MAX_VIEWPORT_WIDTH = 768
_MOBILE_USER_AGENT = re.compile(
    r'Android|iPhone|iPad|iPod|BlackBerry|IEMobile|Opera Mini', re.IGNORECASE
)
_SLOW_CONNECTION_TYPES = frozenset({'slow-2g', '2g', '3g'})


class DeviceClass(Enum):
    DESKTOP = 'desktop'
    MOBILE = 'mobile'


class NetworkClass(Enum):
    NORMAL = 'normal'
    SLOW = 'slow'


@dataclass(frozen=True, slots=True)
class Environment:
    """Capabilities of the client the coordinator runs for."""

    device: DeviceClass = DeviceClass.DESKTOP
    network: NetworkClass = NetworkClass.NORMAL

    @property
    def is_mobile(self) -> bool:
        return self.device is DeviceClass.MOBILE

    @property
    def is_slow_mobile(self) -> bool:
        return self.is_mobile and self.network is NetworkClass.SLOW

    @classmethod
    def from_hints(
        cls,
        *,
        viewport_width: int | None = None,
        user_agent: str = '',
        effective_type: str | None = None,
    ) -> Environment:
        """
        Classify a client from the hints a browser exposes.

        Parameters
        ----------
        viewport_width:
            Width of the viewport in CSS pixels.
        user_agent:
            The user agent string.
        effective_type:
            Effective connection type as reported by the Network Information API,
            e.g., '4g' or 'slow-2g'.
        """
        mobile = (
            viewport_width is not None and viewport_width < MOBILE_MAX_VIEWPORT_WIDTH
        ) or bool(_MOBILE_USER_AGENT.search(user_agent))
        slow = effective_type in _SLOW_CONNECTION_TYPES
        return cls(
            device=DeviceClass.MOBILE if mobile else DeviceClass.DESKTOP,
            network=NetworkClass.SLOW if slow else NetworkClass.NORMAL,
        )


def flush_interval(environment: Environment, settings: ThrottleSettings) -> float:
    """Seconds of quiet after the last event before the buffer is flushed."""
    if not environment.is_mobile:
        return settings.desktop_interval_s
    if environment.network is NetworkClass.SLOW:
        return settings.slow_mobile_interval_s
    return settings.mobile_interval_s


def settle_delay(environment: Environment, settings: VisibilitySettings) -> float:
    """Seconds to wait before re-fetching after the UI became visible again."""
    if environment.is_slow_mobile:
        return settings.slow_mobile_settle_delay_s
    return settings.settle_delay_s


def make_buffer(environment: Environment, settings: ThrottleSettings) -> EventBuffer:
    """Create an event buffer, bounded on slow mobile connections."""
    if environment.is_slow_mobile:
        return EventBuffer(
            overflow_threshold=settings.backpressure_threshold,
            overflow_keep=settings.backpressure_keep,
        )
    return EventBuffer()


class ThrottleController:
    """
    Debounces flushes of the event buffer.

    Every call to :py:meth:`touch` restarts the timer, so the flush callback runs
    once ``interval`` seconds after the last event of a burst.
    """

    def __init__(
        self,
        *,
        scheduler: Scheduler,
        environment: Environment,
        settings: ThrottleSettings,
        on_flush: Callable[[], None],
    ) -> None:
        self._timer = SingleShotTimer(scheduler)
        self._interval = flush_interval(environment, settings)
        self._on_flush = on_flush

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def pending(self) -> bool:
        return self._timer.pending

    def touch(self) -> None:
        self._timer.start(self._interval, self._on_flush)

    def cancel(self) -> None:
        self._timer.cancel()
