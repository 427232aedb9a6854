# SPDX-License-Identifier: BSD-3-Clause
# Copyright (c) 2025 Scipp contributors (https://github.com/scipp)

from .buffer import EventBuffer
from .events import ChangeEvent, Operation, Record, Topic
from .merger import merge
from .snapshot import Snapshot
from .throttle import (
    DeviceClass,
    Environment,
    NetworkClass,
    ThrottleController,
    flush_interval,
    settle_delay,
)
from .timers import AsyncioScheduler, RepeatingTimer, Scheduler, SingleShotTimer

__all__ = [
    'AsyncioScheduler',
    'ChangeEvent',
    'DeviceClass',
    'Environment',
    'EventBuffer',
    'NetworkClass',
    'Operation',
    'Record',
    'RepeatingTimer',
    'Scheduler',
    'SingleShotTimer',
    'Snapshot',
    'ThrottleController',
    'Topic',
    'flush_interval',
    'merge',
    'settle_delay',
]
