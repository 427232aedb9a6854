# SPDX-License-Identifier: BSD-3-Clause
# Copyright (c) 2025 Scipp contributors (https://github.com/scipp)
"""
Run a realtime analytics coordinator against synthetic data and log its updates.

Example::

    python -m medilive.services.analytics_monitor --preset engagement --device mobile
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import random
import uuid
from datetime import UTC, datetime
from typing import NoReturn

from medilive.config import available_presets, preset_config
from medilive.core.events import Operation, Record, Topic
from medilive.core.logging import get_logger, initialize_file_handler
from medilive.core.service import ServiceBase, get_env_defaults
from medilive.core.throttle import DeviceClass, Environment, NetworkClass
from medilive.core.timers import AsyncioScheduler, RepeatingTimer, Scheduler
from medilive.fakes import FakeAnalyticsBackend
from medilive.realtime import AnalyticsState, RealtimeAnalytics

SPECIALTIES = ('cardiology', 'obgyn', 'neurology', 'oncology')
ACTIONS = ('view', 'like', 'share', 'bookmark')


def _timestamp() -> str:
    return datetime.now(tz=UTC).isoformat()


class SyntheticChangeFeed:
    """Emits random inserts and updates into a :py:class:`FakeAnalyticsBackend`."""

    def __init__(
        self,
        backend: FakeAnalyticsBackend,
        *,
        scheduler: Scheduler,
        interval: float,
        seed: int | None = None,
    ) -> None:
        self._backend = backend
        self._timer = RepeatingTimer(scheduler)
        self._interval = interval
        self._rng = random.Random(seed)
        self._news = [
            {'id': f'news-{i}', 'title': f'Article {i}', 'engagement_score': 0}
            for i in range(5)
        ]
        self._interactions: list[str] = []

    def seed_tables(self, count: int = 20) -> None:
        self._backend.tables['news_user_interactions'] = [
            self._make_interaction() for _ in range(count)
        ]
        self._backend.tables['performance_sessions'] = [
            self._make_session() for _ in range(count)
        ]
        self._backend.tables['performance_analytics'] = [
            {'id': str(uuid.uuid4()), 'date': _timestamp(), 'error_rate': 0.01}
        ]

    def start(self) -> None:
        self._timer.start(self._interval, self.emit_one)

    def stop(self) -> None:
        self._timer.stop()

    def emit_one(self) -> None:
        topic = self._rng.choice(list(Topic))
        update = bool(self._interactions) and self._rng.random() < 0.3
        if topic is Topic.ENGAGEMENT and update:
            record: Record = {
                'id': self._rng.choice(self._interactions),
                'action': self._rng.choice(ACTIONS),
                'updated_at': _timestamp(),
            }
            operation = Operation.UPDATE
        elif topic is Topic.ENGAGEMENT:
            record = self._make_interaction()
            operation = Operation.INSERT
        elif topic is Topic.SESSION:
            record = self._make_session()
            operation = Operation.INSERT
        else:
            news = dict(self._rng.choice(self._news))
            news['engagement_score'] = self._rng.randint(0, 100)
            record = news
            operation = Operation.UPDATE
        self._backend.emit(topic.value, operation.value, record)

    def _make_interaction(self) -> Record:
        interaction_id = str(uuid.uuid4())
        self._interactions.append(interaction_id)
        return {
            'id': interaction_id,
            'action': self._rng.choice(ACTIONS),
            'specialty': self._rng.choice(SPECIALTIES),
            'created_at': _timestamp(),
            'medical_news': self._rng.choice(self._news),
        }

    def _make_session(self) -> Record:
        return {
            'id': str(uuid.uuid4()),
            'timestamp': _timestamp(),
            'page_views': self._rng.randint(1, 20),
        }


class AnalyticsMonitorService(ServiceBase):
    def __init__(
        self,
        *,
        analytics: RealtimeAnalytics,
        feed: SyntheticChangeFeed,
        duration: float | None = None,
        log_level: int = logging.INFO,
    ) -> None:
        super().__init__(name='medilive.analytics_monitor', log_level=log_level)
        self._analytics = analytics
        self._feed = feed
        self._duration = duration
        self._analytics.register_subscriber(self._log_state)

    def _log_state(self, state: AnalyticsState) -> None:
        self._logger.info(
            'engagement=%d behavior=%d health=%d connected=%s error=%s',
            len(state.engagement),
            len(state.behavior),
            len(state.health),
            state.connected,
            state.error,
        )

    async def _start_impl(self) -> None:
        self._feed.seed_tables()
        await self._analytics.start()
        self._feed.start()
        if self._duration is not None:
            asyncio.get_running_loop().call_later(self._duration, self.stop)

    async def _stop_impl(self) -> None:
        self._feed.stop()
        await self._analytics.close()


def setup_arg_parser() -> argparse.ArgumentParser:
    parser = ServiceBase.setup_arg_parser(
        description='Realtime analytics monitor with synthetic data'
    )
    parser.add_argument(
        '--preset',
        choices=available_presets(),
        default='engagement',
        help='Analytics consumer preset',
    )
    parser.add_argument(
        '--device',
        choices=[device.value for device in DeviceClass],
        default=DeviceClass.DESKTOP.value,
        help='Device class of the simulated client',
    )
    parser.add_argument(
        '--network',
        choices=[network.value for network in NetworkClass],
        default=NetworkClass.NORMAL.value,
        help='Network class of the simulated client',
    )
    parser.add_argument(
        '--specialty', default=None, help='Only load engagement for this specialty'
    )
    parser.add_argument(
        '--event-interval',
        type=float,
        default=0.5,
        help='Seconds between synthetic change events',
    )
    parser.add_argument(
        '--duration',
        type=float,
        default=None,
        help='Stop after this many seconds, run until interrupted if not set',
    )
    return parser


def main() -> NoReturn:
    parser = setup_arg_parser()
    parser.set_defaults(**get_env_defaults(parser=parser))
    args = parser.parse_args()

    log_level = getattr(logging, args.log_level)
    if args.log_dir is not None:
        initialize_file_handler(args.log_dir, logger=get_logger())

    backend = FakeAnalyticsBackend()
    scheduler = AsyncioScheduler()
    analytics = RealtimeAnalytics(
        backend,
        preset_config(args.preset, filter=args.specialty),
        environment=Environment(
            device=DeviceClass(args.device), network=NetworkClass(args.network)
        ),
        scheduler=scheduler,
    )
    feed = SyntheticChangeFeed(
        backend, scheduler=scheduler, interval=args.event_interval
    )
    service = AnalyticsMonitorService(
        analytics=analytics, feed=feed, duration=args.duration, log_level=log_level
    )
    service.run()
    raise SystemExit(0)


if __name__ == "__main__":
    main()
