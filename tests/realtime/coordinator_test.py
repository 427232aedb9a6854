# SPDX-License-Identifier: BSD-3-Clause
# Copyright (c) 2025 Scipp contributors (https://github.com/scipp)
import asyncio

import pytest

from medilive.config.models import AnalyticsConfig, CollectionLimits
from medilive.core.throttle import DeviceClass, Environment, NetworkClass
from medilive.fakes import FakeAnalyticsBackend
from medilive.realtime.coordinator import (
    AnalyticsState,
    RealtimeAnalytics,
    engagement_analytics,
    system_health_monitoring,
    user_behavior_analytics,
)

SLOW_MOBILE = Environment(device=DeviceClass.MOBILE, network=NetworkClass.SLOW)


def interaction(i: int, news: str = 'n1', **extra) -> dict:
    return {
        'id': f'e{i}',
        'created_at': f'2025-01-{i:02d}T00:00:00',
        'specialty': 'cardiology',
        'medical_news': {'id': news, 'title': 'Original'},
        **extra,
    }


@pytest.fixture
def backend() -> FakeAnalyticsBackend:
    return FakeAnalyticsBackend(
        {
            'news_user_interactions': [interaction(1), interaction(2, news='n2')],
            'performance_sessions': [{'id': 's1', 'timestamp': '2025-01-01'}],
            'performance_analytics': [{'id': 'h1', 'date': '2025-01-01'}],
        }
    )


@pytest.fixture
def analytics(backend, scheduler, config) -> RealtimeAnalytics:
    return RealtimeAnalytics(backend, config, scheduler=scheduler)


def ids(records) -> list[str]:
    return [record['id'] for record in records]


class TestStartup:
    def test_initial_state_is_loading(self, analytics):
        state = analytics.state
        assert state.loading
        assert state.engagement == ()
        assert not state.connected
        assert state.subscription_count == 0

    @pytest.mark.asyncio
    async def test_start_fetches_then_subscribes(self, analytics, backend):
        states: list[AnalyticsState] = []
        analytics.register_subscriber(states.append)

        await analytics.start()

        assert ids(analytics.state.engagement) == ['e2', 'e1']
        assert ids(analytics.state.behavior) == ['s1']
        assert ids(analytics.state.health) == ['h1']
        assert not analytics.loading
        assert analytics.error is None
        assert analytics.is_realtime
        assert analytics.subscription_count == 1
        assert len(backend.channels) == 1
        # First notification carries the fetched data, second the connection.
        assert [(s.loading, s.connected) for s in states] == [
            (False, False),
            (False, True),
        ]
        await analytics.close()

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, analytics, backend):
        await analytics.start()
        await analytics.start()
        assert len(backend.query_calls) == 3
        assert len(backend.channels) == 1
        await analytics.close()

    @pytest.mark.asyncio
    async def test_subscription_failure_falls_back_to_fetched_data(
        self, analytics, backend
    ):
        backend.should_fail_subscribe = True

        await analytics.start()

        assert ids(analytics.state.engagement) == ['e2', 'e1']
        assert not analytics.connected
        assert not analytics.is_realtime
        assert analytics.subscription_count == 0
        await analytics.close()

    @pytest.mark.asyncio
    async def test_refresh_retries_failed_subscription(self, analytics, backend):
        backend.should_fail_subscribe = True
        await analytics.start()
        backend.should_fail_subscribe = False

        assert await analytics.refresh()

        assert len(backend.channels) == 1
        assert analytics.connected
        assert analytics.is_realtime
        assert analytics.subscription_count == 1
        await analytics.refresh()
        assert len(backend.channels) == 1
        await analytics.close()
        assert backend.open_channels == []

    @pytest.mark.asyncio
    async def test_refresh_keeps_polling_if_retry_fails(self, analytics, backend):
        backend.should_fail_subscribe = True
        await analytics.start()

        assert await analytics.refresh()

        assert backend.channels == []
        assert not analytics.connected
        assert analytics.error is None
        await analytics.close()


class TestChangeFeed:
    @pytest.mark.asyncio
    async def test_events_are_merged_after_throttle_interval(
        self, analytics, backend, scheduler
    ):
        await analytics.start()

        backend.emit('news_user_interactions', 'INSERT', interaction(3))
        backend.emit(
            'performance_sessions', 'INSERT', {'id': 's2', 'timestamp': '2025-01-02'}
        )
        scheduler.advance(2.0)
        assert ids(analytics.state.engagement) == ['e2', 'e1']
        scheduler.advance(1.0)

        assert ids(analytics.state.engagement) == ['e3', 'e2', 'e1']
        assert ids(analytics.state.behavior) == ['s2', 's1']
        await analytics.close()

    @pytest.mark.asyncio
    async def test_update_and_news_update(self, analytics, backend, scheduler):
        await analytics.start()

        backend.emit('news_user_interactions', 'UPDATE', interaction(1, likes=5))
        backend.emit('medical_news', 'UPDATE', {'id': 'n2', 'title': 'Revised'})
        backend.emit('news_user_interactions', 'UPDATE', interaction(99))
        scheduler.advance(3.0)

        engagement = analytics.state.engagement
        assert ids(engagement) == ['e2', 'e1']
        assert engagement[0]['medical_news'] == {'id': 'n2', 'title': 'Revised'}
        assert engagement[1]['likes'] == 5
        assert engagement[1]['medical_news']['title'] == 'Original'
        await analytics.close()

    @pytest.mark.asyncio
    async def test_engagement_is_capped(self, backend, scheduler):
        config = AnalyticsConfig(limits=CollectionLimits(engagement=3))
        analytics = RealtimeAnalytics(backend, config, scheduler=scheduler)
        await analytics.start()

        for i in range(3, 6):
            backend.emit('news_user_interactions', 'INSERT', interaction(i))
        scheduler.advance(3.0)

        assert ids(analytics.state.engagement) == ['e5', 'e4', 'e3']
        await analytics.close()

    @pytest.mark.asyncio
    async def test_last_updated_advances_on_flush(self, analytics, backend, scheduler):
        await analytics.start()
        before = analytics.state.last_updated

        backend.emit('performance_sessions', 'INSERT', {'id': 's2'})
        scheduler.advance(3.0)

        assert analytics.state.last_updated >= before
        await analytics.close()

    @pytest.mark.asyncio
    async def test_channel_loss_is_reported(self, analytics, backend, scheduler):
        await analytics.start()

        backend.channels[0].state = 'errored'
        scheduler.advance(10.0)

        assert not analytics.connected
        assert not analytics.is_realtime
        await analytics.close()


class TestFetching:
    @pytest.mark.asyncio
    async def test_failed_refresh_keeps_snapshot(self, analytics, backend):
        await analytics.start()
        snapshot = analytics.snapshot
        backend.failing_tables.add('news_user_interactions')

        assert not await analytics.refresh()

        assert analytics.snapshot is snapshot
        assert 'news_user_interactions' in analytics.error
        assert not analytics.loading
        assert analytics.connected
        await analytics.close()

    @pytest.mark.asyncio
    async def test_successful_refresh_clears_error(self, analytics, backend):
        await analytics.start()
        backend.failing_tables.add('news_user_interactions')
        await analytics.refresh()
        backend.failing_tables.clear()

        assert await analytics.refresh()

        assert analytics.error is None
        await analytics.close()

    @pytest.mark.asyncio
    async def test_refresh_notifies_loading(self, analytics):
        await analytics.start()
        states: list[AnalyticsState] = []
        analytics.register_subscriber(states.append)

        await analytics.refresh()

        assert [s.loading for s in states] == [True, False]
        await analytics.close()

    @pytest.mark.asyncio
    async def test_set_filter_refetches_with_filter(self, analytics, backend):
        await analytics.start()

        await analytics.set_filter('obgyn')

        assert analytics.config.filter == 'obgyn'
        assert backend.query_calls[-3]['filters'] == {'specialty': 'obgyn'}
        assert analytics.state.engagement == ()
        await analytics.close()

    @pytest.mark.asyncio
    async def test_superseded_fetch_is_discarded(self, scheduler, config):
        class BlockingBackend(FakeAnalyticsBackend):
            def __init__(self) -> None:
                super().__init__({'news_user_interactions': [interaction(1)]})
                self.release = asyncio.Event()
                self.block_next = False

            async def query(self, table, **kwargs):
                if self.block_next and table == 'news_user_interactions':
                    self.block_next = False
                    await self.release.wait()
                return await super().query(table, **kwargs)

        backend = BlockingBackend()
        analytics = RealtimeAnalytics(backend, config, scheduler=scheduler)
        await analytics.start()

        backend.block_next = True
        slow = asyncio.create_task(analytics.refresh())
        await asyncio.sleep(0)
        assert await analytics.refresh()
        latest = analytics.snapshot
        backend.release.set()

        assert not await slow
        assert analytics.snapshot is latest
        await analytics.close()

    @pytest.mark.asyncio
    async def test_polling(self, backend, scheduler):
        analytics = engagement_analytics(backend, scheduler=scheduler)
        await analytics.start()
        assert analytics.polling

        scheduler.advance(59.0)
        await analytics.settle()
        assert len(backend.query_calls) == 3
        scheduler.advance(1.0)
        await analytics.settle()

        assert len(backend.query_calls) == 6
        await analytics.close()

    @pytest.mark.asyncio
    async def test_polling_only_connection_follows_fetch(self, backend, scheduler):
        analytics = system_health_monitoring(backend, scheduler=scheduler)
        await analytics.start()
        assert analytics.connected
        assert not analytics.is_realtime
        assert analytics.subscription is None
        assert backend.channels == []

        backend.failing_tables.add('news_user_interactions')
        scheduler.advance(30.0)
        await analytics.settle()

        assert not analytics.connected
        assert analytics.error is not None
        await analytics.close()


class TestVisibility:
    @pytest.mark.asyncio
    async def test_resume_refetches_after_settle_delay(
        self, analytics, backend, scheduler
    ):
        await analytics.start()

        analytics.set_visible(False)
        analytics.set_visible(True)
        scheduler.advance(0.4)
        await analytics.settle()
        assert len(backend.query_calls) == 3
        scheduler.advance(0.2)
        await analytics.settle()

        assert len(backend.query_calls) == 6
        await analytics.close()

    @pytest.mark.asyncio
    async def test_slow_mobile_settle_delay(self, backend, scheduler, config):
        analytics = RealtimeAnalytics(
            backend, config, environment=SLOW_MOBILE, scheduler=scheduler
        )
        await analytics.start()

        analytics.set_visible(False)
        analytics.set_visible(True)
        scheduler.advance(1.9)
        await analytics.settle()
        assert len(backend.query_calls) == 3
        scheduler.advance(0.5)
        await analytics.settle()

        assert len(backend.query_calls) == 6
        await analytics.close()

    @pytest.mark.asyncio
    async def test_hiding_again_cancels_refetch(self, analytics, backend, scheduler):
        await analytics.start()

        analytics.set_visible(False)
        analytics.set_visible(True)
        analytics.set_visible(False)
        scheduler.advance(5.0)
        await analytics.settle()

        assert len(backend.query_calls) == 3
        await analytics.close()

    @pytest.mark.asyncio
    async def test_resume_does_not_double_count(self, analytics, backend, scheduler):
        await analytics.start()
        record = interaction(3)
        backend.tables['news_user_interactions'].append(record)
        backend.emit('news_user_interactions', 'INSERT', record)

        analytics.set_visible(False)
        analytics.set_visible(True)
        assert ids(analytics.state.engagement) == ['e3', 'e2', 'e1']
        scheduler.advance(0.5)
        await analytics.settle()

        assert ids(analytics.state.engagement) == ['e3', 'e2', 'e1']
        await analytics.close()

    @pytest.mark.asyncio
    async def test_initially_hidden_drops_events(self, backend, scheduler, config):
        analytics = RealtimeAnalytics(
            backend, config, scheduler=scheduler, visible=False
        )
        await analytics.start()

        backend.emit('news_user_interactions', 'INSERT', interaction(3))
        scheduler.advance(10.0)

        assert ids(analytics.state.engagement) == ['e2', 'e1']
        await analytics.close()

    @pytest.mark.asyncio
    async def test_resume_without_subscription_does_not_refetch(
        self, backend, scheduler
    ):
        analytics = system_health_monitoring(backend, scheduler=scheduler)
        await analytics.start()

        analytics.set_visible(False)
        analytics.set_visible(True)
        scheduler.advance(5.0)
        await analytics.settle()

        assert len(backend.query_calls) == 3
        await analytics.close()

    @pytest.mark.asyncio
    async def test_resume_after_failed_subscription_does_not_refetch(
        self, analytics, backend, scheduler
    ):
        backend.should_fail_subscribe = True
        await analytics.start()

        analytics.set_visible(False)
        analytics.set_visible(True)
        scheduler.advance(5.0)
        await analytics.settle()

        assert len(backend.query_calls) == 3
        await analytics.close()


class TestTeardown:
    @pytest.mark.asyncio
    async def test_close_stops_all_timers_and_releases_channel(
        self, backend, scheduler
    ):
        analytics = engagement_analytics(backend, scheduler=scheduler)
        await analytics.start()
        backend.emit('news_user_interactions', 'INSERT', interaction(3))
        analytics.set_visible(False)
        analytics.set_visible(True)

        await analytics.close()
        await analytics.close()

        assert scheduler.pending == 0
        assert not analytics.polling
        assert backend.open_channels == []
        assert backend.unsubscribe_calls == 1

    @pytest.mark.asyncio
    async def test_cannot_start_after_close(self, analytics):
        await analytics.close()
        with pytest.raises(RuntimeError):
            await analytics.start()

    @pytest.mark.asyncio
    async def test_async_context_manager(self, analytics, backend):
        async with analytics as running:
            assert running.is_realtime
        assert backend.open_channels == []

    @pytest.mark.asyncio
    async def test_failing_subscriber_does_not_stop_others(self, analytics, caplog):
        def broken(state: AnalyticsState) -> None:
            raise ValueError('boom')

        states: list[AnalyticsState] = []
        analytics.register_subscriber(broken)
        analytics.register_subscriber(states.append)

        await analytics.start()

        assert len(states) == 2
        assert 'Error in analytics subscriber callback.' in caplog.text
        analytics.unregister_subscriber(broken)
        await analytics.close()


class TestPresets:
    def test_engagement_preset(self, backend, scheduler):
        analytics = engagement_analytics(backend, 'cardiology', scheduler=scheduler)
        assert analytics.config.filter == 'cardiology'
        assert analytics.config.refresh_interval_s == 60.0

    def test_user_behavior_preset(self, backend, scheduler):
        analytics = user_behavior_analytics(backend, scheduler=scheduler)
        assert analytics.config.refresh_interval_s == 120.0
        assert analytics.config.subscription.enabled

    def test_system_health_preset(self, backend, scheduler):
        analytics = system_health_monitoring(backend, scheduler=scheduler)
        assert analytics.config.refresh_interval_s == 30.0
        assert not analytics.config.subscription.enabled
