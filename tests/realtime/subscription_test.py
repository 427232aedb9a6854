# SPDX-License-Identifier: BSD-3-Clause
# Copyright (c) 2025 Scipp contributors (https://github.com/scipp)
import pytest

from medilive.config.models import SubscriptionSettings, ThrottleSettings
from medilive.core.events import ChangeEvent
from medilive.core.throttle import DeviceClass, Environment, NetworkClass
from medilive.fakes import FakeAnalyticsBackend, FakeScheduler
from medilive.realtime.subscription import SubscriptionManager, SubscriptionState
from medilive.realtime.visibility import VisibilityGate

DESKTOP = Environment()
MOBILE = Environment(device=DeviceClass.MOBILE)
SLOW_MOBILE = Environment(device=DeviceClass.MOBILE, network=NetworkClass.SLOW)


class Harness:
    def __init__(
        self,
        backend: FakeAnalyticsBackend,
        scheduler: FakeScheduler,
        environment: Environment = DESKTOP,
    ) -> None:
        self.backend = backend
        self.scheduler = scheduler
        self.gate = VisibilityGate()
        self.flushes: list[list[ChangeEvent]] = []
        self.connection: list[bool] = []
        self.manager = SubscriptionManager(
            backend=backend,
            settings=SubscriptionSettings(),
            throttle=ThrottleSettings(),
            environment=environment,
            gate=self.gate,
            scheduler=scheduler,
            on_flush=self.flushes.append,
            on_connection_change=self.connection.append,
        )

    def emit_session(self, i: int) -> int:
        return self.backend.emit('performance_sessions', 'INSERT', {'id': f's{i}'})

    def flushed_ids(self) -> list[list[str]]:
        return [[e.payload['id'] for e in batch] for batch in self.flushes]


@pytest.fixture
def harness(backend, scheduler) -> Harness:
    return Harness(backend, scheduler)


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_open_creates_single_channel(self, harness):
        assert await harness.manager.open()
        assert await harness.manager.open()

        assert len(harness.backend.channels) == 1
        assert harness.manager.state is SubscriptionState.OPEN
        assert harness.connection == [True]
        channel = harness.backend.channels[0]
        assert channel.name == 'analytics-master'
        assert len(channel.bindings) == 3

    @pytest.mark.asyncio
    async def test_close_releases_channel_exactly_once(self, harness):
        await harness.manager.open()

        await harness.manager.close()
        await harness.manager.close()

        assert harness.backend.unsubscribe_calls == 1
        assert harness.backend.open_channels == []
        assert harness.manager.state is SubscriptionState.CLOSED
        assert harness.scheduler.pending == 0

    @pytest.mark.asyncio
    async def test_open_failure_reports_disconnect_without_raising(
        self, harness, caplog
    ):
        harness.backend.should_fail_subscribe = True

        assert not await harness.manager.open()

        assert harness.manager.state is SubscriptionState.CLOSED
        assert harness.connection == [False]
        assert 'analytics-master' in harness.manager.last_error
        assert 'continuing without realtime updates' in caplog.text

    @pytest.mark.asyncio
    async def test_cannot_reopen_after_close(self, harness):
        await harness.manager.close()
        with pytest.raises(RuntimeError):
            await harness.manager.open()

    @pytest.mark.asyncio
    async def test_close_while_opening_releases_late_channel(self, harness):
        class SlowBackend(FakeAnalyticsBackend):
            async def subscribe(self, channel_name, bindings, on_event):
                await manager.close()
                return await super().subscribe(channel_name, bindings, on_event)

        backend = SlowBackend()
        manager = Harness(backend, harness.scheduler).manager

        assert not await manager.open()

        assert backend.open_channels == []
        assert backend.unsubscribe_calls == 1

    @pytest.mark.asyncio
    async def test_async_context_manager(self, harness):
        async with harness.manager as manager:
            assert manager.state is SubscriptionState.OPEN
        assert harness.backend.open_channels == []


class TestBuffering:
    @pytest.mark.asyncio
    async def test_burst_is_flushed_once_after_quiet_interval(self, harness):
        await harness.manager.open()

        for i in range(4):
            harness.emit_session(i)
            harness.scheduler.advance(1.0)
        assert harness.flushes == []
        harness.scheduler.advance(2.0)

        assert harness.flushed_ids() == [['s0', 's1', 's2', 's3']]
        assert harness.manager.pending_events == 0

    @pytest.mark.asyncio
    async def test_events_outside_bindings_are_not_delivered(self, harness):
        await harness.manager.open()

        assert harness.backend.emit('performance_sessions', 'UPDATE', {'id': 's'}) == 0
        assert harness.backend.emit('medical_news', 'INSERT', {'id': 'n'}) == 0
        assert harness.backend.emit('news_user_interactions', 'DELETE', {'id': 'e'})

        assert harness.manager.pending_events == 0
        assert not harness.manager.flush_pending

    @pytest.mark.asyncio
    async def test_slow_mobile_backpressure(self, backend, scheduler):
        harness = Harness(backend, scheduler, SLOW_MOBILE)
        await harness.manager.open()
        assert harness.manager.flush_interval == 20.0

        for i in range(6):
            harness.emit_session(i)
        assert harness.manager.pending_events == 3
        scheduler.advance(20.0)

        assert harness.flushed_ids() == [['s3', 's4', 's5']]

    @pytest.mark.asyncio
    async def test_events_are_dropped_while_hidden(self, harness):
        await harness.manager.open()
        harness.gate.set_visible(False)

        harness.emit_session(1)
        harness.scheduler.advance(10.0)

        assert harness.manager.pending_events == 0
        assert harness.flushes == []

    @pytest.mark.asyncio
    async def test_close_applies_buffered_events(self, harness):
        await harness.manager.open()
        harness.emit_session(1)

        await harness.manager.close()

        assert harness.flushed_ids() == [['s1']]
        harness.emit_session(2)
        assert harness.scheduler.pending == 0


class TestVisibility:
    @pytest.mark.asyncio
    async def test_mobile_discards_buffer_when_hidden(self, backend, scheduler):
        harness = Harness(backend, scheduler, MOBILE)
        await harness.manager.open()
        harness.emit_session(1)
        harness.emit_session(2)

        harness.gate.set_visible(False)

        assert harness.manager.pending_events == 0
        assert not harness.manager.flush_pending
        harness.gate.set_visible(True)
        scheduler.advance(30.0)
        assert harness.flushes == []

    @pytest.mark.asyncio
    async def test_desktop_retains_buffer_and_flushes_on_resume(self, harness):
        await harness.manager.open()
        harness.emit_session(1)

        harness.gate.set_visible(False)
        assert harness.manager.pending_events == 1
        assert not harness.manager.flush_pending
        harness.scheduler.advance(10.0)
        assert harness.flushes == []

        harness.gate.set_visible(True)
        assert harness.flushed_ids() == [['s1']]


class TestHealth:
    @pytest.mark.asyncio
    async def test_channel_error_is_reported_by_health_check(self, harness):
        await harness.manager.open()

        harness.backend.channels[0].state = 'errored'
        harness.scheduler.advance(10.0)

        assert harness.connection == [True, False]
        assert not harness.manager.health.connected
