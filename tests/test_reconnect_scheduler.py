"""Tests for ReconnectionScheduler: single timer, watchdog window, retry loop."""

import asyncio

import pytest

from core.stream.connection import StreamConnectionError
from core.stream.reconnect import ReconnectionScheduler, ReconnectOrigin, ReconnectState


class FakeConnection:
    """Connectable that fails a configurable number of times."""

    def __init__(self, failures: int = 0):
        self.failures = failures
        self.open_calls = 0
        self.close_calls = 0
        self.connected = False
        self.gate: asyncio.Event | None = None

    async def open(self) -> None:
        self.open_calls += 1
        if self.gate is not None:
            await self.gate.wait()
        await asyncio.sleep(0)
        if self.failures > 0:
            self.failures -= 1
            raise StreamConnectionError("connection refused")
        self.connected = True

    async def close(self) -> None:
        self.close_calls += 1
        self.connected = False


@pytest.fixture
def conn():
    return FakeConnection()


class TestImmediateReconnect:
    @pytest.mark.asyncio
    async def test_reconnects_and_clears_descriptor(self, conn):
        scheduler = ReconnectionScheduler(conn, retry_delay=0.01)
        await asyncio.wait_for(scheduler.schedule_reconnect(origin=ReconnectOrigin.SHUTDOWN), timeout=1)
        assert conn.open_calls == 1
        assert conn.close_calls == 1
        assert scheduler.state is ReconnectState.CONNECTED
        assert scheduler.descriptor is None
        await scheduler.dispose()

    @pytest.mark.asyncio
    async def test_retries_until_success(self):
        conn = FakeConnection(failures=3)
        scheduler = ReconnectionScheduler(conn, retry_delay=5.0)
        fut = scheduler.schedule_reconnect(origin=ReconnectOrigin.UNKNOWN, delay=0.01)
        await asyncio.wait_for(fut, timeout=1)
        assert conn.open_calls == 4
        assert scheduler.state is ReconnectState.CONNECTED
        await scheduler.dispose()

    @pytest.mark.asyncio
    async def test_waiting_state_between_failed_attempts(self):
        conn = FakeConnection(failures=1)
        scheduler = ReconnectionScheduler(conn, retry_delay=0.2)
        scheduler.schedule_reconnect(origin=ReconnectOrigin.REBOOT)
        await asyncio.sleep(0.05)
        assert scheduler.state is ReconnectState.WAITING
        assert scheduler.has_pending_timer
        assert scheduler.descriptor.origin is ReconnectOrigin.REBOOT
        await scheduler.dispose()


class TestDescriptor:
    @pytest.mark.asyncio
    async def test_first_attempting_origin_is_kept(self):
        conn = FakeConnection(failures=2)
        scheduler = ReconnectionScheduler(conn, retry_delay=0.05)
        fut = scheduler.schedule_reconnect(origin=ReconnectOrigin.UPGRADE_SYSTEM)
        await asyncio.sleep(0.01)
        assert scheduler.descriptor.origin is ReconnectOrigin.UPGRADE_SYSTEM

        scheduler.schedule_reconnect(origin=ReconnectOrigin.REBOOT, initial_delay=0.01)
        await asyncio.sleep(0.03)
        assert scheduler.descriptor.origin is ReconnectOrigin.UPGRADE_SYSTEM

        await asyncio.wait_for(fut, timeout=1)
        assert scheduler.descriptor is None
        await scheduler.dispose()

    @pytest.mark.asyncio
    async def test_cancelled_timer_records_nothing(self, conn):
        scheduler = ReconnectionScheduler(conn)
        scheduler.schedule_reconnect(origin=ReconnectOrigin.REBOOT, initial_delay=10)
        assert scheduler.descriptor is None
        await scheduler.dispose()


class TestSingleTimer:
    @pytest.mark.asyncio
    async def test_new_schedule_cancels_previous_timer(self, conn):
        scheduler = ReconnectionScheduler(conn)
        scheduler.schedule_reconnect(origin=ReconnectOrigin.REBOOT, initial_delay=10)
        first = scheduler._timer
        scheduler.schedule_reconnect(origin=ReconnectOrigin.SHUTDOWN, initial_delay=10)
        assert first.cancelled()
        assert scheduler._timer is not first
        assert not scheduler._timer.cancelled()
        await scheduler.dispose()

    @pytest.mark.asyncio
    async def test_immediate_schedule_replaces_pending_timer(self, conn):
        scheduler = ReconnectionScheduler(conn)
        scheduler.schedule_reconnect(origin=ReconnectOrigin.REBOOT, initial_delay=10)
        fut = scheduler.schedule_reconnect(origin=ReconnectOrigin.SHUTDOWN)
        assert not scheduler.has_pending_timer
        await asyncio.wait_for(fut, timeout=1)
        assert conn.open_calls == 1
        await scheduler.dispose()

    @pytest.mark.asyncio
    async def test_same_future_until_reconnected(self, conn):
        scheduler = ReconnectionScheduler(conn)
        a = scheduler.schedule_reconnect(origin=ReconnectOrigin.REBOOT, initial_delay=10)
        b = scheduler.schedule_reconnect(origin=ReconnectOrigin.REBOOT, initial_delay=10)
        assert a is b
        await scheduler.dispose()


class TestWatchdogWindow:
    @pytest.mark.asyncio
    async def test_events_within_window_defer_reconnect(self, conn):
        scheduler = ReconnectionScheduler(conn, retry_delay=0.01)
        for _ in range(6):
            scheduler.schedule_reconnect(origin=ReconnectOrigin.REBOOT, initial_delay=0.15)
            await asyncio.sleep(0.05)
        assert conn.open_calls == 0

        await asyncio.sleep(0.3)
        assert conn.open_calls == 1
        await scheduler.dispose()

    @pytest.mark.asyncio
    async def test_connected_state_kept_while_watchdog_armed(self, conn):
        scheduler = ReconnectionScheduler(conn)
        scheduler.mark_connected()
        scheduler.schedule_reconnect(origin=ReconnectOrigin.REBOOT, initial_delay=10)
        assert scheduler.state is ReconnectState.CONNECTED
        await scheduler.dispose()


class TestInFlight:
    @pytest.mark.asyncio
    async def test_no_second_attempt_while_one_is_in_flight(self, conn):
        conn.gate = asyncio.Event()
        scheduler = ReconnectionScheduler(conn)
        fut = scheduler.schedule_reconnect(origin=ReconnectOrigin.UNKNOWN)
        await asyncio.sleep(0.01)
        assert scheduler.attempt_in_flight

        scheduler.schedule_reconnect(origin=ReconnectOrigin.UNKNOWN)
        await asyncio.sleep(0.01)
        assert conn.open_calls == 1

        conn.gate.set()
        await asyncio.wait_for(fut, timeout=1)
        assert conn.open_calls == 1
        await scheduler.dispose()

    @pytest.mark.asyncio
    async def test_retry_uses_delay_scheduled_during_attempt(self):
        conn = FakeConnection(failures=1)
        conn.gate = asyncio.Event()
        scheduler = ReconnectionScheduler(conn, retry_delay=10.0)
        fut = scheduler.schedule_reconnect(origin=ReconnectOrigin.UNKNOWN)
        await asyncio.sleep(0.01)
        assert scheduler.attempt_in_flight

        scheduler.schedule_reconnect(origin=ReconnectOrigin.UNKNOWN, delay=0.02)
        conn.gate.set()
        await asyncio.wait_for(fut, timeout=1)
        assert conn.open_calls == 2
        await scheduler.dispose()


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_dispose_cancels_timer(self, conn):
        scheduler = ReconnectionScheduler(conn)
        fut = scheduler.schedule_reconnect(origin=ReconnectOrigin.REBOOT, initial_delay=0.05)
        await scheduler.dispose()
        await asyncio.sleep(0.1)
        assert conn.open_calls == 0
        assert fut.cancelled()
        assert scheduler.state is ReconnectState.IDLE

    @pytest.mark.asyncio
    async def test_dispose_cancels_in_flight_attempt(self, conn):
        conn.gate = asyncio.Event()
        scheduler = ReconnectionScheduler(conn)
        scheduler.schedule_reconnect(origin=ReconnectOrigin.UNKNOWN)
        await asyncio.sleep(0.01)
        await scheduler.dispose()
        assert not scheduler.attempt_in_flight
        assert scheduler.state is ReconnectState.IDLE

    @pytest.mark.asyncio
    async def test_mark_connected_resolves_waiters(self, conn):
        scheduler = ReconnectionScheduler(conn)
        fut = scheduler.schedule_reconnect(origin=ReconnectOrigin.REBOOT, initial_delay=10)
        scheduler.mark_connected()
        assert fut.done()
        await scheduler.dispose()

    @pytest.mark.asyncio
    async def test_listeners_see_transitions(self):
        conn = FakeConnection(failures=1)
        scheduler = ReconnectionScheduler(conn, retry_delay=0.01)
        seen = []
        scheduler.on_change(lambda state, descriptor: seen.append(state))
        await asyncio.wait_for(scheduler.schedule_reconnect(origin=ReconnectOrigin.UNKNOWN), timeout=1)
        assert seen == [
            ReconnectState.ATTEMPTING,
            ReconnectState.WAITING,
            ReconnectState.ATTEMPTING,
            ReconnectState.CONNECTED,
        ]
        await scheduler.dispose()
