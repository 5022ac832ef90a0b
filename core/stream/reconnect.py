"""Reconnection scheduling for the event stream.

One scheduler owns the single outstanding reconnect timer. Both manual
reconnects and the silence watchdog go through ``schedule_reconnect``: a new
call cancels the pending timer instead of adding a second one, so a watchdog
re-armed on every event only fires after a full window of silence.

State machine::

    IDLE ──schedule──▶ WAITING ──timer──▶ ATTEMPTING ──ok──▶ CONNECTED
                          ▲                   │
                          └──── retry delay ──┘ (failure)

While CONNECTED the watchdog timer is armed but the state does not change
until the timer actually fires.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

logger = logging.getLogger(__name__)

DEFAULT_RETRY_DELAY = 3.0


class ReconnectOrigin(str, Enum):
    """Why we are reconnecting; shown to the user while disconnected."""

    UNKNOWN = "unknown"
    REBOOT = "reboot"
    SHUTDOWN = "shutdown"
    UPGRADE_SYSTEM = "upgrade_system"


class ReconnectState(str, Enum):
    IDLE = "idle"
    WAITING = "waiting"
    ATTEMPTING = "attempting"
    CONNECTED = "connected"


@dataclass(frozen=True)
class ReconnectionArgs:
    origin: ReconnectOrigin
    initial_delay: float | None = None
    delay: float | None = None


class Connectable(Protocol):
    async def open(self) -> None: ...

    async def close(self) -> None: ...


SchedulerListener = Callable[[ReconnectState, "ReconnectionArgs | None"], None]


class ReconnectionScheduler:
    """Single-timer reconnect loop with a fixed retry delay and no give-up state."""

    def __init__(self, connection: Connectable, retry_delay: float = DEFAULT_RETRY_DELAY):
        self._connection = connection
        self._retry_delay = retry_delay
        self._state = ReconnectState.IDLE
        self._timer: asyncio.TimerHandle | None = None
        self._attempt_task: asyncio.Task | None = None
        self._args: ReconnectionArgs | None = None
        self._descriptor: ReconnectionArgs | None = None
        self._reconnected: asyncio.Future | None = None
        self._listeners: list[SchedulerListener] = []

    # ========== State ==========

    @property
    def state(self) -> ReconnectState:
        return self._state

    @property
    def descriptor(self) -> ReconnectionArgs | None:
        """Reconnection in progress, as first recorded by an attempt."""
        return self._descriptor

    @property
    def has_pending_timer(self) -> bool:
        return self._timer is not None

    @property
    def attempt_in_flight(self) -> bool:
        return self._attempt_task is not None and not self._attempt_task.done()

    def on_change(self, listener: SchedulerListener) -> None:
        self._listeners.append(listener)

    def mark_connected(self) -> None:
        """Record a connection opened outside the reconnect loop (initial start)."""
        self._descriptor = None
        self._set_state(ReconnectState.CONNECTED)
        self._resolve_waiters()

    # ========== Scheduling ==========

    def schedule_reconnect(
        self,
        origin: ReconnectOrigin = ReconnectOrigin.UNKNOWN,
        initial_delay: float | None = None,
        delay: float | None = None,
    ) -> asyncio.Future:
        """Schedule a reconnection; the returned future resolves once connected.

        Any previously scheduled timer is cancelled. Without ``initial_delay``
        the attempt starts immediately.
        """
        loop = asyncio.get_running_loop()
        self._cancel_timer()
        self._args = ReconnectionArgs(origin=origin, initial_delay=initial_delay, delay=delay)

        if self._reconnected is None or self._reconnected.done():
            self._reconnected = loop.create_future()
        waiter = self._reconnected

        if initial_delay:
            self._timer = loop.call_later(initial_delay, self._fire)
            if self._state == ReconnectState.IDLE:
                self._set_state(ReconnectState.WAITING)
        else:
            self._fire()
        return waiter

    def _fire(self) -> None:
        self._timer = None
        if self.attempt_in_flight:
            logger.debug("Reconnect attempt already in flight, not starting another")
            return
        args = self._args or ReconnectionArgs(origin=ReconnectOrigin.UNKNOWN)
        self._attempt_task = asyncio.get_running_loop().create_task(self._attempt(args))

    async def _attempt(self, args: ReconnectionArgs) -> None:
        # The first attempting caller's origin stays visible until success
        if self._descriptor is None:
            self._descriptor = args

        await self._connection.close()
        self._set_state(ReconnectState.ATTEMPTING)
        logger.info("Reconnecting to event stream (%s)", self._descriptor.origin.value)

        try:
            await self._connection.open()
        except ConnectionError as exc:
            self._retry_later(args, exc)
            return
        except Exception as exc:
            logger.exception("Unexpected error while reconnecting")
            self._retry_later(args, exc)
            return

        logger.info("Event stream reconnected")
        self._descriptor = None
        self._set_state(ReconnectState.CONNECTED)
        self._resolve_waiters()

    def _retry_later(self, args: ReconnectionArgs, exc: BaseException) -> None:
        # A schedule made during the attempt may carry a newer delay
        latest = self._args or args
        delay = latest.delay or self._retry_delay
        logger.warning("Reconnect failed: %s; retrying in %.1fs", exc, delay)
        self._cancel_timer()
        self._timer = asyncio.get_running_loop().call_later(delay, self._fire)
        self._set_state(ReconnectState.WAITING)

    # ========== Teardown ==========

    async def dispose(self) -> None:
        self._cancel_timer()
        task = self._attempt_task
        self._attempt_task = None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        if self._reconnected is not None and not self._reconnected.done():
            self._reconnected.cancel()
        self._reconnected = None
        self._descriptor = None
        self._set_state(ReconnectState.IDLE)

    # ========== Internals ==========

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _resolve_waiters(self) -> None:
        if self._reconnected is not None and not self._reconnected.done():
            self._reconnected.set_result(None)

    def _set_state(self, state: ReconnectState) -> None:
        self._state = state
        for listener in self._listeners:
            try:
                listener(state, self._descriptor)
            except Exception:
                logger.exception("Reconnect listener failed")
