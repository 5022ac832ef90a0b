"""Event-stream client service.

Owns the connection, reconnect loop, dispatcher and reconcilers for one
server. Constructed explicitly by the application and driven through
``start()`` / ``dispose()``::

    client = StreamClient(settings, notifier=sink)
    await client.start(retry=True)
    ...
    await client.dispose()
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

import httpx

from config.schema import StreamSettings
from core.ledger import OperationLedger
from core.notifications import LoggingNotificationSink, NotificationSink
from core.stream.connection import ConnectionManager
from core.stream.dispatcher import EventDispatcher
from core.stream.heartbeat import HeartbeatMonitor
from core.stream.reconciler import OperationReconciler
from core.stream.reconnect import (
    ReconnectionArgs,
    ReconnectionScheduler,
    ReconnectOrigin,
    ReconnectState,
)

logger = logging.getLogger(__name__)

ReconnectingListener = Callable[["ReconnectOrigin | None"], None]


class StreamClient:
    """Keeps a local operation ledger in sync with the server event stream."""

    def __init__(
        self,
        settings: StreamSettings | None = None,
        *,
        ledger: OperationLedger | None = None,
        notifier: NotificationSink | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.settings = settings or StreamSettings()
        self.notifier = notifier or LoggingNotificationSink()
        self.ledger = ledger if ledger is not None else OperationLedger(notifier=self.notifier)

        self.reconciler = OperationReconciler(self.ledger)
        self.heartbeat = HeartbeatMonitor(self.ledger, lock_prefix=self.settings.heartbeat.lock_prefix)
        self.dispatcher = EventDispatcher(
            self.reconciler,
            self.heartbeat,
            self.notifier,
            on_activity=self._arm_watchdog,
        )

        conn = self.settings.connection
        self.connection = ConnectionManager(
            conn.url,
            self.dispatcher.dispatch,
            on_lost=self._on_connection_lost,
            headers=conn.headers,
            cookies=conn.cookies,
            verify=conn.verify_tls,
            connect_timeout=conn.connect_timeout,
            client=http_client,
        )
        self.scheduler = ReconnectionScheduler(self.connection, retry_delay=self.settings.reconnect.retry_delay)
        self.scheduler.on_change(self._on_scheduler_change)

        self._reconnecting_listeners: list[ReconnectingListener] = []
        self._last_reconnecting: ReconnectOrigin | None = None
        self._started = False

    # ========== Observable state ==========

    @property
    def connected(self) -> bool:
        return self.connection.connected and self.scheduler.descriptor is None

    @property
    def reconnecting(self) -> ReconnectOrigin | None:
        """Reason shown while disconnected and reconnecting, else None."""
        descriptor = self.scheduler.descriptor
        if descriptor is None or self.connection.connected:
            return None
        return descriptor.origin

    def on_reconnecting_change(self, listener: ReconnectingListener) -> None:
        self._reconnecting_listeners.append(listener)

    # ========== Lifecycle ==========

    async def start(self, retry: bool = False) -> None:
        """Open the stream.

        Without ``retry`` a failed open raises ``StreamConnectionError``.
        With ``retry`` the reconnect loop keeps trying until connected.
        """
        if self._started:
            return
        self._started = True
        if retry:
            await self.scheduler.schedule_reconnect(origin=ReconnectOrigin.UNKNOWN)
            return
        try:
            await self.connection.open()
        except BaseException:
            self._started = False
            raise
        self.scheduler.mark_connected()

    def reconnect(
        self,
        origin: ReconnectOrigin = ReconnectOrigin.UNKNOWN,
        initial_delay: float | None = None,
        delay: float | None = None,
    ) -> asyncio.Future:
        """Reconnect, e.g. after triggering a server reboot. Resolves once connected."""
        self._started = True
        return self.scheduler.schedule_reconnect(origin=origin, initial_delay=initial_delay, delay=delay)

    async def dispose(self) -> None:
        # Stop reacting to stream callbacks before tearing down
        self._started = False
        await self.scheduler.dispose()
        await self.connection.aclose()
        self._last_reconnecting = None
        logger.debug("Stream client disposed")

    async def __aenter__(self) -> StreamClient:
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.dispose()

    # ========== Wiring ==========

    def _arm_watchdog(self) -> None:
        if not self._started:
            return
        # Re-armed on every event: fires only after a full silent window
        self.scheduler.schedule_reconnect(
            origin=ReconnectOrigin.REBOOT,
            initial_delay=self.settings.reconnect.watchdog_timeout,
        )

    def _on_connection_lost(self) -> None:
        if not self._started:
            return
        if self.scheduler.attempt_in_flight:
            # The attempt that opened this stream has not resumed yet
            asyncio.get_running_loop().call_soon(self._on_connection_lost)
            return
        if self.connection.delivered:
            self.scheduler.schedule_reconnect(origin=ReconnectOrigin.UNKNOWN)
            return
        # Closed before sending anything: back off like a failed attempt
        logger.debug("Stream closed without events, retrying in %.1fs", self.settings.reconnect.retry_delay)
        self.scheduler.schedule_reconnect(
            origin=ReconnectOrigin.UNKNOWN,
            initial_delay=self.settings.reconnect.retry_delay,
        )

    def _on_scheduler_change(self, state: ReconnectState, descriptor: ReconnectionArgs | None) -> None:
        current = self.reconnecting
        if current == self._last_reconnecting:
            return
        self._last_reconnecting = current
        if current is not None:
            logger.info("Reconnecting (%s)", current.value)
        for listener in self._reconnecting_listeners:
            try:
                listener(current)
            except Exception:
                logger.exception("Reconnecting listener failed")
