"""Persistent SSE connection over httpx."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

import httpx

from core.stream.sse import SSEDecoder, SSEMessage

logger = logging.getLogger(__name__)

_STREAM_HEADERS = {"Accept": "text/event-stream", "Cache-Control": "no-cache"}


class StreamConnectionError(ConnectionError):
    """The event stream could not be opened."""


class ConnectionManager:
    """Opens and closes the event stream; delivers decoded messages.

    ``open()`` returns once the server answered with a 2xx status and raises
    ``StreamConnectionError`` otherwise. A drop after a successful open is
    reported through ``on_lost``; retrying is the caller's job.
    """

    def __init__(
        self,
        url: str,
        on_message: Callable[[str, str], None],
        *,
        on_lost: Callable[[], None] | None = None,
        headers: dict[str, str] | None = None,
        cookies: dict[str, str] | None = None,
        verify: bool = True,
        connect_timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url = url
        self._on_message = on_message
        self._on_lost = on_lost
        self._headers = headers or {}
        self._cookies = cookies or {}
        self._verify = verify
        self._connect_timeout = connect_timeout
        self._client = client
        self._owns_client = client is None
        self._transport = transport
        self._reader: asyncio.Task | None = None
        self._live = False
        self._last_event_id: str | None = None
        self._delivered = 0

    @property
    def connected(self) -> bool:
        return self._live and self._reader is not None and not self._reader.done()

    @property
    def delivered(self) -> int:
        """Messages delivered on the current or most recent stream."""
        return self._delivered

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers=self._headers,
                cookies=self._cookies,
                verify=self._verify,
                # No read timeout: silence is detected by the watchdog
                timeout=httpx.Timeout(self._connect_timeout, read=None),
                transport=self._transport,
            )
        return self._client

    async def open(self) -> None:
        if self.connected:
            return
        await self.close()

        loop = asyncio.get_running_loop()
        ready: asyncio.Future = loop.create_future()
        self._reader = loop.create_task(self._read(ready), name="opstream-sse-reader")
        await ready

    async def close(self) -> None:
        reader = self._reader
        self._reader = None
        self._live = False
        if reader is not None and not reader.done():
            reader.cancel()
            try:
                await reader
            except asyncio.CancelledError:
                pass

    async def aclose(self) -> None:
        """Close the stream and the HTTP client if we created it."""
        await self.close()
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _read(self, ready: asyncio.Future) -> None:
        client = self._ensure_client()
        headers = dict(_STREAM_HEADERS)
        if self._last_event_id:
            headers["Last-Event-ID"] = self._last_event_id

        decoder = SSEDecoder()
        self._delivered = 0
        reason = "stream closed by server"
        try:
            async with client.stream("GET", self.url, headers=headers) as response:
                if not response.is_success:
                    raise StreamConnectionError(f"HTTP {response.status_code} from {self.url}")
                self._live = True
                if not ready.done():
                    ready.set_result(None)
                logger.info("Event stream connected: %s", self.url)

                async for line in response.aiter_lines():
                    message = decoder.feed(line)
                    if message is not None:
                        self._delivered += 1
                        self._deliver(message)
                        self._last_event_id = decoder.last_event_id
        except asyncio.CancelledError:
            self._live = False
            if not ready.done():
                ready.cancel()
            raise
        except StreamConnectionError as exc:
            reason = str(exc)
        except httpx.HTTPError as exc:
            reason = f"{type(exc).__name__}: {exc}"

        self._live = False
        if not ready.done():
            logger.debug("Event stream open failed: %s", reason)
            ready.set_exception(StreamConnectionError(reason))
            return

        logger.warning("Event stream lost: %s", reason)
        if self._on_lost is not None:
            self._on_lost()

    def _deliver(self, message: SSEMessage) -> None:
        try:
            self._on_message(message.event, message.data)
        except Exception:
            logger.exception("Event handler failed for '%s' event", message.event)
