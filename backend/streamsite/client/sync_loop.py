"""
Viewer-side status synchronisation.

`StatusSyncLoop` polls the status endpoint on a fixed interval and tells its
owner about every observed status and about the moment a stream goes live.
`StatusChannel` optionally feeds server pushes into the same loop so viewers
do not have to wait for the next poll.
"""

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional

import httpx
import websockets
from pydantic import ValidationError

from ..core.config import settings
from ..models.stream import StreamStatus
from ..schemas.stream import StreamStatusResponse

logger = logging.getLogger(__name__)

StatusFetch = Callable[[], Awaitable[StreamStatusResponse]]
StatusCallback = Callable[[StreamStatusResponse], Any]

STATUS_PATH = "/api/stream/status"


async def _notify(callback: Optional[StatusCallback], status: StreamStatusResponse, name: str) -> None:
    if callback is None:
        return
    try:
        result = callback(status)
        if inspect.isawaitable(result):
            await result
    except Exception as e:
        logger.exception(f"{name} callback failed: {e}")


class StatusSyncLoop:
    """
    Periodic poller with single-flight requests and edge-triggered go-live.

    A tick that arrives while a request is still pending is skipped rather
    than queued. Failed polls keep the last known status.
    """

    def __init__(
        self,
        fetch: StatusFetch,
        interval: Optional[float] = None,
        on_status: Optional[StatusCallback] = None,
        on_went_live: Optional[StatusCallback] = None,
    ):
        self.fetch = fetch
        self.interval = settings.SYNC_POLL_INTERVAL_SECONDS if interval is None else interval
        if self.interval <= 0:
            raise ValueError("interval must be positive")
        self.on_status = on_status
        self.on_went_live = on_went_live

        self.status: Optional[StreamStatusResponse] = None
        self.consecutive_failures = 0
        self.skipped_ticks = 0
        self._timer_task: Optional[asyncio.Task] = None
        self._inflight: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._timer_task is not None and not self._timer_task.done()

    @property
    def is_live(self) -> bool:
        return self.status is not None and self.status.status == StreamStatus.LIVE

    def start(self) -> None:
        """Fires an immediate poll, then one per interval."""
        if self.running:
            return
        self._timer_task = asyncio.create_task(self._run())
        logger.debug(f"Status sync loop started (interval={self.interval}s)")

    async def stop(self) -> None:
        """Cancels the timer and any in-flight request and waits for both."""
        tasks = [t for t in (self._timer_task, self._inflight) if t is not None and not t.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._timer_task = None
        self._inflight = None
        logger.debug("Status sync loop stopped")

    async def __aenter__(self) -> "StatusSyncLoop":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    async def _run(self) -> None:
        while True:
            self.tick()
            await asyncio.sleep(self.interval)

    def tick(self) -> Optional[asyncio.Task]:
        """Starts one poll unless another is still pending."""
        if self._inflight is not None and not self._inflight.done():
            self.skipped_ticks += 1
            logger.debug("Previous status poll still pending; skipping tick")
            return None
        self._inflight = asyncio.create_task(self._poll_once())
        return self._inflight

    async def _poll_once(self) -> None:
        try:
            status = await self.fetch()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.consecutive_failures += 1
            logger.warning(
                f"Status poll failed ({self.consecutive_failures} in a row), keeping last known status: {e}"
            )
            return
        self.consecutive_failures = 0
        await self.apply(status)

    async def apply(self, status: StreamStatusResponse) -> None:
        """Records a status from a poll or a server push and fires callbacks."""
        was_live = self.is_live
        self.status = status
        await _notify(self.on_status, status, "on_status")
        if not was_live and self.is_live:
            logger.info(f"Stream went live: {status.slug or status.playbackId}")
            await _notify(self.on_went_live, status, "on_went_live")


class HttpStatusFetcher:
    """Fetches the effective status from a running site."""

    def __init__(
        self,
        base_url: str,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = settings.HTTP_TIMEOUT_SECONDS if timeout is None else timeout
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=transport,
        )

    async def __call__(self) -> StreamStatusResponse:
        response = await self._client.get(STATUS_PATH)
        response.raise_for_status()
        return StreamStatusResponse.model_validate(response.json())

    async def aclose(self) -> None:
        await self._client.aclose()


class StatusChannel:
    """
    One WebSocket subscription to the server's status pushes.

    Owned by a single viewer session; every pushed status is handed to the
    loop through `StatusSyncLoop.apply`. The owner must call `close()`.
    """

    def __init__(self, url: str, loop: StatusSyncLoop, connect: Callable[..., Awaitable[Any]] = websockets.connect):
        self.url = url
        self.loop = loop
        self._connect = connect
        self.websocket = None
        self._reader: Optional[asyncio.Task] = None

    @property
    def connected(self) -> bool:
        return self._reader is not None and not self._reader.done()

    async def open(self) -> None:
        logger.info(f"Connecting to status channel at {self.url}")
        self.websocket = await self._connect(self.url, ping_interval=20, ping_timeout=10, close_timeout=10)
        self._reader = asyncio.create_task(self._read())

    async def _read(self) -> None:
        try:
            async for message in self.websocket:
                try:
                    status = StreamStatusResponse.model_validate_json(message)
                except ValidationError:
                    logger.warning(f"Ignoring malformed status push: {message!r}")
                    continue
                await self.loop.apply(status)
        except websockets.ConnectionClosed as e:
            logger.info(f"Status channel closed by server: {e}")

    async def close(self) -> None:
        if self._reader is not None and not self._reader.done():
            self._reader.cancel()
            await asyncio.gather(self._reader, return_exceptions=True)
        self._reader = None
        if self.websocket is not None:
            await self.websocket.close()
            self.websocket = None
        logger.info("Status channel closed")

    async def __aenter__(self) -> "StatusChannel":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
