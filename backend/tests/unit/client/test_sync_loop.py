import asyncio

import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock

from streamsite.client.sync_loop import HttpStatusFetcher, StatusChannel, StatusSyncLoop
from streamsite.models.stream import StreamStatus
from streamsite.schemas.stream import StreamStatusResponse


def status(value: StreamStatus) -> StreamStatusResponse:
    return StreamStatusResponse(
        status=value,
        playbackId="pb-1",
        slug="sunday-service",
        isLive=value == StreamStatus.LIVE,
    )


async def wait_until(predicate, timeout=2.0):
    async def poll():
        while not predicate():
            await asyncio.sleep(0.005)
    await asyncio.wait_for(poll(), timeout)


class FakeSocket:
    """Replays a fixed list of server messages."""

    def __init__(self, messages):
        self.messages = messages
        self.close = AsyncMock()

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for message in self.messages:
            yield message


@pytest.mark.asyncio
async def test_went_live_fires_once_per_transition():
    # Arrange
    on_status = MagicMock()
    on_went_live = MagicMock()
    loop = StatusSyncLoop(AsyncMock(), interval=10, on_status=on_status, on_went_live=on_went_live)
    sequence = [StreamStatus.OFFLINE, StreamStatus.OFFLINE, StreamStatus.LIVE, StreamStatus.LIVE, StreamStatus.OFFLINE]

    # Act
    for value in sequence:
        await loop.apply(status(value))

    # Assert
    assert on_status.call_count == 5
    on_went_live.assert_called_once()
    assert on_went_live.call_args.args[0].status == StreamStatus.LIVE
    assert loop.is_live is False


@pytest.mark.asyncio
async def test_first_observation_of_live_counts_as_transition():
    on_went_live = AsyncMock()
    loop = StatusSyncLoop(AsyncMock(), interval=10, on_went_live=on_went_live)

    assert loop.status is None
    await loop.apply(status(StreamStatus.LIVE))

    on_went_live.assert_awaited_once()


@pytest.mark.asyncio
async def test_failed_poll_keeps_last_known_status():
    # Arrange
    fetch = AsyncMock(side_effect=[
        status(StreamStatus.LIVE),
        httpx.ConnectError("offline network"),
        asyncio.TimeoutError(),
        status(StreamStatus.LIVE),
    ])
    on_went_live = MagicMock()
    loop = StatusSyncLoop(fetch, interval=10, on_went_live=on_went_live)

    # Act / Assert
    await loop.tick()
    assert loop.status.status == StreamStatus.LIVE

    await loop.tick()
    await loop.tick()
    assert loop.status.status == StreamStatus.LIVE
    assert loop.consecutive_failures == 2

    await loop.tick()
    assert loop.consecutive_failures == 0
    on_went_live.assert_called_once()


@pytest.mark.asyncio
async def test_overlapping_tick_is_skipped_not_queued():
    # Arrange
    release = asyncio.Event()

    async def slow_fetch():
        await release.wait()
        return status(StreamStatus.OFFLINE)

    loop = StatusSyncLoop(slow_fetch, interval=10)

    # Act
    first = loop.tick()
    await asyncio.sleep(0)
    second = loop.tick()
    release.set()
    await first

    # Assert
    assert second is None
    assert loop.skipped_ticks == 1
    assert loop.status.status == StreamStatus.OFFLINE


@pytest.mark.asyncio
async def test_ticks_continue_after_failures():
    fetch = AsyncMock(side_effect=[RuntimeError("500"), RuntimeError("500")] + [status(StreamStatus.OFFLINE)] * 50)
    loop = StatusSyncLoop(fetch, interval=0.01)

    async with loop:
        await wait_until(lambda: fetch.await_count >= 3)

    assert loop.status.status == StreamStatus.OFFLINE
    assert loop.consecutive_failures == 0
    assert loop.running is False


@pytest.mark.asyncio
async def test_stop_cancels_in_flight_request():
    # Arrange
    started = asyncio.Event()
    cancelled = []

    async def hanging_fetch():
        started.set()
        try:
            await asyncio.sleep(3600)
        except asyncio.CancelledError:
            cancelled.append(True)
            raise

    loop = StatusSyncLoop(hanging_fetch, interval=10)

    # Act
    loop.start()
    await asyncio.wait_for(started.wait(), 1.0)
    await loop.stop()

    # Assert
    assert cancelled == [True]
    assert loop.running is False
    assert loop.status is None


@pytest.mark.asyncio
async def test_callback_errors_do_not_break_the_loop():
    loop = StatusSyncLoop(AsyncMock(), interval=10, on_status=MagicMock(side_effect=ValueError("ui gone")))

    await loop.apply(status(StreamStatus.LIVE))

    assert loop.is_live is True


def test_interval_must_be_positive():
    with pytest.raises(ValueError):
        StatusSyncLoop(AsyncMock(), interval=0)


@pytest.mark.asyncio
async def test_http_fetcher_reads_status_endpoint():
    # Arrange
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"status": "live", "playbackId": "pb-1", "isLive": True})

    fetcher = HttpStatusFetcher("https://site.test/", timeout=1.0, transport=httpx.MockTransport(handler))

    # Act
    result = await fetcher()
    await fetcher.aclose()

    # Assert
    assert result.status == StreamStatus.LIVE
    assert str(seen[0].url) == "https://site.test/api/stream/status"


@pytest.mark.asyncio
async def test_http_fetcher_raises_on_server_error():
    fetcher = HttpStatusFetcher(
        "https://site.test",
        transport=httpx.MockTransport(lambda request: httpx.Response(503)),
    )

    with pytest.raises(httpx.HTTPStatusError):
        await fetcher()


@pytest.mark.asyncio
async def test_channel_feeds_pushes_into_loop():
    # Arrange
    socket = FakeSocket([
        status(StreamStatus.OFFLINE).model_dump_json(),
        "not a status",
        status(StreamStatus.LIVE).model_dump_json(),
    ])
    connect = AsyncMock(return_value=socket)
    on_went_live = MagicMock()
    loop = StatusSyncLoop(AsyncMock(), interval=10, on_went_live=on_went_live)
    channel = StatusChannel("wss://site.test/ws/stream/status", loop, connect=connect)

    # Act
    await channel.open()
    await wait_until(lambda: not channel.connected)
    await channel.close()

    # Assert
    assert connect.await_args.args[0] == "wss://site.test/ws/stream/status"
    assert loop.is_live is True
    on_went_live.assert_called_once()
    socket.close.assert_awaited_once()
