# backend/streamsite/services/status_service.py

import logging
import time
from typing import Optional

from ..core.config import settings
from ..core.exceptions import CollaboratorError
from ..core.metrics import STATUS_READ_DURATION, STATUS_READS, record_effective_status
from ..core.status_broker import StatusBroker
from ..models.stream import ReconciliationResult, StreamRecord, StreamStatus
from ..schemas.stream import StreamStatusResponse
from .cms_client import CmsClient
from .reconciler import ReconcilerService

logger = logging.getLogger(__name__)


def build_status_response(
    record: StreamRecord,
    effective: StreamStatus,
    result: Optional[ReconciliationResult] = None,
) -> StreamStatusResponse:
    platform_status = result.platform_status if result else None
    return StreamStatusResponse(
        status=effective,
        playbackId=record.playback_id or settings.DEFAULT_PLAYBACK_ID,
        title=record.title,
        description=record.description,
        slug=record.slug,
        scheduledDate=record.scheduled_at.isoformat() if record.scheduled_at else None,
        isLive=effective == StreamStatus.LIVE,
        platformStatus=platform_status.raw_state.value if platform_status else None,
    )


def default_status_response(message: str = "No active stream configured") -> StreamStatusResponse:
    return StreamStatusResponse(
        status=StreamStatus.OFFLINE,
        playbackId=settings.DEFAULT_PLAYBACK_ID,
        isLive=False,
        message=message,
    )


class StatusNotifier:
    """Pushes a stream's new status to viewers and drops the stale cache entry."""

    def __init__(self, broker: StatusBroker):
        self.broker = broker

    async def status_changed(self, record: StreamRecord, status: StreamStatus) -> None:
        await self.broker.invalidate_status()
        response = build_status_response(record, status)
        if await self.broker.publish_status(response):
            logger.info(f"Published status change for {record.slug}: {status.value}")


class StreamStatusService:
    """The viewer-facing read path: always answers, never raises."""

    def __init__(self, cms: CmsClient, reconciler: ReconcilerService, broker: StatusBroker):
        self.cms = cms
        self.reconciler = reconciler
        self.broker = broker

    async def get_current_status(self, use_cache: bool = True) -> StreamStatusResponse:
        started = time.perf_counter()
        try:
            if use_cache:
                cached = await self.broker.get_cached_status()
                if cached is not None:
                    STATUS_READS.labels(source="cache").inc()
                    return cached

            response = await self._resolve()
            await self.broker.cache_status(response)
            record_effective_status(response.status.value)
            return response
        finally:
            STATUS_READ_DURATION.observe(time.perf_counter() - started)

    async def _resolve(self) -> StreamStatusResponse:
        try:
            record = await self.cms.get_current_stream()
        except CollaboratorError as e:
            logger.warning(f"Could not read current stream from CMS: {e}")
            STATUS_READS.labels(source="default").inc()
            return default_status_response("Stream information temporarily unavailable")

        if record is None:
            STATUS_READS.labels(source="default").inc()
            return default_status_response()

        result = await self.reconciler.resolve_effective_status(record)
        STATUS_READS.labels(source="platform" if result.platform_status else "declared").inc()
        return build_status_response(record, result.effective_status, result)

    async def reconcile_current_stream(self) -> None:
        """Scheduled job: reconcile without any viewer asking and refresh the cache."""
        logger.info("Running stream reconciliation check...")
        try:
            response = await self.get_current_status(use_cache=False)
            logger.info(f"Reconciliation check complete: current stream is {response.status.value}")
        except Exception as e:
            logger.exception(f"Error during stream reconciliation: {e}")
