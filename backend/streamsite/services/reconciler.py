# backend/streamsite/services/reconciler.py

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional, Set

from ..core.exceptions import (
    CollaboratorError,
    PlatformNotConfiguredError,
    PlatformStreamNotFoundError,
    PlatformUnavailableError,
)
from ..core.metrics import RECONCILE_CORRECTIONS
from ..core.tracing import get_tracer
from ..models.stream import (
    OPERATOR_CONTROLLED_STATUSES,
    PlatformRawState,
    PlatformStatus,
    ReconciliationResult,
    StreamRecord,
    StreamStatus,
)
from .cms_client import CmsClient
from .platform_client import PlatformClient

logger = logging.getLogger(__name__)
tracer = get_tracer()

CorrectionCallback = Callable[[StreamRecord, StreamStatus], Awaitable[None]]


def reconcile_status(record: StreamRecord, live: Optional[PlatformStatus] = None) -> StreamStatus:
    """
    Effective status for a record given an optional fresh platform reading.

    Scheduled and archived records keep their declared status. Live/offline
    records follow the platform when a reading is available and keep the
    declared status otherwise.
    """
    if record.declared_status in OPERATOR_CONTROLLED_STATUSES:
        return record.declared_status
    if not record.platform_stream_id or live is None:
        return record.declared_status
    return StreamStatus.LIVE if live.is_live else StreamStatus.OFFLINE


class ReconcilerService:
    """
    Reconciles declared stream state with the video platform's live state.

    Corrective writes run in the background so the viewer-facing read never
    waits on (or fails because of) the CMS write.
    """

    def __init__(
        self,
        cms: CmsClient,
        platform: PlatformClient,
        on_correction: Optional[CorrectionCallback] = None,
    ):
        self.cms = cms
        self.platform = platform
        self.on_correction = on_correction
        # record id -> status of the correction currently in flight
        self._issued: Dict[str, StreamStatus] = {}
        self._pending: Set[asyncio.Task] = set()

    async def fetch_platform_status(self, record: StreamRecord) -> Optional[PlatformStatus]:
        """Fresh platform reading for the record, or None when none can be had."""
        if not record.platform_stream_id:
            return None
        try:
            return await self.platform.get_live_stream_status(record.platform_stream_id)
        except PlatformStreamNotFoundError:
            logger.info(
                f"[Reconcile] Platform stream {record.platform_stream_id} for {record.slug} "
                f"does not exist; treating as idle"
            )
            return PlatformStatus(
                platform_stream_id=record.platform_stream_id,
                raw_state=PlatformRawState.IDLE,
                has_recent_asset=False,
            )
        except PlatformNotConfiguredError:
            logger.debug("[Reconcile] Platform credentials missing; using declared status")
            return None
        except PlatformUnavailableError as e:
            logger.warning(f"[Reconcile] Platform unavailable for {record.slug}, using declared status: {e}")
            return None

    async def resolve_effective_status(self, record: StreamRecord) -> ReconciliationResult:
        with tracer.start_as_current_span("ReconcilerService.resolve_effective_status") as span:
            span.set_attribute("stream_id", record.id)
            span.set_attribute("declared_status", record.declared_status.value)
            live = None
            if record.declared_status not in OPERATOR_CONTROLLED_STATUSES:
                live = await self.fetch_platform_status(record)
            result = self.reconcile(record, live)
            span.set_attribute("effective_status", result.effective_status.value)
            return result

    def reconcile(self, record: StreamRecord, live: Optional[PlatformStatus] = None) -> ReconciliationResult:
        effective = reconcile_status(record, live)
        result = ReconciliationResult(effective_status=effective, platform_status=live)

        if effective == record.declared_status:
            # Store already agrees; forget any correction we were waiting on
            self._issued.pop(record.id, None)
            return result

        if self._issued.get(record.id) == effective:
            logger.debug(
                f"[Reconcile] Correction {record.declared_status.value}->{effective.value} "
                f"already issued for {record.id}"
            )
            return result

        logger.info(
            f"[Reconcile] Stream {record.id} ({record.slug}) declared "
            f"{record.declared_status.value} but platform says {effective.value}; correcting"
        )
        self._issued[record.id] = effective
        task = asyncio.create_task(self._apply_correction(record, effective))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        result.correction_issued = True
        return result

    async def _apply_correction(self, record: StreamRecord, status: StreamStatus) -> None:
        try:
            updated = await self.cms.update_stream_status(record.id, status)
        except CollaboratorError as e:
            logger.error(f"[Reconcile] Failed to persist {status.value} for stream {record.id}: {e}")
            RECONCILE_CORRECTIONS.labels(outcome="failed").inc()
            # Let the next poll try again
            self._issued.pop(record.id, None)
            return
        except Exception as e:
            logger.exception(f"[Reconcile] Unexpected error persisting status for stream {record.id}: {e}")
            RECONCILE_CORRECTIONS.labels(outcome="failed").inc()
            self._issued.pop(record.id, None)
            return

        if updated is None:
            logger.warning(f"[Reconcile] Stream {record.id} vanished before its status could be corrected")
            RECONCILE_CORRECTIONS.labels(outcome="missing").inc()
            self._issued.pop(record.id, None)
            return

        RECONCILE_CORRECTIONS.labels(outcome="applied").inc()
        # Write confirmed; a later divergence must be corrected again
        if self._issued.get(record.id) == status:
            del self._issued[record.id]
        if self.on_correction:
            try:
                await self.on_correction(record, status)
            except Exception as e:
                logger.exception(f"[Reconcile] Status change notification failed for {record.id}: {e}")

    async def drain(self) -> None:
        """Wait for every corrective write issued so far."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
