# backend/streamsite/services/webhook_service.py

import logging
from typing import Optional

from ..core.metrics import WEBHOOK_EVENTS
from ..core.status_broker import StatusBroker
from ..core.tracing import get_tracer
from ..models.stream import StreamRecord, StreamStatus, WebhookEvent, WebhookEventType
from .cms_client import CmsClient
from .status_service import StatusNotifier

logger = logging.getLogger(__name__)
tracer = get_tracer()

STATUS_TRANSITIONS = {
    WebhookEventType.STREAM_ACTIVE: StreamStatus.LIVE,
    WebhookEventType.STREAM_IDLE: StreamStatus.OFFLINE,
    WebhookEventType.STREAM_DISCONNECTED: StreamStatus.OFFLINE,
}


class WebhookService:
    """
    Turns platform webhook events into declared-status writes.

    `handle` never raises: lookups and writes that fail are logged and the
    delivery is still acknowledged, so the platform does not start retrying.
    """

    def __init__(self, cms: CmsClient, broker: StatusBroker, notifier: Optional[StatusNotifier] = None):
        self.cms = cms
        self.broker = broker
        self.notifier = notifier

    async def handle(self, event: WebhookEvent) -> str:
        """Process one event and return its outcome label."""
        with tracer.start_as_current_span("WebhookService.handle") as span:
            span.set_attribute("event_type", event.type)
            span.set_attribute("subject_id", event.subject_platform_id or "")
            try:
                outcome = await self._dispatch(event)
            except Exception as e:
                logger.exception(f"[Webhook] Error processing {event.type} for {event.subject_platform_id}: {e}")
                outcome = "failed"
            span.set_attribute("outcome", outcome)
            WEBHOOK_EVENTS.labels(event_type=event.type, outcome=outcome).inc()
            return outcome

    async def _dispatch(self, event: WebhookEvent) -> str:
        if not await self.broker.claim_delivery(event.delivery_id):
            logger.info(f"[Webhook] Duplicate delivery {event.delivery_id} ({event.type}); skipping")
            return "duplicate"

        event_type = event.known_type
        if event_type is None:
            logger.info(f"[Webhook] Unhandled webhook event: {event.type}")
            return "ignored"

        if event_type in STATUS_TRANSITIONS:
            return await self._apply_transition(event, STATUS_TRANSITIONS[event_type])

        if event_type == WebhookEventType.STREAM_CREATED:
            logger.info(
                f"[Webhook] New platform stream created: {event.subject_platform_id} "
                f"(playback id {event.playback_id}, status {event.payload.get('status')})"
            )
        elif event_type == WebhookEventType.ASSET_CREATED:
            live_stream_id = event.payload.get("live_stream_id")
            if live_stream_id:
                logger.info(f"[Webhook] Recording {event.subject_platform_id} created for live stream {live_stream_id}")
            else:
                logger.info(f"[Webhook] Asset {event.subject_platform_id} created")
        return "ignored"

    async def _resolve_record(self, event: WebhookEvent) -> Optional[StreamRecord]:
        record = None
        if event.subject_platform_id:
            record = await self.cms.find_stream_by_platform_id(event.subject_platform_id)
        if record is None and event.playback_id:
            logger.debug(f"[Webhook] Trying to find stream by playback ID: {event.playback_id}")
            record = await self.cms.find_stream_by_playback_id(event.playback_id)
        return record

    async def _apply_transition(self, event: WebhookEvent, status: StreamStatus) -> str:
        record = await self._resolve_record(event)
        if record is None:
            logger.info(
                f"[Webhook] No matching stream for platform id {event.subject_platform_id} "
                f"or playback id {event.playback_id}; dropping {event.type}"
            )
            return "unmatched"

        if record.declared_status == status:
            logger.debug(f"[Webhook] Stream {record.id} already {status.value}. Skipping update.")
            return "applied"

        logger.info(f"[Webhook] Updating stream {record.id} from {record.declared_status.value} to {status.value}")
        updated = await self.cms.update_stream_status(record.id, status)
        if updated is None:
            logger.warning(f"[Webhook] Stream {record.id} disappeared before update")
            return "unmatched"

        if self.notifier:
            await self.notifier.status_changed(record, status)
        return "applied"
