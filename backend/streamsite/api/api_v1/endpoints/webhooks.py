import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import ValidationError

from ....core.deps import get_webhook_service, get_webhook_verifier
from ....core.exceptions import MalformedWebhookError, WebhookSignatureError
from ....core.metrics import WEBHOOK_EVENTS
from ....core.security import SIGNATURE_HEADER, WebhookVerifier
from ....schemas.platform import WebhookAck, WebhookPayload
from ....services.webhook_service import WebhookService

logger = logging.getLogger(__name__)
router = APIRouter()

def parse_webhook_body(payload: bytes) -> WebhookPayload:
    try:
        return WebhookPayload.model_validate(json.loads(payload))
    except (ValueError, ValidationError) as e:
        # json.JSONDecodeError is a ValueError
        raise MalformedWebhookError(str(e)) from e

@router.post("/webhooks", response_model=WebhookAck)
async def platform_webhook(
    request: Request,
    verifier: WebhookVerifier = Depends(get_webhook_verifier),
    webhook_service: WebhookService = Depends(get_webhook_service)
):
    """
    Handle incoming webhooks from the video platform.

    Any structurally valid delivery is acknowledged with 200, even when the
    stream is unknown or the CMS write fails, so the platform does not retry.
    """
    payload = await request.body()
    sig_header = request.headers.get(SIGNATURE_HEADER)

    try:
        verifier.verify(payload, sig_header)
    except WebhookSignatureError as e:
        logger.warning(f"Rejected webhook: {e}")
        WEBHOOK_EVENTS.labels(event_type="unknown", outcome="rejected").inc()
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature")

    try:
        body = parse_webhook_body(payload)
    except MalformedWebhookError as e:
        logger.warning(f"Rejected malformed webhook body: {e}")
        WEBHOOK_EVENTS.labels(event_type="unknown", outcome="rejected").inc()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid payload")

    event = body.to_event()
    logger.info(f"Received webhook: {event.type} {event.subject_platform_id}")

    try:
        outcome = await webhook_service.handle(event)
    except Exception as e:
        logger.exception(f"Webhook processing failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook processing failed"
        )

    return WebhookAck(
        success=True,
        message=f"Processed {event.type} event",
        duplicate=outcome == "duplicate",
    )
