from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from ..models.stream import PlatformRawState, PlatformStatus, WebhookEvent


class PlaybackIdRef(BaseModel):
    id: str
    policy: Optional[str] = None


class LiveStreamData(BaseModel):
    """`data` member of a platform live-stream response."""

    id: str
    status: Optional[str] = None
    stream_key: Optional[str] = None
    playback_ids: List[PlaybackIdRef] = []
    recent_asset_ids: List[str] = []
    created_at: Optional[str] = None

    model_config = {"extra": "ignore"}

    @property
    def playback_id(self) -> Optional[str]:
        return self.playback_ids[0].id if self.playback_ids else None

    @property
    def is_live(self) -> bool:
        return self.to_platform_status().is_live

    def to_platform_status(self) -> PlatformStatus:
        try:
            raw_state = PlatformRawState(self.status or PlatformRawState.IDLE.value)
        except ValueError:
            # Unknown platform vocabulary never counts as live
            raw_state = PlatformRawState.IDLE
        return PlatformStatus(
            platform_stream_id=self.id,
            raw_state=raw_state,
            has_recent_asset=bool(self.recent_asset_ids),
        )


class WebhookData(BaseModel):
    id: Optional[str] = None
    status: Optional[str] = None
    playback_ids: Optional[List[Dict[str, Any]]] = None
    recent_asset_ids: Optional[List[str]] = None
    live_stream_id: Optional[str] = None

    model_config = {"extra": "allow"}


class WebhookPayload(BaseModel):
    """Inbound platform webhook body."""

    type: str
    id: Optional[str] = None
    data: WebhookData = WebhookData()

    model_config = {"extra": "ignore"}

    def to_event(self) -> WebhookEvent:
        return WebhookEvent(
            type=self.type,
            subject_platform_id=self.data.id,
            payload=self.data.model_dump(exclude_none=True),
            delivery_id=self.id,
        )


class WebhookAck(BaseModel):
    success: bool = True
    message: Optional[str] = None
    duplicate: bool = False
