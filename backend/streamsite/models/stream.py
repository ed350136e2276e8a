from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class StreamStatus(str, Enum):
    LIVE = "live"
    OFFLINE = "offline"
    SCHEDULED = "scheduled"
    ARCHIVED = "archived"


# Editorial states; platform signals never override these
OPERATOR_CONTROLLED_STATUSES = frozenset({StreamStatus.SCHEDULED, StreamStatus.ARCHIVED})


class PlatformRawState(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    DISCONNECTED = "disconnected"


class WebhookEventType(str, Enum):
    STREAM_ACTIVE = "video.live_stream.active"
    STREAM_IDLE = "video.live_stream.idle"
    STREAM_CREATED = "video.live_stream.created"
    STREAM_DISCONNECTED = "video.live_stream.disconnected"
    ASSET_CREATED = "video.asset.created"


@dataclass
class StreamRecord:
    """A stream as declared in the CMS."""

    id: str
    slug: str
    title: str
    declared_status: StreamStatus
    description: Optional[str] = None
    platform_stream_id: Optional[str] = None
    playback_id: Optional[str] = None
    scheduled_at: Optional[datetime] = None

    def __post_init__(self):
        if self.declared_status == StreamStatus.SCHEDULED and self.scheduled_at is None:
            raise ValueError(f"Stream {self.id} is scheduled but has no scheduled date")


@dataclass(frozen=True)
class PlatformStatus:
    """Point-in-time read of a live stream on the video platform."""

    platform_stream_id: str
    raw_state: PlatformRawState
    has_recent_asset: bool

    @property
    def is_live(self) -> bool:
        # "active" alone can be reported before any media arrives
        return self.raw_state == PlatformRawState.ACTIVE and self.has_recent_asset


@dataclass
class WebhookEvent:
    type: str
    subject_platform_id: Optional[str]
    payload: Dict[str, Any] = field(default_factory=dict)
    delivery_id: Optional[str] = None

    @property
    def known_type(self) -> Optional[WebhookEventType]:
        try:
            return WebhookEventType(self.type)
        except ValueError:
            return None

    @property
    def playback_id(self) -> Optional[str]:
        playback_ids = self.payload.get("playback_ids") or []
        if playback_ids and isinstance(playback_ids[0], dict):
            return playback_ids[0].get("id")
        return None


@dataclass
class ReconciliationResult:
    effective_status: StreamStatus
    platform_status: Optional[PlatformStatus] = None
    correction_issued: bool = False
