import logging
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, field_validator

from ..models.stream import StreamRecord, StreamStatus

logger = logging.getLogger(__name__)


def parse_cms_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse a CMS date/datetime metafield ("2024-05-01" or ISO-8601 with "Z")."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.warning(f"Ignoring unparseable CMS date: {value!r}")
        return None


class CmsStreamMetadata(BaseModel):
    description: Optional[str] = None
    status: StreamStatus = StreamStatus.OFFLINE
    mux_stream_id: Optional[str] = None
    playback_id: Optional[str] = None
    scheduled_date: Optional[str] = None

    model_config = {"extra": "ignore"}

    @field_validator("status", mode="before")
    def unwrap_select_value(cls, v: Any) -> Any:
        # Select-dropdown metafields may come back as {"key": ..., "value": ...}
        if isinstance(v, dict):
            v = v.get("key") or v.get("value")
        if v is None or v == "":
            return StreamStatus.OFFLINE
        return str(v).lower()

    @field_validator("mux_stream_id", "playback_id", mode="before")
    def blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v


class CmsStreamObject(BaseModel):
    """A `streams` object as returned by the CMS bucket API."""

    id: str
    slug: str
    title: str
    metadata: CmsStreamMetadata = CmsStreamMetadata()
    created_at: Optional[str] = None

    model_config = {"extra": "ignore"}

    def to_record(self) -> StreamRecord:
        return StreamRecord(
            id=self.id,
            slug=self.slug,
            title=self.title,
            description=self.metadata.description,
            declared_status=self.metadata.status,
            platform_stream_id=self.metadata.mux_stream_id,
            playback_id=self.metadata.playback_id,
            scheduled_at=parse_cms_datetime(self.metadata.scheduled_date),
        )


def record_from_cms(obj: Dict[str, Any]) -> Optional[StreamRecord]:
    """Build a StreamRecord from raw CMS JSON, or None when it violates the model."""
    try:
        return CmsStreamObject.model_validate(obj).to_record()
    except ValueError as e:
        # pydantic.ValidationError is a ValueError too
        object_id = obj.get("id") if isinstance(obj, dict) else None
        logger.error(f"Rejecting malformed CMS stream object {object_id!r}: {e}")
        return None
