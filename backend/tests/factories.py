from datetime import datetime, timezone

from streamsite.models.stream import PlatformRawState, PlatformStatus, StreamRecord, StreamStatus

WEBHOOK_SECRET = "whsec_test"


def make_record(
    status: StreamStatus = StreamStatus.OFFLINE,
    platform_stream_id="ms-1",
    **overrides,
) -> StreamRecord:
    fields = {
        "id": "obj-1",
        "slug": "sunday-service",
        "title": "Sunday Service",
        "declared_status": status,
        "description": "Weekly broadcast",
        "platform_stream_id": platform_stream_id,
        "playback_id": "pb-1",
    }
    if status == StreamStatus.SCHEDULED:
        fields["scheduled_at"] = datetime(2026, 11, 1, 10, 0, tzinfo=timezone.utc)
    fields.update(overrides)
    return StreamRecord(**fields)


def make_platform_status(
    raw_state: PlatformRawState = PlatformRawState.ACTIVE,
    has_recent_asset: bool = True,
    platform_stream_id: str = "ms-1",
) -> PlatformStatus:
    return PlatformStatus(
        platform_stream_id=platform_stream_id,
        raw_state=raw_state,
        has_recent_asset=has_recent_asset,
    )


def cms_object(status="offline", mux_stream_id="ms-1", playback_id="pb-1", **metadata):
    """Raw bucket API representation of a stream."""
    return {
        "id": "obj-1",
        "slug": "sunday-service",
        "title": "Sunday Service",
        "created_at": "2026-10-01T09:00:00.000Z",
        "metadata": {
            "description": "Weekly broadcast",
            "status": status,
            "mux_stream_id": mux_stream_id,
            "playback_id": playback_id,
            **metadata,
        },
    }
