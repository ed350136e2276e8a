import logging
from typing import NoReturn

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import ValidationError

from ....core.deps import get_platform_client
from ....core.exceptions import (
    PlatformNotConfiguredError,
    PlatformStreamNotFoundError,
    PlatformUnavailableError,
)
from ....schemas.platform import LiveStreamData
from ....schemas.stream import (
    PlatformStreamCreate,
    PlatformStreamCreated,
    PlatformStreamDetail,
    PlatformStreamList,
)
from ....services.platform_client import PlatformClient

logger = logging.getLogger(__name__)
router = APIRouter()

def _raise_for_platform_error(e: Exception, action: str) -> NoReturn:
    if isinstance(e, PlatformNotConfiguredError):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Platform credentials not configured"
        )
    if isinstance(e, PlatformStreamNotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Stream not found")
    logger.error(f"Error trying to {action}: {e}")
    raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"Failed to {action}")

@router.get("/streams", response_model=PlatformStreamList)
async def list_platform_streams(
    platform: PlatformClient = Depends(get_platform_client)
):
    """
    List the platform's live streams and which of them are actually live.
    """
    try:
        streams = await platform.list_live_streams()
    except PlatformUnavailableError as e:
        _raise_for_platform_error(e, "fetch stream data from platform")

    try:
        live_streams = [s for s in streams if LiveStreamData.model_validate(s).is_live]
    except ValidationError as e:
        _raise_for_platform_error(PlatformUnavailableError(str(e)), "fetch stream data from platform")

    return PlatformStreamList(
        streams=streams,
        liveStreams=live_streams,
        totalStreams=len(streams),
        activeLiveStreams=len(live_streams),
    )

@router.post("/streams", response_model=PlatformStreamCreated, status_code=status.HTTP_201_CREATED)
async def create_platform_stream(
    stream_in: PlatformStreamCreate,
    platform: PlatformClient = Depends(get_platform_client)
):
    """
    Provision a new live stream on the platform.
    """
    try:
        stream = await platform.create_live_stream(stream_in.playback_policy)
    except PlatformUnavailableError as e:
        _raise_for_platform_error(e, "create stream")

    return PlatformStreamCreated(
        streamId=stream.id,
        streamKey=stream.stream_key,
        playbackId=stream.playback_id,
        status=stream.status,
    )

@router.get("/streams/{stream_id}", response_model=PlatformStreamDetail)
async def get_platform_stream(
    stream_id: str,
    platform: PlatformClient = Depends(get_platform_client)
):
    """
    Get one platform live stream.
    """
    try:
        stream = await platform.get_live_stream(stream_id)
    except (PlatformUnavailableError, PlatformStreamNotFoundError) as e:
        _raise_for_platform_error(e, "fetch stream data")

    return PlatformStreamDetail(
        streamId=stream.id,
        status=stream.status,
        playbackId=stream.playback_id,
        streamKey=stream.stream_key,
        isLive=stream.is_live,
        createdAt=stream.created_at,
        recentAssetIds=stream.recent_asset_ids,
    )

@router.delete("/streams/{stream_id}")
async def delete_platform_stream(
    stream_id: str,
    platform: PlatformClient = Depends(get_platform_client)
):
    """
    Delete a live stream from the platform.
    """
    try:
        await platform.delete_live_stream(stream_id)
    except (PlatformUnavailableError, PlatformStreamNotFoundError) as e:
        _raise_for_platform_error(e, "delete stream")
    return {"success": True}
