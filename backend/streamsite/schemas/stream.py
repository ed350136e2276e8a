from typing import Optional, List
from pydantic import BaseModel

from ..models.stream import StreamStatus

# Status Response Schema (shape consumed by the site's player and indicator)
class StreamStatusResponse(BaseModel):
    status: StreamStatus
    playbackId: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    slug: Optional[str] = None
    scheduledDate: Optional[str] = None
    isLive: bool = False
    platformStatus: Optional[str] = None
    message: Optional[str] = None

# Platform proxy schemas
class PlatformStreamCreate(BaseModel):
    playback_policy: str = "public"

class PlatformStreamCreated(BaseModel):
    streamId: str
    streamKey: Optional[str] = None
    playbackId: Optional[str] = None
    status: Optional[str] = None

class PlatformStreamDetail(BaseModel):
    streamId: str
    status: Optional[str] = None
    playbackId: Optional[str] = None
    streamKey: Optional[str] = None
    isLive: bool = False
    createdAt: Optional[str] = None
    recentAssetIds: List[str] = []

class PlatformStreamList(BaseModel):
    streams: List[dict]
    liveStreams: List[dict]
    totalStreams: int
    activeLiveStreams: int
