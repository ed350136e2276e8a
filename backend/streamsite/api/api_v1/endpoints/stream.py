from fastapi import APIRouter, Depends

from ....core.deps import get_status_service
from ....schemas.stream import StreamStatusResponse
from ....services.status_service import StreamStatusService

router = APIRouter()

@router.get("/status", response_model=StreamStatusResponse, response_model_exclude_none=True)
async def get_stream_status(
    status_service: StreamStatusService = Depends(get_status_service)
):
    """
    Effective status of the current stream.

    Always answers 200; collaborator failures fall back to the declared
    status or to the offline default.
    """
    return await status_service.get_current_status()
