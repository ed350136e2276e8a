import asyncio
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from ...core.deps import ServiceContainer
from ...core.metrics import WEBSOCKET_CONNECTIONS

logger = logging.getLogger(__name__)
router = APIRouter()

async def _forward_status_changes(websocket: WebSocket, services: ServiceContainer) -> None:
    """Relays every published status change to this viewer."""
    async for update in services.broker.listen():
        await websocket.send_text(update.model_dump_json(exclude_none=True))

async def _wait_for_disconnect(websocket: WebSocket) -> None:
    # Viewers only listen; anything they send is ignored
    while True:
        await websocket.receive_text()

@router.websocket("/ws/stream/status")
async def stream_status_socket(websocket: WebSocket):
    """
    Push channel for status changes.

    Sends the current effective status on connect, then one message per
    change published by the webhook intake or the reconciler.
    """
    services: ServiceContainer = websocket.app.state.services
    await websocket.accept()
    WEBSOCKET_CONNECTIONS.inc()
    logger.info("Status WebSocket connected")

    tasks = []
    try:
        current = await services.status_service.get_current_status()
        await websocket.send_text(current.model_dump_json(exclude_none=True))

        tasks = [asyncio.create_task(_wait_for_disconnect(websocket))]
        if services.broker.available:
            tasks.append(asyncio.create_task(_forward_status_changes(websocket, services)))
        else:
            logger.info("Redis unavailable; status socket will not receive pushes")
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            if not task.cancelled() and task.exception() and not isinstance(task.exception(), WebSocketDisconnect):
                logger.error(f"Status WebSocket task failed: {task.exception()}")
    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.exception(f"Status WebSocket error: {e}")
    finally:
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        WEBSOCKET_CONNECTIONS.dec()
        logger.info("Status WebSocket disconnected")
