from fastapi import APIRouter

from .endpoints import platform, stream, webhooks

api_router = APIRouter()
api_router.include_router(stream.router, prefix="/stream", tags=["stream"])
api_router.include_router(webhooks.router, prefix="/platform", tags=["webhooks"])
api_router.include_router(platform.router, prefix="/platform", tags=["platform"])
