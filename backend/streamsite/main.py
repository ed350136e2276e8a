import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import HTTPException
from fastapi import status

from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from prometheus_fastapi_instrumentator import Instrumentator
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .api.api_v1.api import api_router
from .api.api_v1.websockets import router as websocket_router
from .core.config import settings
from .core.deps import ServiceContainer
from .core.security import WebhookVerifier
from .core.status_broker import status_broker
from .core.tracing import setup_tracing, shutdown_tracing
from .services.cms_client import CmsClient
from .services.platform_client import PlatformClient

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler()

def build_services() -> ServiceContainer:
    return ServiceContainer(
        cms=CmsClient(),
        platform=PlatformClient(),
        broker=status_broker,
        verifier=WebhookVerifier(),
    )

# --- Lifespan Management ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    # --- Startup ---
    logger.info("Application startup...")
    setup_tracing()
    await status_broker.connect_redis()

    services = build_services()
    app.state.services = services

    if not settings.cosmic_configured:
        logger.warning("CMS bucket not configured; status reads will return the offline default")
    if not settings.mux_configured:
        logger.warning("Platform credentials not configured; declared status is served unreconciled")

    if settings.RECONCILE_INTERVAL_SECONDS > 0:
        scheduler.add_job(
            services.status_service.reconcile_current_stream,
            trigger=IntervalTrigger(seconds=settings.RECONCILE_INTERVAL_SECONDS),
            id="stream_status_reconcile_job",
            name="Stream Status Reconcile Job",
            replace_existing=True
        )
        scheduler.start()
        logger.info("Started stream status reconcile scheduler.")

    yield

    # --- Shutdown ---
    logger.info("Application shutdown...")
    if scheduler.running:
        scheduler.shutdown()
        logger.info("Scheduler shut down.")
    await services.aclose()
    await status_broker.disconnect_redis()
    await shutdown_tracing()

# --- FastAPI App Initialization ---
app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Live stream status API",
    version="1.0.0",
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[str(origin).rstrip("/") for origin in settings.CORS_ORIGINS],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix=settings.API_V1_STR)
app.include_router(websocket_router)  # WebSocket router without prefix

# Instrument FastAPI for Prometheus and OpenTelemetry
Instrumentator().instrument(app).expose(app)  # Prometheus /metrics endpoint
FastAPIInstrumentor.instrument_app(app)

# --- Health Check Endpoints ---
@app.get("/livez", tags=["Health"], status_code=status.HTTP_200_OK)
async def liveness_check():
    """Basic liveness check."""
    return {"status": "ok"}

@app.get("/readyz", tags=["Health"], status_code=status.HTTP_200_OK)
async def readiness_check():
    """Checks if the service and its collaborators are ready."""
    dependencies_ok = True
    details = {}

    # Redis only backs the cache, dedup and push fan-out; reads still work without it
    if status_broker.redis_client:
        try:
            await status_broker.redis_client.ping()
            details["redis"] = "ready"
        except Exception as e:
            logger.error(f"Readiness check failed: Redis connection error: {e}")
            details["redis"] = "unhealthy"
            dependencies_ok = False
    else:
        details["redis"] = "degraded (not connected)"

    details["cms"] = "configured" if settings.cosmic_configured else "not configured"
    details["platform"] = "configured" if settings.mux_configured else "not configured"
    if not settings.cosmic_configured:
        dependencies_ok = False

    if not dependencies_ok:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=details)

    return {"status": "ready", "dependencies": details}
