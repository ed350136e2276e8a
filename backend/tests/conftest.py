import pytest
from unittest.mock import AsyncMock

from fastapi import FastAPI
from fastapi.testclient import TestClient

from streamsite.api.api_v1.api import api_router
from streamsite.api.api_v1.websockets import router as websocket_router
from streamsite.core.deps import ServiceContainer
from streamsite.core.security import WebhookVerifier
from streamsite.core.status_broker import StatusBroker
from streamsite.services.cms_client import CmsClient
from streamsite.services.platform_client import PlatformClient

from factories import WEBHOOK_SECRET


@pytest.fixture
def mock_cms():
    cms = AsyncMock(spec=CmsClient)
    cms.get_current_stream.return_value = None
    cms.find_stream_by_platform_id.return_value = None
    cms.find_stream_by_playback_id.return_value = None
    return cms


@pytest.fixture
def mock_platform():
    return AsyncMock(spec=PlatformClient)


@pytest.fixture
def services(mock_cms, mock_platform):
    # A broker without Redis: no cache, no dedup, no push
    return ServiceContainer(
        cms=mock_cms,
        platform=mock_platform,
        broker=StatusBroker(),
        verifier=WebhookVerifier(secret=WEBHOOK_SECRET),
    )


@pytest.fixture
def app(services):
    app = FastAPI()
    app.include_router(api_router, prefix="/api")
    app.include_router(websocket_router)
    app.state.services = services
    return app


@pytest.fixture
def client(app):
    return TestClient(app)
