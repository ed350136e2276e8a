from fastapi import Request

from .security import WebhookVerifier
from .status_broker import StatusBroker
from ..services.cms_client import CmsClient
from ..services.platform_client import PlatformClient
from ..services.reconciler import ReconcilerService
from ..services.status_service import StatusNotifier, StreamStatusService
from ..services.webhook_service import WebhookService


class ServiceContainer:
    """
    Long-lived collaborators shared by every request.

    Built once in the application lifespan and stored on `app.state`.
    """

    def __init__(
        self,
        cms: CmsClient,
        platform: PlatformClient,
        broker: StatusBroker,
        verifier: WebhookVerifier,
    ):
        self.cms = cms
        self.platform = platform
        self.broker = broker
        self.verifier = verifier
        self.notifier = StatusNotifier(broker)
        self.reconciler = ReconcilerService(cms, platform, on_correction=self.notifier.status_changed)
        self.status_service = StreamStatusService(cms, self.reconciler, broker)
        self.webhook_service = WebhookService(cms, broker, self.notifier)

    async def aclose(self) -> None:
        await self.reconciler.drain()
        await self.cms.aclose()
        await self.platform.aclose()


def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services


def get_status_service(request: Request) -> StreamStatusService:
    """
    Dependency for the viewer-facing status read path.
    """
    return get_services(request).status_service


def get_webhook_service(request: Request) -> WebhookService:
    return get_services(request).webhook_service


def get_webhook_verifier(request: Request) -> WebhookVerifier:
    return get_services(request).verifier


def get_platform_client(request: Request) -> PlatformClient:
    return get_services(request).platform
