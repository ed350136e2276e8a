class CollaboratorError(Exception):
    """Base class for failures talking to the CMS or the video platform."""


class CmsUnavailableError(CollaboratorError):
    """CMS unreachable, rejected the credentials or answered with a server error."""


class CmsNotConfiguredError(CmsUnavailableError):
    """Bucket slug or keys missing from the environment."""


class PlatformUnavailableError(CollaboratorError):
    """Video platform unreachable or answered with an unexpected status."""


class PlatformNotConfiguredError(PlatformUnavailableError):
    """Token id/secret pair missing from the environment."""


class PlatformStreamNotFoundError(CollaboratorError):
    """The platform has no live stream with the requested id (HTTP 404)."""

    def __init__(self, platform_stream_id: str):
        super().__init__(f"Live stream {platform_stream_id} not found on platform")
        self.platform_stream_id = platform_stream_id


class WebhookSignatureError(Exception):
    """Webhook signature header missing, malformed, stale or not matching."""

class MalformedWebhookError(ValueError):
    """Webhook body is not JSON or lacks the event type."""
