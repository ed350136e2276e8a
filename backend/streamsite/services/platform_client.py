# backend/streamsite/services/platform_client.py

import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from ..core.config import settings
from ..core.exceptions import (
    PlatformNotConfiguredError,
    PlatformStreamNotFoundError,
    PlatformUnavailableError,
)
from ..core.metrics import COLLABORATOR_ERRORS
from ..models.stream import PlatformStatus
from ..schemas.platform import LiveStreamData

logger = logging.getLogger(__name__)


class PlatformClient:
    """
    Read/write access to the video platform's live-stream REST API.

    Read-only use by the reconciler goes through `get_live_stream_status`;
    the remaining calls back the operator proxy endpoints.
    """

    LIVE_STREAMS_PATH = "/video/v1/live-streams"

    def __init__(
        self,
        token_id: Optional[str] = None,
        token_secret: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token_id = token_id if token_id is not None else settings.MUX_TOKEN_ID
        self.token_secret = token_secret if token_secret is not None else settings.MUX_TOKEN_SECRET
        self.base_url = base_url or settings.MUX_API_BASE_URL
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECONDS
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def configured(self) -> bool:
        return bool(self.token_id and self.token_secret)

    def _get_client(self) -> httpx.AsyncClient:
        if not self.configured:
            raise PlatformNotConfiguredError("Platform credentials not configured")
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                auth=httpx.BasicAuth(self.token_id, self.token_secret),
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        client = self._get_client()
        try:
            response = await client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            COLLABORATOR_ERRORS.labels(collaborator="platform", kind="timeout").inc()
            raise PlatformUnavailableError(f"Platform request timed out: {method} {path}") from e
        except httpx.HTTPError as e:
            COLLABORATOR_ERRORS.labels(collaborator="platform", kind="transport").inc()
            raise PlatformUnavailableError(f"Platform request failed: {method} {path}: {e}") from e

        if response.status_code >= 400 and response.status_code != 404:
            COLLABORATOR_ERRORS.labels(collaborator="platform", kind="status").inc()
            raise PlatformUnavailableError(
                f"Platform API error {response.status_code} for {method} {path}"
            )
        return response

    def _data(self, response: httpx.Response) -> Any:
        """The `data` member of a JSON response body."""
        try:
            body = response.json()
        except ValueError as e:
            COLLABORATOR_ERRORS.labels(collaborator="platform", kind="decode").inc()
            raise PlatformUnavailableError(f"Platform returned a non-JSON body ({response.status_code})") from e
        if not isinstance(body, dict) or "data" not in body:
            COLLABORATOR_ERRORS.labels(collaborator="platform", kind="decode").inc()
            raise PlatformUnavailableError("Platform response has no data member")
        return body["data"]

    def _live_stream(self, response: httpx.Response) -> LiveStreamData:
        try:
            return LiveStreamData.model_validate(self._data(response))
        except ValidationError as e:
            COLLABORATOR_ERRORS.labels(collaborator="platform", kind="decode").inc()
            raise PlatformUnavailableError(f"Unexpected live stream shape from platform: {e}") from e

    # --- Live stream reads ---

    async def get_live_stream(self, platform_stream_id: str) -> LiveStreamData:
        response = await self._request("GET", f"{self.LIVE_STREAMS_PATH}/{platform_stream_id}")
        if response.status_code == 404:
            raise PlatformStreamNotFoundError(platform_stream_id)
        return self._live_stream(response)

    async def get_live_stream_status(self, platform_stream_id: str) -> PlatformStatus:
        """Current raw state plus whether the session has produced media yet."""
        stream = await self.get_live_stream(platform_stream_id)
        status = stream.to_platform_status()
        logger.debug(
            f"Platform stream {platform_stream_id}: state={status.raw_state.value}, "
            f"recent_asset={status.has_recent_asset}"
        )
        return status

    async def list_live_streams(self) -> List[Dict[str, Any]]:
        response = await self._request("GET", self.LIVE_STREAMS_PATH)
        if response.status_code == 404:
            return []
        streams = self._data(response)
        if not isinstance(streams, list) or not all(isinstance(s, dict) for s in streams):
            COLLABORATOR_ERRORS.labels(collaborator="platform", kind="decode").inc()
            raise PlatformUnavailableError("Platform live stream list is not a list of objects")
        return streams

    # --- Live stream writes (operator proxy) ---

    async def create_live_stream(self, playback_policy: str = "public") -> LiveStreamData:
        body = {
            "playback_policy": [playback_policy],
            "new_asset_settings": {"playback_policy": [playback_policy]},
        }
        response = await self._request("POST", self.LIVE_STREAMS_PATH, json=body)
        if response.status_code == 404:
            raise PlatformUnavailableError("Platform live-stream endpoint not found")
        stream = self._live_stream(response)
        logger.info(f"Created platform live stream {stream.id}")
        return stream

    async def delete_live_stream(self, platform_stream_id: str) -> None:
        response = await self._request("DELETE", f"{self.LIVE_STREAMS_PATH}/{platform_stream_id}")
        if response.status_code == 404:
            raise PlatformStreamNotFoundError(platform_stream_id)
        logger.info(f"Deleted platform live stream {platform_stream_id}")
