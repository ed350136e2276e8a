# backend/streamsite/services/cms_client.py

import json
import logging
from typing import Any, Dict, List, Optional

import httpx

from ..core.config import settings
from ..core.exceptions import CmsNotConfiguredError, CmsUnavailableError
from ..core.metrics import COLLABORATOR_ERRORS
from ..models.stream import StreamRecord, StreamStatus
from ..schemas.cms import record_from_cms

logger = logging.getLogger(__name__)

STREAM_PROPS = "id,slug,title,metadata,created_at"


class CmsClient:
    """
    Declared-state store backed by the headless CMS bucket API.

    Lookups return None when nothing matches; transport failures, rejected
    credentials and server errors raise CmsUnavailableError so callers can
    tell "absent" from "could not ask".
    """

    def __init__(
        self,
        bucket_slug: Optional[str] = None,
        read_key: Optional[str] = None,
        write_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.bucket_slug = bucket_slug if bucket_slug is not None else settings.COSMIC_BUCKET_SLUG
        self.read_key = read_key if read_key is not None else settings.COSMIC_READ_KEY
        self.write_key = write_key if write_key is not None else settings.COSMIC_WRITE_KEY
        self.base_url = base_url or settings.COSMIC_API_BASE_URL
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECONDS
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def configured(self) -> bool:
        return bool(self.bucket_slug and self.read_key)

    def _get_client(self) -> httpx.AsyncClient:
        if not self.configured:
            raise CmsNotConfiguredError("CMS bucket slug or read key not configured")
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=f"{self.base_url}/buckets/{self.bucket_slug}",
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        client = self._get_client()
        try:
            response = await client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            COLLABORATOR_ERRORS.labels(collaborator="cms", kind="timeout").inc()
            raise CmsUnavailableError(f"CMS request timed out: {method} {path}") from e
        except httpx.HTTPError as e:
            COLLABORATOR_ERRORS.labels(collaborator="cms", kind="transport").inc()
            raise CmsUnavailableError(f"CMS request failed: {method} {path}: {e}") from e

        if response.status_code >= 400 and response.status_code != 404:
            COLLABORATOR_ERRORS.labels(collaborator="cms", kind="status").inc()
            raise CmsUnavailableError(f"CMS error {response.status_code} for {method} {path}")
        return response

    def _body(self, response: httpx.Response) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError as e:
            COLLABORATOR_ERRORS.labels(collaborator="cms", kind="decode").inc()
            raise CmsUnavailableError(f"CMS returned a non-JSON body ({response.status_code})") from e
        if not isinstance(body, dict):
            COLLABORATOR_ERRORS.labels(collaborator="cms", kind="decode").inc()
            raise CmsUnavailableError("CMS response body is not an object")
        return body

    async def _find_streams(self, query: Dict[str, Any], sort: Optional[str] = None) -> List[StreamRecord]:
        params = {
            "query": json.dumps({"type": "streams", **query}),
            "read_key": self.read_key,
            "props": STREAM_PROPS,
            "depth": 1,
        }
        if sort:
            params["sort"] = sort
        response = await self._send("GET", "/objects", params=params)
        # The bucket API answers 404 when a query matches nothing
        if response.status_code == 404:
            return []

        records = []
        objects = self._body(response).get("objects") or []
        if not isinstance(objects, list):
            COLLABORATOR_ERRORS.labels(collaborator="cms", kind="decode").inc()
            raise CmsUnavailableError("CMS objects member is not a list")
        for obj in objects:
            record = record_from_cms(obj)
            if record is not None:
                records.append(record)
        return records

    async def _find_one(self, query: Dict[str, Any]) -> Optional[StreamRecord]:
        records = await self._find_streams(query)
        return records[0] if records else None

    async def find_stream_by_platform_id(self, platform_stream_id: str) -> Optional[StreamRecord]:
        return await self._find_one({"metadata.mux_stream_id": platform_stream_id})

    async def find_stream_by_playback_id(self, playback_id: str) -> Optional[StreamRecord]:
        return await self._find_one({"metadata.playback_id": playback_id})

    async def get_current_stream(self) -> Optional[StreamRecord]:
        """The live stream if one is declared, otherwise the most recent stream."""
        streams = await self._find_streams({}, sort="-created_at")
        for stream in streams:
            if stream.declared_status == StreamStatus.LIVE:
                return stream
        return streams[0] if streams else None

    async def update_stream_status(self, stream_id: str, status: StreamStatus) -> Optional[StreamRecord]:
        """
        Set only the status metafield of one stream.

        Returns the updated record, or None when the stream no longer exists.
        """
        if not self.write_key:
            raise CmsNotConfiguredError("CMS write key not configured")

        response = await self._send(
            "PATCH",
            f"/objects/{stream_id}",
            json={"metadata": {"status": status.value}},
            headers={"Authorization": f"Bearer {self.write_key}"},
        )
        if response.status_code == 404:
            logger.warning(f"Stream {stream_id} not found in CMS, status not updated")
            return None

        logger.info(f"Updated stream {stream_id} status to {status.value}")
        obj = self._body(response).get("object")
        return record_from_cms(obj) if obj else None
