"""Client for the Supabase Storage REST API."""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import httpx

from ..config import Settings
from ..errors import UpstreamServiceError
from ..utils import describe_error_response

logger = logging.getLogger(__name__)


class StorageClient:
    """Uploads slider images and signs their URLs.

    ``http_client`` must use the storage endpoint (``<project>/storage/v1``)
    as its base URL.
    """

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        if not settings.supabase_service_role_key:
            raise ValueError("A service role key is required when initialising StorageClient")
        self._settings = settings
        self._client = http_client

    def _headers(self, extra: dict[str, str] | None = None) -> dict[str, str]:
        key = self._settings.supabase_service_role_key or ""
        headers = {"Authorization": f"Bearer {key}", "apikey": key}
        headers.update(extra or {})
        return headers

    async def ensure_bucket(self, bucket: str, *, public: bool = False) -> bool:
        """Create ``bucket`` when it does not exist yet. Returns True if created."""

        response = await self._send("GET", "/bucket", action="list buckets")
        buckets = response.json()
        if isinstance(buckets, list) and any(
            isinstance(entry, dict) and entry.get("name") == bucket for entry in buckets
        ):
            return False
        await self._send(
            "POST",
            "/bucket",
            action="create bucket",
            json={"id": bucket, "name": bucket, "public": public},
        )
        logger.info("Created storage bucket %s", bucket)
        return True

    async def upload(
        self, bucket: str, filename: str, data: bytes, content_type: str | None
    ) -> None:
        headers = {"x-upsert": "false"}
        if content_type:
            headers["Content-Type"] = content_type
        await self._send(
            "POST",
            f"/object/{bucket}/{quote(filename)}",
            action="upload",
            content=data,
            headers=headers,
        )

    async def create_signed_url(self, bucket: str, filename: str, ttl_seconds: int) -> str:
        response = await self._send(
            "POST",
            f"/object/sign/{bucket}/{quote(filename)}",
            action="sign url",
            json={"expiresIn": ttl_seconds},
        )
        payload = response.json()
        signed_path = payload.get("signedURL") or payload.get("signedUrl")
        if not isinstance(signed_path, str) or not signed_path:
            raise UpstreamServiceError("Storage did not return a signed URL")
        if signed_path.startswith("http"):
            return signed_path
        base = str(self._client.base_url).rstrip("/")
        return f"{base}/{signed_path.lstrip('/')}"

    async def remove(self, bucket: str, filenames: list[str]) -> None:
        if not filenames:
            return
        await self._send(
            "DELETE",
            f"/object/{bucket}",
            action="remove",
            json={"prefixes": filenames},
        )

    async def _send(
        self,
        method: str,
        path: str,
        *,
        action: str,
        headers: dict[str, str] | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        try:
            response = await self._client.request(
                method, path, headers=self._headers(headers), **kwargs
            )
        except httpx.HTTPError as exc:
            logger.warning("Storage %s failed: %s", action, exc)
            raise UpstreamServiceError(f"Storage {action} failed: {exc}") from exc
        if response.status_code >= 400:
            message = describe_error_response(response)
            logger.warning("Storage %s rejected (%s): %s", action, response.status_code, message)
            raise UpstreamServiceError(message)
        return response

