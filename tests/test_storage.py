"""Tests for the Supabase Storage client."""

from __future__ import annotations

import json

import httpx
import pytest

from app.config import Settings
from app.errors import UpstreamServiceError
from app.services.storage import StorageClient

BASE_URL = "https://project.supabase.co/storage/v1"


def build_settings() -> Settings:
    return Settings(
        _env_file=None,
        SUPABASE_URL="https://project.supabase.co",
        SUPABASE_SERVICE_ROLE_KEY="service-key",
    )  # type: ignore[call-arg]


@pytest.mark.anyio("asyncio")
async def test_upload_and_sign_returns_absolute_url() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.url.path.startswith("/storage/v1/object/sign/"):
            return httpx.Response(
                200, json={"signedURL": "/object/sign/slider/1-a%20b.png?token=abc"}
            )
        return httpx.Response(200, json={"Key": "slider/1-a b.png"})

    async with httpx.AsyncClient(
        transport=httpx.MockTransport(handler), base_url=BASE_URL
    ) as http_client:
        client = StorageClient(build_settings(), http_client)

        await client.upload("slider", "1-a b.png", b"bytes", "image/png")
        url = await client.create_signed_url("slider", "1-a b.png", 3600)

    upload, sign = requests
    assert upload.method == "POST"
    assert upload.url.raw_path == b"/storage/v1/object/slider/1-a%20b.png"
    assert upload.headers["Content-Type"] == "image/png"
    assert upload.headers["x-upsert"] == "false"
    assert upload.headers["Authorization"] == "Bearer service-key"
    assert upload.content == b"bytes"
    assert json.loads(sign.content) == {"expiresIn": 3600}
    assert url == f"{BASE_URL}/object/sign/slider/1-a%20b.png?token=abc"


@pytest.mark.anyio("asyncio")
async def test_ensure_bucket_only_creates_missing_bucket() -> None:
    created: list[dict] = []
    buckets = [{"id": "other", "name": "other"}]

    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            return httpx.Response(200, json=buckets)
        payload = json.loads(request.content)
        created.append(payload)
        buckets.append(payload)
        return httpx.Response(200, json={"name": payload["name"]})

    async with httpx.AsyncClient(
        transport=httpx.MockTransport(handler), base_url=BASE_URL
    ) as http_client:
        client = StorageClient(build_settings(), http_client)

        assert await client.ensure_bucket("slider") is True
        assert await client.ensure_bucket("slider") is False

    assert created == [{"id": "slider", "name": "slider", "public": False}]


@pytest.mark.anyio("asyncio")
async def test_remove_sends_prefixes_and_reports_failures() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.method == "DELETE":
            return httpx.Response(200, json=[])
        return httpx.Response(400, json={"message": "The resource already exists"})

    async with httpx.AsyncClient(
        transport=httpx.MockTransport(handler), base_url=BASE_URL
    ) as http_client:
        client = StorageClient(build_settings(), http_client)

        await client.remove("slider", ["1-a.png"])
        await client.remove("slider", [])
        with pytest.raises(UpstreamServiceError, match="already exists"):
            await client.upload("slider", "1-a.png", b"", None)

    assert len(requests) == 2
    assert requests[0].url.path == "/storage/v1/object/slider"
    assert json.loads(requests[0].content) == {"prefixes": ["1-a.png"]}
