"""Client for the Supabase GoTrue auth REST API."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..config import Settings
from ..errors import UpstreamServiceError
from ..models import AuthUser
from ..utils import describe_error_response

logger = logging.getLogger(__name__)


class SupabaseAuthClient:
    """Resolves access tokens and performs admin user management.

    ``http_client`` must use the auth endpoint (``<project>/auth/v1``) as its
    base URL. Admin calls authenticate with the service role key.
    """

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        if not settings.supabase_service_role_key:
            raise ValueError(
                "A service role key is required when initialising SupabaseAuthClient"
            )
        self._settings = settings
        self._client = http_client

    def _headers(self, bearer: str | None = None) -> dict[str, str]:
        key = self._settings.supabase_service_role_key or ""
        return {"apikey": key, "Authorization": f"Bearer {bearer or key}"}

    async def get_user(self, access_token: str) -> AuthUser | None:
        """Return the user owning ``access_token`` or ``None`` when it is invalid."""

        if not access_token:
            return None
        response = await self._send(
            "GET", "/user", action="get user", headers=self._headers(access_token), check=False
        )
        if response.status_code in {401, 403, 404}:
            return None
        self._raise_for_status(response, "get user")
        return AuthUser.model_validate(response.json())

    async def get_user_by_id(self, user_id: str) -> AuthUser | None:
        response = await self._send(
            "GET", f"/admin/users/{user_id}", action="get user by id", check=False
        )
        if response.status_code == 404:
            return None
        self._raise_for_status(response, "get user by id")
        return AuthUser.model_validate(response.json())

    async def list_users(self, *, page: int = 1, per_page: int = 1000) -> list[AuthUser]:
        response = await self._send(
            "GET",
            "/admin/users",
            action="list users",
            params={"page": page, "per_page": per_page},
        )
        payload = response.json()
        raw_users = payload.get("users") if isinstance(payload, dict) else payload
        if not isinstance(raw_users, list):
            return []
        return [AuthUser.model_validate(entry) for entry in raw_users if isinstance(entry, dict)]

    async def create_user(
        self,
        email: str,
        password: str,
        user_metadata: dict[str, Any] | None = None,
        *,
        email_confirm: bool = True,
    ) -> AuthUser:
        response = await self._send(
            "POST",
            "/admin/users",
            action="create user",
            json={
                "email": email,
                "password": password,
                "user_metadata": user_metadata or {},
                "email_confirm": email_confirm,
            },
        )
        return AuthUser.model_validate(response.json())

    async def update_user_by_id(self, user_id: str, attributes: dict[str, Any]) -> AuthUser:
        response = await self._send(
            "PUT", f"/admin/users/{user_id}", action="update user", json=attributes
        )
        return AuthUser.model_validate(response.json())

    async def delete_user(self, user_id: str) -> None:
        await self._send("DELETE", f"/admin/users/{user_id}", action="delete user")

    async def _send(
        self,
        method: str,
        path: str,
        *,
        action: str,
        headers: dict[str, str] | None = None,
        check: bool = True,
        **kwargs: Any,
    ) -> httpx.Response:
        try:
            response = await self._client.request(
                method, path, headers=headers or self._headers(), **kwargs
            )
        except httpx.HTTPError as exc:
            logger.warning("Auth provider %s failed: %s", action, exc)
            raise UpstreamServiceError(f"Auth provider {action} failed: {exc}") from exc
        if check:
            self._raise_for_status(response, action)
        return response

    @staticmethod
    def _raise_for_status(response: httpx.Response, action: str) -> None:
        if response.status_code < 400:
            return
        message = describe_error_response(response)
        logger.warning(
            "Auth provider rejected %s (%s): %s", action, response.status_code, message
        )
        # Client-side rejections (duplicate email, weak password) surface as 400.
        status = 400 if 400 <= response.status_code < 500 else 500
        raise UpstreamServiceError(message, status_code=status)
