"""Account management on top of the auth provider."""

from __future__ import annotations

import logging

from ..auth import AccessPolicy, AuthProvider
from ..errors import InvalidRequestError, NotFoundError
from ..models import AuthUser

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, provider: AuthProvider, policy: AccessPolicy):
        self._provider = provider
        self._policy = policy

    async def signup(self, email: str, password: str, name: str | None) -> AuthUser:
        """Create a confirmed account; no confirmation email is sent."""

        if not email or not password:
            raise InvalidRequestError("Email and password are required")
        user = await self._provider.create_user(email, password, {"name": name})
        logger.info("Registered user %s", user.id)
        return user

    async def update_password(self, user: AuthUser, new_password: str) -> None:
        if not new_password:
            raise InvalidRequestError("A new password is required")
        await self._provider.update_user_by_id(user.id, {"password": new_password})

    async def list_users(self) -> list[AuthUser]:
        return await self._provider.list_users()

    async def delete_user(self, user_id: str) -> None:
        target = await self._require_user(user_id)
        self._policy.ensure_mutable(target)
        await self._provider.delete_user(user_id)
        logger.info("Deleted user %s", user_id)

    async def set_admin(self, user_id: str, is_admin: bool) -> AuthUser:
        """Grant or revoke the admin flag, keeping the rest of the metadata."""

        target = await self._require_user(user_id)
        self._policy.ensure_mutable(target)
        metadata = {**target.user_metadata, "isAdmin": is_admin}
        updated = await self._provider.update_user_by_id(user_id, {"user_metadata": metadata})
        logger.info("Set admin=%s on user %s", is_admin, user_id)
        return updated

    async def _require_user(self, user_id: str) -> AuthUser:
        target = await self._provider.get_user_by_id(user_id)
        if target is None:
            raise NotFoundError("User not found")
        return target
