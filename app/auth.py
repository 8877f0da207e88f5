"""Bearer-token authentication and role-based access checks."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from .errors import ForbiddenError, UnauthorizedError
from .models import AuthUser


class AuthProvider(Protocol):
    """Operations the catalog needs from the hosted auth provider."""

    async def get_user(self, access_token: str) -> AuthUser | None:
        ...

    async def get_user_by_id(self, user_id: str) -> AuthUser | None:
        ...

    async def list_users(self) -> list[AuthUser]:
        ...

    async def create_user(
        self, email: str, password: str, user_metadata: dict[str, Any] | None = None
    ) -> AuthUser:
        ...

    async def update_user_by_id(self, user_id: str, attributes: dict[str, Any]) -> AuthUser:
        ...

    async def delete_user(self, user_id: str) -> None:
        ...


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


@dataclass(slots=True)
class Principal:
    """An authenticated user together with the role derived for them."""

    user: AuthUser
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role in {Role.ADMIN, Role.SUPER_ADMIN}


class AccessPolicy:
    """Derives roles from user records.

    The configured super admin is always an admin and can never be demoted or
    deleted; everyone else is an admin only while ``user_metadata.isAdmin`` is
    exactly ``True``.
    """

    def __init__(self, super_admin_email: str | None):
        self._super_admin_email = (super_admin_email or "").strip().lower() or None

    def is_super_admin(self, user: AuthUser) -> bool:
        if self._super_admin_email is None or not user.email:
            return False
        return user.email.strip().lower() == self._super_admin_email

    def role_for(self, user: AuthUser) -> Role:
        if self.is_super_admin(user):
            return Role.SUPER_ADMIN
        if user.admin_flag:
            return Role.ADMIN
        return Role.USER

    def ensure_mutable(self, target: AuthUser) -> None:
        if self.is_super_admin(target):
            raise ForbiddenError("The main administrator cannot be modified or deleted")


def bearer_token(authorization: str | None) -> str | None:
    """Return the token of an ``Authorization: Bearer <token>`` header."""

    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer":
        return None
    token = token.strip()
    return token or None


class AccessGate:
    """Resolves request credentials into principals and enforces roles."""

    def __init__(self, provider: AuthProvider, policy: AccessPolicy):
        self._provider = provider
        self._policy = policy

    @property
    def policy(self) -> AccessPolicy:
        return self._policy

    async def authenticate(self, authorization: str | None) -> Principal | None:
        token = bearer_token(authorization)
        if token is None:
            return None
        user = await self._provider.get_user(token)
        if user is None:
            return None
        return Principal(user=user, role=self._policy.role_for(user))

    async def require_user(self, authorization: str | None) -> Principal:
        principal = await self.authenticate(authorization)
        if principal is None:
            raise UnauthorizedError()
        return principal

    async def require_admin(self, authorization: str | None) -> Principal:
        principal = await self.require_user(authorization)
        if not principal.is_admin:
            raise ForbiddenError()
        return principal
