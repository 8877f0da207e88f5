"""Pytest configuration and test helpers."""

from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest

# Ensure the application package is importable when running tests without an
# editable install. This mirrors the expected runtime layout where ``app`` sits
# at the project root.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.auth import AccessGate, AccessPolicy  # noqa: E402
from app.config import Settings  # noqa: E402
from app.errors import UpstreamServiceError  # noqa: E402
from app.kv_store import InMemoryKeyValueStore  # noqa: E402
from app.models import AuthUser  # noqa: E402
from app.repository import CatalogRepository  # noqa: E402
from app.services.catalog import CatalogService  # noqa: E402

SUPER_ADMIN_EMAIL = "owner@example.com"
FROZEN_NOW = datetime(2024, 5, 15, 12, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now += timedelta(**delta)


class FakeAuthProvider:
    """In-memory stand-in for the hosted auth provider."""

    def __init__(self, users: list[AuthUser], tokens: dict[str, str]):
        self.users: dict[str, AuthUser] = {user.id: user for user in users}
        self.tokens = dict(tokens)
        self.passwords: dict[str, str] = {}

    async def get_user(self, access_token: str) -> AuthUser | None:
        user_id = self.tokens.get(access_token)
        return self.users.get(user_id) if user_id else None

    async def get_user_by_id(self, user_id: str) -> AuthUser | None:
        return self.users.get(user_id)

    async def list_users(self) -> list[AuthUser]:
        return list(self.users.values())

    async def create_user(
        self, email: str, password: str, user_metadata: dict[str, Any] | None = None
    ) -> AuthUser:
        if any(user.email == email for user in self.users.values()):
            raise UpstreamServiceError("User already registered", status_code=400)
        user = AuthUser(
            id=f"user-{len(self.users) + 1}", email=email, user_metadata=user_metadata or {}
        )
        self.users[user.id] = user
        self.passwords[user.id] = password
        return user

    async def update_user_by_id(self, user_id: str, attributes: dict[str, Any]) -> AuthUser:
        user = self.users[user_id]
        if "user_metadata" in attributes:
            user = user.model_copy(update={"user_metadata": attributes["user_metadata"]})
            self.users[user_id] = user
        if "password" in attributes:
            self.passwords[user_id] = attributes["password"]
        return user

    async def delete_user(self, user_id: str) -> None:
        self.users.pop(user_id, None)


class FakeStorage:
    """Records uploads and removals instead of talking to object storage."""

    def __init__(self) -> None:
        self.uploads: dict[tuple[str, str], tuple[bytes, str | None]] = {}
        self.removed: list[tuple[str, str]] = []

    async def upload(
        self, bucket: str, filename: str, data: bytes, content_type: str | None
    ) -> None:
        self.uploads[(bucket, filename)] = (data, content_type)

    async def create_signed_url(self, bucket: str, filename: str, ttl_seconds: int) -> str:
        return f"https://storage.example.com/{bucket}/{filename}?ttl={ttl_seconds}"

    async def remove(self, bucket: str, filenames: list[str]) -> None:
        self.removed.extend((bucket, name) for name in filenames)


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO tests to run on asyncio without requiring trio."""

    return "asyncio"


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, SUPER_ADMIN_EMAIL=SUPER_ADMIN_EMAIL)  # type: ignore[call-arg]


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(FROZEN_NOW)


@pytest.fixture
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def repository(store: InMemoryKeyValueStore) -> CatalogRepository:
    return CatalogRepository(store)


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def catalog_service(
    settings: Settings,
    repository: CatalogRepository,
    storage: FakeStorage,
    clock: FrozenClock,
) -> CatalogService:
    return CatalogService(settings, repository, storage, clock=clock)  # type: ignore[arg-type]


@pytest.fixture
def auth_provider() -> FakeAuthProvider:
    users = [
        AuthUser(id="owner", email=SUPER_ADMIN_EMAIL, user_metadata={"name": "Owner"}),
        AuthUser(id="editor", email="editor@example.com", user_metadata={"isAdmin": True}),
        AuthUser(id="viewer", email="viewer@example.com", user_metadata={"name": "Viewer"}),
    ]
    tokens = {
        "owner-token": "owner",
        "editor-token": "editor",
        "viewer-token": "viewer",
    }
    return FakeAuthProvider(users, tokens)


@pytest.fixture
def access_policy() -> AccessPolicy:
    return AccessPolicy(SUPER_ADMIN_EMAIL)


@pytest.fixture
def access_gate(auth_provider: FakeAuthProvider, access_policy: AccessPolicy) -> AccessGate:
    return AccessGate(auth_provider, access_policy)
