from __future__ import annotations

import pytest

from app.auth import AccessPolicy
from app.errors import ForbiddenError, InvalidRequestError, NotFoundError
from app.services.users import UserService


@pytest.mark.anyio("asyncio")
async def test_signup_creates_confirmed_user_with_name(
    auth_provider, access_policy: AccessPolicy
) -> None:
    service = UserService(auth_provider, access_policy)

    user = await service.signup("new@example.com", "secret", "New Person")

    assert user.user_metadata == {"name": "New Person"}
    assert auth_provider.passwords[user.id] == "secret"

    with pytest.raises(InvalidRequestError):
        await service.signup("", "secret", None)


@pytest.mark.anyio("asyncio")
async def test_set_admin_merges_metadata(auth_provider, access_policy: AccessPolicy) -> None:
    service = UserService(auth_provider, access_policy)

    updated = await service.set_admin("viewer", True)

    assert updated.user_metadata == {"name": "Viewer", "isAdmin": True}
    assert auth_provider.users["viewer"].admin_flag is True

    revoked = await service.set_admin("viewer", False)
    assert revoked.admin_flag is False


@pytest.mark.anyio("asyncio")
async def test_super_admin_cannot_be_modified(
    auth_provider, access_policy: AccessPolicy
) -> None:
    service = UserService(auth_provider, access_policy)

    with pytest.raises(ForbiddenError):
        await service.set_admin("owner", False)
    with pytest.raises(ForbiddenError):
        await service.delete_user("owner")

    assert "owner" in auth_provider.users


@pytest.mark.anyio("asyncio")
async def test_delete_user(auth_provider, access_policy: AccessPolicy) -> None:
    service = UserService(auth_provider, access_policy)

    await service.delete_user("editor")

    assert "editor" not in auth_provider.users
    with pytest.raises(NotFoundError, match="User not found"):
        await service.delete_user("editor")


@pytest.mark.anyio("asyncio")
async def test_update_password(auth_provider, access_policy: AccessPolicy) -> None:
    service = UserService(auth_provider, access_policy)
    viewer = auth_provider.users["viewer"]

    await service.update_password(viewer, "changed")

    assert auth_provider.passwords["viewer"] == "changed"
    with pytest.raises(InvalidRequestError):
        await service.update_password(viewer, "")
