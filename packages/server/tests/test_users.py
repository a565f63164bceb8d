"""
Tests for the user service.
"""

from __future__ import annotations

import uuid

import pytest

from foundly.core.errors import ConflictError, ForbiddenError, NotFoundError
from foundly.models.user import membership_entry
from foundly.services import users as user_service


class TestCreateUser:
    @pytest.mark.asyncio
    async def test_email_is_normalized(self, store):
        user = await user_service.create_user(store, "  Ana@Example.ORG ", " Ana ")
        assert user.email == "ana@example.org"
        assert user.name == "Ana"
        assert user.organizations == []
        assert user.current_organization is None

    @pytest.mark.asyncio
    async def test_duplicate_email(self, store):
        await user_service.create_user(store, "ana@example.org", "Ana")
        with pytest.raises(ConflictError):
            await user_service.create_user(store, "ANA@example.org", "Other Ana")


class TestGetUser:
    @pytest.mark.asyncio
    async def test_missing(self, store):
        with pytest.raises(NotFoundError):
            await user_service.get_user(store, uuid.uuid4())


class TestSwitchCurrentOrganization:
    @pytest.mark.asyncio
    async def test_switch_to_member_org(self, store, make_user, make_org, link):
        user = await make_user()
        org = await make_org()
        await link(user, org)

        updated = await user_service.switch_current_organization(store, user.id, org.id)

        assert updated.current_organization == org.id
        assert (await store.find_user_by_id(user.id)).current_organization == org.id

    @pytest.mark.asyncio
    async def test_non_member_forbidden(self, store, make_user, make_org):
        user = await make_user()
        org = await make_org()
        with pytest.raises(ForbiddenError):
            await user_service.switch_current_organization(store, user.id, org.id)

    @pytest.mark.asyncio
    async def test_inactive_membership_forbidden(self, store, make_user, make_org):
        org = await make_org()
        user = await make_user(organizations=[membership_entry(org.id, is_active=False)])
        with pytest.raises(ForbiddenError):
            await user_service.switch_current_organization(store, user.id, org.id)

    @pytest.mark.asyncio
    async def test_deleted_org(self, store, make_user):
        ghost = uuid.uuid4()
        user = await make_user(organizations=[membership_entry(ghost)])
        with pytest.raises(NotFoundError):
            await user_service.switch_current_organization(store, user.id, ghost)
