"""
User API endpoints.

GET    /api/v1/users/me                       — Current user's profile
PUT    /api/v1/users/me/current-organization  — Select the org being viewed
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends

from foundly.core.auth import get_current_user_id
from foundly.core.store import DocumentStore, get_store
from foundly.models.user import ORG_REF, User
from foundly.services import users as user_service
from foundly_shared.schemas.common import coerce_role
from foundly_shared.schemas.users import (
    MembershipResponse,
    SwitchOrganizationRequest,
    UserResponse,
)

router = APIRouter()


def user_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        email=user.email,
        name=user.name,
        current_organization=user.current_organization,
        organizations=[
            MembershipResponse(
                organization_id=str(e.get(ORG_REF)),
                role=coerce_role(e.get("role")),
                joined_at=e.get("joinedAt"),
                is_active=e.get("isActive", True),
            )
            for e in user.organizations or []
        ],
        created_at=user.created_at,
    )


@router.get("/me", response_model=UserResponse, tags=["Users"])
async def get_me(
    user_id: uuid.UUID = Depends(get_current_user_id),
    store: DocumentStore = Depends(get_store),
):
    user = await user_service.get_user(store, user_id)
    return user_response(user)


@router.put("/me/current-organization", response_model=UserResponse, tags=["Users"])
async def switch_current_organization(
    body: SwitchOrganizationRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    store: DocumentStore = Depends(get_store),
):
    """Switch the organization the user is viewing (must be an active member)."""
    user = await user_service.switch_current_organization(store, user_id, body.organization_id)
    return user_response(user)
