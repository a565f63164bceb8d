"""
Organization API endpoints.

GET    /api/v1/orgs        — List orgs of the authenticated user
POST   /api/v1/orgs        — Create a new org (creator becomes admin)
POST   /api/v1/orgs/join   — Join an org by join code
GET    /api/v1/orgs/{orgId} — Get org details (members only)
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends

from foundly.core.auth import get_current_user_id
from foundly.core.errors import ForbiddenError
from foundly.core.store import DocumentStore, get_store
from foundly.models.organization import MEMBER_REF, Organization
from foundly.services import join as join_service
from foundly.services import organizations as org_service
from foundly.services.memberships import find_member_entry
from foundly_shared.schemas.common import coerce_role
from foundly_shared.schemas.memberships import JoinRequest, JoinResponse
from foundly_shared.schemas.organizations import (
    MemberResponse,
    OrgCreateRequest,
    OrgListResponse,
    OrgResponse,
)

router = APIRouter()


def org_response(org: Organization) -> OrgResponse:
    return OrgResponse(
        id=org.id,
        name=org.name,
        description=org.description,
        category=org.category,
        location=org.location,
        website=org.website,
        join_code=org.join_code,
        created_by=org.created_by,
        verified=org.verified,
        member_count=org.member_count,
        members=[
            MemberResponse(
                user=str(m.get(MEMBER_REF)),
                role=coerce_role(m.get("role")),
                joined_at=m.get("joinedAt"),
            )
            for m in org.members or []
        ],
        created_at=org.created_at,
        updated_at=org.updated_at,
    )


@router.get("", response_model=OrgListResponse, tags=["Organizations"])
async def list_orgs(
    user_id: uuid.UUID = Depends(get_current_user_id),
    store: DocumentStore = Depends(get_store),
):
    """List orgs the authenticated user belongs to."""
    items, current = await org_service.list_user_orgs(store, user_id)
    return OrgListResponse(data=items, current_organization=current)


@router.post("", response_model=OrgResponse, status_code=201, tags=["Organizations"])
async def create_org(
    body: OrgCreateRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    store: DocumentStore = Depends(get_store),
):
    """Create a new organization. The creator becomes an admin."""
    org = await org_service.create_org(store, user_id, body)
    return org_response(org)


@router.post("/join", response_model=JoinResponse, tags=["Organizations"])
async def join_org(
    body: JoinRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    store: DocumentStore = Depends(get_store),
):
    """Join by code. Joining twice is not an error."""
    result = await join_service.join(store, user_id, body.join_code)
    return JoinResponse(
        kind=result.kind,
        message=result.message,
        repaired=result.repaired,
        organization=org_response(result.organization),
    )


@router.get("/{org_id}", response_model=OrgResponse, tags=["Organizations"])
async def get_org(
    org_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    store: DocumentStore = Depends(get_store),
):
    """Get org details. Only members may read them."""
    org = await org_service.get_org(store, org_id)
    if find_member_entry(org, user_id) is None:
        raise ForbiddenError("You are not a member of this organization")
    return org_response(org)
