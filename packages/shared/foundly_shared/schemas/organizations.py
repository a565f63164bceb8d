"""
Organization-related Pydantic schemas shared between server and clients.

Covers: Org create request, org detail/list responses and member entries.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .common import Role


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class OrgCreateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1, max_length=100, description="Organization display name")
    description: Optional[str] = Field(None, max_length=2000)
    category: Optional[str] = Field(None, max_length=100)
    location: Optional[str] = Field(None, max_length=200)
    website: Optional[str] = Field(None, max_length=300)
    custom_join_code: Optional[str] = Field(
        None,
        alias="customJoinCode",
        max_length=64,
        description="Requested join code; generated when omitted",
    )


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class MemberResponse(BaseModel):
    user: str
    role: Role = Role.MEMBER
    joined_at: Optional[str] = None


class OrgResponse(BaseModel):
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    location: Optional[str] = None
    website: Optional[str] = None
    join_code: str
    created_by: Optional[uuid.UUID] = None
    verified: bool = False
    member_count: int
    members: list[MemberResponse] = []
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class OrgListItem(BaseModel):
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    join_code: str
    role: Role  # the requesting user's role in this org
    joined_at: Optional[str] = None
    is_current: bool = False


class OrgListResponse(BaseModel):
    data: list[OrgListItem]
    current_organization: Optional[uuid.UUID] = None
