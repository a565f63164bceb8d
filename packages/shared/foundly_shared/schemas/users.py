"""User schemas."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from .common import Role


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class UserCreateRequest(BaseModel):
    email: EmailStr
    name: str = Field(min_length=1, max_length=200)


class SwitchOrganizationRequest(BaseModel):
    """Select the organization the user is viewing."""
    model_config = ConfigDict(populate_by_name=True)

    organization_id: uuid.UUID = Field(..., alias="organizationId")


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class MembershipResponse(BaseModel):
    organization_id: str
    role: Role = Role.MEMBER
    joined_at: Optional[str] = None
    is_active: bool = True


class UserResponse(BaseModel):
    """Single user response."""
    id: uuid.UUID
    email: str
    name: str
    current_organization: Optional[uuid.UUID] = None
    organizations: List[MembershipResponse] = []
    created_at: datetime
