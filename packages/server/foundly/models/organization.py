"""Organization document."""

from typing import Any, Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from foundly_shared.schemas.common import Role

from .base import JSONDocument, TimestampMixin, UUIDMixin, VersionMixin, utcnow_iso

# Key of the user reference inside a member entry
MEMBER_REF = "user"


class Organization(UUIDMixin, TimestampMixin, VersionMixin, SQLModel, table=True):
    __tablename__ = "organizations"

    name: str = Field(nullable=False, index=True)
    description: Optional[str] = None
    category: Optional[str] = None
    location: Optional[str] = None
    website: Optional[str] = None
    join_code: str = Field(nullable=False, unique=True, index=True)  # stored uppercased
    created_by: Optional[uuid.UUID] = Field(default=None, index=True)
    verified: bool = Field(default=False, nullable=False)
    members: list[dict[str, Any]] = Field(
        default_factory=list,
        sa_column=sa.Column(JSONDocument, nullable=False),
    )
    member_count: int = Field(default=0, nullable=False)  # cache of len(members)


def member_entry(
    user_id: uuid.UUID | str,
    role: Role = Role.MEMBER,
    joined_at: Optional[str] = None,
) -> dict[str, Any]:
    return {
        MEMBER_REF: str(user_id),
        "role": Role(role).value,
        "joinedAt": joined_at or utcnow_iso(),
    }
