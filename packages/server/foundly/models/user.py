"""User document."""

from typing import Any, Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from foundly_shared.schemas.common import Role

from .base import JSONDocument, TimestampMixin, UUIDMixin, VersionMixin, utcnow_iso

# Key of the organization reference inside a membership entry
ORG_REF = "organizationId"


class User(UUIDMixin, TimestampMixin, VersionMixin, SQLModel, table=True):
    __tablename__ = "users"

    email: str = Field(nullable=False, index=True)  # lowercased
    name: str = Field(nullable=False)
    organizations: list[dict[str, Any]] = Field(
        default_factory=list,
        sa_column=sa.Column(JSONDocument, nullable=False),
    )
    # Weak reference: no foreign key, checked by the reconciler
    current_organization: Optional[uuid.UUID] = None


def membership_entry(
    org_id: uuid.UUID | str,
    role: Role = Role.MEMBER,
    joined_at: Optional[str] = None,
    is_active: bool = True,
) -> dict[str, Any]:
    return {
        ORG_REF: str(org_id),
        "role": Role(role).value,
        "joinedAt": joined_at or utcnow_iso(),
        "isActive": is_active,
    }
