"""
Organization service — creation with unique join codes, membership listing.
"""

from __future__ import annotations

import re
import secrets
import string
import uuid
from typing import Optional

import structlog

from foundly.core.config import get_settings
from foundly.core.errors import ConflictError, InvalidInputError, NotFoundError
from foundly.core.store import ArrayAppend, DocumentPatch, DocumentStore
from foundly.models.base import utcnow_iso
from foundly.models.organization import Organization, member_entry
from foundly.models.user import ORG_REF, membership_entry
from foundly.services.join import normalize_join_code
from foundly_shared.schemas.common import Role, coerce_role
from foundly_shared.schemas.organizations import OrgCreateRequest, OrgListItem

log = structlog.get_logger()

JOIN_CODE_ALPHABET = string.ascii_uppercase + string.digits
JOIN_CODE_PATTERN = re.compile(r"^[A-Z0-9]{4,12}$")


def generate_join_code(length: Optional[int] = None) -> str:
    """Random uppercase alphanumeric join code."""
    length = length or get_settings().join_code_length
    return "".join(secrets.choice(JOIN_CODE_ALPHABET) for _ in range(length))


def _validate_custom_code(raw: str) -> str:
    code = normalize_join_code(raw)
    if not JOIN_CODE_PATTERN.match(code):
        raise InvalidInputError("Join code must be 4-12 letters or digits")
    return code


async def _insert_with_code(
    store: DocumentStore, org: Organization, custom_code: Optional[str]
) -> Organization:
    """Insert ``org`` under a join code no other organization holds."""
    settings = get_settings()

    if custom_code is not None:
        if await store.find_org_by_join_code(custom_code) is not None:
            raise ConflictError("Join code already in use")
        org.join_code = custom_code
        return await store.insert_org(org)

    for attempt in range(1, settings.join_code_max_attempts + 1):
        code = generate_join_code(settings.join_code_length)
        if await store.find_org_by_join_code(code) is not None:
            log.info("org.join_code_collision", attempt=attempt)
            continue
        org.join_code = code
        try:
            return await store.insert_org(org)
        except ConflictError:
            # Lost the race to a concurrent creator; the unique index caught it
            log.info("org.join_code_collision", attempt=attempt)
    raise ConflictError("Could not allocate a unique join code")


async def create_org(
    store: DocumentStore, creator_id: uuid.UUID | str, req: OrgCreateRequest
) -> Organization:
    """Create an org; the creator joins it as admin and selects it."""
    custom_code = (
        _validate_custom_code(req.custom_join_code)
        if req.custom_join_code is not None
        else None
    )

    creator = await store.find_user_by_id(creator_id)
    if creator is None:
        raise NotFoundError("User not found")

    joined_at = utcnow_iso()
    org = Organization(
        name=req.name.strip(),
        description=req.description,
        category=req.category,
        location=req.location,
        website=req.website,
        join_code="",
        created_by=creator.id,
        members=[member_entry(creator.id, Role.ADMIN, joined_at)],
        member_count=1,
    )
    org = await _insert_with_code(store, org, custom_code)

    await store.update_user(
        creator.id,
        DocumentPatch(
            set_fields={"current_organization": org.id},
            appends=[
                ArrayAppend(
                    field="organizations",
                    entry=membership_entry(org.id, Role.ADMIN, joined_at),
                    unique_key=ORG_REF,
                )
            ],
        ),
    )

    log.info("org.created", org_id=str(org.id), join_code=org.join_code, creator=str(creator.id))
    return org


async def get_org(store: DocumentStore, org_id: uuid.UUID | str) -> Organization:
    """Get an org by id; raises NotFound if missing."""
    org = await store.find_org_by_id(org_id)
    if org is None:
        raise NotFoundError("Organization not found")
    return org


async def list_user_orgs(
    store: DocumentStore, user_id: uuid.UUID | str
) -> tuple[list[OrgListItem], Optional[uuid.UUID]]:
    """Active memberships of a user, with the currently selected org."""
    user = await store.find_user_by_id(user_id)
    if user is None:
        raise NotFoundError("User not found")

    items: list[OrgListItem] = []
    for entry in user.organizations or []:
        if not entry.get("isActive", True):
            continue
        org = await store.find_org_by_id(str(entry.get(ORG_REF)))
        if org is None:
            # Orphaned reference; removed by the reconciler
            log.warning("org.missing_for_membership", user_id=str(user.id), org_id=str(entry.get(ORG_REF)))
            continue
        items.append(
            OrgListItem(
                id=org.id,
                name=org.name,
                description=org.description,
                category=org.category,
                join_code=org.join_code,
                role=coerce_role(entry.get("role")),
                joined_at=entry.get("joinedAt"),
                is_current=user.current_organization == org.id,
            )
        )
    return items, user.current_organization
