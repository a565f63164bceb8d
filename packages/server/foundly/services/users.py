"""
User service — registration records and current-organization selection.
"""

from __future__ import annotations

import uuid

import structlog

from foundly.core.errors import ConflictError, ForbiddenError, NotFoundError
from foundly.core.store import DocumentPatch, DocumentStore
from foundly.models.user import User
from foundly.services.memberships import find_membership_entry

log = structlog.get_logger()


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def create_user(store: DocumentStore, email: str, name: str) -> User:
    """Create a user; emails are unique case-insensitively."""
    email = normalize_email(email)
    if await store.find_user_by_email(email) is not None:
        raise ConflictError("A user with this email already exists")

    user = await store.insert_user(User(email=email, name=name.strip()))
    log.info("user.created", user_id=str(user.id))
    return user


async def get_user(store: DocumentStore, user_id: uuid.UUID | str) -> User:
    user = await store.find_user_by_id(user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


async def switch_current_organization(
    store: DocumentStore, user_id: uuid.UUID | str, org_id: uuid.UUID
) -> User:
    """Select the org a user is viewing. Requires an active membership."""
    user = await get_user(store, user_id)

    entry = find_membership_entry(user, org_id)
    if entry is None or not entry.get("isActive", True):
        raise ForbiddenError("You are not a member of this organization")
    if await store.find_org_by_id(org_id) is None:
        raise NotFoundError("Organization not found")

    updated = await store.update_user(
        user.id, DocumentPatch(set_fields={"current_organization": org_id})
    )
    if updated is None:
        raise NotFoundError("User not found")

    log.info("user.current_org_switched", user_id=str(user.id), org_id=str(org_id))
    return updated
