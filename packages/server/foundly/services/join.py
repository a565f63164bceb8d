"""
Join coordinator — self-service join by code.

Brings a (user, organization) pair to the member-in-both state. Both sides
are written with independent single-document updates, so a crash between
them leaves the pair inconsistent; calling ``join`` again re-checks the
state and finishes the repair. Appends are guarded by reference, so
concurrent or repeated joins never add a second entry.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass

import structlog

from foundly.core.errors import InvalidInputError, NotFoundError
from foundly.core.store import ArrayAppend, DocumentPatch, DocumentStore
from foundly.models.base import utcnow_iso
from foundly.models.organization import MEMBER_REF, Organization, member_entry
from foundly.models.user import ORG_REF, membership_entry
from foundly.services.memberships import check
from foundly_shared.schemas.common import Role, coerce_role
from foundly_shared.schemas.memberships import JOIN_MESSAGES, JoinResultKind, MembershipState

log = structlog.get_logger()

INVALID_JOIN_CODE_MESSAGE = "Invalid join code. Please verify with your organization admin."


@dataclass
class JoinResult:
    kind: JoinResultKind
    organization: Organization

    @property
    def repaired(self) -> bool:
        return self.kind == JoinResultKind.RESTORED

    @property
    def message(self) -> str:
        return JOIN_MESSAGES[self.kind]


def normalize_join_code(raw: str | None) -> str:
    """Trim and uppercase a join code; empty codes are rejected."""
    code = (raw or "").strip().upper()
    if not code:
        raise InvalidInputError("Join code is required")
    return code


def _org_member_append(user_id: uuid.UUID, role: Role, joined_at: str) -> ArrayAppend:
    return ArrayAppend(
        field="members",
        entry=member_entry(user_id, role, joined_at),
        unique_key=MEMBER_REF,
        count_field="member_count",
    )


def _user_membership_append(org_id: uuid.UUID, role: Role, joined_at: str) -> ArrayAppend:
    return ArrayAppend(
        field="organizations",
        entry=membership_entry(org_id, role, joined_at),
        unique_key=ORG_REF,
    )


async def join(
    store: DocumentStore, user_id: uuid.UUID | str, raw_join_code: str | None
) -> JoinResult:
    """Join the organization identified by ``raw_join_code``."""
    code = normalize_join_code(raw_join_code)

    org = await store.find_org_by_join_code(code)
    if org is None:
        log.info("join.invalid_code", user_id=str(user_id), join_code=code)
        raise NotFoundError(INVALID_JOIN_CODE_MESSAGE)

    user = await store.find_user_by_id(user_id)
    if user is None:
        log.error("join.user_missing", user_id=str(user_id), org_id=str(org.id))
        raise NotFoundError("User not found")

    result = check(user, org)
    now = utcnow_iso()

    if result.state == MembershipState.CONSISTENT_MEMBER:
        log.info("join.already_member", user_id=str(user.id), org_id=str(org.id))
        return JoinResult(JoinResultKind.ALREADY_MEMBER, org)

    if result.state == MembershipState.INCONSISTENT_ORG_ONLY:
        # Org side survives; copy its role and join date to the user side
        entry = result.org_entry or {}
        updated = await store.update_user(
            user.id,
            DocumentPatch(
                set_fields={"current_organization": org.id},
                appends=[
                    _user_membership_append(
                        org.id, coerce_role(entry.get("role")), entry.get("joinedAt") or now
                    )
                ],
            ),
        )
        if updated is None:
            raise NotFoundError("User not found")
        log.warning("join.restored_user_side", user_id=str(user.id), org_id=str(org.id))
        return JoinResult(JoinResultKind.RESTORED, org)

    if result.state == MembershipState.INCONSISTENT_USER_ONLY:
        entry = result.user_entry or {}
        updated_org = await store.update_org(
            org.id,
            DocumentPatch(
                appends=[
                    _org_member_append(
                        user.id, coerce_role(entry.get("role")), entry.get("joinedAt") or now
                    )
                ],
            ),
        )
        if updated_org is None:
            raise NotFoundError(INVALID_JOIN_CODE_MESSAGE)
        log.warning("join.restored_org_side", user_id=str(user.id), org_id=str(org.id))
        return JoinResult(JoinResultKind.RESTORED, updated_org)

    # Consistent non-member: full join, org side first
    updated_org = await store.update_org(
        org.id, DocumentPatch(appends=[_org_member_append(user.id, Role.MEMBER, now)])
    )
    if updated_org is None:
        raise NotFoundError(INVALID_JOIN_CODE_MESSAGE)
    updated_user = await store.update_user(
        user.id,
        DocumentPatch(
            set_fields={"current_organization": org.id},
            appends=[_user_membership_append(org.id, Role.MEMBER, now)],
        ),
    )
    if updated_user is None:
        raise NotFoundError("User not found")

    log.info(
        "join.joined",
        user_id=str(user.id),
        org_id=str(org.id),
        member_count=updated_org.member_count,
    )
    return JoinResult(JoinResultKind.JOINED, updated_org)
