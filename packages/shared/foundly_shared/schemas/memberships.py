"""
Membership schemas shared between the server and its clients.

Covers: the bidirectional membership states, join requests/results and the
reconciliation report.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from .organizations import OrgResponse


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class MembershipState(str, Enum):
    CONSISTENT_MEMBER = "consistent_member"
    CONSISTENT_NON_MEMBER = "consistent_non_member"
    INCONSISTENT_ORG_ONLY = "inconsistent_org_only"
    INCONSISTENT_USER_ONLY = "inconsistent_user_only"


class JoinResultKind(str, Enum):
    JOINED = "joined"
    RESTORED = "restored"
    ALREADY_MEMBER = "already_member"


JOIN_MESSAGES: dict[JoinResultKind, str] = {
    JoinResultKind.JOINED: "Successfully joined organization",
    JoinResultKind.RESTORED: "Organization membership restored",
    JoinResultKind.ALREADY_MEMBER: "You are already a member of this organization",
}


# ---------------------------------------------------------------------------
# Request / response schemas
# ---------------------------------------------------------------------------

class JoinRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    join_code: str = Field(..., alias="joinCode", max_length=64)


class JoinResponse(BaseModel):
    kind: JoinResultKind
    message: str
    repaired: bool = False
    organization: OrgResponse


class ReconcileReport(BaseModel):
    """Counters produced by one reconciliation sweep."""

    dry_run: bool = False
    orgs_scanned: int = 0
    orgs_fixed: int = 0
    duplicates_removed: int = 0
    malformed_entries_removed: int = 0
    member_counts_corrected: int = 0
    creator_memberships_restored: int = 0
    users_scanned: int = 0
    orphaned_refs_removed: int = 0
    duplicate_user_refs_removed: int = 0
    reverse_refs_added: int = 0
    current_organizations_reset: int = 0
    failures: int = 0
    residual_inconsistencies: int = 0
    residual_member_count_drift: int = 0
