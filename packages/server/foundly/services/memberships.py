"""
Consistency checker for the two-sided membership relation.

A membership is stored twice: as a member entry on the Organization and as a
membership entry on the User. These helpers are pure; they never touch the
store.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any, Optional

from foundly.core.errors import InvalidArgumentError
from foundly.models.organization import MEMBER_REF
from foundly.models.user import ORG_REF
from foundly_shared.schemas.memberships import MembershipState


def same_ref(a: Any, b: Any) -> bool:
    """Compare two document references by their string form."""
    return a is not None and b is not None and str(a) == str(b)


def find_member_entry(org: Any, user_id: uuid.UUID | str) -> Optional[dict[str, Any]]:
    """Return the first member entry of ``org`` referencing ``user_id``.

    Entries that are not objects (legacy bare ids) never match.
    """
    for entry in org.members or []:
        if isinstance(entry, dict) and same_ref(entry.get(MEMBER_REF), user_id):
            return entry
    return None


def find_membership_entry(user: Any, org_id: uuid.UUID | str) -> Optional[dict[str, Any]]:
    """Return the first membership entry of ``user`` referencing ``org_id``."""
    for entry in user.organizations or []:
        if isinstance(entry, dict) and same_ref(entry.get(ORG_REF), org_id):
            return entry
    return None


@dataclass(frozen=True)
class MembershipCheck:
    state: MembershipState
    org_entry: Optional[dict[str, Any]] = None
    user_entry: Optional[dict[str, Any]] = None

    @property
    def in_org_members(self) -> bool:
        return self.org_entry is not None

    @property
    def in_user_orgs(self) -> bool:
        return self.user_entry is not None


def check(user: Any, org: Any) -> MembershipCheck:
    """Classify the relation between a loaded User and Organization."""
    if user is None or getattr(user, "id", None) is None:
        raise InvalidArgumentError("user document has no id")
    if org is None or getattr(org, "id", None) is None:
        raise InvalidArgumentError("organization document has no id")

    org_entry = find_member_entry(org, user.id)
    user_entry = find_membership_entry(user, org.id)

    if org_entry is not None and user_entry is not None:
        state = MembershipState.CONSISTENT_MEMBER
    elif org_entry is not None:
        state = MembershipState.INCONSISTENT_ORG_ONLY
    elif user_entry is not None:
        state = MembershipState.INCONSISTENT_USER_ONLY
    else:
        state = MembershipState.CONSISTENT_NON_MEMBER
    return MembershipCheck(state=state, org_entry=org_entry, user_entry=user_entry)
