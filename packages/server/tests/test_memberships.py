"""
Unit tests for the membership consistency checker (no DB needed).
"""

from __future__ import annotations

import uuid
from types import SimpleNamespace

import pytest

from foundly.core.errors import InvalidArgumentError
from foundly.models.organization import Organization, member_entry
from foundly.models.user import User, membership_entry
from foundly.services.memberships import (
    check,
    find_member_entry,
    find_membership_entry,
    same_ref,
)
from foundly_shared.schemas.memberships import MembershipState


def _user(organizations=None) -> User:
    return User(email="ana@example.org", name="Ana", organizations=organizations or [])


def _org(members=None) -> Organization:
    return Organization(name="Harbor Cleanup", join_code="HARBOR", members=members or [])


class TestCheckStates:
    def test_member_in_both(self):
        user = _user()
        org = _org()
        org.members = [member_entry(user.id)]
        user.organizations = [membership_entry(org.id)]
        result = check(user, org)
        assert result.state == MembershipState.CONSISTENT_MEMBER
        assert result.in_org_members and result.in_user_orgs

    def test_member_in_neither(self):
        result = check(_user(), _org())
        assert result.state == MembershipState.CONSISTENT_NON_MEMBER
        assert result.org_entry is None and result.user_entry is None

    def test_org_only(self):
        user = _user()
        org = _org([member_entry(user.id, "moderator")])
        result = check(user, org)
        assert result.state == MembershipState.INCONSISTENT_ORG_ONLY
        assert result.org_entry["role"] == "moderator"

    def test_user_only(self):
        org = _org()
        user = _user([membership_entry(org.id, "admin")])
        result = check(user, org)
        assert result.state == MembershipState.INCONSISTENT_USER_ONLY
        assert result.user_entry["role"] == "admin"

    def test_other_members_do_not_count(self):
        user = _user()
        org = _org([member_entry(uuid.uuid4())])
        user.organizations = [membership_entry(uuid.uuid4())]
        assert check(user, org).state == MembershipState.CONSISTENT_NON_MEMBER


class TestReferenceEquality:
    def test_uuid_and_string_forms_match(self):
        uid = uuid.uuid4()
        assert same_ref(uid, str(uid))
        assert same_ref(str(uid), uid)

    def test_none_never_matches(self):
        assert not same_ref(None, None)
        assert not same_ref(None, "x")

    def test_entry_with_structured_id_matches(self):
        user = _user()
        org = _org([{"user": user.id, "role": "member"}])
        assert find_member_entry(org, str(user.id)) is not None

    def test_membership_lookup(self):
        org = _org()
        user = _user([{"organizationId": str(org.id)}])
        assert find_membership_entry(user, org.id) == {"organizationId": str(org.id)}


class TestMalformedInput:
    def test_user_without_id(self):
        user = SimpleNamespace(id=None, organizations=[])
        with pytest.raises(InvalidArgumentError):
            check(user, _org())

    def test_org_without_id(self):
        org = SimpleNamespace(id=None, members=[])
        with pytest.raises(InvalidArgumentError):
            check(_user(), org)

    def test_missing_document(self):
        with pytest.raises(InvalidArgumentError):
            check(None, _org())

    def test_bare_id_entries_are_skipped(self):
        user = _user()
        org = _org([str(user.id), member_entry(user.id, "admin")])
        user.organizations = [str(org.id)]
        result = check(user, org)
        assert result.state == MembershipState.INCONSISTENT_ORG_ONLY
        assert result.org_entry["role"] == "admin"
