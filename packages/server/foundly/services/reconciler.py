"""
Bulk membership reconciler.

Offline sweep over the whole store that restores:

- no user listed twice in an organization's ``members``
- ``member_count == len(members)`` for every organization
- no user membership pointing at a missing organization, and no
  organization listed twice in a user's ``organizations``
- for every surviving user membership, a matching member entry on the
  organization
- creators listed as admin members of the organizations they created

A final read-only pass recounts what is still inconsistent. Member entries
with no matching user-side membership are reported, not fixed.

Each document is handled on its own: a store failure on one document is
logged and counted and the sweep moves on.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from typing import Any, Optional

import structlog

from foundly.core.errors import FoundlyError
from foundly.core.store import ArrayAppend, DocumentPatch, DocumentStore, apply_patch
from foundly.models.organization import MEMBER_REF, Organization, member_entry
from foundly.models.user import ORG_REF, User, membership_entry
from foundly.services.memberships import find_member_entry, find_membership_entry
from foundly_shared.schemas.common import Role, coerce_role, highest_role
from foundly_shared.schemas.memberships import ReconcileReport

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------

def dedupe_entries(
    entries: list[dict[str, Any]], key: str
) -> tuple[list[dict[str, Any]], int, int]:
    """Drop repeated references, keeping the first entry for each.

    The kept entry takes the most privileged role seen among its duplicates.
    Returns ``(unique, duplicates_dropped, malformed_dropped)`` where
    malformed entries are those without a reference.
    """
    unique: list[dict[str, Any]] = []
    positions: dict[str, int] = {}
    duplicates = 0
    malformed = 0
    for entry in entries or []:
        ref = entry.get(key) if isinstance(entry, dict) else None
        if ref is None:
            malformed += 1
            continue
        ref_key = str(ref)
        if ref_key in positions:
            duplicates += 1
            kept = unique[positions[ref_key]]
            role = highest_role(kept.get("role"), entry.get("role"))
            if role != coerce_role(kept.get("role")):
                unique[positions[ref_key]] = {**kept, "role": role.value}
            continue
        positions[ref_key] = len(unique)
        unique.append(entry)
    return unique, duplicates, malformed


@dataclass
class _OrgState:
    id: uuid.UUID
    version: int
    name: str
    created_by: Optional[uuid.UUID]
    members: list[dict[str, Any]] = field(default_factory=list)
    member_count: int = 0

    @classmethod
    def of(cls, org: Organization) -> "_OrgState":
        return cls(
            id=org.id,
            version=org.version,
            name=org.name,
            created_by=org.created_by,
            members=list(org.members or []),
            member_count=org.member_count,
        )


@dataclass
class _UserState:
    id: uuid.UUID
    version: int
    organizations: list[dict[str, Any]] = field(default_factory=list)
    current_organization: Optional[uuid.UUID] = None

    @classmethod
    def of(cls, user: User) -> "_UserState":
        return cls(
            id=user.id,
            version=user.version,
            organizations=list(user.organizations or []),
            current_organization=user.current_organization,
        )


# ---------------------------------------------------------------------------
# Reconciler
# ---------------------------------------------------------------------------

class MembershipReconciler:
    """One reconciliation sweep. Create a new instance per run."""

    def __init__(self, store: DocumentStore, *, dry_run: bool = False) -> None:
        self._store = store
        self._dry_run = dry_run
        self.report = ReconcileReport(dry_run=dry_run)

    async def run(self) -> ReconcileReport:
        log.info("reconcile.started", dry_run=self._dry_run)
        orgs = await self._reconcile_orgs()
        await self._reconcile_users(orgs)
        await self._verify()
        log.info("reconcile.finished", **self.report.model_dump())
        return self.report

    # --- Writes (skipped in dry-run) ---

    async def _write_org(self, state: _OrgState, patch: DocumentPatch) -> _OrgState:
        if self._dry_run:
            return replace(state, **apply_patch(state, patch), version=state.version + 1)
        updated = await self._store.update_org(state.id, patch)
        if updated is None:
            raise FoundlyError(f"organization {state.id} disappeared during reconciliation")
        return _OrgState.of(updated)

    async def _write_user(self, state: _UserState, patch: DocumentPatch) -> _UserState:
        if self._dry_run:
            return replace(state, **apply_patch(state, patch), version=state.version + 1)
        updated = await self._store.update_user(state.id, patch)
        if updated is None:
            raise FoundlyError(f"user {state.id} disappeared during reconciliation")
        return _UserState.of(updated)

    # --- Organization pass ---

    async def _reconcile_orgs(self) -> dict[str, _OrgState]:
        orgs: dict[str, _OrgState] = {}
        async for org in self._store.scan_all_orgs():
            self.report.orgs_scanned += 1
            state = _OrgState.of(org)
            try:
                state = await self._reconcile_org(state)
            except FoundlyError as exc:
                self.report.failures += 1
                log.error("reconcile.org_failed", org_id=str(state.id), error=str(exc))
            orgs[str(state.id)] = state
        return orgs

    async def _reconcile_org(self, state: _OrgState) -> _OrgState:
        members, duplicates, malformed = dedupe_entries(state.members, MEMBER_REF)

        if duplicates or malformed:
            log.info(
                "reconcile.org_deduplicated",
                org_id=str(state.id),
                name=state.name,
                duplicates=duplicates,
                malformed=malformed,
                members=len(members),
            )
            state = await self._write_org(
                state,
                DocumentPatch(
                    set_fields={"members": members, "member_count": len(members)},
                    expected_version=state.version,
                ),
            )
            self.report.duplicates_removed += duplicates
            self.report.malformed_entries_removed += malformed
            self.report.orgs_fixed += 1
        elif state.member_count != len(state.members):
            log.info(
                "reconcile.member_count_corrected",
                org_id=str(state.id),
                cached=state.member_count,
                actual=len(state.members),
            )
            state = await self._write_org(
                state,
                DocumentPatch(
                    set_fields={"member_count": len(state.members)},
                    expected_version=state.version,
                ),
            )
            self.report.member_counts_corrected += 1
            self.report.orgs_fixed += 1

        return await self._restore_creator(state)

    async def _restore_creator(self, state: _OrgState) -> _OrgState:
        """Make sure the creator is an admin member on both sides.

        Each side is checked on its own: an org created by a half-finished
        ``create_org`` lists the creator but the creator's user document
        lacks the membership.
        """
        if state.created_by is None:
            return state

        org_entry = find_member_entry(state, state.created_by)
        creator = await self._store.find_user_by_id(state.created_by)
        if creator is None:
            if org_entry is None:
                log.warning(
                    "reconcile.creator_missing", org_id=str(state.id), user_id=str(state.created_by)
                )
            return state

        user_entry = find_membership_entry(creator, state.id)
        if org_entry is not None and user_entry is not None:
            return state

        surviving = user_entry or org_entry
        joined_at = surviving.get("joinedAt") if surviving else None

        if org_entry is None:
            state = await self._write_org(
                state,
                DocumentPatch(
                    appends=[
                        ArrayAppend(
                            field="members",
                            entry=member_entry(creator.id, Role.ADMIN, joined_at),
                            unique_key=MEMBER_REF,
                            count_field="member_count",
                        )
                    ],
                ),
            )

        if user_entry is None:
            await self._write_user(
                _UserState.of(creator),
                DocumentPatch(
                    appends=[
                        ArrayAppend(
                            field="organizations",
                            entry=membership_entry(state.id, Role.ADMIN, joined_at),
                            unique_key=ORG_REF,
                        )
                    ],
                ),
            )

        self.report.creator_memberships_restored += 1
        log.info(
            "reconcile.creator_restored",
            org_id=str(state.id),
            user_id=str(creator.id),
            org_side=org_entry is None,
            user_side=user_entry is None,
        )
        return state

    # --- User pass ---

    async def _reconcile_users(self, orgs: dict[str, _OrgState]) -> None:
        async for user in self._store.scan_all_users():
            self.report.users_scanned += 1
            state = _UserState.of(user)
            try:
                await self._reconcile_user(state, orgs)
            except FoundlyError as exc:
                self.report.failures += 1
                log.error("reconcile.user_failed", user_id=str(state.id), error=str(exc))

    async def _lookup_org(self, ref: Any, orgs: dict[str, _OrgState]) -> Optional[_OrgState]:
        key = str(ref)
        if key in orgs:
            return orgs[key]
        # Created after the organization pass started
        org = await self._store.find_org_by_id(key)
        if org is None:
            return None
        orgs[key] = _OrgState.of(org)
        return orgs[key]

    async def _reconcile_user(self, state: _UserState, orgs: dict[str, _OrgState]) -> None:
        kept: list[dict[str, Any]] = []
        seen: set[str] = set()

        for entry in state.organizations:
            ref = entry.get(ORG_REF) if isinstance(entry, dict) else None
            if ref is None or await self._lookup_org(ref, orgs) is None:
                self.report.orphaned_refs_removed += 1
                log.info("reconcile.orphaned_ref", user_id=str(state.id), org_id=str(ref))
                continue
            if str(ref) in seen:
                self.report.duplicate_user_refs_removed += 1
                continue
            seen.add(str(ref))
            kept.append(entry)

        for entry in kept:
            key = str(entry[ORG_REF])
            org = orgs[key]
            if find_member_entry(org, state.id) is not None:
                continue
            orgs[key] = await self._write_org(
                org,
                DocumentPatch(
                    appends=[
                        ArrayAppend(
                            field="members",
                            entry=member_entry(
                                state.id, coerce_role(entry.get("role")), entry.get("joinedAt")
                            ),
                            unique_key=MEMBER_REF,
                            count_field="member_count",
                        )
                    ],
                ),
            )
            self.report.reverse_refs_added += 1
            log.info("reconcile.reverse_ref_added", user_id=str(state.id), org_id=key)

        set_fields: dict[str, Any] = {}
        if len(kept) != len(state.organizations):
            set_fields["organizations"] = kept

        current = state.current_organization
        if current is not None and str(current) not in seen:
            fallback = next((e[ORG_REF] for e in kept if e.get("isActive", True)), None)
            set_fields["current_organization"] = uuid.UUID(str(fallback)) if fallback else None
            self.report.current_organizations_reset += 1

        if set_fields:
            await self._write_user(
                state, DocumentPatch(set_fields=set_fields, expected_version=state.version)
            )
            log.info(
                "reconcile.user_updated",
                user_id=str(state.id),
                memberships=len(kept),
                removed=len(state.organizations) - len(kept),
            )

    # --- Verification pass ---

    async def _verify(self) -> None:
        user_refs: dict[str, set[str]] = {}
        async for user in self._store.scan_all_users():
            user_refs[str(user.id)] = {
                str(e.get(ORG_REF)) for e in user.organizations or [] if isinstance(e, dict)
            }

        org_members: dict[str, set[str]] = {}
        residual = 0
        async for org in self._store.scan_all_orgs():
            org_id = str(org.id)
            members = {
                str(m.get(MEMBER_REF)) for m in org.members or [] if isinstance(m, dict)
            }
            org_members[org_id] = members

            # Org side without a user side
            residual += sum(1 for uid in members if org_id not in user_refs.get(uid, set()))

            if org.member_count != len(org.members or []):
                await self._fix_count_drift(org)

        # User side without an org side
        for uid, refs in user_refs.items():
            residual += sum(1 for oid in refs if uid not in org_members.get(oid, set()))

        self.report.residual_inconsistencies = residual
        if residual:
            log.warning("reconcile.residual_inconsistencies", count=residual)

    async def _fix_count_drift(self, org: Organization) -> None:
        if self._dry_run:
            self.report.residual_member_count_drift += 1
            return
        try:
            await self._store.update_org(
                org.id,
                DocumentPatch(
                    set_fields={"member_count": len(org.members or [])},
                    expected_version=org.version,
                ),
            )
            self.report.member_counts_corrected += 1
        except FoundlyError as exc:
            self.report.residual_member_count_drift += 1
            log.error("reconcile.count_fix_failed", org_id=str(org.id), error=str(exc))


async def reconcile(store: DocumentStore, *, dry_run: bool = False) -> ReconcileReport:
    """Run one full reconciliation sweep."""
    return await MembershipReconciler(store, dry_run=dry_run).run()
