"""
Shared fixtures: a file-backed SQLite database per test, exercised through
the real SQL document store.
"""

from __future__ import annotations

import uuid
from typing import Any, Optional

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from foundly.core.database import init_db
from foundly.core.store import ArrayAppend, DocumentPatch, SqlDocumentStore
from foundly.models.organization import Organization, member_entry
from foundly.models.user import User, membership_entry


@pytest.fixture
async def engine(tmp_path):
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'foundly.db'}")
    await init_db(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def store(session_factory) -> SqlDocumentStore:
    return SqlDocumentStore(session_factory, timeout_seconds=10)


@pytest.fixture
def make_user(store):
    """Insert a user document with raw membership entries."""

    async def _make(
        email: Optional[str] = None,
        organizations: Optional[list[dict[str, Any]]] = None,
        current_organization: Optional[uuid.UUID] = None,
    ) -> User:
        user = User(
            email=email or f"{uuid.uuid4().hex[:8]}@example.org",
            name="Test User",
            organizations=organizations or [],
            current_organization=current_organization,
        )
        return await store.insert_user(user)

    return _make


@pytest.fixture
def make_org(store):
    """Insert an organization document with raw member entries."""

    async def _make(
        join_code: Optional[str] = None,
        members: Optional[list[dict[str, Any]]] = None,
        member_count: Optional[int] = None,
        created_by: Optional[uuid.UUID] = None,
        name: str = "Riverside Volunteers",
    ) -> Organization:
        members = members or []
        org = Organization(
            name=name,
            join_code=join_code or uuid.uuid4().hex[:8].upper(),
            members=members,
            member_count=len(members) if member_count is None else member_count,
            created_by=created_by,
        )
        return await store.insert_org(org)

    return _make


@pytest.fixture
def link(store):
    """Write a consistent membership on both sides."""

    async def _link(user: User, org: Organization, role: str = "member") -> None:
        await store.update_org(
            org.id,
            _append("members", member_entry(user.id, role), "user", "member_count"),
        )
        await store.update_user(
            user.id,
            _append("organizations", membership_entry(org.id, role), "organizationId"),
        )

    return _link


def _append(field: str, entry: dict, key: str, count_field: Optional[str] = None) -> DocumentPatch:
    return DocumentPatch(
        appends=[ArrayAppend(field=field, entry=entry, unique_key=key, count_field=count_field)]
    )
