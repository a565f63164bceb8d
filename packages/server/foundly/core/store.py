"""
Document store for User and Organization documents.

One row per document; membership arrays live in JSON columns. Every write
targets a single document and is a compare-and-swap on its ``version``
column. There is no multi-document transaction: callers that touch both
sides of a membership issue two independent writes.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import AsyncIterator, Awaitable
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol, TypeVar

import structlog
from sqlalchemy import update
from sqlalchemy.exc import DBAPIError, IntegrityError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import SQLModel, select

from foundly.core.config import get_settings
from foundly.core.errors import (
    ConcurrentModificationError,
    ConflictError,
    StoreTimeoutError,
    StoreUnavailableError,
)
from foundly.models.base import utcnow
from foundly.models.organization import Organization
from foundly.models.user import User

log = structlog.get_logger()

T = TypeVar("T")
DocT = TypeVar("DocT", Organization, User)


# ---------------------------------------------------------------------------
# Patches
# ---------------------------------------------------------------------------

@dataclass
class ArrayAppend:
    """Append ``entry`` to the array column ``field``.

    With ``unique_key`` set the append is skipped when an entry with the same
    value (compared by string form) under that key is already present.
    ``count_field`` names an integer column recomputed as the array length
    in the same write.
    """

    field: str
    entry: dict[str, Any]
    unique_key: Optional[str] = None
    count_field: Optional[str] = None


@dataclass
class DocumentPatch:
    set_fields: dict[str, Any] = field(default_factory=dict)
    appends: list[ArrayAppend] = field(default_factory=list)
    # When set, the write fails instead of re-applying on a version mismatch
    expected_version: Optional[int] = None


def apply_patch(doc: Any, patch: DocumentPatch) -> dict[str, Any]:
    """Compute the field values ``patch`` writes against the state of ``doc``."""
    values = dict(patch.set_fields)
    for op in patch.appends:
        items = list(values.get(op.field, getattr(doc, op.field)) or [])
        duplicate = op.unique_key is not None and any(
            str(item.get(op.unique_key)) == str(op.entry.get(op.unique_key))
            for item in items
            if isinstance(item, dict)
        )
        if not duplicate:
            items.append(dict(op.entry))
        values[op.field] = items
        if op.count_field:
            values[op.count_field] = len(items)
    return values


def _changes(doc: Any, values: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in values.items() if getattr(doc, k) != v}


# ---------------------------------------------------------------------------
# Interface
# ---------------------------------------------------------------------------

class DocumentStore(Protocol):
    async def find_org_by_join_code(self, code: str) -> Optional[Organization]: ...

    async def find_org_by_id(self, org_id: uuid.UUID | str) -> Optional[Organization]: ...

    async def find_user_by_id(self, user_id: uuid.UUID | str) -> Optional[User]: ...

    async def find_user_by_email(self, email: str) -> Optional[User]: ...

    async def insert_org(self, org: Organization) -> Organization: ...

    async def insert_user(self, user: User) -> User: ...

    async def update_org(self, org_id: uuid.UUID | str, patch: DocumentPatch) -> Optional[Organization]: ...

    async def update_user(self, user_id: uuid.UUID | str, patch: DocumentPatch) -> Optional[User]: ...

    def scan_all_orgs(self) -> AsyncIterator[Organization]: ...

    def scan_all_users(self) -> AsyncIterator[User]: ...


# ---------------------------------------------------------------------------
# SQL implementation
# ---------------------------------------------------------------------------

def _as_uuid(value: uuid.UUID | str) -> Optional[uuid.UUID]:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


class SqlDocumentStore:
    """Document store backed by SQLAlchemy async sessions."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        timeout_seconds: Optional[float] = None,
        cas_max_attempts: Optional[int] = None,
        batch_size: Optional[int] = None,
    ) -> None:
        settings = get_settings()
        self._session_factory = session_factory
        self._timeout = timeout_seconds or settings.store_timeout_seconds
        self._cas_max_attempts = cas_max_attempts or settings.store_cas_max_attempts
        self._batch_size = batch_size or settings.reconcile_batch_size

    # --- Plumbing ---

    async def _guard(self, operation: str, awaitable: Awaitable[T]) -> T:
        """Apply the per-operation deadline and map driver errors."""
        try:
            return await asyncio.wait_for(awaitable, timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            log.warning("store.timeout", operation=operation, timeout=self._timeout)
            raise StoreTimeoutError(
                f"{operation} did not complete within {self._timeout}s"
            ) from exc
        except IntegrityError as exc:
            raise ConflictError(f"{operation} violates a uniqueness constraint") from exc
        except (OperationalError, InterfaceError, DBAPIError) as exc:
            log.warning("store.unavailable", operation=operation, error=str(exc))
            raise StoreUnavailableError(f"{operation} failed: document store unavailable") from exc

    async def _first(self, statement) -> Any:
        async with self._session_factory() as session:
            result = await session.execute(statement)
            return result.scalars().first()

    async def _all(self, statement) -> list[Any]:
        async with self._session_factory() as session:
            result = await session.execute(statement)
            return list(result.scalars().all())

    async def _insert(self, doc: SQLModel) -> SQLModel:
        async with self._session_factory() as session:
            session.add(doc)
            await session.commit()
        return doc

    async def _get(self, model: type[DocT], doc_id: uuid.UUID) -> Optional[DocT]:
        return await self._first(select(model).where(model.id == doc_id))

    async def _compare_and_swap(
        self, model: type[DocT], doc_id: uuid.UUID, version: int, values: dict[str, Any]
    ) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(
                update(model)
                .where(model.id == doc_id, model.version == version)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
        return result.rowcount == 1

    async def _update(
        self, model: type[DocT], doc_id: uuid.UUID | str, patch: DocumentPatch
    ) -> Optional[DocT]:
        key = _as_uuid(doc_id)
        if key is None:
            return None
        attempts = 1 if patch.expected_version is not None else self._cas_max_attempts

        for attempt in range(1, attempts + 1):
            doc = await self._get(model, key)
            if doc is None:
                return None
            if patch.expected_version is not None and doc.version != patch.expected_version:
                raise ConcurrentModificationError(
                    f"{model.__tablename__}/{key} changed since version {patch.expected_version}"
                )

            changes = _changes(doc, apply_patch(doc, patch))
            if not changes:
                return doc

            values = {**changes, "version": doc.version + 1, "updated_at": utcnow()}
            if await self._compare_and_swap(model, key, doc.version, values):
                for name, value in values.items():
                    setattr(doc, name, value)
                return doc

            log.debug(
                "store.cas_conflict",
                collection=model.__tablename__,
                doc_id=str(key),
                attempt=attempt,
            )
        raise ConcurrentModificationError(
            f"{model.__tablename__}/{key} kept changing during update"
        )

    async def _scan(self, model: type[DocT]) -> AsyncIterator[DocT]:
        last_id: Optional[uuid.UUID] = None
        while True:
            statement = select(model).order_by(model.id).limit(self._batch_size)
            if last_id is not None:
                statement = statement.where(model.id > last_id)
            page = await self._guard(f"scan {model.__tablename__}", self._all(statement))
            if not page:
                return
            for doc in page:
                yield doc
            last_id = page[-1].id

    # --- Reads ---

    async def find_org_by_join_code(self, code: str) -> Optional[Organization]:
        return await self._guard(
            "find_org_by_join_code",
            self._first(select(Organization).where(Organization.join_code == code)),
        )

    async def find_org_by_id(self, org_id: uuid.UUID | str) -> Optional[Organization]:
        key = _as_uuid(org_id)
        if key is None:
            return None
        return await self._guard("find_org_by_id", self._get(Organization, key))

    async def find_user_by_id(self, user_id: uuid.UUID | str) -> Optional[User]:
        key = _as_uuid(user_id)
        if key is None:
            return None
        return await self._guard("find_user_by_id", self._get(User, key))

    async def find_user_by_email(self, email: str) -> Optional[User]:
        return await self._guard(
            "find_user_by_email",
            self._first(select(User).where(User.email == email)),
        )

    # --- Writes ---

    async def insert_org(self, org: Organization) -> Organization:
        return await self._guard("insert_org", self._insert(org))

    async def insert_user(self, user: User) -> User:
        return await self._guard("insert_user", self._insert(user))

    async def update_org(
        self, org_id: uuid.UUID | str, patch: DocumentPatch
    ) -> Optional[Organization]:
        return await self._guard("update_org", self._update(Organization, org_id, patch))

    async def update_user(
        self, user_id: uuid.UUID | str, patch: DocumentPatch
    ) -> Optional[User]:
        return await self._guard("update_user", self._update(User, user_id, patch))

    # --- Scans ---

    def scan_all_orgs(self) -> AsyncIterator[Organization]:
        return self._scan(Organization)

    def scan_all_users(self) -> AsyncIterator[User]:
        return self._scan(User)


# ---------------------------------------------------------------------------
# FastAPI dependency
# ---------------------------------------------------------------------------

_store: Optional[SqlDocumentStore] = None


def get_store() -> DocumentStore:
    """Process-wide store bound to the configured database."""
    global _store
    if _store is None:
        from foundly.core.database import async_session_factory

        _store = SqlDocumentStore(async_session_factory)
    return _store
