"""
Tests for the ARQ reconciliation job and worker configuration.
"""

from __future__ import annotations

import pytest

from foundly.core.store import DocumentPatch
from foundly.models.organization import member_entry
from foundly.tasks.reconciliation import WorkerSettings, reconcile_memberships


class TestReconcileJob:
    @pytest.mark.asyncio
    async def test_job_returns_report(self, store, make_user, make_org, link):
        user = await make_user()
        org = await make_org()
        await link(user, org)
        doubled = [member_entry(user.id), member_entry(user.id)]
        await store.update_org(org.id, DocumentPatch(set_fields={"members": doubled, "member_count": 2}))

        result = await reconcile_memberships({"store": store})

        assert result["duplicates_removed"] == 1
        assert result["residual_inconsistencies"] == 0
        assert result["dry_run"] is False
        assert (await store.find_org_by_id(org.id)).member_count == 1

    @pytest.mark.asyncio
    async def test_job_on_empty_store(self, store):
        result = await reconcile_memberships({"store": store})
        assert result["orgs_scanned"] == 0
        assert result["users_scanned"] == 0


class TestWorkerSettings:
    def test_registers_job(self):
        assert reconcile_memberships in WorkerSettings.functions

    def test_cron_schedule(self):
        assert len(WorkerSettings.cron_jobs) == 1
        job = WorkerSettings.cron_jobs[0]
        assert job.coroutine is reconcile_memberships
        assert job.minute == 30

