"""
Duplicate detection: same PAN or same national-id within the calendar month
"""

import uuid
from datetime import datetime, timezone, timedelta

import pytest

from leadcrm.config import to_iso, now_iso, month_bounds
from leadcrm.services import duplicate_detector


async def insert_lead(db, created_by, pan, national_id, created_at=None):
    lead = {
        "id": str(uuid.uuid4()),
        "customer_name": "Existing Customer",
        "mobile_number": "9000000000",
        "pan": pan,
        "national_id": national_id,
        "status": "New",
        "source": "Manual",
        "created_by": created_by,
        "edit_history": [],
        "version": 0,
        "created_at": created_at or now_iso(),
        "updated_at": created_at or now_iso(),
    }
    await db.leads.insert_one(dict(lead))
    return lead


class TestFindConflict:

    @pytest.mark.asyncio
    async def test_no_conflict_on_empty_store(self, db):
        assert await duplicate_detector.find_conflict("ABCDE1234F", "123456789012") is None

    @pytest.mark.asyncio
    async def test_same_pan_names_creator(self, db, admin):
        existing = await insert_lead(db, admin["id"], "ABCDE1234F", "111111111111")

        conflict = await duplicate_detector.find_conflict("abcde1234f", "999999999999")

        assert conflict["id"] == existing["id"]
        assert conflict["creator"]["name"] == "Asha Admin"
        assert conflict["creator"]["email"] == "asha@test.local"

    @pytest.mark.asyncio
    async def test_same_national_id_different_pan(self, db, admin):
        await insert_lead(db, admin["id"], "ABCDE1234F", "123456789012")

        conflict = await duplicate_detector.find_conflict("ZZZZZ9999Z", "123456789012")

        assert conflict is not None
        assert conflict["national_id"] == "123456789012"

    @pytest.mark.asyncio
    async def test_previous_month_is_ignored(self, db, admin):
        start, _ = month_bounds()
        last_month = to_iso(start - timedelta(days=3))
        await insert_lead(db, admin["id"], "ABCDE1234F", "123456789012", created_at=last_month)

        assert await duplicate_detector.find_conflict("ABCDE1234F", "123456789012") is None

    @pytest.mark.asyncio
    async def test_month_start_is_inclusive(self, db, admin):
        start, _ = month_bounds()
        await insert_lead(db, admin["id"], "ABCDE1234F", "123456789012", created_at=to_iso(start))

        assert await duplicate_detector.find_conflict("ABCDE1234F", "000000000000") is not None

    @pytest.mark.asyncio
    async def test_unknown_creator_still_reports_conflict(self, db):
        await insert_lead(db, "deleted-user", "ABCDE1234F", "123456789012")

        conflict = await duplicate_detector.find_conflict("ABCDE1234F", "123456789012")

        assert conflict["creator"]["id"] == "deleted-user"

    @pytest.mark.asyncio
    async def test_excluded_lead_is_not_its_own_conflict(self, db, admin):
        existing = await insert_lead(db, admin["id"], "ABCDE1234F", "123456789012")

        assert await duplicate_detector.find_conflict(
            "ABCDE1234F", "123456789012", exclude_lead_id=existing["id"]
        ) is None


class TestClaims:

    @pytest.mark.asyncio
    async def test_second_claim_on_same_pan_fails(self, db):
        assert await duplicate_detector.claim_identifiers("lead-1", "ABCDE1234F", "111111111111")
        assert not await duplicate_detector.claim_identifiers("lead-2", "ABCDE1234F", "222222222222")

    @pytest.mark.asyncio
    async def test_failed_claim_keeps_nothing_reserved(self, db):
        await duplicate_detector.claim_identifiers("lead-1", "ABCDE1234F", "111111111111")

        # PAN is free, national-id is taken: the PAN key must be rolled back
        assert not await duplicate_detector.claim_identifiers("lead-2", "PQRST5678U", "111111111111")
        assert await db.lead_claims.count_documents({"lead_id": "lead-2"}) == 0
        assert await duplicate_detector.claim_identifiers("lead-3", "PQRST5678U", "333333333333")

    @pytest.mark.asyncio
    async def test_claims_are_per_month(self, db):
        last_month = datetime.now(timezone.utc) - timedelta(days=40)
        assert await duplicate_detector.claim_identifiers("lead-1", "ABCDE1234F", "111111111111", last_month)
        assert await duplicate_detector.claim_identifiers("lead-2", "ABCDE1234F", "111111111111")

    @pytest.mark.asyncio
    async def test_release_frees_keys(self, db):
        await duplicate_detector.claim_identifiers("lead-1", "ABCDE1234F", "111111111111")

        assert await duplicate_detector.release_claims("lead-1") == 2
        assert await duplicate_detector.claim_identifiers("lead-2", "ABCDE1234F", "111111111111")

    def test_claim_keys_format(self):
        now = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)
        assert duplicate_detector.claim_keys("abcde1234f", "123456789012", now) == [
            "2026-03:pan:ABCDE1234F",
            "2026-03:nid:123456789012",
        ]

    @pytest.mark.asyncio
    async def test_release_keys_only_drops_own_keys(self, db):
        now = datetime.now(timezone.utc)
        await duplicate_detector.claim_identifiers("lead-1", "ABCDE1234F", "111111111111", now)
        pan_key, nid_key = duplicate_detector.claim_keys("ABCDE1234F", "111111111111", now)

        assert await duplicate_detector.release_keys("lead-2", [pan_key]) == 0
        assert await duplicate_detector.release_keys("lead-1", []) == 0
        assert await duplicate_detector.release_keys("lead-1", [pan_key]) == 1
        assert await db.lead_claims.count_documents({"lead_id": "lead-1"}) == 1
        assert await duplicate_detector.claim_keys_for("lead-2", [pan_key])
        assert not await duplicate_detector.claim_keys_for("lead-2", [nid_key])
