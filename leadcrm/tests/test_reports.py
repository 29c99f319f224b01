"""
Dashboard statistics, custom export and the renderers behind it
"""

import csv
import io
import uuid
from datetime import datetime, timezone, timedelta

import pytest

from leadcrm.config import local_now, now_iso, to_iso
from leadcrm.errors import ForbiddenError, ValidationError
from leadcrm.models.report import ReportDownloadRequest
from leadcrm.services import report_service
from leadcrm.services.renderers import (
    Column,
    ReportTable,
    CsvRenderer,
    PdfRenderer,
    XlsxRenderer,
)


async def insert_lead(db, created_by, status="New", created_at=None, **fields):
    n = uuid.uuid4().int
    lead = {
        "id": str(uuid.uuid4()),
        "customer_name": "Customer",
        "mobile_number": "9000000000",
        "pan": f"ABCDE{n % 10000:04d}F",
        "national_id": f"{n % 10**12:012d}",
        "status": status,
        "rejection_reason": None,
        "rejection_notes": None,
        "source": "Manual",
        "created_by": created_by,
        "edit_history": [],
        "version": 0,
        "created_at": created_at or now_iso(),
        "updated_at": created_at or now_iso(),
    }
    lead.update(fields)
    await db.leads.insert_one(dict(lead))
    return lead


def today_request(**overrides):
    today = local_now().date()
    payload = {"start_date": today - timedelta(days=1), "end_date": today, "format": "csv"}
    payload.update(overrides)
    return ReportDownloadRequest(**payload)


# ==================== DASHBOARD ====================

class TestDashboard:

    @pytest.mark.asyncio
    async def test_ratios(self, db, admin):
        for status in ["Approved"] * 3 + ["Rejected"] * 2 + ["New"] * 4 + ["Follow-up"]:
            await insert_lead(db, admin["id"], status)

        stats = await report_service.get_dashboard_stats(admin)

        assert stats["total_leads"] == 10
        assert stats["approval_ratio"] == 30.0
        assert stats["rejection_ratio"] == 20.0
        assert stats["status_counts"] == {"New": 4, "Follow-up": 1, "Approved": 3, "Rejected": 2}

    @pytest.mark.asyncio
    async def test_empty_store(self, db, admin):
        stats = await report_service.get_dashboard_stats(admin)

        assert stats["total_leads"] == 0
        assert stats["approval_ratio"] == 0
        assert stats["rejection_ratio"] == 0
        assert stats["status_counts"] == {"New": 0, "Follow-up": 0, "Approved": 0, "Rejected": 0}

    @pytest.mark.asyncio
    async def test_last_30_days_window(self, db, admin):
        old = to_iso(datetime.now(timezone.utc) - timedelta(days=45))
        await insert_lead(db, admin["id"], created_at=old)
        await insert_lead(db, admin["id"])

        stats = await report_service.get_dashboard_stats(admin)

        assert stats["total_leads"] == 2
        assert stats["leads_last_30_days"] == 1

    @pytest.mark.asyncio
    async def test_scope_by_role(self, db, admin, other_admin, super_admin):
        await insert_lead(db, admin["id"], "Approved")
        await insert_lead(db, other_admin["id"], "Rejected")

        mine = await report_service.get_dashboard_stats(admin)
        everyone = await report_service.get_dashboard_stats(super_admin)

        assert mine["total_leads"] == 1
        assert mine["approval_ratio"] == 100.0
        assert everyone["total_leads"] == 2
        assert everyone["approval_ratio"] == 50.0

    def test_ratio_rounding(self):
        assert report_service.ratio(1, 3) == 33.33
        assert report_service.ratio(0, 0) == 0.0


# ==================== USER PERFORMANCE ====================

class TestUserPerformance:

    @pytest.mark.asyncio
    async def test_admin_is_forbidden(self, db, admin):
        with pytest.raises(ForbiddenError):
            await report_service.get_user_performance(admin)

    @pytest.mark.asyncio
    async def test_counts_per_user(self, db, admin, super_admin):
        await insert_lead(db, admin["id"], "Approved")
        await insert_lead(db, admin["id"], "Rejected")
        await insert_lead(db, admin["id"], "Follow-up")

        rows = {r["id"]: r for r in await report_service.get_user_performance(super_admin)}

        assert rows[admin["id"]] == {
            "id": admin["id"], "name": "Asha Admin",
            "leads": 3, "approved": 1, "rejected": 1, "pending": 1,
        }
        assert rows[super_admin["id"]]["leads"] == 0


# ==================== CUSTOM EXPORT ====================

class TestCustomExport:

    @pytest.mark.asyncio
    async def test_csv_quotes_every_field(self, db, admin):
        await insert_lead(db, admin["id"], customer_name="Doe, John")
        await insert_lead(db, admin["id"], customer_name='Say "Hi"')

        report = await report_service.generate_custom_report(admin, today_request())

        assert report.content_type == "text/csv"
        assert report.filename.startswith("Custom_Report_")
        assert report.filename.endswith(".csv")
        text = report.content.decode("utf-8")
        assert '"Doe, John"' in text
        assert '"Say ""Hi"""' in text
        rows = list(csv.reader(io.StringIO(text)))
        assert rows[0][0] == "Date Created"
        assert len(rows) == 3

    @pytest.mark.asyncio
    async def test_admin_is_pinned_to_own_leads(self, db, admin, other_admin):
        await insert_lead(db, admin["id"], customer_name="Mine")
        await insert_lead(db, other_admin["id"], customer_name="Theirs")

        report = await report_service.generate_custom_report(
            admin, today_request(admin_id=other_admin["id"])
        )

        text = report.content.decode("utf-8")
        assert "Mine" in text
        assert "Theirs" not in text

    @pytest.mark.asyncio
    async def test_super_admin_filters_by_admin(self, db, admin, other_admin, super_admin):
        await insert_lead(db, admin["id"], customer_name="Mine")
        await insert_lead(db, other_admin["id"], customer_name="Theirs")

        everyone = await report_service.generate_custom_report(super_admin, today_request())
        filtered = await report_service.generate_custom_report(
            super_admin, today_request(admin_id=other_admin["id"])
        )

        assert "Mine" in everyone.content.decode() and "Theirs" in everyone.content.decode()
        assert "Mine" not in filtered.content.decode()

    @pytest.mark.asyncio
    async def test_range_excludes_older_leads(self, db, admin):
        old = to_iso(datetime.now(timezone.utc) - timedelta(days=10))
        await insert_lead(db, admin["id"], customer_name="Old", created_at=old)
        await insert_lead(db, admin["id"], customer_name="Fresh")

        report = await report_service.generate_custom_report(admin, today_request())

        text = report.content.decode()
        assert "Fresh" in text
        assert "Old" not in text

    @pytest.mark.asyncio
    async def test_pdf_export(self, db, admin):
        await insert_lead(db, admin["id"], "Approved")

        report = await report_service.generate_custom_report(admin, today_request(format="PDF"))

        assert report.content_type == "application/pdf"
        assert report.filename.endswith(".pdf")
        assert report.content.startswith(b"%PDF")

    @pytest.mark.asyncio
    async def test_missing_dates(self, db, admin):
        with pytest.raises(ValidationError) as exc:
            await report_service.generate_custom_report(admin, ReportDownloadRequest(format="csv"))
        assert exc.value.message == "Please provide a start and end date."

    def test_request_rejects_unknown_format(self):
        with pytest.raises(ValueError):
            today_request(format="docx")

    def test_request_rejects_inverted_range(self):
        today = local_now().date()
        with pytest.raises(ValueError):
            ReportDownloadRequest(startDate=today, endDate=today - timedelta(days=1))


# ==================== RENDERERS ====================

def sample_table(rows, summary=None):
    return ReportTable(
        title="Lead Report",
        subtitle="Date Range: 2026-01-01 to 2026-01-31",
        columns=[Column("Customer", "customer_name", 300), Column("Status", "status", 200)],
        rows=rows,
        summary=summary or [],
        sheet_name="A sheet name that is far longer than Excel allows",
    )


class TestRenderers:

    def test_pdf_paginates_long_tables(self):
        rows = [{"customer_name": f"Customer {i}", "status": "New"} for i in range(60)]

        pdf = PdfRenderer(orientation="L").build(sample_table(rows, [("Total", "60")]))

        assert pdf.page_no() > 1

    def test_pdf_single_page_for_short_tables(self):
        pdf = PdfRenderer(orientation="P").build(sample_table([{"customer_name": "A", "status": "New"}]))
        assert pdf.page_no() == 1

    def test_pdf_replaces_non_latin1_text(self):
        content = PdfRenderer().render_bytes(sample_table([{"customer_name": "राम", "status": "New"}]))
        assert content.startswith(b"%PDF")

    def test_csv_renders_none_as_empty(self):
        content = CsvRenderer().render_bytes(sample_table([{"customer_name": None, "status": "New"}]))
        assert content.decode() == '"Customer","Status"\n"","New"\n'

    def test_xlsx_sheet_title_is_truncated(self):
        workbook = XlsxRenderer().build_workbook(sample_table([{"customer_name": "A", "status": "New"}]))
        sheet = workbook.active
        assert len(sheet.title) <= 31
        assert sheet["A1"].value == "Customer"
        assert sheet["A2"].value == "A"
