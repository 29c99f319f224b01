"""
Lead CRM - Report aggregation

Dashboard statistics, per-user performance and the custom date-range export.
All reads are role-scoped through the permission policy.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any, List

from leadcrm.config import (
    db,
    APP_NAME,
    to_iso,
    day_bounds,
    local_now,
    local_date_str,
    ROLE_ADMIN,
    ROLE_SUPER_ADMIN,
)
from leadcrm.errors import ValidationError
from leadcrm.models.lead import VALID_LEAD_STATUSES, LeadStatus
from leadcrm.models.report import ReportDownloadRequest
from leadcrm.services.permissions import authorize, can, lead_scope_filter
from leadcrm.services.renderers import (
    Column,
    ReportTable,
    RenderedReport,
    CsvRenderer,
    PdfRenderer,
)

logger = logging.getLogger("reports")

RENDERERS = {
    "csv": CsvRenderer(),
    "pdf": PdfRenderer(orientation="L"),
}

CSV_COLUMNS = [
    Column("Date Created", "date"),
    Column("Customer Name", "customer_name"),
    Column("Mobile", "mobile_number"),
    Column("PAN", "pan"),
    Column("National ID", "national_id"),
    Column("Status", "status"),
    Column("Rejection Reason", "rejection_reason"),
    Column("Rejection Notes", "rejection_notes"),
    Column("Created By", "created_by_name"),
]

PDF_COLUMNS = [
    Column("Date", "date", 70),
    Column("Customer", "customer_name", 130),
    Column("Mobile", "mobile_number", 90),
    Column("PAN", "pan", 100),
    Column("Status", "status", 80),
    Column("Rejection Reason", "rejection_reason", 150),
    Column("Created By", "created_by_name", 160),
]


def ratio(part: int, total: int) -> float:
    """Percentage rounded to 2 decimals, 0 when total is 0"""
    if total <= 0:
        return 0.0
    return round(part / total * 100, 2)


async def get_dashboard_stats(user: dict, now: Optional[datetime] = None) -> Dict[str, Any]:
    authorize(user, "reports.view")
    query = lead_scope_filter(user)

    now = now or datetime.now(timezone.utc)
    thirty_days_ago = to_iso(now - timedelta(days=30))

    status_counts = {status: 0 for status in VALID_LEAD_STATUSES}
    pipeline = [
        {"$match": query},
        {"$group": {"_id": "$status", "count": {"$sum": 1}}}
    ]
    async for doc in db.leads.aggregate(pipeline):
        if doc["_id"] in status_counts:
            status_counts[doc["_id"]] = doc["count"]

    total_leads = await db.leads.count_documents(query)
    leads_last_30_days = await db.leads.count_documents({
        **query,
        "created_at": {"$gte": thirty_days_ago}
    })

    return {
        "total_leads": total_leads,
        "leads_last_30_days": leads_last_30_days,
        "status_counts": status_counts,
        "approval_ratio": ratio(status_counts[LeadStatus.APPROVED.value], total_leads),
        "rejection_ratio": ratio(status_counts[LeadStatus.REJECTED.value], total_leads),
    }


async def get_user_performance(user: dict) -> List[Dict[str, Any]]:
    """All-time totals per staff member"""
    authorize(user, "reports.all_creators")

    users = await db.users.find(
        {"role": {"$in": [ROLE_ADMIN, ROLE_SUPER_ADMIN]}},
        {"_id": 0, "id": 1, "name": 1}
    ).to_list(None)
    leads = await db.leads.find({}, {"_id": 0, "created_by": 1, "status": 1}).to_list(None)

    by_creator: Dict[str, List[dict]] = {}
    for lead in leads:
        by_creator.setdefault(lead.get("created_by"), []).append(lead)

    performance = []
    for staff in users:
        own = by_creator.get(staff["id"], [])
        performance.append({
            "id": staff["id"],
            "name": staff.get("name"),
            "leads": len(own),
            "approved": sum(1 for l in own if l.get("status") == LeadStatus.APPROVED.value),
            "rejected": sum(1 for l in own if l.get("status") == LeadStatus.REJECTED.value),
            "pending": sum(
                1 for l in own
                if l.get("status") in (LeadStatus.NEW.value, LeadStatus.FOLLOW_UP.value)
            ),
        })
    return performance


def export_filter(user: dict, start_day, end_day, admin_id: Optional[str]) -> Dict[str, Any]:
    """
    Date range plus creator scope. Callers without reports.all_creators are
    pinned to their own leads whatever admin_id they send.
    """
    start, end = day_bounds(start_day, end_day)
    query: Dict[str, Any] = {"created_at": {"$gte": to_iso(start), "$lte": to_iso(end)}}

    if not can(user, "reports.all_creators"):
        query["created_by"] = user.get("id")
    elif admin_id:
        query["created_by"] = admin_id
    return query


async def collect_export_rows(query: Dict[str, Any]) -> List[Dict[str, Any]]:
    leads = await db.leads.find(query, {"_id": 0, "edit_history": 0}).sort("created_at", 1).to_list(None)

    creator_ids = list({l.get("created_by") for l in leads})
    creators = await db.users.find(
        {"id": {"$in": creator_ids}}, {"_id": 0, "id": 1, "name": 1}
    ).to_list(None)
    names = {c["id"]: c.get("name") for c in creators}

    rows = []
    for lead in leads:
        rows.append({
            "date": local_date_str(lead.get("created_at")),
            "customer_name": lead.get("customer_name", ""),
            "mobile_number": lead.get("mobile_number", ""),
            "pan": lead.get("pan", ""),
            "national_id": lead.get("national_id", ""),
            "status": lead.get("status", ""),
            "rejection_reason": lead.get("rejection_reason") or "",
            "rejection_notes": lead.get("rejection_notes") or "",
            "created_by_name": names.get(lead.get("created_by")) or "N/A",
        })
    return rows


def build_export_table(rows: List[Dict[str, Any]], fmt: str, start_day, end_day) -> ReportTable:
    total = len(rows)
    approved = sum(1 for r in rows if r["status"] == LeadStatus.APPROVED.value)
    rejected = sum(1 for r in rows if r["status"] == LeadStatus.REJECTED.value)
    approval_rate = f"{ratio(approved, total):.2f}%"

    if fmt == "pdf":
        pdf_rows = [{**r, "rejection_reason": r["rejection_reason"] or "N/A"} for r in rows]
        return ReportTable(
            title=f"{APP_NAME} Lead Report",
            subtitle=f"Date Range: {start_day.isoformat()} to {end_day.isoformat()}",
            columns=PDF_COLUMNS,
            rows=pdf_rows,
            summary=[
                ("Total Leads Generated", str(total)),
                ("Leads Approved", str(approved)),
                ("Leads Rejected", str(rejected)),
                ("Approval Rate", approval_rate),
            ],
        )
    return ReportTable(title=f"{APP_NAME} Lead Report", columns=CSV_COLUMNS, rows=rows)


async def generate_custom_report(user: dict, request: ReportDownloadRequest) -> RenderedReport:
    """
    Render the leads of a date range as CSV or PDF. Everything is read and
    rendered in memory before anything is returned.
    """
    authorize(user, "reports.export")
    if not request.start_date or not request.end_date:
        raise ValidationError("Please provide a start and end date.")

    query = export_filter(user, request.start_date, request.end_date, request.admin_id)
    rows = await collect_export_rows(query)

    table = build_export_table(rows, request.format, request.start_date, request.end_date)
    report_date = local_now().strftime("%Y-%m-%d")
    rendered = RENDERERS[request.format].render(table, f"Custom_Report_{report_date}")

    logger.info(
        f"Custom report: user={user.get('email')} format={request.format} "
        f"range={request.start_date}..{request.end_date} leads={len(rows)}"
    )
    return rendered
