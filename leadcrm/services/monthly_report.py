"""
Lead CRM - Monthly performance report

For the previous calendar month: one row per ADMIN (leads created, approved,
rejected, approval rate), rendered as XLSX and PDF and emailed to every
SUPER ADMIN. A failed recipient is logged and the next one is still tried.
"""

import logging
from datetime import datetime
from typing import Optional, Dict, Any, List

from leadcrm.config import (
    db,
    APP_NAME,
    to_iso,
    previous_month_bounds,
    ROLE_ADMIN,
    ROLE_SUPER_ADMIN,
)
from leadcrm.email_service import email_service
from leadcrm.models.lead import LeadStatus
from leadcrm.services.report_service import ratio
from leadcrm.services.renderers import (
    Column,
    ReportTable,
    RenderedReport,
    XlsxRenderer,
    PdfRenderer,
)

logger = logging.getLogger("reports")

PERFORMANCE_COLUMNS = [
    Column("Admin Name", "name", 110, 30),
    Column("Email", "email", 150, 30),
    Column("Leads Created", "total_created", 70, 15),
    Column("Approved", "approved_count", 70, 15),
    Column("Rejected", "rejected_count", 60, 15),
    Column("Approval Rate (%)", "approval_rate", 75, 20),
]


async def collect_monthly_performance(start: datetime, end: datetime) -> List[Dict[str, Any]]:
    admins = await db.users.find(
        {"role": ROLE_ADMIN}, {"_id": 0, "id": 1, "name": 1, "email": 1}
    ).to_list(None)

    rows = []
    for admin in admins:
        leads = await db.leads.find(
            {
                "created_by": admin["id"],
                "created_at": {"$gte": to_iso(start), "$lte": to_iso(end)},
            },
            {"_id": 0, "status": 1}
        ).to_list(None)

        total_created = len(leads)
        approved = sum(1 for l in leads if l.get("status") == LeadStatus.APPROVED.value)
        rejected = sum(1 for l in leads if l.get("status") == LeadStatus.REJECTED.value)
        rows.append({
            "name": admin.get("name"),
            "email": admin.get("email"),
            "total_created": total_created,
            "approved_count": approved,
            "rejected_count": rejected,
            "approval_rate": ratio(approved, total_created),
        })
    return rows


def render_monthly_attachments(rows: List[Dict[str, Any]], month_label: str) -> List[RenderedReport]:
    table = ReportTable(
        title=f"Monthly Performance Report for {month_label}",
        subtitle=APP_NAME,
        columns=PERFORMANCE_COLUMNS,
        rows=rows,
        sheet_name=f"Report for {month_label}",
    )
    basename = f"Report_{month_label.replace(' ', '_')}"
    return [
        XlsxRenderer().render(table, basename),
        PdfRenderer(orientation="P").render(table, basename),
    ]


async def generate_and_send_monthly_report(now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Returns a run summary {month, admins, recipients, sent, failed}.
    """
    start, end = previous_month_bounds(now)
    month_label = start.strftime("%B %Y")
    logger.info(f"Generating monthly performance report for {month_label}...")

    rows = await collect_monthly_performance(start, end)
    summary = {"month": month_label, "admins": len(rows), "recipients": 0, "sent": 0, "failed": 0}

    if not rows:
        logger.info(f"No ADMIN users, monthly report for {month_label} skipped")
        return summary

    attachments = render_monthly_attachments(rows, month_label)

    super_admins = await db.users.find(
        {"role": ROLE_SUPER_ADMIN}, {"_id": 0, "email": 1}
    ).to_list(None)
    summary["recipients"] = len(super_admins)

    for super_admin in super_admins:
        recipient = super_admin.get("email")
        try:
            sent = email_service.send_monthly_report(recipient, month_label, attachments)
        except Exception:
            logger.exception(f"Monthly report to {recipient} raised")
            sent = False

        if sent:
            summary["sent"] += 1
            logger.info(f"Monthly report sent to super admin: {recipient}")
        else:
            summary["failed"] += 1
            logger.error(f"Monthly report could not be sent to {recipient}")

    return summary
