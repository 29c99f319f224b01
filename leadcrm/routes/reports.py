"""
Lead CRM - Routes Reports
Dashboard, custom export, per-user performance, manual monthly run.
"""

from fastapi import APIRouter, Depends, Response

from leadcrm.models.report import ReportDownloadRequest
from leadcrm.services import report_service
from leadcrm.services.monthly_report import generate_and_send_monthly_report
from leadcrm.services.permissions import require_capability

router = APIRouter(prefix="/reports", tags=["Reports"])


@router.get("/dashboard")
async def dashboard(user: dict = Depends(require_capability("reports.view"))):
    stats = await report_service.get_dashboard_stats(user)
    return {"success": True, "data": stats}


@router.post("/download")
async def download_report(
    data: ReportDownloadRequest,
    user: dict = Depends(require_capability("reports.export"))
):
    report = await report_service.generate_custom_report(user, data)
    return Response(
        content=report.content,
        media_type=report.content_type,
        headers={"Content-Disposition": f'attachment; filename="{report.filename}"'}
    )


@router.get("/user-performance")
async def user_performance(user: dict = Depends(require_capability("reports.all_creators"))):
    performance = await report_service.get_user_performance(user)
    return {"success": True, "count": len(performance), "data": performance}


@router.post("/monthly/run")
async def run_monthly_report(user: dict = Depends(require_capability("reports.run_monthly"))):
    summary = await generate_and_send_monthly_report()
    return {"success": True, "data": summary}
