"""
Lead CRM - Routes Leads
"""

from fastapi import APIRouter, Depends

from leadcrm.models.lead import LeadCreate, LeadUpdate
from leadcrm.services import lead_service
from leadcrm.services.permissions import require_capability

router = APIRouter(prefix="/leads", tags=["Leads"])


# ==================== PUBLIC ====================

@router.post("/link/{user_id}", status_code=201)
async def create_lead_from_link(user_id: str, data: LeadCreate):
    """Referral-link submission. No authentication; the link owner becomes the creator."""
    lead = await lead_service.create_lead_from_link(data, user_id)
    return {"success": True, "message": "Lead submitted successfully!", "data": lead}


# ==================== STAFF ====================

@router.post("", status_code=201)
async def create_lead(data: LeadCreate, user: dict = Depends(require_capability("leads.create"))):
    lead = await lead_service.create_lead(data, user)
    return {"success": True, "data": lead}


@router.get("")
async def list_leads(user: dict = Depends(require_capability("leads.view"))):
    leads = await lead_service.list_leads(user)
    return {"success": True, "count": len(leads), "data": leads}


@router.put("/{lead_id}")
async def update_lead(
    lead_id: str,
    data: LeadUpdate,
    user: dict = Depends(require_capability("leads.update"))
):
    lead = await lead_service.update_lead(lead_id, data, user)
    return {"success": True, "data": lead}


@router.delete("/{lead_id}")
async def delete_lead(lead_id: str, user: dict = Depends(require_capability("leads.delete"))):
    await lead_service.delete_lead(lead_id, user)
    return {"success": True, "data": {}}
