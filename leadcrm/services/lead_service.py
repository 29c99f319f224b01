"""
Lead CRM - Lead lifecycle

Create (staff and referral link), list, update with edit history, delete.
Each step fails fast with its own error so callers get a precise message.
"""

import logging
import re
import uuid
from datetime import datetime
from typing import Optional, Dict, Any, List
from pymongo import ReturnDocument

from leadcrm.config import (
    db,
    now_iso,
    parse_iso,
    to_iso,
    STAFF_NATIONAL_ID_DIGITS,
    LINK_NATIONAL_ID_DIGITS,
)
from leadcrm.errors import ValidationError, ConflictError, NotFoundError
from leadcrm.models.lead import (
    LeadCreate,
    LeadUpdate,
    LeadDocument,
    EditHistoryEntry,
    LeadSource,
    PAN_RE,
)
from leadcrm.services.duplicate_detector import (
    find_conflict,
    claim_identifiers,
    claim_keys,
    claim_keys_for,
    release_keys,
    release_claims,
)
from leadcrm.services.permissions import authorize, lead_scope_filter

logger = logging.getLogger("leads")

# Never part of an edit-history snapshot
SNAPSHOT_EXCLUDED = ("_id", "edit_history", "version")

REQUIRED_ON_UPDATE = ("customer_name", "mobile_number", "pan", "national_id")


def national_id_digits(source: str) -> int:
    return LINK_NATIONAL_ID_DIGITS if source == LeadSource.LINK.value else STAFF_NATIONAL_ID_DIGITS


def validate_identifiers(pan: Optional[str], national_id: Optional[str], digits: int):
    """
    Presence then format checks, in that order.
    Returns (PAN upper-cased, national-id trimmed).
    """
    if not pan or not national_id or not pan.strip() or not national_id.strip():
        raise ValidationError("Please provide both a PAN card and a national-id number.")

    pan = pan.strip().upper()
    if not PAN_RE.match(pan):
        raise ValidationError(
            "Invalid PAN card format. It should be 5 letters, 4 numbers, and 1 letter."
        )

    national_id = national_id.strip()
    if not re.fullmatch(rf"[0-9]{{{digits}}}", national_id):
        raise ValidationError(f"Invalid national-id format. It should be {digits} digits.")

    return pan, national_id


def snapshot(lead: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in lead.items() if k not in SNAPSHOT_EXCLUDED}


def _staff_conflict(duplicate: Dict[str, Any]) -> ConflictError:
    creator = duplicate["creator"]
    return ConflictError(
        f"This lead already exists for this month. It was created by "
        f"{creator.get('name')} ({creator.get('email')}). "
        f"You can add this lead again next month."
    )


async def _insert_lead(
    data: LeadCreate,
    creator: dict,
    source: LeadSource,
    pan: str,
    national_id: str,
    now: Optional[datetime] = None
) -> Dict[str, Any]:
    lead_id = str(uuid.uuid4())

    if not await claim_identifiers(lead_id, pan, national_id, now):
        # Lost the claim race to a concurrent create
        if source == LeadSource.LINK:
            raise ConflictError("This lead already exists. Please try again after this month.")
        duplicate = await find_conflict(pan, national_id, now)
        if duplicate:
            raise _staff_conflict(duplicate)
        raise ConflictError("This lead already exists for this month. You can add this lead again next month.")

    created_at = to_iso(now) if now else now_iso()
    fields = data.model_dump(mode="json", exclude={"pan", "national_id"})
    lead = LeadDocument(
        id=lead_id,
        pan=pan,
        national_id=national_id,
        source=source,
        created_by=creator["id"],
        created_at=created_at,
        updated_at=created_at,
        **fields,
    )
    lead_doc = lead.model_dump(mode="json")

    try:
        await db.leads.insert_one(lead_doc)
    except Exception:
        await release_claims(lead_id)
        raise

    lead_doc.pop("_id", None)
    logger.info(
        f"Lead created: id={lead_id} source={source.value} "
        f"created_by={creator.get('email')}"
    )
    return lead_doc


async def create_lead(data: LeadCreate, user: dict, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Staff path. The caller is the creator.
    """
    authorize(user, "leads.create")
    pan, national_id = validate_identifiers(data.pan, data.national_id, STAFF_NATIONAL_ID_DIGITS)

    duplicate = await find_conflict(pan, national_id, now)
    if duplicate:
        raise _staff_conflict(duplicate)

    creator = await db.users.find_one({"id": user.get("id")}, {"_id": 0, "password": 0})
    if not creator:
        raise NotFoundError("User not found")

    return await _insert_lead(data, creator, LeadSource.MANUAL, pan, national_id, now)


async def create_lead_from_link(data: LeadCreate, user_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Public referral-link path. The link owner is the creator; the
    submitter is anonymous so the conflict message names nobody.
    """
    creator = await db.users.find_one({"id": user_id}, {"_id": 0, "password": 0})
    if not creator:
        raise NotFoundError("Invalid referral link.")

    pan, national_id = validate_identifiers(data.pan, data.national_id, LINK_NATIONAL_ID_DIGITS)

    if await find_conflict(pan, national_id, now):
        raise ConflictError("This lead already exists. Please try again after this month.")

    return await _insert_lead(data, creator, LeadSource.LINK, pan, national_id, now)


async def _expand_creators(leads: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Replace created_by ids with {id, name, email}"""
    creator_ids = list({lead.get("created_by") for lead in leads if lead.get("created_by")})
    users = await db.users.find(
        {"id": {"$in": creator_ids}},
        {"_id": 0, "id": 1, "name": 1, "email": 1}
    ).to_list(len(creator_ids) or 1)
    by_id = {u["id"]: u for u in users}

    for lead in leads:
        owner = lead.get("created_by")
        lead["created_by"] = by_id.get(owner, {"id": owner, "name": None, "email": None})
    return leads


async def list_leads(user: dict) -> List[Dict[str, Any]]:
    authorize(user, "leads.view")
    query = lead_scope_filter(user)
    leads = await db.leads.find(query, {"_id": 0}).sort("created_at", -1).to_list(None)
    return await _expand_creators(leads)


async def get_lead_or_404(lead_id: str) -> Dict[str, Any]:
    lead = await db.leads.find_one({"id": lead_id}, {"_id": 0})
    if not lead:
        raise NotFoundError("Lead not found")
    return lead


async def _move_claims(lead: Dict[str, Any], pan: str, national_id: str) -> List[str]:
    """
    Reserve the new identifiers in the lead's own creation month.
    Returns the keys newly reserved; the caller releases them if the write fails.
    """
    lead_id = lead["id"]
    created = parse_iso(lead["created_at"])

    duplicate = await find_conflict(pan, national_id, created, exclude_lead_id=lead_id)
    if duplicate:
        raise _staff_conflict(duplicate)

    held = claim_keys(lead["pan"], lead["national_id"], created)
    added = [key for key in claim_keys(pan, national_id, created) if key not in held]
    if not await claim_keys_for(lead_id, added):
        duplicate = await find_conflict(pan, national_id, created, exclude_lead_id=lead_id)
        if duplicate:
            raise _staff_conflict(duplicate)
        raise ConflictError("This lead already exists for this month. You can add this lead again next month.")
    return added


async def update_lead(lead_id: str, data: LeadUpdate, user: dict) -> Dict[str, Any]:
    """
    Apply the requested changes and append one edit-history entry, in a
    single write guarded by the lead's version counter.

    A PAN or national-id change moves the lead's monthly claims: the new
    identifiers are reserved before the write, the old ones released after.
    """
    lead = await get_lead_or_404(lead_id)
    authorize(user, "leads.update", lead.get("created_by"), "Not authorized to update this lead")

    changes = data.changes()
    for field in REQUIRED_ON_UPDATE:
        if field in changes and changes[field] is None:
            raise ValidationError(f"{field} cannot be empty")

    added_keys: List[str] = []
    stale_keys: List[str] = []
    if "pan" in changes or "national_id" in changes:
        pan, national_id = validate_identifiers(
            changes.get("pan", lead.get("pan")),
            changes.get("national_id", lead.get("national_id")),
            national_id_digits(lead.get("source")),
        )
        if "pan" in changes:
            changes["pan"] = pan
        if "national_id" in changes:
            changes["national_id"] = national_id

        if pan != lead.get("pan") or national_id != lead.get("national_id"):
            added_keys = await _move_claims(lead, pan, national_id)
            created = parse_iso(lead["created_at"])
            kept = claim_keys(pan, national_id, created)
            stale_keys = [key for key in claim_keys(lead["pan"], lead["national_id"], created) if key not in kept]

    timestamp = now_iso()
    changes["updated_at"] = timestamp

    previous_data = snapshot(lead)
    new_data = {**previous_data, **changes}
    entry = EditHistoryEntry(
        editor_id=user["id"],
        timestamp=timestamp,
        previous_data=previous_data,
        new_data=new_data,
    ).model_dump()

    updated = await db.leads.find_one_and_update(
        {"id": lead_id, "version": lead.get("version", 0)},
        {
            "$set": changes,
            "$inc": {"version": 1},
            "$push": {"edit_history": entry},
        },
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        await release_keys(lead_id, added_keys)
        if not await db.leads.find_one({"id": lead_id}, {"_id": 1}):
            raise NotFoundError("Lead not found")
        raise ConflictError("This lead was modified by someone else. Please reload and try again.")

    await release_keys(lead_id, stale_keys)
    updated.pop("_id", None)

    logger.info(
        f"Lead updated: id={lead_id} by={user.get('email')} "
        f"fields={sorted(k for k in changes if k != 'updated_at')}"
    )
    return updated


async def delete_lead(lead_id: str, user: dict) -> None:
    lead = await get_lead_or_404(lead_id)
    authorize(user, "leads.delete", lead.get("created_by"), "Not authorized to delete this lead")

    await db.leads.delete_one({"id": lead_id})
    await release_claims(lead_id)
    logger.info(f"Lead deleted: id={lead_id} by={user.get('email')}")
