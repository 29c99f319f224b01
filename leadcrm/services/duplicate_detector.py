"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  DUPLICATE LEAD DETECTION                                                    ║
║                                                                              ║
║  Rules:                                                                      ║
║  - Criteria: same PAN OR same national-id                                    ║
║  - Window: current calendar month (app timezone), inclusive bounds           ║
║  - Scope: system-wide, whoever created the first lead                        ║
║                                                                              ║
║  The lookup names the existing creator for the error message. The claim      ║
║  keys (unique index on lead_claims.key) make the rule hold when two          ║
║  requests race past the lookup at the same time.                             ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
from datetime import datetime
from typing import Optional, Dict, Any, List
from pymongo.errors import DuplicateKeyError

from leadcrm.config import db, month_bounds, month_key, to_iso, now_iso

logger = logging.getLogger("duplicate_detector")


async def find_conflict(
    pan: str,
    national_id: str,
    now: Optional[datetime] = None,
    exclude_lead_id: Optional[str] = None
) -> Optional[Dict[str, Any]]:
    """
    Returns the first lead created in the month of `now` with the same PAN or
    the same national-id, with its creator resolved under "creator"
    ({id, name, email}). None when there is no conflict.
    `exclude_lead_id` leaves a lead out of the search, for edits of that lead.
    """
    start, end = month_bounds(now)

    query = {
        "$or": [{"pan": pan.upper()}, {"national_id": national_id}],
        "created_at": {"$gte": to_iso(start), "$lte": to_iso(end)},
    }
    if exclude_lead_id:
        query["id"] = {"$ne": exclude_lead_id}

    existing = await db.leads.find_one(
        query,
        {"_id": 0, "edit_history": 0},
        sort=[("created_at", 1)],
    )
    if not existing:
        return None

    creator = await db.users.find_one(
        {"id": existing.get("created_by")},
        {"_id": 0, "id": 1, "name": 1, "email": 1}
    )
    existing["creator"] = creator or {"id": existing.get("created_by"), "name": "Unknown", "email": ""}

    logger.info(
        f"Duplicate detected: pan={pan.upper()} existing={existing['id'][:8]}... "
        f"creator={existing['creator'].get('email')}"
    )
    return existing


def claim_keys(pan: str, national_id: str, now: Optional[datetime] = None) -> List[str]:
    month = month_key(now)
    return [f"{month}:pan:{pan.upper()}", f"{month}:nid:{national_id}"]


async def claim_keys_for(lead_id: str, keys: List[str]) -> bool:
    """
    Reserve every key for `lead_id`, all or nothing.
    Returns False (and keeps none of `keys` reserved) if one is already taken.
    """
    inserted = []
    try:
        for key in keys:
            await db.lead_claims.insert_one({
                "key": key,
                "lead_id": lead_id,
                "created_at": now_iso()
            })
            inserted.append(key)
    except DuplicateKeyError:
        logger.info(f"Claim race lost for lead {lead_id[:8]}...: {key}")
        await release_keys(lead_id, inserted)
        return False
    return True


async def claim_identifiers(
    lead_id: str,
    pan: str,
    national_id: str,
    now: Optional[datetime] = None
) -> bool:
    """Reserve the month's PAN and national-id for a new lead."""
    return await claim_keys_for(lead_id, claim_keys(pan, national_id, now))


async def release_keys(lead_id: str, keys: List[str]) -> int:
    if not keys:
        return 0
    result = await db.lead_claims.delete_many({"key": {"$in": keys}, "lead_id": lead_id})
    return result.deleted_count


async def release_claims(lead_id: str) -> int:
    result = await db.lead_claims.delete_many({"lead_id": lead_id})
    return result.deleted_count


async def ensure_indexes():
    await db.lead_claims.create_index("key", unique=True)
    await db.lead_claims.create_index("lead_id")
    await db.leads.create_index("pan")
    await db.leads.create_index("national_id")
    await db.leads.create_index("created_at")
    await db.leads.create_index("created_by")
