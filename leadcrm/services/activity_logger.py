"""
Account activity trail: logins and user management, one document per event
"""

import uuid
from enum import Enum
from typing import Optional, Dict, Any

from leadcrm.config import db, now_iso


class AccountAction(str, Enum):
    LOGIN = "login"
    LOGOUT = "logout"
    CREATE_USER = "create_user"
    UPDATE_USER = "update_user"
    DELETE_USER = "delete_user"
    CHANGE_PASSWORD = "change_password"


async def log_activity(
    actor: dict,
    action: AccountAction,
    target: Optional[dict] = None,
    details: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None
) -> Dict[str, Any]:
    """`target` is the account acted upon; the actor's own account when omitted."""
    target = target or actor
    entry = {
        "id": str(uuid.uuid4()),
        "action": AccountAction(action).value,
        "actor_id": actor.get("id"),
        "actor_email": actor.get("email"),
        "target_id": target.get("id"),
        "target_email": target.get("email"),
        "details": details or {},
        "ip_address": ip_address,
        "created_at": now_iso(),
    }
    await db.activity_logs.insert_one(dict(entry))
    return entry


async def list_activity(
    actor_id: Optional[str] = None,
    action: Optional[str] = None,
    limit: int = 100,
    skip: int = 0
) -> Dict[str, Any]:
    query = {}
    if actor_id:
        query["actor_id"] = actor_id
    if action:
        query["action"] = action

    cursor = db.activity_logs.find(query, {"_id": 0}).sort("created_at", -1).skip(skip).limit(limit)
    return {
        "logs": await cursor.to_list(limit),
        "total": await db.activity_logs.count_documents(query),
        "limit": limit,
        "skip": skip,
    }
