"""
Lead CRM - Authorization policy
One table of capabilities per role, plus ownership for lead writes.
Every role check in routes and services goes through here.
"""

import logging
from typing import Optional, Dict, List
from fastapi import Depends, HTTPException

from leadcrm.config import ROLE_ADMIN, ROLE_SUPER_ADMIN
from leadcrm.errors import ForbiddenError

logger = logging.getLogger("permissions")

# ════════════════════════════════════════════════════════════════════════
# CAPABILITIES
# ════════════════════════════════════════════════════════════════════════

ALL_CAPABILITIES = [
    "leads.create",
    "leads.view",
    "leads.view_all",
    "leads.update",
    "leads.delete",

    "reports.view",
    "reports.export",
    "reports.all_creators",
    "reports.run_monthly",

    "users.manage",
]

# Capabilities an ADMIN holds only on leads they created
OWNERSHIP_SCOPED = {"leads.update", "leads.delete"}

ROLE_CAPABILITIES: Dict[str, Dict[str, bool]] = {
    ROLE_SUPER_ADMIN: {k: True for k in ALL_CAPABILITIES},

    ROLE_ADMIN: {
        "leads.create": True, "leads.view": True, "leads.view_all": False,
        "leads.update": True, "leads.delete": True,
        "reports.view": True, "reports.export": True,
        "reports.all_creators": False,
        "reports.run_monthly": False,
        "users.manage": False,
    },
}


def is_super_admin(user: dict) -> bool:
    return user.get("role") == ROLE_SUPER_ADMIN


def can(user: dict, capability: str, owner_id: Optional[str] = None) -> bool:
    """
    Policy decision for (caller role, caller id, resource owner, capability).
    SUPER ADMIN holds every capability on every resource. Other roles need the
    capability in their preset, and for ownership-scoped capabilities must
    also be the resource owner.
    """
    perms = ROLE_CAPABILITIES.get(user.get("role"), {})
    if not perms.get(capability, False):
        return False
    if capability in OWNERSHIP_SCOPED and not is_super_admin(user):
        return owner_id is not None and owner_id == user.get("id")
    return True


def authorize(user: dict, capability: str, owner_id: Optional[str] = None, message: str = None):
    """Raise ForbiddenError when `can` says no."""
    if not can(user, capability, owner_id):
        logger.warning(
            f"[PERMISSION_DENIED] user={user.get('email')} "
            f"capability={capability} role={user.get('role')} owner={owner_id}"
        )
        raise ForbiddenError(message or f"Not authorized: {capability}")


def lead_scope_filter(user: dict, field: str = "created_by") -> dict:
    """
    MongoDB filter for role-scoped reads.
    SUPER ADMIN -> no filter, others -> their own leads only.
    """
    if can(user, "leads.view_all"):
        return {}
    return {field: user.get("id")}


def capabilities_for(role: str) -> List[str]:
    return [k for k, v in ROLE_CAPABILITIES.get(role, {}).items() if v]


# ════════════════════════════════════════════════════════════════════════
# FASTAPI DEPENDENCIES
# ════════════════════════════════════════════════════════════════════════

def require_capability(capability: str):
    """
    FastAPI dependency factory.
    Usage: user: dict = Depends(require_capability("leads.view"))
    """
    from leadcrm.routes.auth import get_current_user

    async def _check(user: dict = Depends(get_current_user)):
        if user.get("role") not in ROLE_CAPABILITIES or not ROLE_CAPABILITIES[user["role"]].get(capability):
            logger.warning(
                f"[PERMISSION_DENIED] user={user.get('email')} "
                f"capability={capability} role={user.get('role')}"
            )
            raise HTTPException(
                status_code=403,
                detail=f"User role {user.get('role')} is not authorized to access this route"
            )
        return user

    return _check
