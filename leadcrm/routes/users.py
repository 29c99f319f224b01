"""
Lead CRM - Routes Users
User management (SUPER ADMIN) and self-service password change.
"""

import logging
from typing import Optional
from fastapi import APIRouter, HTTPException, Depends

from leadcrm.models.auth import UserUpdate, PasswordChange
from leadcrm.config import db, hash_password, now_iso, VALID_ROLES
from leadcrm.routes.auth import get_current_user
from leadcrm.services.activity_logger import AccountAction, log_activity
from leadcrm.services.permissions import require_capability

logger = logging.getLogger("auth")

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("")
async def list_users(
    role: Optional[str] = None,
    user: dict = Depends(require_capability("users.manage"))
):
    query = {}
    if role:
        if role not in VALID_ROLES:
            raise HTTPException(status_code=400, detail=f"Invalid role: {role}")
        query["role"] = role

    users = await db.users.find(query, {"_id": 0, "password": 0}).sort("created_at", -1).to_list(None)
    return {"success": True, "count": len(users), "data": users}


# Declared before /{user_id} so "changepassword" is never taken for an id
@router.put("/changepassword")
async def change_password(data: PasswordChange, user: dict = Depends(get_current_user)):
    stored = await db.users.find_one({"id": user["id"]}, {"_id": 0, "password": 1})
    if not stored or stored.get("password") != hash_password(data.current_password):
        raise HTTPException(status_code=401, detail="Current password is incorrect")

    await db.users.update_one(
        {"id": user["id"]},
        {"$set": {"password": hash_password(data.new_password), "updated_at": now_iso()}}
    )
    await log_activity(user, AccountAction.CHANGE_PASSWORD)
    return {"success": True, "message": "Password updated successfully"}


@router.put("/{user_id}")
async def update_user(
    user_id: str,
    data: UserUpdate,
    user: dict = Depends(require_capability("users.manage"))
):
    target = await db.users.find_one({"id": user_id})
    if not target:
        raise HTTPException(status_code=404, detail="User not found")

    update_data = data.model_dump(exclude_none=True)
    if "email" in update_data and update_data["email"] != target.get("email"):
        if await db.users.find_one({"email": update_data["email"]}):
            raise HTTPException(status_code=400, detail="A user with that email already exists.")

    update_data["updated_at"] = now_iso()
    await db.users.update_one({"id": user_id}, {"$set": update_data})

    if update_data.get("is_active") is False:
        await db.sessions.delete_many({"user_id": user_id})

    changed = {k: v for k, v in update_data.items() if k != "updated_at"}
    await log_activity(user, AccountAction.UPDATE_USER, target=target, details=changed)

    updated = await db.users.find_one({"id": user_id}, {"_id": 0, "password": 0})
    return {"success": True, "data": updated}


@router.delete("/{user_id}")
async def delete_user(user_id: str, user: dict = Depends(require_capability("users.manage"))):
    if user_id == user.get("id"):
        raise HTTPException(status_code=400, detail="You cannot delete your own account")

    target = await db.users.find_one({"id": user_id})
    if not target:
        raise HTTPException(status_code=404, detail="User not found")

    await db.users.delete_one({"id": user_id})
    await db.sessions.delete_many({"user_id": user_id})

    await log_activity(user, AccountAction.DELETE_USER, target=target)
    logger.info(f"User deleted: {target.get('email')} by={user.get('email')}")

    return {"success": True, "data": {}}
