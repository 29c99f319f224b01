"""
Lead CRM - Routes Auth
Bearer sessions, login/logout, account registration (SUPER ADMIN).
"""

import logging
import uuid
from datetime import datetime, timezone, timedelta
from typing import Optional
from fastapi import APIRouter, HTTPException, Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from leadcrm.models.auth import UserLogin, UserCreate
from leadcrm.config import db, hash_password, generate_token, now_iso, to_iso, SESSION_DAYS
from leadcrm.services.activity_logger import AccountAction, log_activity, list_activity
from leadcrm.services.permissions import require_capability, capabilities_for

logger = logging.getLogger("auth")

router = APIRouter(prefix="/auth", tags=["Auth"])
security = HTTPBearer(auto_error=False)


# ==================== SESSIONS ====================

async def open_session(user_id: str) -> str:
    token = generate_token()
    await db.sessions.insert_one({
        "token": token,
        "user_id": user_id,
        "created_at": now_iso(),
        "expires_at": to_iso(datetime.now(timezone.utc) + timedelta(days=SESSION_DAYS)),
    })
    return token


async def resolve_session(token: str) -> Optional[dict]:
    """Live session for `token`, or None once it has expired"""
    return await db.sessions.find_one({"token": token, "expires_at": {"$gt": now_iso()}})


async def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(security)):
    if not credentials:
        raise HTTPException(status_code=401, detail="Not authorized to access this route")

    session = await resolve_session(credentials.credentials)
    if not session:
        raise HTTPException(status_code=401, detail="Session expired")

    account = await db.users.find_one({"id": session["user_id"]}, {"_id": 0, "password": 0})
    if not account:
        raise HTTPException(status_code=401, detail="User not found")
    if not account.get("is_active", True):
        raise HTTPException(status_code=403, detail="Account disabled")
    return account


def public_user(account: dict) -> dict:
    return {key: account.get(key) for key in ("id", "name", "email", "role")}


# ==================== LOGIN / LOGOUT ====================

@router.post("/login")
async def login(data: UserLogin, request: Request):
    email = data.email.lower().strip()
    account = await db.users.find_one({"email": email}, {"_id": 0})

    if not account or account.get("password") != hash_password(data.password):
        logger.info(f"Failed login for {email}")
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if not account.get("is_active", True):
        raise HTTPException(status_code=403, detail="Account disabled")

    token = await open_session(account["id"])
    await log_activity(
        account,
        AccountAction.LOGIN,
        ip_address=request.client.host if request.client else None
    )
    return {"success": True, "token": token, "user": public_user(account)}


@router.post("/logout")
async def logout(
    user: dict = Depends(get_current_user),
    credentials: HTTPAuthorizationCredentials = Depends(security)
):
    await db.sessions.delete_one({"token": credentials.credentials})
    await log_activity(user, AccountAction.LOGOUT)
    return {"success": True, "message": "Logged out"}


@router.get("/me")
async def me(user: dict = Depends(get_current_user)):
    return {"success": True, "data": {**user, "capabilities": capabilities_for(user.get("role"))}}


# ==================== REGISTER ====================

@router.post("/register", status_code=201)
async def register(data: UserCreate, user: dict = Depends(require_capability("users.manage"))):
    if await db.users.find_one({"email": data.email}, {"_id": 1}):
        raise HTTPException(status_code=400, detail="A user with that email already exists.")

    account = {
        "id": str(uuid.uuid4()),
        "name": data.name,
        "email": data.email,
        "password": hash_password(data.password),
        "role": data.role,
        "is_active": True,
        "created_at": now_iso(),
        "created_by": user["id"],
    }
    await db.users.insert_one(dict(account))
    await log_activity(user, AccountAction.CREATE_USER, target=account, details={"role": data.role})

    logger.info(f"User registered: {data.email} ({data.role}) by={user.get('email')}")
    return {"success": True, "data": public_user(account)}


# ==================== ACTIVITY ====================

@router.get("/activity-logs")
async def activity_logs(
    user_id: Optional[str] = None,
    action: Optional[str] = None,
    limit: int = 100,
    skip: int = 0,
    user: dict = Depends(require_capability("users.manage"))
):
    page = await list_activity(user_id, action, min(max(limit, 1), 500), max(skip, 0))
    return {"success": True, "data": page}
