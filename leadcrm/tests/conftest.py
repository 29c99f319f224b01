"""
Shared fixtures: an in-memory Mongo patched into every module that holds
the `db` handle, user factories and bearer sessions.
"""

import uuid
from datetime import datetime, timezone, timedelta

import httpx
import pytest
import pytest_asyncio
from mongomock_motor import AsyncMongoMockClient

from leadcrm import config
from leadcrm.config import hash_password, generate_token, now_iso, to_iso, ROLE_ADMIN, ROLE_SUPER_ADMIN
from leadcrm.models.lead import LeadCreate
from leadcrm.routes import auth as auth_routes
from leadcrm.routes import users as users_routes
from leadcrm.services import (
    activity_logger,
    duplicate_detector,
    lead_service,
    monthly_report,
    report_service,
)

DB_MODULES = [
    config,
    activity_logger,
    duplicate_detector,
    lead_service,
    monthly_report,
    report_service,
    auth_routes,
    users_routes,
]

TEST_PASSWORD = "secret123"


@pytest_asyncio.fixture
async def db(monkeypatch):
    database = AsyncMongoMockClient()["leadcrm_test"]
    for module in DB_MODULES:
        monkeypatch.setattr(module, "db", database)
    await duplicate_detector.ensure_indexes()
    await database.users.create_index("email", unique=True)
    return database


@pytest.fixture
def make_user(db):
    async def _make(role=ROLE_ADMIN, name=None, email=None, is_active=True):
        suffix = uuid.uuid4().hex[:8]
        user = {
            "id": str(uuid.uuid4()),
            "name": name or f"User {suffix}",
            "email": email or f"user_{suffix}@test.local",
            "password": hash_password(TEST_PASSWORD),
            "role": role,
            "is_active": is_active,
            "created_at": now_iso(),
        }
        await db.users.insert_one(dict(user))
        user.pop("password")
        return user
    return _make


@pytest_asyncio.fixture
async def admin(make_user):
    return await make_user(ROLE_ADMIN, name="Asha Admin", email="asha@test.local")


@pytest_asyncio.fixture
async def other_admin(make_user):
    return await make_user(ROLE_ADMIN, name="Bala Admin", email="bala@test.local")


@pytest_asyncio.fixture
async def super_admin(make_user):
    return await make_user(ROLE_SUPER_ADMIN, name="Sita Super", email="sita@test.local")


@pytest.fixture
def auth_headers(db):
    async def _headers(user):
        token = generate_token()
        await db.sessions.insert_one({
            "token": token,
            "user_id": user["id"],
            "created_at": now_iso(),
            "expires_at": to_iso(datetime.now(timezone.utc) + timedelta(days=1)),
        })
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest.fixture
def lead_data():
    def _build(**overrides) -> LeadCreate:
        payload = {
            "customer_name": "Ravi Kumar",
            "mobile_number": "9876543210",
            "pan": "ABCDE1234F",
            "national_id": "123456789012",
        }
        payload.update(overrides)
        return LeadCreate(**payload)
    return _build


@pytest_asyncio.fixture
async def client(db):
    from leadcrm.server import app

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
