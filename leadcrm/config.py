"""
Configuration and shared helpers

Environment, MongoDB handle and the small helpers every module needs
(timestamps, month windows, password hashing, session tokens).
"""

import os
import hashlib
import secrets
from datetime import datetime, timezone, timedelta
from typing import Optional, Tuple
from motor.motor_asyncio import AsyncIOMotorClient
from dotenv import load_dotenv
from pathlib import Path
import pytz

# Load .env
ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

# MongoDB
MONGO_URL = os.environ.get('MONGO_URL', 'mongodb://localhost:27017')
DB_NAME = os.environ.get('DB_NAME', 'leadcrm')

client = AsyncIOMotorClient(MONGO_URL)
db = client[DB_NAME]

APP_NAME = os.environ.get('APP_NAME', 'Lead CRM')
APP_TIMEZONE = os.environ.get('APP_TIMEZONE', 'Asia/Kolkata')
LOCAL_TZ = pytz.timezone(APP_TIMEZONE)

SESSION_DAYS = int(os.environ.get('SESSION_DAYS', '7'))
CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '*').split(',')
SCHEDULER_ENABLED = os.environ.get('SCHEDULER_ENABLED', 'true').lower() in ('1', 'true', 'yes')
LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()

# Roles
ROLE_ADMIN = "ADMIN"
ROLE_SUPER_ADMIN = "SUPER ADMIN"
VALID_ROLES = [ROLE_ADMIN, ROLE_SUPER_ADMIN]

# National-id length differs by entry path
STAFF_NATIONAL_ID_DIGITS = 12
LINK_NATIONAL_ID_DIGITS = 16


# ==================== HELPERS ====================

def hash_password(password: str) -> str:
    """SHA256 password hash"""
    return hashlib.sha256(password.encode()).hexdigest()


def generate_token() -> str:
    """Random session token"""
    return secrets.token_urlsafe(32)


def to_iso(dt: datetime) -> str:
    """
    UTC ISO string with fixed microsecond precision.
    Every stored timestamp goes through here so string range queries sort correctly.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


def now_iso() -> str:
    """Current UTC time as ISO string"""
    return to_iso(datetime.now(timezone.utc))


def local_now() -> datetime:
    return datetime.now(timezone.utc).astimezone(LOCAL_TZ)


def to_local(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return LOCAL_TZ.localize(dt)
    return dt.astimezone(LOCAL_TZ)


def parse_iso(value: str) -> datetime:
    return datetime.fromisoformat(value)


def local_date_str(iso_value: Optional[str]) -> str:
    """YYYY-MM-DD of a stored timestamp, in the app timezone."""
    if not iso_value:
        return ""
    return to_local(parse_iso(iso_value)).strftime("%Y-%m-%d")


def month_bounds(now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """
    First and last instant of the calendar month containing `now`,
    in the app timezone. Both bounds are inclusive.
    """
    now = to_local(now) if now else local_now()
    start = LOCAL_TZ.localize(datetime(now.year, now.month, 1))
    if now.month == 12:
        next_start = datetime(now.year + 1, 1, 1)
    else:
        next_start = datetime(now.year, now.month + 1, 1)
    end = LOCAL_TZ.localize(next_start) - timedelta(microseconds=1)
    return start, end


def previous_month_bounds(now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    start, _ = month_bounds(now)
    return month_bounds(start - timedelta(days=1))


def month_key(dt: Optional[datetime] = None) -> str:
    """YYYY-MM of `dt` in the app timezone."""
    dt = to_local(dt) if dt else local_now()
    return dt.strftime("%Y-%m")


def day_bounds(start_day, end_day) -> Tuple[datetime, datetime]:
    """Local start of `start_day` to local 23:59:59.999 of `end_day`."""
    start = LOCAL_TZ.localize(datetime(start_day.year, start_day.month, start_day.day))
    end = LOCAL_TZ.localize(
        datetime(end_day.year, end_day.month, end_day.day, 23, 59, 59, 999000)
    )
    return start, end
