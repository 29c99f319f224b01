"""
Lead CRM - Seed dev users (dev/staging only)
Creates 1 SUPER ADMIN and 2 ADMIN accounts with predictable credentials.
Run: python -m leadcrm.scripts.seed_users
Reset: python -m leadcrm.scripts.seed_users --reset
"""

import asyncio
import sys
import uuid

from leadcrm.config import db, client, hash_password, now_iso, ROLE_ADMIN, ROLE_SUPER_ADMIN

# Same password for all dev accounts
DEV_PASSWORD = "LeadCrmDev2026!"

DEV_USERS = [
    {"email": "superadmin@dev.local", "name": "Super Admin Dev", "role": ROLE_SUPER_ADMIN},
    {"email": "admin1@dev.local",     "name": "Admin One",       "role": ROLE_ADMIN},
    {"email": "admin2@dev.local",     "name": "Admin Two",       "role": ROLE_ADMIN},
]


async def reset():
    """Delete all dev.local users and their sessions"""
    users = await db.users.find({"email": {"$regex": "@dev\\.local$"}}, {"_id": 0, "id": 1}).to_list(None)
    ids = [u["id"] for u in users]
    await db.sessions.delete_many({"user_id": {"$in": ids}})
    result = await db.users.delete_many({"id": {"$in": ids}})
    print(f"Deleted {result.deleted_count} dev users")


async def seed():
    """Create/update dev users"""
    for u in DEV_USERS:
        existing = await db.users.find_one({"email": u["email"]})
        doc = {
            "email": u["email"],
            "password": hash_password(DEV_PASSWORD),
            "name": u["name"],
            "role": u["role"],
            "is_active": True,
        }
        if existing:
            await db.users.update_one({"email": u["email"]}, {"$set": doc})
            print(f"  Updated: {u['email']} ({u['role']})")
        else:
            doc["id"] = str(uuid.uuid4())
            doc["created_at"] = now_iso()
            await db.users.insert_one(doc)
            print(f"  Created: {u['email']} ({u['role']}) link=/api/leads/link/{doc['id']}")


async def main():
    if "--reset" in sys.argv:
        await reset()
        print("Reset complete. Run without --reset to re-seed.")
    else:
        await reset()
        await seed()
        print(f"\n{len(DEV_USERS)} dev users seeded. Password for all: {DEV_PASSWORD}")

    client.close()


if __name__ == "__main__":
    asyncio.run(main())
