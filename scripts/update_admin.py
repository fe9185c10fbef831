"""
Replace the admin account(s) with a single account.

Usage:
    python scripts/update_admin.py <username> <password>
"""
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import delete
from mealcheck.database import engine, Base, AsyncSessionLocal
from mealcheck.models import Admin
from mealcheck.api.auth import get_password_hash


async def update_admin(username: str, password: str):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as session:
        result = await session.execute(delete(Admin))
        print(f"Removed {result.rowcount} admin account(s)")

        session.add(Admin(username=username, password=get_password_hash(password)))
        await session.commit()

    await engine.dispose()
    print(f"Admin account '{username}' created")


if __name__ == "__main__":
    if len(sys.argv) != 3:
        print("Usage: python scripts/update_admin.py <username> <password>")
        sys.exit(1)
    asyncio.run(update_admin(sys.argv[1], sys.argv[2]))
