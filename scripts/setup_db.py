"""
Database setup script
"""
import asyncio
import os
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import select
from mealcheck.database import engine, Base, AsyncSessionLocal
from mealcheck.models import Admin
from mealcheck.api.auth import get_password_hash


async def setup_database():
    """Create tables and the first admin account"""
    print("Creating database tables...")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    print("Tables created")

    async with AsyncSessionLocal() as session:
        result = await session.execute(select(Admin))
        if result.scalars().first():
            print("Admin account already exists")
        else:
            username = os.environ.get("ADMIN_USERNAME", "admin")
            password = os.environ.get("ADMIN_PASSWORD", "admin1234")
            session.add(Admin(username=username, password=get_password_hash(password)))
            await session.commit()
            print("Created admin account")
            print(f"  Username: {username}")
            print(f"  Password: {password}")

    await engine.dispose()
    print("\nDatabase setup complete!")


if __name__ == "__main__":
    asyncio.run(setup_database())
