"""
Test fixtures - in-memory SQLite database + authenticated HTTP client
"""
import sqlite3

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from mealcheck.database import Base, get_db, enable_sqlite_foreign_keys
from mealcheck.main import app
from mealcheck.api.auth import get_password_hash, create_access_token
from mealcheck.api.backups import get_backup_manager
from mealcheck.models.admin import Admin
from mealcheck.models.student import Student
from mealcheck.services.backup_service import BackupManager


@pytest_asyncio.fixture()
async def db_session():
    """Create a fresh in-memory SQLite database for each test"""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    enable_sqlite_foreign_keys(engine.sync_engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with session_factory() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture()
async def seed_data(db_session):
    """Insert baseline test data: admin + one carded student"""
    admin = Admin(username="staff", password=get_password_hash("staffpass"))
    student = Student(
        nfc_id="1234567890",
        has_card=True,
        student_id="20701",
        password=get_password_hash("1234"),
    )

    db_session.add_all([admin, student])
    await db_session.commit()
    await db_session.refresh(admin)
    await db_session.refresh(student)

    return {"admin": admin, "student": student}


@pytest.fixture()
def backup_manager(tmp_path):
    """A file-backed SQLite database with a backup directory beside it"""
    db_path = tmp_path / "mealcheck.db"
    conn = sqlite3.connect(str(db_path))
    conn.execute("CREATE TABLE marker (value TEXT)")
    conn.execute("INSERT INTO marker VALUES ('original')")
    conn.commit()
    conn.close()
    return BackupManager(db_path, tmp_path / "backups", max_files=30)


@pytest_asyncio.fixture()
async def client(db_session, seed_data, backup_manager):
    """Authenticated httpx AsyncClient bound to the FastAPI app"""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_backup_manager] = lambda: backup_manager

    token = create_access_token(data={"sub": str(seed_data["admin"].id)})

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", follow_redirects=True) as ac:
        ac.headers["Authorization"] = f"Bearer {token}"
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def unauth_client(db_session):
    """Unauthenticated httpx AsyncClient"""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", follow_redirects=True) as ac:
        yield ac

    app.dependency_overrides.clear()
