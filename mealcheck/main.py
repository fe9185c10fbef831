"""
Main FastAPI application
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from mealcheck.config import get_settings
from mealcheck.database import engine, Base, AsyncSessionLocal
from mealcheck.models import Admin
from mealcheck.api.auth import get_password_hash
from mealcheck.api import auth, nfc, camera, applicants, students, checkins, backups, reset
from mealcheck.services.backup_service import startup_backup
from mealcheck.utils.logger import get_logger

settings = get_settings()
logger = get_logger("mealcheck")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Back up before anything touches the database; failures never block startup
    if settings.BACKUP_ON_STARTUP:
        backup = startup_backup()
        if backup:
            logger.info(f"Startup backup written to {backup}")

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created")

    # Seed the default admin account
    async with AsyncSessionLocal() as session:
        result = await session.execute(select(Admin))
        if not result.scalars().first():
            session.add(Admin(
                username=settings.ADMIN_USERNAME,
                password=get_password_hash(settings.ADMIN_PASSWORD),
            ))
            await session.commit()
            logger.info(f"Created default admin account '{settings.ADMIN_USERNAME}'")

    yield

    await engine.dispose()

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning(f"Integrity error on {request.method} {request.url.path}: {exc.orig}")
    return JSONResponse(status_code=409, content={"detail": "Record already exists"})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# Include routers
app.include_router(nfc.router, prefix="/api/nfc", tags=["Kiosk"])
app.include_router(camera.router, prefix="/api/camera", tags=["Camera"])
app.include_router(auth.router, prefix="/api/admin/auth", tags=["Authentication"])
app.include_router(applicants.router, prefix="/api/admin/applicants", tags=["Applicants"])
app.include_router(students.router, prefix="/api/admin/students", tags=["Students"])
app.include_router(checkins.router, prefix="/api/admin/checkins", tags=["Check-ins"])
app.include_router(backups.router, prefix="/api/admin/backups", tags=["Backups"])
app.include_router(reset.router, prefix="/api/admin/reset", tags=["Reset"])


@app.get("/")
async def root():
    return {
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running"
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "mealcheck.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG
    )
