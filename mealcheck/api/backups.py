"""
Database backup API endpoints
"""
import logging
from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from mealcheck.api.auth import get_current_admin
from mealcheck.database import engine
from mealcheck.exceptions import BackupUnavailable, BackupNotFound, InvalidBackupName
from mealcheck.models.admin import Admin
from mealcheck.services.backup_service import BackupManager

logger = logging.getLogger(__name__)

router = APIRouter()


class BackupInfo(BaseModel):
    filename: str
    size: int
    size_in_mb: str
    created_at: datetime


class BackupListResponse(BaseModel):
    count: int
    backups: List[BackupInfo]


def get_backup_manager() -> BackupManager:
    try:
        return BackupManager.from_settings()
    except BackupUnavailable as e:
        raise HTTPException(status_code=400, detail=e.message)


@router.get("/", response_model=BackupListResponse)
async def list_backups(
    current_admin: Admin = Depends(get_current_admin),
    manager: BackupManager = Depends(get_backup_manager),
):
    """Backups, newest first"""
    backups = manager.list_backups()
    return BackupListResponse(count=len(backups), backups=backups)


@router.post("/")
async def create_backup(
    current_admin: Admin = Depends(get_current_admin),
    manager: BackupManager = Depends(get_backup_manager),
):
    try:
        path = manager.create_backup()
    except BackupUnavailable as e:
        raise HTTPException(status_code=400, detail=e.message)

    logger.info(f"Admin '{current_admin.username}' created backup {path.name}")
    return {"message": "Backup created", "filename": path.name}


@router.post("/{filename}/restore")
async def restore_backup(
    filename: str,
    current_admin: Admin = Depends(get_current_admin),
    manager: BackupManager = Depends(get_backup_manager),
):
    try:
        result = manager.restore_backup(filename)
    except InvalidBackupName as e:
        raise HTTPException(status_code=400, detail=e.message)
    except BackupNotFound as e:
        raise HTTPException(status_code=404, detail=e.message)
    except BackupUnavailable as e:
        raise HTTPException(status_code=400, detail=e.message)

    # Pooled connections may hold pages cached from before the restore
    await engine.dispose()

    logger.info(f"Admin '{current_admin.username}' restored backup {filename}")
    return {"message": "Backup restored", **result}


@router.delete("/{filename}")
async def delete_backup(
    filename: str,
    current_admin: Admin = Depends(get_current_admin),
    manager: BackupManager = Depends(get_backup_manager),
):
    try:
        manager.delete_backup(filename)
    except InvalidBackupName as e:
        raise HTTPException(status_code=400, detail=e.message)
    except BackupNotFound as e:
        raise HTTPException(status_code=404, detail=e.message)

    logger.info(f"Admin '{current_admin.username}' deleted backup {filename}")
    return {"message": "Backup deleted"}
