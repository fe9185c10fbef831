"""
Kiosk camera API - stores snapshots taken at check-in and serves them back.

Photos live under PHOTO_DIR/<YYYY-MM-DD>/<student_id>_<epoch ms>.jpg and
are referenced by their path relative to PHOTO_DIR.
"""
import logging
import os
import time

from fastapi import APIRouter, HTTPException, UploadFile, File, Form, Query
from fastapi.responses import FileResponse

from mealcheck.config import get_settings
from mealcheck.utils.validators import is_valid_date, is_valid_student_id

settings = get_settings()
logger = logging.getLogger(__name__)

router = APIRouter()


def _validate_file_path(file_path: str) -> None:
    """Prevent path traversal - ensure file is within PHOTO_DIR."""
    real_path = os.path.realpath(file_path)
    photo_base = os.path.realpath(settings.PHOTO_DIR)
    if os.path.commonpath([real_path, photo_base]) != photo_base:
        raise HTTPException(403, "Access denied")


@router.post("/capture")
async def capture_photo(
    image: UploadFile = File(...),
    date: str = Form(...),
    student_id: str = Form(...),
):
    if not is_valid_date(date):
        raise HTTPException(400, "date must be YYYY-MM-DD")
    if not is_valid_student_id(student_id):
        raise HTTPException(400, "Student id must be 5 digits")

    content = await image.read()
    if not content:
        raise HTTPException(400, "Image is empty")
    if len(content) > settings.MAX_UPLOAD_SIZE:
        raise HTTPException(413, f"Image too large. Maximum size: {settings.MAX_UPLOAD_SIZE // (1024 * 1024)}MB")

    date_dir = os.path.join(settings.PHOTO_DIR, date)
    os.makedirs(date_dir, exist_ok=True)

    filename = f"{student_id}_{int(time.time() * 1000)}.jpg"
    with open(os.path.join(date_dir, filename), "wb") as f:
        f.write(content)

    photo_path = f"{date}/{filename}"
    logger.info(f"Saved check-in photo {photo_path} ({len(content)} bytes)")
    return {"photo_path": photo_path, "message": "Photo saved"}


@router.get("/photo")
async def get_photo(path: str = Query(...)):
    file_path = os.path.join(settings.PHOTO_DIR, path)
    _validate_file_path(file_path)

    if not os.path.isfile(file_path):
        raise HTTPException(404, "Photo not found")

    return FileResponse(
        file_path,
        media_type="image/jpeg",
        headers={"Cache-Control": "public, max-age=31536000, immutable"},
    )
