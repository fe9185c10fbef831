"""
Student management API endpoints
"""
import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy import select, delete, func
from sqlalchemy.ext.asyncio import AsyncSession

from mealcheck.api.auth import get_current_admin, get_password_hash
from mealcheck.api.nfc import StudentInfo
from mealcheck.database import get_db
from mealcheck.models.admin import Admin
from mealcheck.models.checkin import CheckIn
from mealcheck.models.student import Student
from mealcheck.utils.validators import is_valid_nfc_id, is_valid_password, is_valid_student_id

logger = logging.getLogger(__name__)

router = APIRouter()


# --- Pydantic Schemas ---

class StudentResponse(BaseModel):
    id: int
    nfc_id: Optional[str]
    has_card: bool
    has_password: bool
    student_id: str
    student_info: StudentInfo
    created_at: Optional[datetime]
    updated_at: Optional[datetime]


class StudentCreate(BaseModel):
    student_id: str
    nfc_id: Optional[str] = None
    password: Optional[str] = None


class StudentUpdate(BaseModel):
    new_password: Optional[str] = None
    new_nfc_id: Optional[str] = None


# --- Helper ---

def _build_student_response(s: Student) -> StudentResponse:
    return StudentResponse(
        id=s.id,
        nfc_id=s.nfc_id,
        has_card=s.has_card,
        has_password=bool(s.password),
        student_id=s.student_id,
        student_info=StudentInfo.from_student_id(s.student_id),
        created_at=s.created_at,
        updated_at=s.updated_at,
    )


async def _get_student_or_404(db: AsyncSession, student_id: str) -> Student:
    result = await db.execute(select(Student).where(Student.student_id == student_id))
    student = result.scalar_one_or_none()
    if not student:
        raise HTTPException(status_code=404, detail="Student not found")
    return student


# --- Endpoints ---

@router.get("/", response_model=List[StudentResponse])
async def list_students(
    db: AsyncSession = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    result = await db.execute(select(Student).order_by(Student.student_id))
    return [_build_student_response(s) for s in result.scalars().all()]


@router.post("/", response_model=StudentResponse)
async def create_student(
    data: StudentCreate,
    db: AsyncSession = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    if not is_valid_student_id(data.student_id):
        raise HTTPException(status_code=400, detail="Student id must be 5 digits")
    if data.nfc_id and not is_valid_nfc_id(data.nfc_id):
        raise HTTPException(status_code=400, detail="NFC id must be 10 digits")
    if data.password and not is_valid_password(data.password):
        raise HTTPException(status_code=400, detail="PIN must be 4 digits")

    if data.nfc_id:
        result = await db.execute(select(Student).where(Student.nfc_id == data.nfc_id))
        if result.scalar_one_or_none():
            raise HTTPException(status_code=409, detail="This card is already registered")

    result = await db.execute(select(Student).where(Student.student_id == data.student_id))
    if result.scalar_one_or_none():
        raise HTTPException(status_code=409, detail="Student id already registered")

    student = Student(
        student_id=data.student_id,
        nfc_id=data.nfc_id or None,
        has_card=bool(data.nfc_id),
        password=get_password_hash(data.password) if data.password else None,
    )
    db.add(student)
    await db.commit()
    await db.refresh(student)
    logger.info(f"Admin '{current_admin.username}' added student {student.student_id}")
    return _build_student_response(student)


@router.put("/{student_id}", response_model=StudentResponse)
async def update_student(
    student_id: str,
    data: StudentUpdate,
    db: AsyncSession = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    """Change a student's PIN and/or card"""
    student = await _get_student_or_404(db, student_id)

    if not data.new_password and not data.new_nfc_id:
        raise HTTPException(status_code=400, detail="Nothing to update")

    if data.new_password:
        if not is_valid_password(data.new_password):
            raise HTTPException(status_code=400, detail="PIN must be 4 digits")
        student.password = get_password_hash(data.new_password)

    if data.new_nfc_id:
        if not is_valid_nfc_id(data.new_nfc_id):
            raise HTTPException(status_code=400, detail="NFC id must be 10 digits")
        result = await db.execute(select(Student).where(Student.nfc_id == data.new_nfc_id))
        holder = result.scalar_one_or_none()
        if holder and holder.id != student.id:
            raise HTTPException(status_code=409, detail="NFC id already in use")
        student.nfc_id = data.new_nfc_id
        student.has_card = True

    await db.commit()
    await db.refresh(student)
    logger.info(f"Admin '{current_admin.username}' updated student {student_id}")
    return _build_student_response(student)


@router.delete("/{student_id}")
async def delete_student(
    student_id: str,
    db: AsyncSession = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    """Delete a student together with their check-in history. Applicant rows stay."""
    student = await _get_student_or_404(db, student_id)

    count_result = await db.execute(
        select(func.count(CheckIn.id)).where(CheckIn.student_id == student_id)
    )
    removed_check_ins = count_result.scalar() or 0

    await db.execute(delete(CheckIn).where(CheckIn.student_id == student_id))
    await db.delete(student)
    await db.commit()

    logger.info(
        f"Admin '{current_admin.username}' deleted student {student_id} "
        f"and {removed_check_ins} check-ins"
    )
    return {"message": "Student deleted", "removed_check_ins": removed_check_ins}
