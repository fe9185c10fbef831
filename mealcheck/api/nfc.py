"""
Kiosk API endpoints - card tags, manual student-id entry, card registration
"""
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mealcheck.api.auth import get_password_hash, verify_password
from mealcheck.database import get_db
from mealcheck.exceptions import CardNotRegistered
from mealcheck.models.student import Student
from mealcheck.services.checkin_service import resolve_identity, record_check_in
from mealcheck.utils.validators import (
    is_valid_nfc_id,
    is_valid_password,
    is_valid_student_id,
    parse_student_id,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# --- Pydantic Schemas ---

class StudentInfo(BaseModel):
    grade: int
    class_: int = Field(alias="class")
    number: int
    formatted: str

    @classmethod
    def from_student_id(cls, student_id: str) -> "StudentInfo":
        return cls.model_validate(parse_student_id(student_id))


class CheckRequest(BaseModel):
    nfc_id: Optional[str] = None
    student_id: Optional[str] = None
    photo_path: Optional[str] = None


class CheckResponse(BaseModel):
    check_in_id: int
    student_id: str
    student_info: StudentInfo
    month: str
    date: str
    is_applicant: bool
    is_duplicate: bool
    check_count: int
    first_check_in_time: datetime
    check_time: datetime
    message: str


class CheckStudentRequest(BaseModel):
    student_id: str


class RegisterRequest(BaseModel):
    nfc_id: Optional[str] = None  # omitted for students without a card
    student_id: str
    password: str


class ChangePinRequest(BaseModel):
    nfc_id: str
    new_password: str


# --- Endpoints ---

@router.post("/check", response_model=CheckResponse)
async def check(data: CheckRequest, db: AsyncSession = Depends(get_db)):
    """Tag a card or type a student id; records the tap and reports meal eligibility"""
    try:
        student = await resolve_identity(db, nfc_id=data.nfc_id, student_id=data.student_id)
    except CardNotRegistered as e:
        raise HTTPException(
            status_code=404,
            detail={
                "message": e.message,
                "needs_registration": True,
                "nfc_id": e.nfc_id,
            },
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    info = StudentInfo.from_student_id(student.student_id)
    outcome = await record_check_in(db, student.student_id, photo_path=data.photo_path)

    if outcome.is_duplicate:
        message = f"{info.formatted} - already checked in today (visit {outcome.check_count})"
    elif outcome.is_applicant:
        message = f"{info.formatted} - registered for meals"
    else:
        message = f"{info.formatted} - not registered for meals"

    return CheckResponse(
        check_in_id=outcome.check_in_id,
        student_id=outcome.student_id,
        student_info=info,
        month=outcome.month,
        date=outcome.date,
        is_applicant=outcome.is_applicant,
        is_duplicate=outcome.is_duplicate,
        check_count=outcome.check_count,
        first_check_in_time=outcome.first_check_in_time,
        check_time=outcome.check_time,
        message=message,
    )


@router.post("/check-student")
async def check_student(data: CheckStudentRequest, db: AsyncSession = Depends(get_db)):
    """Whether a student id is already registered"""
    if not is_valid_student_id(data.student_id):
        raise HTTPException(status_code=400, detail="Student id must be 5 digits")

    result = await db.execute(select(Student).where(Student.student_id == data.student_id))
    student = result.scalar_one_or_none()
    return {
        "exists": student is not None,
        "has_card": bool(student and student.has_card),
        "student_id": data.student_id,
    }


@router.post("/register")
async def register(data: RegisterRequest, db: AsyncSession = Depends(get_db)):
    """Register a card (or a cardless student) with a 4-digit PIN.

    Tagging a new card for a student id that already exists links the card
    to that student, provided the PIN matches. Students created by a manual
    check-in have no PIN yet and take the one given here.
    """
    has_card = bool(data.nfc_id)
    if has_card and not is_valid_nfc_id(data.nfc_id):
        raise HTTPException(status_code=400, detail="NFC id must be 10 digits")
    if not is_valid_student_id(data.student_id):
        raise HTTPException(status_code=400, detail="Student id must be 5 digits")
    if not is_valid_password(data.password):
        raise HTTPException(status_code=400, detail="PIN must be 4 digits")

    result = await db.execute(select(Student).where(Student.student_id == data.student_id))
    existing = result.scalar_one_or_none()

    if has_card:
        result = await db.execute(select(Student).where(Student.nfc_id == data.nfc_id))
        if result.scalar_one_or_none():
            raise HTTPException(status_code=409, detail="This card is already registered")

        if existing:
            if existing.password and not verify_password(data.password, existing.password):
                raise HTTPException(
                    status_code=401,
                    detail="Student already registered; the PIN does not match",
                )
            if existing.has_card:
                logger.info(f"Student {existing.student_id} replaced card {existing.nfc_id}")
            if not existing.password:
                existing.password = get_password_hash(data.password)
            existing.nfc_id = data.nfc_id
            existing.has_card = True
            await db.commit()
            logger.info(f"Linked card to existing student {existing.student_id}")
            return {"message": "Card linked", "merged": True, "student_id": existing.student_id}

    elif existing:
        raise HTTPException(status_code=409, detail="Student id already registered")

    student = Student(
        nfc_id=data.nfc_id if has_card else None,
        has_card=has_card,
        student_id=data.student_id,
        password=get_password_hash(data.password),
    )
    db.add(student)
    await db.commit()
    await db.refresh(student)
    logger.info(f"Registered student {student.student_id} (card={has_card})")

    return {
        "message": "Registration complete",
        "merged": False,
        "student": {
            "id": student.id,
            "nfc_id": student.nfc_id,
            "has_card": student.has_card,
            "student_id": student.student_id,
        },
    }


@router.post("/change-password")
async def change_pin(data: ChangePinRequest, db: AsyncSession = Depends(get_db)):
    """Reset a student's PIN; holding the card is the proof of identity"""
    if not is_valid_nfc_id(data.nfc_id):
        raise HTTPException(status_code=400, detail="NFC id must be 10 digits")
    if not is_valid_password(data.new_password):
        raise HTTPException(status_code=400, detail="PIN must be 4 digits")

    result = await db.execute(select(Student).where(Student.nfc_id == data.nfc_id))
    student = result.scalar_one_or_none()
    if not student:
        raise HTTPException(status_code=404, detail="This card is not registered")

    student.password = get_password_hash(data.new_password)
    await db.commit()
    logger.info(f"PIN changed for student {student.student_id}")
    return {"message": "PIN changed", "student_id": student.student_id}
