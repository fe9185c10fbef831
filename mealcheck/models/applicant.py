"""
Applicant model - a student id approved to eat during a month
"""
from sqlalchemy import Column, Integer, String, DateTime, UniqueConstraint
from datetime import datetime
from mealcheck.database import Base


class Applicant(Base):
    """Roster entry; not tied to a Student row, rosters may list unregistered students"""
    __tablename__ = "applicants"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(String(5), nullable=False, index=True)
    month = Column(String(7), nullable=False, index=True)  # "YYYY-MM"
    created_at = Column(DateTime, default=datetime.now)

    __table_args__ = (
        UniqueConstraint('student_id', 'month', name='uq_applicant_student_month'),
    )
