"""
Check-in model - append-only log of kiosk taps
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from datetime import datetime
from mealcheck.database import Base


class CheckIn(Base):
    __tablename__ = "check_ins"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(
        String(5),
        ForeignKey("students.student_id", ondelete="CASCADE"),
        nullable=False,
    )
    date = Column(String(10), nullable=False)  # local "YYYY-MM-DD"
    is_applicant = Column(Boolean, nullable=False, default=False)  # status at the moment of the tap
    photo_path = Column(String, nullable=True)  # "<date>/<student_id>_<ms>.jpg"
    check_time = Column(DateTime, nullable=False, default=datetime.now)

    # Relationships
    student = relationship("Student", back_populates="check_ins")

    __table_args__ = (
        Index('ix_check_ins_student_date', 'student_id', 'date'),
        Index('ix_check_ins_date', 'date'),
    )
