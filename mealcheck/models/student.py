"""
Student model - identity record looked up by card or by student id
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.orm import relationship
from datetime import datetime
from mealcheck.database import Base


class Student(Base):
    __tablename__ = "students"

    id = Column(Integer, primary_key=True, index=True)
    nfc_id = Column(String, unique=True, nullable=True)  # NULL for cardless registrations
    has_card = Column(Boolean, nullable=False, default=False)
    student_id = Column(String(5), unique=True, nullable=False, index=True)  # "20701" = grade 2, class 07, no. 01
    password = Column(String, nullable=True)  # bcrypt hash of the 4-digit PIN

    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    # Relationships
    check_ins = relationship(
        "CheckIn",
        back_populates="student",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
