"""
Admin model - staff login for the dashboard
"""
from sqlalchemy import Column, Integer, String, DateTime
from datetime import datetime
from mealcheck.database import Base


class Admin(Base):
    __tablename__ = "admins"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, nullable=False)
    password = Column(String, nullable=False)  # bcrypt hash
    created_at = Column(DateTime, default=datetime.now)
