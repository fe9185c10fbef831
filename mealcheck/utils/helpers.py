"""
General helper utilities
"""
from datetime import datetime
from typing import Optional


def get_current_month(now: Optional[datetime] = None) -> str:
    """Applicant period key for the local calendar month (YYYY-MM)"""
    now = now or datetime.now()
    return now.strftime("%Y-%m")


def get_today(now: Optional[datetime] = None) -> str:
    """Local calendar date (YYYY-MM-DD)"""
    now = now or datetime.now()
    return now.strftime("%Y-%m-%d")


def file_timestamp(now: Optional[datetime] = None) -> str:
    """Timestamp safe for file names, e.g. 2025-11-02_12-00-00"""
    now = now or datetime.now()
    return now.strftime("%Y-%m-%d_%H-%M-%S")


def size_in_mb(size: int) -> str:
    return f"{size / (1024 * 1024):.2f}"
