"""
Input validation utilities
"""
import re
from datetime import datetime

STUDENT_ID_PATTERN = re.compile(r"^[0-9]{5}$")
NFC_ID_PATTERN = re.compile(r"^[0-9]{10}$")
PASSWORD_PATTERN = re.compile(r"^[0-9]{4}$")
MONTH_PATTERN = re.compile(r"^[0-9]{4}-[0-9]{2}$")


def parse_student_id(student_id: str) -> dict:
    """Split a 5-digit student id into grade, class and number.

    "20701" -> grade 2, class 7, number 1. Any five digits parse, zeros
    included ("30100" -> grade 3, class 10, number 0).
    """
    if not isinstance(student_id, str) or not STUDENT_ID_PATTERN.match(student_id):
        raise ValueError("Student id must be exactly 5 digits")

    grade = int(student_id[0])
    class_num = int(student_id[1:3])
    number = int(student_id[3:5])

    return {
        "grade": grade,
        "class": class_num,
        "number": number,
        "formatted": f"Grade {grade}, Class {class_num}, No. {number}",
    }


def is_valid_student_id(student_id: str) -> bool:
    try:
        parse_student_id(student_id)
    except ValueError:
        return False
    return True


def is_valid_nfc_id(nfc_id: str) -> bool:
    """Card tags read by the kiosk reader are 10 decimal digits"""
    return isinstance(nfc_id, str) and bool(NFC_ID_PATTERN.match(nfc_id))


def is_valid_password(password: str) -> bool:
    """Student PINs are 4 decimal digits"""
    return isinstance(password, str) and bool(PASSWORD_PATTERN.match(password))


def is_valid_month(month: str) -> bool:
    if not isinstance(month, str) or not MONTH_PATTERN.match(month):
        return False
    return 1 <= int(month[5:7]) <= 12


def is_valid_date(value: str) -> bool:
    """Local calendar date in YYYY-MM-DD form"""
    if not isinstance(value, str) or len(value) != 10:
        return False
    try:
        datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        return False
    return True
