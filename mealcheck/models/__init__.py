from mealcheck.models.student import Student
from mealcheck.models.applicant import Applicant
from mealcheck.models.checkin import CheckIn
from mealcheck.models.admin import Admin

__all__ = [
    "Student",
    "Applicant",
    "CheckIn",
    "Admin",
]
