"""
Applicant roster ingestion from spreadsheets.

The roster layout is not fixed: staff export lists from different tools,
so every cell of the first sheet is scanned and any cell holding exactly
five digits is taken as a student id.
"""
import io
import logging
import re
from dataclasses import dataclass, field
from typing import Iterable

from openpyxl import load_workbook
from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from mealcheck.exceptions import RosterFormatError
from mealcheck.models.applicant import Applicant
from mealcheck.utils.validators import is_valid_student_id

logger = logging.getLogger(__name__)

FIVE_DIGITS = re.compile(r"^[0-9]{5}$")


@dataclass
class RosterScan:
    student_ids: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


def _cell_text(value) -> str:
    """Stringify a cell the way it reads on screen (20701.0 -> "20701")"""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def scan_workbook(content: bytes) -> RosterScan:
    """Collect student ids from every cell of the first sheet"""
    try:
        wb = load_workbook(io.BytesIO(content), data_only=True)
    except Exception as e:
        raise RosterFormatError(f"Could not read spreadsheet: {e}") from e

    scan = RosterScan()
    seen = set()
    try:
        ws = wb.worksheets[0]
        for row in ws.iter_rows():
            for cell in row:
                if cell.value is None or cell.value == "":
                    continue
                text = _cell_text(cell.value)
                if not FIVE_DIGITS.match(text):
                    continue

                if not is_valid_student_id(text):
                    scan.errors.append(f"{cell.coordinate}: invalid student id ({text})")
                    continue
                if text not in seen:
                    seen.add(text)
                    scan.student_ids.append(text)
    finally:
        wb.close()

    logger.info(f"Roster scan found {len(scan.student_ids)} ids, {len(scan.errors)} rejected cells")
    return scan


async def apply_roster(
    db: AsyncSession,
    student_ids: Iterable[str],
    month: str,
    replace_existing: bool = False,
) -> int:
    """Merge ids into the month's applicants, or replace them. Returns rows created."""
    if replace_existing:
        result = await db.execute(delete(Applicant).where(Applicant.month == month))
        logger.info(f"Cleared {result.rowcount} applicants for {month}")
        existing = set()
    else:
        result = await db.execute(select(Applicant.student_id).where(Applicant.month == month))
        existing = set(result.scalars().all())

    created = 0
    for student_id in student_ids:
        if student_id in existing:
            continue
        db.add(Applicant(student_id=student_id, month=month))
        existing.add(student_id)
        created += 1

    await db.commit()
    logger.info(f"Roster applied for {month}: {created} new applicants (replace={replace_existing})")
    return created
