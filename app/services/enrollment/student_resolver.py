"""
Classification of imported roster rows into student-resolution records.

Every row comes back as exactly one record, in input order:

- ERROR      the row failed validation on its own (missing name, no contact,
             malformed email, unreadable cells); never looked up
- DUPLICATE  an earlier row of the same batch already claimed this identity
- FOUND      an existing student matched by student code, then by email
- CREATE     no match; the student will be created at execute time with
             ``pending_student_id``

Resolution only reads from the student directory, so previews can be
repeated freely. ``pending_student_id`` is derived from the row's identity,
which keeps repeated previews of the same input identical.
"""

from typing import Dict, List, Optional, Sequence, Tuple
import uuid

from email_validator import EmailNotValidError, validate_email

from app.db.models import Gender, Skill
from app.providers.protocols import StudentDirectory
from app.schemas.enrollment_schemas import (
    ImportedStudentRow,
    ResolutionStatus,
    StudentResolutionRecord,
)
from app.utils.logging import get_logger
from app.utils.string_utils import clean_text, normalize_email, normalize_phone

logger = get_logger()

PENDING_STUDENT_NAMESPACE = uuid.UUID("0b7f6a52-3c1e-5d84-9a26-4f1e8c7d2b90")

SKILL_COLUMNS: Dict[str, Skill] = {
    "general": Skill.GENERAL,
    "reading": Skill.READING,
    "writing": Skill.WRITING,
    "speaking": Skill.SPEAKING,
    "listening": Skill.LISTENING,
}

_GENDER_ALIASES = {
    "male": Gender.MALE,
    "m": Gender.MALE,
    "female": Gender.FEMALE,
    "f": Gender.FEMALE,
    "other": Gender.OTHER,
    "o": Gender.OTHER,
}


def parse_gender(value: Optional[str]) -> Optional[Gender]:
    text = clean_text(value)
    if text is None:
        return None
    try:
        return _GENDER_ALIASES[text.lower()]
    except KeyError:
        raise ValueError(f"Invalid gender '{text}' (expected male, female or other)")


def parse_skill_placement(value: Optional[str]) -> Optional[Tuple[str, Optional[int]]]:
    """
    Parse a placement cell in "<LEVEL>-<SCORE>" form.

    "B1-75" -> ("B1", 75), "N3" -> ("N3", None), blank -> None.
    The level code is split at the last dash so codes may contain dashes.

    Raises:
        ValueError: if the score part is not a whole number between 0 and 100
    """
    text = clean_text(value)
    if text is None:
        return None

    level_code, separator, score_text = text.rpartition("-")
    if not separator:
        return text.upper(), None

    level_code = level_code.strip()
    score_text = score_text.strip()
    if not level_code:
        raise ValueError(f"Invalid placement '{text}' (expected LEVEL-SCORE, e.g. B1-75)")
    if not score_text.isdigit() or not 0 <= int(score_text) <= 100:
        raise ValueError(f"Invalid score in placement '{text}' (expected 0-100)")
    return level_code.upper(), int(score_text)


def pending_student_id(row: ImportedStudentRow) -> uuid.UUID:
    """Deterministic id for a student that does not exist yet"""
    key = identity_keys(row)[0]
    return uuid.uuid5(PENDING_STUDENT_NAMESPACE, key)


def identity_keys(row: ImportedStudentRow) -> List[str]:
    """
    Keys a row claims within one batch, strongest first.

    Phone only identifies a row that has neither email nor student code.
    """
    keys = []
    email = normalize_email(row.email)
    code = clean_text(row.student_code)
    if email:
        keys.append(f"email:{email}")
    if code:
        keys.append(f"code:{code}")
    if not keys:
        phone = normalize_phone(row.phone)
        if phone:
            keys.append(f"phone:{phone}")
    return keys


def validate_row(row: ImportedStudentRow) -> List[str]:
    """Problems that make a row unusable on its own"""
    errors = list(row.parse_errors)

    if not clean_text(row.full_name):
        errors.append("Full name is required")

    email = clean_text(row.email)
    if not email and not normalize_phone(row.phone):
        errors.append("Either email or phone is required")

    if email:
        try:
            validate_email(
                email,
                check_deliverability=False,
                test_environment=True,
            )
        except EmailNotValidError as e:
            errors.append(f"Invalid email '{email}': {e}")

    try:
        parse_gender(row.gender)
    except ValueError as e:
        errors.append(str(e))

    for column in SKILL_COLUMNS:
        try:
            parse_skill_placement(getattr(row, column))
        except ValueError as e:
            errors.append(f"{column.capitalize()}: {e}")

    return errors


def row_label(row: ImportedStudentRow, index: int) -> int:
    return row.row_number if row.row_number is not None else index + 1


class StudentResolver:
    """Turns imported rows into resolution records without writing anything"""

    def __init__(self, directory: StudentDirectory):
        self.directory = directory

    async def resolve(
        self, rows: Sequence[ImportedStudentRow]
    ) -> List[StudentResolutionRecord]:
        claimed: Dict[str, int] = {}
        records: List[StudentResolutionRecord] = []

        for index, row in enumerate(rows):
            label = row_label(row, index)
            row_data = {name: getattr(row, name) for name in ImportedStudentRow.model_fields}
            row_data["parse_errors"] = list(row.parse_errors)
            row_data["row_number"] = label

            errors = validate_row(row)
            if errors:
                records.append(
                    StudentResolutionRecord(
                        **row_data,
                        resolution_status=ResolutionStatus.ERROR,
                        error_message="; ".join(errors),
                    )
                )
                continue

            keys = identity_keys(row)
            clash = next((key for key in keys if key in claimed), None)
            if clash is not None:
                kind = clash.split(":", 1)[0]
                records.append(
                    StudentResolutionRecord(
                        **row_data,
                        resolution_status=ResolutionStatus.DUPLICATE,
                        error_message=f"Duplicate of row {claimed[clash]} (same {kind})",
                    )
                )
                continue

            student = await self._lookup(row)
            if student is not None and f"id:{student.id}" in claimed:
                records.append(
                    StudentResolutionRecord(
                        **row_data,
                        resolution_status=ResolutionStatus.DUPLICATE,
                        error_message=(
                            f"Duplicate of row {claimed[f'id:{student.id}']} "
                            f"(same student {student.student_code})"
                        ),
                    )
                )
                continue

            for key in keys:
                claimed[key] = label

            if student is not None:
                claimed[f"id:{student.id}"] = label
                records.append(
                    StudentResolutionRecord(
                        **row_data,
                        resolution_status=ResolutionStatus.FOUND,
                        resolved_student_id=student.id,
                    )
                )
            else:
                records.append(
                    StudentResolutionRecord(
                        **row_data,
                        resolution_status=ResolutionStatus.CREATE,
                        pending_student_id=pending_student_id(row),
                    )
                )

        counts = ", ".join(
            f"{status.value}={sum(1 for r in records if r.resolution_status == status)}"
            for status in ResolutionStatus
        )
        logger.info(f"Resolved {len(records)} rows: {counts}")
        return records

    async def _lookup(self, row: ImportedStudentRow):
        """Student code first, then email"""
        code = clean_text(row.student_code)
        if code:
            student = await self.directory.find_by_code(code)
            if student is not None:
                return student

        email = normalize_email(row.email)
        if email:
            return await self.directory.find_by_email(email)
        return None
