import io
from typing import Any, Dict, List, Optional

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Font
from openpyxl.worksheet.datavalidation import DataValidation

from app.config.settings import settings
from app.schemas.enrollment_schemas import ClassProfile, ImportedStudentRow
from app.utils.datetime_utils import coerce_date
from app.utils.string_utils import clean_text, normalize_header

STUDENTS_SHEET_NAME = "Students"
CLASS_SHEET_NAME = "Class"

TEMPLATE_HEADERS = (
    "student_code",
    "full_name",
    "email",
    "phone",
    "gender",
    "dob",
    "level_code",
    "general",
    "reading",
    "writing",
    "speaking",
    "listening",
)
REQUIRED_HEADERS = ("full_name",)

HEADER_ALIASES = {
    "code": "student_code",
    "name": "full_name",
    "fullname": "full_name",
    "email_address": "email",
    "phone_number": "phone",
    "date_of_birth": "dob",
    "birthday": "dob",
    "level": "level_code",
}

SAMPLE_ROW = (
    "",
    "Nguyen Van An",
    "an.nguyen@lingua.edu.vn",
    "0912345678",
    "male",
    "2004-09-15",
    "B1",
    "B1-72",
    "B1-70",
    "A2-61",
    "B1-68",
    "B2-80",
)


def _cell_text(value: Any) -> Optional[str]:
    """Numbers typed into text columns (phones, codes) come back as floats"""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return clean_text(value)


def parse_roster_workbook(content: bytes) -> List[ImportedStudentRow]:
    """
    Read the first sheet of an .xlsx roster into imported rows.

    The first row holds headers (case and spacing are ignored). Blank rows are
    skipped. Problems with a single cell are recorded in that row's
    ``parse_errors`` so the resolver reports the row as ERROR.

    Raises:
        ValueError: INVALID_ROSTER_FILE when the file cannot be read or lacks
            a required column, ROSTER_TOO_LARGE above ENROLLMENT_IMPORT_MAX_ROWS
    """
    if not content:
        raise ValueError("INVALID_ROSTER_FILE: File is empty")

    try:
        wb = load_workbook(filename=io.BytesIO(content), read_only=True, data_only=True)
    except Exception as e:
        raise ValueError(f"INVALID_ROSTER_FILE: {e}") from e

    try:
        ws = wb.worksheets[0] if wb.worksheets else None
        if ws is None:
            raise ValueError("INVALID_ROSTER_FILE: Workbook has no sheets")

        rows_iter = ws.iter_rows(values_only=True)
        header_row = next(rows_iter, None)
        if not header_row:
            raise ValueError("INVALID_ROSTER_FILE: Missing header row")

        col_idx: Dict[str, int] = {}
        for index, header in enumerate(header_row):
            name = normalize_header(header)
            name = HEADER_ALIASES.get(name, name)
            if name in TEMPLATE_HEADERS and name not in col_idx:
                col_idx[name] = index

        missing = [h for h in REQUIRED_HEADERS if h not in col_idx]
        if missing:
            raise ValueError(
                f"INVALID_ROSTER_FILE: Missing required column(s) {', '.join(missing)}"
            )

        max_rows = settings.ENROLLMENT_IMPORT_MAX_ROWS
        rows: List[ImportedStudentRow] = []
        for sheet_row, values in enumerate(rows_iter, start=2):
            if values is None or all(_cell_text(v) is None for v in values):
                continue
            if len(rows) >= max_rows:
                raise ValueError(
                    f"ROSTER_TOO_LARGE: At most {max_rows} students can be imported at once"
                )
            rows.append(_parse_row(values, col_idx, sheet_row))
        return rows
    finally:
        wb.close()


def _parse_row(values: tuple, col_idx: Dict[str, int], sheet_row: int) -> ImportedStudentRow:
    def cell(name: str) -> Any:
        index = col_idx.get(name)
        if index is None or index >= len(values):
            return None
        return values[index]

    data: Dict[str, Any] = {}
    parse_errors: List[str] = []
    for name in TEMPLATE_HEADERS:
        if name == "dob":
            try:
                data["dob"] = coerce_date(cell("dob"))
            except ValueError as e:
                parse_errors.append(f"Date of birth: {e}")
        else:
            data[name] = _cell_text(cell(name))

    return ImportedStudentRow(**data, row_number=sheet_row, parse_errors=parse_errors)


def build_roster_template(class_profile: Optional[ClassProfile] = None) -> bytes:
    """Blank roster with one sample row, plus a Class sheet when a class is given"""
    wb = Workbook()
    ws = wb.active
    ws.title = STUDENTS_SHEET_NAME
    ws.append(list(TEMPLATE_HEADERS))
    ws.append(list(SAMPLE_ROW))
    for header_cell in ws[1]:
        header_cell.font = Font(bold=True)
    for column in ws.columns:
        ws.column_dimensions[column[0].column_letter].width = 18

    gender_column = TEMPLATE_HEADERS.index("gender") + 1
    letter = ws.cell(row=1, column=gender_column).column_letter
    dv_gender = DataValidation(type="list", formula1='"male,female,other"', allow_blank=True)
    dv_gender.error = "Gender must be male, female or other"
    ws.add_data_validation(dv_gender)
    dv_gender.add(f"{letter}2:{letter}{settings.ENROLLMENT_IMPORT_MAX_ROWS + 1}")

    if class_profile is not None:
        ws_class = wb.create_sheet(CLASS_SHEET_NAME)
        ws_class.append(["field", "value"])
        ws_class.append(["class_code", class_profile.code])
        ws_class.append(["class_name", class_profile.name])
        ws_class.append(["subject", class_profile.subject_code])
        ws_class.append(["level", class_profile.level_code or ""])
        ws_class.append(["max_capacity", class_profile.max_capacity])

    bio = io.BytesIO()
    wb.save(bio)
    return bio.getvalue()
