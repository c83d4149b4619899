import io
import uuid
from datetime import date, datetime

import pytest
from openpyxl import Workbook, load_workbook

from app.config.settings import settings
from app.schemas.enrollment_schemas import ClassProfile
from app.services.enrollment.roster_workbook import (
    CLASS_SHEET_NAME,
    STUDENTS_SHEET_NAME,
    TEMPLATE_HEADERS,
    build_roster_template,
    parse_roster_workbook,
)


def _workbook(*rows) -> bytes:
    wb = Workbook()
    ws = wb.active
    for row in rows:
        ws.append(list(row))
    bio = io.BytesIO()
    wb.save(bio)
    return bio.getvalue()


class TestRosterTemplate:
    """Test the downloadable roster template."""

    def test_template_headers_and_sample(self):
        wb = load_workbook(io.BytesIO(build_roster_template()))

        assert wb.sheetnames == [STUDENTS_SHEET_NAME]
        ws = wb[STUDENTS_SHEET_NAME]
        assert tuple(c.value for c in ws[1]) == TEMPLATE_HEADERS
        assert ws.cell(row=2, column=2).value == "Nguyen Van An"

    def test_template_sample_row_is_importable(self):
        rows = parse_roster_workbook(build_roster_template())

        assert len(rows) == 1
        sample = rows[0]
        assert sample.full_name == "Nguyen Van An"
        assert sample.student_code is None
        assert sample.dob == date(2004, 9, 15)
        assert sample.general == "B1-72"
        assert sample.row_number == 2
        assert sample.parse_errors == []

    def test_template_for_class_has_class_sheet(self):
        profile = ClassProfile(
            id=uuid.uuid4(),
            code="IELTS-B1-EVE",
            name="IELTS B1 Evening",
            max_capacity=25,
            status="scheduled",
            approval_status="approved",
            subject_id=uuid.uuid4(),
            subject_code="IELTS",
            level_code="B1",
        )

        wb = load_workbook(io.BytesIO(build_roster_template(profile)))

        assert wb.sheetnames == [STUDENTS_SHEET_NAME, CLASS_SHEET_NAME]
        values = {row[0]: row[1] for row in wb[CLASS_SHEET_NAME].iter_rows(min_row=2, values_only=True)}
        assert values["class_code"] == "IELTS-B1-EVE"
        assert values["max_capacity"] == 25


class TestParseRosterWorkbook:
    """Test reading uploaded rosters."""

    def test_header_aliases_and_cell_types(self):
        content = _workbook(
            ("Full Name", "Email Address", "Phone Number", "Date of Birth", "Level"),
            ("Tran Bao", "bao@lingua.edu.vn", 912345678, datetime(2003, 1, 2), "B1"),
            ("  ", None, None, None, None),
            ("Le Chi", None, "0987 654 321", "31/12/2002", None),
            ("Pham Dung", "dung@lingua.edu.vn", None, "sometime", None),
        )

        rows = parse_roster_workbook(content)

        assert [r.full_name for r in rows] == ["Tran Bao", "Le Chi", "Pham Dung"]
        assert [r.row_number for r in rows] == [2, 4, 5]
        assert rows[0].email == "bao@lingua.edu.vn"
        assert rows[0].phone == "912345678"
        assert rows[0].dob == date(2003, 1, 2)
        assert rows[0].level_code == "B1"
        assert rows[1].dob == date(2002, 12, 31)
        assert rows[2].dob is None
        assert rows[2].parse_errors == [
            "Date of birth: 'sometime' is not a valid date"
        ]

    def test_unknown_columns_are_ignored(self):
        content = _workbook(
            ("full_name", "email", "notes"),
            ("Tran Bao", "bao@lingua.edu.vn", "prefers evenings"),
        )

        rows = parse_roster_workbook(content)

        assert rows[0].full_name == "Tran Bao"
        assert rows[0].phone is None

    def test_missing_full_name_column(self):
        content = _workbook(("email", "phone"), ("bao@lingua.edu.vn", "0912"))

        with pytest.raises(ValueError, match="INVALID_ROSTER_FILE: Missing required column"):
            parse_roster_workbook(content)

    def test_not_a_workbook(self):
        with pytest.raises(ValueError, match="INVALID_ROSTER_FILE"):
            parse_roster_workbook(b"name,email\nAn,an@lingua.edu.vn\n")

    def test_empty_file(self):
        with pytest.raises(ValueError, match="INVALID_ROSTER_FILE: File is empty"):
            parse_roster_workbook(b"")

    def test_too_many_rows(self, monkeypatch):
        monkeypatch.setattr(settings, "ENROLLMENT_IMPORT_MAX_ROWS", 2)
        content = _workbook(
            ("full_name", "email"),
            ("A", "a@lingua.edu.vn"),
            ("B", "b@lingua.edu.vn"),
            ("C", "c@lingua.edu.vn"),
        )

        with pytest.raises(ValueError, match="ROSTER_TOO_LARGE"):
            parse_roster_workbook(content)

    def test_header_only(self):
        assert parse_roster_workbook(_workbook(("full_name", "email"))) == []
