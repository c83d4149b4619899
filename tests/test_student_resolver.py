import uuid

import pytest
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.providers.student_directory_provider import StudentDirectoryProvider
from app.schemas.enrollment_schemas import (
    ResolutionStatus,
    StudentResolutionRecord,
)
from app.services.enrollment.student_resolver import (
    StudentResolver,
    identity_keys,
    parse_gender,
    parse_skill_placement,
    pending_student_id,
    validate_row,
)
from tests.factories import create_student, make_row


class RecordingDirectory:
    """Empty student directory that remembers every lookup."""

    def __init__(self):
        self.lookups = []

    async def find_by_code(self, student_code):
        self.lookups.append(("code", student_code))
        return None

    async def find_by_email(self, email):
        self.lookups.append(("email", email))
        return None

    async def find_by_ids(self, student_ids):
        return []


@pytest.fixture
def resolver(db_session: AsyncSession) -> StudentResolver:
    return StudentResolver(StudentDirectoryProvider(db_session))


class TestSkillPlacementParsing:
    """Test placement cell parsing."""

    def test_level_and_score(self):
        assert parse_skill_placement("B1-75") == ("B1", 75)

    def test_level_only(self):
        assert parse_skill_placement(" n3 ") == ("N3", None)

    def test_blank(self):
        assert parse_skill_placement(None) is None
        assert parse_skill_placement("   ") is None

    def test_level_code_with_dash(self):
        assert parse_skill_placement("PRE-A1-40") == ("PRE-A1", 40)

    @pytest.mark.parametrize("value", ["B1-abc", "B1-150", "-75", "B1-"])
    def test_malformed(self, value):
        with pytest.raises(ValueError):
            parse_skill_placement(value)


class TestRowValidation:
    """Test row-level validation without any lookup."""

    def test_valid_row(self):
        assert validate_row(make_row(1)) == []

    def test_missing_full_name(self):
        errors = validate_row(make_row(1, full_name="  "))
        assert "Full name is required" in errors

    def test_missing_contact(self):
        errors = validate_row(make_row(1, email=None, phone=None))
        assert "Either email or phone is required" in errors

    def test_phone_only_is_enough(self):
        assert validate_row(make_row(1, email=None)) == []

    def test_invalid_email(self):
        errors = validate_row(make_row(1, email="not-an-email"))
        assert any(e.startswith("Invalid email 'not-an-email'") for e in errors)

    @pytest.mark.parametrize("email", ["an@school.test", "an.nguyen@mail.school.test"])
    def test_well_formed_email_on_test_domain(self, email):
        assert validate_row(make_row(1, email=email)) == []

    def test_invalid_gender(self):
        errors = validate_row(make_row(1, gender="robot"))
        assert any("Invalid gender 'robot'" in e for e in errors)

    def test_invalid_placement_names_the_column(self):
        errors = validate_row(make_row(1, reading="B1-999"))
        assert any(e.startswith("Reading: ") for e in errors)

    def test_parse_errors_are_kept(self):
        row = make_row(1, parse_errors=["Date of birth: 'soon' is not a valid date"])
        assert validate_row(row) == ["Date of birth: 'soon' is not a valid date"]

    def test_gender_aliases(self):
        assert parse_gender("F").value == "female"
        assert parse_gender(" Male ").value == "male"
        assert parse_gender(None) is None


class TestIdentity:
    def test_email_and_code_are_keys(self):
        row = make_row(1, email="An@Lingua.edu.vn", student_code="ST001")
        assert identity_keys(row) == ["email:an@lingua.edu.vn", "code:ST001"]

    def test_phone_only_when_no_email_or_code(self):
        assert identity_keys(make_row(1, email=None, phone="0912 345 678")) == [
            "phone:0912345678"
        ]
        assert all(not k.startswith("phone:") for k in identity_keys(make_row(1)))

    def test_pending_id_is_deterministic(self):
        first = pending_student_id(make_row(1, email="AN@lingua.edu.vn"))
        second = pending_student_id(make_row(7, email="an@lingua.edu.vn", full_name="Other"))
        assert first == second
        assert first != pending_student_id(make_row(2))


class TestResolutionRecordInvariant:
    def test_found_requires_resolved_id(self):
        with pytest.raises(ValidationError):
            StudentResolutionRecord(
                full_name="An", resolution_status=ResolutionStatus.FOUND
            )

    def test_create_rejects_error_message(self):
        with pytest.raises(ValidationError):
            StudentResolutionRecord(
                full_name="An",
                resolution_status=ResolutionStatus.CREATE,
                pending_student_id=uuid.uuid4(),
                error_message="boom",
            )

    def test_error_requires_message(self):
        with pytest.raises(ValidationError):
            StudentResolutionRecord(
                full_name="An", resolution_status=ResolutionStatus.ERROR
            )

    def test_accepts_camel_case_payload(self):
        pending = uuid.uuid4()
        record = StudentResolutionRecord.model_validate(
            {
                "fullName": "An",
                "email": "an@lingua.edu.vn",
                "resolutionStatus": "CREATE",
                "pendingStudentId": str(pending),
            }
        )
        assert record.student_id == pending
        assert record.is_enrollable


class TestStudentResolver:
    """Test resolution of whole batches."""

    @pytest.mark.asyncio
    async def test_new_rows_are_create(self, resolver):
        records = await resolver.resolve([make_row(1), make_row(2)])

        assert [r.resolution_status for r in records] == [ResolutionStatus.CREATE] * 2
        assert records[0].pending_student_id == pending_student_id(make_row(1))
        assert records[0].resolved_student_id is None
        assert records[0].error_message is None
        assert [r.row_number for r in records] == [1, 2]

    @pytest.mark.asyncio
    async def test_found_by_student_code(self, db_session, catalog, resolver):
        student = await create_student(
            db_session, catalog, student_code="ST2600000001", email="old@lingua.edu.vn"
        )

        records = await resolver.resolve(
            [make_row(1, student_code="ST2600000001", email="new@lingua.edu.vn")]
        )

        assert records[0].resolution_status == ResolutionStatus.FOUND
        assert records[0].resolved_student_id == student.id
        assert records[0].pending_student_id is None

    @pytest.mark.asyncio
    async def test_found_by_email_case_insensitive(self, db_session, catalog, resolver):
        student = await create_student(db_session, catalog, email="binh.tran@lingua.edu.vn")

        records = await resolver.resolve([make_row(1, email="  Binh.Tran@LINGUA.edu.vn ")])

        assert records[0].resolution_status == ResolutionStatus.FOUND
        assert records[0].resolved_student_id == student.id

    @pytest.mark.asyncio
    async def test_unknown_code_falls_back_to_email(self, db_session, catalog, resolver):
        student = await create_student(db_session, catalog, email="cuong@lingua.edu.vn")

        records = await resolver.resolve(
            [make_row(1, student_code="NOPE", email="cuong@lingua.edu.vn")]
        )

        assert records[0].resolved_student_id == student.id

    @pytest.mark.asyncio
    async def test_duplicate_email_in_batch(self, resolver):
        records = await resolver.resolve(
            [
                make_row(1, email="dup@lingua.edu.vn"),
                make_row(2, email="DUP@lingua.edu.vn"),
            ]
        )

        assert records[0].resolution_status == ResolutionStatus.CREATE
        assert records[1].resolution_status == ResolutionStatus.DUPLICATE
        assert records[1].error_message == "Duplicate of row 1 (same email)"
        assert records[1].pending_student_id is None

    @pytest.mark.asyncio
    async def test_duplicate_code_in_batch(self, resolver):
        records = await resolver.resolve(
            [
                make_row(1, student_code="ST9"),
                make_row(2, student_code="ST9"),
            ]
        )

        assert records[1].resolution_status == ResolutionStatus.DUPLICATE
        assert records[1].error_message == "Duplicate of row 1 (same code)"

    @pytest.mark.asyncio
    async def test_duplicate_phone_only_rows(self, resolver):
        records = await resolver.resolve(
            [
                make_row(1, email=None, phone="0912345678"),
                make_row(2, email=None, phone="0912-345-678"),
            ]
        )

        assert records[1].resolution_status == ResolutionStatus.DUPLICATE
        assert "same phone" in records[1].error_message

    @pytest.mark.asyncio
    async def test_same_existing_student_via_code_and_email(
        self, db_session, catalog, resolver
    ):
        student = await create_student(
            db_session, catalog, student_code="ST2612345678", email="dung@lingua.edu.vn"
        )

        records = await resolver.resolve(
            [
                make_row(1, student_code="ST2612345678", email=None),
                make_row(2, email="dung@lingua.edu.vn"),
            ]
        )

        assert records[0].resolution_status == ResolutionStatus.FOUND
        assert records[1].resolution_status == ResolutionStatus.DUPLICATE
        assert records[1].error_message == "Duplicate of row 1 (same student ST2612345678)"
        assert records[0].resolved_student_id == student.id

    @pytest.mark.asyncio
    async def test_error_rows_are_not_looked_up(self):
        directory = RecordingDirectory()
        records = await StudentResolver(directory).resolve(
            [make_row(1, full_name=None, student_code="ST1")]
        )

        assert records[0].resolution_status == ResolutionStatus.ERROR
        assert "Full name is required" in records[0].error_message
        assert directory.lookups == []

    @pytest.mark.asyncio
    async def test_error_row_does_not_claim_identity(self, resolver):
        records = await resolver.resolve(
            [
                make_row(1, email="eve@lingua.edu.vn", gender="unknown"),
                make_row(2, email="eve@lingua.edu.vn"),
            ]
        )

        assert records[0].resolution_status == ResolutionStatus.ERROR
        assert records[1].resolution_status == ResolutionStatus.CREATE

    @pytest.mark.asyncio
    async def test_sheet_row_numbers_are_kept(self, resolver):
        rows = [make_row(1, row_number=5), make_row(1, row_number=9)]
        records = await resolver.resolve(rows)

        assert records[1].error_message == "Duplicate of row 5 (same email)"
        assert [r.row_number for r in records] == [5, 9]

    @pytest.mark.asyncio
    async def test_one_record_per_row_in_order(self, db_session, catalog, resolver):
        await create_student(db_session, catalog, email="student03@lingua.edu.vn")
        rows = [
            make_row(1),
            make_row(2, email="broken"),
            make_row(3),
            make_row(1),
        ]

        records = await resolver.resolve(rows)

        assert [r.full_name for r in records] == [r.full_name for r in rows]
        assert [r.resolution_status for r in records] == [
            ResolutionStatus.CREATE,
            ResolutionStatus.ERROR,
            ResolutionStatus.FOUND,
            ResolutionStatus.DUPLICATE,
        ]

    @pytest.mark.asyncio
    async def test_resolution_is_repeatable(self, db_session, catalog, resolver):
        await create_student(db_session, catalog, email="student02@lingua.edu.vn")
        rows = [make_row(1), make_row(2), make_row(1), make_row(3, full_name="")]

        first = await resolver.resolve(rows)
        second = await resolver.resolve(rows)

        assert first == second

    @pytest.mark.asyncio
    async def test_input_rows_are_not_modified(self, resolver):
        row = make_row(1)
        await resolver.resolve([row])

        assert row.row_number is None
        assert row.parse_errors == []
