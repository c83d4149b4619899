import io
import uuid

import pytest
from openpyxl import Workbook

from app.config.settings import settings
from app.db.models import ApprovalStatus
from app.schemas.enrollment_schemas import RecommendationType, ResolutionStatus
from app.services.enrollment.enrollment_executor import MID_COURSE_WARNING
from app.services.enrollment.enrollment_service import EnrollmentService
from tests.factories import create_class, create_student, make_row


class TestImportPreview:
    """Test the preview summary shown before executing an import."""

    @pytest.mark.asyncio
    async def test_counts_and_recommendation(self, db_session, catalog):
        training_class = await create_class(db_session, catalog, max_capacity=3)
        await create_student(db_session, catalog, email="student02@lingua.edu.vn")

        preview = await EnrollmentService(db_session).build_import_preview(
            training_class.id,
            [make_row(1), make_row(2), make_row(3), make_row(1), make_row(4, email="bad")],
        )

        assert preview.class_code == training_class.code
        assert preview.total_rows == 5
        assert (preview.found_count, preview.create_count) == (1, 2)
        assert (preview.duplicate_count, preview.error_count) == (1, 1)
        assert preview.capacity.current_enrolled == 0
        assert preview.exceeded_by == 0
        assert preview.recommendation.type == RecommendationType.OK
        assert preview.warnings == ["2 row(s) have errors or duplicates and will be skipped"]

    @pytest.mark.asyncio
    async def test_already_enrolled_students_are_not_requested(self, db_session, catalog):
        training_class = await create_class(db_session, catalog, max_capacity=2)
        enrolled = await create_student(db_session, catalog, email="student01@lingua.edu.vn")
        service = EnrollmentService(db_session)
        await service.enroll_existing_students(training_class.id, [enrolled.id])

        preview = await service.build_import_preview(
            training_class.id, [make_row(1), make_row(2)]
        )

        assert preview.found_count == 1
        assert preview.capacity.current_enrolled == 1
        assert preview.exceeded_by == 0
        assert preview.recommendation.type == RecommendationType.OK
        assert preview.warnings == [
            f"1 student(s) are already enrolled in {training_class.code} and will be skipped"
        ]

    @pytest.mark.asyncio
    async def test_mid_course_and_missing_sessions_are_flagged(self, db_session, catalog):
        training_class = await create_class(
            db_session, catalog, start_offset_days=-20, planned_offsets=(), past_offsets=(20, 13)
        )

        preview = await EnrollmentService(db_session).build_import_preview(
            training_class.id, [make_row(1)]
        )

        assert preview.warnings == [
            MID_COURSE_WARNING,
            f"Class {training_class.code} has no remaining planned sessions",
        ]

    @pytest.mark.asyncio
    async def test_preview_writes_nothing(self, db_session, open_class):
        service = EnrollmentService(db_session)

        first = await service.preview_import(open_class.id, [make_row(1)])
        second = await service.preview_import(open_class.id, [make_row(1)])

        assert first == second
        assert first[0].resolution_status == ResolutionStatus.CREATE
        assert await service.directory.find_by_ids([first[0].pending_student_id]) == []

    @pytest.mark.asyncio
    async def test_unapproved_class_cannot_be_previewed(self, db_session, catalog):
        training_class = await create_class(
            db_session, catalog, approval_status=ApprovalStatus.REJECTED
        )

        with pytest.raises(ValueError, match="CLASS_NOT_APPROVED"):
            await EnrollmentService(db_session).build_import_preview(
                training_class.id, [make_row(1)]
            )

    @pytest.mark.asyncio
    async def test_row_limit(self, db_session, open_class, monkeypatch):
        monkeypatch.setattr(settings, "ENROLLMENT_IMPORT_MAX_ROWS", 2)

        with pytest.raises(ValueError, match="ROSTER_TOO_LARGE"):
            await EnrollmentService(db_session).preview_import(
                open_class.id, [make_row(1), make_row(2), make_row(3)]
            )


class TestCapacityQueries:
    @pytest.mark.asyncio
    async def test_capacity_snapshot(self, db_session, catalog):
        training_class = await create_class(db_session, catalog, max_capacity=4)
        students = [await create_student(db_session, catalog) for _ in range(3)]
        service = EnrollmentService(db_session)
        await service.enroll_existing_students(training_class.id, [s.id for s in students])

        snapshot = await service.get_capacity_snapshot(training_class.id)

        assert snapshot.current_enrolled == 3
        assert snapshot.remaining_slots == 1

    @pytest.mark.asyncio
    async def test_recommendation_for_full_class(self, db_session, catalog):
        training_class = await create_class(db_session, catalog, max_capacity=5)
        students = [await create_student(db_session, catalog) for _ in range(5)]
        service = EnrollmentService(db_session)
        await service.enroll_existing_students(training_class.id, [s.id for s in students])

        assert (
            await service.get_recommendation(training_class.id, 1)
        ).type == RecommendationType.OVERRIDE_AVAILABLE
        assert (
            await service.get_recommendation(training_class.id, 2)
        ).type == RecommendationType.BLOCKED

    @pytest.mark.asyncio
    async def test_unknown_class(self, db_session, catalog):
        with pytest.raises(ValueError, match="CLASS_NOT_FOUND"):
            await EnrollmentService(db_session).get_capacity_snapshot(uuid.uuid4())


class TestWorkbookPreview:
    @pytest.mark.asyncio
    async def test_bad_cells_only_fail_their_own_row(self, db_session, open_class):
        wb = Workbook()
        ws = wb.active
        ws.append(["full_name", "email", "dob", "reading"])
        ws.append(["Tran Bao", "bao@lingua.edu.vn", "sometime", None])
        ws.append(["Le Chi", "chi@lingua.edu.vn", None, "B1-abc"])
        ws.append(["Pham Dung", "dung@lingua.edu.vn", "31/12/2002", "B1-70"])
        bio = io.BytesIO()
        wb.save(bio)

        preview = await EnrollmentService(db_session).build_import_preview_from_workbook(
            open_class.id, bio.getvalue()
        )

        statuses = [r.resolution_status for r in preview.records]
        assert statuses == [ResolutionStatus.ERROR, ResolutionStatus.ERROR, ResolutionStatus.CREATE]
        assert "Date of birth" in preview.records[0].error_message
        assert preview.records[1].error_message.startswith("Reading: ")
        assert preview.create_count == 1
