from typing import Dict, List, Optional, Sequence
import uuid

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.config.settings import settings
from app.db.session import get_async_session
from app.providers.class_schedule_provider import ClassScheduleProvider
from app.providers.enrollment_writer_provider import EnrollmentWriterProvider
from app.providers.skill_profile_provider import SkillProfileProvider
from app.providers.student_directory_provider import StudentDirectoryProvider
from app.schemas.enrollment_schemas import (
    ClassCapacitySnapshot,
    ClassMatchInfo,
    ClassProfile,
    EnrollmentExecutionResult,
    EnrollmentRecommendation,
    EnrollmentStrategy,
    ImportedStudentRow,
    ImportPreview,
    ResolutionStatus,
    StudentResolutionRecord,
)
from app.services.enrollment.capacity_advisor import CapacityAdvisor
from app.services.enrollment.enrollment_executor import (
    MID_COURSE_WARNING,
    EnrollmentExecutor,
    ensure_class_accepts_enrollment,
)
from app.services.enrollment.priority_matcher import PriorityMatcher
from app.services.enrollment.roster_workbook import (
    build_roster_template,
    parse_roster_workbook,
)
from app.services.enrollment.student_resolver import StudentResolver
from app.utils.context import get_actor_id
from app.utils.datetime_utils import center_time, center_today
from app.utils.logging import get_logger

logger = get_logger()


class EnrollmentService:
    """Entry point for preview, recommendation, ranking and execution of class enrollments"""

    def __init__(self, db_session: AsyncSession, advisor: Optional[CapacityAdvisor] = None):
        self.db = db_session
        self.directory = StudentDirectoryProvider(db_session)
        self.skill_store = SkillProfileProvider(db_session)
        self.classes = ClassScheduleProvider(db_session)
        self.writer = EnrollmentWriterProvider(db_session)
        self.advisor = advisor or CapacityAdvisor()
        self.resolver = StudentResolver(self.directory)
        self.matcher = PriorityMatcher(self.skill_store)
        self.executor = EnrollmentExecutor(
            db_session,
            directory=self.directory,
            class_reader=self.classes,
            session_reader=self.classes,
            writer=self.writer,
            advisor=self.advisor,
        )

    # Class lookups
    async def get_class_profile(self, class_id: uuid.UUID) -> ClassProfile:
        profile = await self.classes.get_class_profile(class_id)
        if profile is None:
            raise ValueError(f"CLASS_NOT_FOUND: Class {class_id} does not exist")
        return profile

    async def get_enrollable_class(self, class_id: uuid.UUID) -> ClassProfile:
        return ensure_class_accepts_enrollment(
            await self.classes.get_class_profile(class_id), class_id
        )

    async def get_capacity_snapshot(self, class_id: uuid.UUID) -> ClassCapacitySnapshot:
        profile = await self.get_class_profile(class_id)
        return ClassCapacitySnapshot(
            class_id=class_id,
            max_capacity=profile.max_capacity,
            current_enrolled=await self.classes.count_active_enrollments(class_id),
        )

    # Preview
    async def preview_import(
        self, class_id: uuid.UUID, rows: Sequence[ImportedStudentRow]
    ) -> List[StudentResolutionRecord]:
        """Classify rows against the student directory; writes nothing"""
        await self.get_enrollable_class(class_id)
        self._check_row_count(rows)
        return await self.resolver.resolve(rows)

    async def build_import_preview(
        self, class_id: uuid.UUID, rows: Sequence[ImportedStudentRow]
    ) -> ImportPreview:
        """Resolution records plus capacity, warnings and a recommendation"""
        profile = await self.get_enrollable_class(class_id)
        self._check_row_count(rows)
        records = await self.resolver.resolve(rows)

        counts = {status: 0 for status in ResolutionStatus}
        for record in records:
            counts[record.resolution_status] += 1

        snapshot = ClassCapacitySnapshot(
            class_id=class_id,
            max_capacity=profile.max_capacity,
            current_enrolled=await self.classes.count_active_enrollments(class_id),
        )

        warnings: List[str] = []
        found_ids = [
            r.resolved_student_id
            for r in records
            if r.resolution_status == ResolutionStatus.FOUND
        ]
        already_active = await self.writer.active_student_ids(class_id, found_ids)
        if already_active:
            warnings.append(
                f"{len(already_active)} student(s) are already enrolled in {profile.code} and will be skipped"
            )
        skipped = counts[ResolutionStatus.ERROR] + counts[ResolutionStatus.DUPLICATE]
        if skipped:
            warnings.append(f"{skipped} row(s) have errors or duplicates and will be skipped")

        today = center_today()
        if profile.start_date is not None and today > profile.start_date:
            warnings.append(MID_COURSE_WARNING)
        if not await self.classes.remaining_sessions(class_id, today, center_time()):
            warnings.append(f"Class {profile.code} has no remaining planned sessions")

        requested = (
            counts[ResolutionStatus.FOUND]
            + counts[ResolutionStatus.CREATE]
            - len(already_active)
        )
        exceeded_by = 0
        if snapshot.max_capacity > 0:
            exceeded_by = max(snapshot.current_enrolled + requested - snapshot.max_capacity, 0)

        return ImportPreview(
            class_id=class_id,
            class_code=profile.code,
            class_name=profile.name,
            records=records,
            total_rows=len(records),
            found_count=counts[ResolutionStatus.FOUND],
            create_count=counts[ResolutionStatus.CREATE],
            duplicate_count=counts[ResolutionStatus.DUPLICATE],
            error_count=counts[ResolutionStatus.ERROR],
            capacity=snapshot,
            exceeded_by=exceeded_by,
            warnings=warnings,
            recommendation=self.advisor.recommend_for(snapshot, requested),
        )

    async def build_import_preview_from_workbook(
        self, class_id: uuid.UUID, content: bytes
    ) -> ImportPreview:
        # Class problems take precedence over file problems
        await self.get_enrollable_class(class_id)
        rows = parse_roster_workbook(content)
        return await self.build_import_preview(class_id, rows)

    async def build_roster_template(self, class_id: Optional[uuid.UUID] = None) -> bytes:
        profile = await self.get_class_profile(class_id) if class_id else None
        return build_roster_template(profile)

    # Recommendation
    async def get_recommendation(
        self, class_id: uuid.UUID, requested_count: int
    ) -> EnrollmentRecommendation:
        snapshot = await self.get_capacity_snapshot(class_id)
        return self.advisor.recommend_for(snapshot, requested_count)

    # Ranking
    async def rank_available_students(
        self, class_id: uuid.UUID, candidate_student_ids: Optional[Sequence[uuid.UUID]] = None
    ) -> Dict[uuid.UUID, ClassMatchInfo]:
        """Match info for the given students, keyed by id in ranked order.

        Without candidates, every available student of the class branch is ranked.
        """
        if not candidate_student_ids:
            available = await self.list_available_students(class_id)
            return {info.student_id: info for info in available}

        profile = await self.get_class_profile(class_id)
        wanted = list(dict.fromkeys(candidate_student_ids))
        students = await self.directory.find_by_ids(wanted)

        missing = set(wanted) - {student.id for student in students}
        if missing:
            raise ValueError(
                f"STUDENT_NOT_FOUND: {', '.join(sorted(str(i) for i in missing))}"
            )

        ranked = await self.matcher.rank_students(profile, students)
        return {info.student_id: info for info in ranked}

    async def list_available_students(self, class_id: uuid.UUID) -> List[ClassMatchInfo]:
        """Students of the class's branch who are not actively enrolled in it, best fit first"""
        profile = await self.get_class_profile(class_id)
        students = await self.directory.list_by_branch(profile.branch_id)
        active = await self.writer.active_student_ids(
            class_id, [student.id for student in students]
        )
        available = [student for student in students if student.id not in active]
        return await self.matcher.rank_students(profile, available)

    # Execution
    async def execute_enrollment(
        self,
        class_id: uuid.UUID,
        records: Sequence[StudentResolutionRecord],
        strategy: EnrollmentStrategy,
        selected_student_ids: Optional[Sequence[uuid.UUID]] = None,
        override_reason: Optional[str] = None,
    ) -> EnrollmentExecutionResult:
        return await self.executor.execute(
            class_id,
            records,
            strategy,
            selected_student_ids=selected_student_ids,
            enrolled_by=get_actor_id(),
            override_reason=override_reason,
        )

    async def enroll_existing_students(
        self,
        class_id: uuid.UUID,
        student_ids: Sequence[uuid.UUID],
        strategy: EnrollmentStrategy = EnrollmentStrategy.ALL,
        override_reason: Optional[str] = None,
    ) -> EnrollmentExecutionResult:
        """Enroll directory students picked by id through the same executor"""
        wanted = list(dict.fromkeys(student_ids))
        students = {student.id: student for student in await self.directory.find_by_ids(wanted)}
        missing = [str(i) for i in wanted if i not in students]
        if missing:
            raise ValueError(f"STUDENT_NOT_FOUND: {', '.join(missing)}")

        records = [
            StudentResolutionRecord(
                student_code=students[student_id].student_code,
                full_name=students[student_id].full_name,
                email=students[student_id].email,
                phone=students[student_id].phone,
                row_number=index + 1,
                resolution_status=ResolutionStatus.FOUND,
                resolved_student_id=student_id,
            )
            for index, student_id in enumerate(wanted)
        ]
        return await self.execute_enrollment(
            class_id,
            records,
            strategy,
            selected_student_ids=wanted if strategy == EnrollmentStrategy.PARTIAL else None,
            override_reason=override_reason,
        )

    @staticmethod
    def _check_row_count(rows: Sequence[ImportedStudentRow]) -> None:
        if len(rows) > settings.ENROLLMENT_IMPORT_MAX_ROWS:
            raise ValueError(
                f"ROSTER_TOO_LARGE: At most {settings.ENROLLMENT_IMPORT_MAX_ROWS} students can be imported at once"
            )


def get_enrollment_service(
    db: AsyncSession = Depends(get_async_session),
) -> EnrollmentService:
    return EnrollmentService(db)
