"""
Durable enrollment of resolved students into a class.

One execute call is one unit of work on the caller's session:

    class lock -> row lock on the class -> fresh capacity count
    -> working set by strategy -> FOUND ids checked against the directory
    -> capacity gate (unless OVERRIDE)
    -> create missing students -> ACTIVE enrollments -> student sessions
    -> commit

The class lock is held until the commit or rollback has finished, so the
next execute on the same class always counts the enrollments this one wrote.
Anything that goes wrong rolls the whole unit back.
"""

from dataclasses import dataclass
from datetime import date, time
from typing import Callable, Iterable, List, Optional, Sequence
import uuid

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config.settings import settings
from app.db.models import ClassStatus, ApprovalStatus, Skill
from app.providers.protocols import (
    ClassReader,
    EnrollmentWriter,
    SessionReader,
    StudentDirectory,
)
from app.schemas.enrollment_schemas import (
    ClassCapacitySnapshot,
    ClassProfile,
    EnrollmentExecutionResult,
    EnrollmentStrategy,
    ResolutionStatus,
    StudentResolutionRecord,
)
from app.services.enrollment.capacity_advisor import CapacityAdvisor
from app.services.enrollment.class_lock import ClassLockRegistry, class_lock_registry
from app.services.enrollment.student_resolver import (
    SKILL_COLUMNS,
    parse_gender,
    parse_skill_placement,
    row_label,
)
from app.utils.datetime_utils import center_time, center_today, naive_utc_now
from app.utils.errors import CapacityExceededError, DatabaseError
from app.utils.logging import get_logger
from app.utils.string_utils import clean_text

logger = get_logger()

MID_COURSE_WARNING = (
    "Mid-course enrollment: Students will only be enrolled in future sessions"
)
PLACEMENT_ASSESSMENT_TYPE = "Roster import placement"

ENROLLABLE_CLASS_STATUSES = (ClassStatus.SCHEDULED.value, ClassStatus.ONGOING.value)


def ensure_class_accepts_enrollment(profile: Optional[ClassProfile], class_id) -> ClassProfile:
    """Class must exist, be approved, and be scheduled or ongoing"""
    if profile is None:
        raise ValueError(f"CLASS_NOT_FOUND: Class {class_id} does not exist")
    if profile.approval_status != ApprovalStatus.APPROVED.value:
        raise ValueError(
            f"CLASS_NOT_APPROVED: Class {profile.code} is {profile.approval_status}, not approved"
        )
    if profile.status not in ENROLLABLE_CLASS_STATUSES:
        raise ValueError(
            f"CLASS_INVALID_STATUS: Class {profile.code} is {profile.status}; "
            f"only scheduled or ongoing classes accept enrollments"
        )
    return profile


@dataclass
class _Candidate:
    """A working-set entry on its way to becoming an enrollment"""

    record: StudentResolutionRecord
    label: int
    student_id: uuid.UUID
    create: bool


class EnrollmentExecutor:
    def __init__(
        self,
        db_session: AsyncSession,
        directory: StudentDirectory,
        class_reader: ClassReader,
        session_reader: SessionReader,
        writer: EnrollmentWriter,
        advisor: Optional[CapacityAdvisor] = None,
        lock_registry: ClassLockRegistry = class_lock_registry,
        lock_timeout: Optional[float] = None,
        today: Callable[[], date] = center_today,
        now: Callable[[], time] = center_time,
    ):
        self.db = db_session
        self.directory = directory
        self.class_reader = class_reader
        self.session_reader = session_reader
        self.writer = writer
        self.advisor = advisor or CapacityAdvisor()
        self.lock_registry = lock_registry
        self.lock_timeout = (
            settings.ENROLLMENT_LOCK_TIMEOUT_SECONDS
            if lock_timeout is None
            else lock_timeout
        )
        self.today = today
        self.now = now

    async def execute(
        self,
        class_id: uuid.UUID,
        records: Sequence[StudentResolutionRecord],
        strategy: EnrollmentStrategy,
        selected_student_ids: Optional[Iterable[uuid.UUID]] = None,
        enrolled_by: Optional[str] = None,
        override_reason: Optional[str] = None,
    ) -> EnrollmentExecutionResult:
        """
        Enroll the working set chosen by ``strategy`` in one transaction.

        Raises:
            ValueError: class not found / not approved / wrong status, or a
                PARTIAL call without selected ids, or a FOUND record whose
                student is not in the directory (``ERROR_CODE: detail``)
            CapacityExceededError: the working set does not fit and strategy is not OVERRIDE
            LockContentionError: another execute on this class held the lock too long
            DatabaseError: the unit of work could not be persisted
        """
        selected = None
        if strategy == EnrollmentStrategy.PARTIAL:
            selected = list(dict.fromkeys(selected_student_ids or []))
            if not selected:
                raise ValueError(
                    "PARTIAL_STRATEGY_MISSING_IDS: PARTIAL enrollment needs at least one selected student id"
                )

        async with self.lock_registry.hold(class_id, self.lock_timeout):
            try:
                result = await self._execute_locked(
                    class_id,
                    records,
                    strategy,
                    selected,
                    enrolled_by,
                    clean_text(override_reason),
                )
                await self.db.commit()
            except SQLAlchemyError as e:
                await self.db.rollback()
                logger.error(f"Enrollment into class {class_id} rolled back: {str(e)}")
                raise DatabaseError(
                    f"Failed to persist enrollment for class {class_id}",
                    error_code="ENROLLMENT_PERSISTENCE_FAILED",
                ) from e
            except Exception:
                await self.db.rollback()
                raise

        logger.info(
            f"Enrolled {result.enrolled_count} students into class {class_id} "
            f"(strategy={strategy.value}, created={result.students_created}, "
            f"sessions={result.total_student_sessions_created}, warnings={len(result.warnings)})"
        )
        return result

    async def _execute_locked(
        self,
        class_id: uuid.UUID,
        records: Sequence[StudentResolutionRecord],
        strategy: EnrollmentStrategy,
        selected: Optional[List[uuid.UUID]],
        enrolled_by: Optional[str],
        override_reason: Optional[str],
    ) -> EnrollmentExecutionResult:
        profile = ensure_class_accepts_enrollment(
            await self.class_reader.lock_class_profile(class_id), class_id
        )
        snapshot = ClassCapacitySnapshot(
            class_id=class_id,
            max_capacity=profile.max_capacity,
            current_enrolled=await self.class_reader.count_active_enrollments(class_id),
        )

        warnings: List[str] = []
        working_set = self._select_working_set(records, strategy, selected, warnings)
        candidates = await self._bind_identities(working_set, warnings)

        already_active = await self.writer.active_student_ids(
            class_id, [c.student_id for c in candidates if not c.create]
        )
        to_enroll: List[_Candidate] = []
        for candidate in candidates:
            if candidate.student_id in already_active:
                warnings.append(
                    f"Row {candidate.label}: {candidate.record.full_name} is already "
                    f"actively enrolled in {profile.code}; skipped"
                )
            else:
                to_enroll.append(candidate)

        capacity_override = self._check_capacity(
            profile, snapshot, len(to_enroll), strategy, override_reason, enrolled_by, warnings
        )

        today = self.today()
        sessions = await self.session_reader.remaining_sessions(
            class_id, today, self.now()
        )
        join_session_id = None
        if to_enroll and profile.start_date is not None and today > profile.start_date:
            warnings.append(MID_COURSE_WARNING)
            join_session_id = sessions[0].id if sessions else None
        if to_enroll and not sessions:
            warnings.append(
                f"Class {profile.code} has no remaining planned sessions; "
                f"no student sessions were generated"
            )

        students_created = 0
        total_sessions = 0
        enrolled_at = naive_utc_now()
        for candidate in to_enroll:
            if candidate.create:
                await self._create_student(profile, candidate, today, warnings)
                students_created += 1

            await self.writer.add_enrollment(
                class_id=class_id,
                student_id=candidate.student_id,
                enrolled_at=enrolled_at,
                enrolled_by=enrolled_by,
                join_session_id=join_session_id,
                capacity_override=capacity_override,
                override_reason=override_reason if capacity_override else None,
            )
            total_sessions += await self.writer.add_student_sessions(
                candidate.student_id, sessions
            )

        await self.db.flush()

        return EnrollmentExecutionResult(
            enrolled_count=len(to_enroll),
            students_created=students_created,
            sessions_generated_per_student=len(sessions),
            total_student_sessions_created=total_sessions,
            warnings=warnings,
        )

    @staticmethod
    def _select_working_set(
        records: Sequence[StudentResolutionRecord],
        strategy: EnrollmentStrategy,
        selected: Optional[List[uuid.UUID]],
        warnings: List[str],
    ) -> List[tuple]:
        """(label, record) pairs to enroll, in input order"""
        working_set = []
        matched = set()

        for index, record in enumerate(records):
            label = row_label(record, index)
            if not record.is_enrollable:
                warnings.append(
                    f"Row {label}: skipped ({record.resolution_status.value}): "
                    f"{record.error_message}"
                )
                continue

            if strategy == EnrollmentStrategy.PARTIAL:
                if record.student_id not in selected:
                    continue
                matched.add(record.student_id)
            working_set.append((label, record))

        if strategy == EnrollmentStrategy.PARTIAL:
            for student_id in selected:
                if student_id not in matched:
                    warnings.append(
                        f"Selected student {student_id} is not among the importable records; skipped"
                    )
        return working_set

    async def _bind_identities(
        self, working_set: List[tuple], warnings: List[str]
    ) -> List[_Candidate]:
        """
        Decide the student id each record enrolls.

        CREATE records are checked against the directory again: another execute
        may have created the same person after this batch was previewed.
        """
        candidates: List[_Candidate] = []
        seen = {}

        for label, record in working_set:
            student_id = record.student_id
            create = record.resolution_status == ResolutionStatus.CREATE

            if create:
                existing = await self._find_existing(record)
                if existing is not None:
                    warnings.append(
                        f"Row {label}: {record.full_name} already exists as student "
                        f"{existing.student_code}; enrolling the existing record"
                    )
                    student_id = existing.id
                    create = False

            if student_id in seen:
                warnings.append(
                    f"Row {label}: same student as row {seen[student_id]}; skipped"
                )
                continue

            seen[student_id] = label
            candidates.append(
                _Candidate(record=record, label=label, student_id=student_id, create=create)
            )

        await self._ensure_found_students_exist(candidates)
        return candidates

    async def _ensure_found_students_exist(self, candidates: List[_Candidate]) -> None:
        """FOUND ids arrive from the caller and must still name directory students"""
        found_ids = [
            c.student_id
            for c in candidates
            if c.record.resolution_status == ResolutionStatus.FOUND
        ]
        if not found_ids:
            return

        known = {student.id for student in await self.directory.find_by_ids(found_ids)}
        missing = [str(student_id) for student_id in found_ids if student_id not in known]
        if missing:
            raise ValueError(f"STUDENT_NOT_FOUND: {', '.join(missing)}")

    async def _find_existing(self, record: StudentResolutionRecord):
        found = await self.directory.find_by_ids([record.pending_student_id])
        if found:
            return found[0]
        if clean_text(record.student_code):
            student = await self.directory.find_by_code(record.student_code)
            if student is not None:
                return student
        if clean_text(record.email):
            return await self.directory.find_by_email(record.email)
        return None

    def _check_capacity(
        self,
        profile: ClassProfile,
        snapshot: ClassCapacitySnapshot,
        requested: int,
        strategy: EnrollmentStrategy,
        override_reason: Optional[str],
        enrolled_by: Optional[str],
        warnings: List[str],
    ) -> bool:
        """Raise if the working set does not fit; return whether an override is being used"""
        if snapshot.max_capacity <= 0:
            return False
        if snapshot.current_enrolled + requested <= snapshot.max_capacity:
            return False

        if strategy != EnrollmentStrategy.OVERRIDE:
            raise CapacityExceededError(
                current_enrolled=snapshot.current_enrolled,
                requested=requested,
                max_capacity=snapshot.max_capacity,
            )

        final_count = snapshot.current_enrolled + requested
        overage = CapacityAdvisor.overage_ratio(
            snapshot.max_capacity, snapshot.current_enrolled, requested
        )
        logger.warning(
            f"CAPACITY_OVERRIDE class={profile.code} current={snapshot.current_enrolled} "
            f"adding={requested} max={snapshot.max_capacity} by={enrolled_by or '-'} "
            f"reason={override_reason or '-'}"
        )
        warnings.append(
            f"Capacity override: class {profile.code} will have {final_count}/"
            f"{snapshot.max_capacity} students ({overage:.0%} over capacity)"
        )
        if not self.advisor.within_override_limit(
            snapshot.max_capacity, snapshot.current_enrolled, requested
        ):
            warnings.append(
                f"Override exceeds the recommended {self.advisor.override_max_ratio:.0%} "
                f"overage limit"
            )
        return True

    async def _create_student(
        self,
        profile: ClassProfile,
        candidate: _Candidate,
        today: date,
        warnings: List[str],
    ) -> None:
        record = candidate.record
        student_code = generate_student_code(candidate.student_id, today)
        await self.directory.create_student(
            student_id=candidate.student_id,
            student_code=student_code,
            full_name=clean_text(record.full_name),
            email=record.email,
            phone=record.phone,
            gender=parse_gender(record.gender),
            dob=record.dob,
            branch_id=profile.branch_id,
        )
        logger.info(f"Created student {student_code} for row {candidate.label}")

        placements = {}
        for column, skill in SKILL_COLUMNS.items():
            placement = parse_skill_placement(getattr(record, column))
            if placement is not None:
                placements[skill] = placement
        level_code = clean_text(record.level_code)
        if level_code and Skill.GENERAL not in placements:
            placements[Skill.GENERAL] = (level_code.upper(), None)

        for skill, (code, score) in placements.items():
            level = await self.class_reader.find_level(profile.subject_id, code)
            if level is None:
                warnings.append(
                    f"Row {candidate.label}: level '{code}' is not defined for "
                    f"{profile.subject_code}; {skill.value} assessment not recorded"
                )
                continue
            await self.directory.add_skill_assessment(
                student_id=candidate.student_id,
                skill=skill,
                level_id=level.id,
                score=score,
                assessment_date=today,
                assessment_type=PLACEMENT_ASSESSMENT_TYPE,
            )


def generate_student_code(student_id: uuid.UUID, today: date) -> str:
    """ST + 2-digit year + 8 hex chars of the student id, e.g. ST26A1B2C3D4"""
    return f"{settings.STUDENT_CODE_PREFIX}{today:%y}{student_id.hex[:8].upper()}"
