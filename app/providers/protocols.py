"""
Collaborator interfaces consumed by the enrollment engine.

The engine only depends on these read/write contracts; the SQLAlchemy
implementations live next to this module and are wired together in
app/services/enrollment/enrollment_service.py.
"""

from datetime import date, datetime, time
from typing import Dict, List, Optional, Protocol, Sequence, Set
import uuid

from app.db.models import ClassSession, Gender, Level, Skill, Student
from app.schemas.enrollment_schemas import ClassProfile, SkillAssessmentSnapshot


class StudentDirectory(Protocol):
    """Student identities: lookups for resolution, creation for execution."""

    async def find_by_code(self, student_code: str) -> Optional[Student]: ...

    async def find_by_email(self, email: str) -> Optional[Student]: ...

    async def find_by_ids(self, student_ids: Sequence[uuid.UUID]) -> List[Student]: ...

    async def list_by_branch(self, branch_id: Optional[uuid.UUID]) -> List[Student]: ...

    async def create_student(
        self,
        *,
        student_id: uuid.UUID,
        student_code: str,
        full_name: str,
        email: Optional[str],
        phone: Optional[str],
        gender: Optional[Gender],
        dob: Optional[date],
        branch_id: Optional[uuid.UUID],
    ) -> Student: ...

    async def add_skill_assessment(
        self,
        *,
        student_id: uuid.UUID,
        skill: Skill,
        level_id: uuid.UUID,
        score: Optional[int],
        assessment_date: date,
        assessment_type: Optional[str] = None,
    ) -> None: ...


class SkillProfileStore(Protocol):
    """Read-only assessment history."""

    async def latest_by_subject(
        self, student_ids: Sequence[uuid.UUID], subject_id: uuid.UUID
    ) -> Dict[uuid.UUID, SkillAssessmentSnapshot]: ...

    async def latest_by_skill(
        self, student_ids: Sequence[uuid.UUID], skill: Skill
    ) -> Dict[uuid.UUID, SkillAssessmentSnapshot]: ...


class ClassReader(Protocol):
    """Class capacity and course target."""

    async def get_class_profile(self, class_id: uuid.UUID) -> Optional[ClassProfile]: ...

    async def lock_class_profile(
        self, class_id: uuid.UUID
    ) -> Optional[ClassProfile]: ...

    async def count_active_enrollments(self, class_id: uuid.UUID) -> int: ...

    async def find_level(self, subject_id: uuid.UUID, level_code: str) -> Optional[Level]: ...


class SessionReader(Protocol):
    async def remaining_sessions(
        self, class_id: uuid.UUID, today: date, now: Optional[time] = None
    ) -> List[ClassSession]: ...


class EnrollmentWriter(Protocol):
    """Durable enrollment and student-session rows."""

    async def active_student_ids(
        self, class_id: uuid.UUID, student_ids: Sequence[uuid.UUID]
    ) -> Set[uuid.UUID]: ...

    async def add_enrollment(
        self,
        *,
        class_id: uuid.UUID,
        student_id: uuid.UUID,
        enrolled_at: datetime,
        enrolled_by: Optional[str],
        join_session_id: Optional[uuid.UUID],
        capacity_override: bool,
        override_reason: Optional[str],
    ) -> None: ...

    async def add_student_sessions(
        self, student_id: uuid.UUID, sessions: Sequence[ClassSession]
    ) -> int: ...
