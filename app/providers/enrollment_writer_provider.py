from datetime import datetime
from typing import Optional, Sequence, Set
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import (
    AttendanceStatus,
    ClassSession,
    Enrollment,
    EnrollmentStatus,
    StudentSession,
)


class EnrollmentWriterProvider:
    """Writes enrollments and their student-session rows; the caller commits"""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def active_student_ids(
        self, class_id: uuid.UUID, student_ids: Sequence[uuid.UUID]
    ) -> Set[uuid.UUID]:
        if not student_ids:
            return set()
        result = await self.db.execute(
            select(Enrollment.student_id).where(
                Enrollment.class_id == class_id,
                Enrollment.student_id.in_(list(student_ids)),
                Enrollment.status == EnrollmentStatus.ACTIVE,
            )
        )
        return set(result.scalars().all())

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
    ) -> None:
        self.db.add(
            Enrollment(
                class_id=class_id,
                student_id=student_id,
                status=EnrollmentStatus.ACTIVE,
                enrolled_at=enrolled_at,
                enrolled_by=enrolled_by,
                join_session_id=join_session_id,
                capacity_override=capacity_override,
                override_reason=override_reason,
            )
        )

    async def add_student_sessions(
        self, student_id: uuid.UUID, sessions: Sequence[ClassSession]
    ) -> int:
        """One PLANNED, non-makeup row per session; sessions the student already has are left alone"""
        if not sessions:
            return 0

        session_ids = [session.id for session in sessions]
        result = await self.db.execute(
            select(StudentSession.session_id).where(
                StudentSession.student_id == student_id,
                StudentSession.session_id.in_(session_ids),
            )
        )
        existing = set(result.scalars().all())

        new_rows = [
            StudentSession(
                student_id=student_id,
                session_id=session_id,
                attendance_status=AttendanceStatus.PLANNED,
                is_makeup=False,
            )
            for session_id in session_ids
            if session_id not in existing
        ]
        self.db.add_all(new_rows)
        return len(new_rows)
