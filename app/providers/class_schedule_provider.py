from datetime import date, time
from typing import List, Optional
import uuid

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import (
    ClassSession,
    Course,
    Enrollment,
    EnrollmentStatus,
    Level,
    SessionStatus,
    Subject,
    TrainingClass,
)
from app.schemas.enrollment_schemas import ClassProfile


class ClassScheduleProvider:
    """Class capacity, course target and session calendar"""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    def _profile_query(self, class_id: uuid.UUID):
        return (
            select(TrainingClass, Level, Subject)
            .join(Course, TrainingClass.course_id == Course.id)
            .join(Level, Course.level_id == Level.id)
            .join(Subject, Level.subject_id == Subject.id)
            .where(TrainingClass.id == class_id)
        )

    @staticmethod
    def _to_profile(
        training_class: TrainingClass, level: Level, subject: Subject
    ) -> ClassProfile:
        return ClassProfile(
            id=training_class.id,
            code=training_class.code,
            name=training_class.name,
            branch_id=training_class.branch_id,
            max_capacity=training_class.max_capacity,
            status=training_class.status.value,
            approval_status=training_class.approval_status.value,
            start_date=training_class.start_date,
            subject_id=subject.id,
            subject_code=subject.code,
            level_id=level.id,
            level_code=level.code,
        )

    async def get_class_profile(self, class_id: uuid.UUID) -> Optional[ClassProfile]:
        result = await self.db.execute(self._profile_query(class_id))
        row = result.first()
        return self._to_profile(*row) if row else None

    async def lock_class_profile(self, class_id: uuid.UUID) -> Optional[ClassProfile]:
        """Same as get_class_profile but takes a row lock on the class (no-op on SQLite)"""
        result = await self.db.execute(
            self._profile_query(class_id).with_for_update(of=TrainingClass)
        )
        row = result.first()
        return self._to_profile(*row) if row else None

    async def count_active_enrollments(self, class_id: uuid.UUID) -> int:
        result = await self.db.execute(
            select(func.count(Enrollment.id)).where(
                Enrollment.class_id == class_id,
                Enrollment.status == EnrollmentStatus.ACTIVE,
            )
        )
        return result.scalar_one()

    async def find_level(self, subject_id: uuid.UUID, level_code: str) -> Optional[Level]:
        result = await self.db.execute(
            select(Level).where(
                Level.subject_id == subject_id,
                func.upper(Level.code) == level_code.strip().upper(),
            )
        )
        return result.scalar_one_or_none()

    async def remaining_sessions(
        self, class_id: uuid.UUID, today: date, now: Optional[time] = None
    ) -> List[ClassSession]:
        """
        Planned sessions that have not started yet, in calendar order.

        With ``now``, sessions dated today that started before it are left out;
        sessions without a start time count as remaining for the whole day.
        """
        query = select(ClassSession).where(
            ClassSession.class_id == class_id,
            ClassSession.date >= today,
            ClassSession.status == SessionStatus.PLANNED,
        )
        if now is not None:
            query = query.where(
                or_(
                    ClassSession.date > today,
                    ClassSession.start_time.is_(None),
                    ClassSession.start_time >= now,
                )
            )

        result = await self.db.execute(
            query.order_by(ClassSession.date, ClassSession.start_time)
        )
        return list(result.scalars().all())
