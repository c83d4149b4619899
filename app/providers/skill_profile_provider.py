from typing import Dict, Sequence
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import Level, Skill, SkillAssessment, Subject
from app.schemas.enrollment_schemas import SkillAssessmentSnapshot

# Latest first: assessment date, then creation time, then id
_LATEST_FIRST = (
    SkillAssessment.assessment_date.desc(),
    SkillAssessment.created_at.desc(),
    SkillAssessment.id.desc(),
)


class SkillProfileProvider:
    """Read-only access to the skill assessment history"""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    def _base_query(self):
        return (
            select(SkillAssessment, Level, Subject)
            .join(Level, SkillAssessment.level_id == Level.id)
            .join(Subject, Level.subject_id == Subject.id)
        )

    @staticmethod
    def _to_snapshot(
        assessment: SkillAssessment, level: Level, subject: Subject
    ) -> SkillAssessmentSnapshot:
        return SkillAssessmentSnapshot(
            id=assessment.id,
            student_id=assessment.student_id,
            skill=assessment.skill.value,
            subject_id=subject.id,
            subject_code=subject.code,
            level_id=level.id,
            level_code=level.code,
            score=assessment.score,
            assessment_date=assessment.assessment_date,
            created_at=assessment.created_at,
        )

    async def latest_by_subject(
        self, student_ids: Sequence[uuid.UUID], subject_id: uuid.UUID
    ) -> Dict[uuid.UUID, SkillAssessmentSnapshot]:
        """Most recent assessment per student for one subject, any skill"""
        if not student_ids:
            return {}

        result = await self.db.execute(
            self._base_query()
            .where(
                SkillAssessment.student_id.in_(list(student_ids)),
                Level.subject_id == subject_id,
            )
            .order_by(SkillAssessment.student_id, *_LATEST_FIRST)
        )

        latest: Dict[uuid.UUID, SkillAssessmentSnapshot] = {}
        for assessment, level, subject in result.all():
            # Rows arrive latest first within each student
            if assessment.student_id not in latest:
                latest[assessment.student_id] = self._to_snapshot(
                    assessment, level, subject
                )
        return latest


    async def latest_by_skill(
        self, student_ids: Sequence[uuid.UUID], skill: Skill
    ) -> Dict[uuid.UUID, SkillAssessmentSnapshot]:
        """Most recent assessment per student for one skill, any subject.

        A student's current general level is ``latest_by_skill(ids, Skill.GENERAL)``.
        """
        if not student_ids:
            return {}

        result = await self.db.execute(
            self._base_query()
            .where(
                SkillAssessment.student_id.in_(list(student_ids)),
                SkillAssessment.skill == skill,
            )
            .order_by(SkillAssessment.student_id, *_LATEST_FIRST)
        )

        latest: Dict[uuid.UUID, SkillAssessmentSnapshot] = {}
        for assessment, level, subject in result.all():
            if assessment.student_id not in latest:
                latest[assessment.student_id] = self._to_snapshot(
                    assessment, level, subject
                )
        return latest
