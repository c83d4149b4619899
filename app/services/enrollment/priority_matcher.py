from typing import Dict, List, Optional, Sequence, Tuple
import uuid

from app.db.models import Student
from app.providers.protocols import SkillProfileStore
from app.schemas.enrollment_schemas import (
    ClassMatchInfo,
    ClassProfile,
    MatchPriority,
    SkillAssessmentSnapshot,
)
from app.utils.logging import get_logger

logger = get_logger()


def build_match_info(
    student_id: uuid.UUID,
    full_name: str,
    target: ClassProfile,
    assessment: Optional[SkillAssessmentSnapshot],
    student_code: Optional[str] = None,
) -> ClassMatchInfo:
    """Match tier of one student's latest subject assessment against a class"""
    if assessment is None:
        return ClassMatchInfo(
            student_id=student_id,
            full_name=full_name,
            student_code=student_code,
            match_priority=MatchPriority.NO_MATCH,
            match_reason=f"No match: no {target.subject_code} assessment on record",
        )

    evidence = dict(
        matching_skill=assessment.skill,
        matching_level_code=assessment.level_code,
        assessment_date=assessment.assessment_date,
        score=assessment.score,
    )

    if target.level_id is not None and assessment.level_id == target.level_id:
        return ClassMatchInfo(
            student_id=student_id,
            full_name=full_name,
            student_code=student_code,
            match_priority=MatchPriority.PERFECT,
            match_reason=(
                f"Perfect match: latest {target.subject_code} assessment "
                f"({assessment.skill}) is at the class level {assessment.level_code}"
            ),
            **evidence,
        )

    expected = f" (class expects {target.level_code})" if target.level_code else ""
    return ClassMatchInfo(
        student_id=student_id,
        full_name=full_name,
        student_code=student_code,
        match_priority=MatchPriority.SUBJECT_ONLY,
        match_reason=(
            f"Subject match only: latest {target.subject_code} assessment "
            f"({assessment.skill}) is at level {assessment.level_code}{expected}"
        ),
        **evidence,
    )


def ranking_key(info: ClassMatchInfo) -> Tuple[int, int, str, str]:
    """Priority asc, assessment date desc (missing last), name asc"""
    assessed = -info.assessment_date.toordinal() if info.assessment_date else 1
    return (
        int(info.match_priority),
        assessed,
        info.full_name.casefold(),
        str(info.student_id),
    )


class PriorityMatcher:
    """Ranks students by how well their skill evidence fits a class"""

    def __init__(self, skill_store: SkillProfileStore):
        self.skill_store = skill_store

    async def match_students(
        self, target: ClassProfile, students: Sequence[Student]
    ) -> Dict[uuid.UUID, ClassMatchInfo]:
        latest = await self.skill_store.latest_by_subject(
            [student.id for student in students], target.subject_id
        )
        return {
            student.id: build_match_info(
                student.id,
                student.full_name,
                target,
                latest.get(student.id),
                student_code=student.student_code,
            )
            for student in students
        }

    async def rank_students(
        self, target: ClassProfile, students: Sequence[Student]
    ) -> List[ClassMatchInfo]:
        matches = await self.match_students(target, students)
        ranked = sorted(matches.values(), key=ranking_key)
        logger.debug(
            f"Ranked {len(ranked)} students for class {target.code}: "
            f"{sum(1 for m in ranked if m.match_priority == MatchPriority.PERFECT)} perfect"
        )
        return ranked
