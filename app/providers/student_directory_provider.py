from datetime import date
from typing import List, Optional, Sequence
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import Gender, Skill, SkillAssessment, Student
from app.utils.string_utils import clean_text, normalize_email


class StudentDirectoryProvider:
    """Student lookups and creation on the request's session"""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def find_by_code(self, student_code: str) -> Optional[Student]:
        code = clean_text(student_code)
        if not code:
            return None
        result = await self.db.execute(
            select(Student).where(Student.student_code == code)
        )
        return result.scalar_one_or_none()

    async def find_by_email(self, email: str) -> Optional[Student]:
        normalized = normalize_email(email)
        if not normalized:
            return None
        result = await self.db.execute(
            select(Student).where(Student.email == normalized)
        )
        return result.scalar_one_or_none()

    async def find_by_ids(self, student_ids: Sequence[uuid.UUID]) -> List[Student]:
        if not student_ids:
            return []
        result = await self.db.execute(
            select(Student).where(Student.id.in_(list(student_ids)))
        )
        return list(result.scalars().all())

    async def list_by_branch(self, branch_id: Optional[uuid.UUID]) -> List[Student]:
        """All students of a branch (every student when the class has no branch)"""
        query = select(Student).order_by(Student.full_name)
        if branch_id is not None:
            query = query.where(Student.branch_id == branch_id)
        result = await self.db.execute(query)
        return list(result.scalars().all())

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
    ) -> Student:
        student = Student(
            id=student_id,
            student_code=student_code,
            full_name=full_name,
            email=normalize_email(email),
            phone=clean_text(phone),
            gender=gender,
            dob=dob,
            branch_id=branch_id,
        )
        self.db.add(student)
        await self.db.flush()
        return student

    async def add_skill_assessment(
        self,
        *,
        student_id: uuid.UUID,
        skill: Skill,
        level_id: uuid.UUID,
        score: Optional[int],
        assessment_date: date,
        assessment_type: Optional[str] = None,
    ) -> None:
        self.db.add(
            SkillAssessment(
                student_id=student_id,
                skill=skill,
                level_id=level_id,
                score=score,
                assessment_date=assessment_date,
                assessment_type=assessment_type,
            )
        )
