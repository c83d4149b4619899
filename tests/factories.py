"""Builders for catalog, class, student and roster test data."""

import uuid
from datetime import date, datetime, timedelta
from types import SimpleNamespace
from typing import Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import (
    ApprovalStatus,
    Branch,
    ClassSession,
    ClassStatus,
    Course,
    Level,
    SessionStatus,
    Skill,
    SkillAssessment,
    Student,
    Subject,
    TrainingClass,
)
from app.schemas.enrollment_schemas import ImportedStudentRow


async def seed_catalog(session: AsyncSession) -> SimpleNamespace:
    """IELTS A2/B1/B2 and JLPT N3, one branch and an IELTS B1 course."""
    ielts = Subject(code="IELTS", name="IELTS Preparation")
    a2 = Level(code="A2", name="IELTS A2", sort_order=1, subject=ielts)
    b1 = Level(code="B1", name="IELTS B1", sort_order=2, subject=ielts)
    b2 = Level(code="B2", name="IELTS B2", sort_order=3, subject=ielts)
    jlpt = Subject(code="JLPT", name="Japanese Language Proficiency")
    n3 = Level(code="N3", name="JLPT N3", sort_order=1, subject=jlpt)
    branch = Branch(code="HN01", name="Hanoi Central")
    course = Course(code="IELTS-B1", name="IELTS B1 Foundation", level=b1)

    session.add_all([ielts, jlpt, a2, b1, b2, n3, branch, course])
    await session.commit()
    return SimpleNamespace(
        ielts=ielts, a2=a2, b1=b1, b2=b2, jlpt=jlpt, n3=n3, branch=branch, course=course
    )


async def create_class(
    session: AsyncSession,
    catalog: SimpleNamespace,
    *,
    max_capacity: int = 20,
    status: ClassStatus = ClassStatus.SCHEDULED,
    approval_status: ApprovalStatus = ApprovalStatus.APPROVED,
    start_offset_days: int = 2,
    planned_offsets: Iterable[int] = (3, 10, 17),
    past_offsets: Iterable[int] = (),
    cancelled_offsets: Iterable[int] = (),
) -> TrainingClass:
    """
    A class of the catalog course with sessions at today + offset days.

    Offsets stay at least two days away from today so the center's timezone
    never moves a session across the "remaining" boundary.
    """
    today = date.today()
    training_class = TrainingClass(
        code=f"CLS-{uuid.uuid4().hex[:8]}",
        name="IELTS B1 Evening",
        course_id=catalog.course.id,
        branch_id=catalog.branch.id,
        max_capacity=max_capacity,
        status=status,
        approval_status=approval_status,
        start_date=today + timedelta(days=start_offset_days),
    )
    training_class.sessions = (
        [
            ClassSession(date=today + timedelta(days=d), status=SessionStatus.PLANNED)
            for d in planned_offsets
        ]
        + [
            ClassSession(date=today - timedelta(days=d), status=SessionStatus.DONE)
            for d in past_offsets
        ]
        + [
            ClassSession(date=today + timedelta(days=d), status=SessionStatus.CANCELLED)
            for d in cancelled_offsets
        ]
    )
    session.add(training_class)
    await session.commit()
    return training_class


async def create_student(
    session: AsyncSession,
    catalog: Optional[SimpleNamespace] = None,
    *,
    full_name: str = "Tran Thi Binh",
    email: Optional[str] = None,
    student_code: Optional[str] = None,
    phone: Optional[str] = None,
) -> Student:
    student = Student(
        student_code=student_code or f"ST{uuid.uuid4().hex[:8].upper()}",
        full_name=full_name,
        email=email,
        phone=phone,
        branch_id=catalog.branch.id if catalog else None,
    )
    session.add(student)
    await session.commit()
    return student


async def add_assessment(
    session: AsyncSession,
    student: Student,
    level: Level,
    *,
    skill: Skill = Skill.GENERAL,
    days_ago: int = 30,
    score: Optional[int] = None,
    created_at: Optional[datetime] = None,
) -> SkillAssessment:
    assessment = SkillAssessment(
        student_id=student.id,
        skill=skill,
        level_id=level.id,
        score=score,
        assessment_date=date.today() - timedelta(days=days_ago),
    )
    if created_at is not None:
        assessment.created_at = created_at
    session.add(assessment)
    await session.commit()
    return assessment


def make_row(index: int, **overrides) -> ImportedStudentRow:
    data = {
        "full_name": f"Student {index:02d}",
        "email": f"student{index:02d}@lingua.edu.vn",
        "phone": f"09000000{index:02d}",
    }
    data.update(overrides)
    return ImportedStudentRow(**data)

