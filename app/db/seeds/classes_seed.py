from datetime import date, time, timedelta

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import (
    Branch,
    Course,
    Level,
    Subject,
    TrainingClass,
    ClassSession,
    ClassStatus,
    ApprovalStatus,
    SessionStatus,
)
from app.utils.logging import get_logger

logger = get_logger()


async def seed_classes(db_session: AsyncSession):
    """Seed one branch, one course and an approved class with a weekly schedule"""

    await db_session.execute(delete(ClassSession))
    await db_session.execute(delete(TrainingClass))
    await db_session.execute(delete(Course))
    await db_session.execute(delete(Branch))

    level = (
        await db_session.execute(
            select(Level)
            .join(Subject, Level.subject_id == Subject.id)
            .where(Subject.code == "IELTS", Level.code == "B1")
        )
    ).scalar_one()

    branch = Branch(code="HN01", name="Hanoi Central")
    course = Course(code="IELTS-B1-FOUNDATION", name="IELTS B1 Foundation", level=level)

    start = date.today() + timedelta(days=7)
    training_class = TrainingClass(
        code="IELTS-B1-HN01-01",
        name="IELTS B1 Foundation - Evening",
        course=course,
        branch=branch,
        max_capacity=20,
        status=ClassStatus.SCHEDULED,
        approval_status=ApprovalStatus.APPROVED,
        start_date=start,
    )
    training_class.sessions = [
        ClassSession(
            date=start + timedelta(weeks=week),
            start_time=time(18, 30),
            status=SessionStatus.PLANNED,
        )
        for week in range(12)
    ]

    db_session.add_all([branch, course, training_class])
    await db_session.commit()
    logger.info(
        f"Seeded class {training_class.code} with {len(training_class.sessions)} sessions"
    )
