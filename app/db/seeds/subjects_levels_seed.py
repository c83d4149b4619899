from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import Subject, Level
from app.utils.logging import get_logger

logger = get_logger()

# subject code -> (subject name, ordered level codes)
SUBJECT_LEVELS = {
    "IELTS": ("IELTS Preparation", ["A1", "A2", "B1", "B2", "C1", "C2"]),
    "JLPT": ("Japanese Language Proficiency", ["N5", "N4", "N3", "N2", "N1"]),
    "TOEIC": ("TOEIC Preparation", ["T300", "T500", "T700", "T900"]),
}


async def seed_subjects_levels(db_session: AsyncSession):
    """Seed subjects and their levels - clear existing and add new"""

    await db_session.execute(delete(Level))
    await db_session.execute(delete(Subject))

    level_count = 0
    for subject_code, (subject_name, level_codes) in SUBJECT_LEVELS.items():
        subject = Subject(code=subject_code, name=subject_name)
        subject.levels = [
            Level(code=code, name=f"{subject_code} {code}", sort_order=index)
            for index, code in enumerate(level_codes, start=1)
        ]
        db_session.add(subject)
        level_count += len(level_codes)

    await db_session.commit()
    logger.info(f"Seeded {len(SUBJECT_LEVELS)} subjects with {level_count} levels")
