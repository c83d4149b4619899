"""
Main seeding file that orchestrates all database seeding operations.

Runs seeding functions in the correct dependency order to ensure
referential integrity is maintained.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from app.utils.logging import get_logger

from .subjects_levels_seed import seed_subjects_levels
from .classes_seed import seed_classes

logger = get_logger()


async def seed_all_data(db_session: AsyncSession):
    """
    Seed all database tables in the correct dependency order.

    1. Subjects and levels (independent)
    2. Branch, course, class and sessions (depend on levels)
    """
    try:
        logger.info("Starting database seeding...")

        logger.info("Phase 1: Seeding independent tables...")
        await seed_subjects_levels(db_session)

        logger.info("Phase 2: Seeding dependent tables...")
        await seed_classes(db_session)

        logger.info("Database seeding completed successfully!")
        return True

    except Exception as e:
        logger.error(f"Database seeding failed: {str(e)}")
        await db_session.rollback()
        raise e
