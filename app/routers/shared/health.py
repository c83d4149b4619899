from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config.settings import settings
from app.db.session import get_async_session
from app.utils.errors import DatabaseError
from app.utils.responses import ResponseBuilder

health_router = APIRouter()


@health_router.get("/")
async def health_check(request: Request, db: AsyncSession = Depends(get_async_session)):
    """
    Basic health check endpoint

    Returns application status and whether the database answers
    """
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        raise DatabaseError(f"Database is unreachable: {e}", error_code="DB_UNAVAILABLE") from e

    return ResponseBuilder.success(
        request=request,
        data={"status": "healthy", "service": settings.NAME, "version": settings.VERSION},
        message="Service is running",
    )
