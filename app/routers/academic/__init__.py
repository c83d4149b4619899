from fastapi import APIRouter

from .enrollments import enrollments_router
from .classes import classes_router

academic_router = APIRouter()

# Include sub-routers
academic_router.include_router(
    enrollments_router, prefix="/enrollments", tags=["Academic - Enrollments"]
)
academic_router.include_router(
    classes_router, prefix="/classes", tags=["Academic - Class Capacity & Matching"]
)
