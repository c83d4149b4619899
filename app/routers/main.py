from fastapi import APIRouter

from app.routers.academic import academic_router
from app.routers.shared import shared_router

main_router = APIRouter()

# Include domain-based routers
main_router.include_router(academic_router, prefix="/academic", tags=["Academic"])
main_router.include_router(shared_router, prefix="/shared", tags=["Shared Services"])
