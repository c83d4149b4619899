from typing import Annotated
import uuid

from fastapi import APIRouter, Depends, Path, Query, Request, status

from app.services.enrollment.enrollment_service import (
    EnrollmentService,
    get_enrollment_service,
)
from app.schemas.enrollment_schemas import RankStudentsRequest
from app.utils.responses import ResponseBuilder
from app.utils.errors import BusinessLogicError, DatabaseError
from app.utils.error_handlers import handle_service_error

classes_router = APIRouter()

ClassIdPath = Annotated[uuid.UUID, Path(description="Class ID")]


@classes_router.get(
    "/{class_id}/recommendation",
    status_code=status.HTTP_200_OK,
    summary="Capacity recommendation",
    description="Whether requestedCount more students fit the class: OK, PARTIAL_SUGGESTED, OVERRIDE_AVAILABLE or BLOCKED.",
)
async def get_recommendation(
    request: Request,
    class_id: ClassIdPath,
    requested_count: Annotated[int, Query(alias="requestedCount", ge=0)],
    enrollment_service: EnrollmentService = Depends(get_enrollment_service),
):
    try:
        recommendation = await enrollment_service.get_recommendation(
            class_id, requested_count
        )
        return ResponseBuilder.success(
            request=request,
            data=recommendation.model_dump(by_alias=True),
            message=recommendation.message,
        )

    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)


@classes_router.post(
    "/{class_id}/ranked-students",
    status_code=status.HTTP_200_OK,
    summary="Rank candidate students",
    description="Match tier of each candidate against the class subject and level, keyed by student id in ranked order.",
)
async def rank_students(
    request: Request,
    class_id: ClassIdPath,
    rank_request: RankStudentsRequest,
    enrollment_service: EnrollmentService = Depends(get_enrollment_service),
):
    try:
        ranked = await enrollment_service.rank_available_students(
            class_id, rank_request.student_ids
        )
        return ResponseBuilder.success(
            request=request,
            data={
                str(student_id): info.model_dump(by_alias=True)
                for student_id, info in ranked.items()
            },
            message=f"Ranked {len(ranked)} student(s)",
        )

    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)


@classes_router.get(
    "/{class_id}/available-students",
    status_code=status.HTTP_200_OK,
    summary="Students available for the class",
    description="Students of the class branch who are not actively enrolled, best fit first.",
)
async def list_available_students(
    request: Request,
    class_id: ClassIdPath,
    enrollment_service: EnrollmentService = Depends(get_enrollment_service),
):
    try:
        available = await enrollment_service.list_available_students(class_id)
        return ResponseBuilder.success(
            request=request,
            data=[info.model_dump(by_alias=True) for info in available],
            message=f"{len(available)} available student(s)",
        )

    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except (BusinessLogicError, DatabaseError):
        raise
    except Exception:
        raise BusinessLogicError(
            message="Failed to retrieve available students",
            error_code="AVAILABLE_STUDENTS_RETRIEVAL_FAILED",
        )
