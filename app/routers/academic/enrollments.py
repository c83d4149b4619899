from typing import Annotated, Optional
import uuid

from fastapi import APIRouter, Depends, File, HTTPException, Path, Query, Request, UploadFile, status

from app.services.enrollment.enrollment_service import (
    EnrollmentService,
    get_enrollment_service,
)
from app.schemas.enrollment_schemas import (
    EnrollExistingStudentsRequest,
    ExecuteEnrollmentRequest,
    PreviewImportRequest,
)
from app.utils.responses import ResponseBuilder
from app.utils.errors import (
    BusinessLogicError,
    DatabaseError,
    LockContentionError,
)
from app.utils.error_handlers import handle_service_error

enrollments_router = APIRouter()

ClassIdPath = Annotated[uuid.UUID, Path(description="Class ID")]


def _preview_message(preview) -> str:
    return (
        f"{preview.total_rows} rows: {preview.found_count} found, "
        f"{preview.create_count} to create, {preview.duplicate_count} duplicate, "
        f"{preview.error_count} with errors"
    )


# API Endpoints
@enrollments_router.get(
    "/template",
    status_code=status.HTTP_200_OK,
    summary="Download the roster import template",
    description="Excel template with the supported columns and a sample row. Pass classId to include the class details sheet.",
)
async def download_roster_template(
    request: Request,
    class_id: Annotated[Optional[uuid.UUID], Query(alias="classId")] = None,
    enrollment_service: EnrollmentService = Depends(get_enrollment_service),
):
    """Download the roster import template"""
    try:
        content = await enrollment_service.build_roster_template(class_id)
        return ResponseBuilder.spreadsheet(content, "student_roster_template.xlsx")

    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)


@enrollments_router.post(
    "/classes/{class_id}/import/preview",
    status_code=status.HTTP_200_OK,
    summary="Preview a roster import",
    description="Classify each row as FOUND, CREATE, DUPLICATE or ERROR and recommend how to proceed. Nothing is written.",
)
async def preview_import(
    request: Request,
    class_id: ClassIdPath,
    preview_request: PreviewImportRequest,
    enrollment_service: EnrollmentService = Depends(get_enrollment_service),
):
    """Preview a roster given as JSON rows"""
    try:
        preview = await enrollment_service.build_import_preview(
            class_id, preview_request.rows
        )
        return ResponseBuilder.with_warnings(
            request=request,
            data=preview.model_dump(by_alias=True),
            message=_preview_message(preview),
            warnings=preview.warnings,
        )

    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except (BusinessLogicError, DatabaseError):
        raise
    except Exception:
        raise BusinessLogicError(
            message="Failed to preview the import",
            error_code="ENROLLMENT_PREVIEW_FAILED",
        )


@enrollments_router.post(
    "/classes/{class_id}/import/preview-file",
    status_code=status.HTTP_200_OK,
    summary="Preview a roster workbook",
    description="Same as the JSON preview, for an uploaded .xlsx roster built from the template.",
)
async def preview_import_file(
    request: Request,
    class_id: ClassIdPath,
    enrollment_service: EnrollmentService = Depends(get_enrollment_service),
    file: UploadFile = File(...),
):
    """Preview an uploaded .xlsx roster"""
    try:
        if not file.filename or not file.filename.lower().endswith(".xlsx"):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Roster must be an Excel file (.xlsx)",
            )

        content = await file.read()
        preview = await enrollment_service.build_import_preview_from_workbook(
            class_id, content
        )
        return ResponseBuilder.with_warnings(
            request=request,
            data=preview.model_dump(by_alias=True),
            message=_preview_message(preview),
            warnings=preview.warnings,
        )

    except HTTPException:
        raise
    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except (BusinessLogicError, DatabaseError):
        raise
    except Exception:
        raise BusinessLogicError(
            message="Failed to preview the import",
            error_code="ENROLLMENT_PREVIEW_FAILED",
        )


@enrollments_router.post(
    "/classes/{class_id}/import/execute",
    status_code=status.HTTP_201_CREATED,
    summary="Execute a previewed roster import",
    description="Enroll the previewed records with strategy ALL, PARTIAL (selectedStudentIds) or OVERRIDE (bypasses the capacity ceiling).",
)
async def execute_import(
    request: Request,
    class_id: ClassIdPath,
    execute_request: ExecuteEnrollmentRequest,
    enrollment_service: EnrollmentService = Depends(get_enrollment_service),
):
    """Execute an import under the class enrollment lock"""
    try:
        result = await enrollment_service.execute_enrollment(
            class_id,
            execute_request.records,
            execute_request.strategy,
            selected_student_ids=execute_request.selected_student_ids,
            override_reason=execute_request.override_reason,
        )
        return ResponseBuilder.with_warnings(
            request=request,
            data=result.model_dump(by_alias=True),
            message=f"Enrolled {result.enrolled_count} student(s), created {result.students_created}",
            warnings=result.warnings,
            status_code=status.HTTP_201_CREATED,
        )

    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except (BusinessLogicError, LockContentionError, DatabaseError):
        raise
    except Exception:
        raise BusinessLogicError(
            message="Failed to enroll students",
            error_code="ENROLLMENT_EXECUTION_FAILED",
        )


@enrollments_router.post(
    "/classes/{class_id}/students",
    status_code=status.HTTP_201_CREATED,
    summary="Enroll existing students",
    description="Enroll students that already exist, picked by id, with the same capacity rules as an import.",
)
async def enroll_existing_students(
    request: Request,
    class_id: ClassIdPath,
    enroll_request: EnrollExistingStudentsRequest,
    enrollment_service: EnrollmentService = Depends(get_enrollment_service),
):
    """Enroll existing students by id"""
    try:
        result = await enrollment_service.enroll_existing_students(
            class_id,
            enroll_request.student_ids,
            strategy=enroll_request.strategy,
            override_reason=enroll_request.override_reason,
        )
        return ResponseBuilder.with_warnings(
            request=request,
            data=result.model_dump(by_alias=True),
            message=f"Enrolled {result.enrolled_count} student(s)",
            warnings=result.warnings,
            status_code=status.HTTP_201_CREATED,
        )

    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except (BusinessLogicError, LockContentionError, DatabaseError):
        raise
    except Exception:
        raise BusinessLogicError(
            message="Failed to enroll students",
            error_code="ENROLLMENT_EXECUTION_FAILED",
        )
