from fastapi import Request, status

from app.utils.errors import error_code_of
from app.utils.responses import ResponseBuilder

# Codes whose "CODE: detail" suffix is already a user-facing sentence
DETAILED_ERROR_CODES = {
    "CLASS_NOT_FOUND",
    "CLASS_NOT_APPROVED",
    "CLASS_INVALID_STATUS",
    "PARTIAL_STRATEGY_MISSING_IDS",
    "INVALID_ROSTER_FILE",
    "ROSTER_TOO_LARGE",
}


def handle_service_error(request: Request, error: Exception):
    """Centralized service error handler for the academic routers"""
    error_message = str(error)
    error_code = error_code_of(error) or "UNKNOWN_ERROR"

    # Unknown students: name the ids that were not found
    if error_code == "STUDENT_NOT_FOUND" and ":" in error_message:
        missing_ids = error_message.split(": ", 1)[1]
        return ResponseBuilder.error(
            request=request,
            message=f"Student(s) not found: {missing_ids}",
            error_code=error_code,
            status_code=status.HTTP_404_NOT_FOUND,
        )

    # Error code to status code mapping
    error_status_mapping = {
        # Class errors
        "CLASS_NOT_FOUND": status.HTTP_404_NOT_FOUND,
        "CLASS_NOT_APPROVED": status.HTTP_400_BAD_REQUEST,
        "CLASS_INVALID_STATUS": status.HTTP_400_BAD_REQUEST,
        # Enrollment errors
        "PARTIAL_STRATEGY_MISSING_IDS": status.HTTP_400_BAD_REQUEST,
        "STUDENT_NOT_FOUND": status.HTTP_404_NOT_FOUND,
        # Roster import errors
        "INVALID_ROSTER_FILE": status.HTTP_400_BAD_REQUEST,
        "ROSTER_TOO_LARGE": status.HTTP_413_CONTENT_TOO_LARGE,
        # Retrieval errors
        "ENROLLMENT_PREVIEW_FAILED": status.HTTP_500_INTERNAL_SERVER_ERROR,
        "AVAILABLE_STUDENTS_RETRIEVAL_FAILED": status.HTTP_500_INTERNAL_SERVER_ERROR,
    }

    status_code = error_status_mapping.get(
        error_code, status.HTTP_500_INTERNAL_SERVER_ERROR
    )

    # Error code to user-friendly message mapping
    error_messages = {
        # Class errors
        "CLASS_NOT_FOUND": "Class not found",
        "CLASS_NOT_APPROVED": "Class is not approved for enrollment",
        "CLASS_INVALID_STATUS": "Class does not accept enrollments in its current status",
        # Enrollment errors
        "PARTIAL_STRATEGY_MISSING_IDS": "Select at least one student for a partial enrollment",
        "STUDENT_NOT_FOUND": "Student not found",
        "ENROLLMENT_EXECUTION_FAILED": "Failed to enroll students",
        # Roster import errors
        "INVALID_ROSTER_FILE": "The uploaded roster could not be read",
        "ROSTER_TOO_LARGE": "Too many students in one import",
        # Retrieval errors
        "ENROLLMENT_PREVIEW_FAILED": "Failed to preview the import",
        "AVAILABLE_STUDENTS_RETRIEVAL_FAILED": "Failed to retrieve available students",
    }

    if error_code in DETAILED_ERROR_CODES and ":" in error_message:
        message = error_message.split(": ", 1)[1]
    else:
        message = error_messages.get(error_code, "An unexpected error occurred")

    return ResponseBuilder.error(
        request=request,
        message=message,
        error_code=error_code,
        status_code=status_code,
    )
