from typing import Dict, List, Optional
from datetime import date, datetime
from enum import Enum, IntEnum
import uuid

from pydantic import ConfigDict, Field, computed_field, model_validator

from app.schemas.camel_base_model import CamelCaseBaseModel as BaseModel


class ResolutionStatus(str, Enum):
    """Outcome of matching one imported row to a student identity"""

    FOUND = "FOUND"
    CREATE = "CREATE"
    DUPLICATE = "DUPLICATE"
    ERROR = "ERROR"


class MatchPriority(IntEnum):
    """Lower is a better fit"""

    PERFECT = 1
    SUBJECT_ONLY = 2
    NO_MATCH = 3


class RecommendationType(str, Enum):
    OK = "OK"
    PARTIAL_SUGGESTED = "PARTIAL_SUGGESTED"
    OVERRIDE_AVAILABLE = "OVERRIDE_AVAILABLE"
    BLOCKED = "BLOCKED"


class EnrollmentStrategy(str, Enum):
    """How the executor treats an over-capacity working set"""

    ALL = "ALL"
    PARTIAL = "PARTIAL"
    OVERRIDE = "OVERRIDE"


class ImportedStudentRow(BaseModel):
    """One row of an imported roster"""

    student_code: Optional[str] = Field(
        None, max_length=50, description="Existing student code"
    )
    full_name: Optional[str] = Field(None, max_length=200, description="Full name")
    email: Optional[str] = Field(None, max_length=320, description="Email address")
    phone: Optional[str] = Field(None, max_length=30, description="Phone number")
    gender: Optional[str] = Field(None, description="male / female / other")
    dob: Optional[date] = Field(None, description="Date of birth")
    level_code: Optional[str] = Field(
        None, max_length=20, description="Entry level code, e.g. B1"
    )

    # Placement results per skill, "<LEVEL>-<SCORE>" e.g. "B1-75"
    general: Optional[str] = Field(None, description="General skill placement")
    reading: Optional[str] = Field(None, description="Reading placement")
    writing: Optional[str] = Field(None, description="Writing placement")
    speaking: Optional[str] = Field(None, description="Speaking placement")
    listening: Optional[str] = Field(None, description="Listening placement")

    row_number: Optional[int] = Field(
        None, description="1-based sheet row the data came from"
    )
    parse_errors: List[str] = Field(
        default_factory=list, description="Cell-level problems found while reading"
    )


class StudentResolutionRecord(ImportedStudentRow):
    """An imported row classified as FOUND / CREATE / DUPLICATE / ERROR"""

    resolution_status: ResolutionStatus
    resolved_student_id: Optional[uuid.UUID] = Field(
        None, description="Existing student, set only when FOUND"
    )
    pending_student_id: Optional[uuid.UUID] = Field(
        None, description="Id the student will be created with, set only when CREATE"
    )
    error_message: Optional[str] = Field(
        None, description="Set only when ERROR or DUPLICATE"
    )

    @model_validator(mode="after")
    def check_status_fields(self):
        status = self.resolution_status
        if status == ResolutionStatus.FOUND:
            valid = (
                self.resolved_student_id is not None
                and self.pending_student_id is None
                and self.error_message is None
            )
        elif status == ResolutionStatus.CREATE:
            valid = (
                self.pending_student_id is not None
                and self.resolved_student_id is None
                and self.error_message is None
            )
        elif status in (ResolutionStatus.DUPLICATE, ResolutionStatus.ERROR):
            valid = (
                bool(self.error_message)
                and self.resolved_student_id is None
                and self.pending_student_id is None
            )
        else:
            valid = False

        if not valid:
            raise ValueError(
                f"Inconsistent fields for resolution status {status.value}"
            )
        return self

    @property
    def student_id(self) -> Optional[uuid.UUID]:
        """Existing or to-be-created student id"""
        return self.resolved_student_id or self.pending_student_id

    @property
    def is_enrollable(self) -> bool:
        return self.resolution_status in (
            ResolutionStatus.FOUND,
            ResolutionStatus.CREATE,
        )


class SkillAssessmentSnapshot(BaseModel):
    """Read-only view of one skill assessment"""

    model_config = ConfigDict(frozen=True)

    id: uuid.UUID
    student_id: uuid.UUID
    skill: str
    subject_id: uuid.UUID
    subject_code: str
    level_id: uuid.UUID
    level_code: str
    score: Optional[int] = None
    assessment_date: date
    created_at: Optional[datetime] = None


class ClassProfile(BaseModel):
    """What the engine needs to know about a class and its course target"""

    model_config = ConfigDict(frozen=True)

    id: uuid.UUID
    code: str
    name: str
    branch_id: Optional[uuid.UUID] = None
    max_capacity: int
    status: str
    approval_status: str
    start_date: Optional[date] = None
    subject_id: uuid.UUID
    subject_code: str
    level_id: Optional[uuid.UUID] = None
    level_code: Optional[str] = None


class ClassMatchInfo(BaseModel):
    """How well a student's latest assessment fits a class"""

    student_id: uuid.UUID
    full_name: str
    student_code: Optional[str] = None
    match_priority: MatchPriority
    matching_skill: Optional[str] = None
    matching_level_code: Optional[str] = None
    assessment_date: Optional[date] = None
    score: Optional[int] = None
    match_reason: str


class ClassCapacitySnapshot(BaseModel):
    """Capacity state of a class at one point in time"""

    model_config = ConfigDict(frozen=True)

    class_id: uuid.UUID
    max_capacity: int
    current_enrolled: int

    @computed_field
    @property
    def remaining_slots(self) -> Optional[int]:
        """None when the class has no capacity configured"""
        if self.max_capacity <= 0:
            return None
        return max(self.max_capacity - self.current_enrolled, 0)


class EnrollmentRecommendation(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: RecommendationType
    message: str
    suggested_enroll_count: Optional[int] = None


class EnrollmentExecutionResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    enrolled_count: int
    students_created: int
    sessions_generated_per_student: int
    total_student_sessions_created: int
    warnings: List[str] = Field(default_factory=list)


class ImportPreview(BaseModel):
    """Everything the import screen needs before the user picks a strategy"""

    class_id: uuid.UUID
    class_code: str
    class_name: str
    records: List[StudentResolutionRecord]
    total_rows: int
    found_count: int
    create_count: int
    duplicate_count: int
    error_count: int
    capacity: ClassCapacitySnapshot
    exceeded_by: int
    warnings: List[str] = Field(default_factory=list)
    recommendation: EnrollmentRecommendation


# Requests
class PreviewImportRequest(BaseModel):
    """Request schema for previewing a roster given as JSON rows"""

    rows: List[ImportedStudentRow] = Field(..., description="Imported rows")


class ExecuteEnrollmentRequest(BaseModel):
    """Request schema for executing an import after preview"""

    records: List[StudentResolutionRecord] = Field(
        ..., description="Records returned by the preview"
    )
    strategy: EnrollmentStrategy = Field(..., description="ALL, PARTIAL or OVERRIDE")
    selected_student_ids: Optional[List[uuid.UUID]] = Field(
        None, description="Students to enroll when strategy is PARTIAL"
    )
    override_reason: Optional[str] = Field(
        None, max_length=500, description="Why capacity is being overridden"
    )


class EnrollExistingStudentsRequest(BaseModel):
    """Request schema for enrolling students that already exist"""

    student_ids: List[uuid.UUID] = Field(..., min_length=1)
    strategy: EnrollmentStrategy = Field(EnrollmentStrategy.ALL)
    override_reason: Optional[str] = Field(None, max_length=500)


class RankStudentsRequest(BaseModel):
    """Request schema for ranking candidate students against a class"""

    student_ids: List[uuid.UUID] = Field(default_factory=list)


RankedStudents = Dict[uuid.UUID, ClassMatchInfo]
