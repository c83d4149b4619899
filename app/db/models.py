from typing import List, Optional
from datetime import datetime, date, time
import uuid
from sqlalchemy import (
    String,
    Boolean,
    Integer,
    Text,
    ForeignKey,
    Enum,
    Index,
    func,
    UniqueConstraint,
    CheckConstraint,
    DateTime,
    Date,
    Time,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
import enum


class Base(DeclarativeBase):
    pass


# Enums
class Gender(enum.Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class Skill(enum.Enum):
    GENERAL = "general"
    READING = "reading"
    WRITING = "writing"
    SPEAKING = "speaking"
    LISTENING = "listening"


class ClassStatus(enum.Enum):
    DRAFT = "draft"
    SCHEDULED = "scheduled"
    ONGOING = "ongoing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ApprovalStatus(enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class SessionStatus(enum.Enum):
    PLANNED = "planned"
    DONE = "done"
    CANCELLED = "cancelled"


class EnrollmentStatus(enum.Enum):
    ACTIVE = "active"
    TRANSFERRED = "transferred"
    DROPPED = "dropped"
    COMPLETED = "completed"


class AttendanceStatus(enum.Enum):
    PLANNED = "planned"
    PRESENT = "present"
    ABSENT = "absent"
    EXCUSED = "excused"


# Base model with common audit fields
class AuditMixin:
    """Mixin for common audit fields"""

    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )


def _uuid_pk() -> Mapped[uuid.UUID]:
    return mapped_column(Uuid, primary_key=True, default=uuid.uuid4)


# Models
class Branch(Base, AuditMixin):
    __tablename__ = "branches"

    id: Mapped[uuid.UUID] = _uuid_pk()
    code: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)

    # Relationships
    classes: Mapped[List["TrainingClass"]] = relationship(back_populates="branch")
    students: Mapped[List["Student"]] = relationship(back_populates="branch")


class Subject(Base, AuditMixin):
    __tablename__ = "subjects"

    id: Mapped[uuid.UUID] = _uuid_pk()
    code: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)

    # Relationships
    levels: Mapped[List["Level"]] = relationship(
        back_populates="subject", order_by="Level.sort_order"
    )


class Level(Base, AuditMixin):
    __tablename__ = "levels"

    id: Mapped[uuid.UUID] = _uuid_pk()
    subject_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("subjects.id"), nullable=False
    )
    code: Mapped[str] = mapped_column(String(20), nullable=False)  # e.g. "B1", "N3"
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Relationships
    subject: Mapped["Subject"] = relationship(back_populates="levels")
    courses: Mapped[List["Course"]] = relationship(back_populates="level")

    # Constraints
    __table_args__ = (
        UniqueConstraint("subject_id", "code", name="uq_levels_subject_code"),
        Index("idx_levels_code", "code"),
    )


class Course(Base, AuditMixin):
    __tablename__ = "courses"

    id: Mapped[uuid.UUID] = _uuid_pk()
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    level_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("levels.id"), nullable=False)

    # Relationships
    level: Mapped["Level"] = relationship(back_populates="courses")
    classes: Mapped[List["TrainingClass"]] = relationship(back_populates="course")


class TrainingClass(Base, AuditMixin):
    __tablename__ = "classes"

    id: Mapped[uuid.UUID] = _uuid_pk()
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    course_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("courses.id"), nullable=False
    )
    branch_id: Mapped[Optional[uuid.UUID]] = mapped_column(ForeignKey("branches.id"))
    # 0 means no capacity configured
    max_capacity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    status: Mapped[ClassStatus] = mapped_column(
        Enum(ClassStatus), default=ClassStatus.DRAFT, nullable=False
    )
    approval_status: Mapped[ApprovalStatus] = mapped_column(
        Enum(ApprovalStatus), default=ApprovalStatus.PENDING, nullable=False
    )
    start_date: Mapped[Optional[date]] = mapped_column(Date)

    # Relationships
    course: Mapped["Course"] = relationship(back_populates="classes")
    branch: Mapped[Optional["Branch"]] = relationship(back_populates="classes")
    sessions: Mapped[List["ClassSession"]] = relationship(
        back_populates="training_class", order_by="ClassSession.date"
    )
    enrollments: Mapped[List["Enrollment"]] = relationship(
        back_populates="training_class"
    )

    # Constraints
    __table_args__ = (
        CheckConstraint("max_capacity >= 0", name="ck_classes_capacity_non_negative"),
        Index("idx_classes_status", "status", "approval_status"),
    )


class ClassSession(Base, AuditMixin):
    __tablename__ = "sessions"

    id: Mapped[uuid.UUID] = _uuid_pk()
    class_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("classes.id"), nullable=False)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    start_time: Mapped[Optional[time]] = mapped_column(Time)
    status: Mapped[SessionStatus] = mapped_column(
        Enum(SessionStatus), default=SessionStatus.PLANNED, nullable=False
    )

    # Relationships
    training_class: Mapped["TrainingClass"] = relationship(back_populates="sessions")
    student_sessions: Mapped[List["StudentSession"]] = relationship(
        back_populates="session", cascade="all, delete-orphan"
    )

    # Constraints
    __table_args__ = (Index("idx_sessions_class_date", "class_id", "date"),)


class Student(Base, AuditMixin):
    __tablename__ = "students"

    id: Mapped[uuid.UUID] = _uuid_pk()
    student_code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(
        String(320), unique=True
    )  # RFC 5321 max length, stored lower-cased
    phone: Mapped[Optional[str]] = mapped_column(String(30))
    gender: Mapped[Optional[Gender]] = mapped_column(Enum(Gender))
    dob: Mapped[Optional[date]] = mapped_column(Date)
    branch_id: Mapped[Optional[uuid.UUID]] = mapped_column(ForeignKey("branches.id"))

    # Relationships
    branch: Mapped[Optional["Branch"]] = relationship(back_populates="students")
    enrollments: Mapped[List["Enrollment"]] = relationship(back_populates="student")
    skill_assessments: Mapped[List["SkillAssessment"]] = relationship(
        back_populates="student", cascade="all, delete-orphan"
    )

    # Constraints
    __table_args__ = (
        Index("idx_students_email", "email"),
        Index("idx_students_branch", "branch_id"),
    )


class SkillAssessment(Base, AuditMixin):
    __tablename__ = "skill_assessments"

    id: Mapped[uuid.UUID] = _uuid_pk()
    student_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("students.id"), nullable=False
    )
    skill: Mapped[Skill] = mapped_column(Enum(Skill), nullable=False)
    level_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("levels.id"), nullable=False)
    score: Mapped[Optional[int]] = mapped_column(Integer)
    assessment_date: Mapped[date] = mapped_column(Date, nullable=False)
    assessment_type: Mapped[Optional[str]] = mapped_column(String(100))
    note: Mapped[Optional[str]] = mapped_column(Text)

    # Relationships
    student: Mapped["Student"] = relationship(back_populates="skill_assessments")
    level: Mapped["Level"] = relationship()

    # Constraints
    __table_args__ = (
        UniqueConstraint(
            "student_id",
            "skill",
            "assessment_date",
            name="uq_skill_assessments_student_skill_date",
        ),
        Index("idx_skill_assessments_student_date", "student_id", "assessment_date"),
    )


class Enrollment(Base, AuditMixin):
    __tablename__ = "enrollments"

    id: Mapped[uuid.UUID] = _uuid_pk()
    class_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("classes.id"), nullable=False)
    student_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("students.id"), nullable=False
    )
    status: Mapped[EnrollmentStatus] = mapped_column(
        Enum(EnrollmentStatus), default=EnrollmentStatus.ACTIVE, nullable=False
    )
    enrolled_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    enrolled_by: Mapped[Optional[str]] = mapped_column(String(100))
    join_session_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("sessions.id")
    )
    capacity_override: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    override_reason: Mapped[Optional[str]] = mapped_column(Text)

    # Relationships
    training_class: Mapped["TrainingClass"] = relationship(back_populates="enrollments")
    student: Mapped["Student"] = relationship(back_populates="enrollments")
    join_session: Mapped[Optional["ClassSession"]] = relationship()

    # Constraints
    __table_args__ = (
        Index("idx_enrollments_class_status", "class_id", "status"),
        Index("idx_enrollments_student_status", "student_id", "status"),
    )


class StudentSession(Base, AuditMixin):
    __tablename__ = "student_sessions"

    student_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("students.id"), primary_key=True
    )
    session_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("sessions.id"), primary_key=True
    )
    attendance_status: Mapped[AttendanceStatus] = mapped_column(
        Enum(AttendanceStatus), default=AttendanceStatus.PLANNED, nullable=False
    )
    is_makeup: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Relationships
    session: Mapped["ClassSession"] = relationship(back_populates="student_sessions")
