"""Pydantic schemas for enrollment and course progression.

Request and response models for:
- Enrollment creation and administrative update
- Enrollment queries and listings
- The current-class snapshot
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from src.courses.schemas import (
    CourseSummaryResponse,
    LessonResponse,
    PartResponse,
    TestResponse,
)

from .models import ClassSnapshot, Enrollment, EnrollmentStatus


# ==============================================================================
# Enrollment Schemas
# ==============================================================================


class EnrollRequest(BaseModel):
    """Request to enroll a user in a course."""

    user_id: UUID = Field(..., description="User UUID")
    course_id: UUID = Field(..., description="Course UUID to enroll in")


class UpdateEnrollmentRequest(BaseModel):
    """Partial update of an enrollment (administrative correction).

    Only the fields present in the payload are applied.
    """

    model_config = ConfigDict(extra="forbid")

    current_lesson: int | None = Field(None, ge=1, description="Lesson position")
    current_part: int | None = Field(None, ge=1, description="Part position")
    current_test: int | None = Field(None, ge=1, description="Test position")
    status: EnrollmentStatus | None = None
    completion: float | None = Field(None, ge=0, le=100, description="0-100")
    course_complete_date: datetime | None = None

    def changes(self) -> dict:
        """Fields explicitly sent by the caller, without nulls."""
        return {
            key: value
            for key, value in self.model_dump(exclude_unset=True).items()
            if value is not None
        }


class EnrollmentResponse(BaseModel):
    """Enrollment response."""

    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    course_id: UUID
    current_lesson: int
    current_part: int
    current_test: int
    status: EnrollmentStatus
    completion: float
    course_start_date: datetime
    course_complete_date: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_entity(cls, entity: Enrollment) -> "EnrollmentResponse":
        """Create response from entity."""
        return cls(
            user_id=entity.user_id,
            course_id=entity.course_id,
            current_lesson=entity.current_lesson,
            current_part=entity.current_part,
            current_test=entity.current_test,
            status=EnrollmentStatus(entity.status),
            completion=entity.completion,
            course_start_date=entity.course_start_date,
            course_complete_date=entity.course_complete_date,
            updated_at=entity.updated_at,
        )


class EnrollmentListResponse(BaseModel):
    """List of enrollments."""

    items: list[EnrollmentResponse]
    total: int

    @classmethod
    def from_entities(cls, entities: list[Enrollment]) -> "EnrollmentListResponse":
        """Create response from entities."""
        return cls(
            items=[EnrollmentResponse.from_entity(e) for e in entities],
            total=len(entities),
        )


# ==============================================================================
# Class Snapshot Schemas
# ==============================================================================


class ClassSnapshotResponse(BaseModel):
    """The class a learner should attend now.

    When ``finished`` is true the course is exhausted and the current
    lesson, part and test are all null.
    """

    user_id: UUID
    course: CourseSummaryResponse
    current_lesson: LessonResponse | None = None
    current_part: PartResponse | None = None
    current_test: TestResponse | None = None
    completion: float = Field(description="0-100 percentage")
    status: EnrollmentStatus
    finished: bool

    @classmethod
    def from_snapshot(cls, snapshot: ClassSnapshot) -> "ClassSnapshotResponse":
        """Create response from a progression snapshot."""
        position = snapshot.position
        return cls(
            user_id=snapshot.user_id,
            course=CourseSummaryResponse.from_entity(snapshot.course),
            current_lesson=LessonResponse.from_entity(position.lesson)
            if position
            else None,
            current_part=PartResponse.from_entity(position.part) if position else None,
            current_test=TestResponse.from_entity(position.test) if position else None,
            completion=snapshot.completion,
            status=snapshot.status,
            finished=snapshot.is_exhausted,
        )
