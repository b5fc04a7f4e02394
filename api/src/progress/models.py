"""Database models for course enrollment and progression.

Cassandra table definitions for:
- Enrollments: one row per (course, user) with the progress pointer
- Lookup table: the same record partitioned by user for per-user listing

Architecture: Dual-write pattern, both tables written in one logged batch
so a pointer, its completion and its status always change together.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID

from src.courses.models import Course, Lesson, Part, Test, ensure_utc_aware


class EnrollmentStatus(str, Enum):
    """Course enrollment status (TAKEN -> COMPLETED, never back)."""

    TAKEN = "taken"  # Cursando
    COMPLETED = "completed"  # Concluiu todas as aulas


COMPLETE_PERCENT = 100.0


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

_ENROLLMENT_COLUMNS = """
    current_lesson INT,
    current_part INT,
    current_test INT,
    status TEXT,
    completion DOUBLE,
    course_start_date TIMESTAMP,
    course_complete_date TIMESTAMP,
    updated_at TIMESTAMP,
"""

# Inscricoes particionadas por curso
# Para queries: "quais alunos estao neste curso?" e leitura pontual
ENROLLMENTS_TABLE_CQL = (
    """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollments (
    course_id UUID,
    user_id UUID,"""
    + _ENROLLMENT_COLUMNS
    + """    PRIMARY KEY (course_id, user_id)
)
"""
)

# Lookup: inscricoes por usuario
# Para queries: "em quais cursos o usuario esta inscrito?"
ENROLLMENTS_BY_USER_TABLE_CQL = (
    """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollments_by_user (
    user_id UUID,
    course_id UUID,"""
    + _ENROLLMENT_COLUMNS
    + """    PRIMARY KEY (user_id, course_id)
)
"""
)

PROGRESS_TABLES_CQL = [
    ENROLLMENTS_TABLE_CQL,
    ENROLLMENTS_BY_USER_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


class Enrollment:
    """Course enrollment ("course taken") entity.

    The enrollment owns the learner's position in the course hierarchy.
    Pointers are 1-based sequence numbers, not ids, so they survive
    catalog edits and are re-resolved on every read.

    Attributes:
        user_id: User UUID
        course_id: Course UUID
        current_lesson: Lesson position within the course (>= 1)
        current_part: Part position within the current lesson (>= 1)
        current_test: Test position within the current part (>= 1)
        status: taken or completed
        completion: Percentage of the course completed (0-100)
        course_start_date: Enrollment timestamp, never changes
        course_complete_date: Set once, when status becomes completed
        updated_at: Last write timestamp
    """

    def __init__(
        self,
        user_id: UUID,
        course_id: UUID,
        current_lesson: int = 1,
        current_part: int = 1,
        current_test: int = 1,
        status: str = EnrollmentStatus.TAKEN.value,
        completion: float = 0.0,
        course_start_date: datetime | None = None,
        course_complete_date: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.user_id = user_id
        self.course_id = course_id
        self.current_lesson = current_lesson
        self.current_part = current_part
        self.current_test = current_test
        self.status = status
        self.completion = completion
        self.course_start_date = ensure_utc_aware(course_start_date) or datetime.now(
            UTC
        )
        self.course_complete_date = ensure_utc_aware(course_complete_date)
        self.updated_at = ensure_utc_aware(updated_at)

    @property
    def is_completed(self) -> bool:
        """Check if course is completed."""
        return self.status == EnrollmentStatus.COMPLETED.value

    @property
    def pointer(self) -> tuple[int, int, int]:
        """Current (lesson, part, test) positions."""
        return (self.current_lesson, self.current_part, self.current_test)

    def copy(self) -> "Enrollment":
        """Detached copy, so a failed write never leaves a half-advanced entity."""
        return Enrollment(**self.to_dict())

    @classmethod
    def from_row(cls, row: Any) -> "Enrollment":
        """Create Enrollment instance from Cassandra row."""
        return cls(
            user_id=row.user_id,
            course_id=row.course_id,
            current_lesson=row.current_lesson or 1,
            current_part=row.current_part or 1,
            current_test=row.current_test or 1,
            status=row.status or EnrollmentStatus.TAKEN.value,
            completion=row.completion or 0.0,
            course_start_date=row.course_start_date,
            course_complete_date=row.course_complete_date,
            updated_at=row.updated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "user_id": self.user_id,
            "course_id": self.course_id,
            "current_lesson": self.current_lesson,
            "current_part": self.current_part,
            "current_test": self.current_test,
            "status": self.status,
            "completion": self.completion,
            "course_start_date": self.course_start_date,
            "course_complete_date": self.course_complete_date,
            "updated_at": self.updated_at,
        }

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Enrollment):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        return (
            f"<Enrollment user={self.user_id} course={self.course_id} "
            f"{self.pointer} {self.status} {self.completion}%>"
        )


# ==============================================================================
# Progression Snapshot
# ==============================================================================


@dataclass(frozen=True)
class ClassPosition:
    """A fully resolved (lesson, part, test) chain the learner is sitting at."""

    lesson: Lesson
    part: Part
    test: Test


@dataclass(frozen=True)
class ClassSnapshot:
    """Result of attending a class.

    ``position`` is None exactly when the course is exhausted (completed);
    otherwise all three units are present.
    """

    user_id: UUID
    course: Course
    position: ClassPosition | None
    completion: float
    status: EnrollmentStatus

    @property
    def is_exhausted(self) -> bool:
        """Check if there is nothing left to attend."""
        return self.position is None
