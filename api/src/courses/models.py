"""Database models for the course catalog.

Cassandra table definitions for the ordered hierarchy
Course -> Lesson -> Part -> Test. Each child table is partitioned by its
container id and clustered by the per-container sequence number, so
"unit at position N" and "highest position" are single-partition reads.

Sequence numbers are 1-based and may have gaps once a unit is deleted.
The progression engine only reads these tables.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID


class HierarchyLevel(str, Enum):
    """Levels of the course hierarchy below the course itself."""

    LESSON = "lesson"
    PART = "part"
    TEST = "test"


def ensure_utc_aware(dt: datetime | None) -> datetime | None:
    """Ensure datetime is UTC-aware (Cassandra returns naive datetimes)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

COURSE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.courses (
    id UUID PRIMARY KEY,
    title TEXT,
    description TEXT,
    thumbnail_url TEXT,
    workload INT,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

# Aulas de um curso, ordenadas por seq_num
LESSONS_BY_COURSE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.lessons_by_course (
    course_id UUID,
    seq_num INT,
    id UUID,
    title TEXT,
    description TEXT,
    PRIMARY KEY (course_id, seq_num)
) WITH CLUSTERING ORDER BY (seq_num ASC)
"""

# Partes de uma aula
PARTS_BY_LESSON_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.parts_by_lesson (
    lesson_id UUID,
    seq_num INT,
    id UUID,
    title TEXT,
    description TEXT,
    video_url TEXT,
    PRIMARY KEY (lesson_id, seq_num)
) WITH CLUSTERING ORDER BY (seq_num ASC)
"""

# Testes de uma parte (correct_alternative nunca sai para o aluno)
TESTS_BY_PART_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.tests_by_part (
    part_id UUID,
    seq_num INT,
    id UUID,
    question TEXT,
    alternatives LIST<TEXT>,
    correct_alternative INT,
    PRIMARY KEY (part_id, seq_num)
) WITH CLUSTERING ORDER BY (seq_num ASC)
"""

COURSES_TABLES_CQL = [
    COURSE_TABLE_CQL,
    LESSONS_BY_COURSE_TABLE_CQL,
    PARTS_BY_LESSON_TABLE_CQL,
    TESTS_BY_PART_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


class Course:
    """Course entity (catalog root)."""

    def __init__(
        self,
        id: UUID,
        title: str,
        description: str | None = None,
        thumbnail_url: str | None = None,
        workload: int | None = None,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.id = id
        self.title = title
        self.description = description
        self.thumbnail_url = thumbnail_url
        self.workload = workload
        self.created_at = ensure_utc_aware(created_at)
        self.updated_at = ensure_utc_aware(updated_at)

    @classmethod
    def from_row(cls, row: Any) -> "Course":
        """Create Course instance from Cassandra row."""
        return cls(
            id=row.id,
            title=row.title,
            description=row.description,
            thumbnail_url=row.thumbnail_url,
            workload=row.workload,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def __repr__(self) -> str:
        return f"<Course {self.id} {self.title!r}>"


class Lesson:
    """Lesson entity, positioned inside a course by seq_num."""

    level = HierarchyLevel.LESSON

    def __init__(
        self,
        id: UUID,
        course_id: UUID,
        seq_num: int,
        title: str,
        description: str | None = None,
    ):
        self.id = id
        self.course_id = course_id
        self.seq_num = seq_num
        self.title = title
        self.description = description

    @classmethod
    def from_row(cls, row: Any) -> "Lesson":
        """Create Lesson instance from Cassandra row."""
        return cls(
            id=row.id,
            course_id=row.course_id,
            seq_num=row.seq_num,
            title=row.title,
            description=row.description,
        )

    def __repr__(self) -> str:
        return f"<Lesson {self.id} course={self.course_id} #{self.seq_num}>"


class Part:
    """Part entity, positioned inside a lesson by seq_num."""

    level = HierarchyLevel.PART

    def __init__(
        self,
        id: UUID,
        lesson_id: UUID,
        seq_num: int,
        title: str,
        description: str | None = None,
        video_url: str | None = None,
    ):
        self.id = id
        self.lesson_id = lesson_id
        self.seq_num = seq_num
        self.title = title
        self.description = description
        self.video_url = video_url

    @classmethod
    def from_row(cls, row: Any) -> "Part":
        """Create Part instance from Cassandra row."""
        return cls(
            id=row.id,
            lesson_id=row.lesson_id,
            seq_num=row.seq_num,
            title=row.title,
            description=row.description,
            video_url=row.video_url,
        )

    def __repr__(self) -> str:
        return f"<Part {self.id} lesson={self.lesson_id} #{self.seq_num}>"


class Test:
    """Test (question) entity, positioned inside a part by seq_num."""

    __test__ = False  # not a pytest test class

    level = HierarchyLevel.TEST

    def __init__(
        self,
        id: UUID,
        part_id: UUID,
        seq_num: int,
        question: str,
        alternatives: list[str] | None = None,
        correct_alternative: int | None = None,
    ):
        self.id = id
        self.part_id = part_id
        self.seq_num = seq_num
        self.question = question
        self.alternatives = list(alternatives or [])
        self.correct_alternative = correct_alternative

    @classmethod
    def from_row(cls, row: Any) -> "Test":
        """Create Test instance from Cassandra row."""
        return cls(
            id=row.id,
            part_id=row.part_id,
            seq_num=row.seq_num,
            question=row.question,
            alternatives=row.alternatives,
            correct_alternative=row.correct_alternative,
        )

    def __repr__(self) -> str:
        return f"<Test {self.id} part={self.part_id} #{self.seq_num}>"


HierarchyUnit = Lesson | Part | Test
