"""Read-only catalog access for the progression engine.

Provides:
- CourseReader: fetch a course header by id
- HierarchyLookup: unit at a 1-based position inside a container, and the
  highest position used in that container
- Cassandra implementations of both, one lookup per hierarchy level
- CourseHierarchy: the bundle of readers the progression engine consumes

"Absent" is a normal answer here (``None`` / ``0``), never an exception:
the engine treats a missing unit as the end of its container.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, ClassVar
from uuid import UUID

from .models import Course, HierarchyLevel, HierarchyUnit, Lesson, Part, Test


if TYPE_CHECKING:
    from cassandra.cluster import Session


# ==============================================================================
# Interfaces
# ==============================================================================


class CourseReader(ABC):
    """Course header lookup."""

    @abstractmethod
    async def get_course(self, course_id: UUID) -> Course | None:
        """Return the course, or None if it is not in the catalog."""
        raise NotImplementedError


class HierarchyLookup(ABC):
    """Ordinal lookup of units within one level of the hierarchy.

    ``container_id`` may be None when the caller could not resolve the
    container itself (e.g. its lesson was deleted); such a container holds
    nothing.
    """

    level: ClassVar[HierarchyLevel]

    @abstractmethod
    async def find_by_container_and_seq(
        self, container_id: UUID | None, seq_num: int
    ) -> HierarchyUnit | None:
        """Return the unit at ``seq_num`` inside ``container_id``, or None."""
        raise NotImplementedError

    @abstractmethod
    async def max_seq(self, container_id: UUID | None) -> int:
        """Return the highest seq_num inside ``container_id`` (0 when empty)."""
        raise NotImplementedError

    async def get_id_by_container_and_seq(
        self, container_id: UUID | None, seq_num: int
    ) -> UUID | None:
        """Resolve just the id of the unit at ``seq_num``."""
        unit = await self.find_by_container_and_seq(container_id, seq_num)
        return unit.id if unit else None


@dataclass(frozen=True)
class CourseHierarchy:
    """Everything the progression engine reads from the catalog."""

    courses: CourseReader
    lessons: HierarchyLookup
    parts: HierarchyLookup
    tests: HierarchyLookup


# ==============================================================================
# Cassandra Implementations
# ==============================================================================


class CassandraCourseReader(CourseReader):
    """Course reader backed by the courses table."""

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._get_course = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.courses WHERE id = ?"
        )

    async def get_course(self, course_id: UUID) -> Course | None:
        result = await self.session.aexecute(self._get_course, [course_id])
        row = result.one()
        return Course.from_row(row) if row else None


class CassandraHierarchyLookup(HierarchyLookup):
    """Lookup over a child table keyed by (container column, seq_num)."""

    table: ClassVar[str]
    container_column: ClassVar[str]
    entity: ClassVar[type[Lesson] | type[Part] | type[Test]]

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._find_by_seq = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.{self.table}
            WHERE {self.container_column} = ? AND seq_num = ?
        """)
        self._max_seq = self.session.prepare(f"""
            SELECT MAX(seq_num) AS max_seq FROM {self.keyspace}.{self.table}
            WHERE {self.container_column} = ?
        """)

    async def find_by_container_and_seq(
        self, container_id: UUID | None, seq_num: int
    ) -> HierarchyUnit | None:
        if container_id is None or seq_num < 1:
            return None
        result = await self.session.aexecute(self._find_by_seq, [container_id, seq_num])
        row = result.one()
        return self.entity.from_row(row) if row else None

    async def max_seq(self, container_id: UUID | None) -> int:
        if container_id is None:
            return 0
        result = await self.session.aexecute(self._max_seq, [container_id])
        row = result.one()
        # MAX over an empty partition yields a single null row
        return (row.max_seq or 0) if row else 0


class LessonLookup(CassandraHierarchyLookup):
    """Lessons within a course."""

    level = HierarchyLevel.LESSON
    table = "lessons_by_course"
    container_column = "course_id"
    entity = Lesson


class PartLookup(CassandraHierarchyLookup):
    """Parts within a lesson."""

    level = HierarchyLevel.PART
    table = "parts_by_lesson"
    container_column = "lesson_id"
    entity = Part


class TestLookup(CassandraHierarchyLookup):
    """Tests within a part."""

    __test__ = False  # not a pytest test class

    level = HierarchyLevel.TEST
    table = "tests_by_part"
    container_column = "part_id"
    entity = Test


def build_course_hierarchy(session: "Session", keyspace: str) -> CourseHierarchy:
    """Wire the Cassandra-backed catalog readers."""
    return CourseHierarchy(
        courses=CassandraCourseReader(session, keyspace),
        lessons=LessonLookup(session, keyspace),
        parts=PartLookup(session, keyspace),
        tests=TestLookup(session, keyspace),
    )
