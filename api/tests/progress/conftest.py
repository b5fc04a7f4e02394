"""In-memory catalog and enrollment store for progression tests."""

from collections import defaultdict
from datetime import UTC, datetime
from uuid import UUID, uuid4

import pytest

from src.courses.models import Course, HierarchyLevel, HierarchyUnit, Lesson, Part, Test
from src.courses.service import CourseHierarchy, CourseReader, HierarchyLookup
from src.progress.models import Enrollment
from src.progress.service import ProgressService
from src.progress.store import EnrollmentStore


class InMemoryCourseReader(CourseReader):
    def __init__(self, courses: dict[UUID, Course]):
        self.courses = courses

    async def get_course(self, course_id: UUID) -> Course | None:
        return self.courses.get(course_id)


class InMemoryLookup(HierarchyLookup):
    def __init__(self, level: HierarchyLevel, units: dict[UUID, dict[int, HierarchyUnit]]):
        self.level = level
        self.units = units

    async def find_by_container_and_seq(
        self, container_id: UUID | None, seq_num: int
    ) -> HierarchyUnit | None:
        if container_id is None:
            return None
        return self.units.get(container_id, {}).get(seq_num)

    async def max_seq(self, container_id: UUID | None) -> int:
        if container_id is None:
            return 0
        return max(self.units.get(container_id, {}), default=0)


class InMemoryCatalog:
    """Mutable course catalog, editable mid-test like an admin would."""

    def __init__(self) -> None:
        self.courses: dict[UUID, Course] = {}
        self.lessons: dict[UUID, dict[int, Lesson]] = defaultdict(dict)
        self.parts: dict[UUID, dict[int, Part]] = defaultdict(dict)
        self.tests: dict[UUID, dict[int, Test]] = defaultdict(dict)

    def hierarchy(self) -> CourseHierarchy:
        return CourseHierarchy(
            courses=InMemoryCourseReader(self.courses),
            lessons=InMemoryLookup(HierarchyLevel.LESSON, self.lessons),
            parts=InMemoryLookup(HierarchyLevel.PART, self.parts),
            tests=InMemoryLookup(HierarchyLevel.TEST, self.tests),
        )

    def add_course(self, title: str = "Farmacologia") -> Course:
        course = Course(id=uuid4(), title=title)
        self.courses[course.id] = course
        return course

    def add_lesson(self, course: Course, seq_num: int | None = None) -> Lesson:
        siblings = self.lessons[course.id]
        seq_num = seq_num or max(siblings, default=0) + 1
        lesson = Lesson(uuid4(), course.id, seq_num, f"Aula {seq_num}")
        siblings[seq_num] = lesson
        return lesson

    def add_part(self, lesson: Lesson, seq_num: int | None = None) -> Part:
        siblings = self.parts[lesson.id]
        seq_num = seq_num or max(siblings, default=0) + 1
        part = Part(uuid4(), lesson.id, seq_num, f"Parte {seq_num}")
        siblings[seq_num] = part
        return part

    def add_test(self, part: Part, seq_num: int | None = None) -> Test:
        siblings = self.tests[part.id]
        seq_num = seq_num or max(siblings, default=0) + 1
        test = Test(
            uuid4(),
            part.id,
            seq_num,
            f"Pergunta {seq_num}",
            alternatives=["a", "b", "c"],
            correct_alternative=1,
        )
        siblings[seq_num] = test
        return test

    def build_course(self, shape: list[list[int]]) -> Course:
        """Course from a shape: one list per lesson, one test count per part.

        ``[[2, 1], [3]]`` is two lessons; the first has a part with two
        tests and a part with one, the second a single part with three.
        """
        course = self.add_course()
        for parts in shape:
            lesson = self.add_lesson(course)
            for tests_count in parts:
                part = self.add_part(lesson)
                for _ in range(tests_count):
                    self.add_test(part)
        return course

    def lesson_at(self, course: Course, seq_num: int) -> Lesson:
        return self.lessons[course.id][seq_num]

    def part_at(self, lesson: Lesson, seq_num: int) -> Part:
        return self.parts[lesson.id][seq_num]

    def remove_lesson(self, lesson: Lesson) -> None:
        del self.lessons[lesson.course_id][lesson.seq_num]

    def remove_test(self, test: Test) -> None:
        del self.tests[test.part_id][test.seq_num]


class InMemoryEnrollmentStore(EnrollmentStore):
    """Enrollment store keeping detached copies, like a real database."""

    def __init__(self) -> None:
        self.records: dict[tuple[UUID, UUID], Enrollment] = {}
        self.saves = 0
        self.fail_saves = False

    async def get(self, user_id: UUID, course_id: UUID) -> Enrollment | None:
        record = self.records.get((user_id, course_id))
        return record.copy() if record else None

    async def insert(self, enrollment: Enrollment) -> bool:
        key = (enrollment.user_id, enrollment.course_id)
        if key in self.records:
            return False
        enrollment.updated_at = datetime.now(UTC)
        self.records[key] = enrollment.copy()
        return True

    async def save(self, enrollment: Enrollment) -> Enrollment:
        if self.fail_saves:
            raise ConnectionError("write timeout")
        self.saves += 1
        enrollment.updated_at = datetime.now(UTC)
        self.records[(enrollment.user_id, enrollment.course_id)] = enrollment.copy()
        return enrollment

    async def delete(self, user_id: UUID, course_id: UUID) -> None:
        self.records.pop((user_id, course_id), None)

    async def list_by_user(self, user_id: UUID) -> list[Enrollment]:
        return [e.copy() for (uid, _), e in self.records.items() if uid == user_id]

    async def list_by_course(self, course_id: UUID) -> list[Enrollment]:
        return [e.copy() for (_, cid), e in self.records.items() if cid == course_id]


@pytest.fixture
def catalog() -> InMemoryCatalog:
    """Empty in-memory catalog."""
    return InMemoryCatalog()


@pytest.fixture
def store() -> InMemoryEnrollmentStore:
    """Empty in-memory enrollment store."""
    return InMemoryEnrollmentStore()


@pytest.fixture
def service(catalog, store) -> ProgressService:
    """ProgressService over the in-memory catalog and store."""
    return ProgressService(store=store, hierarchy=catalog.hierarchy())


@pytest.fixture
def user_id() -> UUID:
    """Test user ID."""
    return uuid4()
