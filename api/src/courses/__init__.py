"""Course catalog (read side).

Provides:
- Course, Lesson, Part and Test entities with their CQL tables
- Ordinal hierarchy lookups used by the progression engine
"""

from .models import (
    COURSES_TABLES_CQL,
    Course,
    HierarchyLevel,
    Lesson,
    Part,
    Test,
)
from .service import (
    CourseHierarchy,
    CourseReader,
    HierarchyLookup,
    build_course_hierarchy,
)


__all__ = [
    "COURSES_TABLES_CQL",
    "Course",
    "CourseHierarchy",
    "CourseReader",
    "HierarchyLevel",
    "HierarchyLookup",
    "Lesson",
    "Part",
    "Test",
    "build_course_hierarchy",
]
