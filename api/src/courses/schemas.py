"""Pydantic schemas for catalog entities as exposed to learners."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict

from .models import Course, Lesson, Part, Test


class CourseSummaryResponse(BaseModel):
    """Course header shown alongside the learner's current class."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    description: str | None = None
    thumbnail_url: str | None = None
    workload: int | None = None

    @classmethod
    def from_entity(cls, entity: Course) -> "CourseSummaryResponse":
        """Create response from entity."""
        return cls.model_validate(entity)


class LessonResponse(BaseModel):
    """Lesson response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    course_id: UUID
    seq_num: int
    title: str
    description: str | None = None

    @classmethod
    def from_entity(cls, entity: Lesson) -> "LessonResponse":
        """Create response from entity."""
        return cls.model_validate(entity)


class PartResponse(BaseModel):
    """Part response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    lesson_id: UUID
    seq_num: int
    title: str
    description: str | None = None
    video_url: str | None = None

    @classmethod
    def from_entity(cls, entity: Part) -> "PartResponse":
        """Create response from entity."""
        return cls.model_validate(entity)


class TestResponse(BaseModel):
    """Test response without the correct alternative."""

    __test__ = False  # not a pytest test class

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    part_id: UUID
    seq_num: int
    question: str
    alternatives: list[str] = []

    @classmethod
    def from_entity(cls, entity: Test) -> "TestResponse":
        """Create response from entity, dropping the answer key."""
        return cls(
            id=entity.id,
            part_id=entity.part_id,
            seq_num=entity.seq_num,
            question=entity.question,
            alternatives=entity.alternatives,
        )

