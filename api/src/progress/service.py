"""Course progression service layer.

Business logic for:
- Enrollment creation, update, listing and removal
- Resolving the learner's current (lesson, part, test) class
- Advancing the progress pointer with carry across levels
- Completion percentage calculation

The pointer is a three-digit odometer whose radixes (tests in a part,
parts in a lesson, lessons in a course) are read from the catalog on
every step. A pointer that no longer resolves (end of a container, or a
unit deleted out-of-band) is advanced until it resolves again or the
course is completed.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

import structlog

from src.core.context import EnrollmentContext
from src.core.locks import EnrollmentLocks, LockTimeoutError
from src.courses.models import Course, ensure_utc_aware
from src.courses.service import CourseHierarchy

from .models import (
    COMPLETE_PERCENT,
    ClassPosition,
    ClassSnapshot,
    Enrollment,
    EnrollmentStatus,
)
from .store import EnrollmentStore


logger = structlog.get_logger(__name__)

DEFAULT_MAX_ADVANCE_STEPS = 10_000

# Fields an update may touch; course_start_date is fixed at enrollment
UPDATABLE_FIELDS = frozenset(
    {
        "current_lesson",
        "current_part",
        "current_test",
        "status",
        "completion",
        "course_complete_date",
    }
)


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class ProgressError(Exception):
    """Base progress error."""

    def __init__(self, message: str, code: str = "progress_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class NotEnrolledError(ProgressError):
    """User not enrolled in course."""

    def __init__(self, message: str = "Usuario nao inscrito no curso"):
        super().__init__(message, "not_enrolled")


class AlreadyEnrolledError(ProgressError):
    """User already enrolled."""

    def __init__(self, message: str = "Usuario ja inscrito no curso"):
        super().__init__(message, "already_enrolled")


class NoRecordsFoundError(ProgressError):
    """Listing returned no enrollments."""

    def __init__(self, message: str = "Nenhuma inscricao encontrada"):
        super().__init__(message, "no_records_found")


class CourseNotFoundError(ProgressError):
    """Course not in the catalog."""

    def __init__(self, message: str = "Curso nao encontrado"):
        super().__init__(message, "course_not_found")


class EnrollmentBusyError(ProgressError):
    """Another request holds this enrollment."""

    def __init__(
        self, message: str = "Inscricao em processamento, tente novamente"
    ):
        super().__init__(message, "enrollment_busy")


class InvalidUpdateError(ProgressError):
    """Update would break an enrollment invariant."""

    def __init__(self, message: str = "Atualizacao invalida"):
        super().__init__(message, "invalid_update")


class AdvanceLimitExceededError(ProgressError):
    """Pointer kept advancing past the configured bound."""

    def __init__(
        self, message: str = "Limite de avancos excedido ao localizar a aula"
    ):
        super().__init__(message, "advance_limit_exceeded")


# ==============================================================================
# Completion Calculation
# ==============================================================================


def calculate_completion(
    current_lesson: int,
    current_part: int,
    current_test: int,
    lessons_total: int,
    parts_total: int,
    tests_total: int,
) -> float:
    """Nested fractional completion for a pointer.

    Full credit for each finished lesson, a share of the current lesson for
    each finished part and a share of the current part for each finished
    test. An empty level divides by 1, so it contributes nothing.
    """
    per_lesson = COMPLETE_PERCENT / max(lessons_total, 1)
    per_part = per_lesson / max(parts_total, 1)
    per_test = per_part / max(tests_total, 1)

    completion = per_lesson * (current_lesson - 1)
    completion += per_part * (current_part - 1)
    completion += per_test * (current_test - 1)

    return min(completion, COMPLETE_PERCENT)


# ==============================================================================
# Progress Service
# ==============================================================================


class ProgressService:
    """Service for enrollment progression through a course."""

    def __init__(
        self,
        store: EnrollmentStore,
        hierarchy: CourseHierarchy,
        locks: EnrollmentLocks | None = None,
        max_advance_steps: int = DEFAULT_MAX_ADVANCE_STEPS,
        empty_listing_is_error: bool = False,
    ):
        self.store = store
        self.hierarchy = hierarchy
        self.locks = locks or EnrollmentLocks()
        self.max_advance_steps = max_advance_steps
        self.empty_listing_is_error = empty_listing_is_error

    @asynccontextmanager
    async def _locked(self, user_id: UUID, course_id: UUID) -> AsyncIterator[None]:
        """Serialize work on one enrollment and bind it to the log context."""
        with EnrollmentContext(user_id, course_id):
            try:
                async with self.locks.hold(user_id, course_id):
                    yield
            except LockTimeoutError as e:
                logger.warning("enrollment_lock_timeout", key=e.key)
                raise EnrollmentBusyError from e

    # ==========================================================================
    # Enrollment Operations
    # ==========================================================================

    async def enroll(self, user_id: UUID, course_id: UUID) -> ClassSnapshot:
        """Enroll user in a course and return the first class.

        Raises:
            CourseNotFoundError: If the course is not in the catalog
            AlreadyEnrolledError: If user already enrolled
        """
        async with self._locked(user_id, course_id):
            course = await self._require_course(course_id)

            if await self.store.get(user_id, course_id):
                raise AlreadyEnrolledError

            enrollment = Enrollment(
                user_id=user_id,
                course_id=course_id,
                current_lesson=1,
                current_part=1,
                current_test=1,
                status=EnrollmentStatus.TAKEN.value,
                completion=0.0,
                course_start_date=datetime.now(UTC),
            )
            if not await self.store.insert(enrollment):
                raise AlreadyEnrolledError

            logger.info("enrollment_created")

            return await self._attend(enrollment, course)

    async def get_enrollment(self, user_id: UUID, course_id: UUID) -> Enrollment:
        """Get enrollment by user and course.

        Raises:
            NotEnrolledError: If no enrollment exists
        """
        return await self._require_enrollment(user_id, course_id)

    async def update(
        self,
        user_id: UUID,
        course_id: UUID,
        changes: dict[str, Any],
    ) -> Enrollment:
        """Merge caller-supplied fields into the enrollment and persist.

        Raises:
            NotEnrolledError: If no enrollment exists
            InvalidUpdateError: If the result would break an invariant
        """
        async with self._locked(user_id, course_id):
            enrollment = await self._require_enrollment(user_id, course_id)
            updated = self._merge(enrollment, changes)
            if (
                not updated.is_completed
                and "completion" not in changes
                and updated.pointer != enrollment.pointer
            ):
                updated.completion = await self._completion_at_pointer(
                    updated, fallback=enrollment.completion
                )
            saved = await self.store.save(updated)

            logger.info(
                "enrollment_updated",
                fields=sorted(changes),
                pointer=saved.pointer,
                status=saved.status,
            )
            return saved

    async def list_by_user(self, user_id: UUID) -> list[Enrollment]:
        """Get all enrollments for a user."""
        enrollments = await self.store.list_by_user(user_id)
        if not enrollments and self.empty_listing_is_error:
            raise NoRecordsFoundError("Este usuario nao iniciou nenhum curso")
        return enrollments

    async def list_by_course(self, course_id: UUID) -> list[Enrollment]:
        """Get all enrollments in a course."""
        enrollments = await self.store.list_by_course(course_id)
        if not enrollments and self.empty_listing_is_error:
            raise NoRecordsFoundError("Nenhum usuario iniciou este curso")
        return enrollments

    async def unenroll(self, user_id: UUID, course_id: UUID) -> None:
        """Hard-delete the enrollment (no error if it does not exist)."""
        async with self._locked(user_id, course_id):
            await self.store.delete(user_id, course_id)
            logger.info("enrollment_deleted")

    # ==========================================================================
    # Progression Operations
    # ==========================================================================

    async def attend_next_class(self, user_id: UUID, course_id: UUID) -> ClassSnapshot:
        """Return the class the learner is at, self-healing a broken pointer.

        A pointer that resolves is returned untouched (idempotent read).

        Raises:
            NotEnrolledError: If no enrollment exists
            CourseNotFoundError: If the course left the catalog
        """
        async with self._locked(user_id, course_id):
            enrollment = await self._require_enrollment(user_id, course_id)
            course = await self._require_course(course_id)
            return await self._attend(enrollment, course)

    async def complete_current_class(
        self, user_id: UUID, course_id: UUID
    ) -> ClassSnapshot:
        """Mark the current class as done and move on to the next one.

        Raises:
            NotEnrolledError: If no enrollment exists
            CourseNotFoundError: If the course left the catalog
        """
        async with self._locked(user_id, course_id):
            enrollment = await self._require_enrollment(user_id, course_id)
            course = await self._require_course(course_id)
            if not enrollment.is_completed:
                enrollment = await self._advance(enrollment)
            return await self._attend(enrollment, course)

    async def advance_pointer(self, user_id: UUID, course_id: UUID) -> Enrollment:
        """Run a single advancement step and persist it.

        Raises:
            NotEnrolledError: If no enrollment exists
        """
        async with self._locked(user_id, course_id):
            enrollment = await self._require_enrollment(user_id, course_id)
            if enrollment.is_completed:
                return enrollment
            return await self._advance(enrollment)

    async def recompute_completion(
        self,
        enrollment: Enrollment,
        current_lesson_id: UUID | None,
        current_part_id: UUID | None,
    ) -> float:
        """Completion for the enrollment's pointer against the live catalog."""
        if enrollment.is_completed:
            return COMPLETE_PERCENT

        lessons_total = await self.hierarchy.lessons.max_seq(enrollment.course_id)
        parts_total = await self.hierarchy.parts.max_seq(current_lesson_id)
        tests_total = await self.hierarchy.tests.max_seq(current_part_id)

        return calculate_completion(
            enrollment.current_lesson,
            enrollment.current_part,
            enrollment.current_test,
            lessons_total,
            parts_total,
            tests_total,
        )

    # ==========================================================================
    # Internals (callers hold the enrollment lock)
    # ==========================================================================

    async def _attend(self, enrollment: Enrollment, course: Course) -> ClassSnapshot:
        """Advance until the pointer resolves or the course is completed."""
        steps = 0
        while not enrollment.is_completed:
            position = await self._resolve_position(enrollment)
            if position is not None:
                return self._snapshot(enrollment, course, position)

            if steps >= self.max_advance_steps:
                logger.error(
                    "enrollment_advance_limit_exceeded",
                    steps=steps,
                    pointer=enrollment.pointer,
                )
                raise AdvanceLimitExceededError
            enrollment = await self._advance(enrollment)
            steps += 1

        return self._snapshot(enrollment, course, None)

    async def _resolve_position(self, enrollment: Enrollment) -> ClassPosition | None:
        """Resolve the pointer to a (lesson, part, test) chain, if intact."""
        lesson = await self.hierarchy.lessons.find_by_container_and_seq(
            enrollment.course_id, enrollment.current_lesson
        )
        if lesson is None:
            return None

        part = await self.hierarchy.parts.find_by_container_and_seq(
            lesson.id, enrollment.current_part
        )
        if part is None:
            return None

        test = await self.hierarchy.tests.find_by_container_and_seq(
            part.id, enrollment.current_test
        )
        if test is None:
            return None

        return ClassPosition(lesson=lesson, part=part, test=test)

    async def _advance(self, enrollment: Enrollment) -> Enrollment:
        """Move the pointer one step with carry, recompute completion, persist.

        The first level with a next unit wins: next test, else next part
        (test reset), else next lesson (part and test reset), else the
        course is completed and the pointer stays where it is.
        """
        updated = enrollment.copy()
        lessons, parts, tests = (
            self.hierarchy.lessons,
            self.hierarchy.parts,
            self.hierarchy.tests,
        )

        # Either id may be None when its unit was deleted
        lesson_id = await lessons.get_id_by_container_and_seq(
            updated.course_id, updated.current_lesson
        )
        part_id = await parts.get_id_by_container_and_seq(
            lesson_id, updated.current_part
        )

        if await tests.find_by_container_and_seq(part_id, updated.current_test + 1):
            updated.current_test += 1
        elif await parts.find_by_container_and_seq(lesson_id, updated.current_part + 1):
            updated.current_test = 1
            updated.current_part += 1
        elif await lessons.find_by_container_and_seq(
            updated.course_id, updated.current_lesson + 1
        ):
            updated.current_test = 1
            updated.current_part = 1
            updated.current_lesson += 1
        else:
            updated.status = EnrollmentStatus.COMPLETED.value
            updated.course_complete_date = datetime.now(UTC)

        # Cardinalities come from the containers the new pointer addresses
        if not updated.is_completed and updated.pointer[:2] != enrollment.pointer[:2]:
            lesson_id = await lessons.get_id_by_container_and_seq(
                updated.course_id, updated.current_lesson
            )
            part_id = await parts.get_id_by_container_and_seq(
                lesson_id, updated.current_part
            )
        updated.completion = await self.recompute_completion(updated, lesson_id, part_id)

        saved = await self.store.save(updated)

        if saved.is_completed:
            logger.info("enrollment_completed", pointer=saved.pointer)
        else:
            logger.debug(
                "enrollment_pointer_advanced",
                previous=enrollment.pointer,
                pointer=saved.pointer,
                completion=saved.completion,
            )
        return saved

    def _merge(self, enrollment: Enrollment, changes: dict[str, Any]) -> Enrollment:
        """Apply an update to a copy, enforcing status and completion rules."""
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise InvalidUpdateError(
                f"Campos nao atualizaveis: {', '.join(sorted(unknown))}"
            )

        updated = enrollment.copy()
        for field, value in changes.items():
            if isinstance(value, EnrollmentStatus):
                value = value.value
            elif isinstance(value, datetime):
                value = ensure_utc_aware(value)
            setattr(updated, field, value)

        for field in ("current_lesson", "current_part", "current_test"):
            if getattr(updated, field) < 1:
                raise InvalidUpdateError(f"{field} deve ser maior ou igual a 1")

        if enrollment.is_completed and not updated.is_completed:
            raise InvalidUpdateError("Curso concluido nao pode voltar a cursando")
        if (
            enrollment.course_complete_date is not None
            and updated.course_complete_date != enrollment.course_complete_date
        ):
            raise InvalidUpdateError("Data de conclusao ja definida")

        if updated.is_completed:
            updated.completion = COMPLETE_PERCENT
            if updated.course_complete_date is None:
                updated.course_complete_date = datetime.now(UTC)
        else:
            if updated.course_complete_date is not None:
                raise InvalidUpdateError(
                    "Data de conclusao so pode ser definida em curso concluido"
                )
            if not 0 <= updated.completion < COMPLETE_PERCENT:
                raise InvalidUpdateError(
                    "Conclusao de curso em andamento deve estar entre 0 e 100"
                )

        return updated

    async def _completion_at_pointer(
        self, enrollment: Enrollment, fallback: float
    ) -> float:
        """Completion at a moved pointer, or ``fallback`` past its containers."""
        lesson_id = await self.hierarchy.lessons.get_id_by_container_and_seq(
            enrollment.course_id, enrollment.current_lesson
        )
        part_id = await self.hierarchy.parts.get_id_by_container_and_seq(
            lesson_id, enrollment.current_part
        )
        completion = await self.recompute_completion(enrollment, lesson_id, part_id)
        return completion if completion < COMPLETE_PERCENT else fallback

    def _snapshot(
        self,
        enrollment: Enrollment,
        course: Course,
        position: ClassPosition | None,
    ) -> ClassSnapshot:
        return ClassSnapshot(
            user_id=enrollment.user_id,
            course=course,
            position=position,
            completion=(
                COMPLETE_PERCENT if enrollment.is_completed else enrollment.completion
            ),
            status=EnrollmentStatus(enrollment.status),
        )

    async def _require_enrollment(self, user_id: UUID, course_id: UUID) -> Enrollment:
        enrollment = await self.store.get(user_id, course_id)
        if enrollment is None:
            raise NotEnrolledError
        return enrollment

    async def _require_course(self, course_id: UUID) -> Course:
        course = await self.hierarchy.courses.get_course(course_id)
        if course is None:
            raise CourseNotFoundError
        return course
