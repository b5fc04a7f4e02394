"""Enrollment persistence.

Provides:
- EnrollmentStore: create/read/update/delete of enrollments keyed by
  (user_id, course_id), plus listing by user and by course
- CassandraEnrollmentStore: dual-table implementation (enrollments by
  course, enrollments_by_user) with logged batches for atomic writes
"""

from abc import ABC, abstractmethod
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

import structlog
from cassandra.query import BatchStatement, BatchType

from .models import Enrollment


if TYPE_CHECKING:
    from cassandra.cluster import Session

logger = structlog.get_logger(__name__)


class EnrollmentStore(ABC):
    """Storage contract for enrollment records."""

    @abstractmethod
    async def get(self, user_id: UUID, course_id: UUID) -> Enrollment | None:
        """Return the enrollment for (user, course), or None."""
        raise NotImplementedError

    @abstractmethod
    async def insert(self, enrollment: Enrollment) -> bool:
        """Create the record only if none exists for its key.

        Returns:
            True if created, False if an enrollment already existed
        """
        raise NotImplementedError

    @abstractmethod
    async def save(self, enrollment: Enrollment) -> Enrollment:
        """Write every field of the record in a single atomic unit."""
        raise NotImplementedError

    @abstractmethod
    async def delete(self, user_id: UUID, course_id: UUID) -> None:
        """Remove the record. Deleting a missing key is not an error."""
        raise NotImplementedError

    @abstractmethod
    async def list_by_user(self, user_id: UUID) -> list[Enrollment]:
        """Return every enrollment of a user."""
        raise NotImplementedError

    @abstractmethod
    async def list_by_course(self, course_id: UUID) -> list[Enrollment]:
        """Return every enrollment in a course."""
        raise NotImplementedError


class CassandraEnrollmentStore(EnrollmentStore):
    """Enrollment store over the enrollments / enrollments_by_user tables."""

    COLUMNS = (
        "current_lesson, current_part, current_test, status, completion, "
        "course_start_date, course_complete_date, updated_at"
    )

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._get_enrollment = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.enrollments
            WHERE course_id = ? AND user_id = ?
        """)

        self._get_course_enrollments = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.enrollments
            WHERE course_id = ?
        """)

        self._get_user_enrollments = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.enrollments_by_user
            WHERE user_id = ?
        """)

        # Lightweight transaction: only one creator wins per key
        self._insert_enrollment = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.enrollments
            (course_id, user_id, {self.COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)

        self._upsert_enrollment = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.enrollments
            (course_id, user_id, {self.COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)

        self._upsert_enrollment_by_user = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.enrollments_by_user
            (user_id, course_id, {self.COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)

        self._delete_enrollment = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.enrollments
            WHERE course_id = ? AND user_id = ?
        """)

        self._delete_enrollment_by_user = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.enrollments_by_user
            WHERE user_id = ? AND course_id = ?
        """)

    @staticmethod
    def _values(enrollment: Enrollment) -> list:
        return [
            enrollment.current_lesson,
            enrollment.current_part,
            enrollment.current_test,
            enrollment.status,
            enrollment.completion,
            enrollment.course_start_date,
            enrollment.course_complete_date,
            enrollment.updated_at,
        ]

    async def get(self, user_id: UUID, course_id: UUID) -> Enrollment | None:
        result = await self.session.aexecute(self._get_enrollment, [course_id, user_id])
        row = result.one()
        return Enrollment.from_row(row) if row else None

    async def insert(self, enrollment: Enrollment) -> bool:
        enrollment.updated_at = datetime.now(UTC)
        result = await self.session.aexecute(
            self._insert_enrollment,
            [enrollment.course_id, enrollment.user_id, *self._values(enrollment)],
        )
        if not result.was_applied:
            logger.info(
                "enrollment_insert_conflict",
                user_id=str(enrollment.user_id),
                course_id=str(enrollment.course_id),
            )
            return False

        # A conditional batch cannot span both tables, so undo the claim on failure
        try:
            await self.session.aexecute(
                self._upsert_enrollment_by_user,
                [enrollment.user_id, enrollment.course_id, *self._values(enrollment)],
            )
        except Exception as e:
            logger.warning(
                "enrollment_insert_rolled_back",
                user_id=str(enrollment.user_id),
                course_id=str(enrollment.course_id),
                error=str(e),
            )
            await self.session.aexecute(
                self._delete_enrollment,
                [enrollment.course_id, enrollment.user_id],
            )
            raise
        return True

    async def save(self, enrollment: Enrollment) -> Enrollment:
        enrollment.updated_at = datetime.now(UTC)
        values = self._values(enrollment)

        batch = BatchStatement(batch_type=BatchType.LOGGED)
        batch.add(
            self._upsert_enrollment,
            [enrollment.course_id, enrollment.user_id, *values],
        )
        batch.add(
            self._upsert_enrollment_by_user,
            [enrollment.user_id, enrollment.course_id, *values],
        )
        await self.session.aexecute(batch)
        return enrollment

    async def delete(self, user_id: UUID, course_id: UUID) -> None:
        batch = BatchStatement(batch_type=BatchType.LOGGED)
        batch.add(self._delete_enrollment, [course_id, user_id])
        batch.add(self._delete_enrollment_by_user, [user_id, course_id])
        await self.session.aexecute(batch)

    async def list_by_user(self, user_id: UUID) -> list[Enrollment]:
        rows = await self.session.aexecute(self._get_user_enrollments, [user_id])
        return [Enrollment.from_row(row) for row in rows]

    async def list_by_course(self, course_id: UUID) -> list[Enrollment]:
        rows = await self.session.aexecute(self._get_course_enrollments, [course_id])
        return [Enrollment.from_row(row) for row in rows]
