"""Tests for the Cassandra enrollment store."""

from datetime import UTC, datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock, patch
from uuid import uuid4

import pytest
from cassandra.cluster import Session

from src.progress.models import Enrollment, EnrollmentStatus
from src.progress.store import CassandraEnrollmentStore


@pytest.fixture
def mock_session():
    """Mock Cassandra session."""
    session = Mock(spec=Session)
    session.prepare = Mock(side_effect=lambda cql: Mock(name=cql.split()[0]))
    # cassandra-asyncio-driver adds aexecute()
    session.aexecute = AsyncMock(return_value=Mock())
    return session


@pytest.fixture
def enrollment_store(mock_session) -> CassandraEnrollmentStore:
    """Store over the mocked session."""
    return CassandraEnrollmentStore(session=mock_session, keyspace="test_keyspace")


@pytest.fixture
def enrollment() -> Enrollment:
    """Enrollment at (2, 1, 3)."""
    return Enrollment(
        user_id=uuid4(),
        course_id=uuid4(),
        current_lesson=2,
        current_part=1,
        current_test=3,
        completion=40.0,
    )


def make_row(**overrides):
    values = {
        "user_id": uuid4(),
        "course_id": uuid4(),
        "current_lesson": 2,
        "current_part": 3,
        "current_test": 1,
        "status": "taken",
        "completion": 12.5,
        "course_start_date": datetime(2026, 1, 10, 8, 30),
        "course_complete_date": None,
        "updated_at": None,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def test_statements_use_keyspace(mock_session, enrollment_store):
    statements = [c.args[0] for c in mock_session.prepare.call_args_list]

    assert all("test_keyspace." in cql for cql in statements)
    assert any("IF NOT EXISTS" in cql for cql in statements)


@pytest.mark.asyncio
class TestReads:
    """Tests for get and listings."""

    async def test_get_missing(self, mock_session, enrollment_store):
        mock_session.aexecute.return_value = Mock(one=Mock(return_value=None))

        assert await enrollment_store.get(uuid4(), uuid4()) is None

    async def test_get_maps_row(self, mock_session, enrollment_store):
        row = make_row()
        mock_session.aexecute.return_value = Mock(one=Mock(return_value=row))

        enrollment = await enrollment_store.get(row.user_id, row.course_id)

        assert enrollment.pointer == (2, 3, 1)
        assert enrollment.status == EnrollmentStatus.TAKEN.value
        assert enrollment.completion == 12.5
        assert enrollment.course_start_date.tzinfo is UTC
        args = mock_session.aexecute.call_args.args[1]
        assert args == [row.course_id, row.user_id]

    async def test_row_nulls_get_defaults(self, mock_session, enrollment_store):
        row = make_row(current_lesson=None, status=None, completion=None)
        mock_session.aexecute.return_value = Mock(one=Mock(return_value=row))

        enrollment = await enrollment_store.get(row.user_id, row.course_id)

        assert enrollment.current_lesson == 1
        assert enrollment.status == EnrollmentStatus.TAKEN.value
        assert enrollment.completion == 0.0

    async def test_list_by_user(self, mock_session, enrollment_store):
        user_id = uuid4()
        mock_session.aexecute.return_value = [
            make_row(user_id=user_id),
            make_row(user_id=user_id),
        ]

        enrollments = await enrollment_store.list_by_user(user_id)

        assert len(enrollments) == 2
        assert all(e.user_id == user_id for e in enrollments)

    async def test_list_by_course_empty(self, mock_session, enrollment_store):
        mock_session.aexecute.return_value = []

        assert await enrollment_store.list_by_course(uuid4()) == []


@pytest.mark.asyncio
class TestWrites:
    """Tests for insert, save and delete."""

    async def test_insert_applied(self, mock_session, enrollment_store, enrollment):
        mock_session.aexecute.return_value = Mock(was_applied=True)

        assert await enrollment_store.insert(enrollment) is True
        assert mock_session.aexecute.await_count == 2
        assert enrollment.updated_at is not None

    async def test_insert_conflict(self, mock_session, enrollment_store, enrollment):
        mock_session.aexecute.return_value = Mock(was_applied=False)

        assert await enrollment_store.insert(enrollment) is False
        assert mock_session.aexecute.await_count == 1

    async def test_insert_rolls_back_when_user_row_fails(
        self, mock_session, enrollment_store, enrollment
    ):
        mock_session.aexecute.side_effect = [
            Mock(was_applied=True),
            TimeoutError("write timeout"),
            Mock(),
        ]

        with pytest.raises(TimeoutError):
            await enrollment_store.insert(enrollment)

        assert mock_session.aexecute.await_count == 3
        rollback = mock_session.aexecute.await_args_list[2]
        assert rollback.args == (
            enrollment_store._delete_enrollment,
            [enrollment.course_id, enrollment.user_id],
        )

    async def test_save_writes_both_tables_in_one_batch(
        self, mock_session, enrollment_store, enrollment
    ):
        with patch("src.progress.store.BatchStatement") as batch_cls:
            saved = await enrollment_store.save(enrollment)

        batch = batch_cls.return_value
        assert saved is enrollment
        assert saved.updated_at is not None
        assert batch.add.call_count == 2
        mock_session.aexecute.assert_awaited_once_with(batch)

        by_course, by_user = (c.args[1] for c in batch.add.call_args_list)
        assert by_course[:2] == [enrollment.course_id, enrollment.user_id]
        assert by_user[:2] == [enrollment.user_id, enrollment.course_id]
        assert by_course[2:] == by_user[2:]
        assert by_course[2:5] == [2, 1, 3]

    async def test_delete_removes_both_rows(
        self, mock_session, enrollment_store, enrollment
    ):
        with patch("src.progress.store.BatchStatement") as batch_cls:
            await enrollment_store.delete(enrollment.user_id, enrollment.course_id)

        batch = batch_cls.return_value
        assert batch.add.call_count == 2
        mock_session.aexecute.assert_awaited_once_with(batch)
