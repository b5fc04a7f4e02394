"""Tests for the request context middleware."""

from uuid import uuid4

from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.core.context import get_context
from src.core.middleware import RequestContextMiddleware, enrollment_key_from_path


def build_app() -> FastAPI:
    app = FastAPI()
    app.add_middleware(RequestContextMiddleware)

    @app.get("/v1/enrollments/{user_id}/{course_id}/class")
    async def seen_context(user_id: str, course_id: str) -> dict:
        return get_context()

    @app.get("/health/live")
    async def live() -> dict:
        return get_context()

    return app


class TestEnrollmentKeyFromPath:
    """Tests for enrollment_key_from_path()."""

    def test_enrollment_paths(self):
        user_id, course_id = uuid4(), uuid4()

        assert enrollment_key_from_path(f"/v1/enrollments/{user_id}/{course_id}") == (
            user_id,
            course_id,
        )
        assert enrollment_key_from_path(
            f"/v1/enrollments/{user_id}/{course_id}/class/complete"
        ) == (user_id, course_id)

    def test_other_paths(self):
        assert enrollment_key_from_path(f"/v1/enrollments/users/{uuid4()}") is None
        assert enrollment_key_from_path("/v1/enrollments/") is None
        assert enrollment_key_from_path("/health/ready") is None


class TestRequestContextMiddleware:
    """Tests for the bound request context."""

    def test_binds_enrollment_key(self):
        user_id, course_id = uuid4(), uuid4()

        with TestClient(build_app()) as client:
            response = client.get(
                f"/v1/enrollments/{user_id}/{course_id}/class",
                headers={"X-Request-ID": "req-1", "X-Correlation-ID": "corr-1"},
            )

        assert response.status_code == 200
        assert response.headers["X-Request-ID"] == "req-1"
        assert response.json() == {
            "request_id": "req-1",
            "user_id": str(user_id),
            "course_id": str(course_id),
            "correlation_id": "corr-1",
        }

    def test_generates_request_id(self):
        with TestClient(build_app()) as client:
            response = client.get("/health/live")

        data = response.json()
        assert data["request_id"]
        assert response.headers["X-Request-ID"] == data["request_id"]
        assert "user_id" not in data
