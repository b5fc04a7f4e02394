"""Tests for the enrollment HTTP endpoints."""

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from src.main import app
from src.progress.dependencies import get_progress_service


@pytest.fixture
def api(client: TestClient, service) -> TestClient:
    """Client with the in-memory progress service injected."""
    app.dependency_overrides[get_progress_service] = lambda: service
    return client


def enroll(api: TestClient, user_id, course_id):
    return api.post(
        "/v1/enrollments",
        json={"user_id": str(user_id), "course_id": str(course_id)},
    )


class TestEnrollEndpoint:
    """Tests for POST /v1/enrollments."""

    def test_enroll(self, api, catalog, user_id):
        course = catalog.build_course([[2], [1]])

        response = enroll(api, user_id, course.id)

        assert response.status_code == 201
        data = response.json()
        assert data["course"]["id"] == str(course.id)
        assert data["current_lesson"]["seq_num"] == 1
        assert data["current_part"]["seq_num"] == 1
        assert data["current_test"]["question"] == "Pergunta 1"
        assert "correct_alternative" not in data["current_test"]
        assert data["completion"] == 0.0
        assert data["status"] == "taken"
        assert data["finished"] is False

    def test_enroll_unknown_course(self, api, user_id):
        response = enroll(api, user_id, uuid4())

        assert response.status_code == 404
        assert response.json()["message"] == "Curso nao encontrado"

    def test_enroll_twice(self, api, catalog, user_id):
        course = catalog.build_course([[1]])
        enroll(api, user_id, course.id)

        response = enroll(api, user_id, course.id)

        assert response.status_code == 409

    def test_enroll_invalid_body(self, api):
        response = api.post("/v1/enrollments", json={"user_id": "nope"})

        assert response.status_code == 422
        assert response.json()["message"] == "Validation error"

    def test_service_unavailable(self, client, user_id):
        app.state.progress_service = None

        response = enroll(client, user_id, uuid4())

        assert response.status_code == 503


class TestClassEndpoints:
    """Tests for the next-class endpoints."""

    def test_attend_next_class(self, api, catalog, user_id):
        course = catalog.build_course([[1]])
        enroll(api, user_id, course.id)

        response = api.get(f"/v1/enrollments/{user_id}/{course.id}/class")

        assert response.status_code == 200
        assert response.json()["current_test"]["seq_num"] == 1

    def test_attend_not_enrolled(self, api, catalog, user_id):
        course = catalog.build_course([[1]])

        response = api.get(f"/v1/enrollments/{user_id}/{course.id}/class")

        assert response.status_code == 404

    def test_complete_until_finished(self, api, catalog, user_id):
        course = catalog.build_course([[1], [1]])
        enroll(api, user_id, course.id)
        url = f"/v1/enrollments/{user_id}/{course.id}/class/complete"

        first = api.post(url).json()
        second = api.post(url).json()

        assert first["current_lesson"]["seq_num"] == 2
        assert first["completion"] == 50.0
        assert second["finished"] is True
        assert second["status"] == "completed"
        assert second["completion"] == 100.0
        assert second["current_lesson"] is None
        assert second["current_test"] is None


class TestEnrollmentRecordEndpoints:
    """Tests for get, listing, update and delete."""

    def test_get_enrollment(self, api, catalog, user_id):
        course = catalog.build_course([[1]])
        enroll(api, user_id, course.id)

        response = api.get(f"/v1/enrollments/{user_id}/{course.id}")

        assert response.status_code == 200
        data = response.json()
        assert data["current_lesson"] == 1
        assert data["status"] == "taken"
        assert data["course_complete_date"] is None

    def test_get_not_enrolled(self, api, user_id):
        response = api.get(f"/v1/enrollments/{user_id}/{uuid4()}")

        assert response.status_code == 404
        assert response.json()["message"] == "Usuario nao inscrito no curso"

    def test_list_by_user(self, api, catalog, user_id):
        for _ in range(2):
            enroll(api, user_id, catalog.build_course([[1]]).id)

        response = api.get(f"/v1/enrollments/users/{user_id}")

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert {item["user_id"] for item in data["items"]} == {str(user_id)}

    def test_list_by_course_empty(self, api):
        response = api.get(f"/v1/enrollments/courses/{uuid4()}")

        assert response.status_code == 200
        assert response.json() == {"items": [], "total": 0}

    def test_update(self, api, catalog, user_id):
        course = catalog.build_course([[1], [1]])
        enroll(api, user_id, course.id)

        response = api.patch(
            f"/v1/enrollments/{user_id}/{course.id}",
            json={"current_lesson": 2, "completion": 50},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["current_lesson"] == 2
        assert data["completion"] == 50.0

    def test_update_breaking_rules(self, api, catalog, user_id):
        course = catalog.build_course([[1]])
        enroll(api, user_id, course.id)

        response = api.patch(
            f"/v1/enrollments/{user_id}/{course.id}", json={"completion": 100}
        )

        assert response.status_code == 422
        assert "Conclusao" in response.json()["message"]

    @pytest.mark.parametrize(
        "body",
        [
            {"current_lesson": 0},
            {"completion": 120},
            {"status": "paused"},
            {"course_start_date": "2026-01-01T00:00:00Z"},
        ],
    )
    def test_update_invalid_body(self, api, catalog, user_id, body):
        course = catalog.build_course([[1]])
        enroll(api, user_id, course.id)

        response = api.patch(f"/v1/enrollments/{user_id}/{course.id}", json=body)

        assert response.status_code == 422
        assert response.json()["message"] == "Validation error"

    def test_unenroll(self, api, catalog, user_id):
        course = catalog.build_course([[1]])
        enroll(api, user_id, course.id)

        response = api.delete(f"/v1/enrollments/{user_id}/{course.id}")

        assert response.status_code == 204
        assert api.get(f"/v1/enrollments/{user_id}/{course.id}").status_code == 404

    def test_unenroll_missing(self, api, user_id):
        response = api.delete(f"/v1/enrollments/{user_id}/{uuid4()}")

        assert response.status_code == 204
