"""Enrollment and course progression API endpoints.

Provides routes for:
- Course enrollment
- Next-class navigation and class completion
- Enrollment queries and listings
- Administrative update and unenrollment
"""

from uuid import UUID

from fastapi import APIRouter, Response, status

from .dependencies import ProgressServiceDep, handle_progress_error
from .schemas import (
    ClassSnapshotResponse,
    EnrollmentListResponse,
    EnrollmentResponse,
    EnrollRequest,
    UpdateEnrollmentRequest,
)
from .service import ProgressError


router = APIRouter(prefix="/v1/enrollments", tags=["enrollments"])


# ==============================================================================
# Enrollment Endpoints
# ==============================================================================


@router.post(
    "",
    response_model=ClassSnapshotResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Enroll in course",
)
async def enroll(
    data: EnrollRequest,
    progress_service: ProgressServiceDep,
) -> ClassSnapshotResponse:
    """Enroll a user in a course.

    Returns the first class the learner should attend. A course with no
    content is completed on the spot.
    """
    try:
        snapshot = await progress_service.enroll(
            user_id=data.user_id,
            course_id=data.course_id,
        )
        return ClassSnapshotResponse.from_snapshot(snapshot)
    except ProgressError as e:
        raise handle_progress_error(e) from e


# ==============================================================================
# Listing Endpoints
# ==============================================================================


@router.get(
    "/users/{user_id}",
    response_model=EnrollmentListResponse,
    summary="List enrollments of a user",
)
async def list_user_enrollments(
    user_id: UUID,
    progress_service: ProgressServiceDep,
) -> EnrollmentListResponse:
    """Get every course a user is enrolled in."""
    try:
        enrollments = await progress_service.list_by_user(user_id)
        return EnrollmentListResponse.from_entities(enrollments)
    except ProgressError as e:
        raise handle_progress_error(e) from e


@router.get(
    "/courses/{course_id}",
    response_model=EnrollmentListResponse,
    summary="List enrollments in a course",
)
async def list_course_enrollments(
    course_id: UUID,
    progress_service: ProgressServiceDep,
) -> EnrollmentListResponse:
    """Get every learner enrolled in a course."""
    try:
        enrollments = await progress_service.list_by_course(course_id)
        return EnrollmentListResponse.from_entities(enrollments)
    except ProgressError as e:
        raise handle_progress_error(e) from e


# ==============================================================================
# Single Enrollment Endpoints
# ==============================================================================


@router.get(
    "/{user_id}/{course_id}",
    response_model=EnrollmentResponse,
    summary="Get enrollment",
)
async def get_enrollment(
    user_id: UUID,
    course_id: UUID,
    progress_service: ProgressServiceDep,
) -> EnrollmentResponse:
    """Get the stored enrollment record without advancing it."""
    try:
        enrollment = await progress_service.get_enrollment(user_id, course_id)
        return EnrollmentResponse.from_entity(enrollment)
    except ProgressError as e:
        raise handle_progress_error(e) from e


@router.patch(
    "/{user_id}/{course_id}",
    response_model=EnrollmentResponse,
    summary="Update enrollment",
)
async def update_enrollment(
    user_id: UUID,
    course_id: UUID,
    data: UpdateEnrollmentRequest,
    progress_service: ProgressServiceDep,
) -> EnrollmentResponse:
    """Apply an administrative correction to an enrollment.

    Only the fields present in the body are changed.
    """
    try:
        enrollment = await progress_service.update(
            user_id, course_id, data.changes()
        )
        return EnrollmentResponse.from_entity(enrollment)
    except ProgressError as e:
        raise handle_progress_error(e) from e


@router.delete(
    "/{user_id}/{course_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Unenroll",
)
async def unenroll(
    user_id: UUID,
    course_id: UUID,
    progress_service: ProgressServiceDep,
) -> Response:
    """Remove an enrollment. Removing a missing enrollment is a no-op."""
    try:
        await progress_service.unenroll(user_id, course_id)
    except ProgressError as e:
        raise handle_progress_error(e) from e
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ==============================================================================
# Progression Endpoints
# ==============================================================================


@router.get(
    "/{user_id}/{course_id}/class",
    response_model=ClassSnapshotResponse,
    summary="Attend next class",
)
async def attend_next_class(
    user_id: UUID,
    course_id: UUID,
    progress_service: ProgressServiceDep,
) -> ClassSnapshotResponse:
    """Get the class the learner should attend now.

    Stale positions left by catalog edits are repaired before returning.
    """
    try:
        snapshot = await progress_service.attend_next_class(user_id, course_id)
        return ClassSnapshotResponse.from_snapshot(snapshot)
    except ProgressError as e:
        raise handle_progress_error(e) from e


@router.post(
    "/{user_id}/{course_id}/class/complete",
    response_model=ClassSnapshotResponse,
    summary="Complete current class",
)
async def complete_current_class(
    user_id: UUID,
    course_id: UUID,
    progress_service: ProgressServiceDep,
) -> ClassSnapshotResponse:
    """Mark the current class as done and return the next one."""
    try:
        snapshot = await progress_service.complete_current_class(user_id, course_id)
        return ClassSnapshotResponse.from_snapshot(snapshot)
    except ProgressError as e:
        raise handle_progress_error(e) from e
