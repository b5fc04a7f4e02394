"""Course progression module.

Provides:
- Enrollment records with a (lesson, part, test) pointer
- The progression engine: next-class navigation, carry and completion
- Enrollment listing, administrative update and removal
"""

from .models import (
    PROGRESS_TABLES_CQL,
    ClassPosition,
    ClassSnapshot,
    Enrollment,
    EnrollmentStatus,
)
from .service import ProgressError, ProgressService, calculate_completion
from .store import CassandraEnrollmentStore, EnrollmentStore


__all__ = [
    "PROGRESS_TABLES_CQL",
    "CassandraEnrollmentStore",
    "ClassPosition",
    "ClassSnapshot",
    "Enrollment",
    "EnrollmentStatus",
    "EnrollmentStore",
    "ProgressError",
    "ProgressService",
    "calculate_completion",
]
