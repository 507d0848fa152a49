"""
Enrollment finalization: turn an approved application into a registered
student holding a seat.
"""

from __future__ import annotations

import logging
from datetime import datetime

from django.db import transaction
from django.utils import timezone

from apps.admissions.models import Application, ApplicationStatus
from apps.admissions.services import apply_transition, get_application
from apps.classes import services as capacity_services
from apps.common.exceptions import CapacityExceededError, InvalidTransitionError, RollNumberConflictError
from apps.students import services as student_services
from apps.students.models import Student

logger = logging.getLogger(__name__)


def finalize(
    application_id,
    *,
    section: str,
    blood_group: str,
    actor: str,
    roll_number: int | None = None,
    now: datetime | None = None,
) -> tuple[Student, Application]:
    """
    Enroll an approved application into ``section``.

    Everything happens in one transaction that holds the (class, section)
    capacity row lock: seat check, roll number allocation, seat debit,
    student registration and the ``approved -> enrolled`` transition. Any
    failure rolls all of it back.
    """
    now = now or timezone.now()
    application = get_application(application_id)
    if application.status != ApplicationStatus.APPROVED:
        raise InvalidTransitionError(
            application.status,
            ApplicationStatus.ENROLLED,
            message=f"Only approved applications can be enrolled (current: '{application.status}').",
        )
    class_name = application.class_name

    with transaction.atomic():
        capacity = capacity_services.lock_section(class_name, section)
        if capacity.available_seats <= 0:
            raise CapacityExceededError(class_name, section, capacity.total_seats, capacity.filled_seats)

        if roll_number is None:
            roll_number = student_services.next_roll_number(class_name, section)
        elif student_services.roll_number_taken(class_name, section, roll_number):
            raise RollNumberConflictError(class_name, section, roll_number)

        capacity_services.record_admission(class_name, section)
        student = student_services.register_student(
            application,
            section=section,
            roll_number=roll_number,
            blood_group=blood_group,
            now=now,
        )
        application, _ = apply_transition(
            application,
            ApplicationStatus.ENROLLED,
            actor,
            note=f"Enrolled in {class_name}-{section}, roll {roll_number}",
            student=student,
            now=now,
        )

    logger.info(
        f"Application {application.application_number} enrolled as {student.admission_number} "
        f"({class_name}-{section}, roll {roll_number})"
    )
    return student, application
