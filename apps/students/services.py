from __future__ import annotations

import logging
from datetime import datetime

from django.db import IntegrityError, transaction
from django.db.models import Max
from django.utils import timezone

from apps.classes.services import record_withdrawal
from apps.common.exceptions import AdmissionError, NotFoundError, RollNumberConflictError
from apps.common.models import SequenceCounter
from apps.students.models import Student, StudentStatus

logger = logging.getLogger(__name__)


def get_student(student_id) -> Student:
    try:
        return Student.objects.get(pk=student_id)
    except Student.DoesNotExist:
        raise NotFoundError("Student", student_id)


def _active_in_section(class_name: str, section: str):
    return Student.objects.filter(class_name=class_name, section=section, status=StudentStatus.ACTIVE)


def next_roll_number(class_name: str, section: str) -> int:
    """
    Highest active roll number in the section plus one.

    Only a hint when called outside the section lock: enrollment allocates
    the authoritative number while holding the capacity row.
    """
    current = _active_in_section(class_name, section).aggregate(top=Max("roll_number"))["top"]
    return (current or 0) + 1


def roll_number_taken(class_name: str, section: str, roll_number: int) -> bool:
    return _active_in_section(class_name, section).filter(roll_number=roll_number).exists()


def register_student(
    application,
    *,
    section: str,
    roll_number: int,
    blood_group: str,
    now: datetime | None = None,
) -> Student:
    now = now or timezone.now()
    try:
        with transaction.atomic():
            student = Student.objects.create(
                admission_number=SequenceCounter.next_code(f"ADM{now.year}"),
                name=application.student_name,
                email=application.email,
                phone=application.phone,
                date_of_birth=application.date_of_birth,
                gender=application.gender,
                blood_group=blood_group,
                class_name=application.class_name,
                section=section,
                roll_number=roll_number,
                father_name=application.father_name,
                mother_name=application.mother_name,
                guardian_phone=application.guardian_phone,
                guardian_email=application.guardian_email,
                admission_date=now,
            )
    except IntegrityError:
        if roll_number_taken(application.class_name, section, roll_number):
            raise RollNumberConflictError(application.class_name, section, roll_number)
        raise
    logger.info(
        f"Registered student {student.admission_number} in {student.class_name}-{section} "
        f"roll {roll_number}"
    )
    return student


@transaction.atomic
def withdraw_student(student: Student, actor: str, *, now: datetime | None = None) -> Student:
    """Mark an active student withdrawn and release their seat."""
    now = now or timezone.now()
    updated = Student.objects.filter(pk=student.pk, status=StudentStatus.ACTIVE).update(
        status=StudentStatus.WITHDRAWN, withdrawn_at=now, updated_at=now
    )
    if not updated:
        raise AdmissionError(
            f"Student {student.admission_number} is not active.",
            {"student_id": student.pk, "status": student.status},
        )
    record_withdrawal(student.class_name, student.section, now=now)
    student.refresh_from_db()
    logger.info(f"Student {student.admission_number} withdrawn by {actor}")
    return student
