from __future__ import annotations

import logging
from datetime import datetime

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Count, F, Q
from django.utils import timezone

from apps.admissions.models import Application, ApplicationNote, ApplicationStatus, StatusChange
from apps.admissions.transitions import INITIAL_STATUS, allowed_targets, can_transition
from apps.common.exceptions import (
    AdmissionError,
    ConcurrentModificationError,
    InvalidTransitionError,
    NotFoundError,
    ProtectedApplicationError,
)
from apps.common.models import SequenceCounter
from apps.waitlist import services as waitlist_services

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "System"

APPLICANT_FIELDS = (
    "student_name",
    "date_of_birth",
    "gender",
    "email",
    "phone",
    "class_name",
    "section",
    "previous_school",
    "previous_class",
    "previous_marks",
    "entrance_exam_score",
    "interview_score",
    "father_name",
    "mother_name",
    "guardian_phone",
    "guardian_email",
)


def get_application(application_id) -> Application:
    try:
        return Application.objects.get(pk=application_id)
    except (Application.DoesNotExist, ValidationError):
        raise NotFoundError("Application", application_id)


@transaction.atomic
def create_application(data: dict, *, actor: str = SYSTEM_ACTOR, now: datetime | None = None) -> Application:
    """
    Register a new application in the initial status.

    Status and version are never taken from ``data``: every application starts
    at ``applied`` with version 1 and a single history entry.
    """
    now = now or timezone.now()
    fields = {name: data[name] for name in APPLICANT_FIELDS if name in data}
    application = Application.objects.create(
        application_number=SequenceCounter.next_code(f"APP{now.year}"),
        status=INITIAL_STATUS,
        version=1,
        **fields,
    )
    StatusChange.objects.create(
        application=application,
        from_status=None,
        to_status=INITIAL_STATUS,
        changed_at=now,
        changed_by=actor,
        note="Application submitted",
    )
    logger.info(f"Application {application.application_number} submitted for {application.class_name}")
    return application


def _raise_write_conflict(application: Application):
    current_version = (
        Application.objects.filter(pk=application.pk).values_list("version", flat=True).first()
    )
    if current_version is None:
        raise NotFoundError("Application", application.pk)
    raise ConcurrentModificationError(application.pk, application.version, current_version)


def _apply_waitlist_side_effects(application: Application, current: str, target: str, now: datetime):
    if target == ApplicationStatus.WAITLISTED:
        waitlist_services.enqueue(application.pk, application.class_name, now=now)
    elif target == ApplicationStatus.APPROVED and current == ApplicationStatus.WAITLISTED:
        # Accepting the offer: the seat goes to this applicant, no re-offer.
        waitlist_services.remove(application.pk, now=now)
    elif target in (ApplicationStatus.REJECTED, ApplicationStatus.WITHDRAWN):
        waitlist_services.remove(application.pk, reoffer=True, now=now)


def apply_transition(
    application: Application,
    target_status: str,
    actor: str,
    note: str = "",
    *,
    student=None,
    now: datetime | None = None,
) -> tuple[Application, StatusChange]:
    """
    Move ``application`` to ``target_status`` and record who did it.

    The write only succeeds if the stored version still equals
    ``application.version``. Status, version, waitlist side effects and the
    history entry commit together or not at all. ``enrolled`` is reserved for
    enrollment finalization, which passes the newly registered ``student``.
    """
    now = now or timezone.now()
    current = application.status

    if target_status not in ApplicationStatus.values:
        raise InvalidTransitionError(
            current, target_status, message=f"Unknown application status '{target_status}'."
        )
    target = ApplicationStatus(target_status)

    if target == current:
        raise InvalidTransitionError(
            current, target, message=f"Application is already '{current}'."
        )
    if not can_transition(current, target):
        raise InvalidTransitionError(current, target, details={"allowed": allowed_targets(current)})
    if target == ApplicationStatus.ENROLLED and student is None:
        raise InvalidTransitionError(
            current,
            target,
            message="Applications are enrolled through enrollment finalization only.",
        )

    changes = {"status": target, "version": F("version") + 1, "updated_at": now}
    if target == ApplicationStatus.ENROLLED:
        changes["enrolled_student"] = student

    with transaction.atomic():
        updated = Application.objects.filter(pk=application.pk, version=application.version).update(
            **changes
        )
        if not updated:
            _raise_write_conflict(application)

        _apply_waitlist_side_effects(application, current, target, now)

        change = StatusChange.objects.create(
            application_id=application.pk,
            from_status=current,
            to_status=target,
            changed_at=now,
            changed_by=actor,
            note=note or "",
        )

    application.refresh_from_db()
    logger.info(
        f"Application {application.application_number}: {current} -> {target} "
        f"by {actor} (version {application.version})"
    )
    return application, change


def update_application(
    application: Application, data: dict, actor: str, *, now: datetime | None = None
) -> Application:
    """
    Edit applicant details under the same version guard as status changes.

    Moving a waitlisted application to another class moves its waitlist entry
    to the tail of the new class's queue. Enrolled applications keep their
    class, since the student already holds a seat in it.
    """
    now = now or timezone.now()
    fields = {name: data[name] for name in APPLICANT_FIELDS if name in data}
    new_class = fields.get("class_name", application.class_name)
    class_changed = new_class != application.class_name

    if class_changed and application.status == ApplicationStatus.ENROLLED:
        raise ProtectedApplicationError(
            "Enrolled applications cannot change class.",
            {"application_id": str(application.pk), "class": application.class_name},
        )

    with transaction.atomic():
        updated = Application.objects.filter(pk=application.pk, version=application.version).update(
            **fields, version=F("version") + 1, updated_at=now
        )
        if not updated:
            _raise_write_conflict(application)
        if class_changed and application.status == ApplicationStatus.WAITLISTED:
            waitlist_services.transfer(application.pk, new_class, now=now)

    application.refresh_from_db()
    logger.info(
        f"Application {application.application_number} updated by {actor} "
        f"({', '.join(sorted(fields)) or 'no fields'})"
    )
    return application


def add_note(application: Application, content: str, actor: str, *, now: datetime | None = None) -> ApplicationNote:
    content = (content or "").strip()
    if not content:
        raise AdmissionError("Note content is required.", {"application_id": str(application.pk)})
    note = ApplicationNote.objects.create(
        application=application,
        content=content,
        created_at=now or timezone.now(),
        created_by=actor,
    )
    logger.info(f"Note added to application {application.application_number} by {actor}")
    return note


@transaction.atomic
def delete_application(application: Application):
    """
    Delete an application that was never enrolled.

    The version-guarded write claims the application row before the waitlist
    lock is taken, the same order ``apply_transition`` uses.
    """
    if application.status == ApplicationStatus.ENROLLED:
        raise ProtectedApplicationError(
            "Enrolled applications cannot be deleted; withdraw the student instead.",
            {"application_id": str(application.pk), "status": application.status},
        )
    claimed = (
        Application.objects.filter(pk=application.pk, version=application.version)
        .exclude(status=ApplicationStatus.ENROLLED)
        .update(version=F("version") + 1)
    )
    if not claimed:
        _raise_write_conflict(application)

    waitlist_services.remove(application.pk, reoffer=True)
    number = application.application_number
    Application.objects.filter(pk=application.pk).delete()
    logger.info(f"Application {number} deleted")


def application_stats(now: datetime | None = None) -> dict:
    now = now or timezone.now()
    month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)

    totals = Application.objects.aggregate(
        total=Count("id"),
        this_month=Count("id", filter=Q(created_at__gte=month_start, created_at__lte=now)),
        pending_review=Count(
            "id",
            filter=Q(status__in=[ApplicationStatus.APPLIED, ApplicationStatus.UNDER_REVIEW]),
        ),
    )
    by_status = {status: 0 for status in ApplicationStatus.values}
    for row in Application.objects.order_by().values("status").annotate(count=Count("id")):
        by_status[row["status"]] = row["count"]
    class_rows = (
        Application.objects.order_by("class_name").values("class_name").annotate(count=Count("id"))
    )
    by_class = {row["class_name"]: row["count"] for row in class_rows}
    return {
        "total": totals["total"],
        "by_status": by_status,
        "by_class": by_class,
        "this_month": totals["this_month"],
        "pending_review": totals["pending_review"],
    }
