from __future__ import annotations

import logging
from datetime import datetime

from django.db import transaction
from django.db.models import F, Sum

from apps.classes.models import ClassCapacity
from apps.common.exceptions import CapacityExceededError, NoSeatsToReleaseError, NotFoundError
from apps.waitlist import services as waitlist_services

logger = logging.getLogger(__name__)


def get_capacity(class_name: str, section: str) -> ClassCapacity:
    try:
        return ClassCapacity.objects.get(class_name=class_name, section=section)
    except ClassCapacity.DoesNotExist:
        raise NotFoundError("Class section", f"{class_name}-{section}")


def lock_section(class_name: str, section: str) -> ClassCapacity:
    """Row-lock the (class, section) ledger until the surrounding transaction ends."""
    try:
        return ClassCapacity.objects.select_for_update().get(class_name=class_name, section=section)
    except ClassCapacity.DoesNotExist:
        raise NotFoundError("Class section", f"{class_name}-{section}")


def available_seats(class_name: str, section: str) -> int:
    return get_capacity(class_name, section).available_seats


@transaction.atomic
def record_admission(class_name: str, section: str) -> ClassCapacity:
    capacity = lock_section(class_name, section)
    updated = ClassCapacity.objects.filter(
        pk=capacity.pk, filled_seats__lt=F("total_seats")
    ).update(filled_seats=F("filled_seats") + 1)
    if not updated:
        raise CapacityExceededError(class_name, section, capacity.total_seats, capacity.filled_seats)
    capacity.refresh_from_db(fields=["filled_seats"])
    logger.info(f"Seat taken in {class_name}-{section}: {capacity.filled_seats}/{capacity.total_seats}")
    return capacity


@transaction.atomic
def record_withdrawal(class_name: str, section: str, *, now: datetime | None = None) -> ClassCapacity:
    """
    Release one seat and offer it to the class waitlist.

    Waitlists are per class, so a seat freed in any section goes to the head of
    the class queue. Only the head can hold an offer, so while it still holds one
    ``promote_head`` leaves the queue alone and a second freed seat is not
    offered to anyone until that offer is resolved.
    """
    capacity = lock_section(class_name, section)
    updated = ClassCapacity.objects.filter(pk=capacity.pk, filled_seats__gt=0).update(
        filled_seats=F("filled_seats") - 1
    )
    if not updated:
        raise NoSeatsToReleaseError(class_name, section)
    capacity.refresh_from_db(fields=["filled_seats"])
    logger.info(f"Seat released in {class_name}-{section}: {capacity.filled_seats}/{capacity.total_seats}")

    if waitlist_services.has_waiting_entries(class_name):
        waitlist_services.promote_head(class_name, now=now)
    return capacity


def class_rollup() -> list[dict]:
    """Per-class totals across sections. Read-only view over the section rows."""
    counts = waitlist_services.waitlist_counts()
    rows = (
        ClassCapacity.objects.order_by("class_name")
        .values("class_name")
        .annotate(seats=Sum("total_seats"), filled=Sum("filled_seats"))
    )
    return [
        {
            "class_name": row["class_name"],
            "total_seats": row["seats"],
            "filled_seats": row["filled"],
            "available_seats": max(row["seats"] - row["filled"], 0),
            "waitlist_count": counts.get(row["class_name"], 0),
        }
        for row in rows
    ]
