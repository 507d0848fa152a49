"""
FIFO waitlist per class.

Positions are 1-based and contiguous within a class. Every mutation takes the
class's ClassWaitlist row lock first, so readers never see a gap or a
duplicate position. Only the head of a class's queue can hold an offer.
"""

from __future__ import annotations

import logging
from datetime import datetime

from django.conf import settings
from django.db import transaction
from django.db.models import Count, F
from django.utils import timezone

from apps.classes.models import ClassCapacity
from apps.common.exceptions import AlreadyWaitlistedError, NotFoundError
from apps.waitlist.models import ClassWaitlist, WaitlistEntry, WaitlistStatus

logger = logging.getLogger(__name__)


def _head(class_name: str) -> WaitlistEntry | None:
    return WaitlistEntry.objects.filter(class_name=class_name).order_by("position").first()


def _drop(entry: WaitlistEntry):
    """Delete ``entry`` and close the gap it leaves. Caller holds the class lock."""
    WaitlistEntry.objects.filter(pk=entry.pk).delete()
    WaitlistEntry.objects.filter(class_name=entry.class_name, position__gt=entry.position).update(
        position=F("position") - 1
    )


@transaction.atomic
def enqueue(application_id, class_name: str, *, now: datetime | None = None) -> WaitlistEntry:
    now = now or timezone.now()
    if not ClassCapacity.objects.filter(class_name=class_name).exists():
        raise NotFoundError("Class", class_name)

    ClassWaitlist.lock(class_name)
    existing = WaitlistEntry.objects.filter(application_id=application_id).first()
    if existing is not None:
        raise AlreadyWaitlistedError(application_id, existing.class_name, existing.position)

    position = WaitlistEntry.objects.filter(class_name=class_name).count() + 1
    entry = WaitlistEntry.objects.create(
        application_id=application_id,
        class_name=class_name,
        position=position,
        added_at=now,
    )
    logger.info(f"Waitlisted application {application_id} for {class_name} at position {position}")
    return entry


@transaction.atomic
def remove(application_id, *, reoffer: bool = False, now: datetime | None = None) -> WaitlistEntry | None:
    """
    Take an application off its class waitlist, if it is on one.

    With ``reoffer`` set, an offer held by the removed entry passes to the new
    head. Acceptance removes without re-offering since the seat is being taken.
    """
    class_name = (
        WaitlistEntry.objects.filter(application_id=application_id)
        .values_list("class_name", flat=True)
        .first()
    )
    if class_name is None:
        return None

    ClassWaitlist.lock(class_name)
    entry = WaitlistEntry.objects.filter(application_id=application_id).first()
    if entry is None:
        return None

    _drop(entry)
    logger.info(f"Removed application {application_id} from {class_name} waitlist (position {entry.position})")
    if reoffer and entry.status == WaitlistStatus.OFFERED:
        promote_head(class_name, now=now)
    return entry


@transaction.atomic
def transfer(application_id, class_name: str, *, now: datetime | None = None) -> WaitlistEntry | None:
    """
    Move an application's entry to the tail of another class's queue.

    Both class locks are taken in name order. An offer held in the old class
    passes to that class's new head; the moved entry starts out waiting.
    """
    now = now or timezone.now()
    old_class = (
        WaitlistEntry.objects.filter(application_id=application_id)
        .values_list("class_name", flat=True)
        .first()
    )
    if old_class is None or old_class == class_name:
        return WaitlistEntry.objects.filter(application_id=application_id).first()
    if not ClassCapacity.objects.filter(class_name=class_name).exists():
        raise NotFoundError("Class", class_name)

    for name in sorted({old_class, class_name}):
        ClassWaitlist.lock(name)
    entry = WaitlistEntry.objects.filter(application_id=application_id, class_name=old_class).first()
    if entry is None:
        return None

    _drop(entry)
    moved = WaitlistEntry.objects.create(
        application_id=application_id,
        class_name=class_name,
        position=WaitlistEntry.objects.filter(class_name=class_name).count() + 1,
        added_at=now,
    )
    logger.info(
        f"Moved application {application_id} from {old_class} waitlist to {class_name} "
        f"at position {moved.position}"
    )
    if entry.status == WaitlistStatus.OFFERED:
        promote_head(old_class, now=now)
    return moved


@transaction.atomic
def promote_head(class_name: str, *, now: datetime | None = None) -> WaitlistEntry | None:
    """
    Offer a freed seat to the head of the queue.

    No-op on an empty queue or when the head already holds an offer.
    """
    now = now or timezone.now()
    ClassWaitlist.lock(class_name)
    head = _head(class_name)
    if head is None or head.status != WaitlistStatus.WAITING:
        return head

    head.status = WaitlistStatus.OFFERED
    head.offered_at = now
    head.offer_expires_at = now + settings.WAITLIST_OFFER_WINDOW
    head.save(update_fields=["status", "offered_at", "offer_expires_at"])
    logger.info(
        f"Seat offered to application {head.application_id} ({class_name}), "
        f"expires {head.offer_expires_at.isoformat()}"
    )
    return head


@transaction.atomic
def _expire_class(class_name: str, now: datetime) -> list[WaitlistEntry]:
    ClassWaitlist.lock(class_name)
    expired = []
    head = _head(class_name)
    while head is not None and head.offer_lapsed(now):
        head.status = WaitlistStatus.EXPIRED
        _drop(head)
        expired.append(head)
        logger.info(f"Offer to application {head.application_id} ({class_name}) expired")
        head = promote_head(class_name, now=now)
    return expired


def expire_offers(*, now: datetime | None = None, class_name: str | None = None) -> list[WaitlistEntry]:
    """
    Expire every lapsed offer and cascade each seat to the next applicant.

    Returns the expired entries (already removed from their queues).
    """
    now = now or timezone.now()
    lapsed = WaitlistEntry.objects.filter(status=WaitlistStatus.OFFERED, offer_expires_at__lte=now)
    if class_name:
        lapsed = lapsed.filter(class_name=class_name)

    expired = []
    for name in sorted(set(lapsed.values_list("class_name", flat=True))):
        expired.extend(_expire_class(name, now))
    return expired


def entries_for_class(class_name: str, *, now: datetime | None = None):
    if settings.WAITLIST_EXPIRE_ON_READ:
        expire_offers(now=now, class_name=class_name)
    return (
        WaitlistEntry.objects.filter(class_name=class_name)
        .select_related("application")
        .order_by("position")
    )


def waitlist_count(class_name: str) -> int:
    return WaitlistEntry.objects.filter(class_name=class_name).count()


def waitlist_counts() -> dict[str, int]:
    rows = WaitlistEntry.objects.order_by().values("class_name").annotate(count=Count("id"))
    return {row["class_name"]: row["count"] for row in rows}


def has_waiting_entries(class_name: str) -> bool:
    return WaitlistEntry.objects.filter(class_name=class_name, status=WaitlistStatus.WAITING).exists()
