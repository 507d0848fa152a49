from django.db import models
from django.utils import timezone


class WaitlistStatus(models.TextChoices):
    WAITING = "waiting", "Waiting"
    OFFERED = "offered", "Offered"
    EXPIRED = "expired", "Expired"


class ClassWaitlist(models.Model):
    """Per-class lock row; every waitlist mutation for a class locks it first."""

    class_name = models.CharField(max_length=50, unique=True)

    @classmethod
    def lock(cls, class_name: str) -> "ClassWaitlist":
        queue, _ = cls.objects.select_for_update().get_or_create(class_name=class_name)
        return queue

    def __str__(self):
        return f"Waitlist {self.class_name}"


class WaitlistEntry(models.Model):
    application = models.OneToOneField(
        "admissions.Application", on_delete=models.CASCADE, related_name="waitlist_entry"
    )
    class_name = models.CharField(max_length=50)
    position = models.PositiveIntegerField()
    added_at = models.DateTimeField(default=timezone.now)
    status = models.CharField(
        max_length=10, choices=WaitlistStatus.choices, default=WaitlistStatus.WAITING
    )
    offered_at = models.DateTimeField(null=True, blank=True)
    offer_expires_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["class_name", "position"]
        verbose_name_plural = "waitlist entries"
        indexes = [
            models.Index(fields=["class_name", "position"], name="waitlist_class_position_idx"),
            models.Index(fields=["status", "offer_expires_at"], name="waitlist_offer_expiry_idx"),
        ]

    def __str__(self):
        return f"{self.class_name} #{self.position} ({self.status})"

    def offer_lapsed(self, now) -> bool:
        return (
            self.status == WaitlistStatus.OFFERED
            and self.offer_expires_at is not None
            and self.offer_expires_at <= now
        )
