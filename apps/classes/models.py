from django.db import models

from apps.common.models import TimeStampedModel


class ClassCapacity(TimeStampedModel):
    """Seat ledger for one section of a class."""

    class_name = models.CharField(max_length=50)
    section = models.CharField(max_length=10)
    total_seats = models.PositiveIntegerField()
    filled_seats = models.PositiveIntegerField(default=0)

    class Meta:
        unique_together = (("class_name", "section"),)
        ordering = ["class_name", "section"]
        indexes = [models.Index(fields=["class_name"], name="capacity_class_idx")]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(filled_seats__lte=models.F("total_seats")),
                name="capacity_filled_within_total",
            )
        ]
        verbose_name_plural = "class capacities"

    @property
    def available_seats(self) -> int:
        return max(self.total_seats - self.filled_seats, 0)

    def __str__(self):
        return f"{self.class_name} - {self.section} ({self.filled_seats}/{self.total_seats})"
