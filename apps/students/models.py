from django.db import models
from django.utils import timezone

from apps.common.models import TimeStampedModel

GENDER_CHOICES = [("male", "Male"), ("female", "Female")]


class BloodGroup(models.TextChoices):
    A_POSITIVE = "A+", "A+"
    A_NEGATIVE = "A-", "A-"
    B_POSITIVE = "B+", "B+"
    B_NEGATIVE = "B-", "B-"
    AB_POSITIVE = "AB+", "AB+"
    AB_NEGATIVE = "AB-", "AB-"
    O_POSITIVE = "O+", "O+"
    O_NEGATIVE = "O-", "O-"


class StudentStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    WITHDRAWN = "withdrawn", "Withdrawn"


class Student(TimeStampedModel):
    admission_number = models.CharField(max_length=20, unique=True, db_index=True)
    name = models.CharField(max_length=255)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=20, blank=True)
    date_of_birth = models.DateField(null=True, blank=True)
    gender = models.CharField(max_length=10, choices=GENDER_CHOICES, blank=True)
    blood_group = models.CharField(max_length=3, choices=BloodGroup.choices)

    class_name = models.CharField(max_length=50)
    section = models.CharField(max_length=10)
    roll_number = models.PositiveIntegerField()

    father_name = models.CharField(max_length=255, blank=True)
    mother_name = models.CharField(max_length=255, blank=True)
    guardian_phone = models.CharField(max_length=20, blank=True)
    guardian_email = models.EmailField(blank=True)

    admission_date = models.DateTimeField(default=timezone.now)
    status = models.CharField(
        max_length=20, choices=StudentStatus.choices, default=StudentStatus.ACTIVE
    )
    withdrawn_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["class_name", "section", "roll_number"]
        indexes = [
            models.Index(fields=["class_name", "section"], name="student_class_section_idx"),
            models.Index(fields=["status"], name="student_status_idx"),
        ]
        constraints = [
            # Withdrawn students release their roll number.
            models.UniqueConstraint(
                fields=["class_name", "section", "roll_number"],
                condition=models.Q(status="active"),
                name="unique_active_roll_number",
            )
        ]

    def __str__(self):
        return f"{self.admission_number} - {self.name} ({self.class_name}-{self.section} #{self.roll_number})"
