import uuid

from django.core.exceptions import ObjectDoesNotExist
from django.db import models
from django.utils import timezone

from apps.common.models import TimeStampedModel
from apps.students.models import GENDER_CHOICES


class ApplicationStatus(models.TextChoices):
    APPLIED = "applied", "Applied"
    UNDER_REVIEW = "under_review", "Under Review"
    DOCUMENT_VERIFICATION = "document_verification", "Document Verification"
    ENTRANCE_EXAM = "entrance_exam", "Entrance Exam"
    INTERVIEW = "interview", "Interview"
    APPROVED = "approved", "Approved"
    WAITLISTED = "waitlisted", "Waitlisted"
    REJECTED = "rejected", "Rejected"
    ENROLLED = "enrolled", "Enrolled"
    WITHDRAWN = "withdrawn", "Withdrawn"


class Application(TimeStampedModel):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    application_number = models.CharField(max_length=20, unique=True, db_index=True)

    student_name = models.CharField(max_length=255)
    date_of_birth = models.DateField(null=True, blank=True)
    gender = models.CharField(max_length=10, choices=GENDER_CHOICES, blank=True)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=20, blank=True)

    class_name = models.CharField(max_length=50, help_text="Class the applicant is applying for")
    section = models.CharField(max_length=10, blank=True, help_text="Preferred section, if any")
    previous_school = models.CharField(max_length=255, blank=True)
    previous_class = models.CharField(max_length=50, blank=True)
    previous_marks = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)
    entrance_exam_score = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)
    interview_score = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)

    father_name = models.CharField(max_length=255, blank=True)
    mother_name = models.CharField(max_length=255, blank=True)
    guardian_phone = models.CharField(max_length=20, blank=True)
    guardian_email = models.EmailField(blank=True)

    status = models.CharField(
        max_length=30, choices=ApplicationStatus.choices, default=ApplicationStatus.APPLIED
    )
    version = models.PositiveIntegerField(default=1)
    enrolled_student = models.OneToOneField(
        "students.Student",
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="application",
    )

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="application_status_idx"),
            models.Index(fields=["class_name", "status"], name="application_class_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=(
                    models.Q(status="enrolled", enrolled_student__isnull=False)
                    | (~models.Q(status="enrolled") & models.Q(enrolled_student__isnull=True))
                ),
                name="enrolled_student_iff_enrolled",
            )
        ]

    def __str__(self):
        return f"{self.application_number} - {self.student_name} ({self.status})"

    @property
    def waitlist_position(self):
        try:
            return self.waitlist_entry.position
        except ObjectDoesNotExist:
            return None


class StatusChange(models.Model):
    """Audit record of one applied transition. Append-only."""

    application = models.ForeignKey(
        Application, on_delete=models.CASCADE, related_name="status_history"
    )
    from_status = models.CharField(
        max_length=30, choices=ApplicationStatus.choices, null=True, blank=True
    )
    to_status = models.CharField(max_length=30, choices=ApplicationStatus.choices)
    changed_at = models.DateTimeField(default=timezone.now)
    changed_by = models.CharField(max_length=150)
    note = models.CharField(max_length=255, blank=True)

    class Meta:
        ordering = ["changed_at", "id"]
        indexes = [models.Index(fields=["application", "changed_at"], name="status_change_app_idx")]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Status changes are immutable once recorded.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError("Status changes cannot be deleted.")

    def __str__(self):
        return f"{self.application_id}: {self.from_status} -> {self.to_status} by {self.changed_by}"


class ApplicationNote(models.Model):
    application = models.ForeignKey(Application, on_delete=models.CASCADE, related_name="notes")
    content = models.TextField()
    created_at = models.DateTimeField(default=timezone.now)
    created_by = models.CharField(max_length=150)

    class Meta:
        ordering = ["created_at", "id"]

    def __str__(self):
        return f"Note on {self.application_id} by {self.created_by}"
