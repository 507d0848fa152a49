import uuid

import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


STATUS_CHOICES = [
    ("applied", "Applied"),
    ("under_review", "Under Review"),
    ("document_verification", "Document Verification"),
    ("entrance_exam", "Entrance Exam"),
    ("interview", "Interview"),
    ("approved", "Approved"),
    ("waitlisted", "Waitlisted"),
    ("rejected", "Rejected"),
    ("enrolled", "Enrolled"),
    ("withdrawn", "Withdrawn"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("students", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Application",
            fields=[
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("application_number", models.CharField(db_index=True, max_length=20, unique=True)),
                ("student_name", models.CharField(max_length=255)),
                ("date_of_birth", models.DateField(blank=True, null=True)),
                ("gender", models.CharField(blank=True, choices=[("male", "Male"), ("female", "Female")], max_length=10)),
                ("email", models.EmailField(blank=True, max_length=254)),
                ("phone", models.CharField(blank=True, max_length=20)),
                ("class_name", models.CharField(help_text="Class the applicant is applying for", max_length=50)),
                ("section", models.CharField(blank=True, help_text="Preferred section, if any", max_length=10)),
                ("previous_school", models.CharField(blank=True, max_length=255)),
                ("previous_class", models.CharField(blank=True, max_length=50)),
                ("previous_marks", models.DecimalField(blank=True, decimal_places=2, max_digits=5, null=True)),
                ("entrance_exam_score", models.DecimalField(blank=True, decimal_places=2, max_digits=5, null=True)),
                ("interview_score", models.DecimalField(blank=True, decimal_places=2, max_digits=5, null=True)),
                ("father_name", models.CharField(blank=True, max_length=255)),
                ("mother_name", models.CharField(blank=True, max_length=255)),
                ("guardian_phone", models.CharField(blank=True, max_length=20)),
                ("guardian_email", models.EmailField(blank=True, max_length=254)),
                ("status", models.CharField(choices=STATUS_CHOICES, default="applied", max_length=30)),
                ("version", models.PositiveIntegerField(default=1)),
                (
                    "enrolled_student",
                    models.OneToOneField(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="application",
                        to="students.student",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status"], name="application_status_idx"),
                    models.Index(fields=["class_name", "status"], name="application_class_status_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(("enrolled_student__isnull", False), ("status", "enrolled")),
                            models.Q(
                                models.Q(("status", "enrolled"), _negated=True),
                                ("enrolled_student__isnull", True),
                            ),
                            _connector="OR",
                        ),
                        name="enrolled_student_iff_enrolled",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="StatusChange",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("from_status", models.CharField(blank=True, choices=STATUS_CHOICES, max_length=30, null=True)),
                ("to_status", models.CharField(choices=STATUS_CHOICES, max_length=30)),
                ("changed_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("changed_by", models.CharField(max_length=150)),
                ("note", models.CharField(blank=True, max_length=255)),
                (
                    "application",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="status_history",
                        to="admissions.application",
                    ),
                ),
            ],
            options={
                "ordering": ["changed_at", "id"],
                "indexes": [
                    models.Index(fields=["application", "changed_at"], name="status_change_app_idx")
                ],
            },
        ),
    ]
