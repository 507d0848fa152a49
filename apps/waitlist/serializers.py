from rest_framework import serializers

from apps.waitlist.models import WaitlistEntry


class WaitlistEntrySerializer(serializers.ModelSerializer):
    application_id = serializers.UUIDField(read_only=True)
    application_number = serializers.CharField(source="application.application_number", read_only=True)
    student_name = serializers.CharField(source="application.student_name", read_only=True)
    previous_marks = serializers.DecimalField(
        source="application.previous_marks", max_digits=5, decimal_places=2, read_only=True
    )
    entrance_exam_score = serializers.DecimalField(
        source="application.entrance_exam_score", max_digits=5, decimal_places=2, read_only=True
    )

    class Meta:
        model = WaitlistEntry
        fields = [
            "id",
            "application_id",
            "application_number",
            "student_name",
            "previous_marks",
            "entrance_exam_score",
            "class_name",
            "position",
            "added_at",
            "status",
            "offered_at",
            "offer_expires_at",
        ]
