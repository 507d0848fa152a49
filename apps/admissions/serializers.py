from rest_framework import serializers

from apps.admissions.models import Application, ApplicationNote, ApplicationStatus, StatusChange
from apps.admissions.services import APPLICANT_FIELDS


class StatusChangeSerializer(serializers.ModelSerializer):
    class Meta:
        model = StatusChange
        fields = ["id", "from_status", "to_status", "changed_at", "changed_by", "note"]


class ApplicationNoteSerializer(serializers.ModelSerializer):
    class Meta:
        model = ApplicationNote
        fields = ["id", "content", "created_at", "created_by"]
        read_only_fields = ["id", "created_at", "created_by"]


class ApplicationSerializer(serializers.ModelSerializer):
    status_history = StatusChangeSerializer(many=True, read_only=True)
    notes = ApplicationNoteSerializer(many=True, read_only=True)
    waitlist_position = serializers.IntegerField(read_only=True, allow_null=True)
    enrolled_student_id = serializers.IntegerField(read_only=True, allow_null=True)

    class Meta:
        model = Application
        fields = [
            "id",
            "application_number",
            *APPLICANT_FIELDS,
            "status",
            "version",
            "enrolled_student_id",
            "waitlist_position",
            "status_history",
            "notes",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class ApplicationListSerializer(serializers.ModelSerializer):
    waitlist_position = serializers.IntegerField(read_only=True, allow_null=True)

    class Meta:
        model = Application
        fields = [
            "id",
            "application_number",
            "student_name",
            "email",
            "phone",
            "class_name",
            "section",
            "status",
            "version",
            "waitlist_position",
            "created_at",
        ]
        read_only_fields = fields


class ApplicationCreateSerializer(serializers.ModelSerializer):
    class Meta:
        model = Application
        fields = list(APPLICANT_FIELDS)


class StatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=ApplicationStatus.choices)
    note = serializers.CharField(required=False, allow_blank=True, max_length=255)
    version = serializers.IntegerField(required=False, min_value=1)


class ApplicationUpdateSerializer(serializers.ModelSerializer):
    version = serializers.IntegerField(required=False, min_value=1)

    class Meta:
        model = Application
        fields = [*APPLICANT_FIELDS, "version"]
        extra_kwargs = {name: {"required": False} for name in APPLICANT_FIELDS}
