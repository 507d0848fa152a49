from rest_framework import serializers

from apps.admissions.serializers import ApplicationSerializer
from apps.students.models import BloodGroup
from apps.students.serializers import StudentSerializer


class EnrollSerializer(serializers.Serializer):
    application_id = serializers.UUIDField()
    section = serializers.CharField(max_length=10)
    roll_number = serializers.IntegerField(required=False, allow_null=True, min_value=1)
    blood_group = serializers.ChoiceField(choices=BloodGroup.choices)


class EnrollmentResultSerializer(serializers.Serializer):
    student = StudentSerializer()
    application = ApplicationSerializer()
