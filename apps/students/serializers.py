from rest_framework import serializers

from apps.students.models import Student


class StudentSerializer(serializers.ModelSerializer):
    class Meta:
        model = Student
        fields = [
            "id",
            "admission_number",
            "name",
            "email",
            "phone",
            "date_of_birth",
            "gender",
            "blood_group",
            "class_name",
            "section",
            "roll_number",
            "father_name",
            "mother_name",
            "guardian_phone",
            "guardian_email",
            "admission_date",
            "status",
            "withdrawn_at",
        ]
        read_only_fields = fields


class NextRollNumberQuerySerializer(serializers.Serializer):
    class_name = serializers.CharField(max_length=50)
    section = serializers.CharField(max_length=10)
