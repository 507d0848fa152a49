from drf_spectacular.utils import OpenApiParameter, extend_schema, inline_serializer
from rest_framework import serializers
from rest_framework.decorators import api_view
from rest_framework.response import Response

from apps.common.api import actor_label
from apps.common.exceptions import AdmissionError
from apps.students import services
from apps.students.serializers import NextRollNumberQuerySerializer, StudentSerializer


@extend_schema(
    parameters=[
        OpenApiParameter("class", str, required=True),
        OpenApiParameter("section", str, required=True),
    ],
    responses=inline_serializer(
        "NextRollNumber",
        {
            "class_name": serializers.CharField(),
            "section": serializers.CharField(),
            "next_roll_number": serializers.IntegerField(),
        },
    ),
)
@api_view(["GET"])
def next_roll_number(request):
    query = NextRollNumberQuerySerializer(
        data={
            "class_name": request.query_params.get("class", ""),
            "section": request.query_params.get("section", ""),
        }
    )
    if not query.is_valid():
        raise AdmissionError("Class and section are required.", query.errors)
    class_name = query.validated_data["class_name"]
    section = query.validated_data["section"]
    return Response(
        {
            "class_name": class_name,
            "section": section,
            "next_roll_number": services.next_roll_number(class_name, section),
        }
    )


@extend_schema(request=None, responses=StudentSerializer)
@api_view(["POST"])
def student_withdraw(request, pk):
    student = services.get_student(pk)
    student = services.withdraw_student(student, actor_label(request.user))
    return Response(StudentSerializer(student).data)
