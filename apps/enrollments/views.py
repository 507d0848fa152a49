from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.response import Response

from apps.common.api import actor_label
from apps.enrollments.serializers import EnrollmentResultSerializer, EnrollSerializer
from apps.enrollments.services import finalize


@extend_schema(request=EnrollSerializer, responses={201: EnrollmentResultSerializer})
@api_view(["POST"])
def enroll(request):
    serializer = EnrollSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    student, application = finalize(
        data["application_id"],
        section=data["section"],
        blood_group=data["blood_group"],
        roll_number=data.get("roll_number"),
        actor=actor_label(request.user),
    )
    result = EnrollmentResultSerializer({"student": student, "application": application})
    return Response(result.data, status=status.HTTP_201_CREATED)
