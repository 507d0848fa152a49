from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework.decorators import api_view
from rest_framework.response import Response

from apps.common.exceptions import AdmissionError
from apps.waitlist import services
from apps.waitlist.serializers import WaitlistEntrySerializer


@extend_schema(
    parameters=[OpenApiParameter("class", str, required=True)],
    responses=WaitlistEntrySerializer(many=True),
)
@api_view(["GET"])
def waitlist_list(request):
    class_name = request.query_params.get("class")
    if not class_name:
        raise AdmissionError("The 'class' query parameter is required.", {"param": "class"})
    entries = services.entries_for_class(class_name)
    return Response(WaitlistEntrySerializer(entries, many=True).data)
