from drf_spectacular.utils import extend_schema
from rest_framework.decorators import api_view
from rest_framework.response import Response

from apps.classes import services
from apps.classes.models import ClassCapacity
from apps.classes.serializers import ClassCapacitySerializer, ClassRollupSerializer
from apps.waitlist.services import waitlist_counts


@extend_schema(responses=ClassCapacitySerializer(many=True))
@api_view(["GET"])
def capacity_list(request):
    qs = ClassCapacity.objects.order_by("class_name", "section")
    class_name = request.query_params.get("class")
    if class_name:
        qs = qs.filter(class_name=class_name)
    serializer = ClassCapacitySerializer(qs, many=True, context={"waitlist_counts": waitlist_counts()})
    return Response(serializer.data)


@extend_schema(responses=ClassRollupSerializer(many=True))
@api_view(["GET"])
def capacity_summary(request):
    return Response(ClassRollupSerializer(services.class_rollup(), many=True).data)
