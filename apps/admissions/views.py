from drf_spectacular.utils import OpenApiParameter, extend_schema, inline_serializer
from rest_framework import serializers, status
from rest_framework.decorators import api_view
from rest_framework.response import Response

from apps.admissions import services
from apps.admissions.filters import ApplicationFilter
from apps.admissions.models import Application
from apps.admissions.serializers import (
    ApplicationCreateSerializer,
    ApplicationListSerializer,
    ApplicationNoteSerializer,
    ApplicationSerializer,
    ApplicationUpdateSerializer,
    StatusUpdateSerializer,
)
from apps.admissions.transitions import allowed_targets, is_terminal
from apps.common.api import actor_label, paginate
from apps.common.exceptions import AdmissionError


def _filter_params(request):
    params = request.query_params.copy()
    # The console sends ?class=, which cannot be a FilterSet attribute name.
    if "class" in params and "class_name" not in params:
        params["class_name"] = params["class"]
    return params


@extend_schema(
    methods=["GET"],
    parameters=[
        OpenApiParameter("search", str),
        OpenApiParameter("status", str),
        OpenApiParameter("class", str),
        OpenApiParameter("date_from", str, description="YYYY-MM-DD"),
        OpenApiParameter("date_to", str, description="YYYY-MM-DD"),
        OpenApiParameter("page", int),
        OpenApiParameter("limit", int),
    ],
    responses=ApplicationListSerializer(many=True),
)
@extend_schema(methods=["POST"], request=ApplicationCreateSerializer, responses={201: ApplicationSerializer})
@api_view(["GET", "POST"])
def application_list(request):
    if request.method == "POST":
        serializer = ApplicationCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        application = services.create_application(
            serializer.validated_data, actor=actor_label(request.user)
        )
        return Response(ApplicationSerializer(application).data, status=status.HTTP_201_CREATED)

    queryset = Application.objects.select_related("waitlist_entry").order_by("-created_at")
    filterset = ApplicationFilter(_filter_params(request), queryset=queryset)
    if not filterset.is_valid():
        raise AdmissionError("Invalid filter parameters.", filterset.errors)
    return Response(paginate(request, filterset.qs, ApplicationListSerializer))


@extend_schema(methods=["GET"], responses=ApplicationSerializer)
@extend_schema(methods=["PUT", "PATCH"], request=ApplicationUpdateSerializer, responses=ApplicationSerializer)
@extend_schema(
    methods=["DELETE"],
    parameters=[OpenApiParameter("version", int, description="Version last read")],
    responses={204: None},
)
@api_view(["GET", "PUT", "PATCH", "DELETE"])
def application_detail(request, pk):
    application = services.get_application(pk)
    if request.method == "DELETE":
        version = request.query_params.get("version")
        if version is not None:
            if not version.isdigit():
                raise AdmissionError("Version must be a positive integer.", {"version": version})
            application.version = int(version)
        services.delete_application(application)
        return Response(status=status.HTTP_204_NO_CONTENT)

    if request.method in ("PUT", "PATCH"):
        serializer = ApplicationUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        if "version" in data:
            application.version = data["version"]
        application = services.update_application(application, data, actor_label(request.user))
    return Response(ApplicationSerializer(application).data)


@extend_schema(methods=["GET"], responses=ApplicationNoteSerializer(many=True))
@extend_schema(methods=["POST"], request=ApplicationNoteSerializer, responses={201: ApplicationNoteSerializer})
@api_view(["GET", "POST"])
def application_notes(request, pk):
    application = services.get_application(pk)
    if request.method == "POST":
        serializer = ApplicationNoteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        note = services.add_note(application, serializer.validated_data["content"], actor_label(request.user))
        return Response(ApplicationNoteSerializer(note).data, status=status.HTTP_201_CREATED)
    return Response(ApplicationNoteSerializer(application.notes.all(), many=True).data)


@extend_schema(request=StatusUpdateSerializer, responses=ApplicationSerializer)
@api_view(["POST"])
def application_status(request, pk):
    """
    Apply a workflow transition. Send the ``version`` you last read to guard
    against overwriting someone else's change.
    """
    application = services.get_application(pk)
    serializer = StatusUpdateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    if "version" in data:
        application.version = data["version"]

    application, _ = services.apply_transition(
        application, data["status"], actor_label(request.user), data.get("note", "")
    )
    return Response(ApplicationSerializer(application).data)


@extend_schema(
    responses=inline_serializer(
        "AllowedTransitions",
        {
            "status": serializers.CharField(),
            "terminal": serializers.BooleanField(),
            "allowed": serializers.ListField(child=serializers.CharField()),
        },
    )
)
@api_view(["GET"])
def application_transitions(request, pk):
    application = services.get_application(pk)
    return Response(
        {
            "status": application.status,
            "terminal": is_terminal(application.status),
            "allowed": allowed_targets(application.status),
        }
    )


@extend_schema(
    responses=inline_serializer(
        "ApplicationStats",
        {
            "total": serializers.IntegerField(),
            "by_status": serializers.DictField(child=serializers.IntegerField()),
            "by_class": serializers.DictField(child=serializers.IntegerField()),
            "this_month": serializers.IntegerField(),
            "pending_review": serializers.IntegerField(),
        },
    )
)
@api_view(["GET"])
def application_stats(request):
    return Response(services.application_stats())
