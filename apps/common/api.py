from __future__ import annotations

import logging
import math

from django.core.paginator import EmptyPage, Paginator
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

from apps.common.exceptions import AdmissionError

logger = logging.getLogger(__name__)


def exception_handler(exc, context):
    """Render lifecycle errors as `{"error", "message", "details"}` payloads."""
    if isinstance(exc, AdmissionError):
        view = context.get("view")
        logger.warning(
            f"{exc.error_code} in {getattr(view, '__name__', view.__class__.__name__)}: {exc.message}"
        )
        return Response(exc.as_dict(), status=exc.status_code)
    return drf_exception_handler(exc, context)


def actor_label(user) -> str:
    if user is None or not getattr(user, "is_authenticated", False):
        return "System"
    return user.get_username()


def paginate(request, queryset, serializer_class, default_limit: int = 10) -> dict:
    try:
        limit = int(request.query_params.get("limit", default_limit))
        if limit <= 0:
            raise ValueError
    except (TypeError, ValueError):
        limit = default_limit

    try:
        page_number = int(request.query_params.get("page", 1))
    except (TypeError, ValueError):
        page_number = 1

    paginator = Paginator(queryset, limit)
    try:
        page_obj = paginator.page(page_number)
    except EmptyPage:
        page_obj = paginator.page(1)

    return {
        "data": serializer_class(page_obj.object_list, many=True).data,
        "meta": {
            "total": paginator.count,
            "page": page_obj.number,
            "limit": limit,
            "totalPages": math.ceil(paginator.count / limit) if paginator.count else 0,
        },
    }
