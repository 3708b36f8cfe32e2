from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from rest_framework import status
from drf_spectacular.utils import extend_schema, OpenApiParameter, OpenApiResponse

from django.utils.dateparse import parse_datetime
from django.db.models import Q

from .permissions import IsAdminRole
from admin_portal.models import ActivityLog
from admin_portal.serializers import ActivityLogSerializer

ORDERING = {"created_at", "-created_at", "action", "-action"}


def _parse_range(params):
    f = params.get("from")
    t = params.get("to")
    fd = parse_datetime(f) if f else None
    td = parse_datetime(t) if t else None
    return (fd, td)


def _int_param(params, key, default):
    try:
        return max(1, int(params.get(key, default) or default))
    except (TypeError, ValueError):
        return default


@extend_schema(
    tags=["Admin • Activity"],
    summary="List activity logs (filterable)",
    parameters=[
        OpenApiParameter("q", str, description="Search in help_text/object_repr"),
        OpenApiParameter("action", str, description="CREATE/UPDATE/DELETE/STATUS_CHANGE/ASSIGN/UNASSIGN/SCORE/..."),
        OpenApiParameter("app_label", str),
        OpenApiParameter("model", str),
        OpenApiParameter("object_id", str),
        OpenApiParameter("actor", str, description="actor user id"),
        OpenApiParameter("include_api_hits", bool, description="Include API_HIT request rows (default false)"),
        OpenApiParameter("from", str, description="ISO datetime"),
        OpenApiParameter("to", str, description="ISO datetime"),
        OpenApiParameter("ordering", str, description="e.g. -created_at (default)"),
        OpenApiParameter("page", int),
        OpenApiParameter("page_size", int),
    ],
    responses={200: OpenApiResponse(response=ActivityLogSerializer(many=True), description="Activity list")},
)
class ActivityListView(APIView):
    permission_classes = [IsAuthenticated, IsAdminRole]

    def get(self, request):
        params = request.query_params
        qs = ActivityLog.objects.select_related("actor")
        if params.get("include_api_hits") != "true":
            qs = qs.exclude(action=ActivityLog.Action.API_HIT)
        q = params.get("q")
        if q:
            qs = qs.filter(Q(help_text__icontains=q) | Q(object_repr__icontains=q))
        for key in ["action", "app_label", "model", "object_id"]:
            val = params.get(key)
            if val:
                qs = qs.filter(**{key: val})
        actor = params.get("actor")
        if actor:
            qs = qs.filter(actor_id=actor)

        fd, td = _parse_range(params)
        if fd:
            qs = qs.filter(created_at__gte=fd)
        if td:
            qs = qs.filter(created_at__lte=td)

        ordering = params.get("ordering", "-created_at")
        qs = qs.order_by(ordering if ordering in ORDERING else "-created_at")

        # simple pagination
        page = _int_param(params, "page", 1)
        size = min(_int_param(params, "page_size", 20), 100)
        start = (page - 1) * size

        total = qs.count()
        ser = ActivityLogSerializer(qs[start:start + size], many=True)
        return Response({
            "count": total,
            "page": page,
            "page_size": size,
            "results": ser.data
        })


@extend_schema(
    tags=["Admin • Activity"],
    summary="Get single activity log",
    responses={200: ActivityLogSerializer, 404: OpenApiResponse},
)
class ActivityDetailView(APIView):
    permission_classes = [IsAuthenticated, IsAdminRole]

    def get(self, request, pk):
        try:
            obj = ActivityLog.objects.select_related("actor").get(pk=pk)
        except ActivityLog.DoesNotExist:
            return Response({"message": "Activity log not found."}, status=status.HTTP_404_NOT_FOUND)
        return Response(ActivityLogSerializer(obj).data)
