import logging

from django.db.models import Prefetch
from django.http import Http404
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema, OpenApiExample, OpenApiParameter, OpenApiResponse

from accounts.utils import build_validation_message
from admin_portal.models import ActivityLog
from admin_portal.permissions import IsAdminRole
from admin_portal.utils import log_activity
from scoring import logic
from scoring.logic import ScoringError
from scoring.models import ScoringConfiguration, ScoringCriterion, EvaluationHistory
from scoring.serializers import (
    ScoringConfigurationSerializer, ScoringConfigurationListSerializer, ScoringConfigurationWriteSerializer,
    ScoringCriterionSerializer, ReEvaluateSerializer, EvaluationHistorySerializer,
)

logger = logging.getLogger(__name__)


class AdminPage(PageNumberPagination):
    page_size = 50
    max_page_size = 100
    page_size_query_param = "page_size"


def _criteria_payload(validated):
    if "criteria" not in validated:
        return None
    return [dict(c, scoring_levels=[dict(l) for l in c.get("scoring_levels", [])]) for c in validated["criteria"]]


@extend_schema(tags=["Admin • Scoring"])
class ScoringConfigurationViewSet(viewsets.ModelViewSet):
    permission_classes = [IsAdminRole]
    pagination_class = AdminPage
    queryset = (
        ScoringConfiguration.objects.select_related("created_by")
        .prefetch_related(Prefetch("criteria", queryset=ScoringCriterion.objects.order_by("sort_order", "id")))
        .order_by("-is_active", "-created_at")
    )

    def get_serializer_class(self):
        if self.action == "list":
            return ScoringConfigurationListSerializer
        if self.action in ("create", "update", "partial_update"):
            return ScoringConfigurationWriteSerializer
        return ScoringConfigurationSerializer

    def _get_config(self, pk):
        try:
            return ScoringConfiguration.objects.get(pk=pk)
        except ScoringConfiguration.DoesNotExist:
            raise Http404

    @extend_schema(
        summary="Create a scoring configuration (inactive until activated)",
        request=ScoringConfigurationWriteSerializer,
        responses={201: ScoringConfigurationSerializer, 400: OpenApiResponse(description="Invalid rubric")},
        examples=[OpenApiExample(
            "Minimal rubric",
            value={
                "name": "Pilot rubric", "version": "1.0", "total_max_score": 20, "pass_threshold": 12,
                "criteria": [
                    {"category": "Impact", "name": "Climate resilience", "max_points": 10,
                     "scoring_levels": [{"level": "Strong", "points": 10}, {"level": "Weak", "points": 2}]},
                    {"category": "Business", "name": "Revenue model", "max_points": 10},
                ],
            },
            request_only=True,
        )],
    )
    def create(self, request, *args, **kwargs):
        ser = ScoringConfigurationWriteSerializer(data=request.data)
        try:
            ser.is_valid(raise_exception=True)
            data = dict(ser.validated_data)
            data["criteria"] = _criteria_payload(ser.validated_data) or []
            config = logic.create_configuration(data, user=request.user)
        except ValidationError as exc:
            return Response(
                {"message": build_validation_message(exc.detail), "errors": exc.detail},
                status=status.HTTP_400_BAD_REQUEST,
            )
        except ScoringError as e:
            return Response({"message": str(e), "errors": {}}, status=status.HTTP_400_BAD_REQUEST)
        except Exception as e:
            logger.exception("Failed to create scoring configuration")
            return Response(
                {"message": "We could not create the scoring configuration right now. Please try again later.", "errors": str(e)},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )
        log_activity(request.user, ActivityLog.Action.CREATE, config, help_text=f"Created scoring configuration {config}")
        return Response(ScoringConfigurationSerializer(config).data, status=status.HTTP_201_CREATED)

    @extend_schema(
        summary="Update a scoring configuration (criteria are replaced when provided)",
        request=ScoringConfigurationWriteSerializer,
        responses={200: ScoringConfigurationSerializer},
    )
    def update(self, request, *args, **kwargs):
        config = self._get_config(kwargs.get("pk"))
        partial = kwargs.get("partial", False)
        ser = ScoringConfigurationWriteSerializer(data=request.data, partial=partial)
        try:
            ser.is_valid(raise_exception=True)
            data = {k: v for k, v in ser.validated_data.items() if k != "criteria"}
            criteria = _criteria_payload(ser.validated_data)
            if criteria is not None:
                data["criteria"] = criteria
            config = logic.update_configuration(config, data)
        except ValidationError as exc:
            return Response(
                {"message": build_validation_message(exc.detail), "errors": exc.detail},
                status=status.HTTP_400_BAD_REQUEST,
            )
        except ScoringError as e:
            return Response({"message": str(e), "errors": {}}, status=status.HTTP_400_BAD_REQUEST)
        except Exception as e:
            logger.exception("Failed to update scoring configuration %s", config.pk)
            return Response(
                {"message": "We could not update the scoring configuration right now. Please try again later.", "errors": str(e)},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )
        log_activity(request.user, ActivityLog.Action.UPDATE, config, help_text=f"Updated scoring configuration {config}")
        return Response(ScoringConfigurationSerializer(config).data)

    def partial_update(self, request, *args, **kwargs):
        kwargs["partial"] = True
        return self.update(request, *args, **kwargs)

    @extend_schema(summary="Delete an inactive scoring configuration", responses={204: OpenApiResponse})
    def destroy(self, request, *args, **kwargs):
        config = self._get_config(kwargs.get("pk"))
        label = str(config)
        try:
            logic.delete_configuration(config)
        except ScoringError as e:
            return Response({"message": str(e), "errors": {}}, status=status.HTTP_400_BAD_REQUEST)
        log_activity(
            request.user, ActivityLog.Action.DELETE, None, app_label="scoring", model="ScoringConfiguration",
            help_text=f"Deleted scoring configuration {label}",
        )
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(summary="Currently active configuration", responses={200: ScoringConfigurationSerializer, 404: OpenApiResponse})
    @action(detail=False, methods=["get"], url_path="active")
    def active(self, request):
        config = logic.get_active_configuration()
        if config is None:
            return Response({"message": "No active scoring configuration found."}, status=status.HTTP_404_NOT_FOUND)
        return Response(ScoringConfigurationSerializer(config).data)

    @extend_schema(summary="Activate this configuration (deactivates every other one)", request=None, responses={200: ScoringConfigurationSerializer})
    @action(detail=True, methods=["post"], url_path="activate")
    def activate(self, request, pk=None):
        try:
            config = logic.activate_configuration(pk)
        except ScoringError as e:
            return Response({"message": str(e)}, status=status.HTTP_404_NOT_FOUND)
        log_activity(request.user, ActivityLog.Action.ACTIVATE, config, help_text=f"Activated scoring configuration {config}")
        return Response(ScoringConfigurationSerializer(config).data)

    @extend_schema(
        summary="Re-evaluate applications under this configuration",
        request=ReEvaluateSerializer,
        responses={200: OpenApiResponse(description="Per-application deltas and summary")},
        examples=[OpenApiExample("Selected applications", value={"application_ids": [3, 7]}, request_only=True)],
    )
    @action(detail=True, methods=["post"], url_path="re-evaluate")
    def re_evaluate(self, request, pk=None):
        ser = ReEvaluateSerializer(data=request.data)
        try:
            ser.is_valid(raise_exception=True)
            out = logic.re_evaluate_applications(int(pk), ser.validated_data.get("application_ids"), user=request.user)
        except ValidationError as exc:
            return Response(
                {"message": build_validation_message(exc.detail), "errors": exc.detail},
                status=status.HTTP_400_BAD_REQUEST,
            )
        except ScoringError as e:
            return Response({"message": str(e), "errors": {}}, status=status.HTTP_400_BAD_REQUEST)
        except Exception as e:
            logger.exception("Re-evaluation failed for configuration %s", pk)
            return Response(
                {"message": "We could not re-evaluate the applications right now. Please try again later.", "errors": str(e)},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )
        log_activity(
            request.user, ActivityLog.Action.RE_EVALUATE, None, app_label="scoring", model="ScoringConfiguration",
            meta=out["summary"], help_text=f"Re-evaluated {out['summary']['total_evaluated']} application(s)",
        )
        return Response(out)

    @extend_schema(
        summary="Create and activate the default KCIC rubric",
        request=None,
        responses={201: ScoringConfigurationSerializer, 400: OpenApiResponse(description="Already exists")},
    )
    @action(detail=False, methods=["post"], url_path="initialize-default")
    def initialize_default(self, request):
        try:
            config = logic.initialize_default_configuration(user=request.user)
        except ScoringError as e:
            return Response({"message": str(e), "errors": {}}, status=status.HTTP_400_BAD_REQUEST)
        log_activity(request.user, ActivityLog.Action.CREATE, config, help_text=f"Initialized default configuration {config}")
        config = self.get_queryset().get(pk=config.pk)
        return Response(ScoringConfigurationSerializer(config).data, status=status.HTTP_201_CREATED)


@extend_schema(tags=["Admin • Scoring"])
class ScoringCriterionViewSet(viewsets.ReadOnlyModelViewSet):
    permission_classes = [IsAdminRole]
    serializer_class = ScoringCriterionSerializer
    queryset = ScoringCriterion.objects.select_related("config").order_by("config", "sort_order", "id")
    filter_backends = [DjangoFilterBackend]
    filterset_fields = ["config", "category", "evaluation_type", "is_required"]


@extend_schema(
    tags=["Admin • Scoring"],
    parameters=[OpenApiParameter("application", int, required=False), OpenApiParameter("new_config", int, required=False)],
)
class EvaluationHistoryViewSet(viewsets.ReadOnlyModelViewSet):
    permission_classes = [IsAdminRole]
    serializer_class = EvaluationHistorySerializer
    pagination_class = AdminPage
    queryset = EvaluationHistory.objects.select_related("previous_config", "new_config", "evaluated_by")
    filter_backends = [DjangoFilterBackend]
    filterset_fields = ["application", "new_config"]
