# admin_portal/views_applications.py
import logging

from django.http import Http404
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema, OpenApiExample, OpenApiParameter, OpenApiResponse

from accounts.utils import build_validation_message
from admin_portal.permissions import IsAdminRole
from admin_portal.serializers import StatusUpdateSerializer, BulkStatusSerializer, ApplicationIdsSerializer, \
    RecheckEligibilitySerializer
from applications import services
from applications.filters import ApplicationFilter
from applications.models import Application, BULK_STATUS_TARGETS
from applications.serializers import ApplicationListSerializer, ApplicationDetailSerializer
from applications.services import StatusTransitionError
from scoring.logic import eligibility_check
from scoring.models import EvaluationHistory
from scoring.serializers import EvaluationHistorySerializer

logger = logging.getLogger(__name__)


class AdminPage(PageNumberPagination):
    page_size = 50
    max_page_size = 100
    page_size_query_param = "page_size"


def _validation_error(exc: ValidationError):
    return Response(
        {"message": build_validation_message(exc.detail), "errors": exc.detail},
        status=status.HTTP_400_BAD_REQUEST,
    )


@extend_schema(tags=["Admin • Applications"])
class AdminApplicationViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Admin view of every application: filtered list, detail and the status machine.
    """
    permission_classes = [IsAdminRole]
    pagination_class = AdminPage
    filter_backends = [DjangoFilterBackend]
    filterset_class = ApplicationFilter

    def get_queryset(self):
        qs = Application.objects.select_related("business", "business__applicant", "eligibility")
        if self.action == "retrieve":
            qs = qs.prefetch_related("business__target_customers", "business__funding", "history__changed_by")
        ordering = self.request.query_params.get("ordering") or "-created_at"
        allowed = {"created_at", "-created_at", "submitted_at", "-submitted_at", "eligibility__total_score", "-eligibility__total_score"}
        return qs.order_by(ordering if ordering in allowed else "-created_at")

    def get_serializer_class(self):
        if self.action == "retrieve":
            return ApplicationDetailSerializer
        return ApplicationListSerializer

    @extend_schema(
        summary="List applications",
        parameters=[
            OpenApiParameter("status", str, many=True, required=False),
            OpenApiParameter("country", str, many=True, required=False),
            OpenApiParameter("is_eligible", bool, required=False),
            OpenApiParameter("search", str, required=False, description="Business or applicant name / email"),
            OpenApiParameter("ordering", str, required=False),
        ],
        responses={200: ApplicationListSerializer(many=True)},
    )
    def list(self, *args, **kwargs):
        return super().list(*args, **kwargs)

    @extend_schema(summary="Application detail", responses={200: ApplicationDetailSerializer, 404: OpenApiResponse})
    def retrieve(self, *args, **kwargs):
        return super().retrieve(*args, **kwargs)

    @extend_schema(
        summary="Change the status of one application",
        request=StatusUpdateSerializer,
        responses={200: ApplicationListSerializer, 404: OpenApiResponse},
        examples=[OpenApiExample("Move to review", value={"status": "under_review", "notes": "Complete file"}, request_only=True)],
    )
    @action(detail=True, methods=["post"], url_path="status")
    def update_status(self, request, pk=None):
        ser = StatusUpdateSerializer(data=request.data)
        try:
            ser.is_valid(raise_exception=True)
        except ValidationError as exc:
            return _validation_error(exc)
        try:
            app = services.update_application_status(
                int(pk), ser.validated_data["status"], user=request.user, notes=ser.validated_data.get("notes", "")
            )
        except Application.DoesNotExist:
            return Response({"message": "Application not found."}, status=status.HTTP_404_NOT_FOUND)
        except StatusTransitionError as e:
            return Response({"message": str(e), "errors": {}}, status=status.HTTP_400_BAD_REQUEST)
        except Exception as e:
            logger.exception("Failed to update status of application %s", pk)
            return Response(
                {"message": "We could not update the application status right now. Please try again later.", "errors": str(e)},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )
        return Response(ApplicationListSerializer(self.get_queryset().get(pk=app.pk)).data)

    @extend_schema(
        summary="Bulk status update (whitelisted targets only)",
        request=BulkStatusSerializer,
        responses={200: dict, 400: OpenApiResponse(description="Target status not allowed")},
        examples=[OpenApiExample(
            "Reject several",
            value={"application_ids": [4, 9, 11], "status": "rejected", "notes": "Outside focus area"},
            request_only=True,
        )],
    )
    @action(detail=False, methods=["post"], url_path="bulk-status")
    def bulk_status(self, request):
        ser = BulkStatusSerializer(data=request.data)
        try:
            ser.is_valid(raise_exception=True)
            d = ser.validated_data
            out = services.bulk_update_status(d["application_ids"], d["status"], user=request.user, notes=d.get("notes", ""))
        except ValidationError as exc:
            return _validation_error(exc)
        except StatusTransitionError as e:
            return Response(
                {"message": str(e), "errors": {"status": list(BULK_STATUS_TARGETS)}},
                status=status.HTTP_400_BAD_REQUEST,
            )
        except Exception as e:
            logger.exception("Bulk status update failed")
            return Response(
                {"message": "We could not update the applications right now. Please try again later.", "errors": str(e)},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )
        return Response(out)

    @extend_schema(summary="Shortlist applications", request=ApplicationIdsSerializer, responses={200: dict})
    @action(detail=False, methods=["post"], url_path="shortlist")
    def shortlist(self, request):
        ser = ApplicationIdsSerializer(data=request.data)
        try:
            ser.is_valid(raise_exception=True)
            out = services.shortlist_applications(
                ser.validated_data["application_ids"], user=request.user, notes=ser.validated_data.get("notes", "")
            )
        except ValidationError as exc:
            return _validation_error(exc)
        return Response(out)

    @extend_schema(
        summary="Move shortlisted applications to the scoring phase",
        request=ApplicationIdsSerializer,
        responses={200: dict},
    )
    @action(detail=False, methods=["post"], url_path="move-to-scoring")
    def move_to_scoring(self, request):
        ser = ApplicationIdsSerializer(data=request.data)
        try:
            ser.is_valid(raise_exception=True)
            out = services.move_to_scoring_phase(ser.validated_data["application_ids"], user=request.user)
        except ValidationError as exc:
            return _validation_error(exc)
        return Response(out)

    @extend_schema(
        summary="Applications in one status (paginated)",
        responses={200: ApplicationListSerializer(many=True), 400: OpenApiResponse},
    )
    @action(detail=False, methods=["get"], url_path=r"by-status/(?P<status_value>[a-z_]+)")
    def by_status(self, request, status_value=None):
        if status_value not in Application.Status.values:
            return Response({"message": f"Invalid status '{status_value}'.", "errors": {}}, status=status.HTTP_400_BAD_REQUEST)
        qs = self.get_queryset().filter(status=status_value)
        page = self.paginate_queryset(qs)
        return self.get_paginated_response(ApplicationListSerializer(page, many=True).data)

    @extend_schema(summary="Counts per status plus total", responses={200: dict})
    @action(detail=False, methods=["get"], url_path="stats")
    def stats(self, request):
        return Response(services.status_stats())

    @extend_schema(
        summary="Recompute eligibility now",
        request=RecheckEligibilitySerializer,
        responses={200: dict, 400: OpenApiResponse, 404: OpenApiResponse},
    )
    @action(detail=True, methods=["post"], url_path="recheck-eligibility")
    def recheck_eligibility(self, request, pk=None):
        ser = RecheckEligibilitySerializer(data=request.data)
        try:
            ser.is_valid(raise_exception=True)
        except ValidationError as exc:
            return _validation_error(exc)
        try:
            app = self.get_queryset().get(pk=pk)
        except Application.DoesNotExist:
            raise Http404
        result = eligibility_check(app, evaluated_by=request.user, notes=ser.validated_data.get("notes"))
        return Response({
            "application_id": app.id,
            "is_eligible": result.is_eligible,
            "total_score": float(result.total_score),
            "details": result.details,
        })

    @extend_schema(summary="Re-evaluation history of one application", responses={200: EvaluationHistorySerializer(many=True)})
    @action(detail=True, methods=["get"], url_path="evaluation-history")
    def evaluation_history(self, request, pk=None):
        rows = (
            EvaluationHistory.objects.filter(application_id=pk)
            .select_related("previous_config", "new_config", "evaluated_by")
        )
        return Response(EvaluationHistorySerializer(rows, many=True).data)
