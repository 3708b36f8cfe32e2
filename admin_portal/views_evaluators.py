# admin_portal/views_evaluators.py
import logging

from django.db.models import Q
from django.http import Http404
from rest_framework import viewsets, status
from rest_framework.exceptions import ValidationError
from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema, OpenApiExample, OpenApiParameter, OpenApiResponse

from accounts.models import User, EVALUATOR_ROLES
from accounts.utils import build_validation_message
from admin_portal.models import ActivityLog
from admin_portal.permissions import IsAdminRole
from admin_portal.serializers import EvaluatorSerializer, EvaluatorCreateSerializer, EvaluatorUpdateSerializer
from admin_portal.utils import log_activity

logger = logging.getLogger(__name__)


class AdminPage(PageNumberPagination):
    page_size = 50
    max_page_size = 100
    page_size_query_param = "page_size"


@extend_schema(tags=["Admin • Evaluators"])
class EvaluatorAdminViewSet(viewsets.ModelViewSet):
    """
    Evaluator accounts (technical reviewers, jury members, Dragon's Den judges).
    DELETE deactivates; score rows and history stay attached to the user.
    """
    permission_classes = [IsAdminRole]
    lookup_field = "pk"
    pagination_class = AdminPage
    http_method_names = ["get", "post", "patch", "delete", "head", "options"]

    def get_queryset(self):
        qs = User.objects.filter(role__in=EVALUATOR_ROLES)
        role = self.request.query_params.get("role")
        if role:
            qs = qs.filter(role=role.upper())
        active = self.request.query_params.get("is_active")
        if active in ("true", "false"):
            qs = qs.filter(is_active=(active == "true"))
        q = self.request.query_params.get("q")
        if q:
            qs = qs.filter(
                Q(email__icontains=q) |
                Q(first_name__icontains=q) |
                Q(last_name__icontains=q) |
                Q(organization__icontains=q)
            )
        ordering = self.request.query_params.get("ordering") or "-date_joined"
        allowed = {"email", "-email", "first_name", "-first_name", "date_joined", "-date_joined", "role", "-role"}
        return qs.order_by(ordering if ordering in allowed else "-date_joined")

    def get_serializer_class(self):
        if self.action == "create":
            return EvaluatorCreateSerializer
        if self.action == "partial_update":
            return EvaluatorUpdateSerializer
        return EvaluatorSerializer

    @extend_schema(
        summary="List evaluators",
        parameters=[
            OpenApiParameter(name="role", required=False, type=str, enum=[r.value for r in EVALUATOR_ROLES]),
            OpenApiParameter(name="is_active", required=False, type=str, enum=["true", "false"]),
            OpenApiParameter(name="q", required=False, type=str),
            OpenApiParameter(name="ordering", required=False, type=str),
        ],
        responses={200: EvaluatorSerializer(many=True)},
    )
    def list(self, *args, **kwargs):
        return super().list(*args, **kwargs)

    @extend_schema(
        summary="Create evaluator",
        request=EvaluatorCreateSerializer,
        responses={201: EvaluatorSerializer, 400: OpenApiResponse},
        examples=[OpenApiExample(
            "Technical reviewer",
            value={
                "email": "reviewer@example.com", "first_name": "Amina", "last_name": "Otieno",
                "role": "TECHNICAL_REVIEWER", "country": "Kenya", "organization": "KCIC",
                "password": "Str0ng!Passw0rd",
            },
            request_only=True,
        )],
    )
    def create(self, request, *args, **kwargs):
        ser = EvaluatorCreateSerializer(data=request.data)
        try:
            ser.is_valid(raise_exception=True)
        except ValidationError as exc:
            logger.info("Evaluator create validation failed for %s: %s", request.data.get("email"), exc.detail)
            return Response(
                {"message": build_validation_message(exc.detail), "errors": exc.detail},
                status=status.HTTP_400_BAD_REQUEST,
            )
        try:
            user = ser.save()
        except Exception as e:
            logger.exception("Failed to create evaluator %s", ser.validated_data.get("email"))
            return Response(
                {"message": "We could not create the evaluator right now. Please try again later.", "errors": str(e)},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )
        log_activity(request.user, ActivityLog.Action.CREATE, user, help_text=f"Created evaluator {user.email} ({user.role})")
        return Response(EvaluatorSerializer(user).data, status=status.HTTP_201_CREATED)

    @extend_schema(summary="Retrieve evaluator", responses={200: EvaluatorSerializer, 404: OpenApiResponse})
    def retrieve(self, *args, **kwargs):
        return super().retrieve(*args, **kwargs)

    @extend_schema(
        summary="Update evaluator (role, profile, is_active)",
        request=EvaluatorUpdateSerializer,
        responses={200: EvaluatorSerializer, 404: OpenApiResponse},
        examples=[OpenApiExample("Promote to jury", value={"role": "JURY_MEMBER"}, request_only=True)],
    )
    def partial_update(self, request, *args, **kwargs):
        try:
            u = self.get_object()
        except Http404:
            return Response({"message": "Evaluator not found."}, status=status.HTTP_404_NOT_FOUND)

        before = {"role": u.role, "is_active": u.is_active}
        ser = EvaluatorUpdateSerializer(u, data=request.data, partial=True)
        try:
            ser.is_valid(raise_exception=True)
        except ValidationError as exc:
            return Response(
                {"message": build_validation_message(exc.detail), "errors": exc.detail},
                status=status.HTTP_400_BAD_REQUEST,
            )
        u = ser.save()
        changes = {
            k: {"from": v, "to": getattr(u, k)}
            for k, v in before.items() if getattr(u, k) != v
        }
        log_activity(
            request.user, ActivityLog.Action.UPDATE, u, changes=changes,
            help_text=f"Updated evaluator {u.email}",
        )
        return Response(EvaluatorSerializer(u).data)

    @extend_schema(summary="Deactivate evaluator", responses={204: OpenApiResponse, 404: OpenApiResponse})
    def destroy(self, request, *args, **kwargs):
        try:
            u = self.get_object()
        except Http404:
            return Response({"message": "Evaluator not found."}, status=status.HTTP_404_NOT_FOUND)
        if u.is_active:
            u.is_active = False
            u.save(update_fields=["is_active"])
            log_activity(
                request.user, ActivityLog.Action.UPDATE, u,
                changes={"is_active": {"from": True, "to": False}},
                help_text=f"Deactivated evaluator {u.email}",
            )
        return Response(status=status.HTTP_204_NO_CONTENT)
