import logging

from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView
from drf_spectacular.utils import extend_schema, OpenApiExample, OpenApiParameter, OpenApiResponse

from accounts.utils import build_validation_message
from admin_portal.permissions import IsAdminRole
from support import services
from support.filters import SupportTicketFilter
from support.models import SupportTicket
from support.serializers import (
    SupportTicketCreateSerializer, SupportResponseCreateSerializer, TicketStatusUpdateSerializer,
    SupportTicketListSerializer, SupportTicketDetailSerializer, SupportResponseSerializer,
)
from support.services import SupportError, TicketAccessDenied

logger = logging.getLogger(__name__)


class TicketPage(PageNumberPagination):
    page_size = 20
    max_page_size = 100
    page_size_query_param = "page_size"


def _invalid(exc: ValidationError):
    return Response(
        {"message": build_validation_message(exc.detail), "errors": exc.detail},
        status=status.HTTP_400_BAD_REQUEST,
    )


def _not_found():
    return Response({"message": "Support ticket not found."}, status=status.HTTP_404_NOT_FOUND)


def _detail(ticket, user):
    ctx = {"responses": services.visible_responses(ticket, user)}
    return SupportTicketDetailSerializer(ticket, context=ctx).data


# ---------------------------
# Applicant / any signed-in user
# ---------------------------
class SupportTicketListCreateView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        tags=["Support"],
        summary="My support tickets",
        responses={200: SupportTicketListSerializer(many=True)},
    )
    def get(self, request):
        return Response(SupportTicketListSerializer(services.my_tickets(request.user), many=True).data)

    @extend_schema(
        tags=["Support"],
        summary="Open a support ticket",
        request=SupportTicketCreateSerializer,
        responses={201: SupportTicketDetailSerializer, 400: OpenApiResponse},
        examples=[OpenApiExample(
            "Upload problem",
            value={
                "category": "technical_issue", "priority": "high",
                "subject": "Cannot submit my application",
                "description": "The submit button spins and nothing happens after I fill every step.",
            },
            request_only=True,
        )],
    )
    def post(self, request):
        ser = SupportTicketCreateSerializer(data=request.data)
        try:
            ser.is_valid(raise_exception=True)
        except ValidationError as exc:
            return _invalid(exc)
        try:
            ticket = services.create_ticket(request.user, ser.validated_data)
        except Exception as e:
            logger.exception("Failed to create support ticket for user %s", request.user.id)
            return Response(
                {"message": "We could not create your support ticket right now. Please try again later.", "errors": str(e)},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )
        return Response(
            {"message": "Support ticket created successfully.", "ticket": _detail(ticket, request.user)},
            status=status.HTTP_201_CREATED,
        )


class SupportTicketDetailView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        tags=["Support"],
        summary="Ticket with its responses (internal notes hidden from the owner)",
        responses={200: SupportTicketDetailSerializer, 403: OpenApiResponse, 404: OpenApiResponse},
    )
    def get(self, request, pk: int):
        try:
            ticket = services.ticket_for(request.user, pk)
        except SupportTicket.DoesNotExist:
            return _not_found()
        except TicketAccessDenied as e:
            return Response({"message": str(e)}, status=status.HTTP_403_FORBIDDEN)
        return Response(_detail(ticket, request.user))


class SupportTicketResponseView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        tags=["Support"],
        summary="Reply to a ticket",
        request=SupportResponseCreateSerializer,
        responses={201: SupportResponseSerializer, 403: OpenApiResponse, 404: OpenApiResponse},
        examples=[OpenApiExample("Reply", value={"message": "Thanks, it works now."}, request_only=True)],
    )
    def post(self, request, pk: int):
        ser = SupportResponseCreateSerializer(data=request.data)
        try:
            ser.is_valid(raise_exception=True)
        except ValidationError as exc:
            return _invalid(exc)
        try:
            ticket = SupportTicket.objects.get(pk=pk)
        except SupportTicket.DoesNotExist:
            return _not_found()
        d = ser.validated_data
        try:
            response = services.add_response(
                ticket, request.user, d["message"],
                is_internal=d.get("is_internal", False), attachment_url=d.get("attachment_url") or "",
            )
        except TicketAccessDenied as e:
            return Response({"message": str(e)}, status=status.HTTP_403_FORBIDDEN)
        except Exception as e:
            logger.exception("Failed to add response to ticket %s", pk)
            return Response(
                {"message": "We could not add your response right now. Please try again later.", "errors": str(e)},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )
        return Response(SupportResponseSerializer(response).data, status=status.HTTP_201_CREATED)


# ---------------------------
# Admin
# ---------------------------
@extend_schema(tags=["Admin • Support"])
class AdminSupportTicketViewSet(viewsets.ReadOnlyModelViewSet):
    permission_classes = [IsAdminRole]
    pagination_class = TicketPage
    filter_backends = [DjangoFilterBackend]
    filterset_class = SupportTicketFilter
    queryset = SupportTicket.objects.select_related("assigned_to", "resolved_by").order_by("-created_at")

    def get_serializer_class(self):
        if self.action == "retrieve":
            return SupportTicketDetailSerializer
        return SupportTicketListSerializer

    @extend_schema(
        summary="List tickets",
        parameters=[
            OpenApiParameter("status", str, many=True, required=False),
            OpenApiParameter("category", str, required=False),
            OpenApiParameter("priority", str, required=False),
            OpenApiParameter("unassigned", bool, required=False),
            OpenApiParameter("search", str, required=False, description="Subject, description, ticket number or email"),
        ],
        responses={200: SupportTicketListSerializer(many=True)},
    )
    def list(self, *args, **kwargs):
        return super().list(*args, **kwargs)

    @extend_schema(summary="Ticket detail including internal notes", responses={200: SupportTicketDetailSerializer})
    def retrieve(self, request, *args, **kwargs):
        return Response(_detail(self.get_object(), request.user))

    @extend_schema(
        summary="Change ticket status / assignee",
        request=TicketStatusUpdateSerializer,
        responses={200: SupportTicketDetailSerializer, 404: OpenApiResponse},
        examples=[OpenApiExample(
            "Resolve",
            value={"status": "resolved", "resolution_notes": "Cleared the stale session."},
            request_only=True,
        )],
    )
    @action(detail=True, methods=["post"], url_path="status")
    def update_status(self, request, pk=None):
        ticket = self.get_object()
        ser = TicketStatusUpdateSerializer(data=request.data)
        try:
            ser.is_valid(raise_exception=True)
        except ValidationError as exc:
            return _invalid(exc)
        d = ser.validated_data
        kwargs = {"user": request.user, "resolution_notes": d.get("resolution_notes")}
        if "assigned_to" in d:
            kwargs["assigned_to"] = d["assigned_to"]
        try:
            ticket = services.update_ticket_status(ticket, d["status"], **kwargs)
        except SupportError as e:
            return Response({"message": str(e), "errors": {}}, status=status.HTTP_400_BAD_REQUEST)
        return Response(_detail(ticket, request.user))

    @extend_schema(summary="Ticket counters", responses={200: dict})
    @action(detail=False, methods=["get"], url_path="stats")
    def stats(self, request):
        return Response(services.support_stats())
