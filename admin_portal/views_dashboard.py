# admin_portal/views_dashboard.py
from datetime import datetime, timedelta, time
from typing import Tuple
import logging
from django.utils import timezone

from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from rest_framework import status
from drf_spectacular.utils import extend_schema, OpenApiParameter, OpenApiResponse
from django.utils.dateparse import parse_datetime, parse_date

from admin_portal import analytics
from admin_portal.permissions import IsAdminRole

logger = logging.getLogger(__name__)


def _window_from_query(params) -> Tuple[datetime, datetime]:
    """
    Global filter: prefer explicit from/to (ISO 8601), else use ?days=N (default 7).

    Supports:
      - full datetimes: 2025-10-01T00:00:00 or 2025-10-01 00:00:00
      - date-only:      2025-10-01 (interpreted as start_of_day / end_of_day)
      - timezone suffixes like 'Z' or '+03:00' (handled by parse_datetime)

    All returned datetimes are timezone-aware (using Django's default timezone).
    """
    tz_now = timezone.now()
    date_from = params.get("from")
    date_to = params.get("to")

    if date_from and date_to:
        try:
            start = parse_datetime(date_from)
            end = parse_datetime(date_to)

            # date-only like '2025-10-01'
            if start is None:
                d_from = parse_date(date_from)
                if d_from is not None:
                    start = datetime.combine(d_from, time.min)

            if end is None:
                d_to = parse_date(date_to)
                if d_to is not None:
                    end = datetime.combine(d_to, time.max)

            if start and end:
                if timezone.is_naive(start):
                    start = timezone.make_aware(start)
                if timezone.is_naive(end):
                    end = timezone.make_aware(end)
                return (start, end)
        except ValueError as exc:
            logger.warning("Dashboard: failed to parse from/to (%r, %r): %s", date_from, date_to, exc)

    try:
        days = int(params.get("days", 7) or 7)
    except (TypeError, ValueError):
        days = 7
    start = tz_now - timedelta(days=days)
    logger.debug("Dashboard: using fallback window days=%s -> %s .. %s", days, start, tz_now)
    return (start, tz_now)


def _days_param(params, default=30) -> int:
    try:
        days = int(params.get("days", default) or default)
    except (TypeError, ValueError):
        return default
    return max(1, min(days, 365))


def _failed(what: str, e: Exception):
    logger.exception("Dashboard: could not compute %s", what)
    return Response(
        {"message": f"We could not fetch the {what} right now. Please try again later.", "errors": str(e)},
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


@extend_schema(
    tags=["Admin • Dashboard"],
    summary="Admin dashboard summary",
    parameters=[
        OpenApiParameter(
            name="days",
            description="Window for new_in_window and recent activity (ignored if 'from' and 'to' provided). Default 7.",
            required=False, type=int,
        ),
        OpenApiParameter(name="from", description="ISO datetime. Example: 2025-10-25T00:00:00", required=False, type=str),
        OpenApiParameter(name="to", description="ISO datetime. Example: 2025-10-28T23:59:59", required=False, type=str),
    ],
    responses={200: OpenApiResponse(description="Application, score and evaluator KPIs")},
)
class AdminDashboardSummaryView(APIView):
    """
    Returns:
      - application KPIs (total, evaluated, evaluation rate, new this week / in window)
      - score KPIs (average, highest, rubric maximum)
      - evaluator KPIs (total, active in the last EVALUATOR_ACTIVE_DAYS days)
      - status and country distributions
      - recent activity within the window
    """
    permission_classes = [IsAuthenticated, IsAdminRole]

    def get(self, request):
        try:
            window = _window_from_query(request.query_params)
            return Response(analytics.dashboard(window))
        except Exception as e:
            return _failed("dashboard data", e)


@extend_schema(
    tags=["Admin • Dashboard"],
    summary="Per-criterion statistics, score distribution and top applications",
    responses={200: OpenApiResponse(description="Scoring analytics for the active configuration")},
)
class ScoringAnalyticsView(APIView):
    permission_classes = [IsAuthenticated, IsAdminRole]

    def get(self, request):
        try:
            return Response(analytics.scoring_analytics())
        except Exception as e:
            return _failed("scoring analytics", e)


@extend_schema(
    tags=["Admin • Dashboard"],
    summary="Evaluator performance",
    responses={200: OpenApiResponse(description="Per-evaluator assignments and completion")},
)
class EvaluatorPerformanceView(APIView):
    permission_classes = [IsAuthenticated, IsAdminRole]

    def get(self, request):
        try:
            return Response(analytics.evaluator_performance())
        except Exception as e:
            return _failed("evaluator performance", e)


@extend_schema(
    tags=["Admin • Dashboard"],
    summary="Daily submissions and evaluations",
    parameters=[OpenApiParameter(name="days", description="Lookback in days (1-365). Default 30.", required=False, type=int)],
    responses={200: OpenApiResponse(description="Daily series")},
)
class TrendsView(APIView):
    permission_classes = [IsAuthenticated, IsAdminRole]

    def get(self, request):
        try:
            return Response(analytics.trends(_days_param(request.query_params)))
        except Exception as e:
            return _failed("trends", e)
