# admin_portal/analytics.py
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from django.conf import settings
from django.db.models import Avg, Count, Max, Min, Q
from django.db.models.functions import TruncDate
from django.utils import timezone

from accounts.models import User
from admin_portal.models import ActivityLog
from admin_portal.utils import format_human_datetime
from applications.models import Application
from evaluations.services import as_number
from scoring.logic import get_active_configuration
from scoring.models import ApplicationScore, EligibilityResult, ScoringCriterion, PRESENTATION_CATEGORY

SCORE_RANGES = (
    ("0-19", 0, 20),
    ("20-39", 20, 40),
    ("40-59", 40, 60),
    ("60-79", 60, 80),
    ("80-100", 80, None),
)


def _active_since():
    return timezone.now() - timedelta(days=settings.GRANTS["EVALUATOR_ACTIVE_DAYS"])


def _evaluated_application_ids():
    return ApplicationScore.objects.filter(score__gt=0).values("application_id").distinct()


def _scored_results():
    """Eligibility results whose total comes from evaluator scores."""
    return EligibilityResult.objects.filter(application_id__in=_evaluated_application_ids())


def recent_activity(limit: int = 10, window: Optional[Tuple[datetime, datetime]] = None) -> List[Dict[str, Any]]:
    qs = ActivityLog.objects.exclude(action=ActivityLog.Action.API_HIT).select_related("actor")
    if window:
        qs = qs.filter(created_at__gte=window[0], created_at__lte=window[1])
    return [{
        "id": r.id,
        "timestamp": r.created_at.isoformat(),
        "when": format_human_datetime(r.created_at),
        "actor": getattr(r.actor, "email", None),
        "action": r.action,
        "object": f"{r.app_label}.{r.model}#{r.object_id}",
        "help_text": r.help_text,
    } for r in qs.order_by("-created_at")[:limit]]


def dashboard(window: Tuple[datetime, datetime]) -> Dict[str, Any]:
    win_from, win_to = window
    total = Application.objects.count()
    evaluated = Application.objects.filter(id__in=_evaluated_application_ids()).count()

    score_stats = _scored_results().aggregate(avg=Avg("total_score"), top=Max("total_score"))
    config = get_active_configuration()

    evaluators = User.objects.evaluators()
    active = evaluators.filter(application_scores__evaluated_at__gte=_active_since()).distinct().count()

    status_distribution = {s: 0 for s in Application.Status.values}
    for row in Application.objects.values("status").annotate(n=Count("id")):
        status_distribution[row["status"]] = row["n"]

    country_distribution = {
        row["business__country"]: row["n"]
        for row in Application.objects.values("business__country").annotate(n=Count("id")).order_by("-n")
        if row["business__country"]
    }

    return {
        "total_applications": total,
        "evaluated_applications": evaluated,
        "evaluation_rate": round(evaluated * 100 / total) if total else 0,
        "new_this_week": Application.objects.filter(created_at__gte=timezone.now() - timedelta(days=7)).count(),
        "new_in_window": Application.objects.filter(created_at__gte=win_from, created_at__lte=win_to).count(),
        "average_score": round(float(score_stats["avg"] or 0), 2),
        "highest_score": as_number(score_stats["top"] or 0),
        "max_score": config.total_max_score if config else 100,
        "total_evaluators": evaluators.count(),
        "active_evaluators": active,
        "status_distribution": status_distribution,
        "country_distribution": country_distribution,
        "recent_activity": recent_activity(window=window),
        "window": {"from": win_from.isoformat(), "to": win_to.isoformat()},
    }


def scoring_analytics() -> Dict[str, Any]:
    config = get_active_configuration()
    criteria_qs = ScoringCriterion.objects.all()
    if config is not None:
        criteria_qs = criteria_qs.filter(config=config)

    scored = Q(scores__evaluated_at__isnull=False)
    criteria = (
        criteria_qs
        .annotate(
            average_score=Avg("scores__score", filter=scored),
            total_scores=Count("scores", filter=scored),
            min_score=Min("scores__score", filter=scored),
            max_score_actual=Max("scores__score", filter=scored),
        )
        .order_by("sort_order", "id")
    )
    criteria_analytics = [{
        "criterion_id": c.id,
        "title": c.name,
        "category": c.category,
        "phase": "dragons_den" if c.category == PRESENTATION_CATEGORY else "scoring",
        "max_points": c.max_points,
        "average_score": round(float(c.average_score or 0), 2),
        "total_scores": c.total_scores,
        "min_score": as_number(c.min_score),
        "max_score_actual": as_number(c.max_score_actual),
        "utilization_rate": round(float(c.average_score or 0) * 100 / c.max_points) if c.max_points else 0,
    } for c in criteria]

    # distribution of application totals, as a percentage of the rubric maximum
    scale = Decimal(config.total_max_score if config else 100)
    distribution = {label: 0 for label, _, _ in SCORE_RANGES}
    results = list(_scored_results().select_related("application__business", "application__business__applicant"))
    for r in results:
        pct = Decimal(r.total_score) * 100 / scale if scale else Decimal("0")
        for label, low, high in SCORE_RANGES:
            if pct >= low and (high is None or pct < high):
                distribution[label] += 1
                break

    top = sorted(results, key=lambda r: (-r.total_score, r.application_id))[:10]
    top_applications = [{
        "application_id": r.application_id,
        "business_name": r.application.business.name,
        "applicant_name": r.application.business.applicant.full_name,
        "total_score": as_number(r.total_score),
        "max_possible_score": int(scale),
        "percentage": round(float(r.total_score) * 100 / float(scale)) if scale else 0,
        "is_eligible": r.is_eligible,
    } for r in top]

    return {
        "configuration": {"id": config.id, "name": config.name, "version": config.version} if config else None,
        "criteria_analytics": criteria_analytics,
        "score_distribution": [{"score_range": k, "count": v} for k, v in distribution.items()],
        "top_applications": top_applications,
    }


def evaluator_performance() -> Dict[str, Any]:
    since = _active_since()
    rows = (
        User.objects.evaluators()
        .annotate(
            total_assignments=Count("application_scores__application", distinct=True),
            completed=Count(
                "application_scores__application", distinct=True,
                filter=Q(application_scores__score__gt=0),
            ),
            average_score=Avg("application_scores__score", filter=Q(application_scores__evaluated_at__isnull=False)),
            last_activity=Max("application_scores__evaluated_at"),
        )
    )
    evaluators = []
    for u in rows:
        evaluators.append({
            "evaluator_id": u.id,
            "name": u.full_name,
            "email": u.email,
            "role": u.role,
            "total_assignments": u.total_assignments,
            "completed_evaluations": u.completed,
            "completion_rate": round(u.completed * 100 / u.total_assignments) if u.total_assignments else 0,
            "average_score": round(float(u.average_score or 0), 2),
            "last_activity": u.last_activity,
            "is_active": bool(u.last_activity and u.last_activity >= since),
        })
    evaluators.sort(key=lambda e: (-e["completed_evaluations"], e["evaluator_id"]))

    n = len(evaluators)
    return {
        "evaluators": evaluators,
        "summary": {
            "total_evaluators": n,
            "average_completion_rate": round(sum(e["completion_rate"] for e in evaluators) / n) if n else 0,
            "active_evaluators": sum(1 for e in evaluators if e["is_active"]),
        },
    }


def trends(days: int = 30) -> Dict[str, Any]:
    end = timezone.now()
    start = end - timedelta(days=days)

    submissions = (
        Application.objects.filter(created_at__gte=start)
        .annotate(date=TruncDate("created_at"))
        .values("date").annotate(count=Count("id")).order_by("date")
    )
    evaluations = (
        ApplicationScore.objects.filter(evaluated_at__gte=start)
        .annotate(date=TruncDate("evaluated_at"))
        .values("date").annotate(count=Count("id")).order_by("date")
    )
    return {
        "daily_submissions": [{"date": r["date"].isoformat(), "count": r["count"]} for r in submissions],
        "daily_evaluations": [{"date": r["date"].isoformat(), "count": r["count"]} for r in evaluations],
        "period": {"days": days, "start_date": start.isoformat(), "end_date": end.isoformat()},
    }
