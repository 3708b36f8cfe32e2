# evaluations/dragons_den.py
"""
Dragon's Den: the final pitch panel.

Judges score applications in the `dragons_den` status against the
presentation criteria of the active configuration. Presentation scores never
feed the eligibility total; they rank the finalists for winner selection.
"""
from __future__ import annotations
import logging
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from django.db import transaction
from django.db.models import Count, Q, Sum
from django.utils import timezone

from accounts.models import User
from admin_portal.models import ActivityLog
from admin_portal.utils import log_activity
from applications.models import Application
from applications.services import change_status
from evaluations.services import AssignmentError, as_number, to_decimal
from scoring.logic import get_active_configuration, scoring_criteria, category_maxima
from scoring.models import ApplicationScore, PRESENTATION_CATEGORY

logger = logging.getLogger(__name__)


def _finalists():
    return (
        Application.objects
        .filter(status=Application.Status.DRAGONS_DEN)
        .select_related("business", "business__applicant", "eligibility")
        .order_by("id")
    )


def _presentation_rows(**filters):
    return ApplicationScore.objects.filter(criterion__category=PRESENTATION_CATEGORY, **filters)


def _presentation_max(config) -> int:
    if config is None:
        return 0
    return sum(c.max_points for c in scoring_criteria(config, presentation=True))


def _previous_score(app: Application) -> Decimal:
    result = getattr(app, "eligibility", None)
    return Decimal(result.total_score) if result else Decimal("0")


def _require_judge(judge: User):
    if judge.role != User.Role.DRAGONS_DEN_JUDGE:
        raise AssignmentError("Access denied. Dragon's Den judge role required.")


def dragons_den_applications(judge: User) -> List[Dict[str, Any]]:
    _require_judge(judge)
    config = get_active_configuration()
    max_presentation = _presentation_max(config)
    max_previous = sum(category_maxima(config).values()) if config else 0

    apps = list(_finalists())
    mine = {
        row["application"]: row
        for row in _presentation_rows(evaluator=judge, application__in=apps)
        .values("application")
        .annotate(total=Sum("score"), scored=Count("id", filter=Q(score__gt=0)))
    }

    out = []
    for app in apps:
        row = mine.get(app.id, {})
        presentation = Decimal(row.get("total") or 0)
        previous = _previous_score(app)
        business = app.business
        out.append({
            "application": {
                "id": app.id,
                "status": app.status,
                "created_at": app.created_at,
                "business": {
                    "name": business.name,
                    "description": business.description,
                    "city": business.city,
                    "country": business.country,
                    "start_date": business.start_date,
                },
                "applicant": {
                    "first_name": business.applicant.first_name,
                    "last_name": business.applicant.last_name,
                    "email": business.applicant.email,
                    "gender": business.applicant.gender,
                    "citizenship": business.applicant.citizenship,
                    "highest_education": business.applicant.highest_education,
                },
            },
            "dragons_den_score": as_number(presentation),
            "max_dragons_den_score": max_presentation,
            "previous_score": as_number(previous),
            "max_previous_score": max_previous,
            "final_score": as_number(previous + presentation),
            "max_final_score": max_previous + max_presentation,
            "is_evaluated": bool(row.get("scored")),
        })
    out.sort(key=lambda r: (-r["final_score"], r["application"]["id"]))
    return out


def dragons_den_stats(judge: User) -> Dict[str, Any]:
    """
    Per-judge progress. Scores are the judge's presentation totals per application.
    """
    _require_judge(judge)
    config = get_active_configuration()
    apps = list(_finalists().values_list("id", flat=True))

    totals = [
        Decimal(row["total"] or 0)
        for row in _presentation_rows(evaluator=judge, application_id__in=apps, score__gt=0)
        .values("application")
        .annotate(total=Sum("score"))
    ]
    return {
        "total_finalists": len(apps),
        "evaluated": len(totals),
        "average_score": round(float(sum(totals) / len(totals)), 2) if totals else 0,
        "max_score": _presentation_max(config),
        "top_score": as_number(max(totals)) if totals else 0,
    }


def dragons_den_criteria(application_id: int, judge: User) -> List[Dict[str, Any]]:
    _require_judge(judge)
    config = get_active_configuration()
    if config is None:
        raise AssignmentError("No active scoring configuration found.")
    if not Application.objects.filter(pk=application_id).exists():
        raise Application.DoesNotExist(f"Application {application_id} not found.")

    existing = {
        row.criterion_id: row
        for row in _presentation_rows(evaluator=judge, application_id=application_id)
    }
    out = []
    for c in scoring_criteria(config, presentation=True):
        row = existing.get(c.id)
        out.append({
            "criterion": {
                "id": c.id,
                "name": c.name,
                "description": c.description,
                "max_points": c.max_points,
                "category": c.category,
                "scoring_levels": c.scoring_levels,
            },
            "score": as_number(row.score) if row else 0,
            "comments": row.notes if row else "",
        })
    return out


@transaction.atomic
def update_dragons_den_scores(judge: User, application_id: int, scores: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    _require_judge(judge)
    app = Application.objects.select_for_update().filter(pk=application_id).first()
    if app is None or app.status != Application.Status.DRAGONS_DEN:
        raise AssignmentError("Application not found or not in Dragon's Den phase.")

    config = get_active_configuration()
    if config is None:
        raise AssignmentError("No active scoring configuration found.")
    criteria = {c.id: c for c in scoring_criteria(config, presentation=True)}

    now = timezone.now()
    updated = 0
    for item in scores:
        criterion = criteria.get(int(item["criterion_id"]))
        if criterion is None:
            raise AssignmentError(f"Criterion {item['criterion_id']} is not a presentation criterion of the active configuration.")
        score = to_decimal(item["score"])
        if score < 0 or score > criterion.max_points:
            raise AssignmentError(f"Score {as_number(score)} is out of bounds (0-{criterion.max_points})")

        row, _ = ApplicationScore.objects.get_or_create(
            application=app,
            criterion=criterion,
            evaluator=judge,
            defaults={"config": config, "max_score": Decimal(criterion.max_points)},
        )
        row.score = score
        row.notes = item.get("comments") or ""
        row.evaluated_at = now
        row.save(update_fields=["score", "notes", "evaluated_at", "updated_at"])
        updated += 1

    log_activity(
        judge, ActivityLog.Action.SCORE, app,
        meta={"phase": "dragons_den", "updated": updated},
        help_text=f"{judge.email} scored the Dragon's Den pitch of application {app.id}",
    )
    return {"application_id": app.id, "updated": updated}


def dragons_den_leaderboard() -> List[Dict[str, Any]]:
    """
    Finalists ranked by the presentation score summed over all judges.
    The percentage is taken against the maximum for the judges who scored.
    """
    config = get_active_configuration()
    per_judge_max = _presentation_max(config)
    apps = list(_finalists())

    agg = {
        row["application"]: row
        for row in _presentation_rows(application__in=apps, evaluated_at__isnull=False)
        .values("application")
        .annotate(total=Sum("score"), judges=Count("evaluator", distinct=True))
    }

    board = []
    for app in apps:
        row = agg.get(app.id, {})
        total = Decimal(row.get("total") or 0)
        judges = row.get("judges") or 0
        max_total = per_judge_max * judges
        board.append({
            "application_id": app.id,
            "business_name": app.business.name,
            "applicant_name": app.business.applicant.full_name,
            "country": app.business.country,
            "presentation_score": as_number(total),
            "max_presentation_score": max_total,
            "previous_score": as_number(_previous_score(app)),
            "percentage": round(float(total) * 100 / max_total) if max_total else 0,
            "evaluation_count": judges,
        })

    board.sort(key=lambda r: (-r["presentation_score"], -r["percentage"], r["application_id"]))
    for rank, entry in enumerate(board, start=1):
        entry["rank"] = rank
    return board


@transaction.atomic
def select_winners(application_ids: Iterable[int], *, user=None, categories: Optional[List[str]] = None) -> Dict[str, Any]:
    """
    Selected applications are approved; every other application still in the
    Dragon's Den is rejected.
    """
    ids = list(dict.fromkeys(int(i) for i in application_ids))
    if not ids:
        raise AssignmentError("Select at least one winner.")

    selected = list(Application.objects.select_for_update().filter(id__in=ids).order_by("id"))
    missing = sorted(set(ids) - {a.id for a in selected})
    if missing:
        raise AssignmentError(f"Applications not found: {', '.join(str(i) for i in missing)}.")

    note = "Selected as Dragon's Den winner"
    if categories:
        note += f" ({', '.join(categories)})"
    for app in selected:
        change_status(app, Application.Status.APPROVED, user=user, notes=note)

    others = list(
        Application.objects.select_for_update()
        .filter(status=Application.Status.DRAGONS_DEN)
        .exclude(id__in=ids)
        .order_by("id")
    )
    for app in others:
        change_status(app, Application.Status.REJECTED, user=user, notes="Not selected in Dragon's Den")

    log_activity(
        user, ActivityLog.Action.STATUS_CHANGE, None, app_label="applications", model="Application",
        meta={"winners": ids, "rejected": [a.id for a in others], "categories": categories or []},
        help_text=f"Selected {len(selected)} winner(s); {len(others)} application(s) rejected",
    )
    logger.info("Dragon's Den winners %s; rejected %s", ids, [a.id for a in others])
    return {
        "message": f"Selected {len(selected)} winners. {len(others)} applications moved to rejected.",
        "winners": len(selected),
        "winner_ids": ids,
        "rejected": len(others),
        "rejected_ids": [a.id for a in others],
        "categories": categories or [],
    }
