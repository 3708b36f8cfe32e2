# evaluations/services.py
from __future__ import annotations
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Optional

from django.db import transaction
from django.db.models import Count, Q, Max
from django.utils import timezone

from accounts.models import User
from admin_portal.models import ActivityLog
from admin_portal.utils import log_activity
from applications.models import Application
from scoring.logic import get_active_configuration, scoring_criteria, eligibility_check
from scoring.models import ApplicationScore, ScoringConfiguration

logger = logging.getLogger(__name__)

# Application statuses in which each evaluator role may be assigned and score
ROLE_VALID_STATUSES = {
    User.Role.TECHNICAL_REVIEWER: (Application.Status.SCORING_PHASE,),
    User.Role.JURY_MEMBER: (Application.Status.SCORING_PHASE,),
    User.Role.DRAGONS_DEN_JUDGE: (Application.Status.DRAGONS_DEN,),
}


class AssignmentError(ValueError):
    pass


def as_number(value):
    """Decimal -> int when integral, float otherwise (for JSON payloads and messages)."""
    if value is None:
        return None
    value = Decimal(value)
    return int(value) if value == value.to_integral_value() else float(value)


def _unique_ids(ids: Iterable[Any]) -> List[int]:
    return list(dict.fromkeys(int(i) for i in ids))


def _require_active_config() -> ScoringConfiguration:
    config = get_active_configuration()
    if config is None:
        raise AssignmentError("No active scoring configuration found.")
    return config


def _criteria_for_role(config: ScoringConfiguration, role: str):
    return list(scoring_criteria(config, presentation=(role == User.Role.DRAGONS_DEN_JUDGE)))


def _create_score_rows(application: Application, evaluator: User, config: ScoringConfiguration, criteria) -> int:
    created = 0
    for criterion in criteria:
        _, was_created = ApplicationScore.objects.get_or_create(
            application=application,
            criterion=criterion,
            evaluator=evaluator,
            defaults={"config": config, "score": Decimal("0"), "max_score": Decimal(criterion.max_points)},
        )
        created += int(was_created)
    return created


def _gate(applications: Dict[int, Application], ids: List[int], role: str):
    """Split requested ids into assignable applications and skipped entries with reasons."""
    valid = ROLE_VALID_STATUSES[role]
    ok, skipped = [], []
    for app_id in ids:
        app = applications.get(app_id)
        if app is None:
            skipped.append({"application_id": app_id, "reason": "Application not found."})
        elif app.status not in valid:
            skipped.append({
                "application_id": app_id,
                "reason": f"Status '{app.status}' is not open to {role.lower()} evaluation.",
            })
        else:
            ok.append(app)
    return ok, skipped


# ---------------------------
# Assignment
# ---------------------------
@transaction.atomic
def assign_applications(application_ids: Iterable[int], evaluator_id: int, role: str, *, user=None) -> Dict[str, Any]:
    if role not in ROLE_VALID_STATUSES:
        raise AssignmentError(f"Invalid evaluator role '{role}'.")
    config = _require_active_config()

    evaluator = User.objects.filter(pk=evaluator_id, role=role, is_active=True).first()
    if evaluator is None:
        raise AssignmentError(f"Evaluator {evaluator_id} not found or has incorrect role.")

    ids = _unique_ids(application_ids)
    apps = Application.objects.in_bulk(ids)
    assignable, skipped = _gate(apps, ids, role)

    criteria = _criteria_for_role(config, role)
    rows = sum(_create_score_rows(app, evaluator, config, criteria) for app in assignable)

    log_activity(
        user, ActivityLog.Action.ASSIGN, evaluator,
        meta={"application_ids": [a.id for a in assignable], "role": role, "rows_created": rows},
        help_text=f"Assigned {len(assignable)} application(s) to {evaluator.email}",
    )
    logger.info("Assigned %s applications to evaluator %s (%s rows)", len(assignable), evaluator.id, rows)
    return {
        "evaluator_id": evaluator.id,
        "assigned": len(assignable),
        "assigned_ids": [a.id for a in assignable],
        "skipped": skipped,
        "criteria_per_application": len(criteria),
    }


@transaction.atomic
def auto_assign(application_ids: Iterable[int], role: str, evaluators_per_application: int = 2, *, user=None) -> Dict[str, Any]:
    """
    Assign every application to the first N active evaluators of `role` (ordered by id).
    """
    if role not in ROLE_VALID_STATUSES:
        raise AssignmentError(f"Invalid evaluator role '{role}'.")
    if evaluators_per_application < 1:
        raise AssignmentError("evaluators_per_application must be at least 1.")
    config = _require_active_config()

    evaluators = list(User.objects.evaluators(role)[:evaluators_per_application])
    if not evaluators:
        raise AssignmentError(f"No {User.Role(role).label.lower()}s available.")

    ids = _unique_ids(application_ids)
    apps = Application.objects.in_bulk(ids)
    assignable, skipped = _gate(apps, ids, role)

    criteria = _criteria_for_role(config, role)
    rows = 0
    for app in assignable:
        for evaluator in evaluators:
            rows += _create_score_rows(app, evaluator, config, criteria)

    log_activity(
        user, ActivityLog.Action.ASSIGN, None, app_label="evaluations", model="Assignment",
        meta={
            "application_ids": [a.id for a in assignable],
            "evaluator_ids": [e.id for e in evaluators],
            "role": role,
            "rows_created": rows,
        },
        help_text=f"Auto-assigned {len(assignable)} application(s) to {len(evaluators)} evaluator(s)",
    )
    return {
        "applications_assigned": len(assignable),
        "evaluators_per_application": len(evaluators),
        "evaluator_ids": [e.id for e in evaluators],
        "skipped": skipped,
    }


@transaction.atomic
def remove_assignments(evaluator_id: int, application_ids: Iterable[int], *, user=None) -> Dict[str, Any]:
    ids = _unique_ids(application_ids)
    qs = ApplicationScore.objects.filter(evaluator_id=evaluator_id, application_id__in=ids)
    touched = set(qs.filter(evaluated_at__isnull=False).values_list("application_id", flat=True))
    deleted, _ = qs.delete()

    # removed scores may change totals
    for app in Application.objects.filter(id__in=touched).select_related("business", "business__applicant"):
        eligibility_check(app)

    log_activity(
        user, ActivityLog.Action.UNASSIGN, None, app_label="evaluations", model="Assignment",
        meta={"evaluator_id": evaluator_id, "application_ids": ids, "rows_deleted": deleted},
        help_text=f"Removed {deleted} score row(s) of evaluator {evaluator_id}",
    )
    return {"evaluator_id": evaluator_id, "removed_rows": deleted, "application_ids": ids}


# ---------------------------
# Workload / listings
# ---------------------------
def evaluator_workloads(role: Optional[str] = None) -> List[Dict[str, Any]]:
    stats = {
        row["evaluator"]: row
        for row in ApplicationScore.objects.values("evaluator").annotate(
            assigned=Count("application", distinct=True),
            completed=Count("application", distinct=True, filter=Q(score__gt=0)),
            last_activity=Max("evaluated_at"),
        )
    }
    out = []
    for ev in User.objects.evaluators(role):
        s = stats.get(ev.id, {})
        assigned = s.get("assigned", 0)
        completed = s.get("completed", 0)
        out.append({
            "evaluator_id": ev.id,
            "evaluator_name": ev.full_name,
            "evaluator_email": ev.email,
            "role": ev.role,
            "assigned_applications": assigned,
            "completed_evaluations": completed,
            "pending_evaluations": assigned - completed,
            "last_activity": s.get("last_activity"),
        })
    return out


def _application_summary(app: Application) -> Dict[str, Any]:
    business = app.business
    return {
        "id": app.id,
        "status": app.status,
        "business_name": business.name,
        "applicant_name": business.applicant.full_name,
        "country": business.country,
        "submitted_at": app.submitted_at,
    }


def _grouped_rows(evaluator_id: int, *, with_totals: bool) -> List[Dict[str, Any]]:
    rows = (
        ApplicationScore.objects
        .filter(evaluator_id=evaluator_id)
        .select_related("application", "application__business", "application__business__applicant", "criterion", "config")
        .order_by("application_id", "criterion__sort_order", "criterion_id")
    )
    grouped: Dict[int, Dict[str, Any]] = {}
    for row in rows:
        entry = grouped.get(row.application_id)
        if entry is None:
            entry = grouped[row.application_id] = {
                "application": _application_summary(row.application),
                "configuration": {"id": row.config_id, "name": row.config.name, "version": row.config.version},
                "scores": [],
            }
        entry["scores"].append({
            "id": row.id,
            "criterion_id": row.criterion_id,
            "criterion_name": row.criterion.name,
            "category": row.criterion.category,
            "description": row.criterion.description,
            "scoring_levels": row.criterion.scoring_levels,
            "score": as_number(row.score),
            "max_score": as_number(row.max_score),
            "level": row.level,
            "notes": row.notes,
            "evaluated_at": row.evaluated_at,
        })

    if with_totals:
        for entry in grouped.values():
            scores = entry["scores"]
            entry["total_score"] = as_number(sum(Decimal(str(s["score"])) for s in scores))
            entry["max_total_score"] = as_number(sum(Decimal(str(s["max_score"])) for s in scores))
            done = sum(1 for s in scores if s["score"] > 0)
            entry["completion_percentage"] = round(done * 100 / len(scores)) if scores else 0
    return list(grouped.values())


def evaluator_assignments(evaluator_id: int) -> List[Dict[str, Any]]:
    return _grouped_rows(evaluator_id, with_totals=False)


def my_assigned_applications(evaluator: User) -> List[Dict[str, Any]]:
    return _grouped_rows(evaluator.id, with_totals=True)


# ---------------------------
# Scoring
# ---------------------------
def to_decimal(value) -> Decimal:
    try:
        return Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise AssignmentError(f"Score {value!r} is not a number.")


@transaction.atomic
def update_scores(evaluator: User, updates: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Apply an evaluator's score updates. Rows not assigned to the evaluator are
    skipped; an out-of-bounds score or a closed application aborts the batch.
    Eligibility is recomputed for every application touched.
    """
    valid_statuses = ROLE_VALID_STATUSES.get(evaluator.role, ())
    now = timezone.now()
    updated, skipped = 0, 0
    touched: Dict[int, Application] = {}

    for upd in updates:
        row = (
            ApplicationScore.objects.select_for_update()
            .select_related("application", "criterion")
            .filter(
                application_id=upd["application_id"],
                criterion_id=upd["criterion_id"],
                evaluator=evaluator,
            )
            .first()
        )
        if row is None:
            skipped += 1
            continue

        if row.application.status not in valid_statuses:
            raise AssignmentError(
                f"Application {row.application_id} is not open for scoring (status '{row.application.status}')."
            )

        score = to_decimal(upd["score"])
        if score < 0 or score > row.max_score:
            raise AssignmentError(
                f"Score {as_number(score)} is out of bounds (0-{as_number(row.max_score)})"
            )

        row.score = score
        if "level" in upd:
            row.level = upd.get("level") or ""
        if "notes" in upd:
            row.notes = upd.get("notes") or ""
        row.evaluated_at = now
        row.save(update_fields=["score", "level", "notes", "evaluated_at", "updated_at"])
        touched[row.application_id] = row.application
        updated += 1

    for app in touched.values():
        eligibility_check(app, evaluated_by=evaluator)

    if updated:
        log_activity(
            evaluator, ActivityLog.Action.SCORE, None, app_label="scoring", model="ApplicationScore",
            meta={"application_ids": sorted(touched), "updated": updated, "skipped": skipped},
            help_text=f"{evaluator.email} updated {updated} score(s)",
        )
    return {"updated": updated, "skipped": skipped, "application_ids": sorted(touched)}
