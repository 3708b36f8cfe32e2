# scoring/logic.py
from __future__ import annotations
import json
import logging
from decimal import Decimal, ROUND_HALF_UP
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Any

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from applications.models import Application, Applicant
from scoring.models import (
    ScoringConfiguration, ScoringCriterion, ApplicationScore,
    EligibilityResult, EvaluationHistory, PRESENTATION_CATEGORY,
)

logger = logging.getLogger(__name__)

DEFAULT_PASS_THRESHOLD = Decimal("60")
TWO_PLACES = Decimal("0.01")

MANDATORY_GATES = (
    "age_eligible",
    "registration_eligible",
    "revenue_eligible",
    "business_plan_eligible",
    "impact_eligible",
)

LEGACY_SCORE_FIELDS = (
    "market_potential_score",
    "innovation_score",
    "climate_adaptation_score",
    "job_creation_score",
    "viability_score",
    "management_capacity_score",
    "location_bonus",
    "gender_bonus",
)


class ScoringError(ValueError):
    """Raised when a scoring rule or configuration operation cannot be applied."""


def _q(value) -> Decimal:
    return Decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def _grants(key):
    return settings.GRANTS[key]


# ---------------------------
# Mandatory gates
# ---------------------------
def _long_enough(text: str | None) -> bool:
    return len((text or "").strip()) > _grants("MIN_NARRATIVE_LENGTH")


def check_mandatory_criteria(application: Application, *, on=None) -> Dict[str, bool]:
    """
    Five pass/fail gates, evaluated independently of weighted scoring:
    age within range, registered business, revenue > 0, business plan narratives
    and climate impact narratives longer than the minimum length.
    """
    business = application.business
    applicant: Applicant = business.applicant
    age = applicant.age_on(on)

    return {
        "age_eligible": _grants("MIN_APPLICANT_AGE") <= age <= _grants("MAX_APPLICANT_AGE"),
        "registration_eligible": bool(business.is_registered),
        "revenue_eligible": Decimal(business.revenue_last_two_years or 0) > 0,
        "business_plan_eligible": _long_enough(business.description) and _long_enough(business.problem_solved),
        "impact_eligible": (
            _long_enough(business.climate_adaptation_contribution)
            and _long_enough(business.climate_extreme_impact)
        ),
    }


def legacy_scores(application: Application) -> Dict[str, int]:
    """
    Heuristic pre-scores derived from the submitted form. Used as the total
    until evaluators have scored the application under a configuration.
    """
    business = application.business
    applicant = business.applicant
    focus = {c.lower() for c in _grants("FOCUS_COUNTRIES")}

    return {
        "market_potential_score": min(10, (business.customer_count_last_six_months or 0) // 100),
        "innovation_score": 5,
        "climate_adaptation_score": 10,
        "job_creation_score": min(10, business.total_employees),
        "viability_score": 5,
        "management_capacity_score": 5,
        "location_bonus": 5 if (business.country or "").lower() in focus else 0,
        "gender_bonus": 5 if applicant.gender == Applicant.Gender.FEMALE else 0,
    }


# ---------------------------
# Configuration helpers
# ---------------------------
def get_active_configuration() -> Optional[ScoringConfiguration]:
    return ScoringConfiguration.objects.filter(is_active=True).order_by("-updated_at").first()


def scoring_criteria(config: ScoringConfiguration, *, presentation: bool = False):
    qs = config.criteria.all().order_by("sort_order", "id")
    if presentation:
        return qs.filter(category=PRESENTATION_CATEGORY)
    return qs.exclude(category=PRESENTATION_CATEGORY)


def category_maxima(config: ScoringConfiguration) -> Dict[str, int]:
    out: Dict[str, int] = {}
    for c in scoring_criteria(config):
        out[c.category] = out.get(c.category, 0) + c.max_points
    return out


def validate_criteria(total_max_score: int, pass_threshold: int, criteria: List[Dict[str, Any]]) -> None:
    """
    Reject rubrics whose weighted criteria could exceed the configuration total,
    so category subtotals always add up to the reported total.
    """
    if pass_threshold > total_max_score:
        raise ScoringError("Pass threshold cannot exceed the total max score.")

    rubric_total = 0
    seen = set()
    for c in criteria:
        name = c.get("name")
        max_points = int(c.get("max_points") or 0)
        if max_points <= 0:
            raise ScoringError(f"Criterion '{name}' must have max_points greater than 0.")
        key = (c.get("category"), name)
        if key in seen:
            raise ScoringError(f"Criterion '{name}' is defined twice in category '{c.get('category')}'.")
        seen.add(key)
        for level in c.get("scoring_levels") or []:
            points = level.get("points", 0)
            if points < 0 or points > max_points:
                raise ScoringError(
                    f"Scoring level '{level.get('level')}' of '{name}' is out of bounds (0-{max_points})."
                )
        if c.get("category") != PRESENTATION_CATEGORY:
            rubric_total += max_points

    if rubric_total > total_max_score:
        raise ScoringError(
            f"Criteria add up to {rubric_total} points, more than the total max score {total_max_score}."
        )


def _criterion_defaults(c: Dict[str, Any], index: int) -> Dict[str, Any]:
    return {
        "category": c["category"],
        "description": c.get("description", ""),
        "max_points": int(c["max_points"]),
        "weightage": Decimal(str(c.get("weightage", 0))),
        "scoring_levels": c.get("scoring_levels", []),
        "evaluation_type": c.get("evaluation_type", ScoringCriterion.EvaluationType.MANUAL),
        "sort_order": c.get("sort_order", index + 1),
        "is_required": bool(c.get("is_required", False)),
    }


@transaction.atomic
def create_configuration(data: Dict[str, Any], *, user=None) -> ScoringConfiguration:
    criteria = list(data.get("criteria") or [])
    total_max = int(data.get("total_max_score", 100))
    threshold = int(data.get("pass_threshold", 60))
    validate_criteria(total_max, threshold, criteria)

    if ScoringConfiguration.objects.filter(name=data["name"], version=data.get("version", "1.0")).exists():
        raise ScoringError(f"A configuration named '{data['name']}' version {data.get('version', '1.0')} already exists.")

    config = ScoringConfiguration.objects.create(
        name=data["name"],
        description=data.get("description", ""),
        version=data.get("version", "1.0"),
        total_max_score=total_max,
        pass_threshold=threshold,
        is_active=False,
        created_by=user,
    )
    for i, c in enumerate(criteria):
        ScoringCriterion.objects.create(config=config, name=c["name"], **_criterion_defaults(c, i))
    logger.info("Created scoring configuration %s with %s criteria", config.id, len(criteria))
    return config


@transaction.atomic
def update_configuration(config: ScoringConfiguration, data: Dict[str, Any]) -> ScoringConfiguration:
    """
    Update header fields; when `criteria` is provided the criteria set is replaced.
    Criteria cannot be replaced while any assignment or score row points at them.
    """
    total_max = int(data.get("total_max_score", config.total_max_score))
    threshold = int(data.get("pass_threshold", config.pass_threshold))
    criteria = data.get("criteria")

    if criteria is not None:
        validate_criteria(total_max, threshold, list(criteria))
        if ApplicationScore.objects.filter(criterion__config=config).exists():
            raise ScoringError(
                "Criteria cannot be replaced while applications are assigned or scored against this configuration."
            )
    else:
        existing = [
            {"name": c.name, "category": c.category, "max_points": c.max_points, "scoring_levels": c.scoring_levels}
            for c in config.criteria.all()
        ]
        validate_criteria(total_max, threshold, existing)

    for field in ("name", "description", "version"):
        if field in data:
            setattr(config, field, data[field])
    config.total_max_score = total_max
    config.pass_threshold = threshold
    config.save()

    if criteria is not None:
        config.criteria.all().delete()
        for i, c in enumerate(criteria):
            ScoringCriterion.objects.create(config=config, name=c["name"], **_criterion_defaults(c, i))
    return config


def delete_configuration(config: ScoringConfiguration) -> None:
    if config.is_active:
        raise ScoringError("The active scoring configuration cannot be deleted.")
    config.delete()


@transaction.atomic
def activate_configuration(config_id: int) -> ScoringConfiguration:
    """
    Exclusive activation: every other configuration is deactivated first.
    """
    try:
        config = ScoringConfiguration.objects.select_for_update().get(pk=config_id)
    except ScoringConfiguration.DoesNotExist:
        raise ScoringError("Scoring configuration not found.")

    ScoringConfiguration.objects.exclude(pk=config.pk).filter(is_active=True).update(
        is_active=False, updated_at=timezone.now()
    )
    config.is_active = True
    config.save(update_fields=["is_active", "updated_at"])
    logger.info("Activated scoring configuration %s (%s)", config.id, config)
    return config


# ---------------------------
# Seeding / default rubric
# ---------------------------
def load_seed(path: Optional[Path | str] = None) -> Dict[str, Any]:
    path = Path(path or _grants("DEFAULT_SCORING_SEED"))
    if not path.exists():
        raise ScoringError(f"Seed file {path} not found.")
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _seed_criteria(data: Dict[str, Any]) -> List[Dict[str, Any]]:
    return list(data.get("criteria") or []) + list(data.get("presentation_criteria") or [])


@transaction.atomic
def upsert_configuration(data: Dict[str, Any], *, user=None) -> Tuple[ScoringConfiguration, int, int, int]:
    """
    Idempotent seed: configuration matched on (name, version), criteria on name.
    Criteria the seed no longer lists are removed, unless evaluators already
    scored them. Returns (config, created_criteria, updated_criteria, removed_criteria).
    """
    criteria = _seed_criteria(data)
    validate_criteria(int(data["total_max_score"]), int(data["pass_threshold"]), criteria)

    config, _ = ScoringConfiguration.objects.update_or_create(
        name=data["name"],
        version=data["version"],
        defaults={
            "description": data.get("description", ""),
            "total_max_score": int(data["total_max_score"]),
            "pass_threshold": int(data["pass_threshold"]),
        },
    )
    if user and not config.created_by_id:
        config.created_by = user
        config.save(update_fields=["created_by"])

    stale = config.criteria.exclude(name__in=[c["name"] for c in criteria])
    scored = list(
        ApplicationScore.objects.filter(criterion__in=stale, evaluated_at__isnull=False)
        .values_list("criterion__name", flat=True).distinct()
    )
    if scored:
        raise ScoringError(
            "Criteria missing from the seed already carry evaluator scores: " + ", ".join(sorted(set(scored)))
        )
    removed = stale.count()
    stale.delete()

    created, updated = 0, 0
    for i, c in enumerate(criteria):
        _, created_flag = ScoringCriterion.objects.update_or_create(
            config=config, name=c["name"], defaults=_criterion_defaults(c, i)
        )
        if created_flag:
            created += 1
        else:
            updated += 1

    current = [
        {"name": c.name, "category": c.category, "max_points": c.max_points, "scoring_levels": c.scoring_levels}
        for c in config.criteria.all()
    ]
    validate_criteria(config.total_max_score, config.pass_threshold, current)
    logger.info(
        "Seeded scoring configuration %s: %s created, %s updated, %s removed",
        config.id, created, updated, removed,
    )
    return config, created, updated, removed


def initialize_default_configuration(*, user=None, path=None) -> ScoringConfiguration:
    data = load_seed(path)
    if ScoringConfiguration.objects.filter(name=data["name"], version=data["version"]).exists():
        raise ScoringError("Default scoring configuration already exists.")
    with transaction.atomic():
        config, _, _, _ = upsert_configuration(data, user=user)
        return activate_configuration(config.id)


# ---------------------------
# Weighted scoring + eligibility
# ---------------------------
def category_scores(application: Application, config: ScoringConfiguration) -> Tuple[Dict[str, Decimal], Decimal, bool]:
    """
    Per-category subtotals from evaluator scores under `config`.

    Only scored rows (evaluated_at set) count. When several evaluators scored the
    same criterion their scores are averaged, so a criterion contributes at most
    its max_points. The total is the sum of the rounded subtotals, capped at the
    configuration's total_max_score.
    Returns (subtotals, total, has_evaluator_scores).
    """
    rows = (
        ApplicationScore.objects
        .filter(application=application, criterion__config=config, evaluated_at__isnull=False)
        .exclude(criterion__category=PRESENTATION_CATEGORY)
        .select_related("criterion")
    )
    per_criterion: Dict[int, List[Decimal]] = {}
    criteria: Dict[int, ScoringCriterion] = {}
    for row in rows:
        per_criterion.setdefault(row.criterion_id, []).append(Decimal(row.score))
        criteria[row.criterion_id] = row.criterion

    raw: Dict[str, Decimal] = {}
    for cid, values in per_criterion.items():
        crit = criteria[cid]
        avg = sum(values, Decimal("0")) / len(values)
        avg = min(avg, Decimal(crit.max_points))
        raw[crit.category] = raw.get(crit.category, Decimal("0")) + avg

    subtotals = {category: _q(value) for category, value in raw.items()}
    total = min(sum(subtotals.values(), Decimal("0")), Decimal(config.total_max_score))
    return subtotals, total, bool(per_criterion)


@transaction.atomic
def eligibility_check(
    application: Application,
    *,
    config: Optional[ScoringConfiguration] = None,
    evaluated_by=None,
    notes: Optional[str] = None,
) -> EligibilityResult:
    """
    Recompute and persist the eligibility record of an application.

    is_eligible holds iff all five mandatory gates pass and the total score
    reaches the configuration's pass threshold. The total comes from evaluator
    scores when any exist, otherwise from the heuristic pre-scores.
    """
    config = config or get_active_configuration()
    gates = check_mandatory_criteria(application)
    mandatory_ok = all(gates.values())

    # heuristic scores only make sense once the gates pass
    legacy = legacy_scores(application) if mandatory_ok else {k: None for k in LEGACY_SCORE_FIELDS}

    subtotals: Dict[str, Decimal] = {}
    has_scores = False
    if config is not None:
        subtotals, evaluator_total, has_scores = category_scores(application, config)

    if has_scores:
        total = evaluator_total
        source = "evaluators"
    else:
        total = _q(sum(v for v in legacy.values() if v is not None))
        source = "heuristic"

    threshold = Decimal(config.pass_threshold) if config else DEFAULT_PASS_THRESHOLD
    is_eligible = mandatory_ok and total >= threshold

    details: Dict[str, Any] = {
        "gates": gates,
        "categories": {k: float(v) for k, v in subtotals.items()},
        "category_max": category_maxima(config) if config else {},
        "score_source": source,
        "threshold": float(threshold),
        "total_max_score": config.total_max_score if config else None,
    }
    if not mandatory_ok:
        failed = [k for k in MANDATORY_GATES if not gates[k]]
        details["reason"] = "Mandatory criteria not met: " + ", ".join(failed)
    elif total < threshold:
        details["reason"] = f"Total score below threshold {threshold}."

    defaults: Dict[str, Any] = {
        **gates,
        **legacy,
        "is_eligible": is_eligible,
        "category_scores": details["categories"],
        "total_score": total,
        "scoring_config": config,
        "details": details,
        "evaluated_at": timezone.now(),
    }
    if evaluated_by is not None:
        defaults["evaluated_by"] = evaluated_by
    if notes is not None:
        defaults["evaluation_notes"] = notes

    obj, _ = EligibilityResult.objects.update_or_create(application=application, defaults=defaults)
    logger.info(
        "Eligibility for application %s: total=%s threshold=%s eligible=%s source=%s",
        application.id, total, threshold, is_eligible, source,
    )
    return obj


# ---------------------------
# Bulk re-evaluation
# ---------------------------
@transaction.atomic
def re_evaluate_applications(
    config_id: int,
    application_ids: Optional[Iterable[int]] = None,
    *,
    user=None,
) -> Dict[str, Any]:
    """
    Recompute every (or the selected) submitted application under `config_id`,
    write an EvaluationHistory row per application and report the deltas.
    Runs in one transaction: a failure leaves every result untouched.
    """
    try:
        config = ScoringConfiguration.objects.get(pk=config_id)
    except ScoringConfiguration.DoesNotExist:
        raise ScoringError("Scoring configuration not found.")

    qs = (
        Application.objects.select_related("business", "business__applicant")
        .exclude(status=Application.Status.DRAFT)
    )
    if application_ids:
        qs = qs.filter(id__in=list(application_ids))
    applications = list(qs.order_by("id"))
    if not applications:
        raise ScoringError("No applications found to re-evaluate.")

    results: List[Dict[str, Any]] = []
    for app in applications:
        previous = EligibilityResult.objects.filter(application=app).first()
        previous_score = previous.total_score if previous else Decimal("0")
        previous_eligible = previous.is_eligible if previous else False
        previous_config = previous.scoring_config if previous else None

        current = eligibility_check(app, config=config, evaluated_by=user)

        EvaluationHistory.objects.create(
            application=app,
            previous_config=previous_config,
            new_config=config,
            previous_total_score=previous_score,
            new_total_score=current.total_score,
            previous_is_eligible=previous_eligible,
            new_is_eligible=current.is_eligible,
            evaluated_by=user,
            reason="re-evaluation",
        )

        change = _q(current.total_score - previous_score)
        results.append({
            "application_id": app.id,
            "applicant_name": app.business.applicant.full_name,
            "business_name": app.business.name,
            "previous_score": float(previous_score),
            "new_score": float(current.total_score),
            "previous_eligible": previous_eligible,
            "new_eligible": current.is_eligible,
            "score_change": float(change),
            "eligibility_changed": previous_eligible != current.is_eligible,
        })

    total = len(results)
    summary = {
        "total_evaluated": total,
        "eligibility_changes": sum(1 for r in results if r["eligibility_changed"]),
        "new_eligible": sum(1 for r in results if r["new_eligible"] and not r["previous_eligible"]),
        "lost_eligibility": sum(1 for r in results if r["previous_eligible"] and not r["new_eligible"]),
        "average_score_change": round(sum(r["score_change"] for r in results) / total, 2) if total else 0.0,
    }
    logger.info("Re-evaluated %s applications under configuration %s: %s", total, config.id, summary)
    return {
        "config": {"id": config.id, "name": config.name, "version": config.version},
        "results": results,
        "summary": summary,
    }
