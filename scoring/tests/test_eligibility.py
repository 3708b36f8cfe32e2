from decimal import Decimal

import pytest
from django.utils import timezone

from scoring import logic
from scoring.models import ApplicationScore, EligibilityResult, EvaluationHistory

pytestmark = pytest.mark.django_db


def _score(application, config, evaluator, **by_name):
    """Write evaluated score rows, one per criterion name."""
    for criterion in config.criteria.all():
        if criterion.name not in by_name:
            continue
        ApplicationScore.objects.update_or_create(
            application=application, criterion=criterion, evaluator=evaluator,
            defaults={
                "config": config,
                "score": Decimal(str(by_name[criterion.name])),
                "max_score": Decimal(criterion.max_points),
                "evaluated_at": timezone.now(),
            },
        )


def test_all_gates_pass_for_a_complete_application(make_application):
    gates = logic.check_mandatory_criteria(make_application())
    assert gates == {
        "age_eligible": True,
        "registration_eligible": True,
        "revenue_eligible": True,
        "business_plan_eligible": True,
        "impact_eligible": True,
    }


@pytest.mark.parametrize("overrides, gate", [
    ({"age": 36}, "age_eligible"),
    ({"age": 17}, "age_eligible"),
    ({"business": {"is_registered": False}}, "registration_eligible"),
    ({"business": {"revenue_last_two_years": Decimal("0")}}, "revenue_eligible"),
    ({"business": {"problem_solved": "Too short."}}, "business_plan_eligible"),
    ({"business": {"climate_extreme_impact": "x" * 100}}, "impact_eligible"),
])
def test_each_gate_fails_on_its_own(make_application, overrides, gate):
    gates = logic.check_mandatory_criteria(make_application(**overrides))
    assert gates[gate] is False
    assert sum(1 for ok in gates.values() if not ok) == 1


def test_heuristic_total_alone_never_reaches_threshold(make_application, simple_config):
    result = logic.eligibility_check(make_application())
    assert result.mandatory_passed is True
    assert result.details["score_source"] == "heuristic"
    assert result.total_score <= Decimal("55")
    assert result.is_eligible is False


def test_threshold_is_inclusive(make_application, simple_config, reviewer):
    app = make_application(status="scoring_phase")

    _score(app, simple_config, reviewer, **{"Adaptation benefit": 36, "Viability": 24})
    result = logic.eligibility_check(app)
    assert result.total_score == Decimal("60.00")
    assert result.is_eligible is True

    _score(app, simple_config, reviewer, **{"Adaptation benefit": 35})
    result = logic.eligibility_check(app)
    assert result.total_score == Decimal("59.00")
    assert result.is_eligible is False
    assert "below threshold" in result.details["reason"]


def test_failed_gate_blocks_eligibility_despite_high_score(make_application, simple_config, reviewer):
    app = make_application(status="scoring_phase", business={"is_registered": False})
    _score(app, simple_config, reviewer, **{"Adaptation benefit": 60, "Viability": 40})

    result = logic.eligibility_check(app)
    assert result.total_score == Decimal("100.00")
    assert result.is_eligible is False
    assert result.details["reason"].startswith("Mandatory criteria not met")
    # no heuristic scores without the gates
    assert result.market_potential_score is None


def test_subtotals_sum_to_total_and_presentation_is_excluded(make_application, simple_config, reviewer, jury, judge):
    app = make_application(status="scoring_phase")
    _score(app, simple_config, reviewer, **{"Adaptation benefit": 40, "Viability": 30})
    _score(app, simple_config, jury, **{"Adaptation benefit": 45, "Viability": 25})
    _score(app, simple_config, judge, **{"Pitch Delivery": 10})

    result = logic.eligibility_check(app)
    assert result.category_scores == {"Impact": 42.5, "Business": 27.5}
    assert sum(Decimal(str(v)) for v in result.category_scores.values()) == result.total_score
    assert result.total_score == Decimal("70.00")
    assert result.details["category_max"] == {"Impact": 60, "Business": 40}


def test_unscored_rows_are_ignored(make_application, simple_config, reviewer):
    app = make_application(status="scoring_phase")
    criterion = simple_config.criteria.get(name="Viability")
    ApplicationScore.objects.create(
        application=app, criterion=criterion, evaluator=reviewer, config=simple_config,
        score=Decimal("0"), max_score=Decimal("40"),
    )
    result = logic.eligibility_check(app)
    assert result.details["score_source"] == "heuristic"


def test_eligibility_record_is_updated_in_place(make_application, simple_config):
    app = make_application()
    logic.eligibility_check(app)
    logic.eligibility_check(app)
    assert EligibilityResult.objects.filter(application=app).count() == 1


def test_re_evaluate_reports_deltas_and_history(make_application, simple_config, reviewer, admin_user):
    a1 = make_application(status="scoring_phase")
    a2 = make_application(status="scoring_phase")
    draft = make_application(status="draft")
    for app in (a1, a2):
        logic.eligibility_check(app)
    _score(a1, simple_config, reviewer, **{"Adaptation benefit": 50, "Viability": 30})
    before = EligibilityResult.objects.get(application=a1).total_score

    out = logic.re_evaluate_applications(simple_config.id, user=admin_user)

    ids = [r["application_id"] for r in out["results"]]
    assert ids == [a1.id, a2.id]
    assert draft.id not in ids
    first = out["results"][0]
    assert first["new_score"] == 80.0
    assert first["score_change"] == float(Decimal("80.00") - before)
    assert first["eligibility_changed"] is True
    assert out["summary"]["total_evaluated"] == 2
    assert out["summary"]["new_eligible"] == 1
    assert EvaluationHistory.objects.filter(new_config=simple_config).count() == 2

    again = logic.re_evaluate_applications(simple_config.id, user=admin_user)
    assert all(r["score_change"] == 0 for r in again["results"])
    assert again["summary"]["eligibility_changes"] == 0


def test_re_evaluate_without_applications_fails(simple_config):
    with pytest.raises(logic.ScoringError):
        logic.re_evaluate_applications(simple_config.id)


def test_total_is_capped_at_configuration_maximum(make_application, simple_config, reviewer):
    # added outside create/update, e.g. through the Django admin
    simple_config.criteria.create(category="Extra", name="Bonus", max_points=50, sort_order=9)
    app = make_application(status="scoring_phase")
    _score(app, simple_config, reviewer, **{"Adaptation benefit": 60, "Viability": 40, "Bonus": 50})

    subtotals, total, has_scores = logic.category_scores(app, simple_config)

    assert has_scores is True
    assert subtotals == {"Impact": Decimal("60.00"), "Business": Decimal("40.00"), "Extra": Decimal("50.00")}
    assert total == Decimal("100")
    assert logic.eligibility_check(app).total_score == Decimal("100")
