import pytest
from django.contrib.auth import get_user_model
from django.urls import reverse

from evaluations import services
from evaluations.services import AssignmentError
from scoring.models import ApplicationScore, EligibilityResult

pytestmark = pytest.mark.django_db

User = get_user_model()


def test_assign_creates_zero_rows_for_scoring_criteria_only(make_application, simple_config, reviewer, admin_user):
    app = make_application(status="scoring_phase")

    out = services.assign_applications([app.id, app.id], reviewer.id, "TECHNICAL_REVIEWER", user=admin_user)

    assert out["assigned_ids"] == [app.id]
    assert out["criteria_per_application"] == 2
    rows = ApplicationScore.objects.filter(application=app, evaluator=reviewer)
    assert sorted(r.criterion.name for r in rows) == ["Adaptation benefit", "Viability"]
    assert all(r.score == 0 and r.evaluated_at is None for r in rows)

    # assigning again does not duplicate rows
    services.assign_applications([app.id], reviewer.id, "TECHNICAL_REVIEWER", user=admin_user)
    assert ApplicationScore.objects.filter(application=app, evaluator=reviewer).count() == 2


def test_role_gate_skips_applications_in_other_statuses(make_application, simple_config, reviewer, judge):
    submitted = make_application(status="submitted")
    finalist = make_application(status="dragons_den")

    out = services.assign_applications([submitted.id, finalist.id, 9999], reviewer.id, "TECHNICAL_REVIEWER")
    assert out["assigned"] == 0
    reasons = {s["application_id"]: s["reason"] for s in out["skipped"]}
    assert "submitted" in reasons[submitted.id]
    assert reasons[9999] == "Application not found."
    assert not ApplicationScore.objects.exists()

    out = services.assign_applications([finalist.id], judge.id, "DRAGONS_DEN_JUDGE")
    assert out["assigned_ids"] == [finalist.id]
    assert list(ApplicationScore.objects.values_list("criterion__name", flat=True)) == ["Pitch Delivery"]


def test_assign_rejects_wrong_role_and_missing_config(make_application, simple_config, reviewer):
    app = make_application(status="scoring_phase")
    with pytest.raises(AssignmentError, match="incorrect role"):
        services.assign_applications([app.id], reviewer.id, "JURY_MEMBER")

    simple_config.is_active = False
    simple_config.save()
    with pytest.raises(AssignmentError, match="No active scoring configuration"):
        services.assign_applications([app.id], reviewer.id, "TECHNICAL_REVIEWER")


def test_auto_assign_uses_first_evaluators_by_id(make_application, simple_config, reviewer):
    second = User.objects.create_user(email="r2@example.com", password="x" * 10, role=User.Role.TECHNICAL_REVIEWER)
    User.objects.create_user(email="r3@example.com", password="x" * 10, role=User.Role.TECHNICAL_REVIEWER)
    apps = [make_application(status="scoring_phase") for _ in range(2)]

    out = services.auto_assign([a.id for a in apps], "TECHNICAL_REVIEWER", evaluators_per_application=2)

    assert out["evaluator_ids"] == [reviewer.id, second.id]
    assert out["applications_assigned"] == 2
    assert ApplicationScore.objects.count() == 2 * 2 * 2


def test_auto_assign_without_evaluators_fails(make_application, simple_config):
    app = make_application(status="scoring_phase")
    with pytest.raises(AssignmentError, match="No jury members available"):
        services.auto_assign([app.id], "JURY_MEMBER")


def test_remove_assignments_rechecks_eligibility(make_application, simple_config, reviewer):
    app = make_application(status="scoring_phase")
    services.assign_applications([app.id], reviewer.id, "TECHNICAL_REVIEWER")
    criteria = {c.name: c.id for c in simple_config.criteria.all()}
    services.update_scores(reviewer, [
        {"application_id": app.id, "criterion_id": criteria["Adaptation benefit"], "score": 50},
        {"application_id": app.id, "criterion_id": criteria["Viability"], "score": 30},
    ])
    assert EligibilityResult.objects.get(application=app).is_eligible is True

    out = services.remove_assignments(reviewer.id, [app.id])
    assert out["removed_rows"] == 2
    result = EligibilityResult.objects.get(application=app)
    assert result.is_eligible is False
    assert result.details["score_source"] == "heuristic"


def test_workloads_count_assigned_and_completed(make_application, simple_config, reviewer, jury):
    apps = [make_application(status="scoring_phase") for _ in range(2)]
    services.assign_applications([a.id for a in apps], reviewer.id, "TECHNICAL_REVIEWER")
    criterion = simple_config.criteria.get(name="Viability")
    services.update_scores(reviewer, [{"application_id": apps[0].id, "criterion_id": criterion.id, "score": 10}])

    loads = {w["evaluator_id"]: w for w in services.evaluator_workloads()}
    assert loads[reviewer.id]["assigned_applications"] == 2
    assert loads[reviewer.id]["completed_evaluations"] == 1
    assert loads[reviewer.id]["pending_evaluations"] == 1
    assert loads[jury.id]["assigned_applications"] == 0

    assert [w["evaluator_id"] for w in services.evaluator_workloads("JURY_MEMBER")] == [jury.id]


def test_assign_api_is_admin_only(client_for, admin_client, make_application, simple_config, reviewer):
    app = make_application(status="scoring_phase")
    payload = {"application_ids": [app.id], "evaluator_id": reviewer.id, "role": "TECHNICAL_REVIEWER"}

    assert client_for(reviewer).post(reverse("admin-assign"), payload, format="json").status_code == 403
    resp = admin_client.post(reverse("admin-assign"), payload, format="json")
    assert resp.status_code == 200
    assert resp.json()["assigned_ids"] == [app.id]

    listing = admin_client.get(reverse("admin-evaluator-assignments", args=[reviewer.id]))
    assert listing.status_code == 200
    assert listing.json()[0]["application"]["id"] == app.id
