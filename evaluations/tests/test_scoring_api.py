import pytest
from django.urls import reverse

from evaluations import services
from scoring.models import ApplicationScore, EligibilityResult

pytestmark = pytest.mark.django_db


@pytest.fixture
def assigned(make_application, simple_config, reviewer):
    app = make_application(status="scoring_phase")
    services.assign_applications([app.id], reviewer.id, "TECHNICAL_REVIEWER")
    criteria = {c.name: c for c in simple_config.criteria.all()}
    return app, criteria


def test_evaluator_sees_assignments_with_progress(client_for, reviewer, assigned):
    app, criteria = assigned
    services.update_scores(reviewer, [
        {"application_id": app.id, "criterion_id": criteria["Viability"].id, "score": 30},
    ])

    resp = client_for(reviewer).get(reverse("evaluator-my-assignments"))
    assert resp.status_code == 200
    entry = resp.json()[0]
    assert entry["application"]["id"] == app.id
    assert entry["total_score"] == 30
    assert entry["max_total_score"] == 100
    assert entry["completion_percentage"] == 50


def test_scores_update_eligibility(client_for, reviewer, assigned):
    app, criteria = assigned
    resp = client_for(reviewer).post(reverse("evaluator-update-scores"), {"updates": [
        {"application_id": app.id, "criterion_id": criteria["Adaptation benefit"].id, "score": 40,
         "level": "Strong", "notes": "Clear adaptation case"},
        {"application_id": app.id, "criterion_id": criteria["Viability"].id, "score": 25},
    ]}, format="json")

    assert resp.status_code == 200, resp.content
    assert resp.json()["updated"] == 2
    row = ApplicationScore.objects.get(application=app, criterion=criteria["Adaptation benefit"])
    assert (row.level, row.notes) == ("Strong", "Clear adaptation case")
    result = EligibilityResult.objects.get(application=app)
    assert float(result.total_score) == 65.0
    assert result.is_eligible is True


def test_out_of_bounds_score_aborts_batch(client_for, reviewer, assigned):
    app, criteria = assigned
    resp = client_for(reviewer).post(reverse("evaluator-update-scores"), {"updates": [
        {"application_id": app.id, "criterion_id": criteria["Adaptation benefit"].id, "score": 20},
        {"application_id": app.id, "criterion_id": criteria["Viability"].id, "score": 41},
    ]}, format="json")

    assert resp.status_code == 400
    assert resp.json()["message"] == "Score 41 is out of bounds (0-40)"
    assert not ApplicationScore.objects.filter(application=app, score__gt=0).exists()


def test_unassigned_rows_are_skipped(client_for, jury, assigned):
    app, criteria = assigned
    resp = client_for(jury).post(reverse("evaluator-update-scores"), {"updates": [
        {"application_id": app.id, "criterion_id": criteria["Viability"].id, "score": 10},
    ]}, format="json")
    assert resp.status_code == 200
    assert resp.json()["skipped"] == 1


def test_scoring_closed_once_application_leaves_phase(client_for, reviewer, assigned):
    app, criteria = assigned
    app.status = "dragons_den"
    app.save()

    resp = client_for(reviewer).post(reverse("evaluator-update-scores"), {"updates": [
        {"application_id": app.id, "criterion_id": criteria["Viability"].id, "score": 10},
    ]}, format="json")
    assert resp.status_code == 400
    assert "not open for scoring" in resp.json()["message"]


def test_applicants_cannot_reach_evaluator_endpoints(applicant_client):
    assert applicant_client.get(reverse("evaluator-my-assignments")).status_code == 403
