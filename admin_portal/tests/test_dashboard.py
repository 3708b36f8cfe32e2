from decimal import Decimal

import pytest
from django.utils import timezone

from evaluations import services
from scoring.models import ApplicationScore

pytestmark = pytest.mark.django_db


@pytest.fixture
def scored(make_application, simple_config, reviewer, jury):
    """Two applications in scoring: one at 80/100, one at 30/100. One untouched submission."""
    high = make_application(status="scoring_phase", country="kenya")
    low = make_application(status="scoring_phase", country="ghana")
    make_application(country="kenya")
    criteria = {c.name: c.id for c in simple_config.criteria.all()}

    services.assign_applications([high.id, low.id], reviewer.id, "TECHNICAL_REVIEWER")
    services.assign_applications([high.id], jury.id, "JURY_MEMBER")
    services.update_scores(reviewer, [
        {"application_id": high.id, "criterion_id": criteria["Adaptation benefit"], "score": 50},
        {"application_id": high.id, "criterion_id": criteria["Viability"], "score": 30},
        {"application_id": low.id, "criterion_id": criteria["Adaptation benefit"], "score": 20},
        {"application_id": low.id, "criterion_id": criteria["Viability"], "score": 10},
    ])
    return high, low


def test_dashboard_summary(admin_client, scored):
    resp = admin_client.get("/api/admin/dashboard/summary", {"days": 30})
    assert resp.status_code == 200
    body = resp.json()

    assert body["total_applications"] == 3
    assert body["evaluated_applications"] == 2
    assert body["evaluation_rate"] == 67
    assert body["average_score"] == 55.0
    assert body["highest_score"] == 80
    assert body["max_score"] == 100
    assert body["total_evaluators"] == 2
    assert body["active_evaluators"] == 1
    assert body["status_distribution"]["scoring_phase"] == 2
    assert body["status_distribution"]["approved"] == 0
    assert body["country_distribution"] == {"kenya": 2, "ghana": 1}
    assert any(a["action"] == "SCORE" for a in body["recent_activity"])


def test_dashboard_ignores_bad_window(admin_client):
    resp = admin_client.get("/api/admin/dashboard/summary", {"days": "soon", "from": "yesterday", "to": "today"})
    assert resp.status_code == 200
    assert resp.json()["total_applications"] == 0


def test_scoring_analytics(admin_client, scored):
    high, low = scored
    body = admin_client.get("/api/admin/analytics/scoring").json()

    criteria = {c["title"]: c for c in body["criteria_analytics"]}
    assert criteria["Adaptation benefit"]["average_score"] == 35.0
    assert criteria["Adaptation benefit"]["total_scores"] == 2
    assert criteria["Pitch Delivery"]["phase"] == "dragons_den"

    distribution = {d["score_range"]: d["count"] for d in body["score_distribution"]}
    assert distribution == {"0-19": 0, "20-39": 1, "40-59": 0, "60-79": 0, "80-100": 1}

    top = body["top_applications"]
    assert [t["application_id"] for t in top] == [high.id, low.id]
    assert top[0]["percentage"] == 80
    assert top[0]["is_eligible"] is True


def test_evaluator_performance(admin_client, scored, reviewer, jury):
    body = admin_client.get("/api/admin/analytics/evaluators").json()
    rows = {e["evaluator_id"]: e for e in body["evaluators"]}

    assert rows[reviewer.id]["total_assignments"] == 2
    assert rows[reviewer.id]["completion_rate"] == 100
    assert rows[reviewer.id]["is_active"] is True
    assert rows[jury.id]["completed_evaluations"] == 0
    assert rows[jury.id]["is_active"] is False
    assert body["summary"] == {"total_evaluators": 2, "average_completion_rate": 50, "active_evaluators": 1}


def test_trends_count_per_day(admin_client, scored):
    body = admin_client.get("/api/admin/analytics/trends", {"days": 7}).json()
    today = timezone.localdate().isoformat()

    assert body["daily_submissions"] == [{"date": today, "count": 3}]
    assert body["daily_evaluations"] == [{"date": today, "count": 4}]
    assert body["period"]["days"] == 7


def test_dashboard_requires_admin(client_for, reviewer):
    assert client_for(reviewer).get("/api/admin/dashboard/summary").status_code == 403
