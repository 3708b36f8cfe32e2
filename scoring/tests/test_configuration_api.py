import pytest
from django.core.management import call_command

from evaluations import services
from scoring import logic
from scoring.models import ApplicationScore, ScoringConfiguration, ScoringCriterion

pytestmark = pytest.mark.django_db

BASE = "/api/admin/scoring/configurations/"

RUBRIC = {
    "name": "Pilot rubric",
    "version": "1.0",
    "total_max_score": 20,
    "pass_threshold": 12,
    "criteria": [
        {"category": "Impact", "name": "Climate resilience", "max_points": 10,
         "scoring_levels": [{"level": "Strong", "points": 10}, {"level": "Weak", "points": 2}]},
        {"category": "Business", "name": "Revenue model", "max_points": 10},
    ],
}


def test_create_configuration_is_inactive(admin_client):
    resp = admin_client.post(BASE, RUBRIC, format="json")
    assert resp.status_code == 201, resp.content
    body = resp.json()
    assert body["is_active"] is False
    assert body["criteria_count"] == 2
    assert body["created_by"] == "admin@example.com"


@pytest.mark.parametrize("patch, fragment", [
    ({"pass_threshold": 30}, "threshold"),
    ({"total_max_score": 15}, "more than the total"),
])
def test_create_rejects_inconsistent_rubric(admin_client, patch, fragment):
    resp = admin_client.post(BASE, {**RUBRIC, **patch}, format="json")
    assert resp.status_code == 400
    assert fragment in resp.json()["message"]


def test_create_rejects_scoring_level_above_max(admin_client):
    criteria = [dict(RUBRIC["criteria"][0], scoring_levels=[{"level": "Too much", "points": 11}])]
    resp = admin_client.post(BASE, {**RUBRIC, "criteria": criteria}, format="json")
    assert resp.status_code == 400
    assert "out of bounds" in resp.json()["message"]


def test_activation_is_exclusive(admin_client, simple_config):
    created = admin_client.post(BASE, RUBRIC, format="json").json()

    resp = admin_client.post(f"{BASE}{created['id']}/activate/")
    assert resp.status_code == 200
    assert list(ScoringConfiguration.objects.filter(is_active=True).values_list("id", flat=True)) == [created["id"]]

    active = admin_client.get(f"{BASE}active/")
    assert active.json()["id"] == created["id"]


def test_active_returns_404_without_configuration(admin_client):
    assert admin_client.get(f"{BASE}active/").status_code == 404


def test_initialize_default_once(admin_client):
    first = admin_client.post(f"{BASE}initialize-default/")
    assert first.status_code == 201
    body = first.json()
    assert body["name"] == "KCIC Climate Adaptation Challenge - v2.0"
    assert body["is_active"] is True
    assert body["criteria_count"] == 22

    second = admin_client.post(f"{BASE}initialize-default/")
    assert second.status_code == 400
    assert ScoringConfiguration.objects.count() == 1


def test_default_rubric_adds_up(default_config):
    assert sum(logic.category_maxima(default_config).values()) == 100
    presentation = logic.scoring_criteria(default_config, presentation=True)
    assert sorted(c.name for c in presentation) == [
        "Business Case Strength", "Investment Readiness", "Pitch Delivery", "Q&A Handling",
    ]


def test_active_configuration_cannot_be_deleted(admin_client, simple_config):
    resp = admin_client.delete(f"{BASE}{simple_config.id}/")
    assert resp.status_code == 400
    assert ScoringConfiguration.objects.filter(pk=simple_config.id).exists()

    spare = logic.create_configuration({**RUBRIC, "name": "Spare"})
    assert admin_client.delete(f"{BASE}{spare.id}/").status_code == 204


def test_update_replaces_criteria(admin_client):
    config = logic.create_configuration(RUBRIC)
    resp = admin_client.patch(f"{BASE}{config.id}/", {
        "criteria": [{"category": "Impact", "name": "Resilience", "max_points": 20}],
    }, format="json")
    assert resp.status_code == 200, resp.content
    assert list(ScoringCriterion.objects.filter(config=config).values_list("name", flat=True)) == ["Resilience"]


def test_configuration_endpoints_require_admin(client_for, reviewer):
    assert client_for(reviewer).get(BASE).status_code == 403
    assert client_for().get(BASE).status_code == 401


def test_seed_command_is_idempotent(db):
    call_command("seed_scoring_config", "--activate")
    call_command("seed_scoring_config")
    config = ScoringConfiguration.objects.get()
    assert config.is_active is True
    assert config.criteria.count() == 22


def test_update_refuses_to_replace_criteria_with_assignments(admin_client, simple_config, make_application, reviewer):
    app = make_application(status="scoring_phase")
    services.assign_applications([app.id], reviewer.id, "TECHNICAL_REVIEWER")
    viability = simple_config.criteria.get(name="Viability")
    services.update_scores(reviewer, [{"application_id": app.id, "criterion_id": viability.id, "score": 0}])

    resp = admin_client.patch(f"{BASE}{simple_config.id}/", {
        "criteria": [{"category": "Impact", "name": "Resilience", "max_points": 100}],
    }, format="json")

    assert resp.status_code == 400
    assert "cannot be replaced" in resp.json()["message"]
    assert ApplicationScore.objects.filter(application=app).count() == 2
    assert simple_config.criteria.filter(name="Viability").exists()


def test_update_refuses_while_only_unscored_assignments_exist(simple_config, make_application, reviewer):
    app = make_application(status="scoring_phase")
    services.assign_applications([app.id], reviewer.id, "TECHNICAL_REVIEWER")

    with pytest.raises(logic.ScoringError):
        logic.update_configuration(simple_config, {
            "criteria": [{"category": "Impact", "name": "Resilience", "max_points": 100}],
        })
    assert ApplicationScore.objects.filter(application=app).count() == 2


SEED = {
    "name": "Seed rubric",
    "version": "1.0",
    "total_max_score": 100,
    "pass_threshold": 60,
    "criteria": [
        {"category": "Impact", "name": "A", "max_points": 60},
        {"category": "Business", "name": "B", "max_points": 40},
    ],
}


def test_reseed_drops_criteria_missing_from_the_file(db):
    logic.upsert_configuration(SEED)
    edited = {**SEED, "criteria": [
        {"category": "Impact", "name": "A2", "max_points": 60},
        {"category": "Business", "name": "B", "max_points": 40},
    ]}

    config, created, updated, removed = logic.upsert_configuration(edited)

    assert (created, updated, removed) == (1, 1, 1)
    assert sorted(config.criteria.values_list("name", "max_points")) == [("A2", 60), ("B", 40)]
    assert sum(logic.category_maxima(config).values()) == 100


def test_reseed_keeps_scored_criteria(make_application, reviewer):
    config, _, _, _ = logic.upsert_configuration(SEED)
    logic.activate_configuration(config.id)
    app = make_application(status="scoring_phase")
    services.assign_applications([app.id], reviewer.id, "TECHNICAL_REVIEWER")
    a = config.criteria.get(name="A")
    services.update_scores(reviewer, [{"application_id": app.id, "criterion_id": a.id, "score": 30}])

    with pytest.raises(logic.ScoringError, match="scores: A$"):
        logic.upsert_configuration({**SEED, "criteria": [
            {"category": "Impact", "name": "A2", "max_points": 60},
            {"category": "Business", "name": "B", "max_points": 40},
        ]})

    assert sorted(config.criteria.values_list("name", flat=True)) == ["A", "B"]
    assert ApplicationScore.objects.filter(application=app, criterion=a, score=30).exists()
