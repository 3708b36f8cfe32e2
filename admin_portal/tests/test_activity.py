import pytest

from admin_portal.models import ActivityLog
from admin_portal.utils import log_activity

pytestmark = pytest.mark.django_db


def test_api_hits_are_recorded_but_hidden_by_default(admin_client):
    admin_client.get("/api/admin/applications/stats/")

    assert ActivityLog.objects.filter(
        action=ActivityLog.Action.API_HIT, meta__path="/api/admin/applications/stats/"
    ).exists()

    hidden = admin_client.get("/api/admin/activity/").json()
    assert all(r["action"] != "API_HIT" for r in hidden["results"])

    shown = admin_client.get("/api/admin/activity/", {"include_api_hits": "true", "action": "API_HIT"}).json()
    assert shown["count"] >= 1


def test_auth_request_bodies_are_not_stored(client_for, applicant_user):
    client_for().post("/api/auth/login/", {"email": "applicant@example.com", "password": "Appl1cant!"}, format="json")
    hit = ActivityLog.objects.get(action=ActivityLog.Action.API_HIT, meta__path="/api/auth/login/")
    assert "body" not in hit.meta


def test_filters_pagination_and_detail(admin_client, admin_user, make_application):
    app = make_application()
    for i in range(3):
        log_activity(admin_user, ActivityLog.Action.UPDATE, app, help_text=f"Touched application {i}")
    log_activity(admin_user, ActivityLog.Action.EXPORT, None, app_label="exports", model="applications",
                 help_text="Exported applications as csv")

    resp = admin_client.get("/api/admin/activity/", {"action": "UPDATE", "page_size": 2, "page": 2})
    body = resp.json()
    assert body["count"] == 3
    assert body["page"] == 2 and body["page_size"] == 2
    assert len(body["results"]) == 1
    assert body["results"][0]["object_id"] == str(app.id)

    found = admin_client.get("/api/admin/activity/", {"q": "exported"}).json()["results"]
    assert [r["app_label"] for r in found] == ["exports"]

    detail = admin_client.get(f"/api/admin/activity/{found[0]['id']}/")
    assert detail.status_code == 200
    assert detail.json()["actor_email"] == "admin@example.com"
    assert admin_client.get("/api/admin/activity/999999/").status_code == 404


def test_bad_page_values_fall_back(admin_client):
    resp = admin_client.get("/api/admin/activity/", {"page": "x", "page_size": "1000"})
    assert resp.status_code == 200
    assert resp.json()["page"] == 1
    assert resp.json()["page_size"] == 100
