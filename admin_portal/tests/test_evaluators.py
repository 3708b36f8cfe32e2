import pytest
from django.contrib.auth import get_user_model

from admin_portal.models import ActivityLog

pytestmark = pytest.mark.django_db

User = get_user_model()

BASE = "/api/admin/evaluators/"


def test_create_evaluator(admin_client):
    resp = admin_client.post(BASE, {
        "email": "New.Reviewer@Example.com",
        "first_name": "Joseph",
        "last_name": "Mwangi",
        "role": "TECHNICAL_REVIEWER",
        "organization": "KCIC",
        "password": "Str0ng!Passw0rd",
    }, format="json")

    assert resp.status_code == 201, resp.content
    body = resp.json()
    assert body["email"] == "new.reviewer@example.com"
    assert body["full_name"] == "Joseph Mwangi"
    user = User.objects.get(email="new.reviewer@example.com")
    assert user.check_password("Str0ng!Passw0rd")
    assert ActivityLog.objects.filter(action=ActivityLog.Action.CREATE, object_id=str(user.id)).exists()


def test_create_rejects_applicant_role_and_duplicates(admin_client, reviewer):
    bad_role = admin_client.post(BASE, {"email": "x@example.com", "role": "APPLICANT"}, format="json")
    assert bad_role.status_code == 400
    assert "role" in bad_role.json()["errors"]

    dup = admin_client.post(BASE, {"email": "reviewer@example.com", "role": "JURY_MEMBER"}, format="json")
    assert dup.status_code == 400
    assert "email" in dup.json()["errors"]


def test_list_only_evaluators_with_filters(admin_client, reviewer, jury, judge, applicant_user):
    resp = admin_client.get(BASE)
    emails = {e["email"] for e in resp.json()["results"]}
    assert emails == {"reviewer@example.com", "jury@example.com", "judge@example.com"}

    judges = admin_client.get(BASE, {"role": "dragons_den_judge"}).json()["results"]
    assert [e["email"] for e in judges] == ["judge@example.com"]

    found = admin_client.get(BASE, {"q": "Reviewer"}).json()["results"]
    assert [e["email"] for e in found] == ["reviewer@example.com"]


def test_update_role_logs_changes(admin_client, reviewer):
    resp = admin_client.patch(f"{BASE}{reviewer.id}/", {"role": "JURY_MEMBER"}, format="json")
    assert resp.status_code == 200
    assert resp.json()["role"] == "JURY_MEMBER"

    log = ActivityLog.objects.get(action=ActivityLog.Action.UPDATE, object_id=str(reviewer.id))
    assert log.changes == {"role": {"from": "TECHNICAL_REVIEWER", "to": "JURY_MEMBER"}}


def test_update_unknown_evaluator(admin_client, applicant_user):
    resp = admin_client.patch(f"{BASE}{applicant_user.id}/", {"first_name": "X"}, format="json")
    assert resp.status_code == 404
    assert resp.json()["message"] == "Evaluator not found."


def test_delete_deactivates(admin_client, reviewer):
    resp = admin_client.delete(f"{BASE}{reviewer.id}/")
    assert resp.status_code == 204
    reviewer.refresh_from_db()
    assert reviewer.is_active is False

    inactive = admin_client.get(BASE, {"is_active": "false"}).json()["results"]
    assert [e["id"] for e in inactive] == [reviewer.id]
