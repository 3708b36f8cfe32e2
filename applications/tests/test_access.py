import pytest
from django.urls import reverse
from django.contrib.auth import get_user_model

pytestmark = pytest.mark.django_db

User = get_user_model()


def test_owner_sees_own_application(applicant_client, applicant_user, make_application):
    app = make_application(user=applicant_user)

    resp = applicant_client.get(reverse("application-detail", args=[app.id]))
    assert resp.status_code == 200
    assert resp.json()["business"]["name"] == app.business.name

    mine = applicant_client.get(reverse("application-mine"))
    assert [a["id"] for a in mine.json()] == [app.id]


def test_other_applicants_get_404(client_for, applicant_user, make_application):
    app = make_application(user=applicant_user)
    stranger = User.objects.create_user(email="stranger@example.com", password="Str4nger!")

    resp = client_for(stranger).get(reverse("application-detail", args=[app.id]))
    assert resp.status_code == 404
    assert client_for(stranger).get(reverse("application-mine")).json() == []


def test_admin_can_open_any_application(admin_client, make_application):
    app = make_application()
    assert admin_client.get(reverse("application-detail", args=[app.id])).status_code == 200
    assert admin_client.get(reverse("application-detail", args=[app.id + 100])).status_code == 404


def test_meta_lists_choices_without_auth(client_for):
    resp = client_for().get(reverse("application-meta"))
    assert resp.status_code == 200
    body = resp.json()
    assert {"key": "kenya", "label": "Kenya"} in body["countries"]
    assert body["age_range"] == {"min": 18, "max": 35}
