import pytest
from rest_framework.test import APIClient

from accounts.models import PasswordResetCode


@pytest.mark.django_db
def test_forgot_verify_reset_flow(applicant_user, mailoutbox):
    client = APIClient()

    resp1 = client.post("/api/auth/password/forgot/", {"email": "applicant@example.com"}, format="json")
    assert resp1.status_code == 200
    code = PasswordResetCode.objects.get(user=applicant_user).code
    assert len(mailoutbox) == 1
    assert code in mailoutbox[0].body

    resp2 = client.post("/api/auth/password/verify-code/", {"email": "applicant@example.com", "code": code}, format="json")
    assert resp2.status_code == 200

    resp3 = client.post("/api/auth/password/reset/", {
        "email": "applicant@example.com",
        "code": code,
        "new_password": "NewPass123!",
        "confirm_password": "NewPass123!",
    }, format="json")
    assert resp3.status_code == 200
    applicant_user.refresh_from_db()
    assert applicant_user.check_password("NewPass123!")
    # single use
    assert not PasswordResetCode.objects.filter(user=applicant_user).exists()


@pytest.mark.django_db
def test_forgot_password_does_not_reveal_unknown_email(mailoutbox):
    resp = APIClient().post("/api/auth/password/forgot/", {"email": "ghost@example.com"}, format="json")
    assert resp.status_code == 200
    assert mailoutbox == []


@pytest.mark.django_db
def test_wrong_code_is_rejected(applicant_user):
    client = APIClient()
    client.post("/api/auth/password/forgot/", {"email": "applicant@example.com"}, format="json")
    code = PasswordResetCode.objects.get(user=applicant_user).code
    wrong = "000000" if code != "000000" else "111111"

    resp = client.post("/api/auth/password/verify-code/", {"email": "applicant@example.com", "code": wrong}, format="json")
    assert resp.status_code == 400
    assert "code" in resp.json()["errors"]
