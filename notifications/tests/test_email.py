from types import SimpleNamespace

import pytest
from django.utils import timezone

from notifications import email

pytestmark = pytest.mark.django_db


def test_status_email_sent_for_final_decisions(make_application, mailoutbox):
    app = make_application(status="approved", business={"name": "AquaHarvest"})

    assert email.send_status_changed_email(app, notes="Congratulations from the panel.") is True

    assert len(mailoutbox) == 1
    msg = mailoutbox[0]
    assert msg.subject == f"Your application #{app.id} is now Approved"
    assert msg.to == [app.business.applicant.email]
    assert "AquaHarvest" in msg.body
    assert "Congratulations from the panel." in msg.body


@pytest.mark.parametrize("status", ["submitted", "under_review", "shortlisted", "scoring_phase"])
def test_status_email_skipped_for_intermediate_statuses(make_application, mailoutbox, status):
    app = make_application(status=status)
    assert email.send_status_changed_email(app) is False
    assert mailoutbox == []


def test_unknown_event_is_skipped(mailoutbox):
    assert email.notify_email(event="newsletter", to=["a@example.com"], context={}) is False
    assert mailoutbox == []


def test_empty_recipients_are_skipped(mailoutbox):
    sent = email.notify_email(event=email.PASSWORD_RESET, to=["", None], context={"code": "123456"})
    assert sent is False
    assert mailoutbox == []


def test_password_reset_email_contains_code(mailoutbox):
    user = SimpleNamespace(email="amina@example.com", first_name="Amina")
    code = SimpleNamespace(code="482913", expires_at=timezone.now())

    assert email.send_password_reset_email(user, code) is True
    assert mailoutbox[0].subject == "Password Reset Request"
    assert "482913" in mailoutbox[0].body
    assert mailoutbox[0].body.startswith("Hi Amina,")


def test_subject_with_missing_placeholder_falls_back_to_template():
    assert email._format_subject("Re: [{ticket_number}] {subject}", {"subject": "x"}) == \
        "Re: [{ticket_number}] {subject}"
