import pytest
from django.contrib.auth import get_user_model
from django.urls import reverse
from django.utils import timezone

from admin_portal.models import ActivityLog
from support import services
from support.models import SupportTicket

pytestmark = pytest.mark.django_db

User = get_user_model()

TICKET = {
    "category": "application_help",
    "subject": "Cannot upload certificate",
    "description": "The upload button does nothing when I pick a PDF.",
}


@pytest.fixture
def ticket(applicant_user):
    return services.create_ticket(applicant_user, dict(TICKET))


def test_create_ticket_numbers_sequentially(applicant_client):
    year = timezone.now().year

    first = applicant_client.post(reverse("support-tickets"), TICKET, format="json")
    second = applicant_client.post(reverse("support-tickets"), {**TICKET, "priority": "high"}, format="json")

    assert first.status_code == 201, first.content
    assert first.json()["message"] == "Support ticket created successfully."
    assert first.json()["ticket"]["ticket_number"] == f"TKT-{year}-0001"
    assert first.json()["ticket"]["priority"] == "medium"
    assert first.json()["ticket"]["status"] == "open"
    assert second.json()["ticket"]["ticket_number"] == f"TKT-{year}-0002"


def test_ticket_numbers_restart_each_year(applicant_user):
    SupportTicket.objects.create(ticket_number="TKT-2023-0041", email="a@example.com", **TICKET)
    assert services.next_ticket_number(2023) == "TKT-2023-0042"
    assert services.next_ticket_number(2024) == "TKT-2024-0001"


def test_create_validates_lengths(applicant_client):
    resp = applicant_client.post(reverse("support-tickets"), {**TICKET, "subject": "Hi", "description": "short"}, format="json")
    assert resp.status_code == 400
    assert {"subject", "description"} <= set(resp.json()["errors"])


def test_owner_lists_and_opens_own_tickets(applicant_client, ticket):
    listing = applicant_client.get(reverse("support-tickets"))
    assert [t["id"] for t in listing.json()] == [ticket.id]

    detail = applicant_client.get(reverse("support-ticket-detail", args=[ticket.id]))
    assert detail.status_code == 200
    assert detail.json()["description"] == TICKET["description"]


def test_other_users_are_forbidden(client_for, ticket):
    stranger = User.objects.create_user(email="stranger@example.com", password="Str4nger!")
    client = client_for(stranger)

    assert client.get(reverse("support-ticket-detail", args=[ticket.id])).status_code == 403
    assert client.post(reverse("support-ticket-respond", args=[ticket.id]), {"message": "hi"}, format="json").status_code == 403
    assert client.get(reverse("support-ticket-detail", args=[ticket.id + 50])).status_code == 404


def test_internal_notes_are_hidden_from_owner(admin_client, applicant_client, ticket, mailoutbox,
                                              django_capture_on_commit_callbacks):
    with django_capture_on_commit_callbacks(execute=True):
        note = admin_client.post(
            reverse("support-ticket-respond", args=[ticket.id]),
            {"message": "Looks like the S3 bucket policy.", "is_internal": True}, format="json",
        )
    assert note.status_code == 201
    assert note.json()["is_internal"] is True
    assert mailoutbox == []
    ticket.refresh_from_db()
    assert ticket.status == "open"

    owner_view = applicant_client.get(reverse("support-ticket-detail", args=[ticket.id])).json()
    assert owner_view["responses"] == []

    admin_view = admin_client.get(f"/api/admin/support/tickets/{ticket.id}/").json()
    assert [r["message"] for r in admin_view["responses"]] == ["Looks like the S3 bucket policy."]


def test_applicant_cannot_post_internal_notes(applicant_client, ticket):
    resp = applicant_client.post(
        reverse("support-ticket-respond", args=[ticket.id]), {"message": "secret?", "is_internal": True}, format="json"
    )
    assert resp.status_code == 201
    assert resp.json()["is_internal"] is False
    assert resp.json()["is_from_admin"] is False


def test_admin_reply_moves_to_in_progress_and_emails_owner(admin_client, ticket, mailoutbox,
                                                           django_capture_on_commit_callbacks):
    with django_capture_on_commit_callbacks(execute=True):
        resp = admin_client.post(
            reverse("support-ticket-respond", args=[ticket.id]),
            {"message": "Please try again with a smaller file."}, format="json",
        )
    assert resp.status_code == 201
    ticket.refresh_from_db()
    assert ticket.status == "in_progress"

    assert len(mailoutbox) == 1
    mail = mailoutbox[0]
    assert mail.to == ["applicant@example.com"]
    assert mail.subject == f"Re: [{ticket.ticket_number}] {ticket.subject}"
    assert "smaller file" in mail.body


def test_user_reply_reopens_resolved_ticket(applicant_client, admin_user, ticket):
    services.update_ticket_status(ticket, "resolved", user=admin_user)

    applicant_client.post(reverse("support-ticket-respond", args=[ticket.id]), {"message": "Still broken."}, format="json")
    ticket.refresh_from_db()
    assert ticket.status == "open"


def test_admin_resolves_and_assigns(admin_client, admin_user, ticket):
    resp = admin_client.post(f"/api/admin/support/tickets/{ticket.id}/status/", {
        "status": "resolved", "resolution_notes": "Cleared the stale session.", "assigned_to": admin_user.id,
    }, format="json")

    assert resp.status_code == 200, resp.content
    body = resp.json()
    assert body["status"] == "resolved"
    assert body["assigned_to_email"] == "admin@example.com"
    assert body["resolution_notes"] == "Cleared the stale session."
    assert body["resolved_by_email"] == "admin@example.com"
    assert body["resolved_at"] is not None
    assert ActivityLog.objects.filter(action=ActivityLog.Action.STATUS_CHANGE, model="SupportTicket").exists()


def test_status_update_is_admin_only(applicant_user, ticket):
    with pytest.raises(services.TicketAccessDenied):
        services.update_ticket_status(ticket, "closed", user=applicant_user)


def test_admin_list_filters_and_stats(admin_client, admin_user, applicant_user, ticket):
    other = services.create_ticket(applicant_user, {**TICKET, "category": "bug_report", "priority": "urgent",
                                                    "subject": "Dashboard crashes"})
    services.update_ticket_status(other, "in_progress", user=admin_user, assigned_to=admin_user)

    unassigned = admin_client.get("/api/admin/support/tickets/", {"unassigned": "true"}).json()
    assert [t["id"] for t in unassigned["results"]] == [ticket.id]

    found = admin_client.get("/api/admin/support/tickets/", {"search": "crashes"}).json()
    assert [t["id"] for t in found["results"]] == [other.id]

    stats = admin_client.get("/api/admin/support/tickets/stats/").json()
    assert stats["total"] == 2
    assert stats["open"] == 1 and stats["in_progress"] == 1 and stats["resolved"] == 0
    assert stats["unassigned"] == 1
    assert stats["by_category"] == {"application_help": 1, "bug_report": 1}
    assert stats["by_priority"] == {"medium": 1, "urgent": 1}


def test_admin_endpoints_require_admin(applicant_client):
    assert applicant_client.get("/api/admin/support/tickets/").status_code == 403


def test_ticket_numbers_compare_numerically_past_four_digits(applicant_user):
    for number in ("TKT-2025-9999", "TKT-2025-10000"):
        SupportTicket.objects.create(ticket_number=number, email="a@example.com", **TICKET)
    assert services.next_ticket_number(2025) == "TKT-2025-10001"
