import logging
from typing import Any, Dict, Optional

from django.db import transaction
from django.db.models import Count, Q
from django.utils import timezone

from admin_portal.models import ActivityLog
from admin_portal.utils import log_activity
from notifications.email import send_support_response_email
from support.models import SupportTicket, SupportResponse

logger = logging.getLogger(__name__)

TICKET_PREFIX = "TKT"


class SupportError(ValueError):
    pass


class TicketAccessDenied(SupportError):
    pass


def _is_admin(user) -> bool:
    return bool(user and user.is_authenticated and user.is_admin)


def next_ticket_number(year: Optional[int] = None) -> str:
    year = year or timezone.now().year
    prefix = f"{TICKET_PREFIX}-{year}-"
    # suffixes can exceed four digits
    numbers = (
        SupportTicket.objects.select_for_update()
        .filter(ticket_number__startswith=prefix)
        .values_list("ticket_number", flat=True)
    )
    seq = max((int(n.rsplit("-", 1)[1]) for n in numbers), default=0) + 1
    return f"{prefix}{seq:04d}"


@transaction.atomic
def create_ticket(user, data: Dict[str, Any]) -> SupportTicket:
    ticket = SupportTicket.objects.create(
        ticket_number=next_ticket_number(),
        user=user,
        name=user.full_name,
        email=user.email,
        subject=data["subject"],
        category=data["category"],
        priority=data.get("priority") or SupportTicket.Priority.MEDIUM,
        description=data["description"],
        attachment_url=data.get("attachment_url") or "",
    )
    logger.info("Support ticket %s opened by user %s", ticket.ticket_number, user.id)
    return ticket


def my_tickets(user):
    return SupportTicket.objects.filter(user=user).select_related("assigned_to").order_by("-created_at")


def visible_responses(ticket: SupportTicket, user):
    qs = ticket.responses.select_related("responder")
    if not _is_admin(user):
        qs = qs.filter(is_internal=False)
    return qs.order_by("created_at", "id")


def ticket_for(user, ticket_id: int) -> SupportTicket:
    """
    Load a ticket the user may see. Raises SupportTicket.DoesNotExist when it is
    missing and TicketAccessDenied when it belongs to someone else.
    """
    ticket = SupportTicket.objects.select_related("assigned_to", "resolved_by").get(pk=ticket_id)
    if not _is_admin(user) and ticket.user_id != user.id:
        raise TicketAccessDenied("You don't have permission to view this ticket.")
    return ticket


@transaction.atomic
def add_response(ticket: SupportTicket, user, message: str, *, is_internal: bool = False,
                 attachment_url: str = "") -> SupportResponse:
    admin = _is_admin(user)
    if not admin and ticket.user_id != user.id:
        raise TicketAccessDenied("You don't have permission to respond to this ticket.")

    response = SupportResponse.objects.create(
        ticket=ticket,
        responder=user,
        message=message,
        attachment_url=attachment_url or "",
        is_internal=bool(is_internal and admin),
        is_from_admin=admin,
    )

    fields = ["updated_at"]
    if not admin and ticket.status == SupportTicket.Status.RESOLVED:
        ticket.status = SupportTicket.Status.OPEN
        fields.append("status")
    elif admin and not response.is_internal and ticket.status == SupportTicket.Status.OPEN:
        ticket.status = SupportTicket.Status.IN_PROGRESS
        fields.append("status")
    ticket.save(update_fields=fields)

    if admin and not response.is_internal:
        transaction.on_commit(lambda: send_support_response_email(ticket, response))

    logger.info(
        "Response %s added to %s by %s (internal=%s)",
        response.id, ticket.ticket_number, user.id, response.is_internal,
    )
    return response


@transaction.atomic
def update_ticket_status(ticket: SupportTicket, status: str, *, user, resolution_notes: Optional[str] = None,
                         assigned_to=...) -> SupportTicket:
    """
    Admin-only. `assigned_to` is left alone unless passed (None unassigns).
    """
    if not _is_admin(user):
        raise TicketAccessDenied("You must be an admin to update ticket status.")
    if status not in SupportTicket.Status.values:
        raise SupportError(f"Invalid status '{status}'.")

    old_status = ticket.status
    ticket.status = status
    fields = ["status", "updated_at"]

    if assigned_to is not ...:
        ticket.assigned_to = assigned_to
        fields.append("assigned_to")

    if status in (SupportTicket.Status.RESOLVED, SupportTicket.Status.CLOSED):
        ticket.resolved_at = timezone.now()
        ticket.resolved_by = user
        fields += ["resolved_at", "resolved_by"]
        if resolution_notes:
            ticket.resolution_notes = resolution_notes
            fields.append("resolution_notes")

    ticket.save(update_fields=fields)
    log_activity(
        user, ActivityLog.Action.STATUS_CHANGE, ticket,
        changes={"status": {"from": old_status, "to": status}},
        help_text=f"Ticket {ticket.ticket_number} moved from {old_status} to {status}",
    )
    return ticket


def support_stats() -> Dict[str, Any]:
    S = SupportTicket.Status
    agg = SupportTicket.objects.aggregate(
        total=Count("id"),
        open=Count("id", filter=Q(status=S.OPEN)),
        in_progress=Count("id", filter=Q(status=S.IN_PROGRESS)),
        resolved=Count("id", filter=Q(status=S.RESOLVED)),
        unassigned=Count("id", filter=Q(assigned_to__isnull=True)),
    )
    by_category = {
        row["category"]: row["n"]
        for row in SupportTicket.objects.values("category").annotate(n=Count("id")).order_by("category")
    }
    by_priority = {
        row["priority"]: row["n"]
        for row in SupportTicket.objects.values("priority").annotate(n=Count("id")).order_by("priority")
    }
    return {**agg, "by_category": by_category, "by_priority": by_priority}
