import logging
from typing import Iterable, Mapping, Any, Optional
from django.core.mail import send_mail, EmailMultiAlternatives
from django.template.loader import render_to_string
from django.conf import settings

logger = logging.getLogger("notifications")

APPLICATION_SUBMITTED = "application_submitted"
APPLICATION_STATUS_CHANGED = "application_status_changed"
SUPPORT_TICKET_RESPONSE = "support_ticket_response"
PASSWORD_RESET = "password_reset"

# Map event -> subject, templates (txt/html)
EVENT_TEMPLATES: dict[str, dict[str, str]] = {
    APPLICATION_SUBMITTED: {
        "subject": "Application received: #{application_id} – {business_name}",
        "text": "emails/application_submitted.txt",
        "html": "emails/application_submitted.html",
    },
    APPLICATION_STATUS_CHANGED: {
        "subject": "Your application #{application_id} is now {status_label}",
        "text": "emails/application_status_changed.txt",
    },
    SUPPORT_TICKET_RESPONSE: {
        "subject": "Re: [{ticket_number}] {subject}",
        "text": "emails/support_ticket_response.txt",
        "html": "emails/support_ticket_response.html",
    },
    PASSWORD_RESET: {
        "subject": "Password Reset Request",
        "text": "emails/password_reset.txt",
    },
}

# Statuses the applicant hears about by email
NOTIFY_ON_STATUSES = {"dragons_den", "approved", "rejected"}


def _format_subject(template: str, ctx: Mapping[str, Any]) -> str:
    # flat {} placeholders only
    try:
        return template.format(**ctx)
    except (KeyError, IndexError, ValueError):
        logger.exception("Failed to format email subject with ctx=%s", ctx)
        return template


def notify_email(
    *,
    event: str,
    to: Iterable[str],
    context: Mapping[str, Any],
    cc: Optional[Iterable[str]] = None,
    bcc: Optional[Iterable[str]] = None,
    reply_to: Optional[Iterable[str]] = None,
    from_email: Optional[str] = None,
) -> bool:
    """
    Render and send an email for `event` with the given context.
    Returns True if at least one message was accepted for delivery.
    """
    meta = EVENT_TEMPLATES.get(event)
    if not meta:
        logger.warning("Email event '%s' not configured; skipping.", event)
        return False

    to = [addr for addr in to if addr]
    if not to:
        logger.warning("Email event '%s' has no recipients; skipping.", event)
        return False

    from_email = from_email or settings.DEFAULT_FROM_EMAIL
    html_tmpl = meta.get("html")
    subject = _format_subject(meta["subject"], context)

    try:
        body_txt = render_to_string(meta["text"], context)
        body_html = render_to_string(html_tmpl, context) if html_tmpl else None

        if body_html:
            msg = EmailMultiAlternatives(
                subject=subject,
                body=body_txt,
                from_email=from_email,
                to=to,
                cc=list(cc or []),
                bcc=list(bcc or []),
                reply_to=list(reply_to or []),
            )
            msg.attach_alternative(body_html, "text/html")
            sent = msg.send(fail_silently=False)
        else:
            sent = send_mail(
                subject=subject,
                message=body_txt,
                from_email=from_email,
                recipient_list=to,
                fail_silently=False,
            )

        logger.info("Email event=%s sent=%s to=%s", event, bool(sent), to)
        return bool(sent)
    except Exception:
        logger.exception("Email send failed: event=%s to=%s", event, to)
        return False


def send_password_reset_email(user, code_obj) -> bool:
    return notify_email(
        event=PASSWORD_RESET,
        to=[user.email],
        context={"user": user, "code": code_obj.code, "expires_at": code_obj.expires_at},
    )


def send_application_submitted_email(application) -> bool:
    """
    Confirmation to the applicant after a successful submission.
    Includes the eligibility snapshot when one was computed.
    """
    business = application.business
    applicant = business.applicant
    ctx = {
        "application_id": application.id,
        "business_name": business.name,
        "applicant": applicant,
        "business": business,
        "application": application,
        "eligibility": getattr(application, "eligibility", None),
        "frontend_url": settings.FRONTEND_URL,
    }
    return notify_email(event=APPLICATION_SUBMITTED, to=[applicant.email], context=ctx)


def send_status_changed_email(application, *, notes: str = "") -> bool:
    if application.status not in NOTIFY_ON_STATUSES:
        return False
    applicant = application.business.applicant
    ctx = {
        "application_id": application.id,
        "status_label": application.get_status_display(),
        "applicant": applicant,
        "business_name": application.business.name,
        "notes": notes,
    }
    return notify_email(event=APPLICATION_STATUS_CHANGED, to=[applicant.email], context=ctx)


def send_support_response_email(ticket, response) -> bool:
    ctx = {
        "ticket_number": ticket.ticket_number,
        "subject": ticket.subject,
        "ticket": ticket,
        "response": response,
        "frontend_url": settings.FRONTEND_URL,
    }
    return notify_email(
        event=SUPPORT_TICKET_RESPONSE,
        to=[ticket.email],
        context=ctx,
        reply_to=[settings.SUPPORT_EMAIL],
    )
