import logging
from datetime import date, datetime

from django.utils import timezone

from admin_portal.models import ActivityLog

logger = logging.getLogger(__name__)


def log_activity(actor, action, target=None, *, changes=None, meta=None, help_text="", app_label=None, model=None):
    """
    Persist one ActivityLog row for a domain operation.

    `target` is any model instance (or None for operations spanning many rows,
    in which case app_label/model must be given).
    """
    if target is not None:
        app_label = app_label or target._meta.app_label
        model = model or target.__class__.__name__
    if actor is not None and not getattr(actor, "is_authenticated", False):
        actor = None

    return ActivityLog.objects.create(
        actor=actor,
        action=action,
        app_label=app_label or "",
        model=model or "",
        object_id=str(getattr(target, "pk", "") or ""),
        object_repr=str(target)[:255] if target is not None else "",
        changes=changes or {},
        meta=meta or {},
        help_text=help_text,
    )


def format_human_datetime(value):
    """
    Convert date/datetime to a readable string for activity feeds.
    Keeps other types unchanged.
    """
    if isinstance(value, datetime):
        if timezone.is_aware(value):
            value = timezone.localtime(value)
        # e.g. "19 Nov 2025, 05:46 PM"
        return value.strftime("%d %b %Y, %I:%M %p")
    if isinstance(value, date):
        return value.strftime("%d %b %Y")
    return value
