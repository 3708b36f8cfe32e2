import logging
from typing import Dict, Iterable, Any

from django.db import transaction
from django.db.models import Count
from django.utils import timezone

from applications.models import (
    Applicant, Business, BusinessTargetCustomer, BusinessFunding, Application,
    ApplicationStatusHistory, BULK_STATUS_TARGETS,
)
from admin_portal.models import ActivityLog
from admin_portal.utils import log_activity
from notifications.email import send_application_submitted_email, send_status_changed_email
from scoring.logic import eligibility_check

logger = logging.getLogger(__name__)


class SubmissionError(ValueError):
    pass


class StatusTransitionError(ValueError):
    pass


@transaction.atomic
def submit_application(user, data: Dict[str, Any]) -> Application:
    """
    Persist a validated submission payload (see ApplicationSubmitSerializer),
    mark it submitted, run the eligibility check and queue the confirmation email.
    """
    if Application.objects.filter(business__applicant__user=user).exclude(status=Application.Status.DRAFT).exists():
        raise SubmissionError("You have already submitted an application.")

    personal = dict(data["personal"])
    business_data = dict(data["business"])
    segments = business_data.pop("target_customers", None) or []
    funding = business_data.pop("funding", None)

    applicant, _ = Applicant.objects.update_or_create(user=user, defaults=personal)
    business = Business.objects.create(applicant=applicant, **business_data)

    for segment in dict.fromkeys(segments):
        BusinessTargetCustomer.objects.create(business=business, customer_segment=segment)

    if funding:
        BusinessFunding.objects.create(business=business, **funding)

    application = Application.objects.create(
        business=business,
        status=Application.Status.SUBMITTED,
        submitted_at=timezone.now(),
        referral_source=data.get("referral_source", ""),
        referral_source_other=data.get("referral_source_other", ""),
    )
    ApplicationStatusHistory.objects.create(
        application=application,
        from_status=Application.Status.DRAFT,
        to_status=Application.Status.SUBMITTED,
        changed_by=user,
        reason="Submitted by applicant",
    )

    eligibility_check(application)
    transaction.on_commit(lambda: send_application_submitted_email(application))
    logger.info("Application %s submitted by user %s", application.id, user.id)
    return application


# ---------------------------
# Status machine
# ---------------------------
def change_status(application: Application, new_status: str, *, user=None, notes: str = "") -> bool:
    """
    Write the new status and a history row. Returns False when nothing changed.
    """
    if new_status not in Application.Status.values:
        raise StatusTransitionError(f"Invalid status '{new_status}'.")

    old_status = application.status
    if old_status == new_status:
        return False

    application.status = new_status
    application.save(update_fields=["status", "updated_at"])
    ApplicationStatusHistory.objects.create(
        application=application,
        from_status=old_status,
        to_status=new_status,
        changed_by=user,
        reason=notes or "",
    )
    log_activity(
        user, ActivityLog.Action.STATUS_CHANGE, application,
        changes={"status": {"from": old_status, "to": new_status}},
        help_text=f"Application {application.id} moved from {old_status} to {new_status}",
    )
    transaction.on_commit(lambda: send_status_changed_email(application, notes=notes))
    logger.info("Application %s status %s -> %s", application.id, old_status, new_status)
    return True


@transaction.atomic
def update_application_status(application_id: int, new_status: str, *, user=None, notes: str = "") -> Application:
    application = Application.objects.select_for_update().get(pk=application_id)
    change_status(application, new_status, user=user, notes=notes)
    return application


@transaction.atomic
def bulk_update_status(application_ids: Iterable[int], new_status: str, *, user=None, notes: str = "") -> Dict[str, Any]:
    if new_status not in BULK_STATUS_TARGETS:
        raise StatusTransitionError(
            f"Status '{new_status}' is not allowed for bulk updates. "
            f"Allowed: {', '.join(BULK_STATUS_TARGETS)}."
        )

    ids = [int(i) for i in application_ids]
    apps = list(Application.objects.select_for_update().filter(id__in=ids).order_by("id"))
    updated = [a.id for a in apps if change_status(a, new_status, user=user, notes=notes)]
    found = {a.id for a in apps}
    return {
        "status": new_status,
        "updated": len(updated),
        "updated_ids": updated,
        "not_found": sorted(set(ids) - found),
    }


def shortlist_applications(application_ids: Iterable[int], *, user=None, notes: str = "") -> Dict[str, Any]:
    return bulk_update_status(application_ids, Application.Status.SHORTLISTED, user=user, notes=notes)


@transaction.atomic
def move_to_scoring_phase(application_ids: Iterable[int], *, user=None) -> Dict[str, Any]:
    """
    Only applications currently shortlisted move; everything else is reported as skipped.
    """
    ids = [int(i) for i in application_ids]
    apps = list(Application.objects.select_for_update().filter(id__in=ids).order_by("id"))
    moved, skipped = [], []
    for app in apps:
        if app.status != Application.Status.SHORTLISTED:
            skipped.append({"application_id": app.id, "status": app.status})
            continue
        change_status(app, Application.Status.SCORING_PHASE, user=user, notes="Moved to scoring phase")
        moved.append(app.id)
    found = {a.id for a in apps}
    skipped.extend({"application_id": i, "status": None} for i in sorted(set(ids) - found))
    return {"moved": len(moved), "moved_ids": moved, "skipped": skipped}


def status_stats() -> Dict[str, int]:
    counts = {value: 0 for value in Application.Status.values}
    for row in Application.objects.values("status").annotate(n=Count("id")):
        counts[row["status"]] = row["n"]
    counts["total"] = sum(counts.values())
    return counts
