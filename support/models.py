from django.conf import settings
from django.core.validators import MinLengthValidator
from django.db import models


class SupportTicket(models.Model):
    class Category(models.TextChoices):
        TECHNICAL_ISSUE = "technical_issue", "Technical Issue"
        APPLICATION_HELP = "application_help", "Application Help"
        ACCOUNT_PROBLEM = "account_problem", "Account Problem"
        PAYMENT_ISSUE = "payment_issue", "Payment Issue"
        FEATURE_REQUEST = "feature_request", "Feature Request"
        BUG_REPORT = "bug_report", "Bug Report"
        GENERAL_INQUIRY = "general_inquiry", "General Inquiry"
        OTHER = "other", "Other"

    class Priority(models.TextChoices):
        LOW = "low", "Low"
        MEDIUM = "medium", "Medium"
        HIGH = "high", "High"
        URGENT = "urgent", "Urgent"

    class Status(models.TextChoices):
        OPEN = "open", "Open"
        IN_PROGRESS = "in_progress", "In Progress"
        WAITING_FOR_USER = "waiting_for_user", "Waiting for User"
        RESOLVED = "resolved", "Resolved"
        CLOSED = "closed", "Closed"

    # TKT-<year>-<seq:04d>, see support.services.next_ticket_number
    ticket_number = models.CharField(max_length=20, unique=True)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
        related_name="support_tickets",
    )
    name = models.CharField(max_length=200)
    email = models.EmailField()
    subject = models.CharField(max_length=200, validators=[MinLengthValidator(5)])
    category = models.CharField(max_length=20, choices=Category.choices)
    priority = models.CharField(max_length=10, choices=Priority.choices, default=Priority.MEDIUM)
    description = models.TextField(validators=[MinLengthValidator(10)])
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.OPEN, db_index=True)
    attachment_url = models.URLField(max_length=500, blank=True)

    assigned_to = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
        related_name="assigned_support_tickets",
    )
    resolved_at = models.DateTimeField(null=True, blank=True)
    resolved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
        related_name="resolved_support_tickets",
    )
    resolution_notes = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "priority"]),
            models.Index(fields=["category"]),
        ]

    def __str__(self):
        return f"{self.ticket_number} – {self.subject}"


class SupportResponse(models.Model):
    ticket = models.ForeignKey(SupportTicket, on_delete=models.CASCADE, related_name="responses")
    responder = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
        related_name="support_responses",
    )
    message = models.TextField(max_length=2000)
    attachment_url = models.URLField(max_length=500, blank=True)
    # internal notes are only visible to admins
    is_internal = models.BooleanField(default=False)
    is_from_admin = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at", "id"]

    def __str__(self):
        return f"Response #{self.pk} on {self.ticket.ticket_number}"
