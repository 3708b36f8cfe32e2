from django.contrib import admin

from support.models import SupportTicket, SupportResponse


class SupportResponseInline(admin.TabularInline):
    model = SupportResponse
    extra = 0
    fields = ("responder", "message", "is_internal", "is_from_admin", "created_at")
    readonly_fields = ("created_at",)


@admin.register(SupportTicket)
class SupportTicketAdmin(admin.ModelAdmin):
    list_display = ("ticket_number", "subject", "category", "priority", "status", "email", "assigned_to", "created_at")
    list_filter = ("status", "category", "priority")
    search_fields = ("ticket_number", "subject", "email")
    inlines = [SupportResponseInline]
