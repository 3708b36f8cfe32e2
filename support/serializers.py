from django.contrib.auth import get_user_model
from rest_framework import serializers

from support.models import SupportTicket, SupportResponse

User = get_user_model()


class SupportTicketCreateSerializer(serializers.Serializer):
    category = serializers.ChoiceField(choices=SupportTicket.Category.choices)
    subject = serializers.CharField(min_length=5, max_length=200)
    description = serializers.CharField(min_length=10, max_length=2000)
    priority = serializers.ChoiceField(choices=SupportTicket.Priority.choices, default=SupportTicket.Priority.MEDIUM)
    attachment_url = serializers.URLField(required=False, allow_blank=True, allow_null=True, max_length=500)


class SupportResponseCreateSerializer(serializers.Serializer):
    message = serializers.CharField(min_length=1, max_length=2000)
    attachment_url = serializers.URLField(required=False, allow_blank=True, allow_null=True, max_length=500)
    is_internal = serializers.BooleanField(default=False)


class TicketStatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=SupportTicket.Status.choices)
    resolution_notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    # null unassigns
    assigned_to = serializers.PrimaryKeyRelatedField(
        queryset=User.objects.all(), required=False, allow_null=True,
    )


class SupportResponseSerializer(serializers.ModelSerializer):
    responder_name = serializers.SerializerMethodField()
    responder_email = serializers.EmailField(source="responder.email", default=None, read_only=True)

    class Meta:
        model = SupportResponse
        fields = [
            "id", "message", "attachment_url", "is_internal", "is_from_admin",
            "responder", "responder_name", "responder_email", "created_at",
        ]

    def get_responder_name(self, obj):
        return obj.responder.full_name if obj.responder_id else None


class SupportTicketListSerializer(serializers.ModelSerializer):
    assigned_to_email = serializers.EmailField(source="assigned_to.email", default=None, read_only=True)

    class Meta:
        model = SupportTicket
        fields = [
            "id", "ticket_number", "subject", "category", "priority", "status",
            "name", "email", "assigned_to", "assigned_to_email",
            "resolved_at", "created_at", "updated_at",
        ]


class SupportTicketDetailSerializer(SupportTicketListSerializer):
    """
    Pass `responses` in the context to control which replies are shown
    (owners never see internal notes).
    """
    responses = serializers.SerializerMethodField()
    resolved_by_email = serializers.EmailField(source="resolved_by.email", default=None, read_only=True)

    class Meta(SupportTicketListSerializer.Meta):
        fields = SupportTicketListSerializer.Meta.fields + [
            "description", "attachment_url", "resolution_notes", "resolved_by_email", "responses",
        ]

    def get_responses(self, obj):
        rows = self.context.get("responses")
        if rows is None:
            rows = obj.responses.select_related("responder").all()
        return SupportResponseSerializer(rows, many=True).data
