from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from rest_framework import serializers

from accounts.models import EVALUATOR_ROLES
from admin_portal.models import ActivityLog
from applications.models import Application

User = get_user_model()

EVALUATOR_ROLE_CHOICES = [(r.value, r.label) for r in EVALUATOR_ROLES]


# ---------- Status machine ----------
class StatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Application.Status.choices)
    notes = serializers.CharField(required=False, allow_blank=True, max_length=2000)


class BulkStatusSerializer(serializers.Serializer):
    application_ids = serializers.ListField(child=serializers.IntegerField(min_value=1), allow_empty=False)
    # whitelist enforced by applications.services.bulk_update_status
    status = serializers.CharField(max_length=20)
    notes = serializers.CharField(required=False, allow_blank=True, max_length=2000)


class ApplicationIdsSerializer(serializers.Serializer):
    application_ids = serializers.ListField(child=serializers.IntegerField(min_value=1), allow_empty=False)
    notes = serializers.CharField(required=False, allow_blank=True, max_length=2000)


class RecheckEligibilitySerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, max_length=2000)


# ---------- Evaluators ----------
class EvaluatorSerializer(serializers.ModelSerializer):
    full_name = serializers.CharField(read_only=True)

    class Meta:
        model = User
        fields = [
            "id", "email", "first_name", "last_name", "full_name", "role", "phone",
            "country", "organization", "bio", "is_active", "date_joined",
        ]
        read_only_fields = ["id", "email", "date_joined"]


class EvaluatorCreateSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True, required=False, allow_blank=True)
    role = serializers.ChoiceField(choices=EVALUATOR_ROLE_CHOICES)

    class Meta:
        model = User
        fields = [
            "email", "first_name", "last_name", "role", "phone",
            "country", "organization", "bio", "password",
        ]

    def validate_email(self, value):
        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError("A user with this email already exists.")
        return value.lower().strip()

    def validate_password(self, value):
        if value:
            validate_password(value)
        return value

    def create(self, validated_data):
        password = validated_data.pop("password", None) or None
        # no password -> unusable until the evaluator resets it
        return User.objects.create_user(password=password, **validated_data)


class EvaluatorUpdateSerializer(serializers.ModelSerializer):
    role = serializers.ChoiceField(choices=EVALUATOR_ROLE_CHOICES, required=False)

    class Meta:
        model = User
        fields = ["first_name", "last_name", "role", "phone", "country", "organization", "bio", "is_active"]


# ---------- Audit ----------
class ActivityLogSerializer(serializers.ModelSerializer):
    actor_email = serializers.SerializerMethodField()

    class Meta:
        model = ActivityLog
        fields = [
            "id", "created_at", "actor", "actor_email",
            "action", "app_label", "model", "object_id", "object_repr",
            "changes", "meta", "help_text",
        ]

    def get_actor_email(self, obj):
        return getattr(obj.actor, "email", None)
