from rest_framework import serializers

from scoring.models import ScoringConfiguration, ScoringCriterion, EvaluationHistory


class ScoringLevelSerializer(serializers.Serializer):
    level = serializers.CharField(max_length=100)
    points = serializers.IntegerField(min_value=0)
    description = serializers.CharField(required=False, allow_blank=True)


class ScoringCriterionSerializer(serializers.ModelSerializer):
    scoring_levels = ScoringLevelSerializer(many=True, required=False)

    class Meta:
        model = ScoringCriterion
        fields = [
            "id", "config", "category", "name", "description", "max_points", "weightage",
            "scoring_levels", "evaluation_type", "sort_order", "is_required",
        ]
        read_only_fields = ["id", "config"]


class ScoringConfigurationSerializer(serializers.ModelSerializer):
    criteria = ScoringCriterionSerializer(many=True, read_only=True)
    created_by = serializers.EmailField(source="created_by.email", default=None, read_only=True)
    criteria_count = serializers.SerializerMethodField()

    class Meta:
        model = ScoringConfiguration
        fields = [
            "id", "name", "description", "version", "total_max_score", "pass_threshold",
            "is_active", "created_by", "created_at", "updated_at", "criteria_count", "criteria",
        ]

    def get_criteria_count(self, obj):
        return len(obj.criteria.all())


class ScoringConfigurationListSerializer(ScoringConfigurationSerializer):
    class Meta(ScoringConfigurationSerializer.Meta):
        fields = [f for f in ScoringConfigurationSerializer.Meta.fields if f != "criteria"]


class ScoringConfigurationWriteSerializer(serializers.Serializer):
    """Payload for create/update; criteria replace the existing set when given."""
    name = serializers.CharField(max_length=200)
    description = serializers.CharField(required=False, allow_blank=True)
    version = serializers.CharField(max_length=20, default="1.0")
    total_max_score = serializers.IntegerField(min_value=1, default=100)
    pass_threshold = serializers.IntegerField(min_value=0, default=60)
    criteria = ScoringCriterionSerializer(many=True, required=False)


class ReEvaluateSerializer(serializers.Serializer):
    application_ids = serializers.ListField(child=serializers.IntegerField(min_value=1), required=False)


class EvaluationHistorySerializer(serializers.ModelSerializer):
    previous_config = serializers.StringRelatedField()
    new_config = serializers.StringRelatedField()
    evaluated_by = serializers.EmailField(source="evaluated_by.email", default=None, read_only=True)

    class Meta:
        model = EvaluationHistory
        fields = [
            "id", "application", "previous_config", "new_config",
            "previous_total_score", "new_total_score", "previous_is_eligible", "new_is_eligible",
            "evaluated_by", "reason", "created_at",
        ]
