from rest_framework import serializers

from accounts.models import EVALUATOR_ROLES


class AssignSerializer(serializers.Serializer):
    application_ids = serializers.ListField(child=serializers.IntegerField(min_value=1), allow_empty=False)
    evaluator_id = serializers.IntegerField(min_value=1)
    role = serializers.ChoiceField(choices=[r.value for r in EVALUATOR_ROLES])


class AutoAssignSerializer(serializers.Serializer):
    application_ids = serializers.ListField(child=serializers.IntegerField(min_value=1), allow_empty=False)
    role = serializers.ChoiceField(choices=[r.value for r in EVALUATOR_ROLES])
    evaluators_per_application = serializers.IntegerField(min_value=1, max_value=20, default=2)


class RemoveAssignmentsSerializer(serializers.Serializer):
    evaluator_id = serializers.IntegerField(min_value=1)
    application_ids = serializers.ListField(child=serializers.IntegerField(min_value=1), allow_empty=False)


class ScoreUpdateSerializer(serializers.Serializer):
    application_id = serializers.IntegerField(min_value=1)
    criterion_id = serializers.IntegerField(min_value=1)
    # bounds are checked against the row's max_score in the service
    score = serializers.DecimalField(max_digits=6, decimal_places=2)
    level = serializers.CharField(required=False, allow_blank=True, max_length=100)
    notes = serializers.CharField(required=False, allow_blank=True)


class ScoreUpdatesSerializer(serializers.Serializer):
    updates = ScoreUpdateSerializer(many=True, allow_empty=False)


class DragonsDenScoreSerializer(serializers.Serializer):
    criterion_id = serializers.IntegerField(min_value=1)
    score = serializers.DecimalField(max_digits=6, decimal_places=2)
    comments = serializers.CharField(required=False, allow_blank=True)


class DragonsDenScoresSerializer(serializers.Serializer):
    scores = DragonsDenScoreSerializer(many=True, allow_empty=False)


class SelectWinnersSerializer(serializers.Serializer):
    application_ids = serializers.ListField(child=serializers.IntegerField(min_value=1), allow_empty=False)
    categories = serializers.ListField(child=serializers.CharField(max_length=100), required=False)
