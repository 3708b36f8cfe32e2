from rest_framework import serializers

from applications.models import Application, Country
from exports.services import EXPORT_TYPES, EXPORT_FORMATS


class ExportFiltersSerializer(serializers.Serializer):
    status = serializers.ListField(child=serializers.ChoiceField(choices=Application.Status.choices), required=False)
    country = serializers.ListField(child=serializers.ChoiceField(choices=Country.choices), required=False)
    is_eligible = serializers.BooleanField(required=False, allow_null=True, default=None)
    submitted_after = serializers.DateField(required=False, allow_null=True)
    submitted_before = serializers.DateField(required=False, allow_null=True)

    def to_internal_value(self, data):
        out = super().to_internal_value(data)
        return {k: v for k, v in out.items() if v not in (None, [])}


class ExportRequestSerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=[(t, t) for t in EXPORT_TYPES])
    format = serializers.ChoiceField(choices=[(f, f) for f in EXPORT_FORMATS], default="csv")
    filters = ExportFiltersSerializer(required=False)
