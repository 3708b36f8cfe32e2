from django.contrib import admin

from scoring.models import (
    ScoringConfiguration, ScoringCriterion, ApplicationScore, EligibilityResult, EvaluationHistory,
)


class ScoringCriterionInline(admin.TabularInline):
    model = ScoringCriterion
    extra = 0


@admin.register(ScoringConfiguration)
class ScoringConfigurationAdmin(admin.ModelAdmin):
    list_display = ("name", "version", "total_max_score", "pass_threshold", "is_active", "created_at")
    list_filter = ("is_active",)
    inlines = [ScoringCriterionInline]


admin.site.register(ApplicationScore)
admin.site.register(EligibilityResult)
admin.site.register(EvaluationHistory)
