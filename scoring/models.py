from __future__ import annotations
from decimal import Decimal
from django.conf import settings
from django.db import models
from django.utils import timezone

from applications.models import Application

# Category used by the Dragon's Den pitch panel
PRESENTATION_CATEGORY = "Presentation"


class ScoringConfiguration(models.Model):
    """
    A named, versioned rubric. Exactly one configuration is active at a time;
    activation goes through scoring.logic.activate_configuration.
    """
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    version = models.CharField(max_length=20, default="1.0")
    total_max_score = models.PositiveIntegerField(default=100)
    pass_threshold = models.PositiveIntegerField(default=60)
    is_active = models.BooleanField(default=False, db_index=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
        related_name="scoring_configurations",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        unique_together = ("name", "version")

    def __str__(self):
        return f"{self.name} (v{self.version})"


class ScoringCriterion(models.Model):
    class EvaluationType(models.TextChoices):
        MANUAL = "manual", "Manual"
        AUTO = "auto", "Automatic"
        HYBRID = "hybrid", "Hybrid"

    config = models.ForeignKey(ScoringConfiguration, on_delete=models.CASCADE, related_name="criteria")
    category = models.CharField(max_length=100, db_index=True)
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    max_points = models.PositiveIntegerField()
    weightage = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal("0"))
    # [{"level": "Strong capacity", "points": 10, "description": "..."}]
    scoring_levels = models.JSONField(default=list, blank=True)
    evaluation_type = models.CharField(max_length=10, choices=EvaluationType.choices, default=EvaluationType.MANUAL)
    sort_order = models.PositiveIntegerField(default=0)
    is_required = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["config", "sort_order", "id"]

    def __str__(self):
        return f"{self.category} - {self.name} ({self.max_points})"

    @property
    def is_presentation(self) -> bool:
        return self.category == PRESENTATION_CATEGORY


class ApplicationScore(models.Model):
    """
    One evaluator's score for one criterion of one application.
    Rows are created at assignment time with score 0 and updated in place.
    """
    application = models.ForeignKey(Application, on_delete=models.CASCADE, related_name="scores")
    criterion = models.ForeignKey(ScoringCriterion, on_delete=models.CASCADE, related_name="scores")
    evaluator = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="application_scores"
    )
    config = models.ForeignKey(ScoringConfiguration, on_delete=models.CASCADE, related_name="scores")
    score = models.DecimalField(max_digits=6, decimal_places=2, default=Decimal("0"))
    max_score = models.DecimalField(max_digits=6, decimal_places=2)
    level = models.CharField(max_length=100, blank=True)
    notes = models.TextField(blank=True)
    evaluated_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = ("application", "criterion", "evaluator")
        ordering = ["application", "criterion__sort_order"]

    def __str__(self):
        return f"App {self.application_id} / {self.criterion_id} by {self.evaluator_id}: {self.score}"


class EligibilityResult(models.Model):
    """
    Derived record: mandatory gates, category subtotals and total for an application.
    """
    application = models.OneToOneField(Application, on_delete=models.CASCADE, related_name="eligibility")
    is_eligible = models.BooleanField(default=False)

    # mandatory gates
    age_eligible = models.BooleanField(default=False)
    registration_eligible = models.BooleanField(default=False)
    revenue_eligible = models.BooleanField(default=False)
    business_plan_eligible = models.BooleanField(default=False)
    impact_eligible = models.BooleanField(default=False)

    # heuristic pre-scores (used until evaluators have scored)
    market_potential_score = models.PositiveIntegerField(null=True, blank=True)
    innovation_score = models.PositiveIntegerField(null=True, blank=True)
    climate_adaptation_score = models.PositiveIntegerField(null=True, blank=True)
    job_creation_score = models.PositiveIntegerField(null=True, blank=True)
    viability_score = models.PositiveIntegerField(null=True, blank=True)
    management_capacity_score = models.PositiveIntegerField(null=True, blank=True)
    location_bonus = models.PositiveIntegerField(null=True, blank=True)
    gender_bonus = models.PositiveIntegerField(null=True, blank=True)

    category_scores = models.JSONField(default=dict, blank=True)
    total_score = models.DecimalField(max_digits=6, decimal_places=2, default=Decimal("0"))
    scoring_config = models.ForeignKey(
        ScoringConfiguration, on_delete=models.SET_NULL, null=True, blank=True, related_name="results"
    )
    evaluation_notes = models.TextField(blank=True)
    details = models.JSONField(default=dict, blank=True, help_text="Gate and category breakdown")
    evaluated_at = models.DateTimeField(default=timezone.now)
    evaluated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
        related_name="eligibility_evaluations",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Eligibility for Application {self.application_id}"

    @property
    def mandatory_passed(self) -> bool:
        return all([
            self.age_eligible,
            self.registration_eligible,
            self.revenue_eligible,
            self.business_plan_eligible,
            self.impact_eligible,
        ])


class EvaluationHistory(models.Model):
    application = models.ForeignKey(Application, on_delete=models.CASCADE, related_name="evaluation_history")
    previous_config = models.ForeignKey(
        ScoringConfiguration, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    new_config = models.ForeignKey(
        ScoringConfiguration, on_delete=models.SET_NULL, null=True, blank=True, related_name="history"
    )
    previous_total_score = models.DecimalField(max_digits=6, decimal_places=2, default=Decimal("0"))
    new_total_score = models.DecimalField(max_digits=6, decimal_places=2, default=Decimal("0"))
    previous_is_eligible = models.BooleanField(default=False)
    new_is_eligible = models.BooleanField(default=False)
    evaluated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    reason = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["-created_at"]
        verbose_name_plural = "evaluation history"
