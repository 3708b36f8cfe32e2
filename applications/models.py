from __future__ import annotations

from datetime import date

from django.conf import settings
from django.db import models
from django.utils import timezone


def calculate_age(date_of_birth: date, on: date | None = None) -> int:
    """Whole years between date_of_birth and `on` (today by default)."""
    on = on or timezone.localdate()
    had_birthday = (on.month, on.day) >= (date_of_birth.month, date_of_birth.day)
    return on.year - date_of_birth.year - (0 if had_birthday else 1)


class Country(models.TextChoices):
    GHANA = "ghana", "Ghana"
    KENYA = "kenya", "Kenya"
    NIGERIA = "nigeria", "Nigeria"
    RWANDA = "rwanda", "Rwanda"
    TANZANIA = "tanzania", "Tanzania"
    OTHER = "other", "Other"


class Applicant(models.Model):
    class Gender(models.TextChoices):
        MALE = "male", "Male"
        FEMALE = "female", "Female"
        OTHER = "other", "Other"

    class Education(models.TextChoices):
        PRIMARY = "primary_school_and_below", "Primary school and below"
        HIGH_SCHOOL = "high_school", "High school"
        TECHNICAL = "technical_college", "Technical college"
        UNDERGRADUATE = "undergraduate", "Undergraduate"
        POSTGRADUATE = "postgraduate", "Postgraduate"

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE,
        related_name="applicant_profile", null=True, blank=True,
    )
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    gender = models.CharField(max_length=10, choices=Gender.choices)
    date_of_birth = models.DateField()
    citizenship = models.CharField(max_length=20, choices=Country.choices)
    citizenship_other = models.CharField(max_length=100, blank=True)
    country_of_residence = models.CharField(max_length=20, choices=Country.choices)
    residence_other = models.CharField(max_length=100, blank=True)
    phone_number = models.CharField(max_length=20)
    email = models.EmailField(max_length=100)
    highest_education = models.CharField(max_length=40, choices=Education.choices)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.full_name

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    def age_on(self, on: date | None = None) -> int:
        return calculate_age(self.date_of_birth, on)


class Business(models.Model):
    applicant = models.ForeignKey(Applicant, on_delete=models.CASCADE, related_name="businesses")
    name = models.CharField(max_length=200)
    start_date = models.DateField()
    is_registered = models.BooleanField(default=False)
    registration_certificate_url = models.URLField(max_length=500, blank=True)
    country = models.CharField(max_length=20, choices=Country.choices)
    country_other = models.CharField(max_length=100, blank=True)
    city = models.CharField(max_length=100)
    registered_countries = models.JSONField(default=list, blank=True)
    description = models.TextField()
    problem_solved = models.TextField()
    revenue_last_two_years = models.DecimalField(max_digits=14, decimal_places=2, default=0)

    full_time_employees_total = models.PositiveIntegerField(default=0)
    full_time_employees_male = models.PositiveIntegerField(default=0)
    full_time_employees_female = models.PositiveIntegerField(default=0)
    part_time_employees_male = models.PositiveIntegerField(default=0)
    part_time_employees_female = models.PositiveIntegerField(default=0)

    # climate adaptation
    climate_adaptation_contribution = models.TextField()
    product_service_description = models.TextField()
    climate_extreme_impact = models.TextField()
    unit_price = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    customer_count_last_six_months = models.PositiveIntegerField(default=0)
    production_capacity_last_six_months = models.CharField(max_length=200, blank=True)

    # support needs
    current_challenges = models.TextField(blank=True)
    support_needed = models.TextField(blank=True)
    additional_information = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name_plural = "businesses"

    def __str__(self):
        return self.name

    @property
    def total_employees(self) -> int:
        return (
            self.full_time_employees_male
            + self.full_time_employees_female
            + self.part_time_employees_male
            + self.part_time_employees_female
        )


class BusinessTargetCustomer(models.Model):
    class Segment(models.TextChoices):
        HOUSEHOLDS = "household_individuals", "Households / individuals"
        MSME = "micro_small_medium_enterprises", "Micro, small and medium enterprises"
        INSTITUTIONS = "institutions", "Institutions"
        CORPORATES = "corporates", "Corporates"
        GOVERNMENT_NGO = "government_and_ngos", "Government and NGOs"

    business = models.ForeignKey(Business, on_delete=models.CASCADE, related_name="target_customers")
    customer_segment = models.CharField(max_length=40, choices=Segment.choices)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = ("business", "customer_segment")


class BusinessFunding(models.Model):
    class Source(models.TextChoices):
        HNWI = "high_net_worth_individual", "High net worth individual"
        FINANCIAL_INSTITUTIONS = "financial_institutions", "Financial institutions"
        GOVERNMENT = "government_agency", "Government agency"
        NGO = "local_or_international_ngo", "Local or international NGO"
        OTHER = "other", "Other"

    class Instrument(models.TextChoices):
        DEBT = "debt", "Debt"
        EQUITY = "equity", "Equity"
        QUASI = "quasi", "Quasi-equity"
        OTHER = "other", "Other"

    business = models.ForeignKey(Business, on_delete=models.CASCADE, related_name="funding")
    has_external_funding = models.BooleanField(default=False)
    funding_source = models.CharField(max_length=40, choices=Source.choices, blank=True)
    funding_source_other = models.CharField(max_length=100, blank=True)
    funding_date = models.DateField(null=True, blank=True)
    funder_name = models.CharField(max_length=200, blank=True)
    amount_usd = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    funding_instrument = models.CharField(max_length=20, choices=Instrument.choices, blank=True)
    funding_instrument_other = models.CharField(max_length=100, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)


class Application(models.Model):
    class Status(models.TextChoices):
        DRAFT = "draft", "Draft"
        SUBMITTED = "submitted", "Submitted"
        UNDER_REVIEW = "under_review", "Under Review"
        SHORTLISTED = "shortlisted", "Shortlisted"
        SCORING_PHASE = "scoring_phase", "Scoring Phase"
        DRAGONS_DEN = "dragons_den", "Dragon's Den"
        FINALIST = "finalist", "Finalist"
        APPROVED = "approved", "Approved"
        REJECTED = "rejected", "Rejected"

    business = models.ForeignKey(Business, on_delete=models.CASCADE, related_name="applications")
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.DRAFT, db_index=True)
    referral_source = models.CharField(max_length=100, blank=True)
    referral_source_other = models.CharField(max_length=100, blank=True)
    submitted_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"Application #{self.pk} – {self.business.name}"

    @property
    def applicant(self) -> Applicant:
        return self.business.applicant


# Statuses a bulk action may move applications into
BULK_STATUS_TARGETS = (
    Application.Status.UNDER_REVIEW,
    Application.Status.SHORTLISTED,
    Application.Status.SCORING_PHASE,
    Application.Status.DRAGONS_DEN,
    Application.Status.FINALIST,
    Application.Status.APPROVED,
    Application.Status.REJECTED,
)


class ApplicationStatusHistory(models.Model):
    application = models.ForeignKey(Application, on_delete=models.CASCADE, related_name="history")
    from_status = models.CharField(max_length=20, choices=Application.Status.choices)
    to_status = models.CharField(max_length=20, choices=Application.Status.choices)
    changed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
        related_name="application_status_changes",
    )
    reason = models.TextField(blank=True)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["-created_at"]
        verbose_name_plural = "application status history"
