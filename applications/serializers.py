from django.conf import settings
from django.utils import timezone
from rest_framework import serializers

from applications.models import (
    Applicant, Business, BusinessTargetCustomer, BusinessFunding, Application,
    ApplicationStatusHistory, Country, calculate_age,
)


# ---------- Submission payload ----------
class PersonalInfoSerializer(serializers.Serializer):
    first_name = serializers.CharField(min_length=2, max_length=100)
    last_name = serializers.CharField(min_length=2, max_length=100)
    gender = serializers.ChoiceField(choices=Applicant.Gender.choices)
    date_of_birth = serializers.DateField()
    citizenship = serializers.ChoiceField(choices=Country.choices)
    citizenship_other = serializers.CharField(required=False, allow_blank=True, max_length=100)
    country_of_residence = serializers.ChoiceField(choices=Country.choices)
    residence_other = serializers.CharField(required=False, allow_blank=True, max_length=100)
    phone_number = serializers.CharField(min_length=8, max_length=20)
    email = serializers.EmailField(max_length=100)
    highest_education = serializers.ChoiceField(choices=Applicant.Education.choices)

    def validate_date_of_birth(self, value):
        age = calculate_age(value)
        if age < settings.GRANTS["MIN_APPLICANT_AGE"]:
            raise serializers.ValidationError(f"You must be at least {settings.GRANTS['MIN_APPLICANT_AGE']} years old.")
        if age > settings.GRANTS["MAX_APPLICANT_AGE"]:
            raise serializers.ValidationError(f"You must be {settings.GRANTS['MAX_APPLICANT_AGE']} years or younger.")
        return value

    def validate(self, attrs):
        errors = {}
        if attrs.get("citizenship") == Country.OTHER and len((attrs.get("citizenship_other") or "").strip()) < 2:
            errors["citizenship_other"] = "Please specify your country of citizenship."
        if attrs.get("country_of_residence") == Country.OTHER and len((attrs.get("residence_other") or "").strip()) < 2:
            errors["residence_other"] = "Please specify your country of residence."
        if errors:
            raise serializers.ValidationError(errors)
        return attrs


class FundingSerializer(serializers.Serializer):
    has_external_funding = serializers.BooleanField()
    funding_source = serializers.ChoiceField(choices=BusinessFunding.Source.choices, required=False, allow_blank=True)
    funding_source_other = serializers.CharField(required=False, allow_blank=True, max_length=100)
    funding_date = serializers.DateField(required=False, allow_null=True)
    funder_name = serializers.CharField(required=False, allow_blank=True, max_length=200)
    amount_usd = serializers.DecimalField(max_digits=14, decimal_places=2, required=False, allow_null=True, min_value=0)
    funding_instrument = serializers.ChoiceField(
        choices=BusinessFunding.Instrument.choices, required=False, allow_blank=True
    )
    funding_instrument_other = serializers.CharField(required=False, allow_blank=True, max_length=100)

    def validate(self, attrs):
        if not attrs.get("has_external_funding"):
            return attrs
        errors = {}
        if not attrs.get("funding_source"):
            errors["funding_source"] = "Please select the funding source."
        if not (attrs.get("funder_name") or "").strip():
            errors["funder_name"] = "Please enter the funder name."
        if not attrs.get("amount_usd"):
            errors["amount_usd"] = "Please enter the amount received."
        if attrs.get("funding_source") == BusinessFunding.Source.OTHER and not (attrs.get("funding_source_other") or "").strip():
            errors["funding_source_other"] = "Please specify the funding source."
        if attrs.get("funding_instrument") == BusinessFunding.Instrument.OTHER and not (attrs.get("funding_instrument_other") or "").strip():
            errors["funding_instrument_other"] = "Please specify the funding instrument."
        if errors:
            raise serializers.ValidationError(errors)
        return attrs


class BusinessInfoSerializer(serializers.Serializer):
    name = serializers.CharField(min_length=2, max_length=200)
    start_date = serializers.DateField()
    is_registered = serializers.BooleanField()
    registration_certificate_url = serializers.URLField(required=False, allow_blank=True, max_length=500)
    country = serializers.ChoiceField(choices=Country.choices)
    country_other = serializers.CharField(required=False, allow_blank=True, max_length=100)
    city = serializers.CharField(min_length=2, max_length=100)
    registered_countries = serializers.ListField(child=serializers.CharField(max_length=100), required=False)
    description = serializers.CharField(min_length=20, max_length=1000)
    problem_solved = serializers.CharField(min_length=20, max_length=1000)
    revenue_last_two_years = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=0)
    full_time_employees_total = serializers.IntegerField(min_value=0, default=0)
    full_time_employees_male = serializers.IntegerField(min_value=0, default=0)
    full_time_employees_female = serializers.IntegerField(min_value=0, default=0)
    part_time_employees_male = serializers.IntegerField(min_value=0, default=0)
    part_time_employees_female = serializers.IntegerField(min_value=0, default=0)
    climate_adaptation_contribution = serializers.CharField(min_length=50, max_length=1000)
    product_service_description = serializers.CharField(min_length=20, max_length=1000)
    climate_extreme_impact = serializers.CharField(min_length=50, max_length=1000)
    unit_price = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=0, default=0)
    customer_count_last_six_months = serializers.IntegerField(min_value=0, default=0)
    production_capacity_last_six_months = serializers.CharField(required=False, allow_blank=True, max_length=200)
    target_customers = serializers.ListField(
        child=serializers.ChoiceField(choices=BusinessTargetCustomer.Segment.choices), required=False
    )
    current_challenges = serializers.CharField(min_length=20, max_length=1000)
    support_needed = serializers.CharField(min_length=20, max_length=1000)
    additional_information = serializers.CharField(required=False, allow_blank=True, max_length=1000)
    funding = FundingSerializer(required=False)

    def validate(self, attrs):
        errors = {}
        total = attrs.get("full_time_employees_total", 0)
        male = attrs.get("full_time_employees_male", 0)
        female = attrs.get("full_time_employees_female", 0)
        if (total or male or female) and male + female != total:
            errors["full_time_employees_total"] = (
                "The sum of male and female full-time employees must equal the total full-time employees."
            )
        if attrs.get("country") == Country.OTHER and len((attrs.get("country_other") or "").strip()) < 2:
            errors["country_other"] = "Please specify the country of operation."
        if attrs.get("start_date") and attrs["start_date"] > timezone.localdate():
            errors["start_date"] = "Start date cannot be in the future."
        if errors:
            raise serializers.ValidationError(errors)
        return attrs


class ApplicationSubmitSerializer(serializers.Serializer):
    personal = PersonalInfoSerializer()
    business = BusinessInfoSerializer()
    referral_source = serializers.CharField(required=False, allow_blank=True, max_length=100)
    referral_source_other = serializers.CharField(required=False, allow_blank=True, max_length=100)


# ---------- Read serializers ----------
class ApplicantSerializer(serializers.ModelSerializer):
    class Meta:
        model = Applicant
        exclude = ["user"]


class BusinessFundingSerializer(serializers.ModelSerializer):
    class Meta:
        model = BusinessFunding
        exclude = ["business"]


class BusinessSerializer(serializers.ModelSerializer):
    target_customers = serializers.SerializerMethodField()
    funding = BusinessFundingSerializer(many=True, read_only=True)

    class Meta:
        model = Business
        exclude = ["applicant"]

    def get_target_customers(self, obj):
        return [t.customer_segment for t in obj.target_customers.all()]


class StatusHistorySerializer(serializers.ModelSerializer):
    changed_by = serializers.EmailField(source="changed_by.email", default=None, read_only=True)

    class Meta:
        model = ApplicationStatusHistory
        fields = ["from_status", "to_status", "changed_by", "reason", "created_at"]


class EligibilitySummarySerializer(serializers.Serializer):
    is_eligible = serializers.BooleanField()
    age_eligible = serializers.BooleanField()
    registration_eligible = serializers.BooleanField()
    revenue_eligible = serializers.BooleanField()
    business_plan_eligible = serializers.BooleanField()
    impact_eligible = serializers.BooleanField()
    total_score = serializers.DecimalField(max_digits=6, decimal_places=2, coerce_to_string=False)
    category_scores = serializers.JSONField()
    evaluated_at = serializers.DateTimeField()


class ApplicationListSerializer(serializers.ModelSerializer):
    business_name = serializers.CharField(source="business.name", read_only=True)
    applicant_name = serializers.CharField(source="business.applicant.full_name", read_only=True)
    country = serializers.CharField(source="business.country", read_only=True)
    is_eligible = serializers.SerializerMethodField()
    total_score = serializers.SerializerMethodField()

    class Meta:
        model = Application
        fields = [
            "id", "status", "business_name", "applicant_name", "country",
            "is_eligible", "total_score", "submitted_at", "created_at",
        ]

    def _eligibility(self, obj):
        return obj.eligibility if hasattr(obj, "eligibility") else None

    def get_is_eligible(self, obj):
        e = self._eligibility(obj)
        return e.is_eligible if e else None

    def get_total_score(self, obj):
        e = self._eligibility(obj)
        return float(e.total_score) if e else None


class ApplicationDetailSerializer(serializers.ModelSerializer):
    applicant = ApplicantSerializer(source="business.applicant", read_only=True)
    business = BusinessSerializer(read_only=True)
    eligibility = serializers.SerializerMethodField()
    history = StatusHistorySerializer(many=True, read_only=True)

    class Meta:
        model = Application
        fields = [
            "id", "status", "referral_source", "referral_source_other", "submitted_at",
            "created_at", "updated_at", "applicant", "business", "eligibility", "history",
        ]

    def get_eligibility(self, obj):
        if not hasattr(obj, "eligibility"):
            return None
        return EligibilitySummarySerializer(obj.eligibility).data
