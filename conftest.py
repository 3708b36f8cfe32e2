from datetime import date
from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework.test import APIClient

from applications.models import Applicant, Business, BusinessTargetCustomer, Application
from scoring import logic
from scoring.models import PRESENTATION_CATEGORY

User = get_user_model()

NARRATIVE = (
    "Solar-powered drip irrigation kits rented to smallholder farmers, paid per season, "
    "so that dry spells no longer wipe out a whole harvest in the lake basin."
)


def _years_ago(years: int) -> date:
    today = timezone.localdate()
    return today.replace(year=today.year - years, day=min(today.day, 28))


@pytest.fixture
def admin_user(db):
    return User.objects.create_user(
        email="admin@example.com", password="Adm1n!pass", role=User.Role.ADMIN,
        first_name="Grace", last_name="Admin",
    )


@pytest.fixture
def applicant_user(db):
    return User.objects.create_user(email="applicant@example.com", password="Appl1cant!", first_name="Amina")


@pytest.fixture
def reviewer(db):
    return User.objects.create_user(
        email="reviewer@example.com", password="Rev!ewer1", role=User.Role.TECHNICAL_REVIEWER,
        first_name="Tom", last_name="Reviewer",
    )


@pytest.fixture
def jury(db):
    return User.objects.create_user(email="jury@example.com", password="Jury!pass1", role=User.Role.JURY_MEMBER)


@pytest.fixture
def judge(db):
    return User.objects.create_user(
        email="judge@example.com", password="Judg3!pass", role=User.Role.DRAGONS_DEN_JUDGE,
        first_name="Dana", last_name="Judge",
    )


@pytest.fixture
def client_for():
    def _make(user=None):
        client = APIClient()
        if user is not None:
            client.force_authenticate(user=user)
        return client
    return _make


@pytest.fixture
def admin_client(client_for, admin_user):
    return client_for(admin_user)


@pytest.fixture
def applicant_client(client_for, applicant_user):
    return client_for(applicant_user)


@pytest.fixture
def default_config(db):
    """The seeded KCIC rubric (100 points, threshold 60) with its presentation criteria, active."""
    return logic.initialize_default_configuration()


@pytest.fixture
def simple_config(db):
    """
    Two scoring criteria (Impact 60 + Business 40 = 100, threshold 60) and one
    presentation criterion worth 10 points. Active.
    """
    config = logic.create_configuration({
        "name": "Test rubric",
        "version": "1.0",
        "total_max_score": 100,
        "pass_threshold": 60,
        "criteria": [
            {"category": "Impact", "name": "Adaptation benefit", "max_points": 60},
            {"category": "Business", "name": "Viability", "max_points": 40},
            {"category": PRESENTATION_CATEGORY, "name": "Pitch Delivery", "max_points": 10},
        ],
    })
    return logic.activate_configuration(config.id)


@pytest.fixture
def make_application(db):
    """
    Factory for applications that pass every mandatory gate unless overridden:
    make_application(status="scoring_phase", age=40, business={"is_registered": False})
    """
    counter = {"n": 0}

    def _make(status=Application.Status.SUBMITTED, *, user=None, age=25, gender="female",
              country="kenya", business=None, applicant=None):
        counter["n"] += 1
        n = counter["n"]
        applicant_fields = {
            "first_name": f"Applicant{n}",
            "last_name": "Test",
            "gender": gender,
            "date_of_birth": _years_ago(age),
            "citizenship": country,
            "country_of_residence": country,
            "phone_number": "+254700000000",
            "email": f"applicant{n}@example.com",
            "highest_education": Applicant.Education.UNDERGRADUATE,
        }
        applicant_fields.update(applicant or {})
        a = Applicant.objects.create(user=user, **applicant_fields)

        business_fields = {
            "name": f"Business {n}",
            "start_date": date(2021, 1, 1),
            "is_registered": True,
            "country": country,
            "city": "Kisumu",
            "description": NARRATIVE,
            "problem_solved": NARRATIVE,
            "revenue_last_two_years": Decimal("25000"),
            "full_time_employees_total": 4,
            "full_time_employees_male": 2,
            "full_time_employees_female": 2,
            "climate_adaptation_contribution": NARRATIVE,
            "product_service_description": NARRATIVE,
            "climate_extreme_impact": NARRATIVE,
            "customer_count_last_six_months": 350,
            "current_challenges": "Access to affordable working capital.",
            "support_needed": "Mentorship on distribution partnerships.",
        }
        business_fields.update(business or {})
        b = Business.objects.create(applicant=a, **business_fields)
        BusinessTargetCustomer.objects.create(business=b, customer_segment="household_individuals")

        return Application.objects.create(
            business=b,
            status=status,
            submitted_at=None if status == Application.Status.DRAFT else timezone.now(),
        )
    return _make


@pytest.fixture
def submission_payload():
    return {
        "personal": {
            "first_name": "Amina",
            "last_name": "Otieno",
            "gender": "female",
            "date_of_birth": _years_ago(26).isoformat(),
            "citizenship": "kenya",
            "country_of_residence": "kenya",
            "phone_number": "+254712345678",
            "email": "amina@greenfarm.co.ke",
            "highest_education": "undergraduate",
        },
        "business": {
            "name": "GreenFarm Solar Irrigation",
            "start_date": "2021-02-01",
            "is_registered": True,
            "country": "kenya",
            "city": "Kisumu",
            "registered_countries": ["kenya"],
            "description": NARRATIVE,
            "problem_solved": NARRATIVE,
            "revenue_last_two_years": "25000.00",
            "full_time_employees_total": 3,
            "full_time_employees_male": 1,
            "full_time_employees_female": 2,
            "climate_adaptation_contribution": NARRATIVE,
            "product_service_description": NARRATIVE,
            "climate_extreme_impact": NARRATIVE,
            "unit_price": "120.00",
            "customer_count_last_six_months": 240,
            "target_customers": ["household_individuals", "household_individuals", "institutions"],
            "current_challenges": "Upfront cost of pumps for the poorest farmers.",
            "support_needed": "Blended finance and distribution partners.",
            "funding": {
                "has_external_funding": True,
                "funding_source": "government_agency",
                "funder_name": "County Climate Fund",
                "amount_usd": "5000.00",
                "funding_instrument": "equity",
            },
        },
        "referral_source": "social_media",
    }
