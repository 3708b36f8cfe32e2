import csv
import io
import json
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Tuple

from django.core.serializers.json import DjangoJSONEncoder
from django.utils import timezone

from applications.filters import ApplicationFilter
from applications.models import Applicant, Application
from scoring.models import EligibilityResult

logger = logging.getLogger(__name__)

EXPORT_TYPES = ("applications", "applicants", "eligibility")
EXPORT_FORMATS = {"csv": "text/csv", "json": "application/json"}


class ExportError(ValueError):
    def __init__(self, message, errors=None):
        super().__init__(message)
        self.errors = errors or {}


def flatten(record: Mapping[str, Any], prefix: str = "") -> Dict[str, Any]:
    """
    {"business": {"name": "X"}, "tags": ["a", "b"]} -> {"business_name": "X", "tags": "a, b"}
    """
    out: Dict[str, Any] = {}
    for key, value in record.items():
        name = f"{prefix}_{key}" if prefix else key
        if isinstance(value, Mapping):
            out.update(flatten(value, name))
        elif isinstance(value, (list, tuple)):
            out[name] = ", ".join(str(v) for v in value)
        elif isinstance(value, (datetime, date)):
            out[name] = value.isoformat()
        elif isinstance(value, Decimal):
            out[name] = str(value)
        else:
            out[name] = value
    return out


def _filtered_applications(filters: Optional[Mapping[str, Any]]):
    fs = ApplicationFilter(data=dict(filters or {}), queryset=Application.objects.all())
    if not fs.is_valid():
        raise ExportError("Invalid export filters.", fs.errors)
    return fs.qs


# ---------------------------
# Record builders
# ---------------------------
def _applicant_record(a: Applicant) -> Dict[str, Any]:
    return {
        "id": a.id,
        "first_name": a.first_name,
        "last_name": a.last_name,
        "gender": a.gender,
        "date_of_birth": a.date_of_birth,
        "age": a.age_on(),
        "citizenship": a.citizenship,
        "citizenship_other": a.citizenship_other,
        "country_of_residence": a.country_of_residence,
        "phone_number": a.phone_number,
        "email": a.email,
        "highest_education": a.highest_education,
        "created_at": a.created_at,
    }


def _application_record(app: Application) -> Dict[str, Any]:
    b = app.business
    funding = next(iter(b.funding.all()), None)
    elig = getattr(app, "eligibility", None)
    return {
        "id": app.id,
        "status": app.status,
        "submitted_at": app.submitted_at,
        "created_at": app.created_at,
        "referral_source": app.referral_source_other or app.referral_source,
        "applicant": _applicant_record(b.applicant),
        "business": {
            "name": b.name,
            "country": b.country,
            "city": b.city,
            "start_date": b.start_date,
            "is_registered": b.is_registered,
            "registered_countries": b.registered_countries or [],
            "revenue_last_two_years": b.revenue_last_two_years,
            "full_time_employees_total": b.full_time_employees_total,
            "total_employees": b.total_employees,
            "unit_price": b.unit_price,
            "customer_count_last_six_months": b.customer_count_last_six_months,
            "target_customers": [t.customer_segment for t in b.target_customers.all()],
        },
        "funding": {
            "has_external_funding": bool(funding and funding.has_external_funding),
            "funder_name": funding.funder_name if funding else "",
            "amount_usd": funding.amount_usd if funding else None,
        },
        "eligibility": {
            "is_eligible": elig.is_eligible if elig else None,
            "total_score": elig.total_score if elig else None,
        },
    }


def _eligibility_record(r: EligibilityResult) -> Dict[str, Any]:
    app = r.application
    return {
        "application_id": app.id,
        "status": app.status,
        "business_name": app.business.name,
        "applicant_name": app.business.applicant.full_name,
        "country": app.business.country,
        "is_eligible": r.is_eligible,
        "gates": {
            "age": r.age_eligible,
            "registration": r.registration_eligible,
            "revenue": r.revenue_eligible,
            "business_plan": r.business_plan_eligible,
            "impact": r.impact_eligible,
        },
        "total_score": r.total_score,
        "category_scores": r.category_scores or {},
        "scoring_config": str(r.scoring_config) if r.scoring_config_id else None,
        "evaluated_at": r.evaluated_at,
    }


def collect_records(export_type: str, filters: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
    if export_type == "applications":
        qs = (
            _filtered_applications(filters)
            .select_related("business", "business__applicant", "eligibility")
            .prefetch_related("business__target_customers", "business__funding")
            .order_by("-updated_at")
        )
        return [_application_record(a) for a in qs]

    if export_type == "applicants":
        qs = Applicant.objects.all()
        countries = (filters or {}).get("country")
        if isinstance(countries, str):
            countries = [countries]
        if countries:
            qs = qs.filter(country_of_residence__in=countries)
        records = []
        for a in qs.prefetch_related("businesses").order_by("-updated_at"):
            rec = _applicant_record(a)
            rec["businesses"] = [b.name for b in a.businesses.all()]
            records.append(rec)
        return records

    if export_type == "eligibility":
        qs = (
            EligibilityResult.objects
            .filter(application__in=_filtered_applications(filters))
            .select_related("application__business__applicant", "scoring_config")
            .order_by("-updated_at")
        )
        return [_eligibility_record(r) for r in qs]

    raise ExportError(f"Unsupported export type: {export_type}")


def export_data(export_type: str, fmt: str = "csv", filters: Optional[Mapping[str, Any]] = None) -> Tuple[str, str, str]:
    """
    Returns (content, filename, content_type).
    """
    if export_type not in EXPORT_TYPES:
        raise ExportError(f"Unsupported export type: {export_type}", {"type": list(EXPORT_TYPES)})
    if fmt not in EXPORT_FORMATS:
        raise ExportError(f"Unsupported export format: {fmt}", {"format": list(EXPORT_FORMATS)})

    records = collect_records(export_type, filters)
    filename = f"{export_type}_export_{timezone.localdate().isoformat()}.{fmt}"

    if fmt == "json":
        content = json.dumps(records, indent=2, cls=DjangoJSONEncoder)
    else:
        rows = [flatten(r) for r in records]
        header: List[str] = []
        for row in rows:
            header.extend(k for k in row if k not in header)
        buf = io.StringIO()
        writer = csv.DictWriter(buf, fieldnames=header)
        writer.writeheader()
        writer.writerows(rows)
        content = buf.getvalue()

    logger.info("Exported %s %s record(s) as %s", len(records), export_type, fmt)
    return content, filename, EXPORT_FORMATS[fmt]
