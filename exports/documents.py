"""
Per-application documents: a DOCX copy of the submitted form and a PDF
evaluation report.
"""
import io
import logging
from collections import OrderedDict
from decimal import Decimal
from typing import Any, Dict, List, Tuple

from django.template.loader import render_to_string
from django.utils import timezone
from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH

from applications.models import Application
from scoring.models import ApplicationScore

logger = logging.getLogger(__name__)

DOCX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

GATE_LABELS = (
    ("age_eligible", "Age (18-35)"),
    ("registration_eligible", "Business registration"),
    ("revenue_eligible", "Revenue track record"),
    ("business_plan_eligible", "Business plan"),
    ("impact_eligible", "Climate impact"),
)


def _yes_no(value) -> str:
    if value is None:
        return "-"
    return "Yes" if value else "No"


def _money(value) -> str:
    if value is None:
        return "-"
    return f"USD {Decimal(value):,.2f}"


def criterion_scores(application: Application) -> List[Dict[str, Any]]:
    """
    Average evaluated score per criterion, in rubric order.
    """
    rows = (
        ApplicationScore.objects.filter(application=application, evaluated_at__isnull=False)
        .select_related("criterion")
        .order_by("criterion__sort_order", "criterion_id")
    )
    grouped: "OrderedDict[int, Dict[str, Any]]" = OrderedDict()
    for r in rows:
        entry = grouped.setdefault(r.criterion_id, {
            "category": r.criterion.category,
            "criterion": r.criterion.name,
            "max_points": r.criterion.max_points,
            "scores": [],
        })
        entry["scores"].append(r.score)
    out = []
    for entry in grouped.values():
        scores = entry.pop("scores")
        entry["average"] = round(float(sum(scores) / len(scores)), 2)
        entry["evaluations"] = len(scores)
        out.append(entry)
    return out


def _sections(application: Application) -> List[Tuple[str, List[Tuple[str, str]]]]:
    b = application.business
    a = b.applicant
    funding = next(iter(b.funding.all()), None)
    segments = ", ".join(t.get_customer_segment_display() for t in b.target_customers.all()) or "-"

    sections = [
        ("Applicant", [
            ("Name", a.full_name),
            ("Gender", a.get_gender_display()),
            ("Date of birth", a.date_of_birth.isoformat()),
            ("Citizenship", a.citizenship_other or a.get_citizenship_display()),
            ("Country of residence", a.residence_other or a.get_country_of_residence_display()),
            ("Phone", a.phone_number),
            ("Email", a.email),
            ("Highest education", a.get_highest_education_display()),
        ]),
        ("Business", [
            ("Name", b.name),
            ("Start date", b.start_date.isoformat()),
            ("Registered", _yes_no(b.is_registered)),
            ("Country", b.country_other or b.get_country_display()),
            ("City", b.city),
            ("Description", b.description),
            ("Problem solved", b.problem_solved),
            ("Target customers", segments),
            ("Full-time employees (male / female)", f"{b.full_time_employees_male} / {b.full_time_employees_female}"),
            ("Part-time employees (male / female)", f"{b.part_time_employees_male} / {b.part_time_employees_female}"),
        ]),
        ("Climate adaptation", [
            ("Contribution to adaptation", b.climate_adaptation_contribution),
            ("Product or service", b.product_service_description),
            ("Impact of climate extremes", b.climate_extreme_impact),
            ("Customers in the last six months", str(b.customer_count_last_six_months)),
            ("Production capacity", b.production_capacity_last_six_months or "-"),
        ]),
        ("Financials", [
            ("Revenue (last two years)", _money(b.revenue_last_two_years)),
            ("Unit price", _money(b.unit_price)),
            ("External funding", _yes_no(funding.has_external_funding if funding else False)),
            ("Funder", (funding.funder_name if funding else "") or "-"),
            ("Amount", _money(funding.amount_usd if funding else None)),
        ]),
        ("Support needs", [
            ("Current challenges", b.current_challenges or "-"),
            ("Support needed", b.support_needed or "-"),
            ("Additional information", b.additional_information or "-"),
        ]),
    ]

    elig = getattr(application, "eligibility", None)
    if elig is not None:
        rows = [(label, _yes_no(getattr(elig, field))) for field, label in GATE_LABELS]
        rows.append(("Total score", f"{elig.total_score}"))
        rows.append(("Eligible", _yes_no(elig.is_eligible)))
        sections.append(("Eligibility", rows))
    return sections


def application_document(application: Application) -> bytes:
    """Render the submitted application as a .docx file."""
    doc = Document()
    title = doc.add_heading("Climate Adaptation Grant Challenge", level=0)
    title.alignment = WD_ALIGN_PARAGRAPH.CENTER
    doc.add_paragraph(f"Application #{application.id} – {application.business.name}")
    submitted = application.submitted_at.date().isoformat() if application.submitted_at else "not submitted"
    doc.add_paragraph(f"Status: {application.get_status_display()}    Submitted: {submitted}")

    for heading, rows in _sections(application):
        doc.add_heading(heading, level=2)
        table = doc.add_table(rows=0, cols=2)
        table.style = "Table Grid"
        for label, value in rows:
            cells = table.add_row().cells
            cells[0].text = label
            cells[1].text = value or "-"

    scores = criterion_scores(application)
    if scores:
        doc.add_heading("Scores", level=2)
        table = doc.add_table(rows=1, cols=4)
        table.style = "Table Grid"
        for cell, text in zip(table.rows[0].cells, ("Category", "Criterion", "Average", "Max")):
            cell.text = text
        for s in scores:
            cells = table.add_row().cells
            cells[0].text = s["category"]
            cells[1].text = s["criterion"]
            cells[2].text = f"{s['average']}"
            cells[3].text = f"{s['max_points']}"

    footer = doc.add_paragraph(f"Generated on {timezone.now():%Y-%m-%d %H:%M}")
    footer.alignment = WD_ALIGN_PARAGRAPH.RIGHT

    buf = io.BytesIO()
    doc.save(buf)
    return buf.getvalue()


def render_pdf(html: str) -> bytes:
    from weasyprint import HTML as WEASY_HTML
    return WEASY_HTML(string=html).write_pdf()


def application_report_pdf(application: Application) -> bytes:
    elig = getattr(application, "eligibility", None)
    categories = []
    if elig is not None:
        maxima = (elig.details or {}).get("category_max", {})
        categories = [
            {"category": k, "score": v, "max": maxima.get(k)}
            for k, v in (elig.category_scores or {}).items()
        ]
    html = render_to_string("exports/application_report.html", {
        "generated_at": timezone.now(),
        "application": application,
        "business": application.business,
        "applicant": application.business.applicant,
        "eligibility": elig,
        "gates": [(label, getattr(elig, field)) for field, label in GATE_LABELS] if elig else [],
        "categories": categories,
        "criteria": criterion_scores(application),
        "threshold": (elig.details or {}).get("threshold") if elig else None,
    })
    return render_pdf(html)
