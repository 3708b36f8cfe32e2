import logging

from django.http import HttpResponse
from rest_framework import status
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView
from drf_spectacular.utils import extend_schema, OpenApiExample, OpenApiResponse

from accounts.utils import build_validation_message
from admin_portal.models import ActivityLog
from admin_portal.permissions import IsAdminRole
from admin_portal.utils import log_activity
from applications.models import Application
from exports import documents
from exports.serializers import ExportRequestSerializer
from exports.services import ExportError, export_data

logger = logging.getLogger(__name__)


def _application(pk):
    return (
        Application.objects.select_related("business", "business__applicant", "eligibility")
        .prefetch_related("business__target_customers", "business__funding")
        .get(pk=pk)
    )


class ExportDataView(APIView):
    permission_classes = [IsAuthenticated, IsAdminRole]

    @extend_schema(
        tags=["Admin • Exports"],
        summary="Download applications, applicants or eligibility results as CSV or JSON",
        request=ExportRequestSerializer,
        responses={200: OpenApiResponse(description="File attachment (text/csv or application/json)"), 400: OpenApiResponse},
        examples=[OpenApiExample(
            "Eligible Kenyan applications",
            value={"type": "applications", "format": "csv", "filters": {"country": ["kenya"], "is_eligible": True}},
            request_only=True,
        )],
    )
    def post(self, request):
        ser = ExportRequestSerializer(data=request.data)
        try:
            ser.is_valid(raise_exception=True)
            d = ser.validated_data
            content, filename, content_type = export_data(d["type"], d["format"], d.get("filters") or {})
        except ValidationError as exc:
            return Response(
                {"message": build_validation_message(exc.detail), "errors": exc.detail},
                status=status.HTTP_400_BAD_REQUEST,
            )
        except ExportError as e:
            return Response({"message": str(e), "errors": e.errors}, status=status.HTTP_400_BAD_REQUEST)
        except Exception as e:
            logger.exception("Export failed")
            return Response(
                {"message": "We could not generate the export right now. Please try again later.", "errors": str(e)},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )

        log_activity(
            request.user, ActivityLog.Action.EXPORT, None, app_label="exports", model=d["type"],
            meta={"format": d["format"], "filters": request.data.get("filters") or {}},
            help_text=f"Exported {d['type']} as {d['format']}",
        )
        resp = HttpResponse(content, content_type=content_type)
        resp["Content-Disposition"] = f'attachment; filename="{filename}"'
        return resp


class ApplicationDocumentView(APIView):
    """The owner or an admin can download the submitted form as Word."""
    permission_classes = [IsAuthenticated]

    @extend_schema(
        tags=["Exports"],
        summary="Download an application as DOCX",
        responses={200: OpenApiResponse(description="DOCX binary"), 404: OpenApiResponse},
    )
    def get(self, request, pk: int):
        try:
            app = _application(pk)
        except Application.DoesNotExist:
            return Response({"message": "Application not found."}, status=status.HTTP_404_NOT_FOUND)
        if not (request.user.is_admin or app.business.applicant.user_id == request.user.id):
            return Response({"message": "Application not found."}, status=status.HTTP_404_NOT_FOUND)
        try:
            data = documents.application_document(app)
        except Exception as e:
            logger.exception("DOCX generation failed for application %s", pk)
            return Response(
                {"message": "We could not generate the document right now. Please try again later.", "errors": str(e)},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )
        resp = HttpResponse(data, content_type=documents.DOCX_CONTENT_TYPE)
        resp["Content-Disposition"] = f'attachment; filename="application-{app.id}.docx"'
        return resp


class ApplicationReportPDFView(APIView):
    permission_classes = [IsAuthenticated, IsAdminRole]

    @extend_schema(
        tags=["Admin • Exports"],
        summary="Download the evaluation report of an application as PDF",
        responses={200: OpenApiResponse(description="PDF binary (application/pdf)"), 404: OpenApiResponse},
        examples=[
            OpenApiExample(
                "Response headers",
                value={"Content-Disposition": 'attachment; filename="application-42-report.pdf"'},
                response_only=True,
            )
        ],
    )
    def get(self, request, pk: int):
        try:
            app = _application(pk)
        except Application.DoesNotExist:
            return Response({"message": "Application not found."}, status=status.HTTP_404_NOT_FOUND)
        try:
            pdf_bytes = documents.application_report_pdf(app)
        except Exception as e:
            logger.exception("PDF generation failed for application %s", pk)
            return Response(
                {"message": "We could not generate the PDF report right now. Please try again later.", "errors": str(e)},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )
        resp = HttpResponse(pdf_bytes, content_type="application/pdf")
        resp["Content-Disposition"] = f'attachment; filename="application-{app.id}-report.pdf"'
        return resp
