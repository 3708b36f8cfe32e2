import logging

from django.conf import settings
from rest_framework.permissions import IsAuthenticated, AllowAny
from rest_framework.response import Response
from rest_framework import status
from rest_framework.views import APIView
from rest_framework.exceptions import ValidationError
from drf_spectacular.utils import extend_schema, OpenApiExample, OpenApiResponse

from applications.models import Application, Applicant, BusinessTargetCustomer, BusinessFunding, Country
from applications.serializers import (
    ApplicationSubmitSerializer, ApplicationListSerializer, ApplicationDetailSerializer,
)
from applications.services import submit_application, SubmissionError
from accounts.utils import build_validation_message

logger = logging.getLogger(__name__)


def _detail_queryset():
    return (
        Application.objects
        .select_related("business", "business__applicant", "eligibility")
        .prefetch_related("business__target_customers", "business__funding", "history__changed_by")
    )


class ApplicationSubmitView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        tags=["Applications"],
        summary="Submit a grant application",
        request=ApplicationSubmitSerializer,
        responses={201: ApplicationDetailSerializer, 400: OpenApiResponse(description="Validation error")},
        examples=[
            OpenApiExample(
                "Submission payload (abridged)",
                value={
                    "personal": {
                        "first_name": "Amina", "last_name": "Otieno", "gender": "female",
                        "date_of_birth": "1996-04-12", "citizenship": "kenya",
                        "country_of_residence": "kenya", "phone_number": "+254712345678",
                        "email": "amina@greenfarm.co.ke", "highest_education": "undergraduate",
                    },
                    "business": {
                        "name": "GreenFarm Solar Irrigation", "start_date": "2021-02-01",
                        "is_registered": True, "country": "kenya", "city": "Kisumu",
                        "revenue_last_two_years": "25000.00", "target_customers": ["household_individuals"],
                        "funding": {"has_external_funding": False},
                    },
                    "referral_source": "social_media",
                },
                request_only=True,
            )
        ],
    )
    def post(self, request):
        ser = ApplicationSubmitSerializer(data=request.data)
        try:
            ser.is_valid(raise_exception=True)
        except ValidationError as exc:
            logger.info("Application submit validation failed for user %s: %s", request.user.id, exc.detail)
            return Response(
                {"message": build_validation_message(exc.detail), "errors": exc.detail},
                status=status.HTTP_400_BAD_REQUEST,
            )

        try:
            application = submit_application(request.user, ser.validated_data)
        except SubmissionError as e:
            return Response({"message": str(e), "errors": {}}, status=status.HTTP_400_BAD_REQUEST)
        except Exception as e:
            logger.exception("Failed to submit application for user %s", request.user.id)
            return Response(
                {"message": "We could not submit your application right now. Please try again later.", "errors": str(e)},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )

        application = _detail_queryset().get(pk=application.pk)
        return Response(
            {
                "message": "Application submitted successfully.",
                "application": ApplicationDetailSerializer(application).data,
            },
            status=status.HTTP_201_CREATED,
        )


class MyApplicationsView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        tags=["Applications"],
        summary="List the current user's applications",
        responses={200: ApplicationListSerializer(many=True)},
    )
    def get(self, request):
        try:
            qs = (
                Application.objects
                .filter(business__applicant__user=request.user)
                .select_related("business", "business__applicant", "eligibility")
            )
            return Response(ApplicationListSerializer(qs, many=True).data)
        except Exception as e:
            logger.exception("Failed to list applications for user %s", request.user.id)
            return Response(
                {"message": "We could not fetch your applications right now. Please try again later.", "errors": str(e)},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )


class ApplicationDetailView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        tags=["Applications"],
        summary="Application detail (owner or admin)",
        responses={200: ApplicationDetailSerializer, 404: OpenApiResponse(description="Not found")},
    )
    def get(self, request, pk: int):
        app = _detail_queryset().filter(pk=pk).first()
        if app is None:
            return Response({"message": "Application not found."}, status=status.HTTP_404_NOT_FOUND)

        owner_id = app.business.applicant.user_id
        if owner_id != request.user.id and not request.user.is_admin:
            # applicants must not learn that other applications exist
            return Response({"message": "Application not found."}, status=status.HTTP_404_NOT_FOUND)

        return Response(ApplicationDetailSerializer(app).data)


class ApplicationMetaView(APIView):
    permission_classes = [AllowAny]

    @extend_schema(tags=["Applications"], summary="Choice lists for the application form", responses={200: dict})
    def get(self, request):
        def to_key_label(choices):
            return [{"key": k, "label": v} for k, v in choices]

        return Response({
            "countries": to_key_label(Country.choices),
            "genders": to_key_label(Applicant.Gender.choices),
            "education_levels": to_key_label(Applicant.Education.choices),
            "customer_segments": to_key_label(BusinessTargetCustomer.Segment.choices),
            "funding_sources": to_key_label(BusinessFunding.Source.choices),
            "funding_instruments": to_key_label(BusinessFunding.Instrument.choices),
            "age_range": {
                "min": settings.GRANTS["MIN_APPLICANT_AGE"],
                "max": settings.GRANTS["MAX_APPLICANT_AGE"],
            },
        })
