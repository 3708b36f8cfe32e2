import logging

from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework import status
from rest_framework.views import APIView
from rest_framework.exceptions import ValidationError
from drf_spectacular.utils import extend_schema, OpenApiExample, OpenApiParameter, OpenApiResponse

from accounts.models import EVALUATOR_ROLES
from accounts.utils import build_validation_message
from admin_portal.permissions import IsAdminRole, IsEvaluatorRole, IsDragonsDenJudge
from applications.models import Application
from evaluations import services, dragons_den
from evaluations.services import AssignmentError
from evaluations.serializers import (
    AssignSerializer, AutoAssignSerializer, RemoveAssignmentsSerializer,
    ScoreUpdatesSerializer, DragonsDenScoresSerializer, SelectWinnersSerializer,
)

logger = logging.getLogger(__name__)


def _invalid(exc: ValidationError):
    return Response(
        {"message": build_validation_message(exc.detail), "errors": exc.detail},
        status=status.HTTP_400_BAD_REQUEST,
    )


def _rejected(exc: AssignmentError):
    return Response({"message": str(exc), "errors": {}}, status=status.HTTP_400_BAD_REQUEST)


def _failed(what: str, e: Exception):
    return Response(
        {"message": f"We could not {what} right now. Please try again later.", "errors": str(e)},
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


# ---------------------------
# Admin: assignment
# ---------------------------
class AssignApplicationsView(APIView):
    permission_classes = [IsAuthenticated, IsAdminRole]

    @extend_schema(
        tags=["Admin • Evaluations"],
        summary="Assign applications to an evaluator",
        request=AssignSerializer,
        responses={200: dict, 400: OpenApiResponse(description="Validation or assignment error")},
        examples=[OpenApiExample(
            "Assign two applications",
            value={"application_ids": [12, 15], "evaluator_id": 4, "role": "TECHNICAL_REVIEWER"},
            request_only=True,
        )],
    )
    def post(self, request):
        ser = AssignSerializer(data=request.data)
        try:
            ser.is_valid(raise_exception=True)
            d = ser.validated_data
            out = services.assign_applications(d["application_ids"], d["evaluator_id"], d["role"], user=request.user)
            return Response(out)
        except ValidationError as exc:
            return _invalid(exc)
        except AssignmentError as exc:
            return _rejected(exc)
        except Exception as e:
            logger.exception("Failed to assign applications")
            return _failed("assign the applications", e)


class AutoAssignView(APIView):
    permission_classes = [IsAuthenticated, IsAdminRole]

    @extend_schema(
        tags=["Admin • Evaluations"],
        summary="Auto-assign applications to the first N evaluators of a role",
        request=AutoAssignSerializer,
        responses={200: dict},
    )
    def post(self, request):
        ser = AutoAssignSerializer(data=request.data)
        try:
            ser.is_valid(raise_exception=True)
            d = ser.validated_data
            out = services.auto_assign(
                d["application_ids"], d["role"], d["evaluators_per_application"], user=request.user
            )
            return Response(out)
        except ValidationError as exc:
            return _invalid(exc)
        except AssignmentError as exc:
            return _rejected(exc)
        except Exception as e:
            logger.exception("Failed to auto-assign applications")
            return _failed("auto-assign the applications", e)


class RemoveAssignmentsView(APIView):
    permission_classes = [IsAuthenticated, IsAdminRole]

    @extend_schema(
        tags=["Admin • Evaluations"],
        summary="Remove an evaluator's assignments",
        request=RemoveAssignmentsSerializer,
        responses={200: dict},
    )
    def post(self, request):
        ser = RemoveAssignmentsSerializer(data=request.data)
        try:
            ser.is_valid(raise_exception=True)
            d = ser.validated_data
            return Response(services.remove_assignments(d["evaluator_id"], d["application_ids"], user=request.user))
        except ValidationError as exc:
            return _invalid(exc)
        except Exception as e:
            logger.exception("Failed to remove evaluator assignments")
            return _failed("remove the assignments", e)


class EvaluatorWorkloadsView(APIView):
    permission_classes = [IsAuthenticated, IsAdminRole]

    @extend_schema(
        tags=["Admin • Evaluations"],
        summary="Assigned / completed / pending applications per evaluator",
        parameters=[OpenApiParameter("role", str, required=False, enum=[r.value for r in EVALUATOR_ROLES])],
        responses={200: dict},
    )
    def get(self, request):
        role = request.query_params.get("role") or None
        if role and role not in EVALUATOR_ROLES:
            return Response({"message": f"Unknown evaluator role '{role}'.", "errors": {}}, status=400)
        try:
            return Response(services.evaluator_workloads(role))
        except Exception as e:
            logger.exception("Failed to compute evaluator workloads")
            return _failed("fetch evaluator workloads", e)


class EvaluatorAssignmentsView(APIView):
    """Admins see any evaluator's assignments; evaluators only their own."""
    permission_classes = [IsAuthenticated]

    @extend_schema(tags=["Admin • Evaluations"], summary="Assignments of one evaluator", responses={200: dict})
    def get(self, request, evaluator_id: int):
        if not request.user.is_admin and request.user.id != evaluator_id:
            return Response({"message": "Access denied."}, status=status.HTTP_403_FORBIDDEN)
        try:
            return Response(services.evaluator_assignments(evaluator_id))
        except Exception as e:
            logger.exception("Failed to list assignments for evaluator %s", evaluator_id)
            return _failed("fetch the assignments", e)


# ---------------------------
# Evaluator: my queue + scoring
# ---------------------------
class MyAssignmentsView(APIView):
    permission_classes = [IsAuthenticated, IsEvaluatorRole]

    @extend_schema(
        tags=["Evaluator"],
        summary="Applications assigned to me, grouped with criteria and progress",
        responses={200: dict},
    )
    def get(self, request):
        try:
            return Response(services.my_assigned_applications(request.user))
        except Exception as e:
            logger.exception("Failed to list assignments for %s", request.user.id)
            return _failed("fetch your assigned applications", e)


class UpdateScoresView(APIView):
    permission_classes = [IsAuthenticated, IsEvaluatorRole]

    @extend_schema(
        tags=["Evaluator"],
        summary="Save scores for assigned applications",
        request=ScoreUpdatesSerializer,
        responses={200: dict, 400: OpenApiResponse(description="Out of bounds or closed application")},
        examples=[OpenApiExample(
            "Score one criterion",
            value={"updates": [{"application_id": 12, "criterion_id": 3, "score": 8, "level": "Strong", "notes": "Clear model"}]},
            request_only=True,
        )],
    )
    def post(self, request):
        ser = ScoreUpdatesSerializer(data=request.data)
        try:
            ser.is_valid(raise_exception=True)
            out = services.update_scores(request.user, ser.validated_data["updates"])
            return Response({"message": "Scores saved.", **out})
        except ValidationError as exc:
            return _invalid(exc)
        except AssignmentError as exc:
            return _rejected(exc)
        except Exception as e:
            logger.exception("Failed to update scores for %s", request.user.id)
            return _failed("save your scores", e)


# ---------------------------
# Dragon's Den
# ---------------------------
class DragonsDenApplicationsView(APIView):
    permission_classes = [IsAuthenticated, IsDragonsDenJudge]

    @extend_schema(tags=["Dragon's Den"], summary="Finalists with my presentation scores", responses={200: dict})
    def get(self, request):
        try:
            return Response(dragons_den.dragons_den_applications(request.user))
        except Exception as e:
            logger.exception("Failed to list Dragon's Den applications")
            return _failed("fetch the Dragon's Den applications", e)


class DragonsDenStatsView(APIView):
    permission_classes = [IsAuthenticated, IsDragonsDenJudge]

    @extend_schema(tags=["Dragon's Den"], summary="My Dragon's Den progress", responses={200: dict})
    def get(self, request):
        try:
            return Response(dragons_den.dragons_den_stats(request.user))
        except Exception as e:
            logger.exception("Failed to compute Dragon's Den stats")
            return _failed("fetch the Dragon's Den statistics", e)


class DragonsDenCriteriaView(APIView):
    permission_classes = [IsAuthenticated, IsDragonsDenJudge]

    @extend_schema(tags=["Dragon's Den"], summary="Presentation criteria with my scores", responses={200: dict})
    def get(self, request, pk: int):
        try:
            return Response(dragons_den.dragons_den_criteria(pk, request.user))
        except Application.DoesNotExist:
            return Response({"message": "Application not found."}, status=status.HTTP_404_NOT_FOUND)
        except AssignmentError as exc:
            return _rejected(exc)
        except Exception as e:
            logger.exception("Failed to load Dragon's Den criteria for application %s", pk)
            return _failed("fetch the criteria", e)


class DragonsDenScoresView(APIView):
    permission_classes = [IsAuthenticated, IsDragonsDenJudge]

    @extend_schema(
        tags=["Dragon's Den"],
        summary="Save my presentation scores for a finalist",
        request=DragonsDenScoresSerializer,
        responses={200: dict},
        examples=[OpenApiExample(
            "Pitch scores",
            value={"scores": [{"criterion_id": 19, "score": 8, "comments": "Confident delivery"}]},
            request_only=True,
        )],
    )
    def post(self, request, pk: int):
        ser = DragonsDenScoresSerializer(data=request.data)
        try:
            ser.is_valid(raise_exception=True)
            out = dragons_den.update_dragons_den_scores(request.user, pk, ser.validated_data["scores"])
            return Response({"message": "Scores updated successfully.", **out})
        except ValidationError as exc:
            return _invalid(exc)
        except AssignmentError as exc:
            return _rejected(exc)
        except Exception as e:
            logger.exception("Failed to save Dragon's Den scores for application %s", pk)
            return _failed("save the scores", e)


class DragonsDenLeaderboardView(APIView):
    permission_classes = [IsAuthenticated, IsDragonsDenJudge | IsAdminRole]

    @extend_schema(tags=["Dragon's Den"], summary="Finalists ranked by presentation score", responses={200: dict})
    def get(self, request):
        try:
            return Response(dragons_den.dragons_den_leaderboard())
        except Exception as e:
            logger.exception("Failed to build Dragon's Den leaderboard")
            return _failed("fetch the leaderboard", e)


class SelectWinnersView(APIView):
    permission_classes = [IsAuthenticated, IsAdminRole]

    @extend_schema(
        tags=["Dragon's Den"],
        summary="Approve the winners and reject the remaining finalists",
        request=SelectWinnersSerializer,
        responses={200: dict},
    )
    def post(self, request):
        ser = SelectWinnersSerializer(data=request.data)
        try:
            ser.is_valid(raise_exception=True)
            d = ser.validated_data
            return Response(dragons_den.select_winners(d["application_ids"], user=request.user, categories=d.get("categories")))
        except ValidationError as exc:
            return _invalid(exc)
        except AssignmentError as exc:
            return _rejected(exc)
        except Exception as e:
            logger.exception("Failed to select Dragon's Den winners")
            return _failed("select the winners", e)
