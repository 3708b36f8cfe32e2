"""
URL configuration for the grants backend.

Applicant, evaluator and support routes are plain paths; admin resources are
ViewSets registered on the router under api/admin/.
"""
from django.contrib import admin
from django.urls import path
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView

from accounts.views import SignupView, LoginView, RefreshView, LogoutView, \
    ForgotPasswordView, VerifyCodeView, ResetPasswordView, ProfileView

from applications.views import ApplicationSubmitView, MyApplicationsView, ApplicationDetailView, ApplicationMetaView

from evaluations.views import (
    AssignApplicationsView, AutoAssignView, RemoveAssignmentsView, EvaluatorWorkloadsView,
    EvaluatorAssignmentsView, MyAssignmentsView, UpdateScoresView,
    DragonsDenApplicationsView, DragonsDenStatsView, DragonsDenCriteriaView, DragonsDenScoresView,
    DragonsDenLeaderboardView, SelectWinnersView,
)

from support.views import SupportTicketListCreateView, SupportTicketDetailView, SupportTicketResponseView, \
    AdminSupportTicketViewSet

from exports.views import ExportDataView, ApplicationDocumentView, ApplicationReportPDFView

from admin_portal.views_applications import AdminApplicationViewSet
from admin_portal.views_evaluators import EvaluatorAdminViewSet
from admin_portal.views_dashboard import AdminDashboardSummaryView, ScoringAnalyticsView, \
    EvaluatorPerformanceView, TrendsView
from admin_portal.views_audit import ActivityListView, ActivityDetailView

from scoring.views import ScoringConfigurationViewSet, ScoringCriterionViewSet, EvaluationHistoryViewSet

from rest_framework.routers import DefaultRouter

router = DefaultRouter()
router.register(r"api/admin/applications", AdminApplicationViewSet, basename="admin-applications")
router.register(r"api/admin/evaluators", EvaluatorAdminViewSet, basename="admin-evaluators")
router.register(r"api/admin/scoring/configurations", ScoringConfigurationViewSet, basename="admin-scoring-configs")
router.register(r"api/admin/scoring/criteria", ScoringCriterionViewSet, basename="admin-scoring-criteria")
router.register(r"api/admin/scoring/history", EvaluationHistoryViewSet, basename="admin-evaluation-history")
router.register(r"api/admin/support/tickets", AdminSupportTicketViewSet, basename="admin-support-tickets")


urlpatterns = [
    path('admin/', admin.site.urls),

    # API schema & docs
    path("api/schema/", SpectacularAPIView.as_view(), name="schema"),
    path("api/docs/", SpectacularSwaggerView.as_view(url_name="schema"), name="swagger-ui"),

    # Auth
    path("api/auth/signup/", SignupView.as_view(), name="signup"),
    path("api/auth/login/", LoginView.as_view(), name="login"),
    path("api/auth/refresh/", RefreshView.as_view(), name="token-refresh"),
    path("api/auth/logout/", LogoutView.as_view(), name="logout"),

    # Password reset
    path("api/auth/password/forgot/", ForgotPasswordView.as_view(), name="password-forgot"),
    path("api/auth/password/verify-code/", VerifyCodeView.as_view(), name="password-verify-code"),
    path("api/auth/password/reset/", ResetPasswordView.as_view(), name="password-reset"),

    # Profile
    path("api/profile", ProfileView.as_view(), name="profile"),                 # GET, PATCH

    # Applications
    path("api/applications/submit", ApplicationSubmitView.as_view(), name="application-submit"),
    path("api/applications/mine", MyApplicationsView.as_view(), name="application-mine"),
    path("api/applications/meta", ApplicationMetaView.as_view(), name="application-meta"),
    path("api/applications/<int:pk>", ApplicationDetailView.as_view(), name="application-detail"),
    path("api/applications/<int:pk>/document.docx", ApplicationDocumentView.as_view(), name="application-docx"),

    # Evaluators
    path("api/evaluator/assignments", MyAssignmentsView.as_view(), name="evaluator-my-assignments"),
    path("api/evaluator/scores", UpdateScoresView.as_view(), name="evaluator-update-scores"),

    # Dragon's Den
    path("api/dragons-den/applications", DragonsDenApplicationsView.as_view(), name="dd-applications"),
    path("api/dragons-den/stats", DragonsDenStatsView.as_view(), name="dd-stats"),
    path("api/dragons-den/applications/<int:pk>/criteria", DragonsDenCriteriaView.as_view(), name="dd-criteria"),
    path("api/dragons-den/applications/<int:pk>/scores", DragonsDenScoresView.as_view(), name="dd-scores"),
    path("api/dragons-den/leaderboard", DragonsDenLeaderboardView.as_view(), name="dd-leaderboard"),

    # Support
    path("api/support/tickets", SupportTicketListCreateView.as_view(), name="support-tickets"),
    path("api/support/tickets/<int:pk>", SupportTicketDetailView.as_view(), name="support-ticket-detail"),
    path("api/support/tickets/<int:pk>/responses", SupportTicketResponseView.as_view(), name="support-ticket-respond"),

    # admin portal
    path("api/admin/dashboard/summary", AdminDashboardSummaryView.as_view(), name="admin-dashboard-summary"),
    path("api/admin/analytics/scoring", ScoringAnalyticsView.as_view(), name="admin-analytics-scoring"),
    path("api/admin/analytics/evaluators", EvaluatorPerformanceView.as_view(), name="admin-analytics-evaluators"),
    path("api/admin/analytics/trends", TrendsView.as_view(), name="admin-analytics-trends"),
    path("api/admin/activity/", ActivityListView.as_view(), name="admin-activity-list"),
    path("api/admin/activity/<int:pk>/", ActivityDetailView.as_view(), name="admin-activity-detail"),

    path("api/admin/assignments/assign", AssignApplicationsView.as_view(), name="admin-assign"),
    path("api/admin/assignments/auto-assign", AutoAssignView.as_view(), name="admin-auto-assign"),
    path("api/admin/assignments/remove", RemoveAssignmentsView.as_view(), name="admin-remove-assignments"),
    path("api/admin/assignments/workloads", EvaluatorWorkloadsView.as_view(), name="admin-evaluator-workloads"),
    path("api/admin/assignments/evaluators/<int:evaluator_id>", EvaluatorAssignmentsView.as_view(),
         name="admin-evaluator-assignments"),
    path("api/admin/dragons-den/select-winners", SelectWinnersView.as_view(), name="admin-select-winners"),

    path("api/admin/exports", ExportDataView.as_view(), name="admin-export"),
    path("api/admin/applications/<int:pk>/report.pdf", ApplicationReportPDFView.as_view(), name="admin-application-report-pdf"),
]

urlpatterns += router.urls
