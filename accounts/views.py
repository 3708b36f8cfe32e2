import logging

from rest_framework.views import APIView
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework import status
from rest_framework.exceptions import ValidationError
from rest_framework_simplejwt.tokens import RefreshToken
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView
from drf_spectacular.utils import extend_schema, OpenApiExample

from accounts.serializers import (
    ApplicantSignupSerializer, EmailTokenObtainPairSerializer, LogoutSerializer,
    ForgotPasswordSerializer, VerifyCodeSerializer, ResetPasswordSerializer,
    ProfileSerializer, ProfileUpdateSerializer,
)
from accounts.utils import build_validation_message

logger = logging.getLogger(__name__)


class SignupView(APIView):
    permission_classes = [AllowAny]

    @extend_schema(
        tags=["Auth"],
        request=ApplicantSignupSerializer,
        responses={201: dict},
        examples=[
            OpenApiExample(
                "Signup payload",
                value={"email": "amina@greenfarm.co.ke", "password": "StrongPass123!",
                       "confirm_password": "StrongPass123!", "first_name": "Amina", "last_name": "Otieno"},
                request_only=True,
            ),
            OpenApiExample(
                "Signup response",
                value={
                    "message": "Account created. You can start your application.",
                    "user": {"email": "amina@greenfarm.co.ke", "role": "APPLICANT"},
                    "tokens": {"access": "<jwt>", "refresh": "<jwt>"},
                },
                response_only=True,
            ),
        ],
    )
    def post(self, request):
        ser = ApplicantSignupSerializer(data=request.data)
        try:
            ser.is_valid(raise_exception=True)
        except ValidationError as exc:
            logger.info("Signup validation failed: %s", exc.detail)
            return Response(
                {"message": "Please correct the highlighted fields.", "errors": exc.detail},
                status=status.HTTP_400_BAD_REQUEST,
            )
        try:
            user = ser.save()
            refresh = RefreshToken.for_user(user)
        except Exception as e:
            logger.exception("Failed to create applicant account for %s", ser.validated_data.get("email"))
            return Response(
                {"message": "We could not create your account right now. Please try again later.", "errors": str(e)},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )
        return Response(
            {
                "message": "Account created. You can start your application.",
                "user": {"email": user.email, "role": user.role},
                "tokens": {"access": str(refresh.access_token), "refresh": str(refresh)},
            },
            status=status.HTTP_201_CREATED,
        )


class LoginView(TokenObtainPairView):
    permission_classes = [AllowAny]
    serializer_class = EmailTokenObtainPairSerializer

    @extend_schema(
        tags=["Auth"],
        request=EmailTokenObtainPairSerializer,
        responses={200: dict},
        examples=[
            OpenApiExample(
                "Login payload",
                value={"email": "reviewer@kcic.org", "password": "StrongPass123!"},
                request_only=True,
            ),
            OpenApiExample(
                "Login success response",
                value={
                    "access": "<jwt_access>",
                    "refresh": "<jwt_refresh>",
                    "user": {"id": 4, "email": "reviewer@kcic.org", "first_name": "Joseph",
                             "last_name": "Mwangi", "role": "TECHNICAL_REVIEWER"},
                    "has_applicant_profile": False,
                },
                response_only=True,
            ),
        ],
    )
    def post(self, request, *args, **kwargs):
        try:
            return super().post(request, *args, **kwargs)
        except ValidationError as exc:
            return Response(
                {"message": build_validation_message(exc.detail), "errors": exc.detail},
                status=status.HTTP_400_BAD_REQUEST,
            )
        except Exception as e:
            logger.exception("Unexpected error in login request")
            return Response(
                {"message": "We could not process your request right now. Please try again later.", "errors": str(e)},
                status=status.HTTP_401_UNAUTHORIZED,
            )


class RefreshView(TokenRefreshView):
    permission_classes = [AllowAny]


class LogoutView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        tags=["Auth"],
        request=LogoutSerializer,
        responses={205: dict},
        examples=[
            OpenApiExample("Logout payload", value={"refresh": "<jwt_refresh_token>"}, request_only=True),
        ],
    )
    def post(self, request):
        serializer = LogoutSerializer(data=request.data)
        try:
            serializer.is_valid(raise_exception=True)
            serializer.save()
        except ValidationError as exc:
            logger.info("Logout failed for user %s: %s", request.user.id, exc.detail)
            return Response(
                {"message": "Please check the logout payload.", "errors": exc.detail},
                status=status.HTTP_400_BAD_REQUEST,
            )
        except Exception as e:
            logger.exception("Failed to blacklist refresh token during logout for user %s", request.user.id)
            return Response(
                {"message": "We could not log you out right now. Please try again later.", "errors": str(e)},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )
        return Response({"message": "Logout successful. Token blacklisted."}, status=205)


class ForgotPasswordView(APIView):
    permission_classes = [AllowAny]

    @extend_schema(tags=["Auth"], request=ForgotPasswordSerializer, responses={200: dict})
    def post(self, request):
        serializer = ForgotPasswordSerializer(data=request.data)
        try:
            serializer.is_valid(raise_exception=True)
        except ValidationError as exc:
            logger.info("Forgot password validation failed: %s", exc.detail)
            return Response(
                {"message": "Please check the email address.", "errors": exc.detail},
                status=status.HTTP_400_BAD_REQUEST,
            )
        try:
            serializer.save()
        except Exception as e:
            logger.exception("Failed to trigger forgot password flow for %s", serializer.validated_data.get("email"))
            return Response(
                {"message": "We could not start the reset process right now. Please try again later.", "errors": str(e)},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )
        return Response({"message": "If the email exists, a reset code has been sent."})


class VerifyCodeView(APIView):
    permission_classes = [AllowAny]

    @extend_schema(tags=["Auth"], request=VerifyCodeSerializer, responses={200: dict})
    def post(self, request):
        serializer = VerifyCodeSerializer(data=request.data)
        try:
            serializer.is_valid(raise_exception=True)
        except ValidationError as exc:
            logger.info("Verify code validation failed: %s", exc.detail)
            return Response(
                {"message": "The code you entered is incorrect.", "errors": exc.detail},
                status=status.HTTP_400_BAD_REQUEST,
            )
        return Response({"message": "Code verified."})


class ResetPasswordView(APIView):
    permission_classes = [AllowAny]

    @extend_schema(tags=["Auth"], request=ResetPasswordSerializer, responses={200: dict})
    def post(self, request):
        serializer = ResetPasswordSerializer(data=request.data)
        try:
            serializer.is_valid(raise_exception=True)
            serializer.save()
        except ValidationError as exc:
            logger.info("Reset password failed: %s", exc.detail)
            return Response(
                {"message": build_validation_message(exc.detail), "errors": exc.detail},
                status=status.HTTP_400_BAD_REQUEST,
            )
        except Exception as e:
            logger.exception("Failed to reset password for %s", request.data.get("email"))
            return Response(
                {"message": "We could not reset the password right now. Please try again later.", "errors": str(e)},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )
        return Response({"message": "Password reset successful."})


# -------- Profile (GET+PATCH at same URL) --------
class ProfileView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(tags=["Profile"], responses={200: ProfileSerializer})
    def get(self, request):
        return Response(ProfileSerializer(request.user).data)

    @extend_schema(tags=["Profile"], request=ProfileUpdateSerializer, responses={200: ProfileSerializer})
    def patch(self, request):
        ser = ProfileUpdateSerializer(data=request.data, context={"request": request})
        try:
            ser.is_valid(raise_exception=True)
        except ValidationError as exc:
            logger.info("Profile update validation failed for user %s: %s", request.user.id, exc.detail)
            return Response(
                {"message": "Please review the profile details.", "errors": exc.detail},
                status=status.HTTP_400_BAD_REQUEST,
            )
        try:
            ser.save()
        except Exception as e:
            logger.exception("Failed to update profile for user %s", request.user.id)
            return Response(
                {"message": "We could not update the profile right now. Please try again later.", "errors": str(e)},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )
        return Response(ProfileSerializer(request.user).data)
