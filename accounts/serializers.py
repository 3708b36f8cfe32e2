from django.contrib.auth import get_user_model
from rest_framework import serializers
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer
from rest_framework_simplejwt.tokens import RefreshToken, TokenError

from accounts.models import PasswordResetCode
from notifications.email import send_password_reset_email

User = get_user_model()


class ApplicantSignupSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, min_length=8)
    confirm_password = serializers.CharField(write_only=True, min_length=8)
    first_name = serializers.CharField(required=False, allow_blank=True, max_length=150)
    last_name = serializers.CharField(required=False, allow_blank=True, max_length=150)
    phone = serializers.CharField(required=False, allow_blank=True, max_length=20)

    def validate(self, attrs):
        if attrs["password"] != attrs["confirm_password"]:
            raise serializers.ValidationError({"confirm_password": "Passwords do not match."})
        if User.objects.filter(email__iexact=attrs["email"]).exists():
            raise serializers.ValidationError({"email": "An account with this email already exists."})
        return attrs

    def create(self, data):
        return User.objects.create_user(
            email=data["email"].lower().strip(),
            password=data["password"],
            first_name=data.get("first_name", ""),
            last_name=data.get("last_name", ""),
            phone=data.get("phone", ""),
            role=User.Role.APPLICANT,
        )


class EmailTokenObtainPairSerializer(TokenObtainPairSerializer):
    """
    USERNAME_FIELD is 'email', so SimpleJWT's default validation applies;
    the response is enriched with the user's role so clients can route by it.
    """

    def validate(self, attrs):
        data = super().validate(attrs)

        user: User = self.user
        data["user"] = {
            "id": user.id,
            "email": user.email,
            "first_name": user.first_name,
            "last_name": user.last_name,
            "role": user.role,
        }
        # reverse one-to-one raises when missing, hasattr swallows that
        data["has_applicant_profile"] = hasattr(user, "applicant_profile")
        return data


class LogoutSerializer(serializers.Serializer):
    refresh = serializers.CharField()

    default_error_messages = {
        "bad_token": "Token is invalid or expired."
    }

    def validate(self, attrs):
        self.token = attrs["refresh"]
        return attrs

    def save(self, **kwargs):
        try:
            RefreshToken(self.token).blacklist()
        except TokenError:
            self.fail("bad_token")


class ForgotPasswordSerializer(serializers.Serializer):
    email = serializers.EmailField()

    def validate_email(self, value):
        self.user = User.objects.filter(email__iexact=value, is_active=True).first()
        return value

    def save(self, **kwargs):
        if self.user:
            code_obj = PasswordResetCode.issue_for(self.user)
            send_password_reset_email(self.user, code_obj)


def _latest_valid_code(email, code):
    user = User.objects.filter(email__iexact=email).first()
    if not user:
        raise serializers.ValidationError({"email": "Invalid email."})
    code_obj = PasswordResetCode.objects.filter(user=user).order_by("-created_at").first()
    if not code_obj or not code_obj.is_valid(code):
        raise serializers.ValidationError({"code": "Invalid or expired code."})
    return user, code_obj


class VerifyCodeSerializer(serializers.Serializer):
    email = serializers.EmailField()
    code = serializers.CharField(max_length=6)

    def validate(self, attrs):
        attrs["user"], _ = _latest_valid_code(attrs["email"], attrs["code"])
        return attrs


class ResetPasswordSerializer(serializers.Serializer):
    email = serializers.EmailField()
    code = serializers.CharField(max_length=6)
    new_password = serializers.CharField(write_only=True, min_length=8)
    confirm_password = serializers.CharField(write_only=True, min_length=8)

    def validate(self, attrs):
        if attrs["new_password"] != attrs["confirm_password"]:
            raise serializers.ValidationError({"confirm_password": "Passwords do not match."})
        return attrs

    def save(self, **kwargs):
        user, code_obj = _latest_valid_code(self.validated_data["email"], self.validated_data["code"])
        user.set_password(self.validated_data["new_password"])
        user.save(update_fields=["password"])
        code_obj.delete()
        return user


class ProfileSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = [
            "id", "email", "first_name", "last_name", "role", "phone",
            "country", "organization", "bio", "date_joined",
        ]
        read_only_fields = fields


class ProfileUpdateSerializer(serializers.Serializer):
    first_name = serializers.CharField(required=False, allow_blank=True, max_length=150)
    last_name = serializers.CharField(required=False, allow_blank=True, max_length=150)
    phone = serializers.CharField(required=False, allow_blank=True, max_length=20)
    country = serializers.CharField(required=False, allow_blank=True, max_length=100)
    organization = serializers.CharField(required=False, allow_blank=True, max_length=200)
    bio = serializers.CharField(required=False, allow_blank=True)

    def save(self, **kwargs):
        user = self.context["request"].user
        fields = list(self.validated_data.keys())
        for key, value in self.validated_data.items():
            setattr(user, key, value)
        if fields:
            user.save(update_fields=fields)
        return user
