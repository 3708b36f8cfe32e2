# accounts/models.py
import secrets
from datetime import timedelta

from django.conf import settings
from django.db import models
from django.contrib.auth.models import (
    AbstractBaseUser, PermissionsMixin, BaseUserManager
)
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


class UserManager(BaseUserManager):
    use_in_migrations = True

    def _create_user(self, email, password, **extra_fields):
        if not email:
            raise ValueError("The Email field must be set")
        email = self.normalize_email(email).lower().strip()
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.full_clean(exclude=["last_login"])  # basic model validation
        user.save(using=self._db)
        return user

    def create_user(self, email, password=None, **extra_fields):
        extra_fields.setdefault("is_staff", False)
        extra_fields.setdefault("is_superuser", False)
        extra_fields.setdefault("is_active", True)
        return self._create_user(email, password, **extra_fields)

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)
        extra_fields.setdefault("is_active", True)
        extra_fields.setdefault("role", User.Role.ADMIN)

        if extra_fields.get("is_staff") is not True:
            raise ValueError("Superuser must have is_staff=True.")
        if extra_fields.get("is_superuser") is not True:
            raise ValueError("Superuser must have is_superuser=True.")

        return self._create_user(email, password, **extra_fields)

    def evaluators(self, role=None):
        qs = self.filter(role__in=EVALUATOR_ROLES, is_active=True)
        if role:
            qs = qs.filter(role=role)
        return qs.order_by("id")


class User(AbstractBaseUser, PermissionsMixin):
    class Role(models.TextChoices):
        APPLICANT = "APPLICANT", _("Applicant")
        ADMIN = "ADMIN", _("Admin")
        TECHNICAL_REVIEWER = "TECHNICAL_REVIEWER", _("Technical Reviewer")
        JURY_MEMBER = "JURY_MEMBER", _("Jury Member")
        DRAGONS_DEN_JUDGE = "DRAGONS_DEN_JUDGE", _("Dragon's Den Judge")

    email = models.EmailField(_("email address"), unique=True, db_index=True)
    first_name = models.CharField(max_length=150, blank=True)
    last_name = models.CharField(max_length=150, blank=True)
    role = models.CharField(max_length=20, choices=Role.choices, default=Role.APPLICANT)
    phone = models.CharField(max_length=20, blank=True)

    # evaluator profile
    country = models.CharField(max_length=100, blank=True)
    organization = models.CharField(max_length=200, blank=True)
    bio = models.TextField(blank=True)

    is_active = models.BooleanField(default=True)
    is_staff = models.BooleanField(default=False)
    date_joined = models.DateTimeField(default=timezone.now)

    objects = UserManager()

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    def __str__(self):
        return f"{self.email} ({self.role})"

    @property
    def full_name(self):
        name = f"{self.first_name} {self.last_name}".strip()
        return name or self.email

    @property
    def is_admin(self):
        return self.role == self.Role.ADMIN or self.is_staff or self.is_superuser

    @property
    def is_evaluator(self):
        return self.role in EVALUATOR_ROLES


EVALUATOR_ROLES = (
    User.Role.TECHNICAL_REVIEWER,
    User.Role.JURY_MEMBER,
    User.Role.DRAGONS_DEN_JUDGE,
)


class PasswordResetCode(models.Model):
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name="reset_codes")
    code = models.CharField(max_length=6)
    created_at = models.DateTimeField(auto_now_add=True)
    expires_at = models.DateTimeField()

    class Meta:
        ordering = ["-created_at"]

    @classmethod
    def issue_for(cls, user):
        ttl = getattr(settings, "PASSWORD_RESET_CODE_TTL_MINUTES", 15)
        cls.objects.filter(user=user).delete()
        return cls.objects.create(
            user=user,
            code=f"{secrets.randbelow(10**6):06d}",
            expires_at=timezone.now() + timedelta(minutes=ttl),
        )

    def is_valid(self, code):
        return self.code == str(code).strip() and timezone.now() < self.expires_at
