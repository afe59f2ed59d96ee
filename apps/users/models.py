"""
User models for the Storefront platform
Email-based authentication with a staff role and a bonus (loyalty) balance.
"""

from __future__ import annotations

from typing import Any, ClassVar

from django.contrib.auth.models import AbstractUser, BaseUserManager
from django.db import models
from django.utils.translation import gettext_lazy as _


class UserManager(BaseUserManager):
    """Custom user manager for email-based authentication"""

    def create_user(self, email: str, password: str | None = None, **extra_fields: Any) -> User:
        """Create and return a regular user with email and password"""
        if not email:
            raise ValueError('The Email field must be set')
        email = self.normalize_email(email)
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email: str, password: str | None = None, **extra_fields: Any) -> User:
        """Create and return a superuser with email and password"""
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('staff_role', 'admin')

        if extra_fields.get('is_staff') is not True:
            raise ValueError('Superuser must have is_staff=True.')
        if extra_fields.get('is_superuser') is not True:
            raise ValueError('Superuser must have is_superuser=True.')

        return self.create_user(email, password, **extra_fields)


class User(AbstractUser):
    """
    Storefront user: a customer, or internal staff when ``staff_role`` is set.

    ``bonus_balance`` is only ever debited by order checkout and credited when
    an order is completed; both writes happen under a row lock.
    """

    STAFF_ROLE_CHOICES: ClassVar[tuple[tuple[str, str], ...]] = (
        ('admin', _('Administrator')),
        ('consultant', _('Consultant')),
    )

    username = None  # Remove username field, using email instead
    email = models.EmailField(_('email address'), unique=True)
    phone = models.CharField(max_length=20, blank=True)

    staff_role = models.CharField(
        max_length=20,
        choices=STAFF_ROLE_CHOICES,
        blank=True,
        default='',
        help_text=_('Staff role for internal staff. Leave empty for customer users.')
    )

    bonus_balance = models.PositiveIntegerField(
        default=0,
        help_text=_('Loyalty bonuses available for spending, in whole currency units')
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = UserManager()

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS: ClassVar[list[str]] = []

    class Meta:
        db_table = 'users'
        verbose_name = _('User')
        verbose_name_plural = _('Users')
        indexes: ClassVar[tuple[models.Index, ...]] = (
            models.Index(fields=['staff_role'], name='users_staff_role_idx'),
        )

    def __str__(self) -> str:
        return f"{self.get_full_name()} ({self.email})"

    def get_full_name(self) -> str:
        """Get user's full name or email if name not available"""
        full_name = super().get_full_name()
        return full_name if full_name.strip() else self.email

    @property
    def is_staff_user(self) -> bool:
        """Check if user is internal staff"""
        return bool(self.staff_role)

    @property
    def is_admin_user(self) -> bool:
        return self.is_superuser or self.staff_role == 'admin'
