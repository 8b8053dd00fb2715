"""
Authentication models.

This module defines the User model referenced by every chat record:
conversation participants, message senders, block pairs and report authors.

Related files:
    - managers.py: Custom user manager for email-based creation

Security:
    - User passwords hashed with Django's PBKDF2
    - ``is_staff`` is the admin flag checked by the moderation endpoints
"""

from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.db import models

from authentication.managers import UserManager


class User(AbstractBaseUser, PermissionsMixin):
    """
    Custom User model using email as the primary identifier.

    Fields:
        email: Primary identifier, unique, used for admin login
        display_name: Name shown next to messages in clients
        is_active: Whether the user account is active
        is_staff: Admin flag (Django admin and the report moderation queue)
        date_joined: When the user account was created
        updated_at: When the user record was last modified

    Usage:
        user = User.objects.create_user(
            email='carrier@example.com',
            display_name='Sam the carrier',
        )
    """

    email = models.EmailField(
        unique=True,
        db_index=True,
        max_length=254,
        help_text="User's email address (primary identifier)",
    )
    display_name = models.CharField(
        max_length=150,
        blank=True,
        default="",
        help_text="Name shown to other participants",
    )

    # Account status flags
    is_active = models.BooleanField(
        default=True,
        help_text="Whether this user account is active. Deselect instead of deleting.",
    )
    is_staff = models.BooleanField(
        default=False,
        help_text="Whether the user can access the admin site and moderate reports.",
    )

    # Timestamps
    date_joined = models.DateTimeField(
        auto_now_add=True,
        help_text="When the user account was created",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="When the user record was last modified",
    )

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta:
        verbose_name = "user"
        verbose_name_plural = "users"

    def __str__(self) -> str:
        return self.display_name or self.email

    @property
    def is_admin(self) -> bool:
        """Whether the user may manage the moderation queue."""
        return self.is_active and self.is_staff
