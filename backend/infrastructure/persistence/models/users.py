"""
User Models.

Custom user model. Authentication itself is Django's; the hierarchy
engine only reads ``(id, is_admin)`` from the authenticated user.
"""

import uuid

from django.db import models
from django.contrib.auth.models import AbstractUser
from django.contrib.auth.validators import UnicodeUsernameValidator


class User(AbstractUser):
    """
    Custom User model.

    ``is_admin`` users see every project and are notified of changes made
    by non-admin users.
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False
    )

    username_validator = UnicodeUsernameValidator()

    username = models.CharField(
        max_length=150,
        unique=True,
        validators=[username_validator],
        verbose_name="Identifiant"
    )
    email = models.EmailField(
        unique=True,
        verbose_name="Email"
    )
    first_name = models.CharField(
        max_length=150,
        blank=True,
        verbose_name="Prénom"
    )
    last_name = models.CharField(
        max_length=150,
        blank=True,
        verbose_name="Nom"
    )
    is_admin = models.BooleanField(
        default=False,
        db_index=True,
        verbose_name="Administrateur"
    )
    last_activity = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name="Dernière activité"
    )

    class Meta:
        db_table = 'users'
        verbose_name = 'Utilisateur'
        verbose_name_plural = 'Utilisateurs'
        ordering = ['last_name', 'first_name']

    def __str__(self):
        return self.get_full_name() or self.username

    def get_full_name(self):
        parts = [self.first_name, self.last_name]
        return ' '.join(p for p in parts if p)
