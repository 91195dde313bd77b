"""
Base ORM Models and Mixins.

Most tables only need timestamps. Projects additionally carry a UUID key,
an optimistic version counter, their author and a change history.

Ouvrages and blocs keep integer keys: they share one identifier space
(see application.services.identity).
"""

import uuid
from django.db import models
from django.conf import settings
from simple_history.models import HistoricalRecords


class TimeStampedMixin(models.Model):
    """Mixin for created_at and updated_at timestamps."""

    created_at = models.DateTimeField(
        auto_now_add=True,
        verbose_name="Date de création"
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        verbose_name="Date de modification"
    )

    class Meta:
        abstract = True


class TrackedModel(TimeStampedMixin):
    """
    UUID-keyed model that records who touched it.

    ``version`` grows on every save through the ORM; bulk ``update()``
    calls (price roll-ups) leave it alone.
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        verbose_name="ID"
    )
    version = models.PositiveIntegerField(
        default=1,
        verbose_name="Version"
    )
    is_active = models.BooleanField(
        default=True,
        db_index=True,
        verbose_name="Actif"
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="%(class)s_created",
        verbose_name="Créé par"
    )
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="%(class)s_updated",
        verbose_name="Modifié par"
    )

    # django-simple-history table per concrete subclass
    history = HistoricalRecords(inherit=True)

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        if not self._state.adding:
            self.version += 1
            update_fields = kwargs.get('update_fields')
            if update_fields is not None and 'version' not in update_fields:
                kwargs['update_fields'] = list(update_fields) + ['version']
        super().save(*args, **kwargs)
