"""
Event log ORM Models.

Events are append-only and keep name snapshots of the nodes they
mention, so they stay readable after those nodes are renamed or deleted.
Node references are plain integers for the same reason.
"""

from django.conf import settings
from django.db import models

from domain.shared.events import EventAction

from .project import Project


class EventActionChoices(models.TextChoices):
    """Recorded mutation kinds."""

    PROJECT_CREATED = EventAction.PROJECT_CREATED.value, 'Projet créé'
    PROJECT_UPDATED = EventAction.PROJECT_UPDATED.value, 'Projet modifié'
    PROJECT_DELETED = EventAction.PROJECT_DELETED.value, 'Projet supprimé'
    PROJECT_RECALCULATED = EventAction.PROJECT_RECALCULATED.value, 'Projet recalculé'
    LOT_CREATED = EventAction.LOT_CREATED.value, 'Lot créé'
    LOT_DELETED = EventAction.LOT_DELETED.value, 'Lot supprimé'
    GBLOC_CREATED = EventAction.GBLOC_CREATED.value, 'Ouvrage créé'
    GBLOC_UPDATED = EventAction.GBLOC_UPDATED.value, 'Ouvrage modifié'
    GBLOC_DELETED = EventAction.GBLOC_DELETED.value, 'Ouvrage supprimé'
    GBLOC_DUPLICATED = EventAction.GBLOC_DUPLICATED.value, 'Ouvrage dupliqué'
    BLOC_CREATED = EventAction.BLOC_CREATED.value, 'Bloc créé'
    BLOC_ATTACHED = EventAction.BLOC_ATTACHED.value, 'Bloc rattaché'
    BLOC_UPDATED = EventAction.BLOC_UPDATED.value, 'Bloc modifié'
    BLOC_DELETED = EventAction.BLOC_DELETED.value, 'Bloc supprimé'
    ARTICLE_ADDED = EventAction.ARTICLE_ADDED.value, 'Article ajouté'
    ARTICLE_UPDATED = EventAction.ARTICLE_UPDATED.value, 'Article modifié'
    ARTICLE_DELETED = EventAction.ARTICLE_DELETED.value, 'Article supprimé'
    HIERARCHY_REORDERED = EventAction.HIERARCHY_REORDERED.value, 'Ordre modifié'


class Event(models.Model):
    """One recorded mutation."""

    id = models.BigAutoField(primary_key=True)

    action = models.CharField(
        max_length=50,
        choices=EventActionChoices.choices,
        db_index=True,
        verbose_name="Action"
    )
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='events',
        verbose_name="Auteur"
    )
    project = models.ForeignKey(
        Project,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='events',
        verbose_name="Projet"
    )
    lot = models.CharField(
        max_length=255,
        blank=True,
        verbose_name="Lot"
    )

    # Node references, not foreign keys
    ouvrage_id = models.IntegerField(
        null=True,
        blank=True,
        verbose_name="ID ouvrage"
    )
    bloc_id = models.IntegerField(
        null=True,
        blank=True,
        verbose_name="ID bloc"
    )
    article_id = models.IntegerField(
        null=True,
        blank=True,
        verbose_name="ID article"
    )

    # Name snapshots taken when the event was written
    project_nom_anc = models.CharField(
        max_length=255,
        blank=True,
        verbose_name="Nom du projet (historique)"
    )
    ouvrage_nom_anc = models.CharField(
        max_length=500,
        blank=True,
        verbose_name="Nom de l'ouvrage (historique)"
    )
    bloc_nom_anc = models.CharField(
        max_length=500,
        blank=True,
        verbose_name="Nom du bloc (historique)"
    )

    metadata = models.JSONField(
        default=dict,
        blank=True,
        verbose_name="Métadonnées"
    )
    is_system_event = models.BooleanField(
        default=False,
        verbose_name="Événement système"
    )
    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        verbose_name="Date"
    )

    class Meta:
        db_table = 'events'
        verbose_name = 'Événement'
        verbose_name_plural = 'Événements'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['project', '-created_at'], name='events_project_2b8e61_idx'),
            models.Index(fields=['actor', 'action', 'project', '-created_at'], name='events_actor_i_9c4f07_idx'),
        ]

    def __str__(self):
        return f"{self.action} @ {self.created_at}"

    @property
    def action_label(self) -> str:
        return EventAction(self.action).label

    @property
    def project_label(self) -> str:
        if self.project_nom_anc:
            return self.project_nom_anc
        return str(self.project) if self.project_id else ''


class Notification(models.Model):
    """Per-recipient pointer to an event."""

    id = models.BigAutoField(primary_key=True)

    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='notifications',
        verbose_name="Destinataire"
    )
    event = models.ForeignKey(
        Event,
        on_delete=models.CASCADE,
        related_name='notifications',
        verbose_name="Événement"
    )
    is_read = models.BooleanField(
        default=False,
        db_index=True,
        verbose_name="Lu"
    )
    read_at = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name="Lu le"
    )
    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        verbose_name="Date"
    )

    class Meta:
        db_table = 'notifications'
        verbose_name = 'Notification'
        verbose_name_plural = 'Notifications'
        ordering = ['-created_at', '-id']
        constraints = [
            models.UniqueConstraint(
                fields=['recipient', 'event'],
                name='uniq_notification_recipient_event'
            ),
        ]
        indexes = [
            models.Index(fields=['recipient', 'is_read'], name='notificatio_recipie_41a7d3_idx'),
        ]

    def __str__(self):
        return f"{self.recipient} - {self.event}"
