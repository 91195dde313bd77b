"""
Project ORM Models.

A project is the root of the priced hierarchy. Its cost (``cout``) and
selling price (``prix_vente``) are derived values maintained by the
price roll-up engine.
"""

from decimal import Decimal

from django.conf import settings
from django.db import models

from domain.pricing.calculations import margin_coefficient

from .base import TimeStampedMixin, TrackedModel


class Project(TrackedModel):
    """
    Project (Projet).

    Owns its lot associations; every ouvrage, bloc attachment and line item
    is removed with it. Events referencing the project survive with their
    name snapshots.
    """

    nom = models.CharField(
        max_length=255,
        verbose_name="Nom du projet"
    )
    description = models.TextField(
        blank=True,
        verbose_name="Description"
    )

    # Margin configuration
    marge_brut = models.DecimalField(
        max_digits=6,
        decimal_places=2,
        default=Decimal('0'),
        verbose_name="Marge brute (%)"
    )
    marge_net = models.DecimalField(
        max_digits=6,
        decimal_places=2,
        default=Decimal('0'),
        verbose_name="Marge nette (%)"
    )

    # Computed aggregates
    cout = models.DecimalField(
        max_digits=16,
        decimal_places=2,
        default=Decimal('0'),
        verbose_name="Coût total"
    )
    prix_vente = models.DecimalField(
        max_digits=16,
        decimal_places=2,
        default=Decimal('0'),
        verbose_name="Prix de vente"
    )

    team = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        through='ProjectTeamMember',
        related_name='team_projects',
        blank=True,
        verbose_name="Équipe"
    )

    class Meta:
        db_table = 'projects'
        verbose_name = 'Projet'
        verbose_name_plural = 'Projets'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['created_by'], name='projects_created_6f1d2a_idx'),
        ]

    def __str__(self):
        return self.nom

    @property
    def coefficient(self):
        return margin_coefficient(
            self.marge_brut,
            self.marge_net,
            default=Decimal(str(settings.DEFAULT_MARGIN_COEFFICIENT)),
        )

    def has_member(self, user) -> bool:
        """Creator or team member (admins are handled by the caller)."""
        if self.created_by_id == user.pk:
            return True
        return self.team_members.filter(user=user).exists()


class ProjectTeamMember(TimeStampedMixin):
    """Membership of a user in a project team."""

    project = models.ForeignKey(
        Project,
        on_delete=models.CASCADE,
        related_name='team_members',
        verbose_name="Projet"
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='project_memberships',
        verbose_name="Utilisateur"
    )
    is_muted = models.BooleanField(
        default=False,
        verbose_name="Notifications coupées"
    )

    class Meta:
        db_table = 'project_team_members'
        verbose_name = "Membre de l'équipe"
        verbose_name_plural = "Membres de l'équipe"
        constraints = [
            models.UniqueConstraint(
                fields=['project', 'user'],
                name='uniq_project_team_member'
            ),
        ]

    def __str__(self):
        return f"{self.project} - {self.user}"

