"""
Hierarchy ORM Models.

Lot → Ouvrage → Bloc → Article line.

- Lot: shared taxonomy label, reused across projects
- ProjectLot: association of a Lot with one project
- Ouvrage / Bloc: integer ids drawn from one shared identifier space
- Structure: stable anchor for an (ouvrage, bloc-or-null) pair
- ProjectArticle: priced line hanging off a Structure row
"""

from decimal import Decimal

from django.db import models
from django.db.models import Q

from .base import TimeStampedMixin
from .catalog import CatalogArticle
from .project import Project


class StructureActionChoices(models.TextChoices):
    """What a structure row anchors."""

    OUVRAGE = 'ouvrage', 'Ouvrage'
    BLOC = 'bloc', 'Bloc'


class Lot(models.Model):
    """Lot label (taxonomy), shared between projects."""

    nom = models.CharField(
        max_length=255,
        unique=True,
        verbose_name="Lot"
    )

    class Meta:
        db_table = 'lots'
        verbose_name = 'Lot'
        verbose_name_plural = 'Lots'
        ordering = ['nom']

    def __str__(self):
        return self.nom


class ProjectLot(TimeStampedMixin):
    """A Lot used by a project. One row per (project, lot)."""

    project = models.ForeignKey(
        Project,
        on_delete=models.CASCADE,
        related_name='lots',
        verbose_name="Projet"
    )
    lot = models.ForeignKey(
        Lot,
        on_delete=models.PROTECT,
        related_name='project_lots',
        verbose_name="Lot"
    )
    designation = models.CharField(
        max_length=50,
        blank=True,
        verbose_name="Désignation"
    )
    position = models.PositiveIntegerField(
        default=0,
        verbose_name="Position"
    )
    prix_total = models.DecimalField(
        max_digits=16,
        decimal_places=2,
        default=Decimal('0'),
        verbose_name="Prix total"
    )
    prix_vente = models.DecimalField(
        max_digits=16,
        decimal_places=2,
        default=Decimal('0'),
        verbose_name="Prix de vente"
    )

    class Meta:
        db_table = 'project_lots'
        verbose_name = 'Lot du projet'
        verbose_name_plural = 'Lots du projet'
        ordering = ['project', 'position', 'id']
        constraints = [
            models.UniqueConstraint(
                fields=['project', 'lot'],
                name='uniq_project_lot'
            ),
        ]

    def __str__(self):
        return f"{self.designation} {self.lot}".strip()


class Ouvrage(TimeStampedMixin):
    """
    Ouvrage (macro-node).

    Its id is never equal to any Bloc id.
    """

    id = models.AutoField(primary_key=True)

    project_lot = models.ForeignKey(
        ProjectLot,
        on_delete=models.CASCADE,
        related_name='ouvrages',
        verbose_name="Lot du projet"
    )
    nom = models.CharField(
        max_length=500,
        verbose_name="Nom de l'ouvrage"
    )
    designation = models.CharField(
        max_length=50,
        blank=True,
        verbose_name="Désignation"
    )
    position = models.PositiveIntegerField(
        default=0,
        verbose_name="Position"
    )
    prix_total = models.DecimalField(
        max_digits=16,
        decimal_places=2,
        default=Decimal('0'),
        verbose_name="Prix total"
    )

    class Meta:
        db_table = 'ouvrages'
        verbose_name = 'Ouvrage'
        verbose_name_plural = 'Ouvrages'
        ordering = ['project_lot', 'position', 'id']

    def __str__(self):
        return f"{self.designation} {self.nom}".strip()

    @property
    def project_id(self):
        return self.project_lot.project_id


class Bloc(TimeStampedMixin):
    """
    Bloc (sub-node).

    Attached under one or more ouvrages through Structure rows.
    ``pu = pt / quantite`` whenever the quantity is positive, else null.
    """

    id = models.AutoField(primary_key=True)

    nom = models.CharField(
        max_length=500,
        verbose_name="Nom du bloc"
    )
    unite = models.CharField(
        max_length=20,
        blank=True,
        verbose_name="Unité"
    )
    quantite = models.DecimalField(
        max_digits=14,
        decimal_places=3,
        null=True,
        blank=True,
        verbose_name="Quantité"
    )
    pu = models.DecimalField(
        max_digits=16,
        decimal_places=2,
        null=True,
        blank=True,
        verbose_name="Prix unitaire"
    )
    pt = models.DecimalField(
        max_digits=16,
        decimal_places=2,
        null=True,
        blank=True,
        verbose_name="Prix total"
    )
    designation = models.CharField(
        max_length=50,
        blank=True,
        verbose_name="Désignation"
    )
    position = models.PositiveIntegerField(
        default=0,
        verbose_name="Position"
    )

    class Meta:
        db_table = 'blocs'
        verbose_name = 'Bloc'
        verbose_name_plural = 'Blocs'
        ordering = ['position', 'id']

    def __str__(self):
        return f"{self.designation} {self.nom}".strip()


class Structure(models.Model):
    """
    Anchor of an (ouvrage, bloc) pair.

    ``bloc`` is null for lines attached directly to the ouvrage.
    """

    ouvrage = models.ForeignKey(
        Ouvrage,
        on_delete=models.CASCADE,
        related_name='structures',
        verbose_name="Ouvrage"
    )
    bloc = models.ForeignKey(
        Bloc,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='structures',
        verbose_name="Bloc"
    )
    action = models.CharField(
        max_length=10,
        choices=StructureActionChoices.choices,
        verbose_name="Type"
    )

    class Meta:
        db_table = 'structures'
        verbose_name = 'Structure'
        verbose_name_plural = 'Structures'
        constraints = [
            models.UniqueConstraint(
                fields=['ouvrage', 'bloc'],
                name='uniq_structure_ouvrage_bloc'
            ),
            models.UniqueConstraint(
                fields=['ouvrage'],
                condition=Q(bloc__isnull=True),
                name='uniq_structure_ouvrage_direct'
            ),
        ]
        indexes = [
            models.Index(fields=['bloc', 'action'], name='structures_bloc_id_3c9e1b_idx'),
        ]

    def __str__(self):
        return f"{self.ouvrage_id}/{self.bloc_id or '-'}"


class ProjectArticle(TimeStampedMixin):
    """
    Article line of a project.

    A row without structure and article is a placeholder that keeps an
    emptied lot visible in the project.
    """

    project = models.ForeignKey(
        Project,
        on_delete=models.CASCADE,
        related_name='articles',
        verbose_name="Projet"
    )
    project_lot = models.ForeignKey(
        ProjectLot,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='articles',
        verbose_name="Lot du projet"
    )
    structure = models.ForeignKey(
        Structure,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='articles',
        verbose_name="Structure"
    )
    article = models.ForeignKey(
        CatalogArticle,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='project_lines',
        verbose_name="Article"
    )
    quantite = models.DecimalField(
        max_digits=14,
        decimal_places=3,
        default=Decimal('0'),
        verbose_name="Quantité"
    )
    nouv_prix = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        null=True,
        blank=True,
        verbose_name="Prix unitaire ajusté"
    )
    tva = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=Decimal('20'),
        verbose_name="TVA (%)"
    )
    prix_total_ht = models.DecimalField(
        max_digits=16,
        decimal_places=2,
        default=Decimal('0'),
        verbose_name="Total HT"
    )
    total_ttc = models.DecimalField(
        max_digits=16,
        decimal_places=2,
        default=Decimal('0'),
        verbose_name="Total TTC"
    )
    description = models.TextField(
        blank=True,
        verbose_name="Description"
    )
    localisation = models.CharField(
        max_length=255,
        blank=True,
        verbose_name="Localisation"
    )
    position = models.PositiveIntegerField(
        default=0,
        verbose_name="Position"
    )

    class Meta:
        db_table = 'project_articles'
        verbose_name = 'Article du projet'
        verbose_name_plural = 'Articles du projet'
        ordering = ['project', 'position', 'id']
        indexes = [
            models.Index(fields=['project', 'structure'], name='project_art_project_8a2f4c_idx'),
            models.Index(fields=['project_lot'], name='project_art_project_5d7b10_idx'),
        ]

    def __str__(self):
        if self.is_placeholder:
            return f"[{self.project_lot}]"
        return f"{self.article} x {self.quantite}"

    @property
    def is_placeholder(self) -> bool:
        return self.structure_id is None and self.article_id is None
