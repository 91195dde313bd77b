"""
Catalog ORM Models.

Reference articles priced into project lines. The catalog is maintained
elsewhere; this service only reads it.
"""

from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models

from .base import TimeStampedMixin


class CatalogArticle(TimeStampedMixin):
    """Catalog article (read-only reference data)."""

    reference = models.CharField(
        max_length=100,
        unique=True,
        verbose_name="Référence"
    )
    nom = models.CharField(
        max_length=500,
        verbose_name="Désignation"
    )
    unite = models.CharField(
        max_length=20,
        blank=True,
        verbose_name="Unité"
    )
    prix_unitaire = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        default=Decimal('0'),
        validators=[MinValueValidator(0)],
        verbose_name="Prix unitaire HT"
    )
    tva = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=Decimal('20'),
        verbose_name="TVA (%)"
    )

    class Meta:
        db_table = 'catalog_articles'
        verbose_name = 'Article du catalogue'
        verbose_name_plural = 'Articles du catalogue'
        ordering = ['reference']

    def __str__(self):
        return f"{self.reference} - {self.nom}"
