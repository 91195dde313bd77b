"""
Catalog lookup.

Read-only access to catalog articles for pricing new lines.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from domain.shared.exceptions import EntityNotFoundException
from infrastructure.persistence.models import CatalogArticle


@dataclass(frozen=True)
class CatalogEntry:
    id: int
    reference: str
    nom: str
    unite: str
    prix_unitaire: Decimal
    tva: Decimal


class CatalogLookup:

    def get(self, article_id: Any) -> CatalogEntry:
        try:
            article = CatalogArticle.objects.get(pk=article_id)
        except (CatalogArticle.DoesNotExist, ValueError, TypeError):
            raise EntityNotFoundException('CatalogArticle', article_id)
        return CatalogEntry(
            id=article.pk,
            reference=article.reference,
            nom=article.nom,
            unite=article.unite,
            prix_unitaire=article.prix_unitaire,
            tva=article.tva,
        )
