"""
Catalog Serializers.
"""

from infrastructure.persistence.models import CatalogArticle

from .base import BaseModelSerializer


class CatalogArticleSerializer(BaseModelSerializer):
    """Serializer for catalog articles."""

    class Meta:
        model = CatalogArticle
        fields = [
            'id', 'reference', 'nom', 'unite',
            'prix_unitaire', 'tva',
            'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']
