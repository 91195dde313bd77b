"""
Hierarchy Serializers.

Lots, ouvrages, blocs and article lines of a project.
"""

from decimal import Decimal

from rest_framework import serializers

from infrastructure.persistence.models import Bloc, Ouvrage, ProjectArticle, ProjectLot

from .base import BaseModelSerializer
from .catalog import CatalogArticleSerializer


# =============================================================================
# LOTS
# =============================================================================

class ProjectLotSerializer(BaseModelSerializer):
    """Lot of a project."""

    nom = serializers.CharField(source='lot.nom', read_only=True)

    class Meta:
        model = ProjectLot
        fields = [
            'id', 'project', 'lot', 'nom',
            'designation', 'position',
            'prix_total', 'prix_vente',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields


class ProjectLotCreateSerializer(serializers.Serializer):
    project = serializers.UUIDField()
    nom = serializers.CharField(max_length=255)


# =============================================================================
# OUVRAGES
# =============================================================================

class OuvrageSerializer(BaseModelSerializer):
    """Ouvrage with its lot context."""

    project = serializers.UUIDField(source='project_lot.project_id', read_only=True)
    lot_nom = serializers.CharField(source='project_lot.lot.nom', read_only=True)

    class Meta:
        model = Ouvrage
        fields = [
            'id', 'project', 'project_lot', 'lot_nom',
            'nom', 'designation', 'position', 'prix_total',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields


class OuvrageCreateSerializer(serializers.Serializer):
    project = serializers.UUIDField()
    nom = serializers.CharField(max_length=500)
    lot_id = serializers.IntegerField(required=False, allow_null=True, default=None)
    lot_nom = serializers.CharField(max_length=255, required=False, allow_blank=True, default='')
    position = serializers.IntegerField(required=False, allow_null=True, min_value=1, default=None)

    def validate(self, attrs):
        if attrs.get('lot_id') is None and not attrs.get('lot_nom'):
            raise serializers.ValidationError({'lot_id': 'Indiquer un lot (lot_id ou lot_nom).'})
        return attrs


class OuvrageUpdateSerializer(serializers.Serializer):
    nom = serializers.CharField(max_length=500, required=False)
    designation = serializers.CharField(max_length=50, required=False)


class OuvrageDuplicateSerializer(serializers.Serializer):
    nom = serializers.CharField(max_length=500, required=False, allow_null=True, default=None)


# =============================================================================
# BLOCS
# =============================================================================

class BlocSerializer(BaseModelSerializer):
    """Bloc with the ouvrages it is attached to."""

    ouvrages = serializers.SerializerMethodField()

    class Meta:
        model = Bloc
        fields = [
            'id', 'nom', 'unite', 'quantite',
            'pu', 'pt', 'designation', 'position',
            'ouvrages',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields

    def get_ouvrages(self, obj):
        return sorted(set(obj.structures.values_list('ouvrage_id', flat=True)))


class BlocCreateSerializer(serializers.Serializer):
    ouvrage_id = serializers.IntegerField()
    nom = serializers.CharField(max_length=500)
    unite = serializers.CharField(max_length=20, required=False, allow_blank=True, default='')
    quantite = serializers.DecimalField(
        max_digits=14, decimal_places=3, required=False, allow_null=True, min_value=Decimal('0'), default=None
    )
    position = serializers.IntegerField(required=False, allow_null=True, min_value=1, default=None)


class BlocAttachSerializer(serializers.Serializer):
    ouvrage_id = serializers.IntegerField()


class BlocUpdateSerializer(serializers.Serializer):
    ouvrage_id = serializers.IntegerField()
    nom = serializers.CharField(max_length=500, required=False)
    unite = serializers.CharField(max_length=20, required=False, allow_blank=True)
    quantite = serializers.DecimalField(
        max_digits=14, decimal_places=3, required=False, allow_null=True, min_value=Decimal('0')
    )


# =============================================================================
# ARTICLE LINES
# =============================================================================

class ProjectArticleSerializer(BaseModelSerializer):
    """Priced article line."""

    article_detail = CatalogArticleSerializer(source='article', read_only=True)
    ouvrage_id = serializers.IntegerField(source='structure.ouvrage_id', read_only=True, default=None)
    bloc_id = serializers.IntegerField(source='structure.bloc_id', read_only=True, default=None)
    is_placeholder = serializers.BooleanField(read_only=True)

    class Meta:
        model = ProjectArticle
        fields = [
            'id', 'project', 'project_lot',
            'ouvrage_id', 'bloc_id',
            'article', 'article_detail',
            'quantite', 'nouv_prix', 'tva',
            'prix_total_ht', 'total_ttc',
            'description', 'localisation', 'position',
            'is_placeholder',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields


class ProjectArticleCreateSerializer(serializers.Serializer):
    ouvrage_id = serializers.IntegerField()
    bloc_id = serializers.IntegerField(required=False, allow_null=True, default=None)
    article_id = serializers.IntegerField()
    quantite = serializers.DecimalField(max_digits=14, decimal_places=3, min_value=Decimal('0'))
    nouv_prix = serializers.DecimalField(
        max_digits=14, decimal_places=2, required=False, allow_null=True, min_value=Decimal('0'), default=None
    )
    tva = serializers.DecimalField(
        max_digits=5, decimal_places=2, required=False, allow_null=True, min_value=Decimal('0'), default=None
    )
    description = serializers.CharField(required=False, allow_blank=True, default='')
    localisation = serializers.CharField(max_length=255, required=False, allow_blank=True, default='')


class ProjectArticleUpdateSerializer(serializers.Serializer):
    quantite = serializers.DecimalField(max_digits=14, decimal_places=3, required=False, min_value=Decimal('0'))
    nouv_prix = serializers.DecimalField(
        max_digits=14, decimal_places=2, required=False, allow_null=True, min_value=Decimal('0')
    )
    tva = serializers.DecimalField(max_digits=5, decimal_places=2, required=False, min_value=Decimal('0'))
    description = serializers.CharField(required=False, allow_blank=True)
    localisation = serializers.CharField(max_length=255, required=False, allow_blank=True)
