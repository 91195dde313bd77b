"""
Project Serializers.

Read serializers are ModelSerializers; writes are validated here and
applied by the hierarchy service.
"""

from decimal import Decimal

from rest_framework import serializers

from infrastructure.persistence.models import Project, ProjectTeamMember

from .base import BaseModelSerializer, UserMinimalSerializer


class ProjectTeamMemberSerializer(serializers.ModelSerializer):
    """Team membership with the nested user."""

    user_detail = UserMinimalSerializer(source='user', read_only=True)

    class Meta:
        model = ProjectTeamMember
        fields = ['id', 'user', 'user_detail', 'is_muted', 'created_at']
        read_only_fields = fields


class ProjectListSerializer(BaseModelSerializer):
    """List serializer for projects."""

    created_by_detail = UserMinimalSerializer(source='created_by', read_only=True)
    team_size = serializers.IntegerField(source='team_members.count', read_only=True)

    class Meta:
        model = Project
        fields = [
            'id', 'nom', 'description',
            'marge_brut', 'marge_net', 'cout', 'prix_vente',
            'created_by', 'created_by_detail', 'team_size',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields


class ProjectDetailSerializer(BaseModelSerializer):
    """Detail serializer for projects."""

    created_by_detail = UserMinimalSerializer(source='created_by', read_only=True)
    team_members = ProjectTeamMemberSerializer(many=True, read_only=True)
    coefficient = serializers.SerializerMethodField()

    class Meta:
        model = Project
        fields = [
            'id', 'nom', 'description',
            'marge_brut', 'marge_net', 'coefficient',
            'cout', 'prix_vente',
            'created_by', 'created_by_detail', 'team_members',
            'version', 'created_at', 'updated_at',
        ]
        read_only_fields = fields

    def get_coefficient(self, obj):
        return str(obj.coefficient.quantize(Decimal('0.0001')))


class ProjectWriteSerializer(serializers.Serializer):
    """Create/update payload for a project."""

    nom = serializers.CharField(max_length=255)
    description = serializers.CharField(required=False, allow_blank=True, default='')
    marge_brut = serializers.DecimalField(max_digits=6, decimal_places=2, required=False, min_value=Decimal('0'), max_value=Decimal('99.99'))
    marge_net = serializers.DecimalField(max_digits=6, decimal_places=2, required=False, min_value=Decimal('0'), max_value=Decimal('99.99'))
    team = serializers.ListField(child=serializers.UUIDField(), required=False, default=list)


class TeamUpdateSerializer(serializers.Serializer):
    """Full replacement of a project team."""

    members = serializers.ListField(child=serializers.UUIDField(), allow_empty=True)
    muted = serializers.ListField(child=serializers.UUIDField(), required=False, default=list)


class ReorderSerializer(serializers.Serializer):
    """New sibling order for lots, ouvrages or blocs."""

    kind = serializers.ChoiceField(choices=['lot', 'ouvrage', 'bloc'])
    ordered_ids = serializers.ListField(child=serializers.IntegerField(min_value=1), allow_empty=False)
    parent_id = serializers.IntegerField(required=False, allow_null=True, default=None)

    def validate(self, attrs):
        if attrs['kind'] != 'lot' and attrs.get('parent_id') is None:
            raise serializers.ValidationError({'parent_id': 'Obligatoire pour un ouvrage ou un bloc.'})
        return attrs
