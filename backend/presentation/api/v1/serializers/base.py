"""
Base Serializers.

Shared by the read serializers of every resource.
"""

from rest_framework import serializers
from django.contrib.auth import get_user_model

User = get_user_model()


class BaseModelSerializer(serializers.ModelSerializer):
    """Read-side model serializer; decimals render as strings (DRF default)."""

    class Meta:
        abstract = True
        read_only_fields = ['id', 'created_at', 'updated_at']


class UserMinimalSerializer(serializers.ModelSerializer):
    """User as embedded in projects, teams and events."""

    full_name = serializers.CharField(source='get_full_name', read_only=True)

    class Meta:
        model = User
        fields = ['id', 'username', 'full_name', 'is_admin']
        read_only_fields = fields
