"""
User Serializers.

Serializers for authentication and user lookup.
"""

from rest_framework import serializers
from django.contrib.auth import get_user_model, authenticate

User = get_user_model()


class UserListSerializer(serializers.ModelSerializer):
    """List serializer for users (team pickers)."""

    full_name = serializers.CharField(source='get_full_name', read_only=True)

    class Meta:
        model = User
        fields = [
            'id', 'username', 'email',
            'first_name', 'last_name', 'full_name',
            'is_admin', 'is_active',
        ]
        read_only_fields = fields


class UserProfileSerializer(serializers.ModelSerializer):
    """Serializer for user profile (self)."""

    full_name = serializers.CharField(source='get_full_name', read_only=True)
    unread_notifications = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = [
            'id', 'username', 'email',
            'first_name', 'last_name', 'full_name',
            'is_admin', 'is_active',
            'date_joined', 'last_login', 'last_activity',
            'unread_notifications',
        ]
        read_only_fields = fields

    def get_unread_notifications(self, obj):
        return obj.notifications.filter(is_read=False).count()


class LoginSerializer(serializers.Serializer):
    """Serializer for login."""

    username = serializers.CharField(required=True)
    password = serializers.CharField(
        required=True,
        style={'input_type': 'password'}
    )

    def validate(self, attrs):
        username = attrs.get('username')
        password = attrs.get('password')

        if username and password:
            user = authenticate(
                request=self.context.get('request'),
                username=username,
                password=password
            )
            if not user:
                raise serializers.ValidationError(
                    'Identifiant ou mot de passe incorrect.',
                    code='authorization'
                )
            if not user.is_active:
                raise serializers.ValidationError(
                    'Compte désactivé.',
                    code='authorization'
                )
            attrs['user'] = user
        return attrs
