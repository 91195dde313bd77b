"""
Event and Notification Serializers.
"""

from rest_framework import serializers

from infrastructure.persistence.models import Event, Notification

from .base import UserMinimalSerializer


class EventSerializer(serializers.ModelSerializer):
    """Event log entry with its name snapshots."""

    actor_detail = UserMinimalSerializer(source='actor', read_only=True)
    action_label = serializers.CharField(read_only=True)
    project_nom = serializers.CharField(source='project_label', read_only=True)

    class Meta:
        model = Event
        fields = [
            'id', 'action', 'action_label',
            'actor', 'actor_detail',
            'project', 'project_nom', 'lot',
            'ouvrage_id', 'ouvrage_nom_anc',
            'bloc_id', 'bloc_nom_anc',
            'article_id', 'metadata',
            'is_system_event', 'created_at',
        ]
        read_only_fields = fields


class NotificationSerializer(serializers.ModelSerializer):
    """Notification with its event."""

    event = EventSerializer(read_only=True)

    class Meta:
        model = Notification
        fields = ['id', 'event', 'is_read', 'read_at', 'created_at']
        read_only_fields = fields


class MarkReadSerializer(serializers.Serializer):
    ids = serializers.ListField(child=serializers.IntegerField(min_value=1), allow_empty=False)
