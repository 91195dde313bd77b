"""
WebSocket Consumers.

Real-time update consumers for project trees and notifications.
Subscriptions go through the process registry so the notification
fan-out can tell which users are online.
"""

import logging

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncJsonWebsocketConsumer

from infrastructure.realtime.apps import get_realtime_config
from infrastructure.realtime.registry import SubscriberRegistry

logger = logging.getLogger(__name__)


class BaseConsumer(AsyncJsonWebsocketConsumer):
    """Base consumer with common functionality."""

    room_name = None

    async def connect(self):
        """Connect to WebSocket."""
        self.user = self.scope.get('user')

        if not self.user or not self.user.is_authenticated:
            await self.close(code=4001)
            return False

        await self.accept()
        return True

    async def disconnect(self, close_code):
        """Leave the room joined on connect."""
        if self.room_name:
            await self.registry.unsubscribe(self.room_name, self.channel_name)

    @property
    def registry(self) -> SubscriberRegistry:
        return get_realtime_config().subscribers

    async def send_error(self, message: str):
        """Send error message."""
        await self.send_json({
            'type': 'error',
            'message': message
        })


class ProjectConsumer(BaseConsumer):
    """
    WebSocket consumer for one project.

    Relays ``hierarchy.changed`` messages so open project views can
    reload the affected part of the tree.
    """

    async def connect(self):
        """Connect and join project room."""
        if not await super().connect():
            return

        self.project_id = self.scope['url_route']['kwargs'].get('project_id')

        if not await self._check_project_access():
            await self.send_error('Accès refusé')
            await self.close(code=4003)
            return

        self.room_name = SubscriberRegistry.project_channel(self.project_id)
        await self.registry.subscribe(self.room_name, self.channel_name)

        logger.info(f"User {self.user} connected to project {self.project_id}")

    async def receive_json(self, content):
        """Handle incoming messages."""
        if content.get('type') == 'ping':
            await self.send_json({'type': 'pong'})

    # Event handlers (called by channel layer)

    async def hierarchy_changed(self, event):
        await self.send_json({
            'type': 'hierarchy_changed',
            'event': event['payload'],
        })

    @database_sync_to_async
    def _check_project_access(self):
        """Check if user has access to the project."""
        from django.core.exceptions import ValidationError

        from application.services.mutations import can_access
        from infrastructure.persistence.models import Project

        try:
            project = Project.objects.get(pk=self.project_id)
        except (Project.DoesNotExist, ValidationError, ValueError):
            return False
        return can_access(self.user, project)


class NotificationConsumer(BaseConsumer):
    """
    WebSocket consumer for the user's notifications.

    Client messages:
    - ``mark_read`` with ``ids`` (omit to mark everything read)
    - ``register_push`` / ``unregister_push`` with a push ``subscription``
    - ``ping``
    """

    async def connect(self):
        """Connect and join user's notification room."""
        if not await super().connect():
            return

        self.room_name = SubscriberRegistry.user_channel(self.user.pk)
        await self.registry.subscribe(self.room_name, self.channel_name)

        await self.send_json({
            'type': 'unread_count',
            'unread_count': await self._unread_count(),
        })
        logger.info(f"User {self.user} connected to notifications")

    async def receive_json(self, content):
        """Handle incoming messages."""
        message_type = content.get('type')

        if message_type == 'mark_read':
            ids = content.get('ids')
            if ids is not None and not isinstance(ids, list):
                await self.send_error('ids doit être une liste')
                return
            updated = await self._mark_read(ids)
            await self.send_json({
                'type': 'marked_read',
                'updated': updated,
                'unread_count': await self._unread_count(),
            })

        elif message_type == 'register_push':
            subscription = content.get('subscription') or {}
            if not subscription.get('endpoint'):
                await self.send_error('Abonnement push invalide')
                return
            get_realtime_config().push_endpoints.register(self.user.pk, subscription)
            await self.send_json({'type': 'push_registered'})

        elif message_type == 'unregister_push':
            endpoint = (content.get('subscription') or {}).get('endpoint') or content.get('endpoint')
            if endpoint:
                get_realtime_config().push_endpoints.remove(self.user.pk, endpoint)
            await self.send_json({'type': 'push_unregistered'})

        elif message_type == 'ping':
            await self.send_json({'type': 'pong'})

    # Event handlers

    async def notification_message(self, event):
        """Forward a delivered notification."""
        await self.send_json({
            'type': 'notification',
            **event['payload'],
        })

    @database_sync_to_async
    def _unread_count(self):
        from application.services.fanout import unread_count

        return unread_count(self.user.pk)

    @database_sync_to_async
    def _mark_read(self, ids):
        from application.services.fanout import mark_read

        return mark_read(self.user.pk, ids)
