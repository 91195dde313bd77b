"""
Live subscriber registry.

Wraps the Channels layer: a subscription adds a consumer's channel name
to a group. Notification sockets also count towards the user's presence,
kept in the Django cache so the worker that fans out events sees the
sockets held by the ASGI processes.
"""

import logging
import threading
from collections import defaultdict
from typing import Any, Dict, Optional, Set

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.core.cache import cache

logger = logging.getLogger(__name__)

PRESENCE_PREFIX = 'metreur:presence'


class SubscriberRegistry:
    """Live subscriptions, keyed by channel (group) name."""

    PROJECT_PREFIX = 'project_'
    USER_PREFIX = 'notifications_'

    def __init__(self, channel_layer=None):
        self._channel_layer = channel_layer
        self._sinks: Dict[str, Set[str]] = defaultdict(set)
        self._lock = threading.Lock()

    # -------------------------------------------------------------------------
    # Channel names
    # -------------------------------------------------------------------------

    @classmethod
    def project_channel(cls, project_id: Any) -> str:
        return f'{cls.PROJECT_PREFIX}{project_id}'

    @classmethod
    def user_channel(cls, user_id: Any) -> str:
        return f'{cls.USER_PREFIX}{user_id}'

    @property
    def channel_layer(self):
        if self._channel_layer is None:
            self._channel_layer = get_channel_layer()
        return self._channel_layer

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    async def subscribe(self, channel: str, sink: str) -> None:
        """Attach a consumer (by its channel name) to ``channel``."""
        with self._lock:
            self._sinks[channel].add(sink)
        await self.channel_layer.group_add(channel, sink)
        if channel.startswith(self.USER_PREFIX):
            key = self._presence_key(channel)
            await cache.aadd(key, 0, timeout=None)
            await cache.aincr(key)
        logger.debug(f"Subscribed {sink} to {channel}")

    async def unsubscribe(self, channel: str, sink: str) -> None:
        with self._lock:
            sinks = self._sinks.get(channel)
            known = sinks is not None and sink in sinks
            if known:
                sinks.discard(sink)
                if not sinks:
                    del self._sinks[channel]
        await self.channel_layer.group_discard(channel, sink)
        if known and channel.startswith(self.USER_PREFIX):
            key = self._presence_key(channel)
            try:
                if await cache.adecr(key) <= 0:
                    await cache.adelete(key)
            except ValueError:
                # counter already expired or cleared
                pass
        logger.debug(f"Unsubscribed {sink} from {channel}")

    def subscribers(self, channel: str) -> Set[str]:
        """Sinks of ``channel`` held by this process."""
        with self._lock:
            return set(self._sinks.get(channel, ()))

    def is_online(self, user_id: Any) -> bool:
        """A user is online while one of their notification sockets is open in any process."""
        return (cache.get(self._presence_key(self.user_channel(user_id))) or 0) > 0

    @staticmethod
    def _presence_key(channel: str) -> str:
        return f'{PRESENCE_PREFIX}:{channel}'

    # -------------------------------------------------------------------------
    # Publishing
    # -------------------------------------------------------------------------

    def publish(self, channel: str, payload: Dict[str, Any], message_type: Optional[str] = None) -> None:
        """
        Send ``payload`` to every consumer of ``channel``.

        ``message_type`` selects the consumer handler (dots become
        underscores, as usual with Channels).
        """
        message = {'type': message_type or 'notification.message', 'payload': payload}
        async_to_sync(self.channel_layer.group_send)(channel, message)
