"""
Notification fan-out.

Delivers freshly created notifications to their recipients: a live
message on the user's channel, then a push message when the user is
online and has push endpoints. Delivery is best effort.
"""

import logging
from typing import Any, Dict, Iterable

from django.utils import timezone

from domain.shared.events import EventAction
from domain.shared.exceptions import DeliveryWarning
from infrastructure.persistence.models import Event, Notification
from infrastructure.realtime.push import WebPushChannel, PushEndpointRegistry, PushResult
from infrastructure.realtime.registry import SubscriberRegistry

logger = logging.getLogger(__name__)


def serialize_event(event: Event) -> Dict[str, Any]:
    return {
        'id': event.pk,
        'action': event.action,
        'action_label': event.action_label,
        'actor_id': str(event.actor_id) if event.actor_id else None,
        'project_id': str(event.project_id) if event.project_id else None,
        'project': event.project_label,
        'lot': event.lot,
        'ouvrage_id': event.ouvrage_id,
        'ouvrage': event.ouvrage_nom_anc,
        'bloc_id': event.bloc_id,
        'bloc': event.bloc_nom_anc,
        'article_id': event.article_id,
        'metadata': event.metadata,
        'is_system_event': event.is_system_event,
        'created_at': event.created_at.isoformat() if event.created_at else None,
    }


def push_title(event: Event) -> str:
    """Push title, e.g. "Villa : Bloc supprimé"."""
    return f"{event.project_label} : {event.action_label}"


def push_body(event: Event) -> str:
    if event.action in (EventAction.BLOC_CREATED, EventAction.BLOC_ATTACHED,
                        EventAction.BLOC_UPDATED, EventAction.BLOC_DELETED):
        return event.bloc_nom_anc or ''
    return event.ouvrage_nom_anc or event.lot or ''


def unread_count(user_id) -> int:
    return Notification.objects.filter(recipient_id=user_id, is_read=False).count()


class NotificationFanout:

    def __init__(
        self,
        subscribers: SubscriberRegistry,
        push_endpoints: PushEndpointRegistry,
        push_channel: WebPushChannel,
    ):
        self.subscribers = subscribers
        self.push_endpoints = push_endpoints
        self.push_channel = push_channel

    def deliver(self, notifications: Iterable[Notification], event: Event) -> int:
        """Deliver each notification; returns how many live messages went out."""
        event_data = serialize_event(event)
        delivered = 0
        for notification in notifications:
            payload = {
                'notification': {
                    'id': notification.pk,
                    'is_read': notification.is_read,
                    'created_at': notification.created_at.isoformat() if notification.created_at else None,
                },
                'event': event_data,
                'unread_count': unread_count(notification.recipient_id),
            }
            if self._publish(notification.recipient_id, payload):
                delivered += 1
            self._push(notification.recipient_id, event, payload)
        return delivered

    def _publish(self, user_id, payload: Dict[str, Any]) -> bool:
        channel = self.subscribers.user_channel(user_id)
        try:
            self.subscribers.publish(channel, payload, 'notification.message')
        except Exception as e:
            logger.warning(DeliveryWarning('live', user_id, e).message)
            return False
        return True

    def _push(self, user_id, event: Event, payload: Dict[str, Any]) -> None:
        if not self.subscribers.is_online(user_id):
            return
        endpoints = self.push_endpoints.endpoints(user_id)
        if not endpoints:
            return

        message = {
            'title': push_title(event),
            'body': push_body(event),
            'data': payload,
        }
        for subscription in endpoints:
            try:
                result = self.push_channel.send(subscription, message)
            except DeliveryWarning as warning:
                logger.warning(warning.message)
                continue
            if result == PushResult.EXPIRED:
                self.push_endpoints.remove(user_id, subscription['endpoint'])
                logger.info(f"Pruned expired push endpoint of user {user_id}")


def mark_read(user_id, notification_ids=None) -> int:
    """Mark notifications of ``user_id`` as read (all of them without ids)."""
    qs = Notification.objects.filter(recipient_id=user_id, is_read=False)
    if notification_ids is not None:
        qs = qs.filter(pk__in=list(notification_ids))
    return qs.update(is_read=True, read_at=timezone.now())
