"""
Push delivery.

Endpoints are registered by connected clients (see NotificationConsumer)
and shared through the Django cache. A delivery answered with 404/410
means the endpoint is gone and it is pruned from the registry.
"""

import json
import logging
import threading
from enum import Enum
from typing import Any, Dict, List, Optional

import requests
from django.conf import settings
from django.core.cache import cache
from django.core.serializers.json import DjangoJSONEncoder
from pywebpush import WebPushException, webpush

from domain.shared.exceptions import DeliveryWarning

logger = logging.getLogger(__name__)

EXPIRED_STATUS_CODES = (404, 410)
PUSH_TTL = 86400


class PushResult(str, Enum):
    DELIVERED = 'delivered'
    EXPIRED = 'expired'


class PushEndpointRegistry:
    """
    Push subscriptions per user, keyed by endpoint URL.

    Kept in the Django cache: sockets register them in the ASGI processes
    and the notification worker reads them.
    """

    PREFIX = 'metreur:push'

    def __init__(self):
        self._lock = threading.Lock()

    def _key(self, user_id: Any) -> str:
        return f'{self.PREFIX}:{user_id}'

    def register(self, user_id: Any, subscription: Dict[str, Any]) -> None:
        endpoint = subscription.get('endpoint')
        if not endpoint:
            return
        key = self._key(user_id)
        with self._lock:
            current = [s for s in cache.get(key, []) if s.get('endpoint') != endpoint]
            current.append(subscription)
            cache.set(key, current, timeout=None)
        logger.debug(f"Registered push endpoint for user {user_id}")

    def remove(self, user_id: Any, endpoint: str) -> None:
        key = self._key(user_id)
        with self._lock:
            remaining = [s for s in cache.get(key, []) if s.get('endpoint') != endpoint]
            if remaining:
                cache.set(key, remaining, timeout=None)
            else:
                cache.delete(key)

    def endpoints(self, user_id: Any) -> List[Dict[str, Any]]:
        return list(cache.get(self._key(user_id), []))


class WebPushChannel:
    """Sends encrypted Web Push messages signed with the project VAPID key."""

    def __init__(self, timeout: Optional[int] = None, session: Optional[requests.Session] = None):
        self.timeout = timeout if timeout is not None else settings.PUSH_REQUEST_TIMEOUT
        self.session = session or requests.Session()

    def send(self, subscription: Dict[str, Any], payload: Dict[str, Any]) -> PushResult:
        """
        Deliver ``payload`` to one subscription.

        Raises DeliveryWarning for failures other than an expired endpoint.
        """
        endpoint = subscription.get('endpoint', '')
        if not settings.VAPID_PRIVATE_KEY:
            raise DeliveryWarning('push', endpoint, 'VAPID_PRIVATE_KEY is not configured')

        try:
            webpush(
                subscription_info=subscription,
                data=json.dumps(payload, cls=DjangoJSONEncoder),
                vapid_private_key=settings.VAPID_PRIVATE_KEY,
                # webpush fills in aud/exp on the dict it receives
                vapid_claims={'sub': settings.VAPID_SUBJECT},
                ttl=PUSH_TTL,
                headers={'Urgency': 'normal'},
                timeout=self.timeout,
                requests_session=self.session,
            )
        except WebPushException as e:
            status_code = getattr(e.response, 'status_code', None)
            if status_code in EXPIRED_STATUS_CODES:
                return PushResult.EXPIRED
            raise DeliveryWarning('push', endpoint, e) from e
        except requests.RequestException as e:
            raise DeliveryWarning('push', endpoint, e) from e
        return PushResult.DELIVERED
