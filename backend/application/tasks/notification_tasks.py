"""
Notification Tasks.

Celery tasks for the event log and notifications.
"""

from celery import shared_task
import logging

logger = logging.getLogger(__name__)


@shared_task
def purge_expired_events(days: int = None):
    """
    Delete notifications, then events, past the retention window.

    Scheduled daily by celery beat.
    """
    from application.services.events import EventLog

    events, notifications = EventLog().purge_older_than(days)
    return {'events': events, 'notifications': notifications}


@shared_task
def dispatch_events(payloads):
    """
    Record committed event drafts and fan them out.

    Queued by the mutation shell once its transaction has committed, so
    notification writes and push delivery stay off the request.
    """
    from application.services.events import EventNotificationService
    from domain.shared.events import HierarchyEvent

    drafts = [HierarchyEvent.from_payload(payload) for payload in payloads]
    events = EventNotificationService().dispatch(drafts)
    return {'events': [event.pk for event in events]}
