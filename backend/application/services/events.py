"""
Event log and notification dispatch.

Mutations hand their event drafts over after commit. Each draft is
recorded (or merged into a recent event), turned into one notification
per audience member, delivered, broadcast to the project group and
followed by a reconciliation pass.

System events (``is_system_event``) are only recorded: corrective jobs
emit them and they must not schedule another corrective job.
"""

import logging
from datetime import timedelta
from typing import Callable, Iterable, List, Optional, Set, Tuple

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import transaction
from django.utils import timezone

from domain.shared.events import EventAction, HierarchyEvent, merge_changes, sanitize_changes
from infrastructure.persistence.models import (
    Bloc,
    Event,
    Notification,
    Ouvrage,
    Project,
    ProjectLot,
    ProjectTeamMember,
)
from infrastructure.realtime.apps import get_realtime_config
from infrastructure.realtime.push import WebPushChannel

from .fanout import NotificationFanout, serialize_event

logger = logging.getLogger(__name__)

User = get_user_model()


def project_audience(project_id, actor_id) -> Set:
    """
    Team members, the creator, and admins when the actor is not one,
    minus the actor and muted members.
    """
    project = Project.objects.filter(pk=project_id).first()
    if project is None:
        return set()

    members = ProjectTeamMember.objects.filter(project=project)
    audience = set(members.values_list('user_id', flat=True))
    if project.created_by_id:
        audience.add(project.created_by_id)

    actor_is_admin = User.objects.filter(pk=actor_id, is_admin=True).exists()
    if not actor_is_admin:
        audience |= set(User.objects.filter(is_admin=True, is_active=True).values_list('pk', flat=True))

    audience -= set(members.filter(is_muted=True).values_list('user_id', flat=True))
    audience.discard(actor_id)
    return audience


class EventLog:
    """Append-only event history with a merge window for project edits."""

    def __init__(self, merge_window_seconds: Optional[int] = None):
        if merge_window_seconds is None:
            merge_window_seconds = settings.EVENT_MERGE_WINDOW_SECONDS
        self.merge_window = timedelta(seconds=merge_window_seconds)

    def record(self, draft: HierarchyEvent) -> Tuple[Optional[Event], bool]:
        """
        Persist ``draft``.

        Returns ``(event, merged)``. ``event`` is None when the draft
        carried an empty diff; ``merged`` is True when the draft was folded
        into an earlier event.
        """
        metadata = dict(draft.metadata)
        if 'changes' in metadata or draft.action == EventAction.PROJECT_UPDATED:
            metadata['changes'] = sanitize_changes(metadata.get('changes'))
            if draft.action == EventAction.PROJECT_UPDATED and not metadata['changes']:
                logger.debug(f"Empty diff for project {draft.project_id}, nothing recorded")
                return None, False

        if draft.action.is_mergeable and draft.actor_id is not None and not draft.is_system_event:
            previous = self._mergeable_predecessor(draft)
            if previous is not None:
                previous.metadata = {
                    **previous.metadata,
                    'changes': merge_changes(previous.metadata.get('changes', {}), metadata['changes']),
                }
                previous.save(update_fields=['metadata'])
                logger.info(f"Merged {draft.action.value} into event {previous.pk}")
                return previous, True

        event = Event.objects.create(
            action=draft.action.value,
            actor_id=draft.actor_id,
            project_id=self._existing_project_id(draft.project_id),
            lot=draft.lot or self._lot_name(draft.lot_id),
            ouvrage_id=draft.ouvrage_id,
            bloc_id=draft.bloc_id,
            article_id=draft.article_id,
            project_nom_anc=draft.project_nom or self._project_name(draft.project_id),
            ouvrage_nom_anc=draft.ouvrage_nom or self._ouvrage_name(draft.ouvrage_id),
            bloc_nom_anc=draft.bloc_nom or self._bloc_name(draft.bloc_id),
            metadata=metadata,
            is_system_event=draft.is_system_event,
        )
        return event, False

    def _mergeable_predecessor(self, draft: HierarchyEvent) -> Optional[Event]:
        latest = (
            Event.objects
            .filter(
                action=draft.action.value,
                actor_id=draft.actor_id,
                project_id=draft.project_id,
                is_system_event=False,
            )
            .order_by('-created_at', '-id')
            .first()
        )
        if latest is None or latest.created_at < timezone.now() - self.merge_window:
            return None
        return latest

    # -------------------------------------------------------------------------
    # Name snapshots
    # -------------------------------------------------------------------------

    @staticmethod
    def _existing_project_id(project_id):
        if project_id is None:
            return None
        return project_id if Project.objects.filter(pk=project_id).exists() else None

    @staticmethod
    def _project_name(project_id) -> str:
        if project_id is None:
            return ''
        return Project.objects.filter(pk=project_id).values_list('nom', flat=True).first() or ''

    @staticmethod
    def _lot_name(lot_id) -> str:
        if lot_id is None:
            return ''
        return ProjectLot.objects.filter(pk=lot_id).values_list('lot__nom', flat=True).first() or ''

    @staticmethod
    def _ouvrage_name(ouvrage_id) -> str:
        if ouvrage_id is None:
            return ''
        return Ouvrage.objects.filter(pk=ouvrage_id).values_list('nom', flat=True).first() or ''

    @staticmethod
    def _bloc_name(bloc_id) -> str:
        if bloc_id is None:
            return ''
        return Bloc.objects.filter(pk=bloc_id).values_list('nom', flat=True).first() or ''

    # -------------------------------------------------------------------------
    # Retention
    # -------------------------------------------------------------------------

    def purge_older_than(self, days: Optional[int] = None) -> Tuple[int, int]:
        """Delete notifications, then events, older than ``days``."""
        if days is None:
            days = settings.EVENT_RETENTION_DAYS
        cutoff = timezone.now() - timedelta(days=days)
        with transaction.atomic():
            notifications, _ = Notification.objects.filter(event__created_at__lt=cutoff).delete()
            events, _ = Event.objects.filter(created_at__lt=cutoff).delete()
        logger.info(f"Purged {events} events and {notifications} notifications older than {days} days")
        return events, notifications


class EventNotificationService:
    """Post-commit handling of hierarchy event drafts."""

    def __init__(
        self,
        event_log: Optional[EventLog] = None,
        fanout: Optional[NotificationFanout] = None,
        scheduler: Optional[Callable[..., None]] = None,
    ):
        self.event_log = event_log or EventLog()
        if fanout is None:
            realtime = get_realtime_config()
            fanout = NotificationFanout(realtime.subscribers, realtime.push_endpoints, WebPushChannel())
        self.fanout = fanout
        self.scheduler = scheduler or self._schedule_reconciliation

    def dispatch(self, drafts: Iterable[HierarchyEvent]) -> List[Event]:
        events = []
        for draft in drafts:
            if draft.is_system_event:
                event = self.create_system_event(draft)
            else:
                event = self.create_event_and_notify(draft)
            if event is not None:
                events.append(event)
        return events

    def create_system_event(self, draft: HierarchyEvent) -> Optional[Event]:
        """Record a corrective event. It notifies nobody and triggers nothing."""
        event, _ = self.event_log.record(draft.as_system_event())
        return event

    def create_event_and_notify(self, draft: HierarchyEvent) -> Optional[Event]:
        if draft.is_system_event:
            return self.create_system_event(draft)

        event, merged = self.event_log.record(draft)
        if event is None:
            return None

        if not merged:
            notifications = self._notify(event, draft)
            if notifications:
                self.fanout.deliver(notifications, event)

        self._broadcast(event, draft)
        if draft.project_id is not None and draft.action != EventAction.PROJECT_DELETED:
            try:
                self.scheduler(str(draft.project_id), **self._reconcile_scope(draft))
            except Exception as e:
                logger.error(f"Failed to schedule reconciliation of project {draft.project_id}: {e}")
        return event

    # -------------------------------------------------------------------------
    # Audience
    # -------------------------------------------------------------------------

    def audience(self, draft: HierarchyEvent) -> Set:
        """Recipients of a draft; events without an actor notify nobody."""
        if draft.actor_id is None or draft.is_system_event:
            return set()
        if draft.recipients is not None:
            return {uid for uid in draft.recipients if uid != draft.actor_id}
        if draft.project_id is None:
            return set()
        return project_audience(draft.project_id, draft.actor_id)

    def _notify(self, event: Event, draft: HierarchyEvent) -> List[Notification]:
        recipients = self.audience(draft)
        if not recipients:
            return []
        Notification.objects.bulk_create(
            [Notification(recipient_id=uid, event=event) for uid in recipients],
            ignore_conflicts=True,
        )
        # ignore_conflicts leaves pks unset on some backends
        return list(Notification.objects.filter(event=event, recipient_id__in=recipients))

    # -------------------------------------------------------------------------
    # Side effects
    # -------------------------------------------------------------------------

    def _broadcast(self, event: Event, draft: HierarchyEvent) -> None:
        if draft.project_id is None:
            return
        subscribers = self.fanout.subscribers
        try:
            subscribers.publish(
                subscribers.project_channel(draft.project_id),
                serialize_event(event),
                'hierarchy.changed',
            )
        except Exception as e:
            logger.warning(f"Broadcast to project {draft.project_id} failed: {e}")

    @staticmethod
    def _reconcile_scope(draft: HierarchyEvent) -> dict:
        """
        Designation scope of the follow-up pass.

        An edited ouvrage label is kept: only its blocs are renumbered.
        Lot-level changes renumber the whole project.
        """
        scope = {
            'lot_id': draft.lot_id,
            'target_ouvrage_id': None,
            'recalc_designations': draft.touches_designation,
        }
        if draft.action == EventAction.GBLOC_UPDATED:
            scope['target_ouvrage_id'] = draft.ouvrage_id
        elif draft.action in (EventAction.LOT_CREATED, EventAction.LOT_DELETED):
            scope['lot_id'] = None
        return scope

    @staticmethod
    def _schedule_reconciliation(project_id: str, lot_id=None, target_ouvrage_id=None,
                                 recalc_designations=False) -> None:
        from application.tasks.project_tasks import reconcile_project_aggregates

        reconcile_project_aggregates.delay(
            project_id,
            lot_id=lot_id,
            target_ouvrage_id=target_ouvrage_id,
            recalc_designations=recalc_designations,
        )
