from datetime import timedelta
from decimal import Decimal
from unittest import mock

import pytest
from asgiref.sync import async_to_sync
from django.utils import timezone

from application.services.hierarchy import HierarchyService
from application.tasks.notification_tasks import dispatch_events, purge_expired_events
from application.tasks.project_tasks import reconcile_project_aggregates, recalculate_project_tree
from domain.shared.events import EventAction, HierarchyEvent
from infrastructure.persistence.models import Event, Notification, Ouvrage, Project
from infrastructure.realtime.push import PushEndpointRegistry
from infrastructure.realtime.registry import SubscriberRegistry
from tests import factories

pytestmark = pytest.mark.django_db


@pytest.fixture
def stale_project(project, other_user):
    """Project whose stored sell price lags behind its cost and margins."""
    factories.ProjectTeamMemberFactory.create(project=project, user=other_user)
    factories.OuvrageFactory.create(project_lot__project=project, prix_total=Decimal('100.00'))
    Project.objects.filter(pk=project.pk).update(marge_brut=Decimal('20'))
    return project


def test_reconcile_records_one_system_event_when_price_moved(stale_project, django_capture_on_commit_callbacks):
    with django_capture_on_commit_callbacks(execute=True):
        result = reconcile_project_aggregates(str(stale_project.pk))

    assert result == {'project_id': str(stale_project.pk), 'prix_vente': '125.00', 'changed': True}
    [event] = Event.objects.all()
    assert event.action == 'project_recalculated'
    assert event.is_system_event
    assert event.metadata['changes']['prix_vente'] == {'from': '0.00', 'to': '125.00'}
    assert not Notification.objects.exists()


def test_reconcile_without_change_records_nothing(stale_project, django_capture_on_commit_callbacks):
    with django_capture_on_commit_callbacks(execute=True):
        reconcile_project_aggregates(str(stale_project.pk))
        result = reconcile_project_aggregates(str(stale_project.pk))

    assert result['changed'] is False
    assert Event.objects.count() == 1


def test_reconcile_renumbers_when_asked(project):
    project_lot = factories.ProjectLotFactory.create(project=project)
    ouvrage = factories.OuvrageFactory.create(project_lot=project_lot, designation='9')

    reconcile_project_aggregates(str(project.pk), lot_id=project_lot.pk, recalc_designations=True)

    assert Ouvrage.objects.get(pk=ouvrage.pk).designation == '1'


def test_reconcile_of_deleted_project_is_skipped():
    project_id = '00000000-0000-0000-0000-000000000000'

    assert reconcile_project_aggregates(project_id) == {'project_id': project_id, 'skipped': True}


def test_recalculate_project_tree(project):
    project_lot = factories.ProjectLotFactory.create(project=project)
    ouvrage = factories.OuvrageFactory.create(project_lot=project_lot)
    factories.ProjectArticleFactory.create(
        structure=factories.StructureFactory.create(ouvrage=ouvrage),
        total_ttc=Decimal('80.00'),
    )

    result = recalculate_project_tree(str(project.pk))

    assert result == {'project_id': str(project.pk), 'cout': '80.00', 'prix_vente': '80.00'}
    assert Ouvrage.objects.get(pk=ouvrage.pk).designation == '1'


def test_purge_expired_events(settings):
    settings.EVENT_RETENTION_DAYS = 30
    stale = factories.NotificationFactory.create().event
    older = factories.EventFactory.create()
    Event.objects.filter(pk=stale.pk).update(created_at=timezone.now() - timedelta(days=31))
    Event.objects.filter(pk=older.pk).update(created_at=timezone.now() - timedelta(days=3))

    assert purge_expired_events() == {'events': 1, 'notifications': 1}
    assert purge_expired_events(days=2) == {'events': 1, 'notifications': 0}
    assert not Event.objects.exists()


def test_committed_mutations_are_handed_to_the_dispatch_task(project, user, django_capture_on_commit_callbacks):
    with mock.patch('application.tasks.notification_tasks.dispatch_events.delay') as delay, \
            mock.patch('infrastructure.realtime.push.WebPushChannel.send') as send:
        with django_capture_on_commit_callbacks(execute=True):
            HierarchyService(user).ensure_lot(project.pk, 'Gros oeuvre')

        send.assert_not_called()

    [payloads], _ = delay.call_args
    [draft] = [HierarchyEvent.from_payload(payload) for payload in payloads]
    assert draft.action == EventAction.LOT_CREATED
    assert (draft.project_id, draft.actor_id, draft.lot) == (project.pk, user.pk, 'Gros oeuvre')
    assert not Event.objects.exists()


def _lot_created(project, actor):
    return HierarchyEvent(
        action=EventAction.LOT_CREATED,
        actor_id=actor.pk,
        project_id=project.pk,
        project_nom=project.nom,
        lot='Gros oeuvre',
    )


def test_dispatch_events_records_and_notifies(project, user, other_user):
    factories.ProjectTeamMemberFactory.create(project=project, user=other_user)

    result = dispatch_events([_lot_created(project, user).to_payload()])

    event = Event.objects.get(action='lot_created')
    assert result == {'events': [event.pk]}
    assert event.lot == 'Gros oeuvre'
    assert list(Notification.objects.values_list('recipient_id', flat=True)) == [other_user.pk]


def test_dispatch_events_pushes_to_users_connected_to_another_process(project, user, other_user, settings):
    settings.VAPID_PRIVATE_KEY = 'cle-privee'
    factories.ProjectTeamMemberFactory.create(project=project, user=other_user)
    subscription = {'endpoint': 'https://push.example.com/send/abc', 'keys': {'p256dh': 'cle', 'auth': 'secret'}}
    asgi_side = SubscriberRegistry(channel_layer=mock.Mock(group_add=mock.AsyncMock()))
    async_to_sync(asgi_side.subscribe)(asgi_side.user_channel(other_user.pk), 'specific.a')
    PushEndpointRegistry().register(other_user.pk, subscription)

    with mock.patch('infrastructure.realtime.push.webpush') as webpush:
        dispatch_events([_lot_created(project, user).to_payload()])

    webpush.assert_called_once()
    assert webpush.call_args.kwargs['subscription_info'] == subscription
