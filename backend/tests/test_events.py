from datetime import timedelta

import pytest
from django.utils import timezone
from freezegun import freeze_time

from application.services.events import EventLog, project_audience
from domain.shared.events import EventAction, HierarchyEvent
from infrastructure.persistence.models import Event, Notification
from tests import factories

pytestmark = pytest.mark.django_db


def _project_update(project, actor, **changes):
    return HierarchyEvent(
        action=EventAction.PROJECT_UPDATED,
        actor_id=actor.pk,
        project_id=project.pk,
        project_nom=project.nom,
        metadata={'changes': changes},
    )


# =============================================================================
# Event log
# =============================================================================

def test_project_updates_merge_inside_the_window(project, user):
    log = EventLog(merge_window_seconds=5)

    with freeze_time('2026-03-02 10:00:00') as frozen:
        first, merged = log.record(_project_update(project, user, nom={'from': 'Villa', 'to': 'Villa A'}))
        assert not merged

        frozen.tick(timedelta(seconds=3))
        second, merged = log.record(_project_update(
            project, user,
            nom={'from': 'Villa A', 'to': 'Villa B'},
            description={'from': '', 'to': 'R+1'},
        ))
        assert merged
        assert second.pk == first.pk

        frozen.tick(timedelta(seconds=10))
        third, merged = log.record(_project_update(project, user, nom={'from': 'Villa B', 'to': 'Villa C'}))
        assert not merged
        assert third.pk != first.pk

    first.refresh_from_db()
    assert first.metadata['changes'] == {
        'nom': {'from': 'Villa', 'to': 'Villa B'},
        'description': {'from': '', 'to': 'R+1'},
    }
    assert Event.objects.filter(action=EventAction.PROJECT_UPDATED.value).count() == 2


def test_other_actors_do_not_merge(project, user, other_user):
    log = EventLog(merge_window_seconds=5)

    log.record(_project_update(project, user, nom={'from': 'A', 'to': 'B'}))
    _, merged = log.record(_project_update(project, other_user, nom={'from': 'B', 'to': 'C'}))

    assert not merged
    assert Event.objects.count() == 2


def test_only_project_updates_merge(project, user):
    log = EventLog(merge_window_seconds=5)
    draft = HierarchyEvent(
        action=EventAction.GBLOC_UPDATED,
        actor_id=user.pk,
        project_id=project.pk,
        ouvrage_id=1,
        ouvrage_nom='Dalle',
        metadata={'changes': {'nom': {'from': 'a', 'to': 'b'}}},
    )

    log.record(draft)
    _, merged = log.record(draft)

    assert not merged
    assert Event.objects.count() == 2


def test_empty_project_diff_records_nothing(project, user):
    event, merged = EventLog().record(_project_update(project, user, nom={'from': 'Villa', 'to': 'Villa'}))

    assert event is None
    assert not merged
    assert not Event.objects.exists()


def test_record_snapshots_names(project, user):
    ouvrage = factories.OuvrageFactory.create(nom='Fondations', project_lot__project=project)
    bloc = factories.BlocFactory.create(nom='Semelles')

    event, _ = EventLog().record(HierarchyEvent(
        action=EventAction.BLOC_CREATED,
        actor_id=user.pk,
        project_id=project.pk,
        lot_id=ouvrage.project_lot_id,
        ouvrage_id=ouvrage.pk,
        bloc_id=bloc.pk,
    ))

    assert event.project_nom_anc == 'Villa'
    assert event.lot == ouvrage.project_lot.lot.nom
    assert event.ouvrage_nom_anc == 'Fondations'
    assert event.bloc_nom_anc == 'Semelles'


def test_record_for_a_deleted_project_keeps_its_name(user):
    project = factories.ProjectFactory.create(nom='Hangar')
    project_id = project.pk
    project.delete()

    event, _ = EventLog().record(HierarchyEvent(
        action=EventAction.PROJECT_DELETED,
        actor_id=user.pk,
        project_id=project_id,
        project_nom='Hangar',
    ))

    assert event.project_id is None
    assert event.project_label == 'Hangar'


def test_purge_older_than_removes_notifications_then_events(user):
    old = factories.NotificationFactory.create(recipient=user).event
    recent = factories.NotificationFactory.create(recipient=user).event
    Event.objects.filter(pk=old.pk).update(created_at=timezone.now() - timedelta(days=61))

    events, notifications = EventLog().purge_older_than(60)

    assert (events, notifications) == (1, 1)
    assert list(Event.objects.values_list('pk', flat=True)) == [recent.pk]
    assert Notification.objects.filter(event=recent).exists()


def test_purge_uses_configured_retention(user, settings):
    settings.EVENT_RETENTION_DAYS = 5
    event = factories.EventFactory.create()
    Event.objects.filter(pk=event.pk).update(created_at=timezone.now() - timedelta(days=6))

    assert EventLog().purge_older_than() == (1, 0)


# =============================================================================
# Audience
# =============================================================================

def test_audience_of_a_member_action(project, user, other_user, admin):
    muted = factories.UserFactory.create(username='muet')
    factories.ProjectTeamMemberFactory.create(project=project, user=other_user)
    factories.ProjectTeamMemberFactory.create(project=project, user=muted, is_muted=True)
    actor = factories.UserFactory.create(username='acteur')
    factories.ProjectTeamMemberFactory.create(project=project, user=actor)

    audience = project_audience(project.pk, actor.pk)

    assert audience == {user.pk, other_user.pk, admin.pk}


def test_admin_actions_do_not_notify_other_admins(project, user, admin):
    factories.AdminFactory.create(username='directeur')

    assert project_audience(project.pk, admin.pk) == {user.pk}


def test_muting_wins_over_admin_status(project, other_user, admin):
    factories.ProjectTeamMemberFactory.create(project=project, user=admin, is_muted=True)

    assert admin.pk not in project_audience(project.pk, other_user.pk)


def test_audience_of_missing_project_is_empty(user):
    assert project_audience('00000000-0000-0000-0000-000000000000', user.pk) == set()


# =============================================================================
# Notification service
# =============================================================================

def test_dispatch_notifies_broadcasts_and_schedules(notifier, subscribers, scheduler, project, user, other_user):
    factories.ProjectTeamMemberFactory.create(project=project, user=other_user)
    draft = HierarchyEvent(
        action=EventAction.GBLOC_CREATED,
        actor_id=user.pk,
        project_id=project.pk,
        lot='Gros oeuvre',
        lot_id=3,
        ouvrage_id=8,
        ouvrage_nom='Dalle',
    )

    [event] = notifier.dispatch([draft])

    notification = Notification.objects.get()
    assert notification.recipient == other_user
    assert notification.event == event
    published = {c.args[0]: c.args[1:] for c in subscribers.publish.call_args_list}
    payload, message_type = published[f"notifications_{other_user.pk}"]
    assert message_type == 'notification.message'
    assert payload['event']['id'] == event.pk
    assert payload['unread_count'] == 1
    payload, message_type = published[f"project_{project.pk}"]
    assert message_type == 'hierarchy.changed'
    assert payload['ouvrage'] == 'Dalle'
    scheduler.assert_called_once_with(
        str(project.pk), lot_id=3, target_ouvrage_id=None, recalc_designations=True,
    )


def test_ouvrage_edit_reconciles_its_blocs_only(notifier, scheduler, project, user):
    notifier.dispatch([HierarchyEvent(
        action=EventAction.GBLOC_UPDATED,
        actor_id=user.pk,
        project_id=project.pk,
        lot_id=3,
        ouvrage_id=8,
        metadata={'changes': {'designation': {'from': '1', 'to': '4'}}},
    )])

    scheduler.assert_called_once_with(
        str(project.pk), lot_id=3, target_ouvrage_id=8, recalc_designations=True,
    )


def test_system_events_trigger_nothing(notifier, subscribers, scheduler, project, user, other_user):
    factories.ProjectTeamMemberFactory.create(project=project, user=other_user)
    draft = HierarchyEvent(
        action=EventAction.PROJECT_RECALCULATED,
        actor_id=user.pk,
        project_id=project.pk,
        metadata={'changes': {'prix_vente': {'from': '0.00', 'to': '120.00'}}},
    )

    [event] = notifier.dispatch([draft.as_system_event()])
    notifier.create_event_and_notify(draft.as_system_event())

    assert event.is_system_event
    assert not Notification.objects.exists()
    subscribers.publish.assert_not_called()
    scheduler.assert_not_called()


def test_project_deletion_is_not_reconciled(notifier, scheduler, user, other_user):
    draft = HierarchyEvent(
        action=EventAction.PROJECT_DELETED,
        actor_id=user.pk,
        project_id='00000000-0000-0000-0000-000000000001',
        project_nom='Hangar',
        recipients=(user.pk, other_user.pk),
    )

    notifier.dispatch([draft])

    assert list(Notification.objects.values_list('recipient_id', flat=True)) == [other_user.pk]
    scheduler.assert_not_called()


def test_merged_updates_do_not_notify_twice(notifier, project, user, other_user):
    factories.ProjectTeamMemberFactory.create(project=project, user=other_user)

    notifier.dispatch([_project_update(project, user, nom={'from': 'Villa', 'to': 'Villa A'})])
    notifier.dispatch([_project_update(project, user, nom={'from': 'Villa A', 'to': 'Villa B'})])

    assert Event.objects.count() == 1
    assert Notification.objects.count() == 1


def test_events_without_actor_notify_nobody(notifier, project):
    notifier.dispatch([HierarchyEvent(action=EventAction.LOT_CREATED, project_id=project.pk, lot='Plomberie')])

    assert Event.objects.count() == 1
    assert not Notification.objects.exists()


def test_scheduling_failure_is_logged(notifier, scheduler, project, user, caplog):
    scheduler.side_effect = ConnectionError('broker down')

    [event] = notifier.dispatch([HierarchyEvent(
        action=EventAction.LOT_CREATED, actor_id=user.pk, project_id=project.pk, lot='Plomberie',
    )])

    assert event.pk
    assert 'Failed to schedule reconciliation' in caplog.text
