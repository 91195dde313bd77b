import json
from unittest import mock

import pytest
import requests
from asgiref.sync import async_to_sync
from pywebpush import WebPushException

from application.services.fanout import NotificationFanout, mark_read, push_body, push_title, unread_count
from domain.shared.exceptions import DeliveryWarning
from infrastructure.persistence.models import Notification
from infrastructure.realtime.push import PushEndpointRegistry, PushResult, WebPushChannel
from infrastructure.realtime.registry import SubscriberRegistry
from tests import factories

pytestmark = pytest.mark.django_db

ENDPOINT = 'https://push.example.com/send/abc'


@pytest.fixture
def channel_layer():
    layer = mock.Mock()
    layer.group_add = mock.AsyncMock()
    layer.group_discard = mock.AsyncMock()
    layer.group_send = mock.AsyncMock()
    return layer


@pytest.fixture
def registry(channel_layer):
    return SubscriberRegistry(channel_layer=channel_layer)


@pytest.fixture
def endpoints():
    return PushEndpointRegistry()


@pytest.fixture
def event(project):
    return factories.EventFactory.create(
        action='bloc_deleted',
        project=project,
        bloc_nom_anc='Semelles',
        ouvrage_nom_anc='Fondations',
    )


def _online(registry, user):
    async_to_sync(registry.subscribe)(registry.user_channel(user.pk), f"specific.{user.pk}")


# =============================================================================
# Fan-out
# =============================================================================

def test_deliver_publishes_on_the_user_channel(registry, channel_layer, endpoints, event, other_user):
    notification = factories.NotificationFactory.create(recipient=other_user, event=event)
    push = mock.Mock()

    delivered = NotificationFanout(registry, endpoints, push).deliver([notification], event)

    assert delivered == 1
    group, message = channel_layer.group_send.call_args.args
    assert group == f"notifications_{other_user.pk}"
    assert message['type'] == 'notification.message'
    assert message['payload']['notification']['id'] == notification.pk
    assert message['payload']['unread_count'] == 1
    push.send.assert_not_called()


def test_offline_users_get_no_push(registry, endpoints, event, other_user):
    endpoints.register(other_user.pk, {'endpoint': ENDPOINT})
    notification = factories.NotificationFactory.create(recipient=other_user, event=event)
    push = mock.Mock()

    NotificationFanout(registry, endpoints, push).deliver([notification], event)

    push.send.assert_not_called()


def test_online_users_get_push_and_expired_endpoints_are_pruned(registry, endpoints, event, other_user):
    _online(registry, other_user)
    endpoints.register(other_user.pk, {'endpoint': ENDPOINT})
    endpoints.register(other_user.pk, {'endpoint': ENDPOINT + '/live'})
    notification = factories.NotificationFactory.create(recipient=other_user, event=event)
    push = mock.Mock()
    push.send.side_effect = [PushResult.EXPIRED, PushResult.DELIVERED]

    NotificationFanout(registry, endpoints, push).deliver([notification], event)

    assert push.send.call_count == 2
    message = push.send.call_args.args[1]
    assert message['title'] == 'Villa : Bloc supprimé'
    assert message['body'] == 'Semelles'
    assert [s['endpoint'] for s in endpoints.endpoints(other_user.pk)] == [ENDPOINT + '/live']


def test_push_failures_are_logged_and_skipped(registry, endpoints, event, other_user, caplog):
    _online(registry, other_user)
    endpoints.register(other_user.pk, {'endpoint': ENDPOINT})
    endpoints.register(other_user.pk, {'endpoint': ENDPOINT + '/live'})
    notification = factories.NotificationFactory.create(recipient=other_user, event=event)
    push = mock.Mock()
    push.send.side_effect = [DeliveryWarning('push', ENDPOINT, 'HTTP 500'), PushResult.DELIVERED]

    NotificationFanout(registry, endpoints, push).deliver([notification], event)

    assert push.send.call_count == 2
    assert len(endpoints.endpoints(other_user.pk)) == 2
    assert 'HTTP 500' in caplog.text


def test_live_delivery_failure_does_not_propagate(registry, channel_layer, endpoints, event, other_user):
    channel_layer.group_send.side_effect = OSError('redis unavailable')
    notification = factories.NotificationFactory.create(recipient=other_user, event=event)

    assert NotificationFanout(registry, endpoints, mock.Mock()).deliver([notification], event) == 0


def test_push_title_and_body(event):
    assert push_title(event) == 'Villa : Bloc supprimé'
    assert push_body(event) == 'Semelles'

    event.action = 'gbloc_created'
    assert push_body(event) == 'Fondations'


def test_mark_read(other_user):
    first, _ = factories.NotificationFactory.create_batch(2, recipient=other_user)
    factories.NotificationFactory.create(recipient=factories.UserFactory.create())

    assert mark_read(other_user.pk, [first.pk]) == 1
    assert unread_count(other_user.pk) == 1
    assert mark_read(other_user.pk) == 1
    assert unread_count(other_user.pk) == 0
    assert Notification.objects.get(pk=first.pk).read_at is not None


# =============================================================================
# Registries
# =============================================================================

def test_subscriber_registry_tracks_presence(registry, channel_layer, user):
    channel = registry.user_channel(user.pk)

    async_to_sync(registry.subscribe)(channel, 'specific.a')
    async_to_sync(registry.subscribe)(channel, 'specific.b')
    assert registry.is_online(user.pk)

    async_to_sync(registry.unsubscribe)(channel, 'specific.a')
    assert registry.is_online(user.pk)
    async_to_sync(registry.unsubscribe)(channel, 'specific.b')
    assert not registry.is_online(user.pk)

    channel_layer.group_add.assert_any_call(channel, 'specific.a')
    channel_layer.group_discard.assert_any_call(channel, 'specific.b')


def test_presence_is_shared_between_processes(registry, user):
    async_to_sync(registry.subscribe)(registry.user_channel(user.pk), 'specific.a')
    worker_side = SubscriberRegistry(channel_layer=mock.Mock())

    assert worker_side.is_online(user.pk)
    assert worker_side.subscribers(registry.user_channel(user.pk)) == set()

    async_to_sync(registry.unsubscribe)(registry.user_channel(user.pk), 'specific.a')
    assert not worker_side.is_online(user.pk)


def test_project_sockets_do_not_count_as_presence(registry, user, project):
    async_to_sync(registry.subscribe)(registry.project_channel(project.pk), 'specific.a')

    assert not registry.is_online(user.pk)


def test_unknown_sinks_leave_presence_untouched(registry, user):
    channel = registry.user_channel(user.pk)
    async_to_sync(registry.subscribe)(channel, 'specific.a')

    async_to_sync(registry.unsubscribe)(channel, 'specific.z')

    assert registry.is_online(user.pk)


def test_channel_names():
    assert SubscriberRegistry.project_channel('p1') == 'project_p1'
    assert SubscriberRegistry.user_channel('u1') == 'notifications_u1'


def test_push_registry_replaces_same_endpoint():
    endpoints = PushEndpointRegistry()
    endpoints.register('u1', {'endpoint': ENDPOINT, 'keys': {'auth': 'old'}})
    endpoints.register('u1', {'endpoint': ENDPOINT, 'keys': {'auth': 'new'}})
    endpoints.register('u1', {'keys': {}})

    assert endpoints.endpoints('u1') == [{'endpoint': ENDPOINT, 'keys': {'auth': 'new'}}]

    endpoints.remove('u1', ENDPOINT)
    assert endpoints.endpoints('u1') == []


def test_push_subscriptions_are_shared_between_processes():
    PushEndpointRegistry().register('u1', {'endpoint': ENDPOINT})

    assert PushEndpointRegistry().endpoints('u1') == [{'endpoint': ENDPOINT}]


# =============================================================================
# Web push channel
# =============================================================================

SUBSCRIPTION = {'endpoint': ENDPOINT, 'keys': {'p256dh': 'cle', 'auth': 'secret'}}


@pytest.fixture
def vapid(settings):
    settings.VAPID_PRIVATE_KEY = 'cle-privee'
    settings.VAPID_SUBJECT = 'mailto:ops@example.com'
    return settings


@pytest.fixture
def webpush():
    with mock.patch('infrastructure.realtime.push.webpush') as sender:
        yield sender


def test_web_push_signs_and_encrypts(vapid, webpush):
    session = mock.Mock()
    channel = WebPushChannel(timeout=2, session=session)

    assert channel.send(SUBSCRIPTION, {'title': 't'}) == PushResult.DELIVERED

    _, kwargs = webpush.call_args
    assert kwargs['subscription_info'] == SUBSCRIPTION
    assert json.loads(kwargs['data']) == {'title': 't'}
    assert kwargs['vapid_private_key'] == 'cle-privee'
    assert kwargs['vapid_claims'] == {'sub': 'mailto:ops@example.com'}
    assert kwargs['timeout'] == 2
    assert kwargs['requests_session'] is session


@pytest.mark.parametrize('status_code', (404, 410))
def test_web_push_reports_expired_endpoints(vapid, webpush, status_code):
    webpush.side_effect = WebPushException('gone', response=mock.Mock(status_code=status_code))

    assert WebPushChannel().send(SUBSCRIPTION, {}) == PushResult.EXPIRED


@pytest.mark.parametrize(
    'error',
    (WebPushException('boom', response=mock.Mock(status_code=500)),
     WebPushException('Missing keys value'),
     requests.ConnectionError('refused')),
)
def test_web_push_failures_raise_delivery_warning(vapid, webpush, error):
    webpush.side_effect = error

    with pytest.raises(DeliveryWarning):
        WebPushChannel().send(SUBSCRIPTION, {})


def test_web_push_needs_a_vapid_key(settings, webpush):
    settings.VAPID_PRIVATE_KEY = ''

    with pytest.raises(DeliveryWarning):
        WebPushChannel().send(SUBSCRIPTION, {})
    webpush.assert_not_called()
