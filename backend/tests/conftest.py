from decimal import Decimal
from unittest import mock

import pytest
from django.core.cache import cache
from rest_framework.test import APIClient

from application.services.events import EventLog, EventNotificationService
from application.services.fanout import NotificationFanout
from application.services.hierarchy import HierarchyService
from application.services.mutations import TransactionalMutationShell
from infrastructure.realtime.push import PushEndpointRegistry
from tests import factories


@pytest.fixture(autouse=True)
def clear_cache():
    """Presence counters and push subscriptions live in the cache."""
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def user(db):
    return factories.UserFactory.create(username='marie')


@pytest.fixture
def other_user(db):
    return factories.UserFactory.create(username='paul')


@pytest.fixture
def admin(db):
    return factories.AdminFactory.create(username='chef')


@pytest.fixture
def project(user):
    return factories.ProjectFactory.create(nom='Villa', created_by=user)


@pytest.fixture
def article(db):
    """Catalog article at 100.00 HT, no VAT."""
    return factories.CatalogArticleFactory.create(reference='BET-100', prix_unitaire=Decimal('100.00'))


@pytest.fixture
def cheap_article(db):
    return factories.CatalogArticleFactory.create(reference='BET-050', prix_unitaire=Decimal('50.00'))


@pytest.fixture
def subscribers():
    """Subscriber registry double: channel names are real, delivery is recorded."""
    registry = mock.Mock()
    registry.project_channel.side_effect = lambda pk: f"project_{pk}"
    registry.user_channel.side_effect = lambda pk: f"notifications_{pk}"
    registry.is_online.return_value = False
    return registry


@pytest.fixture
def push_channel():
    return mock.Mock()


@pytest.fixture
def scheduler():
    return mock.Mock()


@pytest.fixture
def notifier(subscribers, push_channel, scheduler):
    return EventNotificationService(
        event_log=EventLog(),
        fanout=NotificationFanout(subscribers, PushEndpointRegistry(), push_channel),
        scheduler=scheduler,
    )


@pytest.fixture
def service(user, notifier):
    """Hierarchy service of ``user`` with post-commit dispatch wired to ``notifier``."""
    shell = TransactionalMutationShell(user, dispatcher=notifier.dispatch)
    return HierarchyService(user, shell=shell)


@pytest.fixture
def api_client() -> APIClient:
    return APIClient()


@pytest.fixture
def user_api_client(api_client, user) -> APIClient:
    api_client.force_authenticate(user=user)
    return api_client
