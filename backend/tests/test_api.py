from decimal import Decimal
from io import BytesIO

import openpyxl
import pytest
from django.urls import reverse
from rest_framework.test import APIClient

from application.services.hierarchy import HierarchyService
from infrastructure.persistence.models import Notification, Ouvrage, Project
from tests import factories

pytestmark = pytest.mark.django_db


@pytest.fixture
def outsider_client(other_user) -> APIClient:
    client = APIClient()
    client.force_authenticate(user=other_user)
    return client


@pytest.fixture
def priced_tree(user, project, article, cheap_article):
    service = HierarchyService(user)
    ouvrage = service.create_ouvrage(project.pk, 'Fondations', lot_nom='Gros oeuvre')
    service.add_article(project.pk, ouvrage.pk, article.pk, quantite=1)
    bloc = service.create_bloc(project.pk, ouvrage.pk, 'Semelles', quantite=2)
    service.add_article(project.pk, ouvrage.pk, cheap_article.pk, quantite=1, bloc_id=bloc.pk)
    return ouvrage, bloc


# =============================================================================
# Auth
# =============================================================================

def test_login_returns_tokens(api_client, user):
    response = api_client.post(
        reverse('api_v1:auth-login'),
        {'username': 'marie', 'password': 'motdepasse'},
        format='json',
    )

    assert response.status_code == 200
    assert response.data['access']
    assert response.data['refresh']
    assert response.data['user']['username'] == 'marie'


def test_login_rejects_bad_password(api_client, user):
    response = api_client.post(
        reverse('api_v1:auth-login'),
        {'username': 'marie', 'password': 'faux'},
        format='json',
    )

    assert response.status_code == 400


def test_token_authenticates_requests(api_client, user):
    login = api_client.post(
        reverse('api_v1:auth-login'),
        {'username': 'marie', 'password': 'motdepasse'},
        format='json',
    )
    api_client.credentials(HTTP_AUTHORIZATION=f"Bearer {login.data['access']}")

    response = api_client.get(reverse('api_v1:auth-me'))

    assert response.status_code == 200
    assert response.data['unread_notifications'] == 0


def test_anonymous_requests_are_refused(api_client):
    assert api_client.get(reverse('api_v1:projects-list')).status_code == 401


def test_health(client):
    response = client.get('/health/')

    assert response.status_code == 200
    assert response.json() == {'status': 'ok'}


# =============================================================================
# Projects
# =============================================================================

def test_create_project(user_api_client, user, other_user):
    response = user_api_client.post(
        reverse('api_v1:projects-list'),
        {'nom': 'Hangar', 'marge_brut': '10', 'marge_net': '10', 'team': [str(other_user.pk)]},
        format='json',
    )

    assert response.status_code == 201
    assert response.data['coefficient'] == '1.2500'
    assert [str(m['user']) for m in response.data['team_members']] == [str(other_user.pk)]
    assert Project.objects.get(nom='Hangar').created_by == user


def test_create_project_rejects_full_margin(user_api_client):
    response = user_api_client.post(
        reverse('api_v1:projects-list'),
        {'nom': 'Hangar', 'marge_brut': '100'},
        format='json',
    )

    assert response.status_code == 400


def test_projects_list_is_scoped(user_api_client, project, other_user):
    factories.ProjectFactory.create(created_by=other_user)

    response = user_api_client.get(reverse('api_v1:projects-list'))

    assert [p['id'] for p in response.data['results']] == [str(project.pk)]


def test_invisible_project_is_not_found(outsider_client, project):
    response = outsider_client.get(reverse('api_v1:projects-detail', args=[project.pk]))

    assert response.status_code == 404


def test_non_member_cannot_update(outsider_client, project):
    response = outsider_client.patch(
        reverse('api_v1:projects-detail', args=[project.pk]),
        {'nom': 'Autre'},
        format='json',
    )

    assert response.status_code == 403
    assert response.data['error'] == 'AUTHORIZATION_ERROR'
    assert Project.objects.get(pk=project.pk).nom == 'Villa'


def test_update_margins(user_api_client, project, priced_tree):
    response = user_api_client.patch(
        reverse('api_v1:projects-detail', args=[project.pk]),
        {'marge_brut': '20'},
        format='json',
    )

    assert response.status_code == 200
    assert Decimal(response.data['prix_vente']) == Decimal('187.50')


def test_put_on_project_detail_is_refused(user_api_client, project):
    response = user_api_client.put(
        reverse('api_v1:projects-detail', args=[project.pk]),
        {'nom': 'Autre'},
        format='json',
    )

    assert response.status_code == 405
    assert Project.objects.get(pk=project.pk).nom == 'Villa'


def test_team_replace(user_api_client, project, other_user):
    url = reverse('api_v1:projects-team', args=[project.pk])

    response = user_api_client.put(
        url, {'members': [str(other_user.pk)], 'muted': [str(other_user.pk)]}, format='json',
    )

    assert response.status_code == 200
    assert response.data[0]['is_muted'] is True
    assert len(user_api_client.get(url).data) == 1


def test_tree(user_api_client, project, priced_tree):
    ouvrage, bloc = priced_tree

    response = user_api_client.get(reverse('api_v1:projects-tree', args=[project.pk]))

    assert response.status_code == 200
    [lot] = response.data['lots']
    assert lot['nom'] == 'Gros oeuvre'
    [node] = lot['ouvrages']
    assert (node['id'], node['designation'], node['prix_total']) == (ouvrage.pk, '1', '150.00')
    assert len(node['articles']) == 1
    [bloc_node] = node['blocs']
    assert (bloc_node['id'], bloc_node['designation'], bloc_node['pu']) == (bloc.pk, '1.1', '25.00')


def test_export_workbook(user_api_client, project, priced_tree):
    response = user_api_client.get(reverse('api_v1:projects-export', args=[project.pk]))

    assert response.status_code == 200
    assert response['Content-Type'] == 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'
    assert response['Content-Disposition'].startswith('attachment; filename="metre_')
    workbook = openpyxl.load_workbook(BytesIO(response.content))
    assert workbook.active.title == 'Métré'


def test_reorder_requires_parent(user_api_client, project):
    response = user_api_client.post(
        reverse('api_v1:projects-reorder', args=[project.pk]),
        {'kind': 'ouvrage', 'ordered_ids': [1]},
        format='json',
    )

    assert response.status_code == 400


def test_events_hide_system_entries_by_default(user_api_client, project):
    factories.EventFactory.create(project=project)
    factories.EventFactory.create(project=project, action='project_recalculated', is_system_event=True)
    url = reverse('api_v1:projects-events', args=[project.pk])

    assert user_api_client.get(url).data['count'] == 1
    assert user_api_client.get(url, {'include_system': 'true'}).data['count'] == 2


def test_delete_project(user_api_client, project, priced_tree):
    response = user_api_client.delete(reverse('api_v1:projects-detail', args=[project.pk]))

    assert response.status_code == 204
    assert not Project.objects.exists()


# =============================================================================
# Hierarchy
# =============================================================================

def test_create_ouvrage_requires_a_lot(user_api_client, project):
    response = user_api_client.post(
        reverse('api_v1:ouvrages-list'),
        {'project': str(project.pk), 'nom': 'Dalle'},
        format='json',
    )

    assert response.status_code == 400
    assert 'lot_id' in response.data


def test_create_ouvrage_with_new_lot(user_api_client, project):
    response = user_api_client.post(
        reverse('api_v1:ouvrages-list'),
        {'project': str(project.pk), 'nom': 'Dalle', 'lot_nom': 'Gros oeuvre'},
        format='json',
    )

    assert response.status_code == 201
    assert response.data['designation'] == '1'
    assert response.data['lot_nom'] == 'Gros oeuvre'


def test_delete_lot_with_ouvrages_conflicts(user_api_client, priced_tree):
    ouvrage, _ = priced_tree

    response = user_api_client.delete(reverse('api_v1:lots-detail', args=[ouvrage.project_lot_id]))

    assert response.status_code == 409
    assert response.data['error'] == 'CONFLICT'


def test_add_line_through_api(user_api_client, priced_tree, article):
    ouvrage, _ = priced_tree

    response = user_api_client.post(
        reverse('api_v1:articles-list'),
        {'ouvrage_id': ouvrage.pk, 'article_id': article.pk, 'quantite': '2'},
        format='json',
    )

    assert response.status_code == 201
    assert response.data['total_ttc'] == '200.00'
    assert Ouvrage.objects.get(pk=ouvrage.pk).prix_total == Decimal('350.00')


def test_add_line_to_unknown_ouvrage(user_api_client, article):
    response = user_api_client.post(
        reverse('api_v1:articles-list'),
        {'ouvrage_id': 987654, 'article_id': article.pk, 'quantite': '1'},
        format='json',
    )

    assert response.status_code == 404
    assert response.data['error'] == 'ENTITY_NOT_FOUND'


def test_delete_bloc_needs_a_valid_ouvrage(user_api_client, priced_tree):
    _, bloc = priced_tree
    url = reverse('api_v1:blocs-detail', args=[bloc.pk])

    assert user_api_client.delete(url).status_code == 400
    assert user_api_client.delete(url + '?ouvrage=abc').status_code == 404


def test_hierarchy_lists(user_api_client, project, priced_tree):
    ouvrage, bloc = priced_tree

    ouvrages = user_api_client.get(reverse('api_v1:ouvrages-list'), {'project_lot__project': str(project.pk)})
    blocs = user_api_client.get(reverse('api_v1:blocs-list'), {'ouvrage': ouvrage.pk})

    assert ouvrages.status_code == 200
    assert [o['id'] for o in ouvrages.data['results']] == [ouvrage.pk]
    assert blocs.status_code == 200
    assert [b['id'] for b in blocs.data['results']] == [bloc.pk]


def test_bloc_list_with_bad_ouvrage_filter_is_empty(user_api_client, priced_tree):
    response = user_api_client.get(reverse('api_v1:blocs-list'), {'ouvrage': 'abc'})

    assert response.status_code == 200
    assert response.data['results'] == []


# =============================================================================
# Notifications
# =============================================================================

def test_notifications(user_api_client, user):
    first, _ = factories.NotificationFactory.create_batch(2, recipient=user)
    factories.NotificationFactory.create(recipient=factories.UserFactory.create())

    assert user_api_client.get(reverse('api_v1:notifications-list')).data['count'] == 2
    assert user_api_client.get(reverse('api_v1:notifications-unread-count')).data == {'unread_count': 2}

    response = user_api_client.post(reverse('api_v1:notifications-mark-read'), {'ids': [first.pk]}, format='json')
    assert response.data == {'updated': 1, 'unread_count': 1}

    response = user_api_client.post(reverse('api_v1:notifications-mark-all-read'))
    assert response.data == {'updated': 1, 'unread_count': 0}
    assert not Notification.objects.filter(recipient=user, is_read=False).exists()
