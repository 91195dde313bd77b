from datetime import timedelta
from decimal import Decimal
from io import StringIO

import pytest
from django.contrib.auth import get_user_model
from django.core.management import CommandError, call_command
from django.utils import timezone

from infrastructure.persistence.models import Event, Project
from tests import factories

pytestmark = pytest.mark.django_db

User = get_user_model()


def _run(*args, **options):
    out = StringIO()
    call_command(*args, stdout=out, **options)
    return out.getvalue()


def test_purge_events():
    event = factories.EventFactory.create()
    Event.objects.filter(pk=event.pk).update(created_at=timezone.now() - timedelta(days=10))

    assert 'Purged 1 events and 0 notifications' in _run('purge_events', days=7)
    assert not Event.objects.exists()


def test_purge_events_rejects_negative_days():
    with pytest.raises(CommandError):
        _run('purge_events', days=-1)


def test_recalculate_project_inline(project):
    ouvrage = factories.OuvrageFactory.create(project_lot__project=project, designation='4')
    factories.ProjectArticleFactory.create(
        structure=factories.StructureFactory.create(ouvrage=ouvrage),
        total_ttc=Decimal('40.00'),
    )

    output = _run('recalculate_project', str(project.pk))

    assert f"{project.pk}: cout=40.00 prix_vente=40.00" in output
    assert 'Done: 1 project(s)' in output
    assert Project.objects.get(pk=project.pk).cout == Decimal('40.00')


def test_recalculate_every_project_queued(project, user):
    factories.ProjectFactory.create(created_by=user)

    output = _run('recalculate_project', '--async')

    assert output.count('Queued ') == 2
    assert 'Done: 2 project(s)' in output


@pytest.mark.parametrize(
    ('project_id', 'message'),
    (('pas-un-uuid', 'Project ids must be UUIDs'),
     ('00000000-0000-0000-0000-000000000000', 'Unknown project(s)')),
)
def test_recalculate_project_rejects_bad_ids(project_id, message):
    with pytest.raises(CommandError, match=message.replace('(', r'\(').replace(')', r'\)')):
        _run('recalculate_project', project_id)


def test_init_system_is_idempotent():
    assert 'Created admin user chef' in _run('init_system', admin_username='chef', admin_password='s3cret')
    assert 'Admin user already exists' in _run('init_system', admin_username='chef', admin_password='autre')

    admin = User.objects.get(username='chef')
    assert admin.is_admin
    assert admin.check_password('s3cret')
