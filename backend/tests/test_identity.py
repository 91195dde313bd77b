from unittest import mock

import pytest
from django.db import IntegrityError

from application.services.identity import ALLOCATION_LOCK_KEY, BLOC, OUVRAGE, IdentitySpaceResolver
from application.services.mutations import TransactionalMutationShell
from domain.shared.exceptions import ConflictException
from infrastructure.persistence.models import Bloc, Ouvrage
from tests import factories

pytestmark = pytest.mark.django_db


def test_next_safe_id_skips_ids_of_both_tables():
    factories.OuvrageFactory.create(id=10)
    factories.BlocFactory.create(id=11)

    resolver = IdentitySpaceResolver()

    assert resolver.next_safe_id(10, BLOC) == 12
    assert resolver.next_safe_id(11, OUVRAGE) == 12
    assert resolver.next_safe_id(5, BLOC) == 5


def test_next_safe_id_ignores_the_row_being_rekeyed():
    factories.BlocFactory.create(id=11)

    assert IdentitySpaceResolver().next_safe_id(11, BLOC, exclude_pk=11) == 11


def test_next_safe_id_gives_up_after_max_probes():
    factories.OuvrageFactory.create(id=20)
    factories.OuvrageFactory.create(id=21)

    with pytest.raises(ConflictException):
        IdentitySpaceResolver(max_probes=2).next_safe_id(20, BLOC)


def test_next_free_id_is_above_every_node():
    factories.OuvrageFactory.create(id=4)
    factories.BlocFactory.create(id=9)

    assert IdentitySpaceResolver().next_free_id(OUVRAGE) == 10


def test_unknown_kind_is_rejected():
    with pytest.raises(ValueError):
        IdentitySpaceResolver().is_taken(1, 'lot')


def test_create_node_rekeys_past_existing_bloc(user):
    project_lot = factories.ProjectLotFactory.create()
    bloc = factories.BlocFactory.create()

    shell = TransactionalMutationShell(user)
    ouvrage = shell.create_node(Ouvrage, OUVRAGE, min_id=bloc.pk, project_lot=project_lot, nom='Dalle')

    assert ouvrage.pk > bloc.pk
    assert Ouvrage.objects.filter(pk=ouvrage.pk, nom='Dalle').exists()
    assert not Bloc.objects.filter(pk=ouvrage.pk).exists()


def test_created_ids_never_collide(user):
    project_lot = factories.ProjectLotFactory.create()
    shell = TransactionalMutationShell(user)

    ouvrage_ids, bloc_ids = set(), set()
    for n in range(4):
        ouvrage_ids.add(shell.create_node(Ouvrage, OUVRAGE, project_lot=project_lot, nom=f"O{n}").pk)
        bloc_ids.add(shell.create_node(Bloc, BLOC, nom=f"B{n}").pk)

    assert len(ouvrage_ids) == 4
    assert len(bloc_ids) == 4
    assert not ouvrage_ids & bloc_ids


def test_create_node_raises_conflict_when_attempts_run_out(user, settings):
    settings.IDENTITY_ALLOCATION_ATTEMPTS = 2
    model = mock.Mock()
    model.objects.create.side_effect = IntegrityError('duplicate key')

    with pytest.raises(ConflictException):
        TransactionalMutationShell(user).create_node(model, OUVRAGE, nom='X')

    assert model.objects.create.call_count == 2
    assert 'pk' in model.objects.create.call_args.kwargs


def test_create_node_holds_the_allocation_lock(user):
    identity = mock.Mock(wraps=IdentitySpaceResolver())
    shell = TransactionalMutationShell(user, identity=identity)

    shell.create_node(Bloc, BLOC, nom='Semelles')

    identity.lock.assert_called_once_with()


def test_allocation_lock_is_a_postgresql_advisory_lock():
    with mock.patch('application.services.identity.connection') as connection:
        connection.vendor = 'postgresql'
        IdentitySpaceResolver.lock()

    cursor = connection.cursor.return_value.__enter__.return_value
    cursor.execute.assert_called_once_with('SELECT pg_advisory_xact_lock(%s)', [ALLOCATION_LOCK_KEY])


def test_allocation_lock_is_skipped_on_other_databases():
    with mock.patch('application.services.identity.connection') as connection:
        connection.vendor = 'sqlite'
        IdentitySpaceResolver.lock()

    connection.cursor.assert_not_called()


@pytest.mark.django_db(transaction=True)
def test_rekeyed_ids_advance_the_table_sequence(user):
    taken = factories.BlocFactory.create()
    factories.OuvrageFactory.create(id=taken.pk + 1)
    identity = mock.Mock(wraps=IdentitySpaceResolver())
    shell = TransactionalMutationShell(user, identity=identity)

    rekeyed = shell.create_node(Bloc, BLOC, nom='Semelles')
    follower = Bloc.objects.create(nom='Longrines')

    assert rekeyed.pk == taken.pk + 2
    identity.sync_sequence.assert_called_once_with(Bloc)
    assert follower.pk == rekeyed.pk + 1
