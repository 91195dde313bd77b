import pytest

from application.services.structure import StructureIndex
from infrastructure.persistence.models import Bloc, Ouvrage, ProjectArticle, Structure, StructureActionChoices
from tests import factories

pytestmark = pytest.mark.django_db


@pytest.fixture
def index():
    return StructureIndex()


@pytest.fixture
def ouvrage():
    return factories.OuvrageFactory.create()


def test_find_or_create_is_idempotent(index, ouvrage):
    bloc = factories.BlocFactory.create()

    direct = index.find_or_create(ouvrage.pk)
    nested = index.find_or_create(ouvrage.pk, bloc.pk)

    assert index.find_or_create(ouvrage.pk).pk == direct.pk
    assert index.find_or_create(ouvrage.pk, bloc.pk).pk == nested.pk
    assert Structure.objects.filter(ouvrage=ouvrage).count() == 2
    assert direct.action == StructureActionChoices.OUVRAGE
    assert nested.action == StructureActionChoices.BLOC


def test_find_distinguishes_direct_row_from_bloc_rows(index, ouvrage):
    bloc = factories.BlocFactory.create()
    index.find_or_create(ouvrage.pk, bloc.pk)

    assert index.find(ouvrage.pk) is None
    assert index.find(ouvrage.pk, bloc.pk) is not None


def test_blocs_and_ouvrages_of_shared_bloc(index, ouvrage):
    other = factories.OuvrageFactory.create(project_lot=ouvrage.project_lot)
    bloc = factories.BlocFactory.create()
    index.find_or_create(ouvrage.pk, bloc.pk)
    index.find_or_create(other.pk, bloc.pk)

    assert index.blocs_of(ouvrage.pk) == [bloc]
    assert sorted(index.ouvrage_ids_of(bloc.pk)) == sorted([ouvrage.pk, other.pk])


def test_remove_ouvrage_deletes_only_orphan_blocs(index, ouvrage):
    other = factories.OuvrageFactory.create(project_lot=ouvrage.project_lot)
    own = factories.BlocFactory.create()
    shared = factories.BlocFactory.create()
    for bloc in (own, shared):
        factories.ProjectArticleFactory.create(structure=index.find_or_create(ouvrage.pk, bloc.pk))
    factories.ProjectArticleFactory.create(structure=index.find_or_create(other.pk, shared.pk))
    factories.ProjectArticleFactory.create(structure=index.find_or_create(ouvrage.pk))

    removed = index.remove_ouvrage(ouvrage)

    assert removed == [own.pk]
    assert not Ouvrage.objects.filter(pk=ouvrage.pk).exists()
    assert not Bloc.objects.filter(pk=own.pk).exists()
    assert Bloc.objects.filter(pk=shared.pk).exists()
    assert ProjectArticle.objects.count() == 1
    assert ProjectArticle.objects.get().structure.ouvrage_id == other.pk


def test_detach_shared_bloc_keeps_the_bloc(index, ouvrage):
    other = factories.OuvrageFactory.create(project_lot=ouvrage.project_lot)
    bloc = factories.BlocFactory.create()
    line = factories.ProjectArticleFactory.create(structure=index.find_or_create(ouvrage.pk, bloc.pk))
    index.find_or_create(other.pk, bloc.pk)

    assert index.detach_bloc(ouvrage.pk, bloc.pk) is False
    assert Bloc.objects.filter(pk=bloc.pk).exists()
    assert not ProjectArticle.objects.filter(pk=line.pk).exists()

    assert index.detach_bloc(other.pk, bloc.pk) is True
    assert not Bloc.objects.filter(pk=bloc.pk).exists()
