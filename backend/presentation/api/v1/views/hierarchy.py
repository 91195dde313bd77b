"""
Hierarchy Views.

Lots, ouvrages, blocs and article lines. Reads are scoped to the projects
the user can see; every write goes through HierarchyService.
"""

from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import filters, status
from rest_framework.decorators import action
from rest_framework.response import Response

from domain.shared.exceptions import EntityNotFoundException, ValidationException
from infrastructure.persistence.models import Bloc, Ouvrage, ProjectArticle, ProjectLot

from ..serializers.hierarchy import (
    BlocAttachSerializer,
    BlocCreateSerializer,
    BlocSerializer,
    BlocUpdateSerializer,
    OuvrageCreateSerializer,
    OuvrageDuplicateSerializer,
    OuvrageSerializer,
    OuvrageUpdateSerializer,
    ProjectArticleCreateSerializer,
    ProjectArticleSerializer,
    ProjectArticleUpdateSerializer,
    ProjectLotCreateSerializer,
    ProjectLotSerializer,
)
from .base import ServiceBackedViewSet, project_of_ouvrage, visible_projects


class ProjectLotViewSet(ServiceBackedViewSet):
    """
    Lots of the user's projects.

    Filter by ``?project=<uuid>``. Creating a lot with a name already used
    in the project returns the existing one.
    """

    serializer_classes = {
        'create': ProjectLotCreateSerializer,
        'default': ProjectLotSerializer,
    }
    http_method_names = ['get', 'post', 'delete', 'head', 'options']
    filter_backends = [DjangoFilterBackend, filters.OrderingFilter]
    filterset_fields = ['project']
    ordering_fields = ['position', 'designation']
    ordering = ['project', 'position']

    def get_queryset(self):
        return ProjectLot.objects.filter(
            project__in=visible_projects(self.request.user)
        ).select_related('lot')

    def create(self, request, *args, **kwargs):
        data = self.validated(ProjectLotCreateSerializer)
        project_lot = self.get_service().ensure_lot(data['project'], data['nom'])
        return self.read_response(project_lot, status.HTTP_201_CREATED)

    def destroy(self, request, *args, **kwargs):
        project_lot = self.get_object()
        self.get_service().delete_lot(project_lot.project_id, project_lot.pk)
        return Response(status=status.HTTP_204_NO_CONTENT)


class OuvrageViewSet(ServiceBackedViewSet):
    """
    Ouvrages of the user's projects.

    Filter by ``?project_lot=<id>`` or ``?project_lot__project=<uuid>``.
    """

    serializer_classes = {
        'create': OuvrageCreateSerializer,
        'partial_update': OuvrageUpdateSerializer,
        'duplicate': OuvrageDuplicateSerializer,
        'default': OuvrageSerializer,
    }
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ['project_lot', 'project_lot__project']
    search_fields = ['nom', 'designation']
    ordering_fields = ['position', 'designation', 'prix_total']
    ordering = ['project_lot', 'position']

    def get_queryset(self):
        return Ouvrage.objects.filter(
            project_lot__project__in=visible_projects(self.request.user)
        ).select_related('project_lot__lot')

    def create(self, request, *args, **kwargs):
        data = self.validated(OuvrageCreateSerializer)
        ouvrage = self.get_service().create_ouvrage(
            data['project'],
            data['nom'],
            lot_id=data['lot_id'],
            lot_nom=data['lot_nom'] or None,
            position=data['position'],
        )
        return self.read_response(ouvrage, status.HTTP_201_CREATED)

    def partial_update(self, request, *args, **kwargs):
        ouvrage = self.get_object()
        data = self.validated(OuvrageUpdateSerializer, partial=True)
        ouvrage = self.get_service().update_ouvrage(ouvrage.project_lot.project_id, ouvrage.pk, **data)
        return self.read_response(ouvrage)

    def destroy(self, request, *args, **kwargs):
        ouvrage = self.get_object()
        self.get_service().delete_ouvrage(ouvrage.project_lot.project_id, ouvrage.pk)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=['post'])
    def duplicate(self, request, pk=None):
        """Copy the ouvrage with its blocs and lines into the same lot."""
        ouvrage = self.get_object()
        data = self.validated(OuvrageDuplicateSerializer)
        copy = self.get_service().duplicate_ouvrage(ouvrage.project_lot.project_id, ouvrage.pk, nom=data['nom'])
        return self.read_response(copy, status.HTTP_201_CREATED)


class BlocViewSet(ServiceBackedViewSet):
    """
    Blocs of the user's projects.

    A bloc can sit under several ouvrages, so writes name the ouvrage:
    ``ouvrage_id`` in the body for create/update/attach, ``?ouvrage=<id>``
    for delete.
    """

    serializer_classes = {
        'create': BlocCreateSerializer,
        'partial_update': BlocUpdateSerializer,
        'attach': BlocAttachSerializer,
        'default': BlocSerializer,
    }
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    search_fields = ['nom', 'designation']
    ordering_fields = ['position', 'designation', 'pt']
    ordering = ['position', 'id']

    def get_queryset(self):
        queryset = Bloc.objects.filter(
            structures__ouvrage__project_lot__project__in=visible_projects(self.request.user)
        )
        ouvrage_id = self.request.query_params.get('ouvrage')
        if ouvrage_id and self.action == 'list':
            if not ouvrage_id.isdigit():
                return queryset.none()
            queryset = queryset.filter(structures__ouvrage_id=ouvrage_id)
        return queryset.distinct()

    def create(self, request, *args, **kwargs):
        data = dict(self.validated(BlocCreateSerializer))
        ouvrage_id = data.pop('ouvrage_id')
        bloc = self.get_service().create_bloc(project_of_ouvrage(ouvrage_id), ouvrage_id, **data)
        return self.read_response(bloc, status.HTTP_201_CREATED)

    def partial_update(self, request, *args, **kwargs):
        bloc = self.get_object()
        data = dict(self.validated(BlocUpdateSerializer, partial=True))
        ouvrage_id = data.pop('ouvrage_id', None)
        if ouvrage_id is None:
            raise ValidationException("ouvrage_id is required", field='ouvrage_id')
        bloc = self.get_service().update_bloc(project_of_ouvrage(ouvrage_id), ouvrage_id, bloc.pk, **data)
        return self.read_response(bloc)

    def destroy(self, request, *args, **kwargs):
        bloc = self.get_object()
        ouvrage_id = request.query_params.get('ouvrage')
        if not ouvrage_id:
            raise ValidationException("Query parameter 'ouvrage' is required", field='ouvrage')
        self.get_service().delete_bloc(project_of_ouvrage(ouvrage_id), ouvrage_id, bloc.pk)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=['post'])
    def attach(self, request, pk=None):
        """Reuse this bloc under another ouvrage of the same project."""
        bloc = self.get_object()
        data = self.validated(BlocAttachSerializer)
        ouvrage_id = data['ouvrage_id']
        self.get_service().attach_bloc(project_of_ouvrage(ouvrage_id), ouvrage_id, bloc.pk)
        bloc.refresh_from_db()
        return self.read_response(bloc)


class ProjectArticleViewSet(ServiceBackedViewSet):
    """
    Priced article lines.

    Filter by ``?project=<uuid>``, ``?project_lot=<id>``,
    ``?structure__ouvrage=<id>`` or ``?structure__bloc=<id>``.
    """

    serializer_classes = {
        'create': ProjectArticleCreateSerializer,
        'partial_update': ProjectArticleUpdateSerializer,
        'default': ProjectArticleSerializer,
    }
    filter_backends = [DjangoFilterBackend, filters.OrderingFilter]
    filterset_fields = ['project', 'project_lot', 'structure__ouvrage', 'structure__bloc']
    ordering_fields = ['position', 'prix_total_ht']
    ordering = ['position', 'id']

    def get_queryset(self):
        return ProjectArticle.objects.filter(
            project__in=visible_projects(self.request.user)
        ).select_related('article', 'structure')

    def create(self, request, *args, **kwargs):
        data = dict(self.validated(ProjectArticleCreateSerializer))
        ouvrage_id = data.pop('ouvrage_id')
        line = self.get_service().add_article(project_of_ouvrage(ouvrage_id), ouvrage_id, **data)
        return self.read_response(line, status.HTTP_201_CREATED)

    def partial_update(self, request, *args, **kwargs):
        line = self.get_object()
        if line.is_placeholder:
            raise EntityNotFoundException('ProjectArticle', line.pk)
        data = self.validated(ProjectArticleUpdateSerializer, partial=True)
        line = self.get_service().update_article(line.project_id, line.pk, **data)
        return self.read_response(line)

    def destroy(self, request, *args, **kwargs):
        line = self.get_object()
        self.get_service().delete_article(line.project_id, line.pk)
        return Response(status=status.HTTP_204_NO_CONTENT)
