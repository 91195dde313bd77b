"""
Project Views.

API views for projects, their team, tree, export and event history.
"""

from django.http import HttpResponse
from django.utils import timezone
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import filters, status
from rest_framework.decorators import action
from rest_framework.response import Response

from application.services.export import export_project_workbook
from application.services.tree import build_project_tree
from infrastructure.persistence.models import Event, ProjectTeamMember
from presentation.api.pagination import EventPagination

from ..serializers.events import EventSerializer
from ..serializers.project import (
    ProjectDetailSerializer,
    ProjectListSerializer,
    ProjectTeamMemberSerializer,
    ProjectWriteSerializer,
    ReorderSerializer,
    TeamUpdateSerializer,
)
from .base import HistoryViewMixin, ServiceBackedViewSet, visible_projects

XLSX_CONTENT_TYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'


class ProjectViewSet(HistoryViewMixin, ServiceBackedViewSet):
    """
    ViewSet for projects.

    Endpoints:
    - GET /projects/ - projects visible to the user
    - POST /projects/ - create project
    - GET /projects/{id}/ - project details
    - PATCH /projects/{id}/ - update name, description or margins
    - DELETE /projects/{id}/ - delete project and its hierarchy
    - GET|PUT /projects/{id}/team/ - read or replace the team
    - GET /projects/{id}/tree/ - priced tree with designations
    - GET /projects/{id}/export/ - tree as an .xlsx workbook
    - POST /projects/{id}/reorder/ - reorder lots, ouvrages or blocs
    - GET /projects/{id}/events/ - event history
    - GET /projects/{id}/history/ - row history
    """

    serializer_classes = {
        'list': ProjectListSerializer,
        'create': ProjectWriteSerializer,
        'partial_update': ProjectWriteSerializer,
        'default': ProjectDetailSerializer,
    }
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    search_fields = ['nom', 'description']
    ordering_fields = ['nom', 'created_at', 'prix_vente']
    ordering = ['-created_at']

    def get_queryset(self):
        return visible_projects(self.request.user).select_related('created_by')

    def create(self, request, *args, **kwargs):
        data = self.validated(ProjectWriteSerializer)
        project = self.get_service().create_project(**data)
        return self.read_response(project, status.HTTP_201_CREATED)

    def partial_update(self, request, *args, **kwargs):
        data = dict(self.validated(ProjectWriteSerializer, partial=True))
        team = data.pop('team', None)
        service = self.get_service()
        project = service.update_project(kwargs['pk'], **data) if data else None
        if team is not None:
            service.update_team(kwargs['pk'], team)
        if project is None:
            project = self.get_object()
        return self.read_response(project)

    def destroy(self, request, *args, **kwargs):
        self.get_service().delete_project(kwargs['pk'])
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=['get', 'put'])
    def team(self, request, pk=None):
        """Get or replace the project team."""
        if request.method == 'PUT':
            data = self.validated(TeamUpdateSerializer)
            members = self.get_service().update_team(pk, data['members'], muted=data['muted'])
        else:
            project = self.get_object()
            members = ProjectTeamMember.objects.filter(project=project).select_related('user')
        return Response(ProjectTeamMemberSerializer(members, many=True).data)

    @action(detail=True, methods=['get'])
    def tree(self, request, pk=None):
        """Get the priced project tree."""
        return Response(build_project_tree(self.get_object()))

    @action(detail=True, methods=['get'])
    def export(self, request, pk=None):
        """Download the project as an Excel workbook."""
        project = self.get_object()
        content = export_project_workbook(project)
        filename = f"metre_{project.pk}_{timezone.now().strftime('%Y%m%d_%H%M%S')}.xlsx"
        response = HttpResponse(content, content_type=XLSX_CONTENT_TYPE)
        response['Content-Disposition'] = f'attachment; filename="{filename}"'
        return response

    @action(detail=True, methods=['post'])
    def reorder(self, request, pk=None):
        """Reorder siblings and renumber their designations."""
        data = self.validated(ReorderSerializer)
        order = self.get_service().reorder(pk, data['kind'], data['ordered_ids'], parent_id=data['parent_id'])
        return Response({'kind': data['kind'], 'ordered_ids': order})

    @action(detail=True, methods=['get'])
    def events(self, request, pk=None):
        """Event history of the project, newest first."""
        project = self.get_object()
        queryset = Event.objects.filter(project=project).select_related('actor')

        action_filter = request.query_params.get('action')
        if action_filter:
            queryset = queryset.filter(action=action_filter)
        if request.query_params.get('include_system') not in ('1', 'true'):
            queryset = queryset.filter(is_system_event=False)

        paginator = EventPagination()
        page = paginator.paginate_queryset(queryset, request, view=self)
        return paginator.get_paginated_response(EventSerializer(page, many=True).data)
