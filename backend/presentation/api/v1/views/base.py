"""
Base Views.

Common view mixins and base classes.
"""

from django.db.models import Q
from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.exceptions import MethodNotAllowed
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from domain.shared.exceptions import EntityNotFoundException
from infrastructure.persistence.models import Ouvrage, Project


def visible_projects(user):
    """Projects a user may read: all for admins, else created or joined."""
    queryset = Project.objects.all()
    if user.is_admin:
        return queryset
    return queryset.filter(
        Q(created_by=user) | Q(team_members__user=user)
    ).distinct()


def project_of_ouvrage(ouvrage_id):
    """Project id owning an ouvrage."""
    try:
        project_id = (
            Ouvrage.objects.filter(pk=ouvrage_id)
            .values_list('project_lot__project_id', flat=True)
            .first()
        )
    except (ValueError, TypeError):
        project_id = None
    if project_id is None:
        raise EntityNotFoundException('Ouvrage', ouvrage_id)
    return project_id


class HistoryViewMixin:
    """
    Mixin for accessing object history.
    """

    @action(detail=True, methods=['get'])
    def history(self, request, pk=None):
        """Get object history."""
        obj = self.get_object()

        if not hasattr(obj, 'history'):
            return Response(
                {'error': "Historique indisponible pour cet objet"},
                status=status.HTTP_400_BAD_REQUEST
            )

        history = obj.history.all()[:50]
        data = [{
            'id': h.history_id,
            'date': h.history_date,
            'user': str(h.history_user) if h.history_user else None,
            'type': h.history_type,
            'changes': h.history_change_reason,
        } for h in history]

        return Response(data)


class ServiceBackedViewSet(viewsets.ModelViewSet):
    """
    Viewset whose writes go through the hierarchy service.

    Reads use ``get_queryset``; ``create``/``partial_update``/``destroy``
    are implemented by subclasses. PUT is only accepted by extra actions
    that declare it; the standard detail route refuses it.
    """
    permission_classes = [IsAuthenticated]
    http_method_names = ['get', 'post', 'put', 'patch', 'delete', 'head', 'options']

    def get_serializer_class(self):
        """
        Return different serializers per action.

        Override `serializer_classes` dict in subclass:
        serializer_classes = {
            'create': CreateSerializer,
            'default': DetailSerializer,
        }
        """
        serializer_classes = getattr(self, 'serializer_classes', {})
        if self.action in serializer_classes:
            return serializer_classes[self.action]
        if 'default' in serializer_classes:
            return serializer_classes['default']
        return super().get_serializer_class()

    def update(self, request, *args, **kwargs):
        raise MethodNotAllowed(request.method)

    def get_service(self):
        from application.services.hierarchy import HierarchyService

        return HierarchyService(self.request.user)

    def validated(self, serializer_class, data=None, partial=False):
        serializer = serializer_class(data=self.request.data if data is None else data, partial=partial)
        serializer.is_valid(raise_exception=True)
        return serializer.validated_data

    def read_response(self, instance, status_code=status.HTTP_200_OK):
        serializer_classes = getattr(self, 'serializer_classes', {})
        serializer_class = serializer_classes.get('default', self.serializer_class)
        return Response(serializer_class(instance, context=self.get_serializer_context()).data, status=status_code)
