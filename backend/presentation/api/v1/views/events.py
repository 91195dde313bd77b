"""
Notification Views.
"""

from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from application.services.fanout import mark_read, unread_count
from infrastructure.persistence.models import Notification
from presentation.api.pagination import EventPagination

from ..serializers.events import MarkReadSerializer, NotificationSerializer


class NotificationViewSet(mixins.ListModelMixin, viewsets.GenericViewSet):
    """
    Notifications of the current user.

    Endpoints:
    - GET /notifications/ - newest first (?is_read=true|false)
    - GET /notifications/unread_count/
    - POST /notifications/mark_read/ - {"ids": [...]}
    - POST /notifications/mark_all_read/
    """

    serializer_class = NotificationSerializer
    permission_classes = [IsAuthenticated]
    pagination_class = EventPagination

    def get_queryset(self):
        queryset = Notification.objects.filter(
            recipient=self.request.user
        ).select_related('event', 'event__actor')

        is_read = self.request.query_params.get('is_read')
        if is_read in ('true', '1'):
            queryset = queryset.filter(is_read=True)
        elif is_read in ('false', '0'):
            queryset = queryset.filter(is_read=False)
        return queryset

    @action(detail=False, methods=['get'])
    def unread_count(self, request):
        return Response({'unread_count': unread_count(request.user.pk)})

    @action(detail=False, methods=['post'])
    def mark_read(self, request):
        serializer = MarkReadSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        updated = mark_read(request.user.pk, serializer.validated_data['ids'])
        return Response(
            {'updated': updated, 'unread_count': unread_count(request.user.pk)},
            status=status.HTTP_200_OK,
        )

    @action(detail=False, methods=['post'])
    def mark_all_read(self, request):
        updated = mark_read(request.user.pk)
        return Response({'updated': updated, 'unread_count': 0})
