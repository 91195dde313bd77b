"""
Catalog Views.

Catalog articles are reference data: everyone reads, admins write.
"""

from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import filters, permissions, viewsets

from infrastructure.persistence.models import CatalogArticle

from ..serializers.catalog import CatalogArticleSerializer


class IsAdminOrReadOnly(permissions.BasePermission):
    """Safe methods for any authenticated user, writes for admins."""

    def has_permission(self, request, view):
        if not (request.user and request.user.is_authenticated):
            return False
        if request.method in permissions.SAFE_METHODS:
            return True
        return bool(request.user.is_admin)


class CatalogArticleViewSet(viewsets.ModelViewSet):
    """
    ViewSet for catalog articles.

    Endpoints:
    - GET /catalog/ - list (?search= on reference and name)
    - POST /catalog/ - create (admin)
    - GET /catalog/{id}/ - details
    - PATCH /catalog/{id}/ - update (admin)
    - DELETE /catalog/{id}/ - delete (admin, refused while lines use it)
    """

    queryset = CatalogArticle.objects.all()
    serializer_class = CatalogArticleSerializer
    permission_classes = [IsAdminOrReadOnly]
    http_method_names = ['get', 'post', 'patch', 'delete', 'head', 'options']

    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ['unite']
    search_fields = ['reference', 'nom']
    ordering_fields = ['reference', 'nom', 'prix_unitaire']
    ordering = ['reference']
