"""
API v1 URL Configuration.

All API endpoints for version 1.
"""

from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views.users import (
    AuthViewSet,
    UserViewSet,
)
from .views.catalog import CatalogArticleViewSet
from .views.project import ProjectViewSet
from .views.hierarchy import (
    ProjectLotViewSet,
    OuvrageViewSet,
    BlocViewSet,
    ProjectArticleViewSet,
)
from .views.events import NotificationViewSet

# Create router
router = DefaultRouter()

# Auth & Users
router.register(r'auth', AuthViewSet, basename='auth')
router.register(r'users', UserViewSet, basename='users')

# Catalog
router.register(r'catalog', CatalogArticleViewSet, basename='catalog')

# Projects
router.register(r'projects', ProjectViewSet, basename='projects')

# Hierarchy
router.register(r'lots', ProjectLotViewSet, basename='lots')
router.register(r'ouvrages', OuvrageViewSet, basename='ouvrages')
router.register(r'blocs', BlocViewSet, basename='blocs')
router.register(r'articles', ProjectArticleViewSet, basename='articles')

# Notifications
router.register(r'notifications', NotificationViewSet, basename='notifications')

app_name = 'api_v1'

urlpatterns = [
    path('', include(router.urls)),
]
