"""
URL configuration for Metreur project.
"""

from django.contrib import admin
from django.db import connection
from django.http import JsonResponse
from django.urls import path, include
from django.conf import settings
from django.views.generic.base import RedirectView
from drf_spectacular.views import (
    SpectacularAPIView,
    SpectacularRedocView,
    SpectacularSwaggerView,
)


def health(request):
    """Liveness probe: the process answers and the database is reachable."""
    try:
        connection.ensure_connection()
    except Exception as e:
        return JsonResponse({'status': 'error', 'database': str(e)}, status=503)
    return JsonResponse({'status': 'ok'})


urlpatterns = [
    path('', RedirectView.as_view(url='/api/docs/', permanent=False), name='index'),
    path('health/', health, name='health'),

    path('admin/', admin.site.urls),

    # API v1
    path('api/v1/', include('presentation.api.v1.urls')),

    # API Documentation
    path('api/schema/', SpectacularAPIView.as_view(), name='schema'),
    path('api/docs/', SpectacularSwaggerView.as_view(url_name='schema'), name='swagger-ui'),
    path('api/redoc/', SpectacularRedocView.as_view(url_name='schema'), name='redoc'),
]

if settings.DEBUG and 'debug_toolbar' in settings.INSTALLED_APPS:
    urlpatterns = [
        path('__debug__/', include('debug_toolbar.urls')),
    ] + urlpatterns
