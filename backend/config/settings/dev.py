"""
Development settings for Metreur project.
"""

import os

from .base import *

# =============================================================================
# DEBUG
# =============================================================================
DEBUG = True

# =============================================================================
# ALLOWED HOSTS
# =============================================================================
ALLOWED_HOSTS = ['*']

# =============================================================================
# INSTALLED APPS - Development
# =============================================================================
INSTALLED_APPS += [
    'debug_toolbar',
    'django_extensions',
]

# =============================================================================
# MIDDLEWARE - Development
# =============================================================================
MIDDLEWARE = ['debug_toolbar.middleware.DebugToolbarMiddleware'] + MIDDLEWARE

INTERNAL_IPS = ['127.0.0.1', 'localhost']

DEBUG_TOOLBAR_CONFIG = {
    'SHOW_TOOLBAR_CALLBACK': lambda request: DEBUG and not request.path.startswith('/api/'),
    'DISABLE_PANELS': {
        'debug_toolbar.panels.cache.CachePanel',
        'debug_toolbar.panels.profiling.ProfilingPanel',
    },
}

# =============================================================================
# CORS - Development (Allow all)
# =============================================================================
CORS_ALLOW_ALL_ORIGINS = True

# =============================================================================
# DATABASE - Development
# =============================================================================
# DEV_SQLITE=True runs without PostgreSQL
if config('DEV_SQLITE', default=False, cast=bool):
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': BASE_DIR / 'db.sqlite3',
        }
    }

# =============================================================================
# LOGGING - Development
# =============================================================================
LOGGING['root']['level'] = 'DEBUG'
LOGGING['loggers']['metreur']['level'] = 'DEBUG'
LOGGING['loggers']['application']['level'] = 'DEBUG'

# =============================================================================
# REDIS / CELERY / CHANNELS - Development Override (No Redis required)
# =============================================================================
CHANNEL_LAYERS = {
    'default': {
        "BACKEND": "channels.layers.InMemoryChannelLayer"
    }
}

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'metreur-dev-cache',
    }
}

REST_FRAMEWORK['DEFAULT_THROTTLE_CLASSES'] = []
REST_FRAMEWORK['DEFAULT_THROTTLE_RATES'] = {}

# Filesystem broker so a worker can run without Redis
CELERY_BROKER_URL = 'filesystem://'
CELERY_RESULT_BACKEND = None
# Run reconciliation inline when no worker is started
CELERY_TASK_ALWAYS_EAGER = config('CELERY_EAGER', default=False, cast=bool)
CELERY_BROKER_TRANSPORT_OPTIONS = {
    'data_folder_in': os.path.join(BASE_DIR, 'broker', 'out'),
    'data_folder_out': os.path.join(BASE_DIR, 'broker', 'out'),
    'data_folder_processed': os.path.join(BASE_DIR, 'broker', 'processed'),
}
for folder in CELERY_BROKER_TRANSPORT_OPTIONS.values():
    os.makedirs(folder, exist_ok=True)

# Push delivery is noisy against local browsers; keep requests short
PUSH_REQUEST_TIMEOUT = 2
