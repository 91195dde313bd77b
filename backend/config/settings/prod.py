"""
Production settings for Metreur project.

Runs behind Nginx with TLS; Redis backs the cache, the Channels layer
and the Celery broker.
"""

from .base import *

# =============================================================================
# SECURITY
# =============================================================================
DEBUG = False

SECRET_KEY = config('SECRET_KEY')

SECURE_CONTENT_TYPE_NOSNIFF = True
X_FRAME_OPTIONS = 'DENY'
SECURE_HSTS_SECONDS = 31536000
SECURE_HSTS_INCLUDE_SUBDOMAINS = True

SECURE_PROXY_SSL_HEADER = ('HTTP_X_FORWARDED_PROTO', 'https')
SECURE_SSL_REDIRECT = config('SECURE_SSL_REDIRECT', default=True, cast=bool)

SESSION_COOKIE_SECURE = True
CSRF_COOKIE_SECURE = True
CSRF_TRUSTED_ORIGINS = config('CSRF_TRUSTED_ORIGINS', default='', cast=Csv())

ALLOWED_HOSTS = config('ALLOWED_HOSTS', cast=Csv())

# =============================================================================
# DATABASE - Production
# =============================================================================
DATABASES['default']['CONN_MAX_AGE'] = config('DB_CONN_MAX_AGE', default=300, cast=int)
DATABASES['default']['OPTIONS'] = {
    'connect_timeout': 10,
    'sslmode': config('DB_SSL_MODE', default='prefer'),
}

# =============================================================================
# STATIC FILES - Production
# =============================================================================
STORAGES = {
    'default': {'BACKEND': 'django.core.files.storage.FileSystemStorage'},
    'staticfiles': {'BACKEND': 'django.contrib.staticfiles.storage.ManifestStaticFilesStorage'},
}

# =============================================================================
# CHANNELS - Production
# =============================================================================
# Notification sockets stay open for hours; drop slow consumers early
CHANNEL_LAYERS['default']['CONFIG'].update({
    'capacity': config('CHANNEL_LAYER_CAPACITY', default=500, cast=int),
    'expiry': 30,
})

# =============================================================================
# CELERY - Production
# =============================================================================
CELERY_WORKER_PREFETCH_MULTIPLIER = 1
CELERY_TASK_ACKS_LATE = True

# =============================================================================
# SENTRY (Error Tracking)
# =============================================================================
SENTRY_DSN = config('SENTRY_DSN', default='')
if SENTRY_DSN:
    import logging

    import sentry_sdk
    from sentry_sdk.integrations.celery import CeleryIntegration
    from sentry_sdk.integrations.django import DjangoIntegration
    from sentry_sdk.integrations.logging import LoggingIntegration
    from sentry_sdk.integrations.redis import RedisIntegration

    sentry_sdk.init(
        dsn=SENTRY_DSN,
        environment=config('SENTRY_ENVIRONMENT', default='production'),
        integrations=[
            DjangoIntegration(),
            CeleryIntegration(),
            RedisIntegration(),
            # Delivery and recalculation warnings stay breadcrumbs
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
        ],
        traces_sample_rate=config('SENTRY_TRACES_SAMPLE_RATE', default=0.1, cast=float),
        send_default_pii=False,
    )

# =============================================================================
# LOGGING - Production
# =============================================================================
LOGGING['handlers']['file']['filename'] = config('LOG_FILE', default='/var/log/metreur/metreur.log')
