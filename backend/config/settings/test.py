"""
Test settings for Metreur project.

Used by pytest-django (see ``[tool.pytest.ini_options]``).
"""

from .base import *

DEBUG = False

SECRET_KEY = 'metreur-test-secret'

ALLOWED_HOSTS = ['*']

DATABASES = {
    'default': {
        'ENGINE': config('TEST_DB_ENGINE', default='django.db.backends.sqlite3'),
        'NAME': config('TEST_DB_NAME', default=':memory:'),
        'USER': config('DB_USER', default=''),
        'PASSWORD': config('DB_PASSWORD', default=''),
        'HOST': config('DB_HOST', default=''),
        'PORT': config('DB_PORT', default=''),
    }
}

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'metreur-test-cache',
    }
}

CHANNEL_LAYERS = {
    'default': {
        'BACKEND': 'channels.layers.InMemoryChannelLayer',
    }
}

PASSWORD_HASHERS = [
    'django.contrib.auth.hashers.MD5PasswordHasher',
]

REST_FRAMEWORK['DEFAULT_THROTTLE_CLASSES'] = []
REST_FRAMEWORK['DEFAULT_THROTTLE_RATES'] = {}

CELERY_BROKER_URL = 'memory://'
CELERY_RESULT_BACKEND = 'cache+memory://'
CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True

LOGGING['handlers'].pop('file')
# Everything goes through the root logger, where pytest's caplog listens
for logger_config in LOGGING['loggers'].values():
    logger_config['handlers'] = []
    logger_config['propagate'] = True
