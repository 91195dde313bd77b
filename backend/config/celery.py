"""
Celery configuration for Metreur project.
"""

import os

from celery import Celery
from celery.schedules import crontab

# Set the default Django settings module
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')

app = Celery('metreur')

# Using a string here means the worker doesn't have to serialize
# the configuration object to child processes.
app.config_from_object('django.conf:settings', namespace='CELERY')

# Task modules live outside Django apps
app.conf.imports = (
    'application.tasks.project_tasks',
    'application.tasks.notification_tasks',
)

app.conf.task_routes = {
    'application.tasks.project_tasks.*': {'queue': 'recalculation'},
    'application.tasks.notification_tasks.*': {'queue': 'notifications'},
}

app.conf.beat_schedule = {
    'purge-expired-events': {
        'task': 'application.tasks.notification_tasks.purge_expired_events',
        'schedule': crontab(hour=3, minute=0),
    },
}
