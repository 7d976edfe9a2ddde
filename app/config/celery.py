"""
Celery configuration for the gallery backend.

Celery runs the periodic housekeeping of the upload pipeline:
- Sweeping chunk arenas left behind by abandoned uploads

The beat schedule lives in settings.CELERY_BEAT_SCHEDULE. Tasks are
auto-discovered from all installed Django apps.

Usage:
    # Define a task in any app's tasks.py:
    from celery import shared_task

    @shared_task
    def cleanup_abandoned_arenas():
        ...

    # Call the task asynchronously:
    cleanup_abandoned_arenas.delay()

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import os

from celery import Celery

# Set the default Django settings module for the Celery worker
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

# Celery will look for a tasks.py module in each installed app
app.autodiscover_tasks()
