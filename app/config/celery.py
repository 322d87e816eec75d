"""
Celery configuration for the billing service.

Celery runs the periodic billing maintenance tasks (idempotency and rate
limit sweeps) scheduled through django-celery-beat's DatabaseScheduler.
Webhooks are reconciled synchronously in the request and do not go
through the queue.

Tasks are auto-discovered from the tasks.py module of every installed app.

Usage:
    celery -A config worker -l info
    celery -A config beat -l info

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import os

from celery import Celery

# Set the default Django settings module for the Celery worker
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("billing")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()
