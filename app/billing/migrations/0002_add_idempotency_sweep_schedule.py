"""
Add celery-beat schedule for sweeping expired idempotency entries.

This migration creates the periodic task schedule for the
sweep_expired_idempotency_entries task, which runs every hour. Web
processes sweep their own in-memory stores while serving requests.
"""

from django.db import migrations

TASK_NAME = "Sweep Expired Billing Idempotency Entries"


def create_periodic_task(apps, schema_editor):
    """Create the periodic task for the idempotency sweep."""
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    # Create interval schedule: every hour
    schedule, _ = IntervalSchedule.objects.get_or_create(
        every=1,
        period="hours",
    )

    PeriodicTask.objects.get_or_create(
        name=TASK_NAME,
        defaults={
            "task": "billing.tasks.sweep_expired_idempotency_entries",
            "interval": schedule,
            "enabled": True,
            "description": (
                "Drops expired webhook dedupe marks, replay entries and "
                "rate limit windows kept by the in-memory backends."
            ),
        },
    )


def remove_periodic_task(apps, schema_editor):
    """Remove the periodic task on migration rollback."""
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    PeriodicTask.objects.filter(name=TASK_NAME).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("billing", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_task, remove_periodic_task),
    ]
