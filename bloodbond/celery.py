"""
Celery configuration for BloodBond

Handles background tasks including:
- Notification emails
- Request expiry and lock release
- Fallback runs for unmatched requests
- Eligibility reminders and data cleanup
"""

import os
from celery import Celery
from celery.schedules import crontab

# Set the default Django settings module for the 'celery' program.
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'bloodbond.settings')

app = Celery('bloodbond')

# Broker, backend and eager mode come from CELERY_* settings
app.config_from_object('django.conf:settings', namespace='CELERY')

app.conf.update(
    # Task settings
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    enable_utc=True,

    # Worker settings
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    worker_max_tasks_per_child=1000,

    # Beat scheduler settings; the fallback entry is kept in the database
    beat_scheduler='django_celery_beat.schedulers:DatabaseScheduler',

    # Task routing
    task_routes={
        'core.tasks.send_notification_email': {'queue': 'emails'},
        'core.tasks.notify_newly_eligible_donors': {'queue': 'notifications'},
        'core.tasks.run_fallback_system': {'queue': 'matching'},
        'core.tasks.cleanup_*': {'queue': 'cleanup'},
    },
    task_default_queue='default',

    # Retry settings
    task_soft_time_limit=300,  # 5 minutes
    task_time_limit=600,       # 10 minutes
    task_default_retry_delay=60,

    result_expires=3600,

    worker_hijack_root_logger=False,
    worker_log_format='[%(asctime)s: %(levelname)s/%(processName)s] %(message)s',
    worker_task_log_format='[%(asctime)s: %(levelname)s/%(processName)s][%(task_name)s(%(task_id)s)] %(message)s',
)

# Auto-discover tasks from installed apps
app.autodiscover_tasks()

app.conf.beat_schedule = {
    # Expire pending requests past their deadline every 15 minutes
    'expire-overdue-requests': {
        'task': 'core.tasks.expire_overdue_requests',
        'schedule': 15 * 60,
    },

    # Release donor locks that timed out
    'release-expired-locks': {
        'task': 'core.tasks.release_expired_locks',
        'schedule': 5 * 60,
    },

    # Tell donors whose cooldown ended today
    'notify-newly-eligible-donors': {
        'task': 'core.tasks.notify_newly_eligible_donors',
        'schedule': crontab(hour=9, minute=0),
        'options': {'queue': 'notifications'},
    },

    # Reconcile donor totals nightly
    'sync-donation-counts': {
        'task': 'core.tasks.sync_donation_counts',
        'schedule': crontab(hour=2, minute=30),
    },

    # Drop read notifications older than 30 days
    'cleanup-old-notifications': {
        'task': 'core.tasks.cleanup_old_notifications',
        'schedule': crontab(hour=3, minute=0, day_of_week=0),
        'options': {'queue': 'cleanup'},
    },
}
