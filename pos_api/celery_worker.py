"""
Celery Worker Configuration
Sets up Celery with Redis as message broker and result backend.

Z report exports go to their own queue so a busy default queue never
delays closing paperwork:

    celery -A pos_api.celery_worker worker -Q pos_reports,pos_default
"""

from celery import Celery

from pos_api.core.config import get_settings

settings = get_settings()

celery_app = Celery(
    'pos_worker',
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=['pos_api.tasks']
)

celery_app.conf.update(
    # Task settings
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,

    # Worker settings
    worker_prefetch_multiplier=1,  # Process one task at a time
    worker_concurrency=4,

    # Result settings
    result_expires=3600,

    # Task execution settings
    task_acks_late=True,  # Acknowledge task after completion
    task_reject_on_worker_lost=True,  # Requeue task if worker dies

    broker_connection_retry_on_startup=True,

    # Routing
    task_default_queue='pos_default',
    task_routes={
        'pos_api.tasks.export_z_report_to_excel': {'queue': settings.report_queue},
        'pos_api.tasks.clear_z_report_file': {'queue': settings.report_queue},
    },
)


if __name__ == '__main__':
    celery_app.start()
