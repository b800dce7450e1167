import os

from celery import Celery
from celery.signals import task_failure, task_retry, task_success

from core.logging_config import get_logger

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'involuck.settings')

logger = get_logger('involuck.celery')

app = Celery('involuck')
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()


@task_failure.connect
def task_failure_handler(sender=None, task_id=None, exception=None, args=None, **kwargs):
    """Log task failures with the task arguments."""
    logger.error(
        "Task failed",
        task_id=task_id,
        task_name=sender.name,
        task_args=list(args or []),
        exception=str(exception),
    )


@task_success.connect
def task_success_handler(sender=None, result=None, **kwargs):
    logger.info("Task completed", task_id=sender.request.id, task_name=sender.name, result=result)


@task_retry.connect
def task_retry_handler(sender=None, request=None, reason=None, **kwargs):
    logger.warning(
        "Task retrying",
        task_id=getattr(request, 'id', None),
        task_name=sender.name,
        retries=getattr(request, 'retries', None),
        retry_reason=str(reason),
    )
