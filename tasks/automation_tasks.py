"""
Celery tasks for the durable automation queue
"""
from sqlalchemy.exc import SQLAlchemyError

from celery_worker import celery
from logging_config import get_logger

logger = get_logger(__name__)


@celery.task(bind=True, max_retries=3, default_retry_delay=60)
def run_automation_scheduler(self, limit=None):
    """
    Claim due automation jobs and send them.

    Jobs whose lease expires without an ack are claimed again on a later sweep.
    """
    from flask import current_app

    try:
        automation_service = current_app.services.get('automation')
        stats = automation_service.run_scheduler(limit=limit)
        return stats
    except SQLAlchemyError as e:
        logger.error("Automation sweep failed", error=str(e))
        raise self.retry(exc=e)
