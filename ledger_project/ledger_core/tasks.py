import datetime
import logging

from celery import shared_task
from django.utils import timezone

logger = logging.getLogger(__name__)


@shared_task  # register this function as a Celery task
def process_recurring_entries(run_date=None, dry_run=False):
    """Daily beat job: generate every recurring entry due today."""
    # import lazily to avoid circular imports at module import time
    from .services.recurring import process_due_templates

    # run_date arrives as an ISO string (json serializer)
    today = datetime.date.fromisoformat(run_date) if run_date else timezone.localdate()
    summary = process_due_templates(today, dry_run=dry_run)
    logger.info(
        "Recurring task done",
        extra={"run_date": str(today), "failed": summary["failed"]},
    )
    return summary
