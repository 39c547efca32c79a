"""Background tasks using Procrastinate task queue."""

import logging

from django.conf import settings
from django.utils import timezone
from procrastinate.contrib.django import app
from procrastinate.exceptions import AlreadyEnqueued

from .exceptions import ReindexInProgress
from .models import IndexJob
from .queues import PRIORITY_LOW, QUEUE_INDEX, REINDEX_LOCK
from .reconcile import reindex

logger = logging.getLogger(__name__)


@app.task(queue=QUEUE_INDEX, lock=REINDEX_LOCK)
def run_reindex(index_job_id: int) -> dict:
    """Background task to scan the library and reconcile the registry."""
    job = IndexJob.objects.get(pk=index_job_id)

    try:
        result = reindex(trigger=job.trigger, job=job)
    except ReindexInProgress as e:
        # Another pass (e.g. an API request in this process) got there first
        job.status = IndexJob.STATUS_FAILED
        job.failures = [e.as_dict()]
        job.completed_at = timezone.now()
        job.save()
        logger.info("Skipped reindex job %s: %s", job.pk, e)
        return {"skipped": True}

    return result.summary()


def queue_reindex(trigger: str = IndexJob.TRIGGER_API, priority: int = PRIORITY_LOW):
    """Create an IndexJob and defer a reindex for it.

    Returns the IndexJob, or None when a reindex is already queued.
    """
    job = IndexJob.objects.create(trigger=trigger, task_id="pending")
    try:
        task_id = run_reindex.configure(
            priority=priority, queueing_lock=REINDEX_LOCK
        ).defer(index_job_id=job.pk)
    except AlreadyEnqueued:
        job.delete()
        logger.debug("Reindex already queued, not queueing another")
        return None

    job.task_id = str(task_id)
    job.save()
    return job


@app.periodic(cron="*/30 * * * *")
@app.task(queue=QUEUE_INDEX, queueing_lock="reindex_scheduler")
def scheduled_reindex(timestamp) -> dict:
    """Queue a reindex every 30 minutes when INDEX_SCHEDULE_ENABLED is set."""
    if not getattr(settings, "INDEX_SCHEDULE_ENABLED", False):
        return {"queued": False}

    active = IndexJob.objects.filter(
        status__in=[IndexJob.STATUS_PENDING, IndexJob.STATUS_RUNNING]
    ).exists()
    if active:
        logger.debug("Skipping scheduled reindex: a reindex is already active")
        return {"queued": False}

    job = queue_reindex(trigger=IndexJob.TRIGGER_SCHEDULE)
    if job is not None:
        logger.info("Triggered scheduled reindex (job %s)", job.pk)
    return {"queued": job is not None}
