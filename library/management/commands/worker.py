"""Custom worker command with orphaned job cleanup."""

import logging

from django.core.management import call_command
from django.core.management.base import BaseCommand
from django.db import OperationalError, ProgrammingError
from django.utils import timezone

from library.models import IndexJob

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Start Procrastinate worker with orphaned job cleanup"

    def add_arguments(self, parser):
        # Accept all arguments that procrastinate worker accepts
        parser.add_argument("--concurrency", type=int, default=1)
        parser.add_argument("--queues", type=str, default="")
        parser.add_argument("--name", type=str, default="")

    def handle(self, *args, **options):
        # Cleanup orphaned jobs from crashed worker
        cleaned = self.cleanup_orphaned_jobs()
        if cleaned:
            logger.info(
                "Marked %d orphaned index job(s) as FAILED from previous worker crash",
                cleaned,
            )

        # Build args for procrastinate worker
        worker_args = ["worker"]
        if options["concurrency"]:
            worker_args.extend(["--concurrency", str(options["concurrency"])])
        if options["queues"]:
            worker_args.extend(["--queues", options["queues"]])
        if options["name"]:
            worker_args.extend(["--name", options["name"]])

        # Delegate to procrastinate worker
        call_command("procrastinate", *worker_args)

    def cleanup_orphaned_jobs(self) -> int:
        """Mark all RUNNING index jobs as FAILED - they're orphaned from a crash."""
        try:
            return IndexJob.objects.filter(status=IndexJob.STATUS_RUNNING).update(
                status=IndexJob.STATUS_FAILED,
                failures=[
                    {"kind": "reindex_failed", "message": "Worker crashed during execution"}
                ],
                completed_at=timezone.now(),
            )
        except (OperationalError, ProgrammingError):
            # Tables don't exist yet (migrations not run)
            logger.debug("Skipping orphan cleanup - tables not yet created")
            return 0
