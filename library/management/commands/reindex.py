"""Management command to reindex the game library."""

from django.core.management.base import BaseCommand, CommandError

from library.exceptions import ReindexInProgress
from library.models import IndexJob
from library.reconcile import reindex


class Command(BaseCommand):
    help = "Scan the library roots and reconcile the game registry"

    def add_arguments(self, parser):
        parser.add_argument(
            "--root",
            action="append",
            dest="roots",
            help="Directory to scan (repeatable, defaults to GAME_LIBRARY_ROOTS)",
        )

    def handle(self, *args, **options):
        roots = options["roots"]

        self.stdout.write("Reindexing: " + ", ".join(roots or ["(configured roots)"]))
        self.stdout.write("")

        try:
            result = reindex(roots=roots, trigger=IndexJob.TRIGGER_COMMAND)
        except ReindexInProgress as e:
            raise CommandError(str(e))

        job = result.job
        self.stdout.write(f"Files scanned: {job.files_seen}")
        self.stdout.write(self.style.SUCCESS(f"Created: {job.created}"))
        self.stdout.write(f"Revived: {job.revived}")
        self.stdout.write(f"Renamed: {job.renamed}")
        self.stdout.write(f"Deleted: {job.deleted}")
        self.stdout.write(f"Unchanged: {job.unchanged}")

        problems = job.failures + job.conflicts + job.store_errors
        if problems:
            self.stdout.write("")
            self.stdout.write(self.style.WARNING(f"Problems: {len(problems)}"))
            for problem in problems[:10]:  # Show first 10 problems
                self.stdout.write(
                    f"  - [{problem['kind']}] {problem.get('path', '')}: "
                    f"{problem['message']}"
                )
            if len(problems) > 10:
                self.stdout.write(f"  ... and {len(problems) - 10} more")

        self.stdout.write("")
        self.stdout.write(f"Live games: {len(result.games)}")
        self.stdout.write("Done!")
