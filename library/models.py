from pathlib import Path

from django.db import models
from django.db.models import Q


class LiveGameManager(models.Manager):
    """Default manager: hides soft-deleted games."""

    def get_queryset(self):
        return super().get_queryset().filter(deleted_at__isnull=True)


class Game(models.Model):
    """A game file known to the library, identified by its content checksum.

    Records are never hard-deleted by the indexer. When a file disappears
    from disk its record gets ``deleted_at``; if the same content shows up
    again the record is revived with its original id.
    """

    title = models.CharField(max_length=255)  # "Hollow Knight"
    file_path = models.CharField(max_length=1024)  # Absolute path on disk
    checksum = models.CharField(max_length=40, db_index=True)  # SHA-1 hex
    size = models.BigIntegerField(default=0)  # Bytes, as of the last scan

    # Parsed from the filename
    version = models.CharField(max_length=50, blank=True)  # "v1.5"
    release_year = models.IntegerField(null=True, blank=True)
    early_access = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    deleted_at = models.DateTimeField(null=True, blank=True, db_index=True)

    objects = LiveGameManager()
    all_objects = models.Manager()

    class Meta:
        ordering = ["title", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["checksum"],
                condition=Q(deleted_at__isnull=True),
                name="unique_live_game_checksum",
            ),
        ]

    def __str__(self) -> str:
        return self.title

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def file_name(self) -> str:
        return Path(self.file_path).name

    def to_dict(self) -> dict:
        """JSON-serialisable representation used by the API."""
        return {
            "id": self.pk,
            "title": self.title,
            "file_path": self.file_path,
            "checksum": self.checksum,
            "size": self.size,
            "version": self.version,
            "release_year": self.release_year,
            "early_access": self.early_access,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "deleted_at": self.deleted_at.isoformat() if self.deleted_at else None,
        }


class IndexJob(models.Model):
    """Tracks reindex runs and their results."""

    STATUS_PENDING = "pending"
    STATUS_RUNNING = "running"
    STATUS_COMPLETED = "completed"
    STATUS_FAILED = "failed"

    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_RUNNING, "Running"),
        (STATUS_COMPLETED, "Completed"),
        (STATUS_FAILED, "Failed"),
    ]

    TRIGGER_API = "api"
    TRIGGER_COMMAND = "command"
    TRIGGER_SCHEDULE = "schedule"

    TRIGGER_CHOICES = [
        (TRIGGER_API, "API request"),
        (TRIGGER_COMMAND, "Management command"),
        (TRIGGER_SCHEDULE, "Scheduled"),
    ]

    task_id = models.CharField(max_length=64, blank=True)  # Procrastinate job id
    trigger = models.CharField(
        max_length=20, choices=TRIGGER_CHOICES, default=TRIGGER_API
    )
    status = models.CharField(
        max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING
    )
    roots = models.JSONField(default=list)

    # Results (populated on completion)
    files_seen = models.IntegerField(default=0)
    created = models.IntegerField(default=0)
    revived = models.IntegerField(default=0)
    renamed = models.IntegerField(default=0)
    deleted = models.IntegerField(default=0)
    unchanged = models.IntegerField(default=0)
    failures = models.JSONField(default=list)  # Unreadable files
    conflicts = models.JSONField(default=list)  # Duplicate content
    store_errors = models.JSONField(default=list)  # Failed registry writes

    started_at = models.DateTimeField(auto_now_add=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-started_at", "-id"]

    def __str__(self) -> str:
        return f"IndexJob {self.pk} ({self.status})"

    @property
    def total_duration(self):
        """Return total execution duration (for finished jobs)."""
        if self.completed_at:
            return self.completed_at - self.started_at
        return None

    def to_dict(self) -> dict:
        return {
            "id": self.pk,
            "trigger": self.trigger,
            "status": self.status,
            "roots": self.roots,
            "files_seen": self.files_seen,
            "created": self.created,
            "revived": self.revived,
            "renamed": self.renamed,
            "deleted": self.deleted,
            "unchanged": self.unchanged,
            "failures": self.failures,
            "conflicts": self.conflicts,
            "store_errors": self.store_errors,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": (
                self.completed_at.isoformat() if self.completed_at else None
            ),
        }


class IndexLock(models.Model):
    """Single row locked with SELECT ... FOR UPDATE while a reindex is claimed.

    Every process (web, CLI, worker) claims its IndexJob under this row lock,
    so at most one job is RUNNING across the whole deployment.
    """

    SINGLETON_ID = 1

    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return "IndexLock"
