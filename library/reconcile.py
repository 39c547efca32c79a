"""Reconciliation of a library scan against the game registry.

The engine compares what is on disk (file descriptors keyed by checksum)
with what the registry knows and produces a MutationPlan: creations,
revivals of soft-deleted games, renames and soft-deletions. Applying the
plan is a separate step so the plan can be inspected, logged and retried.
"""

import logging
import os
import threading
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Iterable, Optional

from django.conf import settings
from django.db import DatabaseError, transaction
from django.utils import timezone

from .exceptions import DuplicateContentError, ReindexInProgress, StoreWriteError
from .models import Game, IndexJob, IndexLock
from .registry import GameRegistry
from .scanner import FileDescriptor, LibraryScanner, ScanFailure

logger = logging.getLogger(__name__)

CREATE = "create"
REVIVE = "revive"
RENAME = "rename"
SOFT_DELETE = "soft_delete"

# Order in which mutations are written to the registry
APPLY_ORDER = [SOFT_DELETE, RENAME, REVIVE, CREATE]

# Fast path for concurrent passes inside one process; _claim_job covers the rest
_reindex_lock = threading.Lock()


@dataclass(frozen=True)
class Mutation:
    """A single registry change."""

    action: str
    checksum: str
    path: str
    game_id: Optional[int] = None
    previous_path: str = ""
    descriptor: Optional[FileDescriptor] = None

    def as_dict(self) -> dict:
        data = {"action": self.action, "checksum": self.checksum, "path": self.path}
        if self.game_id is not None:
            data["game_id"] = self.game_id
        if self.previous_path:
            data["previous_path"] = self.previous_path
        return data


@dataclass
class MutationPlan:
    mutations: list[Mutation] = field(default_factory=list)
    conflicts: list[DuplicateContentError] = field(default_factory=list)
    unchanged: int = 0

    def __len__(self) -> int:
        return len(self.mutations)

    @property
    def is_empty(self) -> bool:
        return not self.mutations

    def by_action(self, action: str) -> list[Mutation]:
        return [m for m in self.mutations if m.action == action]

    def ordered(self) -> list[Mutation]:
        """Mutations in apply order: deletions first, creations last."""
        return sorted(self.mutations, key=lambda m: APPLY_ORDER.index(m.action))

    def counts(self) -> dict:
        counts = {action: 0 for action in APPLY_ORDER}
        for mutation in self.mutations:
            counts[mutation.action] += 1
        counts["unchanged"] = self.unchanged
        return counts


@dataclass
class ApplyReport:
    applied: list[Mutation] = field(default_factory=list)
    failed: list[StoreWriteError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


def _is_protected(path: str, unreadable: set[str]) -> bool:
    """True if path failed to read or sits under a directory that did."""
    if path in unreadable:
        return True
    return any(
        path.startswith(failed.rstrip(os.sep) + os.sep) for failed in unreadable
    )


def reconcile(
    descriptors: Iterable[FileDescriptor],
    registry_snapshot: Iterable,
    failed_paths: Iterable[str] = (),
) -> MutationPlan:
    """
    Diff a scan against a registry snapshot.

    Rules, keyed on checksum:
    - Live record whose checksum was not scanned: soft-delete
    - Scanned checksum with no live record: revive the most recently
      deleted record with that checksum, or create a new one
    - Scanned checksum whose live record has another path: rename
    - Same checksum and path: untouched

    When several scanned files share a checksum, the one at the live
    record's current path is kept; otherwise the first one seen is. Every
    other copy is reported as a DuplicateContentError.

    Args:
        descriptors: Scanned files (consumed once)
        registry_snapshot: Every registry record, soft-deleted ones included.
            Records need ``id``, ``checksum``, ``file_path`` and ``deleted_at``.
        failed_paths: Files or directories that exist but could not be read
            this pass; records at or below them are left alone instead of
            being soft-deleted

    Returns:
        MutationPlan
    """
    plan = MutationPlan()

    live = {}
    deleted = {}
    for record in registry_snapshot:
        if record.deleted_at is None:
            live[record.checksum] = record
            continue
        current = deleted.get(record.checksum)
        if current is None or record.deleted_at > current.deleted_at:
            deleted[record.checksum] = record

    groups: dict[str, list[FileDescriptor]] = {}
    for descriptor in descriptors:
        groups.setdefault(descriptor.checksum, []).append(descriptor)

    scanned: dict[str, FileDescriptor] = {}
    for checksum, copies in groups.items():
        kept = copies[0]
        record = live.get(checksum)
        if record is not None:
            kept = next((d for d in copies if d.path == record.file_path), kept)
        scanned[checksum] = kept
        for descriptor in copies:
            if descriptor is kept:
                continue
            logger.warning(
                "Duplicate content: %s matches %s (checksum %s)",
                descriptor.path,
                kept.path,
                checksum,
            )
            plan.conflicts.append(
                DuplicateContentError(descriptor.path, kept.path, checksum)
            )

    unreadable = set(failed_paths)

    for checksum, record in live.items():
        if checksum in scanned:
            continue
        if _is_protected(record.file_path, unreadable):
            logger.warning(
                "Keeping game %s: %s could not be read this pass",
                record.id,
                record.file_path,
            )
            continue
        plan.mutations.append(
            Mutation(
                action=SOFT_DELETE,
                checksum=checksum,
                path=record.file_path,
                game_id=record.id,
            )
        )

    for checksum, descriptor in scanned.items():
        record = live.get(checksum)
        if record is None:
            previous = deleted.get(checksum)
            if previous is not None:
                plan.mutations.append(
                    Mutation(
                        action=REVIVE,
                        checksum=checksum,
                        path=descriptor.path,
                        game_id=previous.id,
                        previous_path=previous.file_path,
                        descriptor=descriptor,
                    )
                )
            else:
                plan.mutations.append(
                    Mutation(
                        action=CREATE,
                        checksum=checksum,
                        path=descriptor.path,
                        descriptor=descriptor,
                    )
                )
        elif record.file_path != descriptor.path:
            plan.mutations.append(
                Mutation(
                    action=RENAME,
                    checksum=checksum,
                    path=descriptor.path,
                    game_id=record.id,
                    previous_path=record.file_path,
                    descriptor=descriptor,
                )
            )
        else:
            plan.unchanged += 1

    return plan


def apply_plan(
    plan: MutationPlan, registry: Optional[GameRegistry] = None, now=None
) -> ApplyReport:
    """
    Write a plan to the registry, one atomic upsert per mutation.

    A failed write is reported and does not stop the remaining mutations.
    Applying the same plan again is a no-op.

    Returns:
        ApplyReport listing applied mutations and StoreWriteErrors
    """
    registry = registry or GameRegistry()
    now = now or timezone.now()
    report = ApplyReport()

    for mutation in plan.ordered():
        try:
            if mutation.action == SOFT_DELETE:
                registry.soft_delete(mutation.game_id, now=now)
            else:
                registry.upsert(mutation.descriptor, record_id=mutation.game_id)
        except DatabaseError as e:
            logger.error(
                "Registry write failed (%s %s): %s", mutation.action, mutation.path, e
            )
            report.failed.append(StoreWriteError(mutation, e))
            continue
        report.applied.append(mutation)

    return report


@dataclass
class IndexResult:
    """Outcome of a full scan + reconcile + apply pass."""

    job: IndexJob
    plan: MutationPlan
    report: ApplyReport
    failures: list[ScanFailure]
    games: list[Game]

    def summary(self) -> dict:
        return {
            "job_id": self.job.pk,
            "files_seen": self.job.files_seen,
            **self.plan.counts(),
            "failures": [failure.as_dict() for failure in self.failures],
            "conflicts": [conflict.as_dict() for conflict in self.plan.conflicts],
            "store_errors": [error.as_dict() for error in self.report.failed],
        }


def reindex(
    roots: Optional[list[str]] = None,
    trigger: str = IndexJob.TRIGGER_API,
    job: Optional[IndexJob] = None,
    scanner: Optional[LibraryScanner] = None,
    registry: Optional[GameRegistry] = None,
) -> IndexResult:
    """
    Scan the library, reconcile it against the registry and apply the plan.

    Only one pass runs at a time across every process: a per-process lock
    guards this interpreter and a RUNNING IndexJob, claimed under the
    IndexLock row, guards the rest. A concurrent call fails immediately.

    Args:
        roots: Directories to scan (defaults to GAME_LIBRARY_ROOTS)
        trigger: What started the pass, recorded on the IndexJob
        job: Existing IndexJob to update (created when omitted)
        scanner: Scanner override, mostly for tests
        registry: Registry override, mostly for tests

    Returns:
        IndexResult

    Raises:
        ReindexInProgress: If another pass is already running
    """
    if not _reindex_lock.acquire(blocking=False):
        raise ReindexInProgress("A reindex is already in progress")
    try:
        return _run_reindex(roots, trigger, job, scanner, registry)
    finally:
        _reindex_lock.release()


def is_reindex_running() -> bool:
    return _reindex_lock.locked()


def _claim_job(job: Optional[IndexJob], trigger: str, roots: list[str]) -> IndexJob:
    """
    Mark a job RUNNING unless another process already has one running.

    The IndexLock row is held FOR UPDATE while checking, so two processes
    cannot both see "nothing running" and start a pass.

    Raises:
        ReindexInProgress: If another IndexJob is RUNNING
    """
    stale_after = getattr(settings, "INDEX_JOB_STALE_AFTER_SECONDS", 6 * 60 * 60)
    now = timezone.now()

    with transaction.atomic():
        IndexLock.objects.select_for_update().get_or_create(
            pk=IndexLock.SINGLETON_ID
        )

        running = IndexJob.objects.filter(status=IndexJob.STATUS_RUNNING)
        if job is not None:
            running = running.exclude(pk=job.pk)

        stale = running.filter(started_at__lt=now - timedelta(seconds=stale_after))
        abandoned = stale.update(
            status=IndexJob.STATUS_FAILED,
            failures=[
                {"kind": "reindex_failed", "message": "Abandoned by its process"}
            ],
            completed_at=now,
        )
        if abandoned:
            logger.warning("Marked %d abandoned index job(s) as FAILED", abandoned)

        active = running.first()
        if active is not None:
            raise ReindexInProgress(
                f"IndexJob {active.pk} ({active.trigger}) is already running"
            )

        if job is None:
            job = IndexJob(trigger=trigger)
        job.status = IndexJob.STATUS_RUNNING
        job.roots = roots
        job.save()

    return job


def _run_reindex(roots, trigger, job, scanner, registry) -> IndexResult:
    scanner = scanner or LibraryScanner.from_settings(roots)
    registry = registry or GameRegistry()

    job = _claim_job(job, trigger, scanner.roots)

    logger.info(
        "Starting reindex of %d root(s): %s", len(scanner.roots), scanner.roots
    )

    try:
        snapshot = registry.find_all()
        descriptors = list(scanner.scan())
        plan = reconcile(descriptors, snapshot, failed_paths=scanner.failed_paths)
        report = apply_plan(plan, registry)
    except Exception as e:
        job.status = IndexJob.STATUS_FAILED
        job.failures = [{"kind": "reindex_failed", "message": str(e)}]
        job.completed_at = timezone.now()
        job.save()
        raise

    applied_counts = {action: 0 for action in APPLY_ORDER}
    for mutation in report.applied:
        applied_counts[mutation.action] += 1

    job.status = IndexJob.STATUS_COMPLETED
    job.files_seen = scanner.files_seen
    job.created = applied_counts[CREATE]
    job.revived = applied_counts[REVIVE]
    job.renamed = applied_counts[RENAME]
    job.deleted = applied_counts[SOFT_DELETE]
    job.unchanged = plan.unchanged
    job.failures = [failure.as_dict() for failure in scanner.failures]
    job.conflicts = [conflict.as_dict() for conflict in plan.conflicts]
    job.store_errors = [error.as_dict() for error in report.failed]
    job.completed_at = timezone.now()
    job.save()

    logger.info(
        "Reindex complete: files=%d, created=%d, revived=%d, renamed=%d, "
        "deleted=%d, unchanged=%d, failures=%d, conflicts=%d, store_errors=%d",
        job.files_seen,
        job.created,
        job.revived,
        job.renamed,
        job.deleted,
        job.unchanged,
        len(job.failures),
        len(job.conflicts),
        len(job.store_errors),
    )

    return IndexResult(
        job=job,
        plan=plan,
        report=report,
        failures=list(scanner.failures),
        games=registry.find_all_live(),
    )
