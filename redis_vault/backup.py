"""Backup orchestration.

One cycle: check the replication role, upload the current snapshot file,
list this node's earlier uploads and prune them according to the retention
policy. Cycles run on a fixed schedule until :meth:`BackupManager.stop` is
called.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING, Any

from redis_vault.exceptions import StartupError, StorageError
from redis_vault.models import backup_decision
from redis_vault.naming import build_key, node_prefix, snapshot_extension
from redis_vault.retention import evaluate
from redis_vault.role import RoleDetector

if TYPE_CHECKING:
    from redis_vault.config import Settings
    from redis_vault.metrics import MetricsRecorder
    from redis_vault.storage import StorageBackend

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(UTC)


class CycleState(str, Enum):
    IDLE = "idle"
    GATING = "gating"
    UPLOADING = "uploading"
    LISTING = "listing"
    RETAINING = "retaining"
    SHUTDOWN = "shutdown"


class CycleOutcome(str, Enum):
    SKIPPED = "skipped"
    NO_SNAPSHOT = "no_snapshot"
    UPLOAD_FAILED = "upload_failed"
    LIST_FAILED = "list_failed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ERROR = "error"


def seconds_until_next_tick(
    now: datetime, interval: timedelta, align: bool, last_tick: datetime | None = None
) -> float:
    """Seconds to wait before the next cycle.

    Aligned schedules fire on multiples of ``interval`` since the UNIX epoch,
    so hourly backups land on the hour. Otherwise the next tick is
    ``interval`` after ``last_tick``.
    """
    step = interval.total_seconds()
    if align:
        ts = now.timestamp()
        return (ts // step + 1) * step - ts
    if last_tick is None:
        return step
    return max(0.0, (last_tick + interval - now).total_seconds())


class BackupManager:
    """Run backup cycles for one Redis node."""

    def __init__(
        self,
        settings: Settings,
        storage: StorageBackend,
        metrics: MetricsRecorder,
        role_detector: RoleDetector | None = None,
        clock: Clock | None = None,
    ):
        self.settings = settings
        self.storage = storage
        self.metrics = metrics
        self.role_detector = role_detector or RoleDetector(
            settings.redis.connection_string,
            settings.redis.role_timeout.total_seconds(),
        )
        self.clock = clock or utcnow

        self.node_name = settings.redis.node_name
        self.prefix = settings.storage.prefix
        self.policy = settings.retention_policy

        self.state = CycleState.IDLE
        self._stop_event = threading.Event()
        self._status_lock = threading.Lock()
        self._last_outcome: CycleOutcome | None = None
        self._last_cycle_at: datetime | None = None
        self._cycles = 0

    # ==================== LIFECYCLE ====================

    def verify_storage(self) -> None:
        """Startup connectivity check; the only fatal failure."""
        try:
            self.storage.verify()
        except StorageError as e:
            raise StartupError(f"Storage backend {self.storage.url} is not usable: {e}") from e
        logger.info(f"[{self.node_name}] Storage backend {self.storage.url} verified")

    def run(self, once: bool = False) -> CycleOutcome | None:
        """Verify storage, then run cycles until stopped.

        With ``once`` a single cycle runs immediately and its outcome is
        returned.
        """
        self.verify_storage()

        if once:
            outcome = self.run_cycle()
            self.state = CycleState.SHUTDOWN
            return outcome

        backup = self.settings.backup
        logger.info(
            f"[{self.node_name}] Starting backup loop: interval={backup.interval}, "
            f"initial_delay={backup.initial_delay}, aligned={backup.align_schedule}"
        )

        if self._wait(backup.initial_delay.total_seconds()):
            self.state = CycleState.SHUTDOWN
            return None

        while not self._stop_event.is_set():
            tick = self.clock()
            self.run_cycle()
            delay = seconds_until_next_tick(self.clock(), backup.interval, backup.align_schedule, tick)
            logger.debug(f"[{self.node_name}] Next backup in {delay:.0f}s")
            if self._wait(delay):
                break

        self.state = CycleState.SHUTDOWN
        logger.info(f"[{self.node_name}] Backup loop stopped")
        return None

    def stop(self) -> None:
        """Ask the loop to exit; an in-flight upload is allowed to finish."""
        self._stop_event.set()

    @property
    def stopping(self) -> bool:
        return self._stop_event.is_set()

    def _wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; True if stop was requested meanwhile."""
        return self._stop_event.wait(max(0.0, seconds))

    def status(self) -> dict[str, Any]:
        """Snapshot of the loop state for the readiness endpoint."""
        with self._status_lock:
            return {
                "ready": self._last_outcome is not None,
                "node": self.node_name,
                "state": self.state.value,
                "cycles": self._cycles,
                "last_outcome": self._last_outcome.value if self._last_outcome else None,
                "last_cycle_at": self._last_cycle_at.isoformat() if self._last_cycle_at else None,
            }

    # ==================== CYCLE ====================

    def run_cycle(self) -> CycleOutcome:
        """Run one backup cycle. Never raises."""
        try:
            outcome = self._cycle()
        except Exception:
            logger.exception(f"[{self.node_name}] Unexpected error during backup cycle ({self.state.value})")
            if self.state in (CycleState.GATING, CycleState.UPLOADING):
                self.metrics.increment("backups_failed_total")
            else:
                self.metrics.increment("retention_failed_total")
            outcome = CycleOutcome.ERROR

        self.state = CycleState.IDLE
        with self._status_lock:
            self._last_outcome = outcome
            self._last_cycle_at = self.clock()
            self._cycles += 1
        return outcome

    def _cycle(self) -> CycleOutcome:
        self.state = CycleState.GATING
        if not self._eligible():
            self.metrics.increment("backups_skipped_total")
            return CycleOutcome.SKIPPED

        self.metrics.increment("backups_attempted_total")
        if self.stopping:
            return CycleOutcome.CANCELLED

        outcome = self._upload_snapshot()
        if outcome is not None:
            return outcome

        if self.stopping:
            return CycleOutcome.CANCELLED
        return self.apply_retention()

    def _eligible(self) -> bool:
        redis = self.settings.redis
        if not redis.backup_master and not redis.backup_replica:
            logger.info(f"[{self.node_name}] Backups disabled for both primary and replica, skipping")
            return False

        role = self.role_detector.detect()
        eligible = backup_decision(role, redis.backup_master, redis.backup_replica)
        if not eligible:
            logger.info(f"[{self.node_name}] Skipping backup, node role is {role.value}")
        return eligible

    def _upload_snapshot(self) -> CycleOutcome | None:
        """Upload the snapshot file. Returns an outcome only on failure."""
        path = self.settings.snapshot_path
        try:
            fh = open(path, "rb")
        except OSError as e:
            self.metrics.increment("backups_failed_total")
            logger.error(f"[{self.node_name}] Snapshot {path} is not readable: {e}")
            return CycleOutcome.NO_SNAPSHOT

        self.state = CycleState.UPLOADING
        with fh:
            stat = os.fstat(fh.fileno())
            taken_at = datetime.fromtimestamp(stat.st_mtime, UTC)
            key = build_key(self.prefix, self.node_name, taken_at, snapshot_extension(path.name))

            logger.info(f"[{self.node_name}] Uploading {path} ({stat.st_size:,} bytes) to {self.storage.url}/{key}")
            started = time.monotonic()
            try:
                self.storage.upload(key, fh, stat.st_size)
            except StorageError as e:
                self.metrics.increment("backups_failed_total")
                logger.error(f"[{self.node_name}] Upload of {key} to {self.storage.name} failed: {e.cause}")
                return CycleOutcome.UPLOAD_FAILED
            duration = time.monotonic() - started

        self.metrics.increment("backups_succeeded_total")
        self.metrics.set_gauge("last_backup_timestamp_seconds", self.clock().timestamp())
        self.metrics.set_gauge("last_backup_size_bytes", stat.st_size)
        self.metrics.observe("backup_duration_seconds", duration)
        logger.info(f"[{self.node_name}] Uploaded {key} in {duration:.1f}s")
        return None

    def apply_retention(self) -> CycleOutcome:
        """List this node's snapshots and delete those the policy drops."""
        self.state = CycleState.LISTING
        self.metrics.increment("retention_runs_total")
        scope = node_prefix(self.prefix, self.node_name)
        try:
            objects = self.storage.list(scope)
        except StorageError as e:
            self.metrics.increment("retention_failed_total")
            logger.error(f"[{self.node_name}] Listing {scope} on {self.storage.name} failed: {e.cause}")
            return CycleOutcome.LIST_FAILED

        self.state = CycleState.RETAINING
        if self.policy.is_noop:
            logger.debug(f"[{self.node_name}] Retention disabled, keeping all {len(objects)} snapshots")
            return CycleOutcome.COMPLETED

        doomed = sorted(evaluate(objects, self.policy, self.clock(), self.node_name))
        if not doomed:
            return CycleOutcome.COMPLETED

        logger.info(f"[{self.node_name}] Retention: deleting {len(doomed)} of {len(objects)} snapshots")
        for key in doomed:
            if self.stopping:
                return CycleOutcome.CANCELLED
            try:
                self.storage.delete(key)
            except StorageError as e:
                self.metrics.increment("retention_delete_failed_total")
                logger.warning(f"[{self.node_name}] Failed to delete {key}: {e.cause}")
                continue
            self.metrics.increment("retention_deleted_total")
        return CycleOutcome.COMPLETED
