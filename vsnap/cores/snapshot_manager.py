"""
Snapshot management module for vsnap.

Create, restore, drop and list snapshots. Each operation validates its
preconditions first, then creates volumes and runs a worker; a volume
created by an operation that then fails is dropped again.
"""

import time
from typing import Callable, List, Optional

from ..helpers.config import Config
from ..helpers.constants import RESTORE_MOUNT, SNAPSHOT_MOUNT, SOURCE_MOUNT
from ..helpers.errors import AlreadyExistsError, VsnapError
from ..helpers.logging import get_logger
from ..helpers.naming import SnapshotNaming
from ..types import SnapshotIdentity, SnapshotInfo, VolumeMount, WorkerCommand, WorkerResult
from .progress_monitor import ImagePullIndicator, ProgressMonitor
from .runtime import ContainerRuntime
from .snapshot_discovery import SnapshotDiscovery
from .volume_manager import VolumeManager
from .worker_runner import WorkerRunner

logger = get_logger(__name__)


class SnapshotManager:
    """Orchestrates snapshot operations against a container runtime."""

    def __init__(
        self,
        runtime: ContainerRuntime,
        config: Optional[Config] = None,
        clock: Callable[[], float] = time.time,
        show_progress: bool = True,
    ):
        self.config = config or Config()
        self.runtime = runtime
        self.naming = SnapshotNaming(self.config.snapshot_prefix)
        self.discovery = SnapshotDiscovery(runtime, self.naming)
        self.volumes = VolumeManager(runtime)
        self.worker = WorkerRunner(
            runtime,
            image=self.config.worker_image,
            name_prefix=self.naming.prefix,
            log_grace_period=self.config.log_grace_period,
        )
        self.clock = clock
        self.show_progress = show_progress

    # --------------- Operations ---------------

    def create_snapshot(self, source_volume: str, snapshot_name: str, compress: bool = False) -> SnapshotInfo:
        """
        Snapshot ``source_volume`` under ``snapshot_name``.

        Raises:
            AlreadyExistsError: A snapshot with this name exists
            NotFoundError: Source volume does not exist
            InUseError: Source volume is mounted by a container
            WorkerFailedError: The worker exited non-zero
        """
        identity = SnapshotIdentity(timestamp=int(self.clock()), name=snapshot_name)
        snapshot_volume = self.naming.encode(identity)
        log_ctx = {"volume": source_volume, "snapshot": snapshot_name}

        self.discovery.verify_snapshot_does_not_exist(snapshot_name)
        self.volumes.verify_exists(source_volume)
        self.volumes.verify_not_in_use(source_volume)
        self._ensure_image()

        logger.info(f"Creating snapshot {snapshot_name} of {source_volume}", extra=log_ctx)
        self.volumes.create_volume(snapshot_volume)

        command = WorkerCommand("snapshot", SOURCE_MOUNT, SNAPSHOT_MOUNT, compress=compress)
        mounts = [
            VolumeMount(source_volume, SOURCE_MOUNT, read_only=True),
            VolumeMount(snapshot_volume, SNAPSHOT_MOUNT),
        ]
        self._run_with_rollback(
            command, mounts, snapshot_volume, f"Creating snapshot {snapshot_name}"
        )

        logger.info(f"Snapshot {snapshot_name} created as {snapshot_volume}", extra=log_ctx)
        return SnapshotInfo(identity=identity, volume_name=snapshot_volume)

    def restore_snapshot(
        self,
        snapshot_name: str,
        restore_volume: str,
        replace_existing: bool = False,
        drop_snapshot: bool = False,
    ) -> WorkerResult:
        """
        Restore ``snapshot_name`` into a fresh volume ``restore_volume``.

        Args:
            replace_existing: Drop ``restore_volume`` first if it exists
            drop_snapshot: Drop the snapshot once the restore succeeded

        Raises:
            NotFoundError / AmbiguousError: Snapshot name does not resolve
            AlreadyExistsError: Target exists and replace_existing is False
            InUseError: Target (or snapshot, when dropping) is in use
        """
        log_ctx = {"snapshot": snapshot_name, "volume": restore_volume}
        snapshot_volume = self.discovery.require_snapshot(snapshot_name)

        target_exists = self.volumes.volume_exists(restore_volume)
        if target_exists and not replace_existing:
            raise AlreadyExistsError(
                f"Volume {restore_volume} already exists (use --replace to overwrite it)"
            )

        self._ensure_image()

        if target_exists:
            logger.warning(f"Replacing existing volume {restore_volume}", extra=log_ctx)
            self.volumes.drop_volume(restore_volume)

        logger.info(f"Restoring snapshot {snapshot_name} into {restore_volume}", extra=log_ctx)
        self.volumes.create_volume(restore_volume)

        command = WorkerCommand("restore", SNAPSHOT_MOUNT, RESTORE_MOUNT)
        mounts = [
            VolumeMount(snapshot_volume, SNAPSHOT_MOUNT, read_only=True),
            VolumeMount(restore_volume, RESTORE_MOUNT),
        ]
        result = self._run_with_rollback(
            command, mounts, restore_volume, f"Restoring {snapshot_name}"
        )
        logger.info(f"Snapshot {snapshot_name} restored into {restore_volume}", extra=log_ctx)

        if drop_snapshot:
            self.volumes.drop_volume(snapshot_volume)
            logger.info(f"Dropped snapshot {snapshot_name}", extra=log_ctx)
        return result

    def drop_snapshot(self, snapshot_name: str) -> str:
        """Drop a snapshot; returns the removed volume name."""
        snapshot_volume = self.discovery.require_snapshot(snapshot_name)
        self.volumes.drop_volume(snapshot_volume)
        logger.info(f"Dropped snapshot {snapshot_name}", extra={"snapshot": snapshot_name})
        return snapshot_volume

    def list_snapshots(self, include_size: bool = False) -> List[SnapshotInfo]:
        return self.discovery.list_snapshots(include_size=include_size)

    # --------------- Internals ---------------

    def _ensure_image(self) -> None:
        image = self.worker.image
        with ImagePullIndicator(image, enabled=self.show_progress) as indicator:
            self.volumes.ensure_image(image, on_event=indicator, timeout=self.config.pull_timeout)

    def _run_with_rollback(
        self, command: WorkerCommand, mounts: List[VolumeMount], created_volume: str, description: str
    ) -> WorkerResult:
        try:
            with ProgressMonitor(description, enabled=self.show_progress) as monitor:
                return self.worker.run(command, mounts, monitor=monitor)
        except VsnapError as error:
            self._rollback_volume(created_volume, error)
            raise

    def _rollback_volume(self, name: str, error: VsnapError) -> None:
        logger.warning(f"Rolling back volume {name}", extra={"volume": name})
        try:
            self.runtime.remove_volume(name)
        except Exception as e:
            logger.error(f"Rollback of volume {name} failed: {e}", extra={"volume": name})
            error.add_cleanup_error(e)
