################################################################################
# VSNAP
#
# @file:        types.py
# @module:      vsnap.types
# @description: Shared data objects for snapshots, volumes and worker runs.
# @author:      vsnap contributors
# @repository:  https://github.com/fominv/vsnap
# @version:     0.6.0
#
# ------------------------------------------------------------------------------
# MIT-Lizenz: siehe LICENSE oder https://opensource.org/licenses/MIT
# ==============================================================================
# Hinweise:
# - SnapshotIdentity is what the naming convention encodes into a volume name
# - VolumeInfo and ContainerInfo are what the runtime reports back
# - VolumeMount and WorkerResult describe one worker container run
################################################################################

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from .models import ProgressRecord


# ---- Snapshot identity ----

@dataclass(frozen=True)
class SnapshotIdentity:
    timestamp: int
    name: str

    @property
    def created_at(self) -> datetime:
        """Creation time in the local timezone."""
        return datetime.fromtimestamp(self.timestamp).astimezone()


@dataclass
class SnapshotInfo:
    identity: SnapshotIdentity
    volume_name: str
    size_bytes: Optional[int] = None

    @property
    def name(self) -> str:
        return self.identity.name


# ---- Runtime objects ----

@dataclass
class VolumeInfo:
    name: str
    mountpoint: Optional[str] = None
    size_bytes: Optional[int] = None
    labels: dict = field(default_factory=dict)


@dataclass
class ContainerInfo:
    id: str
    name: str
    status: str = "unknown"

    @property
    def is_running(self) -> bool:
        return self.status == "running"


@dataclass(frozen=True)
class VolumeMount:
    source: str  # volume name
    target: str  # path inside the container
    read_only: bool = False


# ---- Worker runs ----

@dataclass
class WorkerResult:
    container_name: str
    exit_code: int
    last_progress: Optional[ProgressRecord] = None

    @property
    def success(self) -> bool:
        return self.exit_code == 0


@dataclass
class WorkerCommand:
    """Arguments passed to the worker entrypoint."""

    action: str  # "snapshot" | "restore"
    source_path: str
    target_path: str
    compress: bool = False

    def to_args(self) -> List[str]:
        args = [self.action]
        if self.compress:
            args.append("--compress")
        args.extend([self.source_path, self.target_path])
        return args
