"""Core orchestration modules for vsnap."""

from .runtime import ContainerRuntime
from .docker_runtime import DockerRuntime
from .snapshot_discovery import SnapshotDiscovery
from .volume_manager import VolumeManager
from .worker_runner import WorkerRunner
from .progress_monitor import ImagePullIndicator, ProgressMonitor
from .snapshot_manager import SnapshotManager

__all__ = [
    'ContainerRuntime',
    'DockerRuntime',
    'SnapshotDiscovery',
    'VolumeManager',
    'WorkerRunner',
    'ImagePullIndicator',
    'ProgressMonitor',
    'SnapshotManager',
]
