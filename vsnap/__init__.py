################################################################################
# VSNAP
#
# @file:        __init__.py
# @module:      vsnap
# @description: Exposes version, logging, and snapshot managers for package consumers.
# @author:      vsnap contributors
# @repository:  https://github.com/fominv/vsnap
# @version:     0.6.0
#
# ------------------------------------------------------------------------------
# MIT-Lizenz: siehe LICENSE oder https://opensource.org/licenses/MIT
# ==============================================================================
# Hinweise:
# - Re-exports Config, SnapshotManager, DockerRuntime and the error hierarchy
# - Sets __version__ from constants.VERSION for tooling introspection
################################################################################

"""
vsnap: snapshot and restore Docker volumes.

Snapshots are ordinary volumes holding a tar archive of the source volume,
written and read by a short-lived worker container.
"""

from .helpers.constants import VERSION

__version__ = VERSION
__author__ = "vsnap contributors"

from .helpers.logging import get_logger, log_manager, setup_logging
from .helpers.config import Config
from .helpers.errors import (
    VsnapError,
    NotFoundError,
    AlreadyExistsError,
    InUseError,
    AmbiguousError,
    ArchiveError,
    ContainerRuntimeError,
    OrchestrationError,
    WorkerFailedError,
    ConfigError,
)
from .helpers.naming import SnapshotNaming
from .types import SnapshotIdentity, SnapshotInfo, VolumeInfo, ContainerInfo, WorkerResult
from .models import ProgressRecord, SnapshotMetadata
from .cores import ContainerRuntime, DockerRuntime, SnapshotManager

__all__ = [
    '__version__',
    'get_logger',
    'log_manager',
    'setup_logging',
    'Config',
    'VsnapError',
    'NotFoundError',
    'AlreadyExistsError',
    'InUseError',
    'AmbiguousError',
    'ArchiveError',
    'ContainerRuntimeError',
    'OrchestrationError',
    'WorkerFailedError',
    'ConfigError',
    'SnapshotNaming',
    'SnapshotIdentity',
    'SnapshotInfo',
    'VolumeInfo',
    'ContainerInfo',
    'WorkerResult',
    'ProgressRecord',
    'SnapshotMetadata',
    'ContainerRuntime',
    'DockerRuntime',
    'SnapshotManager',
]
