"""Helper modules and utilities for vsnap."""

from .constants import VERSION, DEFAULT_CONFIG_PATHS
from .errors import (
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
from .logging import get_logger, log_manager
from .config import Config, create_default_config
from .naming import SnapshotNaming, Lookup, LookupStatus, exactly_one

__all__ = [
    'VERSION',
    'DEFAULT_CONFIG_PATHS',
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
    'get_logger',
    'log_manager',
    'Config',
    'create_default_config',
    'SnapshotNaming',
    'Lookup',
    'LookupStatus',
    'exactly_one',
]
