"""
Constants used throughout the vsnap application.

This module defines all constant values used across different modules
to ensure consistency and ease of maintenance.
"""

from pathlib import Path

# Version information
VERSION = "0.6.0"

# Default paths
DEFAULT_CONFIG_PATHS = {
    'root': Path('/etc/vsnap.conf'),
    'user': Path.home() / '.config' / 'vsnap' / 'config.conf'
}

# Naming convention: <prefix>-<unix timestamp>-<snapshot name>
SNAPSHOT_PREFIX = 'vsnap'
TIMESTAMP_MIN_DIGITS = 10

# Worker image
DEFAULT_WORKER_IMAGE = f'vsnap:{VERSION}'

# In-container mount points
SOURCE_MOUNT = '/mnt/source'
SNAPSHOT_MOUNT = '/mnt/snapshot'
RESTORE_MOUNT = '/mnt/restore'

# Snapshot storage layout
SNAPSHOT_TAR = 'snapshot.tar'
SNAPSHOT_TAR_ZST = 'snapshot.tar.zst'
SNAPSHOT_METADATA = 'metadata.json'
SNAPSHOT_COMMITTED = '.vsnap-committed'

# Streaming
CHUNK_SIZE = 64 * 1024
ZSTD_LEVEL = 3

# Progress reporting (seconds)
PROGRESS_EMIT_INTERVAL = 0.1

# Timeouts (in seconds)
LOG_FOLLOW_GRACE_PERIOD = 5
IMAGE_PULL_TIMEOUT = 600

# Worker exit codes
WORKER_EXIT_FAILED = 1

# Logging
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'
