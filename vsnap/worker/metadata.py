"""
Snapshot storage layout as seen from inside the worker.

A snapshot directory holds ``metadata.json``, exactly one archive
(``snapshot.tar.zst`` or ``snapshot.tar``) and, once the archive is
complete, the ``.vsnap-committed`` marker.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Callable, Tuple

from pydantic import ValidationError

from ..helpers.constants import (
    SNAPSHOT_COMMITTED,
    SNAPSHOT_METADATA,
    SNAPSHOT_TAR,
    SNAPSHOT_TAR_ZST,
)
from ..helpers.errors import ArchiveError
from ..helpers.logging import get_logger
from ..models import SnapshotMetadata

logger = get_logger(__name__)


def archive_path(snapshot_dir: Path, compress: bool) -> Path:
    return Path(snapshot_dir) / (SNAPSHOT_TAR_ZST if compress else SNAPSHOT_TAR)


def detect_archive(snapshot_dir: Path) -> Tuple[Path, bool]:
    """
    Probe the snapshot directory for its archive.

    Returns:
        (archive path, compressed flag)

    Raises:
        ArchiveError: If no known archive is present
    """
    snapshot_dir = Path(snapshot_dir)
    compressed = snapshot_dir / SNAPSHOT_TAR_ZST
    if compressed.is_file():
        return compressed, True
    plain = snapshot_dir / SNAPSHOT_TAR
    if plain.is_file():
        return plain, False
    raise ArchiveError(
        f"No snapshot archive found in {snapshot_dir} "
        f"(expected {SNAPSHOT_TAR_ZST} or {SNAPSHOT_TAR})"
    )


def write_metadata(snapshot_dir: Path, total_size: int) -> Path:
    try:
        path = SnapshotMetadata(total_size=total_size).write(snapshot_dir)
    except OSError as e:
        raise ArchiveError(f"Cannot write snapshot metadata: {e}") from e
    logger.debug(f"Wrote {SNAPSHOT_METADATA}", extra={"total_size": total_size})
    return path


def read_total_size(snapshot_dir: Path, fallback: Callable[[], int]) -> int:
    """
    Total uncompressed size recorded at snapshot time.

    When the metadata file is missing or unreadable the total is re-derived
    through ``fallback`` (a second pass over the archive).
    """
    try:
        return SnapshotMetadata.read(snapshot_dir).total_size
    except (OSError, ValidationError) as e:
        logger.warning(f"Snapshot metadata unavailable ({e}), scanning archive for total size")
    return fallback()


def mark_committed(snapshot_dir: Path) -> None:
    """Write the marker that declares the snapshot complete."""
    marker = Path(snapshot_dir) / SNAPSHOT_COMMITTED
    try:
        with open(marker, "w", encoding="utf-8") as f:
            f.write("committed\n")
            f.flush()
            os.fsync(f.fileno())
    except OSError as e:
        raise ArchiveError(f"Cannot commit snapshot: {e}") from e


def clear_committed(snapshot_dir: Path) -> None:
    marker = Path(snapshot_dir) / SNAPSHOT_COMMITTED
    try:
        marker.unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        raise ArchiveError(f"Cannot reset commit marker: {e}") from e


def is_committed(snapshot_dir: Path) -> bool:
    return (Path(snapshot_dir) / SNAPSHOT_COMMITTED).is_file()
