################################################################################
# VSNAP
#
# @file:        archiver.py
# @module:      vsnap.worker.archiver
# @description: Streaming tar(+zstd) archiving and extraction with progress.
# @author:      vsnap contributors
# @repository:  https://github.com/fominv/vsnap
# @version:     0.6.0
#
# ------------------------------------------------------------------------------
# MIT-Lizenz: siehe LICENSE oder https://opensource.org/licenses/MIT
# ==============================================================================
# Hinweise:
# - Symlinks are archived as links (target text), never followed
# - Progress counts file content only, so it matches calculate_total_size()
# - Extraction rejects entries that would land outside the destination
################################################################################

"""
Streaming archiver/restorer that runs inside the worker container.

The pipeline is a chain of file objects (tar -> optional zstd -> file), so
a slow destination throttles the source without intermediate buffering.
"""

from __future__ import annotations

import os
import stat
import tarfile
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, Callable, Iterator, List, Optional, TextIO, Tuple

import zstandard as zstd

from ..helpers.constants import CHUNK_SIZE, ZSTD_LEVEL
from ..helpers.errors import ArchiveError
from ..helpers.logging import get_logger
from .metadata import (
    archive_path,
    clear_committed,
    detect_archive,
    is_committed,
    mark_committed,
    read_total_size,
    write_metadata,
)
from .progress import CountingReader, CountingWriter, ProgressReporter

logger = get_logger(__name__)

ChunkCallback = Callable[[int], None]

# Errors that mean the archive or the filesystem let us down
_ARCHIVE_FAILURES = (OSError, tarfile.TarError, zstd.ZstdError, EOFError)


def _ignore_chunk(count: int) -> None:
    pass


# ---- Tree walking ----

def iter_tree(root: Path, relative: str = "") -> Iterator[Tuple[str, str, os.stat_result]]:
    """
    Yield ``(relative path, absolute path, lstat)`` for every entry below root.

    Entries are sorted by name and a directory always precedes its
    contents. Symlinks are reported as such and never descended into.
    """
    directory = os.path.join(root, relative) if relative else str(root)
    with os.scandir(directory) as it:
        entries = sorted(it, key=lambda e: e.name)

    for entry in entries:
        entry_relative = f"{relative}/{entry.name}" if relative else entry.name
        st = entry.stat(follow_symlinks=False)
        yield entry_relative, entry.path, st
        if stat.S_ISDIR(st.st_mode):
            yield from iter_tree(root, entry_relative)


def calculate_total_size(path: Path) -> int:
    """Sum of regular file sizes below ``path`` without following symlinks."""
    try:
        return sum(st.st_size for _, _, st in iter_tree(path) if stat.S_ISREG(st.st_mode))
    except OSError as e:
        raise ArchiveError(f"Cannot scan {path}: {e}") from e


# ---- Archiving ----

def _tarinfo_for(arcname: str, path: str, st: os.stat_result) -> Optional[tarfile.TarInfo]:
    info = tarfile.TarInfo(arcname)
    info.mode = stat.S_IMODE(st.st_mode)
    info.mtime = int(st.st_mtime)
    info.uid = st.st_uid
    info.gid = st.st_gid

    if stat.S_ISDIR(st.st_mode):
        info.type = tarfile.DIRTYPE
    elif stat.S_ISREG(st.st_mode):
        info.type = tarfile.REGTYPE
        info.size = st.st_size
    elif stat.S_ISLNK(st.st_mode):
        info.type = tarfile.SYMTYPE
        info.linkname = os.readlink(path)
    else:
        return None
    return info


def _write_tar(source_dir: Path, out: BinaryIO, on_chunk: ChunkCallback) -> int:
    entries = 0
    with tarfile.open(fileobj=out, mode="w|", format=tarfile.PAX_FORMAT) as tar:
        # the root carries the volume's own mode, mtime and owner
        tar.addfile(_tarinfo_for(".", str(source_dir), os.stat(source_dir)))
        entries += 1
        for arcname, path, st in iter_tree(source_dir):
            info = _tarinfo_for(arcname, path, st)
            if info is None:
                logger.warning(f"Skipping special file: {arcname}")
                continue
            if info.isreg():
                with open(path, "rb") as f:
                    tar.addfile(info, CountingReader(f, on_chunk))
            else:
                tar.addfile(info)
            entries += 1
    return entries


def write_archive(
    source_dir: Path,
    fileobj: BinaryIO,
    compress: bool = False,
    on_chunk: ChunkCallback = _ignore_chunk,
) -> int:
    """
    Serialize ``source_dir`` into ``fileobj`` as a tar stream.

    Args:
        source_dir: Directory to archive, stored as the "." entry
        fileobj: Binary writable destination
        compress: Pipe the tar stream through zstd
        on_chunk: Called with the size of every file content chunk

    Returns:
        Number of archived entries

    Raises:
        ArchiveError: On any I/O or compression failure
    """
    try:
        if compress:
            compressor = zstd.ZstdCompressor(level=ZSTD_LEVEL)
            with compressor.stream_writer(fileobj, closefd=False) as writer:
                return _write_tar(source_dir, writer, on_chunk)
        return _write_tar(source_dir, fileobj, on_chunk)
    except ArchiveError:
        raise
    except _ARCHIVE_FAILURES as e:
        raise ArchiveError(f"Archiving {source_dir} failed: {e}") from e


# ---- Extraction ----

@contextmanager
def _open_reader(fileobj: BinaryIO, compressed: bool) -> Iterator[BinaryIO]:
    if not compressed:
        yield fileobj
        return
    decompressor = zstd.ZstdDecompressor()
    with decompressor.stream_reader(fileobj, read_across_frames=True, closefd=False) as reader:
        yield reader


def _safe_target(dest: str, name: str) -> Optional[str]:
    """Destination path for an archive member; None for the root entry."""
    if name.startswith("/") or os.path.isabs(name):
        raise ArchiveError(f"Refusing absolute path in archive: {name}")
    parts = [p for p in name.split("/") if p not in ("", ".")]
    if ".." in parts:
        raise ArchiveError(f"Refusing path traversal in archive: {name}")
    if not parts:
        return None

    target = os.path.join(dest, *parts)
    parent = os.path.realpath(os.path.dirname(target))
    if parent != dest and not parent.startswith(dest + os.sep):
        raise ArchiveError(f"Refusing archive entry outside destination: {name}")
    return target


def _remove_existing(target: str) -> None:
    if os.path.islink(target) or (os.path.lexists(target) and not os.path.isdir(target)):
        os.unlink(target)


def _apply_owner(target: str, member: tarfile.TarInfo) -> None:
    if os.geteuid() == 0:
        os.lchown(target, member.uid, member.gid)


def _apply_times(target: str, member: tarfile.TarInfo, follow_symlinks: bool = True) -> None:
    if not follow_symlinks and os.utime not in os.supports_follow_symlinks:
        return
    os.utime(target, (member.mtime, member.mtime), follow_symlinks=follow_symlinks)


def _extract_file(tar: tarfile.TarFile, member: tarfile.TarInfo, target: str, on_chunk: ChunkCallback) -> None:
    os.makedirs(os.path.dirname(target), exist_ok=True)
    _remove_existing(target)

    source = tar.extractfile(member)
    if source is None:
        raise ArchiveError(f"Archive member has no data: {member.name}")

    fd = os.open(target, os.O_WRONLY | os.O_CREAT | os.O_TRUNC | os.O_NOFOLLOW, 0o600)
    with os.fdopen(fd, "wb") as raw:
        out = CountingWriter(raw, on_chunk)
        while True:
            chunk = source.read(CHUNK_SIZE)
            if not chunk:
                break
            out.write(chunk)

    _apply_owner(target, member)
    os.chmod(target, member.mode)
    _apply_times(target, member)


def _extract_symlink(member: tarfile.TarInfo, target: str) -> None:
    os.makedirs(os.path.dirname(target), exist_ok=True)
    _remove_existing(target)
    os.symlink(member.linkname, target)
    _apply_owner(target, member)
    _apply_times(target, member, follow_symlinks=False)


def _extract_hardlink(dest: str, member: tarfile.TarInfo, target: str) -> None:
    link_source = _safe_target(dest, member.linkname)
    if link_source is None:
        raise ArchiveError(f"Invalid hard link target in archive: {member.linkname}")
    os.makedirs(os.path.dirname(target), exist_ok=True)
    _remove_existing(target)
    os.link(link_source, target)


def extract_archive(
    fileobj: BinaryIO,
    dest_dir: Path,
    compressed: bool = False,
    on_chunk: ChunkCallback = _ignore_chunk,
) -> int:
    """
    Recreate the tree stored in ``fileobj`` below ``dest_dir``.

    Directory modes and times are applied after all members are written,
    deepest first, so read-only directories can still be populated. The
    "." entry applies to ``dest_dir`` itself.

    Returns:
        Number of extracted entries

    Raises:
        ArchiveError: On corrupt/truncated input, unsafe paths or I/O errors
    """
    dest = os.path.realpath(dest_dir)
    directories: List[Tuple[str, tarfile.TarInfo]] = []
    entries = 0

    try:
        os.makedirs(dest, exist_ok=True)
        with _open_reader(fileobj, compressed) as reader:
            with tarfile.open(fileobj=reader, mode="r|") as tar:
                for member in tar:
                    target = _safe_target(dest, member.name)
                    if target is None:
                        if member.isdir():
                            directories.append((dest, member))
                            entries += 1
                        continue
                    if member.isdir():
                        if os.path.islink(target):
                            os.unlink(target)
                        os.makedirs(target, exist_ok=True)
                        directories.append((target, member))
                    elif member.isreg():
                        _extract_file(tar, member, target, on_chunk)
                    elif member.issym():
                        _extract_symlink(member, target)
                    elif member.islnk():
                        _extract_hardlink(dest, member, target)
                    else:
                        logger.warning(f"Skipping unsupported archive member: {member.name}")
                        continue
                    entries += 1

        for target, member in sorted(directories, key=lambda d: d[0], reverse=True):
            _apply_owner(target, member)
            os.chmod(target, member.mode)
            _apply_times(target, member)
    except ArchiveError:
        raise
    except _ARCHIVE_FAILURES as e:
        raise ArchiveError(f"Extracting archive into {dest_dir} failed: {e}") from e

    return entries


def scan_archive_size(fileobj: BinaryIO, compressed: bool = False) -> int:
    """Sum of regular file sizes stored in an archive (second pass fallback)."""
    try:
        with _open_reader(fileobj, compressed) as reader:
            with tarfile.open(fileobj=reader, mode="r|") as tar:
                return sum(member.size for member in tar if member.isreg())
    except _ARCHIVE_FAILURES as e:
        raise ArchiveError(f"Cannot read archive: {e}") from e


# ---- Worker operations ----

def snapshot(
    source_path: Path,
    snapshot_path: Path,
    compress: bool = False,
    progress_stream: Optional[TextIO] = None,
) -> int:
    """
    Archive ``source_path`` into the snapshot directory ``snapshot_path``.

    Writes metadata first, then the archive, and commits the snapshot only
    after the archive is flushed to disk.

    Returns:
        Total uncompressed size in bytes
    """
    source_path = Path(source_path)
    snapshot_path = Path(snapshot_path)

    if not source_path.is_dir():
        raise ArchiveError(f"Source directory does not exist: {source_path}")

    clear_committed(snapshot_path)
    total_size = calculate_total_size(source_path)
    write_metadata(snapshot_path, total_size)

    target = archive_path(snapshot_path, compress)
    logger.info(
        f"Archiving {source_path} into {target}",
        extra={"total_size": total_size, "compress": compress},
    )

    with ProgressReporter(total_size, stream=progress_stream) as reporter:
        try:
            with open(target, "wb") as f:
                entries = write_archive(source_path, f, compress, reporter.add)
                f.flush()
                os.fsync(f.fileno())
        except OSError as e:
            raise ArchiveError(f"Cannot write archive {target}: {e}") from e

    mark_committed(snapshot_path)
    logger.info(f"Snapshot committed ({entries} entries)", extra={"total_size": total_size})
    return total_size


def restore(
    snapshot_path: Path,
    restore_path: Path,
    progress_stream: Optional[TextIO] = None,
) -> int:
    """
    Extract the snapshot stored in ``snapshot_path`` into ``restore_path``.

    Returns:
        Total uncompressed size in bytes
    """
    snapshot_path = Path(snapshot_path)
    restore_path = Path(restore_path)

    if not is_committed(snapshot_path):
        raise ArchiveError(
            f"Snapshot in {snapshot_path} is incomplete (no commit marker); refusing to restore"
        )

    source, compressed = detect_archive(snapshot_path)

    def rescan() -> int:
        with open(source, "rb") as f:
            return scan_archive_size(f, compressed)

    try:
        total_size = read_total_size(snapshot_path, rescan)
    except OSError as e:
        raise ArchiveError(f"Cannot read archive {source}: {e}") from e

    logger.info(
        f"Restoring {source} into {restore_path}",
        extra={"total_size": total_size, "compressed": compressed},
    )

    with ProgressReporter(total_size, stream=progress_stream) as reporter:
        try:
            with open(source, "rb") as f:
                entries = extract_archive(f, restore_path, compressed, reporter.add)
        except OSError as e:
            raise ArchiveError(f"Cannot read archive {source}: {e}") from e

    logger.info(f"Restore finished ({entries} entries)", extra={"total_size": total_size})
    return total_size
