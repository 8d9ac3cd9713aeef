"""
Unit tests for the streaming archiver and restorer.

Archives are written to real files below tmp_path and extracted again.
"""

import io
import json
import os
import stat
import tarfile

import pytest
import zstandard

from vsnap.helpers.errors import ArchiveError
from vsnap.worker import archiver


def tree_listing(root):
    """Map relative path -> ('dir'|'file'|'link', payload) for comparison."""
    listing = {}
    for rel, path, st in archiver.iter_tree(root):
        if stat.S_ISLNK(st.st_mode):
            listing[rel] = ("link", os.readlink(path))
        elif stat.S_ISDIR(st.st_mode):
            listing[rel] = ("dir", None)
        else:
            with open(path, "rb") as f:
                listing[rel] = ("file", f.read())
    return listing


def round_trip(source, dest, compress):
    buffer = io.BytesIO()
    archiver.write_archive(source, buffer, compress=compress)
    buffer.seek(0)
    archiver.extract_archive(buffer, dest, compressed=compress)


def make_tar(members):
    """Build a plain tar with (name, type, payload) members."""
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w", format=tarfile.PAX_FORMAT) as tar:
        for name, kind, payload in members:
            info = tarfile.TarInfo(name)
            if kind == "file":
                info.size = len(payload)
                tar.addfile(info, io.BytesIO(payload))
            elif kind == "sym":
                info.type = tarfile.SYMTYPE
                info.linkname = payload
                tar.addfile(info)
            else:
                info.type = tarfile.DIRTYPE
                info.mode = 0o755
                tar.addfile(info)
    buffer.seek(0)
    return buffer


@pytest.mark.unit
class TestCalculateTotalSize:
    def test_sums_regular_files_only(self, sample_tree):
        expected = 5 + 0 + 5000 + 200_000
        assert archiver.calculate_total_size(sample_tree) == expected

    def test_empty_directory(self, tmp_path):
        assert archiver.calculate_total_size(tmp_path) == 0

    def test_missing_directory(self, tmp_path):
        with pytest.raises(ArchiveError):
            archiver.calculate_total_size(tmp_path / "missing")

    def test_does_not_follow_directory_symlinks(self, tmp_path):
        outside = tmp_path / "outside"
        outside.mkdir()
        (outside / "big").write_bytes(b"x" * 1000)
        root = tmp_path / "root"
        root.mkdir()
        os.symlink(outside, root / "link")
        assert archiver.calculate_total_size(root) == 0


@pytest.mark.unit
class TestRoundTrip:
    @pytest.mark.parametrize("compress", [False, True])
    def test_tree_is_reproduced(self, sample_tree, tmp_path, compress):
        dest = tmp_path / "restored"
        round_trip(sample_tree, dest, compress)
        assert tree_listing(dest) == tree_listing(sample_tree)

    def test_empty_source(self, tmp_path):
        source = tmp_path / "empty"
        source.mkdir()
        dest = tmp_path / "restored"
        round_trip(source, dest, compress=False)
        assert dest.is_dir()
        assert list(dest.iterdir()) == []

    def test_symlinks_keep_target_text(self, sample_tree, tmp_path):
        dest = tmp_path / "restored"
        round_trip(sample_tree, dest, compress=True)
        assert os.readlink(dest / "dangling") == "/nonexistent/target"
        assert (dest / "link_to_b").is_symlink()

    def test_file_modes_are_preserved(self, tmp_path):
        source = tmp_path / "src"
        source.mkdir()
        script = source / "run.sh"
        script.write_text("#!/bin/sh\n")
        os.chmod(script, 0o750)
        dest = tmp_path / "restored"
        round_trip(source, dest, compress=False)
        assert stat.S_IMODE(os.stat(dest / "run.sh").st_mode) == 0o750

    def test_mtime_is_preserved(self, tmp_path):
        source = tmp_path / "src"
        source.mkdir()
        f = source / "old.txt"
        f.write_text("old")
        os.utime(f, (1_600_000_000, 1_600_000_000))
        dest = tmp_path / "restored"
        round_trip(source, dest, compress=False)
        assert int(os.stat(dest / "old.txt").st_mtime) == 1_600_000_000

    @pytest.mark.parametrize("compress", [False, True])
    def test_root_directory_attributes_are_preserved(self, tmp_path, compress):
        source = tmp_path / "src"
        source.mkdir()
        (source / "PG_VERSION").write_text("16\n")
        os.chmod(source, 0o750)
        os.utime(source, (1_500_000_000, 1_500_000_000))
        dest = tmp_path / "restored"
        dest.mkdir(mode=0o755)

        round_trip(source, dest, compress)

        st = os.stat(dest)
        assert stat.S_IMODE(st.st_mode) == 0o750
        assert int(st.st_mtime) == 1_500_000_000
        assert (st.st_uid, st.st_gid) == (os.stat(source).st_uid, os.stat(source).st_gid)

    def test_root_entry_comes_first(self, sample_tree):
        buffer = io.BytesIO()
        archiver.write_archive(sample_tree, buffer)
        buffer.seek(0)
        with tarfile.open(fileobj=buffer, mode="r|") as tar:
            first = next(iter(tar))
        assert first.name == "."
        assert first.isdir()
        assert first.mode == stat.S_IMODE(os.stat(sample_tree).st_mode)

    def test_compressed_output_is_zstd(self, sample_tree):
        buffer = io.BytesIO()
        archiver.write_archive(sample_tree, buffer, compress=True)
        assert buffer.getvalue()[:4] == b"\x28\xb5\x2f\xfd"

    def test_progress_matches_total(self, sample_tree, tmp_path):
        counted = []
        buffer = io.BytesIO()
        archiver.write_archive(sample_tree, buffer, compress=True, on_chunk=counted.append)
        assert sum(counted) == archiver.calculate_total_size(sample_tree)

        restored = []
        buffer.seek(0)
        archiver.extract_archive(buffer, tmp_path / "out", compressed=True, on_chunk=restored.append)
        assert sum(restored) == sum(counted)

    def test_scan_archive_size(self, sample_tree):
        buffer = io.BytesIO()
        archiver.write_archive(sample_tree, buffer, compress=True)
        buffer.seek(0)
        assert archiver.scan_archive_size(buffer, compressed=True) == archiver.calculate_total_size(sample_tree)


@pytest.mark.unit
class TestUnsafeArchives:
    def test_rejects_parent_traversal(self, tmp_path):
        archive = make_tar([("../evil.txt", "file", b"x")])
        with pytest.raises(ArchiveError):
            archiver.extract_archive(archive, tmp_path / "dest")
        assert not (tmp_path / "evil.txt").exists()

    def test_rejects_absolute_path(self, tmp_path):
        archive = make_tar([("/etc/evil", "file", b"x")])
        with pytest.raises(ArchiveError):
            archiver.extract_archive(archive, tmp_path / "dest")

    def test_rejects_writing_through_symlinked_directory(self, tmp_path):
        outside = tmp_path / "outside"
        outside.mkdir()
        archive = make_tar([
            ("escape", "sym", str(outside)),
            ("escape/owned.txt", "file", b"x"),
        ])
        with pytest.raises(ArchiveError):
            archiver.extract_archive(archive, tmp_path / "dest")
        assert not (outside / "owned.txt").exists()


@pytest.mark.unit
class TestBrokenArchives:
    def test_truncated_compressed_archive(self, sample_tree, tmp_path):
        buffer = io.BytesIO()
        archiver.write_archive(sample_tree, buffer, compress=True)
        truncated = io.BytesIO(buffer.getvalue()[: len(buffer.getvalue()) // 2])
        with pytest.raises(ArchiveError):
            archiver.extract_archive(truncated, tmp_path / "dest", compressed=True)

    def test_garbage_compressed_input(self, tmp_path):
        with pytest.raises(ArchiveError):
            archiver.extract_archive(io.BytesIO(b"definitely not zstd"), tmp_path / "dest", compressed=True)

    def test_truncated_plain_archive(self, sample_tree, tmp_path):
        buffer = io.BytesIO()
        archiver.write_archive(sample_tree, buffer, compress=False)
        data = buffer.getvalue()
        # Cut inside the content of the largest file
        truncated = io.BytesIO(data[: len(data) - 100_000])
        with pytest.raises(ArchiveError):
            archiver.extract_archive(truncated, tmp_path / "dest", compressed=False)


@pytest.mark.unit
class TestWorkerOperations:
    def test_snapshot_writes_layout(self, sample_tree, tmp_path):
        storage = tmp_path / "storage"
        storage.mkdir()
        stream = io.StringIO()

        total = archiver.snapshot(sample_tree, storage, compress=True, progress_stream=stream)

        assert (storage / "snapshot.tar.zst").is_file()
        assert not (storage / "snapshot.tar").exists()
        assert json.loads((storage / "metadata.json").read_text()) == {"total_size": total}
        assert (storage / ".vsnap-committed").is_file()
        last = json.loads(stream.getvalue().splitlines()[-1])
        assert last == {"progress": total, "total": total}

    def test_restore_round_trip(self, sample_tree, tmp_path):
        storage = tmp_path / "storage"
        storage.mkdir()
        archiver.snapshot(sample_tree, storage, compress=False, progress_stream=io.StringIO())

        stream = io.StringIO()
        dest = tmp_path / "restore"
        total = archiver.restore(storage, dest, progress_stream=stream)

        assert tree_listing(dest) == tree_listing(sample_tree)
        records = [json.loads(line) for line in stream.getvalue().splitlines()]
        assert records[-1] == {"progress": total, "total": total}

    def test_restore_without_metadata_rescans(self, sample_tree, tmp_path):
        storage = tmp_path / "storage"
        storage.mkdir()
        total = archiver.snapshot(sample_tree, storage, compress=True, progress_stream=io.StringIO())
        (storage / "metadata.json").unlink()

        stream = io.StringIO()
        assert archiver.restore(storage, tmp_path / "restore", progress_stream=stream) == total

    def test_restore_refuses_uncommitted_snapshot(self, sample_tree, tmp_path):
        storage = tmp_path / "storage"
        storage.mkdir()
        archiver.snapshot(sample_tree, storage, progress_stream=io.StringIO())
        (storage / ".vsnap-committed").unlink()
        with pytest.raises(ArchiveError, match="incomplete"):
            archiver.restore(storage, tmp_path / "restore", progress_stream=io.StringIO())

    def test_restore_without_archive(self, tmp_path):
        storage = tmp_path / "storage"
        storage.mkdir()
        (storage / ".vsnap-committed").write_text("committed\n")
        with pytest.raises(ArchiveError):
            archiver.restore(storage, tmp_path / "restore", progress_stream=io.StringIO())

    def test_snapshot_of_missing_source(self, tmp_path):
        with pytest.raises(ArchiveError):
            archiver.snapshot(tmp_path / "missing", tmp_path, progress_stream=io.StringIO())
