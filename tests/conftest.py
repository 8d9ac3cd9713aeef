"""
Shared pytest fixtures for vsnap tests.

Provides an in-memory container runtime, a worker executor that runs the
real archiver in-process, and common filesystem fixtures.
"""

import io
import os
import shutil
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

import pytest
from typer.testing import CliRunner

from vsnap.cores.runtime import ContainerRuntime
from vsnap.helpers.config import Config
from vsnap.helpers.constants import DEFAULT_WORKER_IMAGE
from vsnap.helpers.errors import ArchiveError, ContainerRuntimeError, NotFoundError
from vsnap.types import ContainerInfo, VolumeInfo, VolumeMount
from vsnap.worker import archiver

# (args, {mount target: volume dir}) -> (exit code, stdout lines, stderr)
WorkerExecutor = Callable[[List[str], Dict[str, Path]], Tuple[int, List[str], str]]


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests without external services")
    config.addinivalue_line("markers", "integration: end-to-end tests across host and worker code")


def successful_worker(args, mounts):
    return 0, ['{"progress": 0, "total": 0}'], ""


def run_local_worker(args, mounts):
    """Run the worker operation in-process against the mounted directories."""
    stream = io.StringIO()
    action = args[0]
    compress = "--compress" in args
    paths = [a for a in args[1:] if not a.startswith("--")]
    source, target = mounts[paths[0]], mounts[paths[1]]
    try:
        if action == "snapshot":
            archiver.snapshot(source, target, compress, progress_stream=stream)
        else:
            archiver.restore(source, target, progress_stream=stream)
    except ArchiveError as e:
        return 1, stream.getvalue().splitlines(), f"ERROR {e}\n"
    return 0, stream.getvalue().splitlines(), ""


class FakeRuntime(ContainerRuntime):
    """
    In-memory ContainerRuntime.

    Volumes are directories below ``root``. Starting a container runs
    ``worker`` synchronously. ``fail[method]`` makes that method raise.
    """

    def __init__(self, root: Path, worker: WorkerExecutor = successful_worker):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self.worker = worker
        self.volumes: Dict[str, Path] = {}
        self.containers: Dict[str, dict] = {}
        self.volume_users: Dict[str, List[str]] = {}
        self.images = {DEFAULT_WORKER_IMAGE}
        self.sizes: Dict[str, Optional[int]] = {}
        self.fail: Dict[str, BaseException] = {}
        self.created_containers: List[str] = []
        self.removed_containers: List[str] = []
        self.pulled: List[str] = []

    def _maybe_fail(self, method: str) -> None:
        error = self.fail.get(method)
        if error is not None:
            raise error

    # ---- Volumes ----

    def add_volume(self, name: str, files: Optional[Dict[str, str]] = None) -> Path:
        path = self.root / name
        path.mkdir(parents=True, exist_ok=True)
        for rel, content in (files or {}).items():
            file_path = path / rel
            file_path.parent.mkdir(parents=True, exist_ok=True)
            file_path.write_text(content)
        self.volumes[name] = path
        return path

    def inspect_volume(self, name: str) -> VolumeInfo:
        self._maybe_fail("inspect_volume")
        if name not in self.volumes:
            raise NotFoundError(f"Volume {name}: no such volume")
        return VolumeInfo(name=name, mountpoint=str(self.volumes[name]))

    def list_volumes(self, name_filter: Optional[str] = None) -> List[str]:
        self._maybe_fail("list_volumes")
        return [n for n in self.volumes if not name_filter or name_filter in n]

    def create_volume(self, name: str) -> VolumeInfo:
        self._maybe_fail("create_volume")
        if name in self.volumes:
            raise ContainerRuntimeError(f"Creating volume {name} failed: already exists")
        self.add_volume(name)
        return VolumeInfo(name=name, mountpoint=str(self.volumes[name]))

    def remove_volume(self, name: str) -> None:
        self._maybe_fail("remove_volume")
        if name not in self.volumes:
            raise NotFoundError(f"Volume {name}: no such volume")
        shutil.rmtree(self.volumes.pop(name))

    def list_volume_users(self, name: str) -> List[ContainerInfo]:
        self._maybe_fail("list_volume_users")
        return [
            ContainerInfo(id=f"id-{c}", name=c, status="running")
            for c in self.volume_users.get(name, [])
        ]

    def volume_sizes(self, names) -> Dict[str, Optional[int]]:
        self._maybe_fail("volume_sizes")
        return {n: self.sizes.get(n) for n in names}

    # ---- Containers ----

    def create_container(self, name, image, command, mounts) -> str:
        self._maybe_fail("create_container")
        if image not in self.images:
            raise NotFoundError(f"Creating container {name}: no such image {image}")
        self.containers[name] = {
            "image": image,
            "command": list(command),
            "mounts": list(mounts),
            "status": "created",
            "exit_code": None,
            "stdout": [],
            "stderr": "",
        }
        self.created_containers.append(name)
        self._maybe_fail("create_container_after")
        return f"id-{name}"

    def _get(self, name: str) -> dict:
        if name not in self.containers:
            raise NotFoundError(f"Container {name}: no such container")
        return self.containers[name]

    def start_container(self, name: str) -> None:
        self._maybe_fail("start_container")
        container = self._get(name)
        mounts = {m.target: self.volumes[m.source] for m in container["mounts"]}
        exit_code, stdout, stderr = self.worker(container["command"], mounts)
        container.update(status="exited", exit_code=exit_code, stdout=stdout, stderr=stderr)

    def wait_container(self, name: str) -> int:
        self._maybe_fail("wait_container")
        return self._get(name)["exit_code"]

    def remove_container(self, name: str) -> None:
        self._maybe_fail("remove_container")
        self._get(name)
        del self.containers[name]
        self.removed_containers.append(name)

    def container_exists(self, name: str) -> bool:
        return name in self.containers

    def stream_logs(self, name: str):
        self._maybe_fail("stream_logs")
        yield from list(self._get(name)["stdout"])

    def read_logs(self, name: str, tail: int = 20) -> str:
        self._maybe_fail("read_logs")
        lines = self._get(name)["stderr"].splitlines()
        return "\n".join(lines[-tail:])

    # ---- Images ----

    def image_exists(self, ref: str) -> bool:
        self._maybe_fail("image_exists")
        return ref in self.images

    def pull_image(self, ref: str):
        self._maybe_fail("pull_image")
        yield {"status": "Pulling from library", "id": ref}
        yield {"status": "Download complete", "id": "layer1"}
        self.images.add(ref)
        self.pulled.append(ref)


@pytest.fixture
def cli_runner():
    """Typer CLI runner for testing commands."""
    return CliRunner()


@pytest.fixture
def fake_runtime(tmp_path):
    """In-memory runtime whose worker always succeeds."""
    return FakeRuntime(tmp_path / "volumes")


@pytest.fixture
def local_runtime(tmp_path):
    """In-memory runtime that runs the real archiver for worker containers."""
    return FakeRuntime(tmp_path / "volumes", worker=run_local_worker)


@pytest.fixture
def test_config(tmp_path):
    """Config with built-in defaults, isolated from the user's files and env."""
    return Config(config_path=tmp_path / "missing.conf", environ={})


@pytest.fixture
def fixed_clock():
    """Clock returning increasing timestamps starting at 1700000000."""
    ticks = iter(range(1700000000, 1700001000))
    return lambda: next(ticks)


@pytest.fixture
def sample_tree(tmp_path):
    """Directory with files, nested and empty directories and a symlink."""
    root = tmp_path / "source"
    (root / "sub" / "deeper").mkdir(parents=True)
    (root / "empty_dir").mkdir()
    (root / "a.txt").write_text("hello")
    (root / "empty.bin").write_bytes(b"")
    (root / "sub" / "b.txt").write_text("world" * 1000)
    (root / "sub" / "deeper" / "c.bin").write_bytes(os.urandom(200_000))
    os.symlink("sub/b.txt", root / "link_to_b")
    os.symlink("/nonexistent/target", root / "dangling")
    return root
