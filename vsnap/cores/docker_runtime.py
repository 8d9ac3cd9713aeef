################################################################################
# VSNAP
#
# @file:        docker_runtime.py
# @module:      vsnap.cores.docker_runtime
# @description: ContainerRuntime implementation backed by the Docker SDK.
# @author:      vsnap contributors
# @repository:  https://github.com/fominv/vsnap
# @version:     0.6.0
#
# ------------------------------------------------------------------------------
# MIT-Lizenz: siehe LICENSE oder https://opensource.org/licenses/MIT
# ==============================================================================
# Hinweise:
# - docker.errors.* are translated into vsnap errors at this seam
# - Log streams are demultiplexed by the SDK (no TTY) and re-split into lines
################################################################################

"""
Docker runtime adapter.

Talks to the Docker daemon through the ``docker`` SDK. The client is
created lazily so constructing the adapter never touches the daemon.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence

import docker
from docker.errors import APIError, DockerException, ImageNotFound, NotFound
from docker.types import Mount
from docker.utils import parse_repository_tag

from ..helpers.errors import ContainerRuntimeError, NotFoundError
from ..helpers.logging import get_logger
from ..types import ContainerInfo, VolumeInfo, VolumeMount
from .runtime import ContainerRuntime

logger = get_logger(__name__)


def _explain(error: DockerException) -> str:
    explanation = getattr(error, "explanation", None)
    return str(explanation or error)


@contextmanager
def _docker_errors(action: str) -> Iterator[None]:
    """Translate SDK exceptions raised while performing ``action``."""
    try:
        yield
    except NotFound as e:
        raise NotFoundError(f"{action}: {_explain(e)}") from e
    except APIError as e:
        raise ContainerRuntimeError(f"{action} failed: {_explain(e)}") from e
    except DockerException as e:
        raise ContainerRuntimeError(f"{action} failed: {_explain(e)}") from e


class DockerRuntime(ContainerRuntime):
    """ContainerRuntime on top of ``docker.DockerClient``."""

    def __init__(self, base_url: Optional[str] = None, client: Optional[docker.DockerClient] = None):
        """
        Args:
            base_url: Daemon URL (e.g. unix:///var/run/docker.sock); environment defaults when None
            client: Pre-built client, mainly for tests
        """
        self.base_url = base_url
        self._client = client

    @property
    def client(self) -> docker.DockerClient:
        if self._client is None:
            with _docker_errors("Connecting to Docker daemon"):
                if self.base_url:
                    self._client = docker.DockerClient(base_url=self.base_url)
                else:
                    self._client = docker.from_env()
            logger.debug("Connected to Docker daemon", extra={"base_url": self.base_url or "env"})
        return self._client

    # ---- Volumes ----

    def inspect_volume(self, name: str) -> VolumeInfo:
        with _docker_errors(f"Volume {name}"):
            volume = self.client.volumes.get(name)
        attrs = volume.attrs or {}
        return VolumeInfo(
            name=attrs.get("Name", name),
            mountpoint=attrs.get("Mountpoint"),
            labels=attrs.get("Labels") or {},
        )

    def list_volumes(self, name_filter: Optional[str] = None) -> List[str]:
        filters = {"name": name_filter} if name_filter else None
        with _docker_errors("Listing volumes"):
            volumes = self.client.volumes.list(filters=filters)
        return [v.name for v in volumes]

    def create_volume(self, name: str) -> VolumeInfo:
        with _docker_errors(f"Creating volume {name}"):
            volume = self.client.volumes.create(name=name)
        logger.debug(f"Created volume {name}", extra={"volume": name})
        attrs = volume.attrs or {}
        return VolumeInfo(name=name, mountpoint=attrs.get("Mountpoint"), labels=attrs.get("Labels") or {})

    def remove_volume(self, name: str) -> None:
        with _docker_errors(f"Removing volume {name}"):
            self.client.volumes.get(name).remove()
        logger.debug(f"Removed volume {name}", extra={"volume": name})

    def list_volume_users(self, name: str) -> List[ContainerInfo]:
        with _docker_errors(f"Listing containers using volume {name}"):
            containers = self.client.containers.list(all=True, filters={"volume": name})
        return [ContainerInfo(id=c.id, name=c.name, status=c.status) for c in containers]

    def volume_sizes(self, names: Iterable[str]) -> Dict[str, Optional[int]]:
        wanted = set(names)
        sizes: Dict[str, Optional[int]] = {name: None for name in wanted}
        with _docker_errors("Reading disk usage"):
            usage = self.client.df()
        for entry in usage.get("Volumes") or []:
            name = entry.get("Name")
            if name not in wanted:
                continue
            size = (entry.get("UsageData") or {}).get("Size")
            # -1 means the daemon did not compute it
            sizes[name] = size if isinstance(size, int) and size >= 0 else None
        return sizes

    # ---- Containers ----

    def create_container(
        self,
        name: str,
        image: str,
        command: Sequence[str],
        mounts: Sequence[VolumeMount],
    ) -> str:
        docker_mounts = [
            Mount(target=m.target, source=m.source, type="volume", read_only=m.read_only)
            for m in mounts
        ]
        with _docker_errors(f"Creating container {name}"):
            container = self.client.containers.create(
                image=image,
                command=list(command),
                name=name,
                mounts=docker_mounts,
                detach=True,
                tty=False,
                stdin_open=False,
            )
        logger.debug(f"Created container {name}", extra={"container": name, "image": image})
        return container.id

    def _container(self, name: str):
        return self.client.containers.get(name)

    def start_container(self, name: str) -> None:
        with _docker_errors(f"Starting container {name}"):
            self._container(name).start()

    def wait_container(self, name: str) -> int:
        with _docker_errors(f"Waiting for container {name}"):
            result = self._container(name).wait()
        error = (result.get("Error") or {}).get("Message")
        if error:
            logger.warning(f"Container {name} reported: {error}", extra={"container": name})
        return int(result.get("StatusCode", -1))

    def remove_container(self, name: str) -> None:
        with _docker_errors(f"Removing container {name}"):
            self._container(name).remove(force=True)
        logger.debug(f"Removed container {name}", extra={"container": name})

    def container_exists(self, name: str) -> bool:
        try:
            with _docker_errors(f"Container {name}"):
                self._container(name)
        except NotFoundError:
            return False
        return True

    def stream_logs(self, name: str) -> Iterator[str]:
        with _docker_errors(f"Following logs of {name}"):
            stream = self._container(name).logs(stream=True, follow=True, stdout=True, stderr=False)
            buffer = b""
            for chunk in stream:
                buffer += chunk
                while b"\n" in buffer:
                    line, buffer = buffer.split(b"\n", 1)
                    yield line.decode("utf-8", errors="replace")
            if buffer:
                yield buffer.decode("utf-8", errors="replace")

    def read_logs(self, name: str, tail: int = 20) -> str:
        with _docker_errors(f"Reading logs of {name}"):
            output = self._container(name).logs(stdout=False, stderr=True, tail=tail)
        return output.decode("utf-8", errors="replace")

    # ---- Images ----

    def image_exists(self, ref: str) -> bool:
        try:
            with _docker_errors(f"Image {ref}"):
                try:
                    self.client.images.get(ref)
                except ImageNotFound:
                    return False
        except NotFoundError:
            return False
        return True

    def pull_image(self, ref: str) -> Iterator[Dict[str, Any]]:
        repository, tag = parse_repository_tag(ref)
        with _docker_errors(f"Pulling image {ref}"):
            for event in self.client.api.pull(repository, tag=tag or "latest", stream=True, decode=True):
                if "error" in event:
                    raise ContainerRuntimeError(f"Pulling image {ref} failed: {event['error']}")
                yield event
