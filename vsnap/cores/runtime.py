"""
Container runtime capability interface.

The orchestrator only talks to the runtime through these primitives, so
its control flow can be driven by an in-memory implementation in tests.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence

from ..types import ContainerInfo, VolumeInfo, VolumeMount


class ContainerRuntime(ABC):
    """Volume, container and image primitives of a container runtime."""

    # ---- Volumes ----

    @abstractmethod
    def inspect_volume(self, name: str) -> VolumeInfo:
        """Return volume details. Raises NotFoundError if absent."""

    @abstractmethod
    def list_volumes(self, name_filter: Optional[str] = None) -> List[str]:
        """Names of volumes whose name contains ``name_filter``."""

    @abstractmethod
    def create_volume(self, name: str) -> VolumeInfo:
        pass

    @abstractmethod
    def remove_volume(self, name: str) -> None:
        pass

    @abstractmethod
    def list_volume_users(self, name: str) -> List[ContainerInfo]:
        """Containers (running or stopped) that mount the volume."""

    @abstractmethod
    def volume_sizes(self, names: Iterable[str]) -> Dict[str, Optional[int]]:
        """Disk usage per volume; None where the runtime cannot tell."""

    # ---- Containers ----

    @abstractmethod
    def create_container(
        self,
        name: str,
        image: str,
        command: Sequence[str],
        mounts: Sequence[VolumeMount],
    ) -> str:
        """Create (but do not start) a container. Returns its id."""

    @abstractmethod
    def start_container(self, name: str) -> None:
        pass

    @abstractmethod
    def wait_container(self, name: str) -> int:
        """Block until the container exits; returns its exit code."""

    @abstractmethod
    def remove_container(self, name: str) -> None:
        """Remove the container, killing it if still running."""

    @abstractmethod
    def container_exists(self, name: str) -> bool:
        pass

    @abstractmethod
    def stream_logs(self, name: str) -> Iterator[str]:
        """Follow the container's stdout, one decoded line at a time."""

    @abstractmethod
    def read_logs(self, name: str, tail: int = 20) -> str:
        """Last ``tail`` lines of the container's stderr."""

    # ---- Images ----

    @abstractmethod
    def image_exists(self, ref: str) -> bool:
        pass

    @abstractmethod
    def pull_image(self, ref: str) -> Iterator[Dict[str, Any]]:
        """Pull an image, yielding the runtime's progress events."""
