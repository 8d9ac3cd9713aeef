"""
Snapshot discovery module for vsnap.

Finds snapshot volumes through the runtime's volume listing and resolves
user-facing snapshot names to volume names.
"""

from typing import List

from ..helpers.errors import AlreadyExistsError, AmbiguousError, NotFoundError
from ..helpers.logging import get_logger
from ..helpers.naming import Lookup, LookupStatus, SnapshotNaming, exactly_one
from ..types import SnapshotInfo
from .runtime import ContainerRuntime

logger = get_logger(__name__)


class SnapshotDiscovery:
    """Lists and resolves snapshot volumes."""

    def __init__(self, runtime: ContainerRuntime, naming: SnapshotNaming):
        self.runtime = runtime
        self.naming = naming

    def list_snapshot_volumes(self) -> List[str]:
        """Volume names that follow the snapshot naming convention."""
        # The runtime filter is a substring match, the pattern is authoritative
        candidates = self.runtime.list_volumes(self.naming.search_term)
        volumes = [name for name in candidates if self.naming.matches(name)]
        logger.debug(
            f"Found {len(volumes)} snapshot volume(s) among {len(candidates)} candidate(s)"
        )
        return volumes

    def resolve_by_name(self, snapshot_name: str) -> Lookup[str]:
        def has_name(volume_name: str) -> bool:
            identity = self.naming.decode(volume_name)
            return identity is not None and identity.name == snapshot_name

        return exactly_one(self.list_snapshot_volumes(), has_name)

    def require_snapshot(self, snapshot_name: str) -> str:
        """
        Volume name of the snapshot called ``snapshot_name``.

        Raises:
            NotFoundError: No snapshot has that name
            AmbiguousError: More than one snapshot has that name
        """
        lookup = self.resolve_by_name(snapshot_name)
        if lookup.status is LookupStatus.NOT_FOUND:
            raise NotFoundError(f"Snapshot {snapshot_name} does not exist")
        if lookup.status is LookupStatus.AMBIGUOUS:
            raise AmbiguousError(snapshot_name, lookup.candidates)
        return lookup.value

    def verify_snapshot_does_not_exist(self, snapshot_name: str) -> None:
        lookup = self.resolve_by_name(snapshot_name)
        if lookup.status is not LookupStatus.NOT_FOUND:
            raise AlreadyExistsError(f"Snapshot {snapshot_name} already exists")

    def list_snapshots(self, include_size: bool = False) -> List[SnapshotInfo]:
        """All snapshots, oldest first."""
        snapshots = []
        for volume_name in self.list_snapshot_volumes():
            identity = self.naming.decode(volume_name)
            if identity is not None:
                snapshots.append(SnapshotInfo(identity=identity, volume_name=volume_name))

        if include_size and snapshots:
            sizes = self.runtime.volume_sizes(s.volume_name for s in snapshots)
            for snap in snapshots:
                snap.size_bytes = sizes.get(snap.volume_name)

        snapshots.sort(key=lambda s: (s.identity.timestamp, s.identity.name))
        return snapshots
