################################################################################
# VSNAP
#
# @file:        errors.py
# @module:      vsnap.helpers.errors
# @description: Exception hierarchy shared by orchestrator, worker and CLI.
# @author:      vsnap contributors
# @repository:  https://github.com/fominv/vsnap
# @version:     0.6.0
#
# ------------------------------------------------------------------------------
# MIT-Lizenz: siehe LICENSE oder https://opensource.org/licenses/MIT
################################################################################

"""
Exceptions raised by vsnap.

Every failure surfaced to the caller derives from VsnapError. Cleanup
failures that happen while another error is already propagating are
attached to that error instead of replacing it.
"""

from __future__ import annotations

from typing import List, Optional, Sequence


class VsnapError(Exception):
    """Base class for all vsnap errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
        self.cleanup_errors: List[BaseException] = []

    def add_cleanup_error(self, error: BaseException) -> None:
        """Attach a failure that happened while cleaning up after this error."""
        self.cleanup_errors.append(error)

    def __str__(self) -> str:
        if not self.cleanup_errors:
            return self.message
        details = "; ".join(str(e) for e in self.cleanup_errors)
        return f"{self.message} (cleanup also failed: {details})"


class NotFoundError(VsnapError):
    """Volume, snapshot or image does not exist."""


class AlreadyExistsError(VsnapError):
    """Snapshot name or target volume is already taken."""


class InUseError(VsnapError):
    """Volume is referenced by one or more containers."""

    def __init__(self, volume_name: str, users: Sequence[str]):
        self.volume_name = volume_name
        self.users = list(users)
        super().__init__(
            f"Volume {volume_name} is in use by: {', '.join(self.users)}"
        )


class AmbiguousError(VsnapError):
    """More than one volume matches a snapshot name."""

    def __init__(self, snapshot_name: str, candidates: Sequence[str]):
        self.snapshot_name = snapshot_name
        self.candidates = list(candidates)
        super().__init__(
            f"Snapshot name {snapshot_name} is ambiguous: {', '.join(self.candidates)}"
        )


class ArchiveError(VsnapError):
    """I/O failure, corrupt or truncated archive, or decompression failure."""


class ContainerRuntimeError(VsnapError):
    """Container or volume API failure, including an unreachable daemon."""


class OrchestrationError(VsnapError):
    """The host failed while driving a worker container."""


class WorkerFailedError(VsnapError):
    """The worker container exited with a non-zero status."""

    def __init__(self, container_name: str, exit_code: int, output: Optional[str] = None):
        self.container_name = container_name
        self.exit_code = exit_code
        self.output = (output or "").strip()
        message = f"Worker {container_name} exited with status {exit_code}"
        if self.output:
            message += f": {self.output.splitlines()[-1]}"
        super().__init__(message)


class ConfigError(VsnapError):
    """Configuration file could not be read or is invalid."""
