################################################################################
# VSNAP
#
# @file:        worker_runner.py
# @module:      vsnap.cores.worker_runner
# @description: Runs one worker container from creation to removal.
# @author:      vsnap contributors
# @repository:  https://github.com/fominv/vsnap
# @version:     0.6.0
#
# ------------------------------------------------------------------------------
# MIT-Lizenz: siehe LICENSE oder https://opensource.org/licenses/MIT
# ==============================================================================
# Hinweise:
# - Lifecycle: Created -> Started -> Exited -> Removed
# - Removal is attempted on every path once creation was attempted
# - A removal failure is attached to the primary error, never replaces it
################################################################################

"""
Worker container runner.

Creates a uniquely named worker container, follows its stdout for progress
records while waiting for it to exit, and removes it afterwards.
"""

from __future__ import annotations

import threading
import uuid
from typing import List, Optional, Sequence

from ..helpers.constants import LOG_FOLLOW_GRACE_PERIOD
from ..helpers.errors import (
    NotFoundError,
    OrchestrationError,
    VsnapError,
    WorkerFailedError,
)
from ..helpers.logging import get_logger
from ..types import VolumeMount, WorkerCommand, WorkerResult
from .progress_monitor import ProgressMonitor
from .runtime import ContainerRuntime

logger = get_logger(__name__)

STDERR_TAIL_LINES = 20


class WorkerRunner:
    """Drives worker containers through the ContainerRuntime interface."""

    def __init__(
        self,
        runtime: ContainerRuntime,
        image: str,
        name_prefix: str = "vsnap",
        log_grace_period: float = LOG_FOLLOW_GRACE_PERIOD,
    ):
        self.runtime = runtime
        self.image = image
        self.name_prefix = name_prefix
        self.log_grace_period = log_grace_period

    def generate_name(self) -> str:
        return f"{self.name_prefix}-worker-{uuid.uuid4().hex[:12]}"

    def run(
        self,
        command: WorkerCommand,
        mounts: Sequence[VolumeMount],
        monitor: Optional[ProgressMonitor] = None,
    ) -> WorkerResult:
        """
        Run the worker to completion.

        Returns:
            WorkerResult of a worker that exited with status 0

        Raises:
            WorkerFailedError: Worker exited non-zero (carries its stderr tail)
            ContainerRuntimeError / NotFoundError: Runtime calls failed
            OrchestrationError: Anything else went wrong on the host side
        """
        name = self.generate_name()
        log_ctx = {"container": name, "action": command.action}
        logger.info(f"Starting worker {name}", extra=log_ctx)

        try:
            result, output = self._drive(name, command, mounts, monitor)
        except VsnapError as error:
            self._remove(name, error)
            raise
        except Exception as error:
            wrapped = OrchestrationError(f"Worker {name} could not be run: {error}")
            self._remove(name, wrapped)
            raise wrapped from error
        except BaseException:
            # KeyboardInterrupt and friends: still try to clean up
            self._remove(name, None, quiet=True)
            raise

        if not result.success:
            failure = WorkerFailedError(name, result.exit_code, output)
            self._remove(name, failure)
            logger.error(str(failure), extra=log_ctx)
            raise failure

        self._remove(name, None)
        logger.info(f"Worker {name} finished", extra=log_ctx)
        return result

    def _drive(self, name, command, mounts, monitor):
        self.runtime.create_container(name, self.image, command.to_args(), mounts)
        self.runtime.start_container(name)

        follow_errors: List[BaseException] = []
        follower = threading.Thread(
            target=self._follow_logs,
            args=(name, monitor, follow_errors),
            name=f"{name}-logs",
            daemon=True,
        )
        follower.start()

        exit_code = self.runtime.wait_container(name)

        # Let the follower drain the final progress line
        follower.join(self.log_grace_period)
        if follower.is_alive():
            logger.warning(
                f"Log stream of {name} still open {self.log_grace_period}s after exit",
                extra={"container": name},
            )
        for error in follow_errors:
            logger.warning(f"Following logs of {name} failed: {error}", extra={"container": name})

        output = None
        if exit_code != 0:
            output = self._stderr_tail(name)

        last = monitor.last_record if monitor is not None else None
        return WorkerResult(container_name=name, exit_code=exit_code, last_progress=last), output

    def _follow_logs(self, name: str, monitor: Optional[ProgressMonitor], errors: List[BaseException]) -> None:
        try:
            for line in self.runtime.stream_logs(name):
                if monitor is not None:
                    monitor.feed(line)
        except Exception as e:
            errors.append(e)

    def _stderr_tail(self, name: str) -> Optional[str]:
        try:
            return self.runtime.read_logs(name, tail=STDERR_TAIL_LINES)
        except VsnapError as e:
            logger.warning(f"Cannot read stderr of {name}: {e}", extra={"container": name})
            return None

    def _remove(self, name: str, primary: Optional[VsnapError], quiet: bool = False) -> None:
        """Remove the container; attach failures to ``primary`` if there is one."""
        try:
            self.runtime.remove_container(name)
        except NotFoundError:
            # Creation never happened
            logger.debug(f"Worker {name} already gone", extra={"container": name})
        except Exception as e:
            logger.error(f"Failed to remove worker {name}: {e}", extra={"container": name})
            if quiet:
                return
            if primary is not None:
                primary.add_cleanup_error(e)
                return
            raise OrchestrationError(f"Failed to remove worker container {name}: {e}") from e
