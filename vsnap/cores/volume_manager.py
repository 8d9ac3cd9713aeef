"""
Volume lifecycle helpers.

Existence and in-use checks run before every destructive step. The in-use
check is check-then-act: a container may start using the volume right
after it passed.
"""

import queue
import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple

from ..helpers.errors import ContainerRuntimeError, InUseError, NotFoundError
from ..helpers.logging import get_logger
from .runtime import ContainerRuntime

logger = get_logger(__name__)

PullListener = Callable[[Dict[str, Any]], None]


class VolumeManager:
    """Creates, drops and checks volumes; makes sure the worker image exists."""

    def __init__(self, runtime: ContainerRuntime):
        self.runtime = runtime

    def volume_exists(self, name: str) -> bool:
        try:
            self.runtime.inspect_volume(name)
        except NotFoundError:
            return False
        return True

    def verify_exists(self, name: str) -> None:
        if not self.volume_exists(name):
            raise NotFoundError(f"Volume {name} does not exist")

    def verify_not_in_use(self, name: str) -> None:
        """Raise InUseError if any container, running or stopped, mounts the volume."""
        users = self.runtime.list_volume_users(name)
        if users:
            names = [c.name for c in users]
            logger.warning(
                f"Volume {name} is used by {len(names)} container(s)",
                extra={"volume": name, "containers": names},
            )
            raise InUseError(name, names)

    def create_volume(self, name: str) -> None:
        self.runtime.create_volume(name)
        logger.info(f"Created volume {name}", extra={"volume": name})

    def drop_volume(self, name: str) -> None:
        self.verify_not_in_use(name)
        self.runtime.remove_volume(name)
        logger.info(f"Dropped volume {name}", extra={"volume": name})

    def ensure_image(
        self, ref: str, on_event: Optional[PullListener] = None, timeout: Optional[float] = None
    ) -> bool:
        """
        Make sure ``ref`` is available locally.

        The pull stream is drained by a background thread, so a pull that
        stalls without sending events still hits the deadline. A timed out
        pull keeps running in the daemon until the process exits.

        Args:
            ref: Image reference
            on_event: Receives each pull progress event (e.g. a spinner)
            timeout: Give up after this many seconds (None or 0: no limit)

        Returns:
            True if the image had to be pulled
        """
        if self.runtime.image_exists(ref):
            logger.debug(f"Image {ref} present", extra={"image": ref})
            return False

        logger.info(f"Pulling image {ref}", extra={"image": ref})
        events: "queue.Queue[Tuple[str, Any]]" = queue.Queue()

        def pump() -> None:
            try:
                for event in self.runtime.pull_image(ref):
                    events.put(("event", event))
            except Exception as e:
                events.put(("error", e))
            else:
                events.put(("done", None))

        threading.Thread(target=pump, name="vsnap-pull", daemon=True).start()

        deadline = time.monotonic() + timeout if timeout else None
        while True:
            wait = None
            if deadline is not None:
                wait = deadline - time.monotonic()
                if wait <= 0:
                    raise ContainerRuntimeError(f"Pulling image {ref} timed out after {timeout}s")
            try:
                kind, payload = events.get(timeout=wait)
            except queue.Empty:
                raise ContainerRuntimeError(f"Pulling image {ref} timed out after {timeout}s") from None
            if kind == "error":
                raise payload
            if kind == "done":
                break
            if on_event is not None:
                on_event(payload)

        logger.info(f"Pulled image {ref}", extra={"image": ref})
        return True
