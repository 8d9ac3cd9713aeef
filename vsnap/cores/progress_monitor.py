"""
Host-side consumers of worker output.

ProgressMonitor turns progress records read from the worker's stdout into a
rich progress bar. ImagePullIndicator shows a spinner while an image pulls.
"""

from __future__ import annotations

import threading
from typing import Any, Dict, Optional

from pydantic import ValidationError
from rich.progress import Progress, TaskID

from ..helpers.logging import get_logger
from ..helpers.ui_utils import create_progress_bar, create_spinner
from ..models import ProgressRecord

logger = get_logger(__name__)


class ProgressMonitor:
    """
    Feeds worker progress lines into a progress bar.

    Lines that are not progress records are ignored. The monitor never
    assumes completion: ``finish()`` returns whatever was last reported.
    """

    def __init__(self, description: str = "", progress: Optional[Progress] = None, enabled: bool = True):
        self.description = description
        self.enabled = enabled
        self._progress = progress
        self._task: Optional[TaskID] = None
        self._lock = threading.Lock()
        self.last_record: Optional[ProgressRecord] = None
        self.ignored_lines = 0

    def __enter__(self) -> ProgressMonitor:
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.finish()

    def start(self) -> None:
        if not self.enabled or self._task is not None:
            return
        if self._progress is None:
            self._progress = create_progress_bar()
        self._progress.start()
        self._task = self._progress.add_task(self.description, total=None)

    def feed(self, line: str) -> Optional[ProgressRecord]:
        """Parse one line; returns the record or None if it was ignored."""
        try:
            record = ProgressRecord.from_line(line)
        except ValidationError:
            with self._lock:
                self.ignored_lines += 1
            logger.debug(f"Ignoring worker output line: {line[:200]!r}")
            return None

        with self._lock:
            self.last_record = record
            if self._progress is not None and self._task is not None:
                self._progress.update(self._task, total=record.total, completed=record.progress)
        return record

    def finish(self) -> Optional[ProgressRecord]:
        with self._lock:
            if self._progress is not None and self._task is not None:
                self._progress.stop()
                self._task = None
            return self.last_record

    @property
    def complete(self) -> bool:
        return self.last_record is not None and self.last_record.complete


class ImagePullIndicator:
    """Spinner whose description follows the pull status events."""

    def __init__(self, ref: str, enabled: bool = True):
        self.ref = ref
        self.enabled = enabled
        self._progress: Optional[Progress] = None
        self._task: Optional[TaskID] = None

    def __enter__(self) -> ImagePullIndicator:
        if self.enabled:
            self._progress = create_spinner()
            self._progress.start()
            self._task = self._progress.add_task(f"Pulling image {self.ref}", total=None)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._progress is not None:
            self._progress.stop()
            self._progress = None

    def __call__(self, event: Dict[str, Any]) -> None:
        status = event.get("status")
        if not status or self._progress is None or self._task is None:
            return
        layer = event.get("id")
        text = f"{status} {layer}" if layer else status
        self._progress.update(self._task, description=f"Pulling image {self.ref}: {text}")
