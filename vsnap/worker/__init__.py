"""Worker-side archiving, restoring and progress reporting."""

from .archiver import (
    calculate_total_size,
    extract_archive,
    restore,
    snapshot,
    write_archive,
)
from .progress import CountingReader, CountingWriter, ProgressReporter

__all__ = [
    'calculate_total_size',
    'extract_archive',
    'restore',
    'snapshot',
    'write_archive',
    'CountingReader',
    'CountingWriter',
    'ProgressReporter',
]
