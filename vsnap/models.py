"""
Pydantic models for the data vsnap exchanges across the container boundary.

ProgressRecord is one line of the worker's stdout; SnapshotMetadata is the
JSON file stored next to a snapshot archive.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .helpers.constants import SNAPSHOT_METADATA


class ProgressRecord(BaseModel):
    """Bytes processed versus the known total of the running operation."""

    model_config = ConfigDict(frozen=True)

    progress: int = Field(..., ge=0)
    total: int = Field(..., ge=0)

    @model_validator(mode="after")
    def check_bounds(self) -> ProgressRecord:
        if self.progress > self.total:
            raise ValueError(f"progress {self.progress} exceeds total {self.total}")
        return self

    @property
    def complete(self) -> bool:
        return self.progress == self.total

    def to_line(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_line(cls, line: str) -> ProgressRecord:
        """Parse one wire line; raises pydantic.ValidationError on garbage."""
        return cls.model_validate_json(line.strip())


class SnapshotMetadata(BaseModel):
    """Total uncompressed size, seeds the progress denominator on restore."""

    total_size: int = Field(..., ge=0)

    def write(self, snapshot_dir: Path) -> Path:
        path = Path(snapshot_dir) / SNAPSHOT_METADATA
        path.write_text(self.model_dump_json(), encoding="utf-8")
        return path

    @classmethod
    def read(cls, snapshot_dir: Path) -> SnapshotMetadata:
        path = Path(snapshot_dir) / SNAPSHOT_METADATA
        return cls.model_validate_json(path.read_text(encoding="utf-8"))
