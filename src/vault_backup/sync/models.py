"""Data structures passed through a single synchronization call."""

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Hashable, List, Optional

from .exclusion import ExclusionPattern


class TransferStrategy(str, Enum):
    """Ways a tree transfer can run, in the order they are considered."""
    DRY_RUN = "dry_run"
    SOURCE_MISSING = "source_missing"
    STREAMING = "streaming"
    BATCH = "batch"
    MANUAL = "manual"


@dataclass(frozen=True)
class TransferRequest:
    """Everything one copy call needs. Built by the caller, never mutated."""
    source: str
    dest: str
    exclude: FrozenSet[ExclusionPattern] = frozenset()
    delete_extraneous: bool = False
    dry_run: bool = False
    progress_id: Optional[Hashable] = None
    preserve_permissions: bool = True
    return_size: bool = False

    @property
    def label(self) -> str:
        """Short name used for progress bars and completion messages."""
        name = self.source.replace("\\", "/").rstrip("/")
        return name.rsplit("/", 1)[-1] or self.source


@dataclass
class FileCopyStats:
    """Tally kept by the manual tree copy."""
    files_copied: int = 0
    files_unchanged: int = 0
    bytes_copied: int = 0
    bytes_unchanged: int = 0
    skipped_paths: List[str] = field(default_factory=list)

    @property
    def files_skipped(self) -> int:
        return len(self.skipped_paths)

    @property
    def total_bytes(self) -> int:
        return self.bytes_copied + self.bytes_unchanged

    def record_copy(self, size: int):
        self.files_copied += 1
        self.bytes_copied += size

    def record_unchanged(self, size: int):
        self.files_unchanged += 1
        self.bytes_unchanged += size

    def record_skip(self, path: str):
        self.skipped_paths.append(path)
