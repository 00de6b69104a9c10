"""Synchronization engine."""

from .errors import (
    CopyFailedError,
    DirectoryListFailedError,
    MirrorToolFailedError,
    SourceNotFoundError,
    SubprocessTimeoutError,
    SyncError,
)
from .exclusion import GlobPattern, LiteralPattern, compile_pattern, should_exclude
from .home_dirs import HomeBackupResult, HomeDirsBackup
from .models import TransferRequest, TransferStrategy
from .synchronizer import Synchronizer

__all__ = [
    "Synchronizer",
    "HomeDirsBackup",
    "HomeBackupResult",
    "TransferRequest",
    "TransferStrategy",
    "LiteralPattern",
    "GlobPattern",
    "compile_pattern",
    "should_exclude",
    "SyncError",
    "SourceNotFoundError",
    "MirrorToolFailedError",
    "DirectoryListFailedError",
    "SubprocessTimeoutError",
    "CopyFailedError",
]
