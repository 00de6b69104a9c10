"""Exceptions raised by the synchronization engine."""

from typing import Optional


class SyncError(Exception):
    """Base class for all synchronization failures."""


class SourceNotFoundError(SyncError):
    """The source of a single-file copy does not exist."""

    def __init__(self, source: str):
        self.source = source
        super().__init__(f"Source not found: {source}")


class MirrorToolFailedError(SyncError):
    """rsync exited with a non-zero status."""

    def __init__(self, exit_code: int, output: str = ""):
        self.exit_code = exit_code
        self.output = output
        super().__init__(f"rsync failed with exit code {exit_code}")


class DirectoryListFailedError(SyncError):
    """A source directory could not be listed."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to list directory {path}: {reason}")


class SubprocessTimeoutError(SyncError):
    """rsync produced no output for longer than the inactivity timeout."""

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f"rsync produced no output for {timeout:g}s")


class CopyFailedError(SyncError):
    """A filesystem copy of a single file failed."""

    def __init__(self, source: str, dest: str, reason: Optional[str] = None):
        self.source = source
        self.dest = dest
        self.reason = reason
        super().__init__(f"Failed to copy {source} -> {dest}: {reason}")
