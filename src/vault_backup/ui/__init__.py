"""Terminal progress reporting."""

from .progress import ConsoleProgressReporter, ProgressReporter, ProgressState, ProgressStore

__all__ = ["ProgressReporter", "ConsoleProgressReporter", "ProgressState", "ProgressStore"]
