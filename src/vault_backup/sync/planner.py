"""Pre-flight estimate of how many files a tree transfer will copy.

The count only sizes a progress bar. With rsync it is exact (rsync is asked
what it would do); without rsync it is every mirrorable file in the source.
"""

import logging
import os
from typing import Iterable

from ..utils.file_utils import FileHelper
from .exclusion import ExclusionPattern, should_exclude
from .rsync import build_rsync_args, find_rsync, run_rsync
from .stream import count_transfer_lines

logger = logging.getLogger(__name__)

# Used when rsync cannot answer, so the caller still draws a bar
FALLBACK_ESTIMATE = 1


def count_files(source: str, exclude: Iterable[ExclusionPattern]) -> int:
    """Count mirrorable files below ``source``, skipping excluded segments."""
    exclude = list(exclude)
    try:
        entries = FileHelper.sorted_entries(source)
    except OSError:
        return 0

    count = 0
    for entry in entries:
        if should_exclude(entry.name, exclude):
            continue
        if FileHelper.is_real_dir(entry):
            count += count_files(entry.path, exclude)
        elif FileHelper.is_copyable(entry):
            count += 1
    return count


def estimate_with_rsync(rsync: str, source: str, dest: str,
                        exclude: Iterable[ExclusionPattern], delete: bool = True) -> int:
    """Ask rsync in dry-run mode which files it would send."""
    args = build_rsync_args(rsync, source, dest, exclude=exclude, delete=delete,
                            dry_run=True, list_files=True)
    try:
        returncode, output = run_rsync(args)
    except OSError as e:
        logger.warning(f"Could not run rsync to estimate {source}: {e}")
        return FALLBACK_ESTIMATE

    if returncode != 0:
        logger.warning(f"rsync dry run for {source} exited with {returncode}")
        return FALLBACK_ESTIMATE
    return count_transfer_lines(output)


def estimate_transfer_count(source: str, dest: str, exclude: Iterable[ExclusionPattern] = (),
                            rsync_binary: str = "rsync", delete: bool = True) -> int:
    """Number of files a transfer of ``source`` to ``dest`` would copy.

    Args:
        source: Source directory
        dest: Destination directory
        exclude: Compiled exclusion patterns, same as the real transfer
        rsync_binary: rsync executable name or path
        delete: Whether the real transfer deletes extraneous files

    Returns:
        File count; 1 when rsync fails so progress still renders
    """
    source = os.fspath(source)
    rsync = find_rsync(rsync_binary)
    if rsync:
        count = estimate_with_rsync(rsync, source, os.fspath(dest), exclude, delete)
    else:
        count = count_files(source, exclude)
    logger.debug(f"Estimated {count} files to transfer from {source}")
    return count
