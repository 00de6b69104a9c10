"""Copies single files and directory trees, through rsync when it is installed.

Tree transfers pick one of three strategies:

* streaming: rsync with per-file output driving a progress bar, used when a
  progress id was given and there are exclusions
* batch: a single rsync run whose ``--stats`` summary gives the size
* manual: a recursive copy in Python when rsync is missing

All three skip the same names. Failures inside a tree transfer are reported
and logged but do not abort it, since one unreadable subtree should not sink
a whole backup run. Single-file copies raise instead.
"""

import logging
import os
import shutil
from typing import FrozenSet, Hashable, Iterable, List, Optional, Union

from ..config.settings import SyncSettings
from ..ui.progress import ProgressReporter
from ..utils.file_utils import FileHelper
from ..utils.logging import TimedOperation
from .errors import (
    CopyFailedError,
    DirectoryListFailedError,
    MirrorToolFailedError,
    SourceNotFoundError,
    SubprocessTimeoutError,
)
from .exclusion import ExclusionPattern, build_exclude_set, should_exclude
from .models import FileCopyStats, TransferRequest, TransferStrategy
from .planner import count_files, estimate_transfer_count
from .rsync import (
    StreamingProcess,
    build_rsync_args,
    find_rsync,
    parse_total_size,
    problem_lines,
    run_rsync,
)
from .stream import FileTransferred, RsyncOutputParser

# Module logger
logger = logging.getLogger(__name__)

PatternLike = Union[str, ExclusionPattern]
TMP_SUFFIX = ".vault-tmp"


class Synchronizer:
    """Mirrors files and directories from a source to a destination."""

    def __init__(self, settings: Optional[SyncSettings] = None,
                 reporter: Optional[ProgressReporter] = None):
        """Initialize synchronizer.

        Args:
            settings: Engine settings, defaults when omitted
            reporter: Where progress and user-facing messages go; a silent
                reporter is used when omitted
        """
        self.settings = settings or SyncSettings()
        self.reporter = reporter if reporter is not None else ProgressReporter(enabled=False)

    def available(self) -> bool:
        """Whether rsync can be used."""
        return find_rsync(self.settings.rsync_binary) is not None

    def exclude_set(self, exclude: Iterable[PatternLike] = ()) -> FrozenSet[ExclusionPattern]:
        """Caller patterns plus the configured baseline."""
        return build_exclude_set(exclude, self.settings.default_excludes)

    def estimate(self, source, dest, exclude: Iterable[PatternLike] = (), delete: bool = True) -> int:
        """Number of files a ``copy_tree`` with the same arguments would transfer."""
        return estimate_transfer_count(os.fspath(source), os.fspath(dest), self.exclude_set(exclude),
                                       self.settings.rsync_binary, delete)

    def select_strategy(self, request: TransferRequest) -> TransferStrategy:
        if request.dry_run:
            return TransferStrategy.DRY_RUN
        if not os.path.exists(request.source):
            return TransferStrategy.SOURCE_MISSING
        if self.available():
            if request.progress_id is not None and request.exclude:
                return TransferStrategy.STREAMING
            return TransferStrategy.BATCH
        return TransferStrategy.MANUAL

    # Single files

    def copy_file(self, source, dest, *, dry_run: bool = False,
                  preserve_permissions: Optional[bool] = None,
                  return_size: bool = False) -> Optional[int]:
        """Copy one file, skipping the copy when rsync sees it unchanged.

        Args:
            source: File to copy
            dest: Target path, parent directories are created
            dry_run: Only report what would happen
            preserve_permissions: Copy permission bits; settings default when None
            return_size: Return the size of ``dest`` after the copy

        Returns:
            Destination size when requested, otherwise None

        Raises:
            SourceNotFoundError: ``source`` does not exist
            MirrorToolFailedError: rsync exited with an error
            CopyFailedError: the filesystem copy failed
        """
        if preserve_permissions is None:
            preserve_permissions = self.settings.preserve_permissions
        request = TransferRequest(
            source=os.fspath(source),
            dest=os.fspath(dest),
            dry_run=dry_run,
            preserve_permissions=preserve_permissions,
            return_size=return_size,
        )

        if request.dry_run:
            self._report_dry_run(request)
            return 0 if request.return_size else None

        if not os.path.exists(request.source):
            raise SourceNotFoundError(request.source)

        parent = os.path.dirname(request.dest)
        try:
            if parent:
                os.makedirs(parent, exist_ok=True)
        except OSError as e:
            raise CopyFailedError(request.source, request.dest, str(e)) from e

        rsync = find_rsync(self.settings.rsync_binary)
        if rsync:
            self._copy_file_rsync(rsync, request)
        else:
            self._copy_file_fs(request)

        if not request.return_size:
            return None
        try:
            return os.path.getsize(request.dest)
        except OSError as e:
            raise CopyFailedError(request.source, request.dest, str(e)) from e

    def _copy_file_rsync(self, rsync: str, request: TransferRequest):
        mode = "-a" if request.preserve_permissions else "-t"
        returncode, output = run_rsync([rsync, mode, request.source, request.dest])
        if returncode != 0:
            self.reporter.puts(f"✗ rsync failed ({returncode}): {output.strip()}", style="red")
            logger.error(f"rsync exited with {returncode} copying {request.source} -> {request.dest}")
            raise MirrorToolFailedError(returncode, output)
        logger.debug(f"Copied {request.source} -> {request.dest}")

    def _copy_file_fs(self, request: TransferRequest):
        try:
            shutil.copyfile(request.source, request.dest)
            if request.preserve_permissions:
                shutil.copymode(request.source, request.dest)
        except OSError as e:
            logger.error(f"Failed to copy {request.source} -> {request.dest}: {e}")
            raise CopyFailedError(request.source, request.dest, e.strerror or str(e)) from e
        logger.debug(f"Copied {request.source} -> {request.dest}")

    # Directory trees

    def copy_tree(self, source, dest, *, exclude: Iterable[PatternLike] = (),
                  delete: bool = False, dry_run: bool = False,
                  progress_id: Optional[Hashable] = None,
                  return_size: bool = False) -> Optional[int]:
        """Mirror the contents of ``source`` into ``dest``.

        Args:
            source: Directory to copy; a missing one is a successful no-op
            dest: Target directory, created when needed
            exclude: Extra patterns on top of the configured baseline
            delete: Remove files in ``dest`` that are not in ``source``
            dry_run: Only report what would happen
            progress_id: Key for a live progress bar
            return_size: Return the total size of the mirrored files

        Returns:
            Total size when requested, otherwise None

        Raises:
            SubprocessTimeoutError: rsync went silent for too long
            DirectoryListFailedError: ``source`` could not be listed (manual copy)
        """
        caller_patterns = list(exclude)
        request = TransferRequest(
            source=os.fspath(source),
            dest=os.fspath(dest),
            exclude=self.exclude_set(caller_patterns),
            delete_extraneous=delete,
            dry_run=dry_run,
            progress_id=progress_id,
            return_size=return_size,
        )
        strategy = self.select_strategy(request)
        logger.info(f"Copying {request.source} -> {request.dest} using {strategy.value} strategy")

        if strategy is TransferStrategy.DRY_RUN:
            self._report_dry_run(request, with_excludes=bool(caller_patterns))
            return 0 if request.return_size else None
        if strategy is TransferStrategy.SOURCE_MISSING:
            logger.debug(f"Nothing to copy, {request.source} does not exist")
            return 0 if request.return_size else None

        with TimedOperation(logger, f"copy of {request.source}", log_level="DEBUG"):
            if strategy is TransferStrategy.STREAMING:
                return self._copy_tree_streaming(request)
            if strategy is TransferStrategy.BATCH:
                return self._copy_tree_batch(request)
            return self._copy_tree_manual(request)

    def _copy_tree_streaming(self, request: TransferRequest) -> Optional[int]:
        rsync = find_rsync(self.settings.rsync_binary)
        count = estimate_transfer_count(request.source, request.dest, request.exclude,
                                        rsync, request.delete_extraneous)
        if count == 0:
            os.makedirs(request.dest, exist_ok=True)
            self._report_done(request)
            return self._measure_size(rsync, request)

        self.reporter.start(request.progress_id, f"  {request.label}", count)
        os.makedirs(request.dest, exist_ok=True)

        args = build_rsync_args(rsync, request.source, request.dest, exclude=request.exclude,
                                delete=request.delete_extraneous, list_files=True)
        parser = RsyncOutputParser(self.settings.detail_max_length)
        process = StreamingProcess(args, self.settings.inactivity_timeout)
        try:
            for chunk in process.chunks():
                self._forward(request.progress_id, parser.feed(chunk))
            self._forward(request.progress_id, parser.flush())
        except SubprocessTimeoutError as e:
            self.reporter.puts(f"✗ rsync stalled copying {request.source}: {e}", style="red")
            logger.warning(f"Killed rsync for {request.source} after {e.timeout:g}s without output")
            raise

        if process.returncode != 0:
            self._report_rsync_failure(request, process.returncode, "\n".join(parser.messages))
        else:
            logger.info(f"Copied {parser.transferred} files from {request.source}")
        return self._measure_size(rsync, request)

    def _forward(self, progress_id: Hashable, events: List[FileTransferred]):
        for event in events:
            if event.detail is not None:
                self.reporter.set_detail(progress_id, event.detail)
            self.reporter.increment(progress_id)

    def _copy_tree_batch(self, request: TransferRequest) -> Optional[int]:
        rsync = find_rsync(self.settings.rsync_binary)
        os.makedirs(request.dest, exist_ok=True)
        args = build_rsync_args(rsync, request.source, request.dest, exclude=request.exclude,
                                delete=request.delete_extraneous, stats=True)
        returncode, output = run_rsync(args)
        if returncode != 0:
            self._report_rsync_failure(request, returncode, output)
            total = 0
        else:
            total = parse_total_size(output)
            logger.info(f"Copied {request.source} ({FileHelper.format_file_size(total)})")
        return total if request.return_size else None

    def _measure_size(self, rsync: str, request: TransferRequest) -> Optional[int]:
        """Total size of the mirrored tree, asked from rsync or summed from dest."""
        if not request.return_size:
            return None
        args = build_rsync_args(rsync, request.source, request.dest, exclude=request.exclude,
                                dry_run=True, stats=True)
        try:
            returncode, output = run_rsync(args)
        except OSError:
            returncode, output = None, ""
        if returncode == 0:
            return parse_total_size(output)
        return FileHelper.directory_size(request.dest, lambda name: should_exclude(name, request.exclude))

    def _copy_tree_manual(self, request: TransferRequest) -> Optional[int]:
        try:
            entries = FileHelper.sorted_entries(request.source)
        except OSError as e:
            reason = e.strerror or str(e)
            self.reporter.puts(f"✗ list directory failed: {request.source}: {reason}", style="red")
            raise DirectoryListFailedError(request.source, reason) from e

        if request.progress_id is not None:
            total = count_files(request.source, request.exclude)
            if total:
                self.reporter.start(request.progress_id, f"  {request.label}", total)

        os.makedirs(request.dest, exist_ok=True)
        stats = FileCopyStats()
        self._copy_entries(request, entries, request.dest, "", stats)

        if stats.files_skipped:
            logger.warning(f"Skipped {stats.files_skipped} entries under {request.source} that could not be copied")
            self.reporter.puts(f"  {request.label}: skipped {stats.files_skipped} entries that could not be copied",
                               style="yellow")
        logger.info(f"Copied {stats.files_copied} files from {request.source} "
                    f"({stats.files_unchanged} unchanged)")
        return stats.total_bytes if request.return_size else None

    def _copy_entries(self, request: TransferRequest, entries: List[os.DirEntry],
                      dest_dir: str, prefix: str, stats: FileCopyStats):
        present = set()
        for entry in entries:
            if should_exclude(entry.name, request.exclude):
                continue
            present.add(entry.name)
            relative = prefix + entry.name
            target = os.path.join(dest_dir, entry.name)

            if FileHelper.is_real_dir(entry):
                try:
                    children = FileHelper.sorted_entries(entry.path)
                    if os.path.islink(target) or (os.path.lexists(target) and not os.path.isdir(target)):
                        os.unlink(target)
                    os.makedirs(target, exist_ok=True)
                except OSError as e:
                    logger.debug(f"Skipping directory {relative}: {e}")
                    stats.record_skip(relative + "/")
                    continue
                self._copy_entries(request, children, target, relative + "/", stats)
            elif FileHelper.is_copyable(entry):
                self._copy_entry(request, entry, target, relative, stats)
            else:
                logger.debug(f"Skipping special file {relative}")
                stats.record_skip(relative)

        if request.delete_extraneous:
            self._delete_extraneous(request, dest_dir, present)

    def _copy_entry(self, request: TransferRequest, entry: os.DirEntry, target: str,
                    relative: str, stats: FileCopyStats):
        if request.progress_id is not None:
            self.reporter.set_detail(request.progress_id, relative)
            self.reporter.increment(request.progress_id)

        temporary = os.path.join(os.path.dirname(target), f".{entry.name}{TMP_SUFFIX}")
        try:
            source_stat = entry.stat(follow_symlinks=False)
            if FileHelper.same_file_state(source_stat, target):
                stats.record_unchanged(source_stat.st_size)
                return
            if os.path.isdir(target) and not os.path.islink(target):
                shutil.rmtree(target)
            # Copy beside the target and swap in, so read-only targets are replaced too
            shutil.copy2(entry.path, temporary, follow_symlinks=False)
            os.replace(temporary, target)
            stats.record_copy(source_stat.st_size)
        except OSError as e:
            logger.debug(f"Could not copy {relative}: {e}")
            stats.record_skip(relative)
            if os.path.lexists(temporary):
                try:
                    os.unlink(temporary)
                except OSError:
                    logger.debug(f"Could not remove {temporary}")

    def _delete_extraneous(self, request: TransferRequest, dest_dir: str, present: set):
        try:
            existing = FileHelper.sorted_entries(dest_dir)
        except OSError:
            return
        for entry in existing:
            # rsync --delete leaves excluded files in place as well
            if entry.name in present or should_exclude(entry.name, request.exclude):
                continue
            try:
                if FileHelper.is_real_dir(entry):
                    shutil.rmtree(entry.path)
                else:
                    os.unlink(entry.path)
                logger.debug(f"Deleted {entry.path}")
            except OSError as e:
                logger.debug(f"Could not delete {entry.path}: {e}")

    # Reporting

    def _report_dry_run(self, request: TransferRequest, with_excludes: bool = False):
        message = f"  dry-run: would copy {request.source} -> {request.dest}"
        if with_excludes:
            message += " (with excludes)"
        self.reporter.puts(message, style="dim")

    def _report_done(self, request: TransferRequest):
        self.reporter.puts(f"  {request.label} (Done)", style="green")

    def _report_rsync_failure(self, request: TransferRequest, returncode: int, output: str):
        lines = problem_lines(output)
        if lines:
            self.reporter.puts(f"✗ rsync failed ({returncode}). Problem lines:", style="red")
            for line in lines:
                self.reporter.puts(f"  {line}")
        else:
            self.reporter.puts(f"✗ rsync failed ({returncode})", style="red")
            if output.strip():
                self.reporter.puts(output.strip())
        logger.warning(f"rsync exited with {returncode} copying {request.source} -> {request.dest}")
