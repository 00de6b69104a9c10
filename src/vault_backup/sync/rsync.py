"""rsync discovery, command lines and process handling."""

import logging
import os
import queue
import re
import shutil
import subprocess
import threading
from typing import Iterable, Iterator, List, Optional, Tuple

from .errors import SubprocessTimeoutError
from .exclusion import ExclusionPattern, rsync_exclude_args

logger = logging.getLogger(__name__)

DEFAULT_RSYNC = "rsync"
CHUNK_SIZE = 64 * 1024

# "Total file size: 1,234 bytes" (rsync 3.x), "total size of files: 1234"
# (openrsync) and the trailing "total size is 1,234  speedup is ..." line.
_TOTAL_SIZE_RE = re.compile(
    r"(?:total\s+file\s+size|total\s+size\s+of\s+files|total\s+size\s+is)\s*:?\s*([\d][\d,.']*)",
    re.IGNORECASE,
)


def find_rsync(binary: str = DEFAULT_RSYNC) -> Optional[str]:
    """Resolve the rsync executable on the search path."""
    return shutil.which(binary)


def ensure_trailing_separator(path: str) -> str:
    """rsync copies the contents of ``dir/`` but the directory itself for ``dir``."""
    path = os.fspath(path)
    if path.endswith(("/", os.sep)):
        return path
    return path + "/"


def build_rsync_args(rsync: str, source: str, dest: str, *,
                     exclude: Iterable[ExclusionPattern] = (),
                     delete: bool = False,
                     dry_run: bool = False,
                     list_files: bool = False,
                     stats: bool = False) -> List[str]:
    """Assemble an rsync command line for a tree transfer.

    Args:
        rsync: Resolved rsync executable
        source: Source directory, a trailing separator is added
        dest: Destination directory
        exclude: Compiled exclusion patterns
        delete: Remove files in dest that are not in source
        dry_run: Simulate only
        list_files: Print one line per transferred path
        stats: Print the summary block

    Returns:
        Argument vector suitable for ``subprocess``
    """
    args = [rsync, "-na" if dry_run else "-a"]
    if delete:
        args.append("--delete")
    if list_files:
        args.append("--out-format=%n")
    if stats:
        args.append("--stats")
    args.extend(rsync_exclude_args(exclude))
    args.extend([ensure_trailing_separator(source), os.fspath(dest)])
    return args


def parse_total_size(output: str) -> int:
    """Extract the total byte count from rsync's ``--stats`` summary.

    >>> parse_total_size("Number of files: 3\\nTotal file size: 1,234 bytes\\n")
    1234
    >>> parse_total_size("total size of files: 42")
    42
    >>> parse_total_size("nothing useful")
    0
    """
    match = _TOTAL_SIZE_RE.search(output)
    if not match:
        return 0
    digits = re.sub(r"\D", "", match.group(1))
    return int(digits) if digits else 0


def problem_lines(output: str) -> List[str]:
    """Lines where rsync names a file it could not handle."""
    return [line for line in output.splitlines() if line.startswith("rsync:")]


def run_rsync(args: List[str]) -> Tuple[int, str]:
    """Run rsync to completion and return its exit status and combined output."""
    logger.debug(f"Running: {' '.join(args)}")
    result = subprocess.run(
        args,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
    )
    output = result.stdout.decode("utf-8", errors="replace")
    return result.returncode, output


class StreamingProcess:
    """Runs a command and hands its output back in chunks as it arrives.

    A reader thread drains the pipe into a queue so that the consumer can
    wait with a timeout. When nothing arrives within ``inactivity_timeout``
    seconds the process is killed and ``SubprocessTimeoutError`` raised.
    """

    def __init__(self, args: List[str], inactivity_timeout: float = 60.0):
        self.args = args
        self.inactivity_timeout = inactivity_timeout
        self.returncode: Optional[int] = None
        self._process: Optional[subprocess.Popen] = None

    def _pump(self, stream, chunks: "queue.Queue[Optional[bytes]]"):
        try:
            for chunk in iter(lambda: stream.read1(CHUNK_SIZE), b""):
                chunks.put(chunk)
        except (OSError, ValueError):
            # Pipe closed underneath us after a kill
            pass
        finally:
            chunks.put(None)

    def chunks(self) -> Iterator[bytes]:
        logger.debug(f"Streaming: {' '.join(self.args)}")
        self._process = subprocess.Popen(
            self.args,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
        )
        pending: "queue.Queue[Optional[bytes]]" = queue.Queue()
        reader = threading.Thread(target=self._pump, args=(self._process.stdout, pending), daemon=True)
        reader.start()

        try:
            while True:
                try:
                    chunk = pending.get(timeout=self.inactivity_timeout)
                except queue.Empty:
                    self.kill()
                    raise SubprocessTimeoutError(self.inactivity_timeout)
                if chunk is None:
                    break
                yield chunk
            self.returncode = self._process.wait()
        finally:
            if self.returncode is None:
                self.kill()
            reader.join(timeout=1)
            self._process.stdout.close()

    def kill(self):
        """Terminate the process; a no-op once it has exited."""
        if self._process is not None and self._process.poll() is None:
            self._process.kill()
        if self._process is not None:
            self._process.wait()
            self.returncode = self._process.returncode
