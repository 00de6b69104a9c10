"""Turns rsync's streamed ``--out-format=%n`` output into file events."""

from collections import deque
from dataclasses import dataclass
from typing import Deque, List, Optional

DEFAULT_DETAIL_LENGTH = 200

HEADER_LINES = frozenset({
    "sending incremental file list",
    "receiving incremental file list",
    "building file list ... done",
    "(DRY RUN)",
})
HEADER_PREFIXES = ("created directory ", "rsync:", "rsync error:", "rsync warning:")
DELETE_PREFIX = "deleting "


def is_transfer_line(line: str) -> bool:
    """True when an output line names a transferred file (not a directory).

    >>> is_transfer_line("docs/readme.txt")
    True
    >>> is_transfer_line("docs/")
    False
    >>> is_transfer_line("sending incremental file list")
    False
    """
    if not line or line in HEADER_LINES:
        return False
    if line.startswith(HEADER_PREFIXES) or line.startswith(DELETE_PREFIX):
        return False
    return not line.endswith("/")


def count_transfer_lines(output: str) -> int:
    return sum(1 for line in output.splitlines() if is_transfer_line(line.rstrip("\r")))


def sanitize_detail(line: str, max_length: int = DEFAULT_DETAIL_LENGTH) -> Optional[str]:
    """Clean up a line for display next to a progress bar."""
    trimmed = line.strip()
    if not trimmed or trimmed in HEADER_LINES:
        return None
    if trimmed.startswith(DELETE_PREFIX) or trimmed.startswith(HEADER_PREFIXES):
        return None
    if not trimmed.isprintable():
        return None
    return trimmed[:max_length]


@dataclass(frozen=True)
class FileTransferred:
    line: str
    detail: Optional[str]


class RsyncOutputParser:
    """Line buffer fed raw byte chunks from a running rsync.

    Partial lines are held until their newline arrives, so a path split
    across two reads is reported once. A line identical to the previous
    reported one is dropped. Lines that are not transfers are kept in
    ``messages`` for error reporting.
    """

    def __init__(self, max_detail_length: int = DEFAULT_DETAIL_LENGTH, max_messages: int = 50):
        self.buffer = b""
        self.last_detail: Optional[str] = None
        self.max_detail_length = max_detail_length
        self.messages: Deque[str] = deque(maxlen=max_messages)
        self.transferred = 0

    def feed(self, chunk: bytes) -> List[FileTransferred]:
        data = self.buffer + chunk
        *lines, self.buffer = data.split(b"\n")
        return self._process(lines)

    def flush(self) -> List[FileTransferred]:
        """Emit whatever is left once the stream has ended."""
        lines, self.buffer = [self.buffer], b""
        return self._process(lines)

    def _process(self, raw_lines: List[bytes]) -> List[FileTransferred]:
        events = []
        for raw in raw_lines:
            raw = raw.rstrip(b"\r")
            try:
                line = raw.decode("utf-8")
                valid = True
            except UnicodeDecodeError:
                line = raw.decode("utf-8", errors="replace")
                valid = False

            if not is_transfer_line(line):
                if line.strip():
                    self.messages.append(line)
                continue
            if line == self.last_detail:
                continue

            self.last_detail = line
            detail = sanitize_detail(line, self.max_detail_length) if valid else None
            events.append(FileTransferred(line, detail))
        self.transferred += len(events)
        return events
