"""
Shared fixtures for synchronization tests.
Builds throwaway directory trees, a reporter that records every call, and
a stand-in rsync script whose output and exit status each test controls.
"""
import os
import shutil
import stat
import sys
from collections import Counter, defaultdict
from pathlib import Path
from typing import Dict

import pytest

# Add src to sys.path so the package imports without installation
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root / "src"))

from vault_backup.config.settings import SyncSettings  # noqa: E402
from vault_backup.sync.synchronizer import Synchronizer  # noqa: E402
from vault_backup.ui.progress import ProgressReporter  # noqa: E402

MISSING_RSYNC = "vault-test-no-such-rsync"

requires_rsync = pytest.mark.skipif(shutil.which("rsync") is None, reason="rsync is not installed")


class RecordingReporter(ProgressReporter):
    """Reporter that keeps everything it is asked to render."""

    def __init__(self):
        super().__init__(enabled=True)
        self.messages = []
        self.started = {}
        self.increments = Counter()
        self.details = defaultdict(list)

    def _render_start(self, progress_id, label, total):
        self.started[progress_id] = (label, total)

    def _render_advance(self, progress_id, state):
        self.increments[progress_id] += 1

    def _render_detail(self, progress_id, detail):
        self.details[progress_id].append(detail)

    def _render_text(self, text, style):
        self.messages.append(text)

    def text(self) -> str:
        return "\n".join(self.messages)


def make_tree(root: Path, files: Dict[str, str]) -> Path:
    """Create files from {relative_path: content}; a trailing '/' makes a directory."""
    root.mkdir(parents=True, exist_ok=True)
    for relative, content in files.items():
        path = root / relative
        if relative.endswith("/"):
            path.mkdir(parents=True, exist_ok=True)
        else:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content)
    return root


def snapshot(root: Path) -> Dict[str, bytes]:
    """Map of relative file path to contents."""
    return {
        str(path.relative_to(root)).replace(os.sep, "/"): path.read_bytes()
        for path in sorted(root.rglob("*"))
        if path.is_file()
    }


FAKE_RSYNC = '''#!{python}
import sys
import time

args = sys.argv[1:]
dry_run = any(a.startswith("-") and not a.startswith("--") and "n" in a for a in args)
with open({log!r}, "a") as log:
    log.write(" ".join(args) + "\\n")
if dry_run:
    sys.stdout.write({dry_output!r})
    sys.exit({dry_exit_code})
time.sleep({sleep})
for chunk in {chunks!r}:
    sys.stdout.write(chunk)
    sys.stdout.flush()
sys.exit({exit_code})
'''


@pytest.fixture
def reporter():
    return RecordingReporter()


@pytest.fixture
def manual_sync(reporter):
    """Synchronizer that cannot find rsync and copies in Python."""
    return Synchronizer(SyncSettings(rsync_binary=MISSING_RSYNC), reporter)


@pytest.fixture
def rsync_sync(reporter):
    """Synchronizer backed by the real rsync."""
    if shutil.which("rsync") is None:
        pytest.skip("rsync is not installed")
    return Synchronizer(SyncSettings(), reporter)


@pytest.fixture
def fake_rsync(tmp_path):
    """Factory writing an executable that imitates rsync.

    The dry run (``-n``) prints ``dry_output``; a real run prints ``chunks``
    one flush at a time, after ``sleep`` seconds, and exits ``exit_code``.
    Every invocation is appended to ``<script>.log``.
    """
    def make(dry_output="", chunks=(), exit_code=0, dry_exit_code=0, sleep=0):
        script = tmp_path / "bin" / "fake-rsync"
        script.parent.mkdir(exist_ok=True)
        script.write_text(FAKE_RSYNC.format(
            python=sys.executable,
            log=str(script) + ".log",
            dry_output=dry_output,
            dry_exit_code=dry_exit_code,
            chunks=list(chunks),
            exit_code=exit_code,
            sleep=sleep,
        ))
        script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return str(script)
    return make


def fake_rsync_calls(script: str):
    log = Path(script + ".log")
    if not log.exists():
        return []
    return [line.split() for line in log.read_text().splitlines()]
