"""Backs up the public directories of a home directory into the vault and back."""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from ..config.settings import HOME_EXCLUDES
from ..utils.file_utils import FileHelper
from .errors import DirectoryListFailedError, SyncError
from .synchronizer import Synchronizer

logger = logging.getLogger(__name__)

# Handled elsewhere or not user data
SKIPPED_HOME_DIRS = {"Library"}
VAULT_HOME_DIR = "home"


@dataclass
class HomeBackupResult:
    """Outcome of a home directory backup or restore."""
    backed_up: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)


class HomeDirsBackup:
    """Copies each top-level home directory to ``<vault>/home/<name>``.

    Directories are mirrored concurrently, each with its own rsync process
    and progress bar. ``restore`` copies them back the other way.
    """

    def __init__(self, synchronizer: Synchronizer, exclude: Optional[Iterable[str]] = None,
                 max_workers: Optional[int] = None):
        self.synchronizer = synchronizer
        self.exclude = list(HOME_EXCLUDES if exclude is None else exclude)
        self.max_workers = max_workers or synchronizer.settings.parallel_transfers

    def discover(self, home: Path, vault_path: Path) -> List[str]:
        """Non-hidden directories of ``home``, minus Library and the vault itself."""
        return [name for name in self._public_dirs(home) if name != Path(vault_path).name]

    def _public_dirs(self, directory: Path) -> List[str]:
        try:
            entries = FileHelper.sorted_entries(directory)
        except OSError as e:
            raise DirectoryListFailedError(str(directory), e.strerror or str(e)) from e
        return [
            entry.name for entry in entries
            if FileHelper.is_real_dir(entry)
            and not FileHelper.is_hidden_file(entry.path)
            and entry.name not in SKIPPED_HOME_DIRS
        ]

    def backup(self, home, vault_path, dirs: Optional[Iterable[str]] = None,
               dry_run: bool = False) -> HomeBackupResult:
        """Back up ``dirs`` (or every discovered directory) from ``home``.

        Args:
            home: Home directory
            vault_path: Vault root; files land in ``vault_path/home``
            dirs: Directory names relative to ``home``
            dry_run: Report only, create nothing

        Returns:
            Names backed up, skipped (missing) and failed with their error
        """
        home, vault_path = Path(home), Path(vault_path)
        if not home.is_dir():
            raise DirectoryListFailedError(str(home), "source directory does not exist")

        names = list(dirs) if dirs is not None else self.discover(home, vault_path)
        target_root = vault_path / VAULT_HOME_DIR
        if not dry_run:
            target_root.mkdir(parents=True, exist_ok=True)

        result = self._transfer(home, target_root, names, delete=True, dry_run=dry_run)
        logger.info(f"Home backup: {len(result.backed_up)} copied, {len(result.skipped)} skipped, "
                    f"{len(result.failed)} failed")
        return result

    def restore(self, vault_path, home, dirs: Optional[Iterable[str]] = None,
                dry_run: bool = False) -> HomeBackupResult:
        """Copy directories from ``vault_path/home`` back into ``home``.

        Files already in ``home`` that the vault does not have are left alone.
        A vault without home data restores nothing.
        """
        source_root = Path(vault_path) / VAULT_HOME_DIR
        home = Path(home)
        if not source_root.is_dir():
            self.synchronizer.reporter.puts(f"  ℹ No home data found in {source_root}", style="yellow")
            logger.info(f"No home data found in {source_root}")
            return HomeBackupResult()

        names = list(dirs) if dirs is not None else self._public_dirs(source_root)
        result = self._transfer(source_root, home, names, delete=False, dry_run=dry_run)
        logger.info(f"Home restore: {len(result.backed_up)} copied, {len(result.skipped)} skipped, "
                    f"{len(result.failed)} failed")
        return result

    def _transfer(self, source_root: Path, target_root: Path, names: List[str],
                  delete: bool, dry_run: bool) -> HomeBackupResult:
        result = HomeBackupResult()
        pending = {}
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            for name in names:
                source = source_root / name
                if not source.is_dir():
                    result.skipped.append(name)
                    continue
                pending[name] = executor.submit(
                    self.synchronizer.copy_tree,
                    source,
                    target_root / name,
                    exclude=self.exclude,
                    delete=delete,
                    dry_run=dry_run,
                    progress_id=f"home_dir_{name}",
                )

            for name, future in pending.items():
                try:
                    future.result()
                except (SyncError, OSError) as e:
                    logger.error(f"Failed to copy {name}: {e}")
                    result.failed[name] = str(e)
                else:
                    result.backed_up.append(name)
        return result
