"""File utility functions."""

import os
import stat
from pathlib import Path
from typing import Callable, List, Optional, Union

PathLike = Union[str, os.PathLike]


class FileHelper:
    """Helper class for file operations."""

    @staticmethod
    def format_file_size(size_bytes: int) -> str:
        """Format file size in human readable format.

        Args:
            size_bytes: Size in bytes

        Returns:
            Formatted size string
        """
        if size_bytes == 0:
            return "0 B"

        size_names = ["B", "KB", "MB", "GB", "TB", "PB"]
        i = 0

        while size_bytes >= 1024 and i < len(size_names) - 1:
            size_bytes /= 1024.0
            i += 1

        return f"{size_bytes:.1f} {size_names[i]}"

    @staticmethod
    def is_hidden_file(file_path: PathLike) -> bool:
        """Check if a file is hidden.

        Args:
            file_path: Path to check

        Returns:
            True if file is hidden
        """
        # On Windows, check file attributes
        if os.name == 'nt':
            try:
                attrs = os.stat(str(file_path)).st_file_attributes
                if attrs & 0x02:  # FILE_ATTRIBUTE_HIDDEN
                    return True
            except (AttributeError, OSError):
                pass

        return Path(file_path).name.startswith('.')

    @staticmethod
    def is_copyable(entry: os.DirEntry) -> bool:
        """Regular files and symlinks can be mirrored; sockets, fifos and devices cannot."""
        try:
            mode = entry.stat(follow_symlinks=False).st_mode
        except OSError:
            return False
        return stat.S_ISREG(mode) or stat.S_ISLNK(mode)

    @staticmethod
    def is_real_dir(entry: os.DirEntry) -> bool:
        """Directory that is not a symlink, so the walk never loops."""
        try:
            return entry.is_dir(follow_symlinks=False)
        except OSError:
            return False

    @staticmethod
    def sorted_entries(directory: PathLike) -> List[os.DirEntry]:
        """List a directory in name order. Raises ``OSError`` when it cannot be read."""
        with os.scandir(directory) as it:
            return sorted(it, key=lambda entry: entry.name)

    @staticmethod
    def list_files_recursive(root: PathLike,
                             excluded: Optional[Callable[[str], bool]] = None) -> List[str]:
        """Relative paths of every mirrorable file below ``root``.

        Args:
            root: Directory to walk
            excluded: Predicate on a path segment; matching entries are pruned

        Returns:
            Sorted list of relative paths using ``/`` separators
        """
        files = []

        def walk(directory: str, prefix: str):
            try:
                entries = FileHelper.sorted_entries(directory)
            except OSError:
                return
            for entry in entries:
                if excluded and excluded(entry.name):
                    continue
                if FileHelper.is_real_dir(entry):
                    walk(entry.path, f"{prefix}{entry.name}/")
                elif FileHelper.is_copyable(entry):
                    files.append(f"{prefix}{entry.name}")

        walk(os.fspath(root), "")
        return files

    @staticmethod
    def directory_size(root: PathLike, excluded: Optional[Callable[[str], bool]] = None) -> int:
        """Sum of file sizes below ``root``, symlinks counted by their own size."""
        total = 0
        for relative in FileHelper.list_files_recursive(root, excluded):
            try:
                total += os.lstat(os.path.join(root, relative)).st_size
            except OSError:
                continue
        return total

    @staticmethod
    def same_file_state(source_stat: os.stat_result, dest_path: PathLike) -> bool:
        """Quick check in the style of rsync: same size and modification time."""
        try:
            dest_stat = os.lstat(dest_path)
        except OSError:
            return False
        if stat.S_IFMT(dest_stat.st_mode) != stat.S_IFMT(source_stat.st_mode):
            return False
        return (dest_stat.st_size == source_stat.st_size
                and int(dest_stat.st_mtime) == int(source_stat.st_mtime))
