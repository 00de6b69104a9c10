"""
Vault

Backs up and restores a machine's configuration and data. The heart of it
is a synchronization engine that mirrors files and directory trees through
rsync, falling back to a pure Python copy when rsync is not installed.
"""

__version__ = "0.1.0"
__author__ = "Vault"
__description__ = "Back up and restore machine configuration and data"

from .config.settings import VaultConfig
from .sync.synchronizer import Synchronizer

__all__ = ["VaultConfig", "Synchronizer"]
