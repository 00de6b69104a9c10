"""Configuration management for the vault."""

from .settings import LoggingSettings, OutputSettings, SyncSettings, VaultConfig

__all__ = ["VaultConfig", "SyncSettings", "LoggingSettings", "OutputSettings"]
