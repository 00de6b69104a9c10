"""Configuration settings and models for the vault."""

import os
from pathlib import Path
from typing import List, Optional, Union

import yaml
from pydantic import BaseModel, Field, field_validator

DEFAULT_CONFIG_PATH = Path("~/.config/vault/config.yaml").expanduser()

# Patterns skipped when mirroring home directories
HOME_EXCLUDES = [".DS_Store", "node_modules", ".git", "Thumbs.db", ".cache"]


def _default_excludes() -> List[str]:
    # Imported here: the sync package itself imports this module
    from ..sync.exclusion import DEFAULT_EXCLUDES
    return list(DEFAULT_EXCLUDES)


class SyncSettings(BaseModel):
    """Synchronization engine options."""
    rsync_binary: str = "rsync"
    inactivity_timeout: float = 60.0  # seconds without rsync output
    detail_max_length: int = 200
    default_excludes: List[str] = Field(default_factory=_default_excludes)
    preserve_permissions: bool = True
    parallel_transfers: int = 4

    @field_validator('inactivity_timeout')
    @classmethod
    def validate_timeout(cls, v):
        if v <= 0:
            raise ValueError('inactivity_timeout must be positive')
        return v

    @field_validator('parallel_transfers', 'detail_max_length')
    @classmethod
    def validate_positive(cls, v):
        if v < 1:
            raise ValueError('must be at least 1')
        return v


class LoggingSettings(BaseModel):
    """Logging options."""
    level: str = "INFO"
    file: Optional[Path] = None
    console: bool = True
    max_file_size: int = 10 * 1024 * 1024  # 10MB
    backup_count: int = 5

    @field_validator('level')
    @classmethod
    def validate_level(cls, v):
        if v.upper() not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f'unknown log level: {v}')
        return v.upper()


class OutputSettings(BaseModel):
    """Terminal output options."""
    enabled: bool = True


class VaultConfig(BaseModel):
    """Main configuration class."""
    vault_path: Path = Field(default_factory=lambda: Path.home() / "vault")
    home_exclude: List[str] = Field(default_factory=lambda: list(HOME_EXCLUDES))
    sync: SyncSettings = Field(default_factory=SyncSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    output: OutputSettings = Field(default_factory=OutputSettings)

    @classmethod
    def from_yaml(cls, config_path: Union[str, Path]) -> "VaultConfig":
        """Load configuration from YAML file."""
        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, 'r', encoding='utf-8') as f:
            config_data = yaml.safe_load(f) or {}

        return cls(**config_data)

    @classmethod
    def load(cls, config_path: Optional[Union[str, Path]] = None) -> "VaultConfig":
        """Load the given file, the default file if present, or defaults.

        Environment overrides are applied last.
        """
        if config_path is not None:
            config = cls.from_yaml(config_path)
        elif DEFAULT_CONFIG_PATH.exists():
            config = cls.from_yaml(DEFAULT_CONFIG_PATH)
        else:
            config = cls()
        return config.with_env_overrides()

    def with_env_overrides(self) -> "VaultConfig":
        """Apply VAULT_RSYNC and DISABLE_VAULT_OUTPUT."""
        config = self.model_copy(deep=True)
        rsync_binary = os.getenv('VAULT_RSYNC')
        if rsync_binary:
            config.sync.rsync_binary = rsync_binary
        if os.getenv('DISABLE_VAULT_OUTPUT') == '1':
            config.output.enabled = False
        return config

    def to_yaml(self, config_path: Union[str, Path]) -> None:
        """Save configuration to YAML file."""
        config_path = Path(config_path)
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, 'w', encoding='utf-8') as f:
            yaml.safe_dump(self.model_dump(mode='json', exclude_none=True), f,
                           default_flow_style=False, indent=2, sort_keys=False)
