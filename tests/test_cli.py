"""Tests for the command-line interface."""

import logging

import pytest
import yaml
from click.testing import CliRunner

from vault_backup.cli import cli
from vault_backup.config.settings import LoggingSettings, VaultConfig
from vault_backup.utils.logging import LOGGER_NAME

from conftest import MISSING_RSYNC, make_tree, snapshot


@pytest.fixture(autouse=True)
def reset_logger():
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def runner():
    return CliRunner(env={"DISABLE_VAULT_OUTPUT": "1", "VAULT_RSYNC": MISSING_RSYNC})


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    VaultConfig(vault_path=tmp_path / "vault", logging=LoggingSettings(console=False)).to_yaml(path)
    return path


def invoke(runner, config_file, *args, **kwargs):
    return runner.invoke(cli, ["--config", str(config_file), *args], **kwargs)


class TestCopyCommands:
    """Test copy-tree, copy-file and estimate."""

    def test_copy_tree(self, runner, config_file, tmp_path):
        source = make_tree(tmp_path / "src", {"a.txt": "a", "b.log": "b", "skip.me": "s", "sub/c.txt": "c"})
        dest = tmp_path / "dest"
        result = invoke(runner, config_file, "copy-tree", str(source), str(dest), "-e", "*.me")
        assert result.exit_code == 0, result.output
        assert set(snapshot(dest)) == {"a.txt", "sub/c.txt"}
        assert "✅" in result.output

    def test_copy_tree_dry_run(self, runner, config_file, tmp_path):
        source = make_tree(tmp_path / "src", {"a.txt": "a"})
        dest = tmp_path / "dest"
        result = invoke(runner, config_file, "copy-tree", str(source), str(dest), "--dry-run")
        assert result.exit_code == 0, result.output
        assert not dest.exists()

    def test_copy_file(self, runner, config_file, tmp_path):
        source = tmp_path / "a.txt"
        source.write_text("hello")
        dest = tmp_path / "out" / "a.txt"
        result = invoke(runner, config_file, "copy-file", str(source), str(dest))
        assert result.exit_code == 0, result.output
        assert dest.read_text() == "hello"

    def test_copy_file_missing_source(self, runner, config_file, tmp_path):
        result = invoke(runner, config_file, "copy-file", str(tmp_path / "missing"), str(tmp_path / "y"))
        assert result.exit_code == 1
        assert "Source not found" in result.output
        assert not (tmp_path / "y").exists()

    def test_estimate(self, runner, config_file, tmp_path):
        source = make_tree(tmp_path / "src", {"a.txt": "a", "b.log": "b", "sub/c.txt": "c"})
        result = invoke(runner, config_file, "estimate", str(source), str(tmp_path / "dest"))
        assert result.exit_code == 0, result.output
        assert result.output.strip() == "2"


class TestHomeCommand:
    """Test backing up a home directory."""

    def test_home_backup(self, runner, config_file, tmp_path):
        home = make_tree(tmp_path / "home", {"Documents/a.txt": "a", "Music/b.mp3": "b", ".hidden/c": "c"})
        vault = tmp_path / "vault"
        result = invoke(runner, config_file, "home", str(home))
        assert result.exit_code == 0, result.output
        assert "Home Backup Results" in result.output
        assert set(snapshot(vault / "home")) == {"Documents/a.txt", "Music/b.mp3"}

    def test_home_selected_dirs(self, runner, config_file, tmp_path):
        home = make_tree(tmp_path / "home", {"Documents/a.txt": "a", "Music/b.mp3": "b"})
        vault = tmp_path / "elsewhere"
        result = invoke(runner, config_file, "home", str(home), "--dir", "Music", "--vault", str(vault))
        assert result.exit_code == 0, result.output
        assert set(snapshot(vault / "home")) == {"Music/b.mp3"}


class TestRestoreCommand:
    """Test restoring home directories from the vault."""

    def test_restore(self, runner, config_file, tmp_path):
        make_tree(tmp_path / "vault" / "home", {"Documents/a.txt": "a"})
        home = tmp_path / "restored"
        result = invoke(runner, config_file, "restore", str(home))
        assert result.exit_code == 0, result.output
        assert "Home Restore Results" in result.output
        assert snapshot(home) == {"Documents/a.txt": b"a"}

    def test_restore_dry_run(self, runner, config_file, tmp_path):
        make_tree(tmp_path / "vault" / "home", {"Documents/a.txt": "a"})
        home = tmp_path / "restored"
        result = invoke(runner, config_file, "restore", str(home), "--dry-run")
        assert result.exit_code == 0, result.output
        assert not home.exists()

    def test_restore_without_home_data(self, runner, config_file, tmp_path):
        home = tmp_path / "restored"
        result = invoke(runner, config_file, "restore", str(home))
        assert result.exit_code == 0, result.output
        assert not home.exists()


class TestExcludeValidation:
    """Test rejection of patterns spanning several path segments."""

    def test_path_pattern_fails(self, runner, config_file, tmp_path):
        source = make_tree(tmp_path / "src", {"sub/deep/z.txt": "z"})
        dest = tmp_path / "dest"
        result = invoke(runner, config_file, "copy-tree", str(source), str(dest), "-e", "sub/deep")
        assert result.exit_code == 1
        assert "single path segment" in result.output
        assert not dest.exists()


class TestStatusAndInit:
    """Test status reporting and config creation."""

    def test_status_without_rsync(self, runner, config_file):
        result = invoke(runner, config_file, "status")
        assert result.exit_code == 0, result.output
        assert "using built-in copy" in result.output
        assert "Inactivity timeout" in result.output

    def test_init_writes_config(self, runner, tmp_path):
        path = tmp_path / "new" / "config.yaml"
        result = runner.invoke(cli, ["init", "--config", str(path)])
        assert result.exit_code == 0, result.output
        data = yaml.safe_load(path.read_text())
        assert data["sync"]["rsync_binary"] == "rsync"

    def test_init_keeps_existing_file(self, runner, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("vault_path: /somewhere\n")
        result = runner.invoke(cli, ["init", "--config", str(path)], input="n\n")
        assert result.exit_code == 0, result.output
        assert path.read_text() == "vault_path: /somewhere\n"
