"""Command-line interface for the vault."""

import sys
from pathlib import Path

import click
from rich import print as rprint
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import __version__
from .config.settings import DEFAULT_CONFIG_PATH, VaultConfig
from .sync.home_dirs import HomeDirsBackup
from .sync.rsync import find_rsync
from .sync.synchronizer import Synchronizer
from .ui.progress import ConsoleProgressReporter
from .utils.file_utils import FileHelper
from .utils.logging import get_logger, setup_logging

console = Console()
logger = get_logger("cli")


def _reporter(config: VaultConfig) -> ConsoleProgressReporter:
    return ConsoleProgressReporter(
        console=console,
        enabled=config.output.enabled,
        detail_max_length=config.sync.detail_max_length,
    )


def _fail(error: Exception):
    logger.debug("Command failed", exc_info=error)
    console.print(f"❌ Error: {error}", style="red bold")
    sys.exit(1)


@click.group()
@click.version_option(version=__version__)
@click.option('--config', '-c',
              type=click.Path(exists=True, dir_okay=False, path_type=Path),
              default=None,
              help=f'Path to configuration file (default: {DEFAULT_CONFIG_PATH})')
@click.option('--verbose', '-v', is_flag=True, help='Log debug output')
@click.pass_context
def cli(ctx, config: Path, verbose: bool):
    """Vault

    Back up and restore machine configuration and data. Directory trees are
    mirrored with rsync when it is installed, with a plain copy otherwise.
    """
    try:
        vault_config = VaultConfig.load(config)
    except Exception as e:
        _fail(e)

    settings = vault_config.logging
    setup_logging(
        log_level="DEBUG" if verbose else settings.level,
        log_file=settings.file,
        log_to_console=settings.console,
        max_file_size=settings.max_file_size,
        backup_count=settings.backup_count,
    )
    ctx.obj = vault_config


@cli.command('copy-tree')
@click.argument('source', type=click.Path(path_type=Path))
@click.argument('dest', type=click.Path(path_type=Path))
@click.option('--exclude', '-e', multiple=True, help='Name or glob to skip (repeatable)')
@click.option('--delete', is_flag=True, help='Delete files in DEST that are not in SOURCE')
@click.option('--dry-run', '-d', is_flag=True, help='Show what would be copied without copying')
@click.option('--no-progress', is_flag=True, help='Do not draw a progress bar')
@click.pass_obj
def copy_tree(config: VaultConfig, source: Path, dest: Path, exclude, delete: bool,
              dry_run: bool, no_progress: bool):
    """Mirror the contents of SOURCE into DEST."""
    try:
        with _reporter(config) as reporter:
            synchronizer = Synchronizer(config.sync, reporter)
            size = synchronizer.copy_tree(
                source, dest,
                exclude=exclude,
                delete=delete,
                dry_run=dry_run,
                progress_id=None if no_progress else source.name or "tree",
                return_size=True,
            )
    except Exception as e:
        _fail(e)

    if not dry_run:
        console.print(f"✅ {source} -> {dest} ({FileHelper.format_file_size(size or 0)})", style="green")


@cli.command('copy-file')
@click.argument('source', type=click.Path(path_type=Path))
@click.argument('dest', type=click.Path(path_type=Path))
@click.option('--dry-run', '-d', is_flag=True, help='Show what would be copied without copying')
@click.option('--preserve-permissions/--no-preserve-permissions', default=None,
              help='Copy permission bits (default from configuration)')
@click.pass_obj
def copy_file(config: VaultConfig, source: Path, dest: Path, dry_run: bool, preserve_permissions):
    """Copy a single file, skipping it when unchanged."""
    try:
        with _reporter(config) as reporter:
            size = Synchronizer(config.sync, reporter).copy_file(
                source, dest,
                dry_run=dry_run,
                preserve_permissions=preserve_permissions,
                return_size=True,
            )
    except Exception as e:
        _fail(e)

    if not dry_run:
        console.print(f"✅ {source} -> {dest} ({FileHelper.format_file_size(size or 0)})", style="green")


@cli.command()
@click.argument('source', type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.argument('dest', type=click.Path(path_type=Path))
@click.option('--exclude', '-e', multiple=True, help='Name or glob to skip (repeatable)')
@click.option('--delete/--no-delete', default=True, help='Plan with deletion of extraneous files')
@click.pass_obj
def estimate(config: VaultConfig, source: Path, dest: Path, exclude, delete: bool):
    """Count the files a copy of SOURCE into DEST would transfer."""
    count = Synchronizer(config.sync).estimate(source, dest, exclude=exclude, delete=delete)
    click.echo(count)


@cli.command()
@click.argument('home', type=click.Path(exists=True, file_okay=False, path_type=Path),
                default=Path.home())
@click.option('--dir', 'dirs', multiple=True, help='Directory under HOME to back up (repeatable)')
@click.option('--vault', 'vault_path', type=click.Path(path_type=Path), default=None,
              help='Vault directory (default from configuration)')
@click.option('--dry-run', '-d', is_flag=True, help='Show what would be copied without copying')
@click.pass_obj
def home(config: VaultConfig, home: Path, dirs, vault_path: Path, dry_run: bool):
    """Back up the public directories of HOME into the vault."""
    vault_path = vault_path or config.vault_path
    if dry_run:
        console.print("🔍 DRY RUN MODE - No files will be copied", style="yellow bold")

    try:
        with _reporter(config) as reporter:
            backup = HomeDirsBackup(Synchronizer(config.sync, reporter), exclude=config.home_exclude)
            result = backup.backup(home, vault_path, dirs=list(dirs) or None, dry_run=dry_run)
    except Exception as e:
        _fail(e)

    _print_results("Home Backup Results", result, "backed up")


@cli.command()
@click.argument('home', type=click.Path(file_okay=False, path_type=Path), default=Path.home())
@click.option('--dir', 'dirs', multiple=True, help='Directory under the vault home to restore (repeatable)')
@click.option('--vault', 'vault_path', type=click.Path(path_type=Path), default=None,
              help='Vault directory (default from configuration)')
@click.option('--dry-run', '-d', is_flag=True, help='Show what would be copied without copying')
@click.pass_obj
def restore(config: VaultConfig, home: Path, dirs, vault_path: Path, dry_run: bool):
    """Restore home directories from the vault into HOME."""
    vault_path = vault_path or config.vault_path
    if dry_run:
        console.print("🔍 DRY RUN MODE - No files will be copied", style="yellow bold")

    try:
        with _reporter(config) as reporter:
            backup = HomeDirsBackup(Synchronizer(config.sync, reporter), exclude=config.home_exclude)
            result = backup.restore(vault_path, home, dirs=list(dirs) or None, dry_run=dry_run)
    except Exception as e:
        _fail(e)

    _print_results("Home Restore Results", result, "restored")


def _print_results(title: str, result, done_label: str):
    table = Table(title=title)
    table.add_column("Directory", style="cyan")
    table.add_column("Status", style="magenta")
    for name in result.backed_up:
        table.add_row(name, f"[green]{done_label}[/green]")
    for name in result.skipped:
        table.add_row(name, "[yellow]skipped[/yellow]")
    for name, error in result.failed.items():
        table.add_row(name, f"[red]failed: {escape(error)}[/red]")
    console.print(table)

    if result.failed:
        sys.exit(1)


@cli.command()
@click.pass_obj
def status(config: VaultConfig):
    """Show rsync availability and effective settings."""
    rsync = find_rsync(config.sync.rsync_binary)
    if rsync:
        rprint(f"🔄 rsync: [green]{rsync}[/green]")
    else:
        rprint(f"⚠️ rsync: [yellow]'{config.sync.rsync_binary}' not found, using built-in copy[/yellow]")

    table = Table(title="Settings")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_row("Vault path", str(config.vault_path))
    table.add_row("Inactivity timeout", f"{config.sync.inactivity_timeout:g}s")
    table.add_row("Parallel transfers", str(config.sync.parallel_transfers))
    table.add_row("Preserve permissions", str(config.sync.preserve_permissions))
    table.add_row("Default excludes", ", ".join(config.sync.default_excludes))
    table.add_row("Home excludes", ", ".join(config.home_exclude))
    table.add_row("Output", "enabled" if config.output.enabled else "disabled")
    console.print(table)


@cli.command()
@click.option('--config', '-c', 'config_path',
              type=click.Path(dir_okay=False, path_type=Path),
              default=DEFAULT_CONFIG_PATH,
              help='Path to save configuration file')
def init(config_path: Path):
    """Initialize a new configuration file."""
    if config_path.exists():
        if not click.confirm(f"Configuration file {config_path} already exists. Overwrite?"):
            return

    VaultConfig().to_yaml(config_path)

    console.print(f"✅ Configuration saved to {config_path}", style="green")
    console.print("\n📝 Next steps:")
    console.print("1. Edit vault_path and the exclusion lists to match your setup")
    console.print("2. Run 'vault-backup status' to check rsync")
    console.print("3. Run 'vault-backup home' to back up your home directories")
    console.print("4. Run 'vault-backup restore' on a new machine to copy them back")


if __name__ == '__main__':
    cli()
