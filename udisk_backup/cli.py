"""Command-line interface for udisk-backup."""

import json
import logging
import sys
import click
from typing import Optional

from . import __version__
from .core.errors import UDiskBackupError
from .core.models import LogEvent, RunPhase, StatusEvent
from .core.service import BackupService
from .config.config_manager import ConfigManager
from .utils.formatters import format_date, format_duration, format_file_size, truncate_string

EXIT_CODES = {
    RunPhase.COMPLETED: 0,
    RunPhase.FAILED: 1,
    RunPhase.CANCELLED: 130,
}


def setup_logging(level: str, log_file: Optional[str] = None):
    """Set up logging configuration."""
    # Convert string level to logging constant
    numeric_level = getattr(logging, level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f'Invalid log level: {level}')

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Clear existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    # Console handler on stderr keeps --output json parseable
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        try:
            file_handler = logging.FileHandler(log_file)
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)
        except OSError as e:
            click.echo(f"Warning: Could not set up file logging: {e}", err=True)


def _load_service(ctx) -> BackupService:
    """Build the service; logging falls back to the config when no CLI option was given."""
    service = BackupService(ctx.obj.get('config_path'))
    if not ctx.obj.get('log_level_given'):
        logging_config = service.config_manager.get_logging_config()
        setup_logging(
            logging_config.get('level', 'INFO'),
            ctx.obj.get('log_file') or logging_config.get('file'),
        )
    return service


def _fail(message: str):
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


@click.group()
@click.option('--config', '-c', 'config_path',
              help='Path to configuration file')
@click.option('--log-level', default=None,
              type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR'], case_sensitive=False),
              help='Logging level (default: from config, INFO)')
@click.option('--log-file',
              help='Log file path')
@click.version_option(version=__version__)
@click.pass_context
def cli(ctx, config_path: Optional[str], log_level: Optional[str], log_file: Optional[str]):
    """UDisk Backup - incremental rsync backups to labeled USB drives."""

    ctx.ensure_object(dict)

    # Set up logging first; the config may override the level later
    setup_logging(log_level or 'INFO', log_file)

    ctx.obj['config_path'] = config_path
    ctx.obj['log_level_given'] = log_level is not None
    ctx.obj['log_file'] = log_file


@cli.command()
@click.option('--output', '-o', type=click.Choice(['text', 'json']), default='text',
              help='Output format')
@click.pass_context
def disks(ctx, output: str):
    """List block devices and their partitions."""
    try:
        service = _load_service(ctx)
        disk_list = service.list_disks()
    except (UDiskBackupError, ValueError, FileNotFoundError) as e:
        _fail(str(e))

    if output == 'json':
        click.echo(json.dumps([d.to_dict() for d in disk_list], indent=2))
        return

    for disk in disk_list:
        description = " ".join(p for p in (disk.vendor, disk.model) if p) or "unknown device"
        click.echo(f"💽 {disk.path}  {description}  [{disk.transport or '-'}]  {format_file_size(disk.size_bytes)}")
        for partition in disk.partitions:
            mount = partition.mount_point or "not mounted"
            click.echo(f"   {partition.path}  {partition.label or '-'}  {partition.fs_type or '-'}  {mount}"
                       f"  free {format_file_size(partition.free_bytes)}")


@cli.command()
@click.option('--output', '-o', type=click.Choice(['text', 'json']), default='text',
              help='Output format')
@click.pass_context
def targets(ctx, output: str):
    """List USB partitions eligible as backup targets."""
    try:
        service = _load_service(ctx)
    except (ValueError, FileNotFoundError) as e:
        _fail(str(e))
    target_list = service.eligible_targets()

    if output == 'json':
        click.echo(json.dumps([t.to_dict() for t in target_list], indent=2))
        return

    if not target_list:
        click.echo("No eligible backup targets found")
        return

    for target in target_list:
        click.echo(f"📀 {target.mount_point}  ({target.label}, {target.device}, {target.filesystem_type})")
        click.echo(f"   Free: {format_file_size(target.free_bytes)} of {format_file_size(target.total_bytes)}")


@cli.command()
@click.argument('target')
@click.option('--source', help='Directory to back up (default: from config)')
@click.option('--output', '-o', type=click.Choice(['text', 'json']), default='text',
              help='Output format')
@click.pass_context
def plan(ctx, target: str, source: Optional[str], output: str):
    """Estimate a backup of the source to TARGET with an rsync dry run."""
    try:
        service = _load_service(ctx)
        transfer_plan = service.plan(target, source)
    except (UDiskBackupError, ValueError, FileNotFoundError) as e:
        _fail(str(e))

    if output == 'json':
        click.echo(json.dumps(transfer_plan.to_dict(), indent=2))
        return

    click.echo(f"Source:      {transfer_plan.source_path}")
    click.echo(f"Destination: {transfer_plan.target_backup_dir}")
    click.echo(f"Deleted:     {transfer_plan.deleted_dir}")
    click.echo(f"Estimated:   {format_file_size(transfer_plan.estimated_bytes)}")
    click.echo(f"Free:        {format_file_size(transfer_plan.free_bytes)}")
    if transfer_plan.enough_space:
        click.echo("✅ Enough space for this backup")
    else:
        click.echo("⚠️  Not enough space (estimate plus 5% margin)")


@cli.command()
@click.argument('target')
@click.option('--force', is_flag=True, help='Start even if the dry run reports too little space')
@click.option('--save-log', 'save_log', type=click.Path(file_okay=False),
              help='Directory to write the live log to when the run ends')
@click.pass_context
def backup(ctx, target: str, force: bool, save_log: Optional[str]):
    """Run a backup to TARGET and follow its output."""
    try:
        service = _load_service(ctx)
        transfer_plan = service.plan(target)
    except (UDiskBackupError, ValueError, FileNotFoundError) as e:
        _fail(str(e))

    if not transfer_plan.enough_space and not force:
        _fail(
            f"Not enough space on {target}: {format_file_size(transfer_plan.free_bytes)} free, "
            f"{format_file_size(transfer_plan.estimated_bytes)} needed plus 5% (use --force to override)"
        )

    subscription = service.subscribe()
    try:
        operation_id = service.start(target)
    except UDiskBackupError as e:
        subscription.close()
        _fail(str(e))

    click.echo(f"🚀 Backup {operation_id} started: {transfer_plan.source_path} -> {target}")

    state = None
    try:
        while state is None:
            try:
                state = _follow(service, subscription, operation_id)
            except KeyboardInterrupt:
                click.echo("\nStopping backup...", err=True)
                service.stop()
    finally:
        subscription.close()

    if save_log:
        click.echo(f"📝 Live log saved: {service.export_live_log(save_log)}")

    click.echo(state.message, err=state.phase != RunPhase.COMPLETED)
    sys.exit(EXIT_CODES.get(state.phase, 1))


def _follow(service: BackupService, subscription, operation_id: str):
    """Echo events of one run until it reaches a terminal phase."""
    while True:
        event = subscription.get(timeout=0.5)
        if event is None:
            current = service.current_state()
            if current is not None and current.operation_id == operation_id and current.phase.is_terminal:
                return current
            continue
        if event.operation_id != operation_id:
            continue
        if isinstance(event, LogEvent):
            click.echo(event.line, err=event.level == 'error')
        elif isinstance(event, StatusEvent) and event.phase.is_terminal:
            return service.current_state()


@cli.command()
@click.option('--target', help='Only list runs on this mount point')
@click.option('--limit', '-n', type=click.IntRange(min=1), help='Maximum number of runs')
@click.option('--output', '-o', type=click.Choice(['text', 'json']), default='text',
              help='Output format')
@click.pass_context
def history(ctx, target: Optional[str], limit: Optional[int], output: str):
    """Show past backup runs, newest first."""
    try:
        service = _load_service(ctx)
    except (ValueError, FileNotFoundError) as e:
        _fail(str(e))
    entries = service.history(target, limit)

    if output == 'json':
        click.echo(json.dumps([e.to_dict() for e in entries], indent=2))
        return

    if not entries:
        click.echo("No backup history found")
        return

    for entry in entries:
        mark = "✅" if entry.success else "❌"
        click.echo(
            f"{mark} {format_date(entry.started_at, short=True)}  {format_duration(entry.duration)}  "
            f"{entry.backup_type or '-':<11}  {format_file_size(entry.transferred_bytes):>9}  "
            f"{entry.target_label or '-'}  {truncate_string(entry.operation_id, 12)}"
        )


@cli.command()
@click.option('--path', help='Directory to inspect (default: configured source)')
@click.pass_context
def source(ctx, path: Optional[str]):
    """Show whether the backup source is available."""
    try:
        service = _load_service(ctx)
    except (ValueError, FileNotFoundError) as e:
        _fail(str(e))
    status = service.source_status(path)

    click.echo(f"📂 {status.path}")
    click.echo(f"   Exists:   {'yes' if status.exists else 'no'}")
    click.echo(f"   Readable: {'yes' if status.readable else 'no'}")
    click.echo(f"   Size:     {format_file_size(status.used_bytes)}")
    if not status.readable:
        sys.exit(1)


@cli.command()
@click.pass_context
def validate_config(ctx):
    """Validate configuration file."""
    try:
        config_manager = ConfigManager(ctx.obj.get('config_path'))
        config = config_manager.load_config()
    except (ValueError, FileNotFoundError) as e:
        click.echo(f"❌ Configuration validation failed: {e}", err=True)
        sys.exit(1)

    click.echo("✅ Configuration loaded successfully")
    click.echo(f"   File: {config_manager.config_file or 'none found, using defaults'}")

    backup_config = config['backup']
    click.echo(f"\n📊 Configuration Summary:")
    click.echo(f"   Source: {backup_config['source']}")
    click.echo(f"   Target label: {backup_config['label']}")
    click.echo(f"   Allowed mount roots: {', '.join(backup_config['allowed_mount_roots'])}")
    click.echo(f"   rsync: {backup_config['rsync_path']}")
    click.echo(f"   History limit: {config['history']['limit']}")


def main():
    """Main CLI entry point."""
    cli()


if __name__ == '__main__':
    main()
