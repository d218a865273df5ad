"""tav CLI - rewind point repair for Claude Code sessions."""

import logging
import sys
from datetime import datetime

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from tav import __version__
from tav.config import CONFIG_PATH, TavConfig
from tav.errors import format_error
from tav.exceptions import SessionResolutionError
from tav.repair import RepairOptions, backup_path_for, inspect_session, repair, restore_from_backup
from tav.sessions import format_bytes, list_sessions, resolve_target

console = Console()
err_console = Console(stderr=True)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _resolve_or_exit(target: str):
    try:
        return resolve_target(target)
    except SessionResolutionError as e:
        err_console.print(f"[red]{escape(str(e))}[/red]")
        sys.exit(1)


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
def main(verbose):
    """tav: Rewind point repair for Claude Code sessions.

    WARNING: Claude Code loading repaired sessions as rewind points is
    UNVERIFIED. Always test on a non-critical session first.
    """
    _setup_logging(verbose)


@main.command("repair")
@click.argument("target")
@click.option("--dry-run", is_flag=True, help="Preview changes without modifying")
@click.option("--interval", type=click.IntRange(min=1), help="Insert every N assistant entries")
@click.option("--verify/--no-verify", default=None, help="Validate chain integrity before writing (default: on)")
@click.option("--marker", help="Checkpoint marker text (default: ·)")
def repair_cmd(target, dry_run, interval, verify, marker):
    """Insert rewind points into a session.

    TARGET is a session id prefix or a path to a session .jsonl file.

    Examples:
        tav repair 3f2a9c1d
        tav repair ~/.claude/projects/-home-me-app/3f2a9c1d-....jsonl --dry-run
        tav repair 3f2a --interval 5 --marker "#"
    """
    path = _resolve_or_exit(target)
    options = RepairOptions.from_config(
        TavConfig.load(),
        interval=interval,
        verify=verify,
        marker=marker,
        dry_run=dry_run,
    )

    console.print(f"Repairing: {escape(str(path))}")
    console.print(
        f"[dim]Options: interval={options.interval}, dryRun={options.dry_run}, verify={options.verify}[/dim]"
    )
    console.print()

    result = repair(path, options)

    if result.errors:
        err_console.print("[red]Errors:[/red]")
        for error in result.errors:
            err_console.print(f"  [red]✘[/red] {escape(error)}", highlight=False)

    for warning in result.warnings:
        console.print(f"  [yellow]⚠[/yellow] {escape(warning)}", highlight=False)

    if result.inserted > 0 and result.ok and not options.dry_run:
        console.print()
        console.print(f"[green]✓[/green] Inserted {result.inserted} rewind points.")
        if result.backup_path:
            console.print(f"  Backup: {escape(str(result.backup_path))}")

    sys.exit(1 if result.errors else 0)


@main.command("list")
@click.option("--recent", type=click.IntRange(min=1), help="Number of sessions to show")
def list_cmd(recent):
    """List recent sessions."""
    limit = recent or TavConfig.load().recent_limit
    sessions = list_sessions(limit)
    if not sessions:
        console.print("[dim]No sessions found in ~/.claude/projects/[/dim]")
        return

    table = Table(title=f"Recent sessions ({len(sessions)})")
    table.add_column("Session", style="cyan", no_wrap=True)
    table.add_column("Size", justify="right")
    table.add_column("Entries", justify="right")
    table.add_column("Age", justify="right", no_wrap=True)
    table.add_column("Path", style="dim", overflow="fold")

    now = datetime.now()
    for s in sessions:
        hours = int((now - s.modified).total_seconds() // 3600)
        age = f"{hours}h ago" if hours < 24 else f"{hours // 24}d ago"
        table.add_row(s.session_id[:8], format_bytes(s.size), str(s.entry_count), age, escape(str(s.path)))

    console.print(table)


@main.command("check")
@click.argument("target")
def check_cmd(target):
    """Diagnose a session's chain without modifying it."""
    path = _resolve_or_exit(target)
    config = TavConfig.load()

    result = inspect_session(path, interval=config.interval, marker=config.marker)
    if result.is_err():
        err_console.print(f"[red]{escape(format_error(result.unwrap_err()))}[/red]")
        sys.exit(1)
    report = result.unwrap()

    console.print(f"[bold]{escape(str(report.path))}[/bold]")
    console.print(f"  lines: {report.total_lines} ({report.malformed_lines} malformed)")
    console.print(f"  chain: {report.chain_length} entries")
    if report.compact_boundary >= 0:
        console.print(f"  last compact boundary: line {report.compact_boundary + 1}")
    if report.dead_excluded:
        console.print(
            f"  death zone: chain[{report.death_index}:] "
            f"([red]{report.dead_excluded} dead entries[/red])"
        )
    else:
        console.print("  death zone: [green]none[/green]")
    console.print(f"  candidate rewind points: {len(report.break_points)}")
    console.print(f"  existing markers: {report.existing_markers}")
    console.print(f"  backup: {'yes' if report.has_backup else 'no'}")

    if report.validation.valid:
        console.print("  integrity: [green]✓ valid[/green]")
        return

    console.print(f"  integrity: [red]✘ {len(report.validation.errors)} problem(s)[/red]")
    for error in report.validation.errors[:20]:
        console.print(f"    {escape(error)}", highlight=False)
    sys.exit(1)


@main.command("restore")
@click.argument("target")
def restore_cmd(target):
    """Restore a session from its repair backup (undo a repair)."""
    path = _resolve_or_exit(target)
    result = restore_from_backup(path)
    if result.is_err():
        err_console.print(f"[red]{escape(format_error(result.unwrap_err()))}[/red]")
        sys.exit(1)
    console.print(f"[green]✓[/green] Restored {escape(str(path))}")
    console.print(f"  from {escape(str(backup_path_for(path)))} (backup kept)")


@main.group()
def config():
    """Manage repair defaults (~/.claude/tav/config.yaml)."""
    pass


@config.command("list")
def config_list():
    """Show current configuration."""
    cfg = TavConfig.load()
    defaults = TavConfig()

    console.print(f"[bold]Configuration[/bold] [dim]({CONFIG_PATH})[/dim]")
    console.print()
    for key, value in cfg.to_dict().items():
        _show_value(key, value, getattr(defaults, key))

    console.print()
    console.print("[dim]tav config set KEY VALUE      Set a value[/dim]")
    console.print("[dim]tav config reset              Reset to defaults[/dim]")


@config.command("set")
@click.argument("key")
@click.argument("value")
def config_set(key: str, value: str):
    """Set a configuration value.

    Examples:
        tav config set interval 5
        tav config set marker "#"
        tav config set verify false
    """
    cfg = TavConfig.load()
    fields = TavConfig.__dataclass_fields__

    # Normalize key (allow hyphens)
    key = key.replace("-", "_")
    if key not in fields:
        console.print(f"[red]Unknown config key: {key}[/red]")
        console.print(f"[dim]Keys: {', '.join(fields)}[/dim]")
        sys.exit(1)

    field_type = fields[key].type
    if field_type == bool:
        lowered = value.lower()
        if lowered not in ("true", "false", "1", "0", "yes", "no", "on", "off"):
            console.print(f"[red]Invalid boolean value: {value}[/red]")
            sys.exit(1)
        typed_value = lowered in ("true", "1", "yes", "on")
    elif field_type == int:
        try:
            typed_value = int(value)
        except ValueError:
            console.print(f"[red]Invalid integer value: {value}[/red]")
            sys.exit(1)
        if typed_value < 1:
            console.print(f"[red]{key} must be >= 1[/red]")
            sys.exit(1)
    else:
        if not value:
            console.print(f"[red]{key} cannot be empty[/red]")
            sys.exit(1)
        typed_value = value

    current = cfg.to_dict()
    current[key] = typed_value
    result = TavConfig(**current).save()
    if result.is_err():
        console.print(f"[red]{escape(format_error(result.unwrap_err()))}[/red]")
        sys.exit(1)
    console.print(f"[green]✓[/green] Set {key} = {typed_value}")


@config.command("reset")
def config_reset():
    """Reset configuration to defaults."""
    result = TavConfig().save()
    if result.is_err():
        console.print(f"[red]{escape(format_error(result.unwrap_err()))}[/red]")
        sys.exit(1)
    console.print("[green]✓[/green] Reset config to defaults")


def _show_value(key: str, value, default):
    """Display a config value, highlighting if non-default."""
    if value != default:
        console.print(f"  {key}: [cyan]{value}[/cyan] [dim](default: {default})[/dim]")
    else:
        console.print(f"  {key}: {value}")


if __name__ == "__main__":
    main()
