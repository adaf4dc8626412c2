"""CLI for Redis Vault (Typer + Rich)."""

from __future__ import annotations

import logging
import signal
from datetime import UTC, datetime
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from redis_vault import __version__
from redis_vault.backup import BackupManager, CycleOutcome
from redis_vault.config import Settings, format_duration, load_settings
from redis_vault.exceptions import ConfigError, StartupError, StorageError
from redis_vault.logging import init_logging
from redis_vault.metrics import PrometheusMetrics
from redis_vault.models import StorageObject
from redis_vault.naming import node_prefix
from redis_vault.retention import plan, sort_newest_first
from redis_vault.role import RoleDetector, mask_url
from redis_vault.server import start_metrics_server
from redis_vault.storage import StorageBackend, create_backend

app = typer.Typer(
    name="redis-vault",
    help="Redis snapshot backup sidecar.",
    no_args_is_help=True,
)
console = Console()

logger = logging.getLogger(__name__)

FAILED_OUTCOMES = {
    CycleOutcome.NO_SNAPSHOT,
    CycleOutcome.UPLOAD_FAILED,
    CycleOutcome.LIST_FAILED,
    CycleOutcome.ERROR,
}

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to the YAML config file"),
]


def _load_settings(config: Path | None) -> Settings:
    """Load settings, reading a local .env first."""
    try:
        return load_settings(config, dotenv=True)
    except ConfigError as e:
        console.print(f"[red]Error:[/] {escape(str(e))}")
        raise typer.Exit(1)


def _create_backend(settings: Settings) -> StorageBackend:
    try:
        return create_backend(settings)
    except StorageError as e:
        console.print(f"[red]Error:[/] {escape(str(e))}")
        raise typer.Exit(1)


def _format_size(size_bytes: int) -> str:
    """Human-readable file size."""
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    else:
        return f"{size_bytes / (1024 * 1024):.2f} MB"


def _format_age(dt: datetime, now: datetime) -> str:
    """Human-readable age from a datetime."""
    delta = now - dt
    hours = delta.total_seconds() / 3600
    if hours < 1:
        return f"{int(delta.total_seconds() / 60)}m ago"
    elif hours < 24:
        return f"{hours:.1f}h ago"
    else:
        return f"{delta.days}d ago"


def _snapshot_table(
    title: str, objects: list[StorageObject], now: datetime, actions: dict[str, str] | None = None
) -> Table:
    table = Table(title=title)
    table.add_column("#", style="dim", width=4)
    table.add_column("Node", style="cyan")
    table.add_column("Key")
    table.add_column("Size", justify="right")
    table.add_column("Created")
    table.add_column("Age", style="dim")
    if actions is not None:
        table.add_column("Action")

    for i, obj in enumerate(objects, 1):
        row = [
            str(i),
            obj.node_name or "[dim](foreign)[/]",
            obj.key,
            _format_size(obj.size_bytes),
            obj.created_at.strftime("%Y-%m-%d %H:%M:%S UTC"),
            _format_age(obj.created_at, now),
        ]
        if actions is not None:
            row.append(actions.get(obj.key, ""))
        table.add_row(*row)
    return table


def _install_signal_handlers(manager: BackupManager) -> None:
    def _handle(signum, frame):
        logger.info(f"Received {signal.Signals(signum).name}, shutting down after the current step")
        manager.stop()

    signal.signal(signal.SIGINT, _handle)
    signal.signal(signal.SIGTERM, _handle)


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"redis-vault {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option("--version", callback=_version_callback, is_eager=True, help="Show the version and exit"),
    ] = False,
) -> None:
    """Redis snapshot backup sidecar."""


# ── run ─────────────────────────────────────────────────────────────────


@app.command()
def run(
    config: ConfigOption = None,
    once: Annotated[bool, typer.Option("--once", help="Run a single backup cycle and exit")] = False,
) -> None:
    """Run the backup loop."""
    settings = _load_settings(config)
    init_logging(settings.logging.level, settings.logging.format)
    logger.info(f"redis-vault {__version__} starting for node {settings.redis.node_name}")

    backend = _create_backend(settings)
    metrics = PrometheusMetrics()
    manager = BackupManager(settings, backend, metrics)

    if settings.metrics.enabled:
        start_metrics_server(metrics, settings.metrics.listen_address, settings.metrics.port, status=manager.status)

    _install_signal_handlers(manager)

    try:
        outcome = manager.run(once=once)
    except StartupError as e:
        logger.error(str(e))
        console.print(f"[red]Error:[/] {escape(str(e))}")
        raise typer.Exit(1)

    if outcome in FAILED_OUTCOMES:
        raise typer.Exit(1)


# ── list ────────────────────────────────────────────────────────────────


@app.command("list")
def list_backups(
    config: ConfigOption = None,
    all_nodes: Annotated[bool, typer.Option("--all", help="Show every object under the prefix")] = False,
) -> None:
    """List uploaded snapshots."""
    settings = _load_settings(config)
    init_logging("warning", settings.logging.format)
    backend = _create_backend(settings)

    node = settings.redis.node_name
    prefix = settings.storage.prefix.rstrip("/")
    if all_nodes:
        scope = f"{prefix}/" if prefix else ""
    else:
        scope = node_prefix(prefix, node)

    try:
        objects = backend.list(scope)
    except StorageError as e:
        console.print(f"[red]Error:[/] {escape(str(e))}")
        raise typer.Exit(1)

    if not all_nodes:
        objects = [o for o in objects if o.node_name == node]

    if not objects:
        console.print("[yellow]No backups found.[/]")
        return

    title = f"Snapshots in {backend.url}/{scope}"
    console.print(_snapshot_table(title, sort_newest_first(objects), datetime.now(UTC)))


# ── prune ───────────────────────────────────────────────────────────────


@app.command()
def prune(
    config: ConfigOption = None,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run/--apply", help="Only show what would be deleted (default), or delete"),
    ] = True,
) -> None:
    """Apply the retention policy to this node's snapshots."""
    settings = _load_settings(config)
    init_logging("warning", settings.logging.format)
    backend = _create_backend(settings)

    node = settings.redis.node_name
    policy = settings.retention_policy
    scope = node_prefix(settings.storage.prefix, node)

    try:
        objects = backend.list(scope)
    except StorageError as e:
        console.print(f"[red]Error:[/] {escape(str(e))}")
        raise typer.Exit(1)

    now = datetime.now(UTC)
    result = plan(objects, policy, now, node)
    if not result.retain and not result.delete:
        console.print("[yellow]No backups found.[/]")
        return

    actions = {o.key: "[green]keep[/]" for o in result.retain}
    actions.update({o.key: "[red]delete[/]" for o in result.delete})
    ordered = sort_newest_first(result.retain + result.delete)
    console.print(_snapshot_table(f"Retention plan for {node}", ordered, now, actions))

    if policy.is_noop:
        console.print("[dim]Retention is disabled (keep_last=0, no keep_duration); nothing to delete.[/]")
        return
    if not result.delete:
        console.print("[green]Nothing to delete.[/]")
        return
    if dry_run:
        console.print(f"[yellow]Dry run:[/] {len(result.delete)} snapshot(s) would be deleted. Use --apply to delete.")
        return

    failures = 0
    for obj in result.delete:
        try:
            backend.delete(obj.key)
        except StorageError as e:
            failures += 1
            console.print(f"  [red]FAIL[/] {obj.key}: {escape(str(e.cause))}")

    deleted = len(result.delete) - failures
    console.print(f"Deleted {deleted} snapshot(s), {failures} failure(s).")
    if failures:
        raise typer.Exit(1)


# ── status ──────────────────────────────────────────────────────────────


@app.command()
def status(config: ConfigOption = None) -> None:
    """Show effective configuration and the state of this node."""
    settings = _load_settings(config)
    init_logging("error", settings.logging.format)

    redis = settings.redis
    backup = settings.backup
    storage = settings.storage
    retention = settings.retention

    lines = []
    lines.append(f"[bold]Node:[/]           {redis.node_name}")
    lines.append(f"[bold]Redis:[/]          {mask_url(redis.connection_string)}")

    role = RoleDetector(redis.connection_string, redis.role_timeout.total_seconds()).detect()
    lines.append(f"[bold]Role:[/]           {role.value}")
    lines.append(f"[bold]Back up:[/]        primary={redis.backup_master} replica={redis.backup_replica}")

    snapshot = settings.snapshot_path
    if snapshot.is_file():
        stat = snapshot.stat()
        modified = datetime.fromtimestamp(stat.st_mtime, UTC)
        lines.append(
            f"[bold]Snapshot:[/]       {snapshot} ({_format_size(stat.st_size)}, "
            f"{modified.strftime('%Y-%m-%d %H:%M UTC')})"
        )
    else:
        lines.append(f"[bold]Snapshot:[/]       {snapshot} [red](missing)[/]")

    lines.append("")
    lines.append(f"[bold]Storage:[/]        {storage.type}")
    if storage.type == "s3":
        lines.append(f"[bold]S3 Bucket:[/]      {storage.bucket}")
        lines.append(f"[bold]S3 Region:[/]      {storage.region or '(default)'}")
        lines.append(f"[bold]S3 Endpoint:[/]    {storage.endpoint or '(AWS)'}")
    elif storage.type == "gcs":
        lines.append(f"[bold]GCS Bucket:[/]     {storage.bucket}")
        lines.append(f"[bold]GCS Project:[/]    {storage.project_id or '(default)'}")
    else:
        lines.append(f"[bold]Backup Dir:[/]     {Path(storage.path).resolve()}")
    lines.append(f"[bold]Prefix:[/]         {storage.prefix or '(none)'}")

    lines.append("")
    lines.append(f"[bold]Interval:[/]       {format_duration(backup.interval)}")
    lines.append(f"[bold]Initial Delay:[/]  {format_duration(backup.initial_delay)}")
    lines.append(f"[bold]Aligned:[/]        {backup.align_schedule}")
    keep_duration = format_duration(retention.keep_duration) if retention.keep_duration else "-"
    lines.append(f"[bold]Retention:[/]      keep_last={retention.keep_last} keep_duration={keep_duration}")
    if settings.metrics.enabled:
        endpoint = f"http://{settings.metrics.listen_address}:{settings.metrics.port}/metrics"
        lines.append(f"[bold]Metrics:[/]        {endpoint}")
    else:
        lines.append("[bold]Metrics:[/]        [dim]disabled[/]")

    lines.append("")
    try:
        backend = create_backend(settings)
        listed = backend.list(node_prefix(storage.prefix, redis.node_name))
        objects = [o for o in listed if o.node_name == redis.node_name]
    except StorageError as e:
        lines.append(f"[bold]Backups:[/]        [red]unavailable[/] ({escape(str(e.cause))})")
    else:
        if objects:
            newest = sort_newest_first(objects)[0]
            age = _format_age(newest.created_at, datetime.now(UTC))
            lines.append(f"[bold]Last Backup:[/]    {newest.created_at.strftime('%Y-%m-%d %H:%M UTC')} ({age})")
        else:
            lines.append("[bold]Last Backup:[/]    [dim]never[/]")
        lines.append(f"[bold]Total Backups:[/]  {len(objects)}")

    console.print(Panel("\n".join(lines), title="Redis Vault Status"))
