"""CLI entry point for dumbwatch."""

import json
import logging
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .config import load_config, DEFAULT_CONFIG
from .errors import DumbwatchError

console = Console()


@click.group()
@click.option("--config", "-c", "config_path", default=None, help="Path to config file")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
@click.pass_context
def cli(ctx, config_path, verbose):
    """dumbwatch - Cluster user reports about LLM quality."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def _get_config(ctx) -> dict:
    return load_config(ctx.obj.get("config_path"))


@cli.command()
@click.option("--path", default=None, help="Where to write config.yaml")
def init(path):
    """Write a starter configuration file."""
    import yaml

    config_file = Path(path).expanduser() if path else Path("~/.dumbwatch/config.yaml").expanduser()
    if config_file.exists():
        console.print(f"[yellow]Config already exists: {config_file}[/]")
        return

    config_file.parent.mkdir(parents=True, exist_ok=True)
    header = (
        "# Tinybird token (or set TINYBIRD_TOKEN env var)\n"
        "# tinybird:\n"
        "#   token: p.your-token-here\n\n"
        "# Storage backend: tinybird or bigquery (set bigquery.project)\n\n"
    )
    config_file.write_text(header + yaml.dump(DEFAULT_CONFIG, default_flow_style=False))
    console.print(f"[bold green]✓ Created config: {config_file}[/]")


@cli.command()
@click.option("--threshold", "-t", type=float, default=None, help="Similarity threshold override")
@click.option("--json", "as_json", is_flag=True, help="Print the trigger endpoint's JSON payload")
@click.pass_context
def cluster(ctx, threshold, as_json):
    """Cluster the last window of reports and store the clusters."""
    from .clustering.cluster import run_clustering
    from .clustering.trigger import clustering_response

    config = _get_config(ctx)
    if threshold is not None:
        config["clustering"]["threshold"] = threshold

    if as_json:
        payload, status = clustering_response(config)
        click.echo(json.dumps(payload, indent=2))
        ctx.exit(0 if status == 200 else 1)

    console.print(f"[blue]Running clustering (threshold {config['clustering']['threshold']})...[/]")
    try:
        result = run_clustering(config)
    except DumbwatchError as e:
        console.print(f"[red]✗ {e}[/]")
        ctx.exit(1)

    if not result.clusters:
        console.print(f"[yellow]{result.message}. {result.events_processed} report(s) considered.[/]")
        return

    console.print(
        f"[green]✓ Created {result.clusters_created} cluster(s) from "
        f"{result.events_processed} report(s)[/]"
    )
    for c in result.clusters:
        console.print(f"  {c.cluster_id}: {c.summary}")


@cli.command()
@click.argument("model_name")
@click.argument("text", required=False)
@click.option("--session", "session_id", default=None, help="Session id (random if omitted)")
@click.option("--entry-path", type=click.Choice(["search_tab", "overview_tab"]), default="search_tab")
@click.option("--no-cluster", is_flag=True, help="Don't start a clustering pass afterwards")
@click.pass_context
def report(ctx, model_name, text, session_id, entry_path, no_cluster):
    """Record a quick report about MODEL_NAME."""
    from .reports import record_report

    config = _get_config(ctx)
    session_id = session_id or uuid.uuid4().hex
    try:
        event = record_report(
            config,
            session_id=session_id,
            model_name=model_name,
            text=text,
            entry_path=entry_path,
            trigger=False,
        )
    except (DumbwatchError, ValueError) as e:
        console.print(f"[red]✗ {e}[/]")
        ctx.exit(1)

    console.print(f"[green]✓ Report recorded ({event['session_id']})[/]")
    if event["embedding"] and not no_cluster:
        # The process exits right after, so run in the foreground here
        from .clustering.trigger import clustering_response
        payload, _ = clustering_response(config)
        if payload["success"]:
            console.print(f"  [dim]{payload['clusters_created']} cluster(s) created[/]")


@cli.command()
@click.option("--hours", default=24, help="How far back to look")
@click.option("--n", "-n", default=5, help="Number of clusters to show")
@click.pass_context
def clusters(ctx, hours, n):
    """Show recently stored clusters."""
    from .storage import get_event_store

    config = _get_config(ctx)
    since = datetime.now(timezone.utc) - timedelta(hours=hours)
    try:
        store = get_event_store(config)
        try:
            rows = store.recent_clusters(since, limit=n)
        finally:
            store.close()
    except DumbwatchError as e:
        console.print(f"[red]✗ {e}[/]")
        ctx.exit(1)

    if not rows:
        console.print("[yellow]No clusters yet. Run 'dumbwatch cluster' once reports come in.[/]")
        return

    table = Table(title=f"Report clusters (last {hours}h)")
    table.add_column("Summary", style="cyan")
    table.add_column("Reports", justify="right", style="green")
    table.add_column("Example", max_width=60)
    table.add_column("Processed", style="dim")

    for row in rows:
        texts = row.get("representative_texts") or []
        example = texts[0][:80].replace("\n", " ") if texts else ""
        table.add_row(
            row.get("cluster_summary", ""),
            str(row.get("report_count", 0)),
            example,
            str(row.get("processed_at", "")),
        )

    console.print(table)


@cli.command()
@click.option("--interval", type=float, default=None, help="Minutes between runs")
@click.pass_context
def watch(ctx, interval):
    """Run clustering on a fixed schedule."""
    from .scheduler import ClusteringScheduler

    config = _get_config(ctx)
    minutes = interval or config.get("schedule", {}).get("interval_minutes", 60)
    ClusteringScheduler(config, interval_minutes=minutes).run()


if __name__ == "__main__":
    cli()
