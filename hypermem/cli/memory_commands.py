"""Hypergraph memory CLI commands.

Commands:
- hypermem memory stats <guild>
- hypermem memory nodes <guild> [--type KIND]
- hypermem memory list <guild> [--channel ID] [--node ID] [--min-urgency X]
- hypermem memory decay <guild>
- hypermem memory config <guild> [--set key=value ...]
"""

import asyncio
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from hypermem.config.loader import camel_to_snake

console = Console()


def _get_store():
    """Open the hypergraph store from the user's config, or None if disabled."""
    from hypermem.config.loader import load_config
    from hypermem.memory.store import HypergraphStore

    config = load_config()
    if not config.memory.enabled:
        console.print("[yellow]Memory system is disabled[/yellow]")
        return None

    workspace = config.workspace_path
    workspace.mkdir(parents=True, exist_ok=True)
    return HypergraphStore(config.memory, workspace)


def _format_urgency(urgency: float) -> str:
    """Format urgency with color."""
    if urgency >= 0.5:
        return f"[green]{urgency:.3f}[/green]"
    elif urgency >= 0.1:
        return f"[yellow]{urgency:.3f}[/yellow]"
    else:
        return f"[red]{urgency:.3f}[/red]"


def _format_members(edge) -> str:
    """Members as 'name (role)', heaviest first."""
    return ", ".join(f"{m.name} ({m.role})" for m in edge.members)


def _parse_assignments(assignments: list[str]) -> dict[str, str]:
    values = {}
    for item in assignments:
        if "=" not in item:
            raise typer.BadParameter(f"Expected key=value, got '{item}'")
        key, value = item.split("=", 1)
        values[camel_to_snake(key.strip())] = value.strip()
    return values


memory_app = typer.Typer(name="memory", help="Hypergraph memory management commands")


@memory_app.command("stats")
def memory_stats(guild: str):
    """Show hypergraph statistics for a guild."""
    store = _get_store()
    if not store:
        return

    with store:
        stats = store.get_hypergraph_stats(guild)

    console.print(f"\n[bold]Hypergraph: {guild}[/bold]")
    console.print(f"Nodes: {stats['total_nodes']:,}")
    console.print(f"Memories: {stats['total_edges']:,}")

    if stats["nodes_by_type"]:
        console.print("\n[bold yellow]Node Kinds:[/bold yellow]")
        for kind, count in stats["nodes_by_type"].items():
            console.print(f"  {kind}: {count}")

    if stats["edges_by_type"]:
        console.print("\n[bold cyan]Memory Types:[/bold cyan]")
        for edge_type, info in stats["edges_by_type"].items():
            console.print(f"  {edge_type}: {info['count']} (avg urgency {info['avg_urgency']:.3f})")

    if stats["top_entities"]:
        table = Table(title="Top Entities")
        table.add_column("Name", style="green")
        table.add_column("Kind", style="yellow")
        table.add_column("Memories", style="magenta")
        for entity in stats["top_entities"]:
            table.add_row(entity["name"], entity["kind"], str(entity["memory_count"]))
        console.print(table)


@memory_app.command("nodes")
def memory_nodes(
    guild: str,
    kind: Optional[str] = typer.Option(None, "--type", "-t", help="Only nodes of this kind"),
):
    """List the nodes of a guild."""
    store = _get_store()
    if not store:
        return

    with store:
        nodes = store.get_nodes_by_type(guild, kind) if kind else store.get_all_nodes(guild)

    if not nodes:
        console.print("[yellow]No nodes found[/yellow]")
        return

    table = Table(title=f"Nodes ({len(nodes)})")
    table.add_column("ID", style="dim")
    table.add_column("Kind", style="yellow")
    table.add_column("External ID", style="cyan")
    table.add_column("Name", style="green")
    for node in nodes:
        table.add_row(str(node.id), node.kind, node.external_id, node.name)
    console.print(table)


@memory_app.command("list")
def memory_list(
    guild: str,
    channel: Optional[str] = typer.Option(None, "--channel", "-c", help="Channel ID"),
    node: Optional[str] = typer.Option(None, "--node", "-n", help="External node ID (user ID, keyword...)"),
    min_urgency: float = typer.Option(0.1, "--min-urgency", help="Minimum urgency"),
    limit: int = typer.Option(20, "--limit", "-l"),
):
    """List memories for a node or a channel."""
    if not node and not channel:
        console.print("[red]Either --node or --channel is required[/red]")
        raise typer.Exit(2)

    store = _get_store()
    if not store:
        return

    with store:
        if node:
            edges = store.query_memories_by_node(guild, node, min_urgency=min_urgency, limit=limit)
        else:
            edges = store.get_channel_memories(guild, channel, min_urgency=min_urgency, limit=limit)

    if not edges:
        console.print("[yellow]No memories found[/yellow]")
        return

    table = Table(title=f"Memories ({len(edges)})")
    table.add_column("ID", style="dim")
    table.add_column("Type", style="yellow")
    table.add_column("Summary", style="green")
    table.add_column("Urgency")
    table.add_column("Members", style="cyan")
    for edge in edges:
        table.add_row(
            str(edge.id), edge.edge_type, edge.summary, _format_urgency(edge.urgency), _format_members(edge)
        )
    console.print(table)


@memory_app.command("decay")
def memory_decay(guild: str):
    """Run decay and pruning for one guild now."""
    from hypermem.memory.decay import DecayScheduler

    store = _get_store()
    if not store:
        return

    with store:
        scheduler = DecayScheduler(store)
        try:
            result = asyncio.run(scheduler.trigger_for_guild(guild))
        except Exception as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(1)

    console.print(f"[green]Decay complete[/green]: {result.updated} updated, {result.pruned} pruned")


@memory_app.command("config")
def memory_config(
    guild: str,
    assignments: list[str] = typer.Option([], "--set", "-s", help="key=value (camelCase or snake_case)"),
):
    """Show or change a guild's hypergraph config."""
    from hypermem.config.schema import HypergraphConfig

    store = _get_store()
    if not store:
        return

    with store:
        config = store.get_hypergraph_config(guild)
        if assignments:
            try:
                updates = _parse_assignments(assignments)
                merged = {**config.model_dump(), **updates}
                config = store.update_hypergraph_config(guild, HypergraphConfig.model_validate(merged))
            except (typer.BadParameter, ValueError) as e:
                console.print(f"[red]Error: {e}[/red]")
                raise typer.Exit(1)
            console.print("[green]Config updated[/green]")

    table = Table(title=f"Hypergraph config: {guild}")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    for key, value in config.model_dump(by_alias=True).items():
        table.add_row(key, str(value))
    console.print(table)
