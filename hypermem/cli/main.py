"""hypermem command line.

Commands:
- hypermem extract <text>   preview what the structural extractor would store
- hypermem run              run the decay scheduler over every stored guild
- hypermem memory ...       inspect and maintain the hypergraph
"""

import asyncio
from typing import Optional

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from hypermem import __logo__, __version__
from hypermem.cli.memory_commands import memory_app

console = Console()

app = typer.Typer(
    name="hypermem",
    help=f"{__logo__} hypermem - hypergraph memory for chat bots",
    no_args_is_help=True,
)
app.add_typer(memory_app, name="memory")


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} hypermem v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging on the console"),
    version: bool = typer.Option(
        None, "--version", callback=version_callback, is_eager=True, help="Show version"
    ),
):
    """hypermem - hypergraph memory for chat bots."""
    from pathlib import Path

    from hypermem.config.loader import load_config
    from hypermem.utils.logging import configure_logging

    config = load_config()
    log_file = Path(config.logging.log_file).expanduser() if config.logging.log_file else None
    configure_logging(level=config.logging.level, log_file=log_file, verbose=verbose)


@app.command("extract")
def extract(
    text: str,
    author: str = typer.Option("user", "--author", "-a", help="Author display name"),
    author_id: str = typer.Option("0", "--author-id", help="Author ID"),
    guild: str = typer.Option("cli", "--guild", "-g", help="Guild ID"),
    channel: str = typer.Option("cli", "--channel", "-c", help="Channel ID"),
):
    """Show the memory the structural extractor would create for TEXT."""
    from hypermem.memory.extraction import IncomingMessage, extract_structural_memory

    message = IncomingMessage(
        author_id=author_id,
        author_name=author,
        text=text,
        tenant_id=guild,
        channel_id=channel,
    )
    memory = extract_structural_memory(message)
    if memory is None:
        console.print("[yellow]Nothing worth remembering[/yellow]")
        return

    console.print(f"\n[bold]{memory.summary}[/bold]")
    console.print(f"Type: {memory.edge_type}")
    console.print(f"Importance: {memory.importance:.2f}")

    table = Table(title="Entities")
    table.add_column("Kind", style="yellow")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="green")
    table.add_column("Role", style="cyan")
    table.add_column("Weight", style="magenta")
    for entity in memory.entities:
        table.add_row(entity.kind, entity.external_id, entity.name, entity.role, f"{entity.weight:.2f}")
    console.print(table)


@app.command("run")
def run(
    interval: Optional[float] = typer.Option(
        None, "--interval", "-i", help="Minutes between decay runs (default from config)"
    ),
):
    """Run the decay scheduler until interrupted."""
    from hypermem.config.loader import load_config
    from hypermem.memory.decay import DecayScheduler
    from hypermem.memory.store import HypergraphStore
    from hypermem.memory.tenants import StoreTenantSource

    config = load_config()
    if not config.memory.enabled or not config.memory.scheduler.enabled:
        console.print("[yellow]Decay scheduler is disabled[/yellow]")
        return

    workspace = config.workspace_path
    workspace.mkdir(parents=True, exist_ok=True)
    interval_minutes = interval if interval is not None else config.memory.scheduler.interval_minutes

    async def _serve():
        with HypergraphStore(config.memory, workspace) as store:
            scheduler = DecayScheduler(
                store,
                tenant_source=StoreTenantSource(store),
                defaults=config.memory.decay,
            )
            await scheduler.start(interval_minutes)
            try:
                while scheduler.is_running:
                    await asyncio.sleep(1)
            finally:
                await scheduler.stop()

    console.print(f"{__logo__} Decay scheduler running every {interval_minutes} minutes (Ctrl+C to stop)")
    try:
        asyncio.run(_serve())
    except KeyboardInterrupt:
        logger.info("Decay scheduler interrupted")
        console.print("\n[dim]Stopped[/dim]")


if __name__ == "__main__":
    app()
