"""Main CLI entry point for drivecore.

Provides commands for inspecting a JSON dump of a user's nodes: root and
directory listings, broken symlinks and breadcrumbs.
"""

import json
from dataclasses import asdict
from pathlib import Path
from typing import List

import click
from rich.console import Console
from rich.table import Table

from drivecore.config import DriveConfig, get_global_config
from drivecore.errors import DriveError
from drivecore.explorer import ExplorerService
from drivecore.models import Node
from drivecore.remote.memory import InMemoryNodeStore
from drivecore.tree import SORT_KEYS, breadcrumb, parents_of

# Global console for Rich output
console = Console()


def load_nodes(path: Path) -> List[Node]:
    """Read nodes from a JSON file holding a list or ``{"nodes": [...]}``.

    Raises:
        click.ClickException: If the file cannot be parsed
    """
    try:
        with open(path, "r") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise click.ClickException(f"Cannot read nodes from {path}: {e}")

    if isinstance(data, dict):
        data = data.get("nodes", [])
    if not isinstance(data, list):
        raise click.ClickException(f"Expected a list of nodes in {path}")

    try:
        return [Node.from_dict(item) for item in data]
    except (KeyError, ValueError) as e:
        raise click.ClickException(f"Invalid node in {path}: {e}")


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Path to a drivecore config file (default: ~/.drivecore/config.json or DRIVECORE_* env vars)",
)
@click.pass_context
def cli(ctx, config_path):
    """drivecore CLI - Inspect node trees, symlinks and configuration."""
    ctx.ensure_object(dict)
    ctx.obj["config"] = DriveConfig.load(config_path) if config_path else get_global_config()


@cli.command("tree")
@click.argument("nodes_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--user", "-u", required=True, help="Owner of the nodes")
@click.option("--dir", "directory_id", help="Directory id to list (default: root)")
@click.option("--path", default="", help="Display path of the directory for the breadcrumb")
@click.option("--sort", type=click.Choice(SORT_KEYS), default="name", show_default=True)
@click.option("--page", default=1, show_default=True, type=click.IntRange(min=1))
@click.option("--limit", default=20, show_default=True, type=click.IntRange(1, 100))
@click.pass_context
def tree_cmd(ctx, nodes_file, user, directory_id, path, sort, page, limit):
    """List the root or a directory of USER's tree.

    Example:
        drivecore tree nodes.json -u alice
        drivecore tree nodes.json -u alice --dir n1 --path Documents
    """
    nodes = load_nodes(nodes_file)
    explorer = ExplorerService(InMemoryNodeStore.from_nodes(nodes), config=ctx.obj["config"])

    try:
        listing = explorer.list(
            user, directory_id=directory_id, path=path, sort=sort, page=page, limit=limit
        )
    except DriveError as e:
        raise click.ClickException(str(e))

    if listing.crumbs:
        console.print(" / ".join(crumb.name for crumb in listing.crumbs), style="bold")

    if not listing.entries:
        console.print("[yellow]No entries[/yellow]")
        return

    table = Table(title=listing.directory.name if listing.directory else "Root")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Type")
    table.add_column("Size", justify="right")
    table.add_column("Shared", justify="center")
    table.add_column("Status")

    for entry in listing.page.items:
        node = entry.node
        shared = len(parents_of(node.id, nodes)) > 1
        table.add_row(
            node.id,
            node.name,
            node.type.value,
            entry.formatted_size,
            "yes" if shared else "",
            "[red]broken[/red]" if entry.broken else "",
        )

    console.print(table)
    console.print(
        f"Showing {listing.page.start_item}-{listing.page.end_item} "
        f"of {listing.page.total_items} (page {listing.page.page}/{listing.page.total_pages})"
    )


@cli.command("broken")
@click.argument("nodes_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--user", "-u", required=True, help="Owner of the nodes")
@click.pass_context
def broken_cmd(ctx, nodes_file, user):
    """List USER's broken symlinks."""
    nodes = load_nodes(nodes_file)
    explorer = ExplorerService(InMemoryNodeStore.from_nodes(nodes), config=ctx.obj["config"])
    broken = explorer.broken_links(user)

    if not broken:
        console.print("[green]No broken symlinks[/green]")
        return

    table = Table(title="Broken symlinks")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Target")
    for node in broken:
        table.add_row(node.id, node.name, node.contents[0] if node.contents else "-")
    console.print(table)


@cli.command("breadcrumb")
@click.argument("path")
def breadcrumb_cmd(path):
    """Print the breadcrumb segments of PATH."""
    crumbs = breadcrumb(path)
    if not crumbs:
        console.print("[dim](root)[/dim]")
        return
    for crumb in crumbs:
        console.print(f"{crumb.name}\t{crumb.path}")


@cli.group()
def config():
    """Inspect configuration."""
    pass


@config.command("show")
@click.pass_context
def config_show(ctx):
    """Print the effective configuration (API key masked)."""
    data = asdict(ctx.obj["config"])
    if data.get("api_key"):
        data["api_key"] = "********"

    table = Table(title="drivecore configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    for name, value in data.items():
        table.add_row(name, str(value))
    console.print(table)


if __name__ == "__main__":
    cli()
