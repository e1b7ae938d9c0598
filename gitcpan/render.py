"""
Rendering functions for gitcpan output.

This module handles all pretty-printing and table formatting.
Core functions return data, this module makes it human-readable.
"""

from rich.table import Table
from rich.console import Console
from rich import box
from typing import List, Dict, Any

console = Console()

STATUS_STYLES = {
    'success': 'green',
    'mirrored': 'cyan',
    'skipped': 'yellow',
    'failed': 'red',
}


def summary_line(result: Dict[str, Any]) -> str:
    """One line per release: imported / skipped with reason / failed with reason."""
    label = f"{result.get('dist_name', '')} {result.get('version', '')}".strip()
    status = result.get('status')
    if status == 'success':
        return f"imported {label} as {result.get('tag')} ({result.get('commit')})"
    if status == 'mirrored':
        return f"mirrored {label}: {result.get('message', '')}"
    if status == 'skipped':
        return f"skipped {label}: {result.get('message', '')}"
    return f"failed {label}: {result.get('error', '')}"


def render_import_table(results: List[Dict[str, Any]]) -> None:
    """
    Render import results as a pretty table.

    Args:
        results: List of ImportResult dictionaries
    """
    if not results:
        console.print("[yellow]Nothing to import.[/yellow]")
        return

    table = Table(
        title="Imported releases",
        box=box.ROUNDED,
        show_header=True,
        header_style="bold magenta"
    )
    table.add_column("Distribution", style="cyan")
    table.add_column("Version")
    table.add_column("Status")
    table.add_column("Tag")
    table.add_column("Commit", style="dim")
    table.add_column("Details")

    for result in results:
        status = result.get('status') or ''
        style = STATUS_STYLES.get(status, 'white')
        commit = result.get('commit') or ''
        table.add_row(
            result.get('dist_name', ''),
            result.get('version', ''),
            f"[{style}]{status}[/{style}]",
            result.get('tag') or '',
            commit[:12],
            result.get('error') or result.get('message') or '',
        )

    console.print(table)


def print_import_summary(summary: Dict[str, Any]) -> None:
    """Print batch totals below the table."""
    console.print("\n[bold]Summary:[/bold]")
    console.print(f"  Releases: {summary.get('total', 0)}")
    console.print(f"  [green]Imported: {summary.get('imported', 0)}[/green]")
    if summary.get('mirrored'):
        console.print(f"  [cyan]Mirrored: {summary['mirrored']}[/cyan]")
    if summary.get('skipped'):
        console.print(f"  [yellow]Skipped: {summary['skipped']}[/yellow]")
    if summary.get('failed'):
        console.print(f"  [red]Failed: {summary['failed']}[/red]")
