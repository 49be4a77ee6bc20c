"""PagePilot CLI entry point."""

import logging

import structlog
import typer
from rich.console import Console

from pagepilot.api.cli.commands import config

app = typer.Typer(
    name="pagepilot",
    help="PagePilot - agentic tool-use engine for browser pages",
    add_completion=True,
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()

# Register command groups
app.add_typer(config.app, name="config", help="Configuration management")


@app.callback()
def main(
    ctx: typer.Context,
    config_dir: str = typer.Option("configs", "--config-dir", "-c", help="Profile directory"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose output"),
):
    """PagePilot CLI."""
    level = logging.DEBUG if verbose else logging.WARNING
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(level))

    # Store global options in context for subcommands
    ctx.obj = {"config_dir": config_dir, "verbose": verbose}


@app.command()
def version():
    """Show PagePilot version."""
    from pagepilot import __version__

    console.print(f"[bold blue]PagePilot[/bold blue] version [cyan]{__version__}[/cyan]")


if __name__ == "__main__":
    app()
