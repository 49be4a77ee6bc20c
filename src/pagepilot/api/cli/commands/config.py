"""Config command - Inspect configuration profiles."""

import typer
from rich.console import Console
from rich.table import Table

from pagepilot.application.factory import OrchestratorFactory
from pagepilot.core.domain.errors import ProfileError

app = typer.Typer(help="Configuration management")
console = Console()


@app.command("show")
def show_config(
    ctx: typer.Context,
    profile: str = typer.Option("dev", "--profile", "-p", help="Configuration profile"),
):
    """Show the settings of a profile, one row per key."""
    config_dir = (ctx.obj or {}).get("config_dir", "configs")
    factory = OrchestratorFactory(config_dir=config_dir)

    try:
        config = factory.load_profile(profile)
    except (FileNotFoundError, ProfileError) as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    table = Table(title=f"Profile: {profile}")
    table.add_column("Section", style="cyan")
    table.add_column("Key", style="white")
    table.add_column("Value", style="green")

    for section, values in config.items():
        if isinstance(values, dict):
            for key, value in values.items():
                table.add_row(section, str(key), str(value))
        else:
            table.add_row(section, "", str(values))

    console.print(table)
