"""Config command for configuration management."""

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from imgpress.cli.callbacks import load_settings
from imgpress.config import find_config_file
from imgpress.config.constants import DEFAULT_CONFIG_FILE

# Create config sub-app
config_app = typer.Typer(help="Configuration management.")
console = Console()


@config_app.command("show")
def show() -> None:
    """Show current configuration."""
    settings = load_settings()

    console.print("\n[bold blue]Current Configuration[/bold blue]\n")

    table = Table(show_header=True, header_style="bold")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    table.add_row("Log Level", settings.log_level)
    table.add_row("Log Directory", settings.log_dir)

    table.add_row("Output Format", settings.output.format)
    table.add_row("Quality", f"{settings.output.quality:.2f}")
    table.add_row("Output Directory", settings.output.directory)
    table.add_row("On Conflict", settings.output.on_conflict)
    table.add_row("Archive Name", settings.output.archive_name)
    table.add_row("Archive Compression", str(settings.output.archive_compression_level))

    table.add_row("Concurrency", str(settings.concurrency.limit))
    table.add_row("Probe Quality", f"{settings.probe.quality:.2f}")

    config_file = find_config_file()
    table.add_row("Config File", str(config_file) if config_file else "None (defaults)")

    console.print(table)
    console.print()


DEFAULT_CONFIG_TEMPLATE = """# imgpress configuration
# Environment variables override this file, e.g. IMGPRESS_OUTPUT__FORMAT=avif

log_level: "INFO"  # Task log file level (DEBUG with --verbose)
log_dir: ".logs"

output:
  format: "webp"  # webp, jpeg, png, avif (avif -> webp -> jpeg if unsupported)
  quality: 0.8  # 0-1, ignored for png
  directory: "output"
  on_conflict: "rename"  # skip, overwrite, rename
  archive_name: "images.zip"
  archive_compression_level: 6  # 0-9

concurrency:
  limit: 4  # Images encoded at once

probe:
  quality: 0.8  # Quality used when probing encoder support
"""


@config_app.command("init")
def init(
    path: Annotated[
        Path | None,
        typer.Option(
            "--path",
            "-p",
            help="Path to create config file.",
        ),
    ] = None,
    force: Annotated[
        bool,
        typer.Option(
            "--force",
            "-f",
            help="Overwrite existing config file.",
        ),
    ] = False,
) -> None:
    """Initialize a configuration file."""
    config_path = path or Path.cwd() / DEFAULT_CONFIG_FILE

    if config_path.exists() and not force:
        console.print(f"[red]Error:[/red] Config file already exists at {config_path}")
        console.print("Use --force to overwrite.")
        raise typer.Exit(1)

    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(DEFAULT_CONFIG_TEMPLATE, encoding="utf-8")
    console.print(f"[green]Created config file at:[/green] {config_path}")
