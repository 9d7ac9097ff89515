"""Main CLI application using Typer."""

from typing import Annotated

import typer
from dotenv import load_dotenv
from rich.console import Console

from imgpress import __version__
from imgpress.cli.commands.config import config_app
from imgpress.cli.commands.convert import convert
from imgpress.cli.commands.formats import formats

# Load environment variables from .env file
load_dotenv()

app = typer.Typer(
    name="imgpress",
    help="Batch image conversion with automatic format fallback.",
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
    context_settings={"help_option_names": ["-h", "--help"]},
)

console = Console()

app.command(name="convert", help="Convert images to webp, jpeg, png or avif.")(convert)
app.command(name="formats", help="Show which output formats the encoder supports.")(formats)
app.add_typer(config_app, name="config")


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold blue]imgpress[/bold blue] version [green]{__version__}[/green]")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """imgpress - convert batches of images to compressed formats.

    Output formats the encoder cannot produce are replaced by the closest
    supported one, so every readable input yields a file.
    """
    pass


if __name__ == "__main__":
    app()
