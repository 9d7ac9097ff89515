"""CLI callback functions."""

from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape

from imgpress.config import ImgpressSettings, get_settings
from imgpress.exceptions import ConfigurationError
from imgpress.formats import OutputFormat

console = Console()


def validate_output_dir(value: Path | None) -> Path | None:
    """Reject an output path that exists but is not a directory."""
    if value is None:
        return None

    if value.exists() and not value.is_dir():
        raise typer.BadParameter(f"Output path exists but is not a directory: {value}")

    return value


def validate_format(value: str | None) -> str | None:
    """Normalize a format name (``jpg`` -> ``jpeg``)."""
    if value is None:
        return None

    try:
        return OutputFormat.parse(value).value
    except ValueError:
        options = ", ".join(fmt.value for fmt in OutputFormat)
        raise typer.BadParameter(f"Invalid format '{value}'. Options: {options}") from None


def validate_quality(value: float | None) -> float | None:
    """Accept quality as 0..1 or as a 0..100 percentage."""
    if value is None:
        return None

    if 1 < value <= 100:
        value = value / 100
    if not 0 <= value <= 1:
        raise typer.BadParameter(f"Quality must be between 0 and 1 (or 0-100), got {value}")

    return value


def load_settings() -> ImgpressSettings:
    """Load settings, exiting with status 1 on invalid configuration."""
    try:
        return get_settings()
    except ConfigurationError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from e
