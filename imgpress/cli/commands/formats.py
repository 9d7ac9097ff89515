"""Formats command: report which output formats the host can encode."""

import asyncio

from rich.console import Console
from rich.table import Table

from imgpress.cli.callbacks import load_settings
from imgpress.image.capabilities import CapabilityProbe, FormatInfo
from imgpress.image.host import PillowImageHost

console = Console()


async def detect_formats(probe: CapabilityProbe) -> list[FormatInfo]:
    return await probe.get_format_info_list()


def formats() -> None:
    """Probe the image encoder and show supported output formats."""
    settings = load_settings()
    probe = CapabilityProbe(PillowImageHost(), quality=settings.probe.quality)
    infos = asyncio.run(detect_formats(probe))

    table = Table(show_header=True, header_style="bold")
    table.add_column("Format", style="cyan")
    table.add_column("Label")
    table.add_column("Supported")
    table.add_column("Fallback")

    for info in infos:
        supported = "[green]yes[/green]" if info.supported else "[red]no[/red]"
        fallback = ""
        if info.fallback is not None:
            fallback = f"{info.fallback.format.value} ({info.fallback.reason})"
        table.add_row(info.format.value, info.label, supported, fallback)

    console.print("\n[bold blue]Output Formats[/bold blue]\n")
    console.print(table)

    host_info = probe.get_host_info()
    console.print(f"\n  Encoder: {host_info['host']} {host_info['version']}")
    console.print()
