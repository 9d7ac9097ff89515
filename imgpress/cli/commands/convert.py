"""Convert command for batch image conversion."""

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from imgpress.cli.callbacks import load_settings, validate_format, validate_output_dir, validate_quality
from imgpress.config import ImgpressSettings
from imgpress.core.batch import BatchCoordinator, BatchSummary
from imgpress.core.pipeline import EncodingPipeline
from imgpress.core.state import Failed, SourceImage, WorkItem
from imgpress.formats import OutputFormat
from imgpress.image.capabilities import CapabilityProbe
from imgpress.image.host import PillowImageHost
from imgpress.services.archive import write_archive
from imgpress.services.output import OutputWriter
from imgpress.utils.fs import expand_inputs, format_savings, format_size
from imgpress.utils.logging import get_logger, setup_task_logging

console = Console()
log = get_logger(__name__)


@dataclass
class ItemRow:
    """Display snapshot of one item, taken before the batch releases its handles."""

    name: str
    status: str
    original_size: int
    artifact_size: int | None
    output_name: str | None
    fallback_reason: str | None
    error: str | None


@dataclass
class ConversionReport:
    rows: list[ItemRow]
    summary: BatchSummary
    written: list[Path] = field(default_factory=list)
    archive_path: Path | None = None


def convert(
    files: Annotated[
        list[Path],
        typer.Argument(
            help="Image files or directories to convert.",
            exists=True,
            file_okay=True,
            dir_okay=True,
            readable=True,
            resolve_path=True,
        ),
    ],
    output_format: Annotated[
        str | None,
        typer.Option(
            "--format",
            "-f",
            help="Output format: webp, jpeg, png, avif.",
            callback=validate_format,
        ),
    ] = None,
    quality: Annotated[
        float | None,
        typer.Option(
            "--quality",
            "-q",
            help="Quality for lossy formats, 0-1 (or 0-100).",
            callback=validate_quality,
        ),
    ] = None,
    concurrency: Annotated[
        int | None,
        typer.Option(
            "--concurrency",
            "-j",
            help="Maximum images encoded at once.",
            min=1,
        ),
    ] = None,
    output: Annotated[
        Path | None,
        typer.Option(
            "--output",
            "-o",
            help="Output directory for converted images.",
            file_okay=False,
            dir_okay=True,
            resolve_path=True,
            callback=validate_output_dir,
        ),
    ] = None,
    make_zip: Annotated[
        bool,
        typer.Option(
            "--zip",
            help="Also package the converted images into a zip archive.",
        ),
    ] = False,
    archive_name: Annotated[
        str | None,
        typer.Option(
            "--archive-name",
            help="File name of the zip archive (implies --zip).",
        ),
    ] = None,
    recursive: Annotated[
        bool,
        typer.Option(
            "--recursive",
            "-r",
            help="Search directories recursively.",
        ),
    ] = False,
    retries: Annotated[
        int,
        typer.Option(
            "--retries",
            help="Times to retry failed images.",
            min=0,
        ),
    ] = 0,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable verbose output.",
        ),
    ] = False,
    dry_run: Annotated[
        bool,
        typer.Option(
            "--dry-run",
            help="Show conversion plan without executing.",
        ),
    ] = False,
) -> None:
    """Convert images to a compressed output format.

    Unsupported formats fall back automatically (avif -> webp -> jpeg).

    Examples:
        imgpress convert photo.png
        imgpress convert ./photos -f avif -q 0.7 -o ./out
        imgpress convert *.png --zip --retries 1
    """
    settings = load_settings()

    task_id, log_path = setup_task_logging(
        log_dir=settings.log_dir,
        prefix="convert",
        verbose=verbose,
        level=settings.log_level,
    )
    if verbose:
        log.info("Logs will be saved to", log_file=str(log_path))
    log.info("Task Configuration", task_id=task_id, config=settings.model_dump())

    fmt = OutputFormat.parse(output_format or settings.output.format)
    effective_quality = settings.output.quality if quality is None else quality
    effective_concurrency = concurrency or settings.concurrency.limit
    output_dir = output or settings.get_output_dir()
    zip_name = archive_name or (settings.output.archive_name if make_zip else None)

    paths = expand_inputs(files, recursive=recursive)
    if not paths:
        console.print("[red]Error:[/red] No image files found.")
        raise typer.Exit(1)

    log.info(
        "Starting conversion",
        inputs=len(paths),
        target=fmt.value,
        quality=effective_quality,
        concurrency=effective_concurrency,
        output_dir=str(output_dir),
    )

    if dry_run:
        _show_dry_run(paths, fmt, effective_quality, effective_concurrency, output_dir, zip_name)
        return

    try:
        report = _execute_with_progress(
            paths=paths,
            fmt=fmt,
            quality=effective_quality,
            concurrency=effective_concurrency,
            output_dir=output_dir,
            zip_name=zip_name,
            retries=retries,
            settings=settings,
            verbose=verbose,
        )
    except KeyboardInterrupt:
        log.warning("Task Interrupted by KeyboardInterrupt")
        console.print("\n[yellow]Interrupted. Exiting...[/yellow]")
        raise typer.Exit(130) from None
    except Exception as e:
        log.error("Conversion failed", error=str(e), exc_info=True)
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from e

    _display_report(report)

    if report.summary.failed:
        log.error("Task Failed", failed=report.summary.failed)
        raise typer.Exit(1)
    log.info("Task Completed Successfully", succeeded=report.summary.succeeded)


def _show_dry_run(
    paths: list[Path],
    fmt: OutputFormat,
    quality: float,
    concurrency: int,
    output_dir: Path,
    zip_name: str | None,
) -> None:
    """Display the conversion plan without executing."""
    console.print("\n[bold blue]Conversion Plan (Dry Run)[/bold blue]\n")
    console.print(f"  [bold]Inputs:[/bold] {len(paths)} image(s)")
    for path in paths:
        console.print(f"    {path}")
    console.print(f"  [bold]Output Directory:[/bold] {output_dir}")
    console.print(f"  [bold]Format:[/bold] {fmt.value}")
    quality_note = " (ignored, lossless)" if fmt.lossless else ""
    console.print(f"  [bold]Quality:[/bold] {quality:.2f}{quality_note}")
    console.print(f"  [bold]Concurrency:[/bold] {concurrency}")
    if zip_name:
        console.print(f"  [bold]Archive:[/bold] {output_dir / zip_name}")
    console.print()


def _execute_with_progress(
    paths: list[Path],
    fmt: OutputFormat,
    quality: float,
    concurrency: int,
    output_dir: Path,
    zip_name: str | None,
    retries: int,
    settings: ImgpressSettings,
    verbose: bool = False,
) -> ConversionReport:
    """Run the conversion, behind a spinner unless verbose."""

    def run() -> ConversionReport:
        return asyncio.run(
            run_conversion(
                paths=paths,
                fmt=fmt,
                quality=quality,
                concurrency=concurrency,
                output_dir=output_dir,
                zip_name=zip_name,
                retries=retries,
                settings=settings,
            )
        )

    if verbose:
        return run()

    # Silence console logging while the spinner is up; the task log still records everything
    root_logger = logging.getLogger()
    console_handlers = [
        h
        for h in root_logger.handlers
        if isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
    ]
    original_levels = [(h, h.level) for h in console_handlers]
    for handler in console_handlers:
        handler.setLevel(logging.CRITICAL + 1)

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            progress.add_task(f"Converting {len(paths)} image(s)...", total=None)
            return run()
    finally:
        for handler, level in original_levels:
            handler.setLevel(level)


async def run_conversion(
    paths: list[Path],
    fmt: OutputFormat,
    quality: float,
    concurrency: int,
    output_dir: Path,
    zip_name: str | None,
    retries: int,
    settings: ImgpressSettings,
) -> ConversionReport:
    """Convert ``paths`` and write the results. Returns a display report."""
    host = PillowImageHost()
    probe = CapabilityProbe(host, quality=settings.probe.quality)
    pipeline = EncodingPipeline(host, probe)

    async with BatchCoordinator(pipeline, concurrency=concurrency) as batch:
        sources = [SourceImage.from_path(path) for path in paths]
        await batch.submit(sources, fmt, quality)

        for attempt in range(1, retries + 1):
            retried = await batch.reprocess_failed_only(fmt, quality)
            if not retried:
                break
            log.info("Retry pass finished", attempt=attempt, retried=len(retried))

        entries = batch.export_entries()
        writer = OutputWriter(output_dir, on_conflict=settings.output.on_conflict)
        written = await writer.write_all(entries)

        archive_path = None
        if zip_name and entries:
            archive_path = write_archive(
                entries,
                output_dir / zip_name,
                compression_level=settings.output.archive_compression_level,
            )

        return ConversionReport(
            rows=[_snapshot(item) for item in batch.items],
            summary=batch.summary(),
            written=written,
            archive_path=archive_path,
        )


def _snapshot(item: WorkItem) -> ItemRow:
    return ItemRow(
        name=item.name,
        status=item.status,
        original_size=item.original_size,
        artifact_size=item.artifact_size,
        output_name=item.result_filename,
        fallback_reason=item.fallback.reason if item.fallback else None,
        error=item.error if isinstance(item.state, Failed) else None,
    )


_STATUS_STYLES = {
    "succeeded": "[green]done[/green]",
    "failed": "[red]failed[/red]",
    "pending": "[yellow]pending[/yellow]",
}


def _display_report(report: ConversionReport) -> None:
    table = Table(show_header=True, header_style="bold")
    table.add_column("Image", style="cyan")
    table.add_column("Status")
    table.add_column("Original", justify="right")
    table.add_column("Output", justify="right")
    table.add_column("Change", justify="right")
    table.add_column("Result")

    for row in report.rows:
        if row.artifact_size is not None:
            output_size = format_size(row.artifact_size)
            change = format_savings(row.original_size, row.artifact_size)
        else:
            output_size = change = "-"
        table.add_row(
            row.name,
            _STATUS_STYLES.get(row.status, row.status),
            format_size(row.original_size),
            output_size,
            change,
            row.output_name or "",
        )

    console.print(table)

    fallbacks = [row for row in report.rows if row.fallback_reason]
    if fallbacks:
        console.print("\n[yellow]Format fallbacks:[/yellow]")
        for row in fallbacks:
            console.print(f"  {row.name}: {row.fallback_reason}")

    failures = [row for row in report.rows if row.error]
    if failures:
        console.print("\n[red]Failures:[/red]")
        for row in failures:
            console.print(f"  {escape(row.name)}: {escape(row.error)}")

    summary = report.summary
    console.print()
    console.print(
        f"[bold]{summary.succeeded}/{summary.total}[/bold] converted, "
        f"{format_size(summary.original_bytes)} -> {format_size(summary.processed_bytes)}"
    )
    if report.written:
        console.print(f"  Output: {report.written[0].parent}")
    if report.archive_path:
        console.print(f"  Archive: {report.archive_path}")
