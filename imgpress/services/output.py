"""Writes converted images to an output directory."""

from dataclasses import replace
from pathlib import Path
from typing import Literal

from imgpress.core.batch import ExportEntry
from imgpress.exceptions import ImgpressError
from imgpress.services.archive import unique_entry_names
from imgpress.utils.fs import ensure_directory, get_unique_path, safe_filename
from imgpress.utils.logging import get_logger

log = get_logger(__name__)

ConflictStrategy = Literal["skip", "overwrite", "rename"]


class OutputExistsError(ImgpressError):
    """Target file exists and the conflict strategy is ``skip``."""

    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(f"Output file already exists: {path}")


class OutputWriter:
    """Writes export entries to disk with a conflict strategy.

    Strategies:
        - "skip": leave the existing file alone and report it as skipped
        - "overwrite": replace the existing file
        - "rename": add a numeric suffix (``photo_1.webp``)
    """

    def __init__(self, output_dir: Path, on_conflict: ConflictStrategy = "rename") -> None:
        self.output_dir = output_dir
        self.on_conflict = on_conflict

    def resolve_conflict(self, output_path: Path) -> Path:
        """Resolve the target path for ``output_path``.

        Raises:
            OutputExistsError: If the file exists and the strategy is "skip"
        """
        if not output_path.exists():
            return output_path

        if self.on_conflict == "overwrite":
            return output_path
        if self.on_conflict == "skip":
            raise OutputExistsError(output_path)
        return get_unique_path(output_path)

    async def write(self, entry: ExportEntry) -> Path | None:
        """Write one entry. Returns None if it was skipped."""
        import anyio

        ensure_directory(self.output_dir)
        target = self.output_dir / safe_filename(entry.filename)

        try:
            target = self.resolve_conflict(target)
        except OutputExistsError:
            log.info("Output exists, skipping", path=str(target))
            return None

        async with await anyio.open_file(target, "wb") as f:
            await f.write(entry.data)

        log.debug("Output written", path=str(target), size=len(entry.data))
        return target

    async def write_all(self, entries: list[ExportEntry]) -> list[Path]:
        """Write every entry in order. Returns the paths actually written.

        Entries sharing a filename within the batch (``a.png`` and ``a.jpg``
        both becoming ``a.webp``) are renamed ``a_1.webp`` and so on before
        the conflict strategy is applied, so one never replaces another.
        """
        names = unique_entry_names(entry.filename for entry in entries)
        written: list[Path] = []
        for name, entry in zip(names, entries, strict=True):
            if name != entry.filename:
                entry = replace(entry, filename=name)
            path = await self.write(entry)
            if path is not None:
                written.append(path)

        if written:
            log.info("Outputs written", count=len(written), output_dir=str(self.output_dir))
        return written
