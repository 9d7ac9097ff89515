"""Zip packaging of converted images."""

import io
import zipfile
from collections.abc import Iterable
from pathlib import Path, PurePath

from imgpress.config.constants import DEFAULT_ARCHIVE_COMPRESSION_LEVEL
from imgpress.core.batch import ExportEntry
from imgpress.utils.fs import atomic_write, safe_filename
from imgpress.utils.logging import get_logger

log = get_logger(__name__)


def unique_entry_names(filenames: Iterable[str]) -> list[str]:
    """Make archive entry names unique, keeping their order.

    The first occurrence keeps its name; later duplicates become
    ``stem_1.ext``, ``stem_2.ext`` and so on.

    Examples:
        >>> unique_entry_names(["a.webp", "a.webp", "b.jpg"])
        ['a.webp', 'a_1.webp', 'b.jpg']
    """
    used: set[str] = set()
    result: list[str] = []

    for filename in filenames:
        name = safe_filename(filename)
        candidate = name
        if candidate in used:
            path = PurePath(name)
            counter = 1
            while True:
                candidate = f"{path.stem}_{counter}{path.suffix}"
                if candidate not in used:
                    break
                counter += 1
        used.add(candidate)
        result.append(candidate)

    return result


def build_archive(
    entries: list[ExportEntry],
    compression_level: int = DEFAULT_ARCHIVE_COMPRESSION_LEVEL,
) -> bytes:
    """Pack ``entries`` into an in-memory zip.

    Args:
        entries: Converted images in the order they should appear
        compression_level: Deflate level (0-9)

    Returns:
        The zip file bytes
    """
    names = unique_entry_names(entry.filename for entry in entries)
    buffer = io.BytesIO()

    with zipfile.ZipFile(
        buffer,
        "w",
        compression=zipfile.ZIP_DEFLATED,
        compresslevel=compression_level,
    ) as archive:
        for name, entry in zip(names, entries, strict=True):
            archive.writestr(name, entry.data)

    data = buffer.getvalue()
    log.debug("Archive built", entries=len(entries), size=len(data))
    return data


def write_archive(
    entries: list[ExportEntry],
    path: Path,
    compression_level: int = DEFAULT_ARCHIVE_COMPRESSION_LEVEL,
) -> Path:
    """Build a zip of ``entries`` and write it atomically to ``path``."""
    data = build_archive(entries, compression_level)
    with atomic_write(path, "wb") as f:
        f.write(data)
    log.info("Archive written", path=str(path), entries=len(entries), size=len(data))
    return path
