"""File system helpers for writing converted images."""

import os
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Any

from imgpress.config.constants import INPUT_EXTENSIONS


def ensure_directory(path: Path) -> Path:
    """Create ``path`` (and parents) if missing and return it."""
    path.mkdir(parents=True, exist_ok=True)
    return path


_UNSAFE_CHARS = {
    "/": "_",
    "\\": "_",
    ":": "_",
    "*": "_",
    "?": "_",
    '"': "_",
    "<": "_",
    ">": "_",
    "|": "_",
    "\0": "",
}


def safe_filename(filename: str, max_length: int = 255) -> str:
    """Make ``filename`` usable on common file systems.

    Path separators and reserved characters become underscores, leading and
    trailing dots/spaces are stripped, and over-long names are shortened while
    keeping the extension.

    Args:
        filename: Candidate file name
        max_length: Maximum length of the result

    Returns:
        Sanitized file name, ``"image"`` if nothing usable remains
    """
    result = filename
    for old, new in _UNSAFE_CHARS.items():
        result = result.replace(old, new)

    result = result.strip(". ")
    if not result:
        return "image"

    if len(result) > max_length:
        suffix = Path(result).suffix
        stem = result[: len(result) - len(suffix)]
        result = stem[: max_length - len(suffix)] + suffix

    return result


def get_unique_path(path: Path) -> Path:
    """Return ``path`` or the first ``stem_N.suffix`` sibling that does not exist."""
    if not path.exists():
        return path

    stem = path.stem
    suffix = path.suffix
    parent = path.parent

    counter = 1
    while True:
        candidate = parent / f"{stem}_{counter}{suffix}"
        if not candidate.exists():
            return candidate
        counter += 1


@contextmanager
def atomic_write(
    file_path: Path,
    mode: str = "wb",
    encoding: str | None = "utf-8",
) -> Iterator[IO[Any]]:
    """Write to a temp file next to ``file_path`` and move it into place.

    The target is either left untouched or fully replaced; a failure inside
    the block removes the temp file and re-raises.

    Args:
        file_path: Target file path
        mode: File mode ('w' or 'wb')
        encoding: Text encoding (ignored for binary mode)

    Yields:
        Open file handle on the temp file
    """
    file_path.parent.mkdir(parents=True, exist_ok=True)

    temp_fd, temp_name = tempfile.mkstemp(
        dir=file_path.parent,
        prefix=f".{file_path.name}.",
    )
    temp_path = Path(temp_name)

    try:
        os.close(temp_fd)

        if "b" in mode:
            with open(temp_path, mode) as f:
                yield f
        else:
            with open(temp_path, mode, encoding=encoding) as f:
                yield f

        temp_path.replace(file_path)

    except BaseException:
        if temp_path.exists():
            temp_path.unlink()
        raise


def format_size(size: int | float) -> str:
    """Format a byte count as a human-readable string (``1.5 KB``)."""
    size_f = float(size)
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if size_f < 1024:
            return f"{size_f:.1f} {unit}"
        size_f /= 1024
    return f"{size_f:.1f} PB"


def format_savings(original: int, processed: int) -> str:
    """Describe the size change from ``original`` to ``processed`` bytes."""
    if original <= 0:
        return "-"
    change = (processed - original) / original * 100
    return f"{change:+.1f}%"


def is_image_path(path: Path) -> bool:
    """Whether ``path`` has an extension accepted as input."""
    return path.suffix.lower() in INPUT_EXTENSIONS


def expand_inputs(paths: list[Path], recursive: bool = False) -> list[Path]:
    """Expand directories into the image files they contain.

    Files are kept in the order given; directory contents are sorted by name.
    Paths that do not exist are skipped.
    """
    result: list[Path] = []
    seen: set[Path] = set()

    def _add(candidate: Path) -> None:
        resolved = candidate.resolve()
        if resolved not in seen:
            seen.add(resolved)
            result.append(candidate)

    for path in paths:
        if path.is_dir():
            pattern = "**/*" if recursive else "*"
            for child in sorted(path.glob(pattern)):
                if child.is_file() and is_image_path(child):
                    _add(child)
        elif path.is_file():
            _add(path)

    return result
