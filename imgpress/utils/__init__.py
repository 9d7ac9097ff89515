"""Utility module for imgpress."""

from imgpress.utils.concurrency import ConcurrencyLimiter, run_limited
from imgpress.utils.fs import (
    atomic_write,
    ensure_directory,
    expand_inputs,
    format_savings,
    format_size,
    get_unique_path,
    is_image_path,
    safe_filename,
)

__all__ = [
    # Concurrency
    "ConcurrencyLimiter",
    "run_limited",
    # File system
    "ensure_directory",
    "safe_filename",
    "get_unique_path",
    "atomic_write",
    "format_size",
    "format_savings",
    "is_image_path",
    "expand_inputs",
]
