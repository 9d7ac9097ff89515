"""Collaborators that consume a finished batch."""

from imgpress.services.archive import build_archive, unique_entry_names, write_archive
from imgpress.services.output import OutputExistsError, OutputWriter

__all__ = [
    "build_archive",
    "write_archive",
    "unique_entry_names",
    "OutputWriter",
    "OutputExistsError",
]
