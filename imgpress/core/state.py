"""Work item model for a batch of images."""

import mimetypes
from dataclasses import dataclass, field
from pathlib import Path
from typing import ClassVar, Literal

from imgpress.core.pipeline import FallbackDecision
from imgpress.formats import OutputFormat
from imgpress.image.handles import ArtifactHandle
from imgpress.image.host import UNKNOWN_MEDIA_TYPE, Artifact

ItemStatus = Literal["pending", "succeeded", "failed"]


@dataclass(frozen=True)
class SourceImage:
    """One accepted input: its name, bytes and declared media type."""

    name: str
    data: bytes = field(repr=False)
    media_type: str | None = None
    declared_size: int | None = None

    @property
    def size(self) -> int:
        if self.declared_size is not None:
            return self.declared_size
        return len(self.data)

    @classmethod
    def from_path(cls, path: Path) -> "SourceImage":
        """Read ``path`` and guess its media type from the file name."""
        media_type, _ = mimetypes.guess_type(path.name)
        data = path.read_bytes()
        return cls(name=path.name, data=data, media_type=media_type, declared_size=len(data))

    def to_artifact(self) -> Artifact:
        return Artifact(data=self.data, media_type=self.media_type or UNKNOWN_MEDIA_TYPE)


@dataclass(frozen=True)
class Pending:
    """Accepted, no finished attempt yet."""

    status: ClassVar[ItemStatus] = "pending"


@dataclass(frozen=True)
class Succeeded:
    """Last attempt produced an artifact, reachable through ``handle``."""

    handle: ArtifactHandle
    actual_format: OutputFormat
    filename: str
    fallback: FallbackDecision | None = None

    status: ClassVar[ItemStatus] = "succeeded"


@dataclass(frozen=True)
class Failed:
    """Last attempt produced no artifact."""

    reason: str
    error_type: str
    fallback: FallbackDecision | None = None

    status: ClassVar[ItemStatus] = "failed"


ItemState = Pending | Succeeded | Failed


@dataclass(eq=False)
class WorkItem:
    """One image in the batch.

    ``state`` is replaced wholesale on every finished attempt, so an item
    can never carry both an error and a processed artifact.
    """

    id: str
    source: SourceImage
    original_handle: ArtifactHandle
    state: ItemState = field(default_factory=Pending)
    attempts: int = 0

    @property
    def name(self) -> str:
        return self.source.name

    @property
    def status(self) -> ItemStatus:
        return self.state.status

    @property
    def original_size(self) -> int:
        return self.source.size

    @property
    def processed_handle(self) -> ArtifactHandle | None:
        if isinstance(self.state, Succeeded):
            return self.state.handle
        return None

    @property
    def artifact_size(self) -> int | None:
        handle = self.processed_handle
        return handle.size if handle is not None else None

    @property
    def actual_format(self) -> OutputFormat | None:
        if isinstance(self.state, Succeeded):
            return self.state.actual_format
        return None

    @property
    def result_filename(self) -> str | None:
        if isinstance(self.state, Succeeded):
            return self.state.filename
        return None

    @property
    def error(self) -> str | None:
        if isinstance(self.state, Failed):
            return self.state.reason
        return None

    @property
    def fallback(self) -> FallbackDecision | None:
        if isinstance(self.state, (Succeeded, Failed)):
            return self.state.fallback
        return None
