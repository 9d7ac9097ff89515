"""Revocable handles for artifacts held by a batch.

Every artifact a batch keeps alive (original upload, processed output) is
registered here and addressed through an :class:`ArtifactHandle`. Releasing
a handle is idempotent, and the registry counts acquisitions and
revocations so leaks show up as ``live_count != 0`` after teardown.
"""

import uuid
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from imgpress.exceptions import HandleError
from imgpress.utils.logging import get_logger

if TYPE_CHECKING:
    from imgpress.image.host import Artifact

log = get_logger(__name__)

HANDLE_SCHEME = "artifact"


@dataclass(eq=False)
class ArtifactHandle:
    """A live reference to an artifact registered in a :class:`HandleRegistry`."""

    key: str
    artifact: "Artifact"
    _registry: "HandleRegistry" = field(repr=False)

    @property
    def url(self) -> str:
        return f"{HANDLE_SCHEME}://{self.key}"

    @property
    def size(self) -> int:
        return self.artifact.size

    @property
    def data(self) -> bytes:
        return self.artifact.data

    @property
    def media_type(self) -> str:
        return self.artifact.media_type

    @property
    def released(self) -> bool:
        return not self._registry.is_live(self.key)

    def release(self) -> bool:
        """Revoke this handle. Returns False if it was already released."""
        return self._registry.revoke(self)

    def __enter__(self) -> "ArtifactHandle":
        return self

    def __exit__(self, *exc: object) -> None:
        self.release()


class HandleRegistry:
    """Allocates and revokes artifact handles."""

    def __init__(self, key_factory: Callable[[], str] | None = None) -> None:
        self._key_factory = key_factory or (lambda: uuid.uuid4().hex)
        self._live: dict[str, ArtifactHandle] = {}
        self._acquired = 0
        self._revoked = 0

    def acquire(self, artifact: "Artifact") -> ArtifactHandle:
        key = self._key_factory()
        while key in self._live:
            key = self._key_factory()

        handle = ArtifactHandle(key=key, artifact=artifact, _registry=self)
        self._live[key] = handle
        self._acquired += 1
        log.debug("Handle acquired", key=key, size=artifact.size)
        return handle

    def revoke(self, handle: "ArtifactHandle | str") -> bool:
        """Revoke a handle (or its key).

        Returns:
            True if the handle was live, False if unknown or already revoked
        """
        key = handle if isinstance(handle, str) else handle.key
        if self._live.pop(key, None) is None:
            return False
        self._revoked += 1
        log.debug("Handle revoked", key=key)
        return True

    def resolve(self, key: str) -> "Artifact":
        """Look up the artifact behind a live handle key.

        Raises:
            HandleError: If the key is unknown or revoked
        """
        if key.startswith(f"{HANDLE_SCHEME}://"):
            key = key[len(HANDLE_SCHEME) + 3 :]
        handle = self._live.get(key)
        if handle is None:
            raise HandleError(key)
        return handle.artifact

    def is_live(self, key: str) -> bool:
        return key in self._live

    @contextmanager
    def scoped(self, artifact: "Artifact") -> Iterator[ArtifactHandle]:
        """Acquire a handle that is revoked when the block exits."""
        handle = self.acquire(artifact)
        try:
            yield handle
        finally:
            self.revoke(handle)

    def revoke_all(self) -> int:
        """Revoke every live handle. Returns how many were revoked."""
        keys = list(self._live)
        for key in keys:
            self.revoke(key)
        return len(keys)

    @property
    def live_count(self) -> int:
        return len(self._live)

    @property
    def acquired_count(self) -> int:
        return self._acquired

    @property
    def revoked_count(self) -> int:
        return self._revoked

    @property
    def live_bytes(self) -> int:
        return sum(handle.size for handle in self._live.values())
