"""Ordered batch of work items processed with bounded concurrency.

The coordinator owns the item collection. Each operation fans items out to
the :class:`EncodingPipeline` through a :class:`ConcurrencyLimiter` and
writes every result back into the item it belongs to. Artifact handles are
released as soon as they are superseded or their item is removed.
"""

import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Self

from imgpress.config.constants import DEFAULT_CONCURRENCY, DEFAULT_QUALITY
from imgpress.core.pipeline import EncodeRequest, EncodeResult, EncodeSuccess, EncodingPipeline
from imgpress.core.state import Failed, SourceImage, Succeeded, WorkItem
from imgpress.formats import OutputFormat
from imgpress.image.handles import HandleRegistry
from imgpress.utils.concurrency import ConcurrencyLimiter
from imgpress.utils.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class ExportEntry:
    """One succeeded item, ready to be written or archived."""

    filename: str
    data: bytes


@dataclass(frozen=True)
class BatchSummary:
    """Totals over the current collection."""

    total: int
    succeeded: int
    failed: int
    pending: int
    fallbacks: int
    original_bytes: int
    processed_bytes: int

    @property
    def saved_bytes(self) -> int:
        return self.original_bytes - self.processed_bytes


class BatchCoordinator:
    """Owns the ordered collection of :class:`WorkItem` objects.

    Only one of :meth:`submit`, :meth:`reprocess_all` and
    :meth:`reprocess_failed_only` runs at a time. A call made while another
    is in flight is ignored and returns an empty list.
    """

    def __init__(
        self,
        pipeline: EncodingPipeline,
        registry: HandleRegistry | None = None,
        concurrency: int = DEFAULT_CONCURRENCY,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._pipeline = pipeline
        self._registry = registry or HandleRegistry()
        self._limiter: ConcurrencyLimiter[WorkItem, EncodeResult | None] = ConcurrencyLimiter(concurrency)
        self._id_factory = id_factory or (lambda: uuid.uuid4().hex)
        self._items: list[WorkItem] = []
        self._busy = False

    @property
    def registry(self) -> HandleRegistry:
        return self._registry

    @property
    def limiter(self) -> ConcurrencyLimiter[WorkItem, EncodeResult | None]:
        return self._limiter

    @property
    def items(self) -> tuple[WorkItem, ...]:
        return tuple(self._items)

    @property
    def is_busy(self) -> bool:
        return self._busy

    def get(self, item_id: str) -> WorkItem | None:
        for item in self._items:
            if item.id == item_id:
                return item
        return None

    def __len__(self) -> int:
        return len(self._items)

    # ------------------------------------------------------------------
    # Batch operations
    # ------------------------------------------------------------------

    async def submit(
        self,
        sources: Iterable[SourceImage],
        fmt: OutputFormat | str,
        quality: float = DEFAULT_QUALITY,
    ) -> list[WorkItem]:
        """Accept ``sources`` as pending items and process them.

        Returns:
            The newly created items, in submission order
        """
        if self._busy:
            return self._reject("submit")

        self._busy = True
        try:
            output_format = OutputFormat.parse(fmt)
            new_items = [self._accept(source) for source in sources]
            self._items.extend(new_items)
            log.info("Images accepted", count=len(new_items), target=output_format.value)

            await self._process(new_items, output_format, quality)
            return new_items
        finally:
            self._busy = False

    async def reprocess_all(
        self,
        fmt: OutputFormat | str,
        quality: float = DEFAULT_QUALITY,
    ) -> list[WorkItem]:
        """Re-encode every item in place (e.g. after a format or quality change)."""
        if self._busy:
            return self._reject("reprocess_all")
        if not self._items:
            return []

        self._busy = True
        try:
            output_format = OutputFormat.parse(fmt)
            targets = list(self._items)
            log.info("Reprocessing all images", count=len(targets), target=output_format.value)

            await self._process(targets, output_format, quality)
            return targets
        finally:
            self._busy = False

    async def reprocess_failed_only(
        self,
        fmt: OutputFormat | str,
        quality: float = DEFAULT_QUALITY,
    ) -> list[WorkItem]:
        """Re-encode only the items whose last attempt failed."""
        if self._busy:
            return self._reject("reprocess_failed_only")

        targets = [item for item in self._items if isinstance(item.state, Failed)]
        if not targets:
            return []

        self._busy = True
        try:
            output_format = OutputFormat.parse(fmt)
            log.info("Retrying failed images", count=len(targets), target=output_format.value)

            await self._process(targets, output_format, quality)
            return targets
        finally:
            self._busy = False

    def remove(self, item_id: str) -> bool:
        """Detach an item and release its handles.

        Returns:
            False if no item with that id is in the collection
        """
        item = self.get(item_id)
        if item is None:
            return False

        self._items.remove(item)
        self._release_item(item)
        log.debug("Item removed", item_id=item_id, item=item.name)
        return True

    def close(self) -> None:
        """Release every handle of every item and clear the collection."""
        for item in self._items:
            self._release_item(item)
        count = len(self._items)
        self._items.clear()
        if count:
            log.debug("Batch closed", released_items=count)

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *exc: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def export_entries(self) -> list[ExportEntry]:
        """Filename and bytes of every succeeded item, in collection order."""
        entries = []
        for item in self._items:
            if isinstance(item.state, Succeeded):
                entries.append(ExportEntry(filename=item.state.filename, data=item.state.handle.data))
        return entries

    def summary(self) -> BatchSummary:
        succeeded = failed = pending = fallbacks = 0
        original_bytes = processed_bytes = 0

        for item in self._items:
            original_bytes += item.original_size
            if isinstance(item.state, Succeeded):
                succeeded += 1
                processed_bytes += item.state.handle.size
            elif isinstance(item.state, Failed):
                failed += 1
            else:
                pending += 1
            if item.fallback is not None:
                fallbacks += 1

        return BatchSummary(
            total=len(self._items),
            succeeded=succeeded,
            failed=failed,
            pending=pending,
            fallbacks=fallbacks,
            original_bytes=original_bytes,
            processed_bytes=processed_bytes,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _reject(self, operation: str) -> list[WorkItem]:
        log.warning("Batch operation already in progress, ignoring", operation=operation)
        return []

    def _accept(self, source: SourceImage) -> WorkItem:
        handle = self._registry.acquire(source.to_artifact())
        return WorkItem(id=self._id_factory(), source=source, original_handle=handle)

    def _is_member(self, item: WorkItem) -> bool:
        return any(existing is item for existing in self._items)

    async def _process(self, targets: list[WorkItem], fmt: OutputFormat, quality: float) -> None:
        async def worker(item: WorkItem, index: int) -> EncodeResult | None:
            if not self._is_member(item):
                return None
            request = EncodeRequest(
                name=item.source.name,
                data=item.source.data,
                media_type=item.source.media_type,
                format=fmt,
                quality=quality,
                item_id=item.id,
            )
            result = await self._pipeline.encode(request)
            self._apply(item, result)
            return result

        await self._limiter.run(targets, worker)

        summary = self.summary()
        log.info(
            "Batch pass complete",
            processed=len(targets),
            succeeded=summary.succeeded,
            failed=summary.failed,
            peak_in_flight=self._limiter.peak_in_flight,
        )

    def _apply(self, item: WorkItem, result: EncodeResult) -> None:
        """Write ``result`` into ``item``, releasing the superseded artifact."""
        if not self._is_member(item):
            log.debug("Discarding result for removed item", item_id=item.id)
            return

        previous = item.processed_handle

        if isinstance(result, EncodeSuccess):
            handle = self._registry.acquire(result.artifact)
            new_state: Succeeded | Failed = Succeeded(
                handle=handle,
                actual_format=result.actual_format,
                filename=result.filename,
                fallback=result.fallback,
            )
        else:
            new_state = Failed(
                reason=result.reason,
                error_type=result.error_type,
                fallback=result.fallback,
            )

        if previous is not None:
            previous.release()
        item.state = new_state
        item.attempts += 1

    def _release_item(self, item: WorkItem) -> None:
        item.original_handle.release()
        handle = item.processed_handle
        if handle is not None:
            handle.release()
