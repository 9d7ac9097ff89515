"""Runtime detection of which output formats the host encoder produces.

JPEG and PNG are taken as given. AVIF and WebP are probed once per
:class:`CapabilityProbe` by encoding a single white pixel and checking that
the encoder really returned the requested media type.
"""

import asyncio
from dataclasses import asdict, dataclass
from typing import Any

from imgpress.config.constants import DEFAULT_PROBE_QUALITY
from imgpress.formats import (
    PROBED_FORMATS,
    OutputFormat,
    best_fallback,
)
from imgpress.image.host import ImageHost
from imgpress.utils.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class FormatSupport:
    """Snapshot of encoder support, fixed once detected."""

    avif: bool
    webp: bool
    jpeg: bool = True
    png: bool = True

    def is_supported(self, fmt: OutputFormat | str) -> bool:
        return bool(getattr(self, OutputFormat.parse(fmt).value))

    def supported_formats(self) -> list[OutputFormat]:
        order = (OutputFormat.AVIF, OutputFormat.WEBP, OutputFormat.JPEG, OutputFormat.PNG)
        return [fmt for fmt in order if self.is_supported(fmt)]

    def to_dict(self) -> dict[str, bool]:
        return asdict(self)


@dataclass(frozen=True)
class FormatFallbackInfo:
    format: OutputFormat
    reason: str


@dataclass(frozen=True)
class FormatInfo:
    """One row of the format picker."""

    format: OutputFormat
    label: str
    supported: bool
    fallback: FormatFallbackInfo | None = None


FORMAT_LABELS = {
    OutputFormat.WEBP: "WebP (recommended)",
    OutputFormat.JPEG: "JPEG",
    OutputFormat.PNG: "PNG",
    OutputFormat.AVIF: "AVIF",
}


class CapabilityProbe:
    """Detects format support on an :class:`ImageHost`, once.

    Construct one per host and pass it to whoever needs it. Detection is
    single-flight: concurrent callers share the in-flight probe and every
    later call returns the cached snapshot.
    """

    def __init__(self, host: ImageHost, quality: float = DEFAULT_PROBE_QUALITY) -> None:
        self._host = host
        self._quality = quality
        self._support: FormatSupport | None = None
        self._lock: asyncio.Lock | None = None
        self.probe_runs = 0

    @property
    def host(self) -> ImageHost:
        return self._host

    @property
    def support(self) -> FormatSupport | None:
        """Cached snapshot, or None before :meth:`detect_support` completes."""
        return self._support

    def _get_lock(self) -> asyncio.Lock:
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    async def detect_support(self) -> FormatSupport:
        """Probe the host (first call only) and return the support snapshot."""
        if self._support is not None:
            return self._support

        async with self._get_lock():
            # Double-check after acquiring lock
            if self._support is not None:
                return self._support

            self.probe_runs += 1
            results = await asyncio.gather(*(self._probe(fmt) for fmt in PROBED_FORMATS))
            probed = dict(zip(PROBED_FORMATS, results, strict=True))

            self._support = FormatSupport(
                avif=probed[OutputFormat.AVIF],
                webp=probed[OutputFormat.WEBP],
            )
            log.info("Format support detected", host=self._host.name, **self._support.to_dict())

        return self._support

    async def _probe(self, fmt: OutputFormat) -> bool:
        """Encode one white pixel as ``fmt``; any failure means unsupported."""
        surface = None
        try:
            surface = await self._host.create_probe_surface()
            artifact = await self._host.encode(surface, fmt.media_type, self._quality)
            supported = artifact.media_type == fmt.media_type
            if not supported:
                log.debug(
                    "Encoder substituted format",
                    requested=fmt.media_type,
                    actual=artifact.media_type,
                )
            return supported
        except Exception as e:
            log.debug("Format probe failed", probed=fmt.value, error=str(e))
            return False
        finally:
            if surface is not None:
                self._host.release(surface)

    async def is_format_supported(self, fmt: OutputFormat | str) -> bool:
        support = await self.detect_support()
        return support.is_supported(fmt)

    async def get_best_fallback_format(self, requested: OutputFormat | str) -> OutputFormat:
        """Return ``requested`` if supported, else the best supported substitute."""
        support = await self.detect_support()
        return best_fallback(OutputFormat.parse(requested), support.is_supported)

    async def get_supported_formats(self) -> list[OutputFormat]:
        support = await self.detect_support()
        return support.supported_formats()

    async def get_format_info_list(self) -> list[FormatInfo]:
        """Describe every format for display, with substitutes for missing ones."""
        support = await self.detect_support()

        webp_fallback = None
        if not support.webp:
            webp_fallback = FormatFallbackInfo(
                format=OutputFormat.JPEG,
                reason="WebP not supported",
            )

        avif_fallback = None
        if not support.avif:
            avif_fallback = FormatFallbackInfo(
                format=OutputFormat.WEBP if support.webp else OutputFormat.JPEG,
                reason="AVIF not supported",
            )

        return [
            FormatInfo(
                format=OutputFormat.WEBP,
                label=FORMAT_LABELS[OutputFormat.WEBP],
                supported=support.webp,
                fallback=webp_fallback,
            ),
            FormatInfo(
                format=OutputFormat.JPEG,
                label=FORMAT_LABELS[OutputFormat.JPEG],
                supported=support.jpeg,
            ),
            FormatInfo(
                format=OutputFormat.PNG,
                label=FORMAT_LABELS[OutputFormat.PNG],
                supported=support.png,
            ),
            FormatInfo(
                format=OutputFormat.AVIF,
                label=FORMAT_LABELS[OutputFormat.AVIF],
                supported=support.avif,
                fallback=avif_fallback,
            ),
        ]

    def get_host_info(self) -> dict[str, Any]:
        """Host name and version, plus supported formats once detected."""
        info: dict[str, Any] = {
            "host": self._host.name,
            "version": self._host.version,
        }
        if self._support is not None:
            info["supported_formats"] = [fmt.value for fmt in self._support.supported_formats()]
        return info
