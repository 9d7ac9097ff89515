"""Fallback-aware encoding of a single image.

The pipeline decodes the source, renders it onto a surface, picks the
best format the host supports, encodes, and verifies the encoder really
produced that format. A failed non-baseline attempt gets one retry as
JPEG. Every per-item failure comes back as an :class:`EncodeFailure`
value; nothing is raised to the caller.
"""

from dataclasses import dataclass
from typing import Any

from imgpress.exceptions import (
    DecodeError,
    EncodeError,
    FallbackExhaustedError,
    ImageProcessingError,
    SurfaceError,
    VerificationError,
)
from imgpress.formats import OutputFormat, attempt_order, best_fallback, derive_output_filename
from imgpress.image.capabilities import CapabilityProbe
from imgpress.image.host import Artifact, ImageHost
from imgpress.utils.logging import get_logger, item_context

log = get_logger(__name__)


@dataclass(frozen=True)
class FallbackDecision:
    """Why the produced format differs from the requested one."""

    requested_format: OutputFormat
    actual_format: OutputFormat
    reason: str


@dataclass(frozen=True)
class EncodeRequest:
    """Everything the pipeline needs to encode one item."""

    name: str
    data: bytes
    media_type: str | None
    format: OutputFormat
    quality: float
    item_id: str | None = None


@dataclass(frozen=True)
class EncodeSuccess:
    artifact: Artifact
    actual_format: OutputFormat
    filename: str
    fallback: FallbackDecision | None = None

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class EncodeFailure:
    reason: str
    error: ImageProcessingError
    fallback: FallbackDecision | None = None

    @property
    def ok(self) -> bool:
        return False

    @property
    def error_type(self) -> str:
        return type(self.error).__name__


EncodeResult = EncodeSuccess | EncodeFailure


class EncodingPipeline:
    """Encodes images through an :class:`ImageHost`, falling back as needed."""

    def __init__(self, host: ImageHost, probe: CapabilityProbe) -> None:
        self._host = host
        self._probe = probe

    @property
    def probe(self) -> CapabilityProbe:
        return self._probe

    async def encode(self, request: EncodeRequest) -> EncodeResult:
        """Encode one image.

        Args:
            request: Source bytes, requested format and quality

        Returns:
            EncodeSuccess with the verified artifact, or EncodeFailure
        """
        with item_context(item_id=request.item_id, item_name=request.name, fmt=request.format.value):
            image: Any = None
            surface: Any = None
            try:
                image = await self._decode(request)
                surface = await self._render(image)
                return await self._encode_with_fallback(request, surface)
            except ImageProcessingError as e:
                log.warning("Image processing failed", error=str(e), error_type=type(e).__name__)
                return EncodeFailure(reason=str(e), error=e)
            finally:
                if surface is not None:
                    self._host.release(surface)
                if image is not None:
                    self._host.release(image)

    async def _decode(self, request: EncodeRequest) -> Any:
        try:
            return await self._host.decode(request.data, request.media_type, request.name)
        except ImageProcessingError:
            raise
        except Exception as e:
            raise DecodeError(request.name, str(e) or type(e).__name__, e) from e

    async def _render(self, image: Any) -> Any:
        try:
            return await self._host.render(image)
        except ImageProcessingError:
            raise
        except Exception as e:
            raise SurfaceError(f"Could not draw image onto surface: {e}") from e

    async def _encode_once(self, surface: Any, fmt: OutputFormat, quality: float) -> Artifact:
        """Encode and verify the declared media type."""
        try:
            artifact = await self._host.encode(surface, fmt.media_type, quality)
        except ImageProcessingError:
            raise
        except Exception as e:
            raise EncodeError(fmt.media_type, str(e) or type(e).__name__, e) from e

        if artifact.media_type != fmt.media_type:
            raise VerificationError(fmt.media_type, artifact.media_type)
        return artifact

    async def _encode_with_fallback(self, request: EncodeRequest, surface: Any) -> EncodeResult:
        support = await self._probe.detect_support()
        requested = request.format
        selected = best_fallback(requested, support.is_supported)

        decision: FallbackDecision | None = None
        if selected != requested:
            decision = FallbackDecision(
                requested_format=requested,
                actual_format=selected,
                reason=f"{requested} unsupported, using {selected}",
            )
            log.info("Using fallback format", actual=selected.value, reason=decision.reason)

        attempts = attempt_order(selected)
        errors: list[ImageProcessingError] = []

        for index, fmt in enumerate(attempts):
            if index > 0:
                decision = FallbackDecision(
                    requested_format=requested,
                    actual_format=fmt,
                    reason=f"{attempts[index - 1]} failed, using {fmt}",
                )
                log.warning("Retrying with baseline format", reason=decision.reason)

            try:
                artifact = await self._encode_once(surface, fmt, request.quality)
            except ImageProcessingError as e:
                log.debug("Encode attempt failed", attempt=fmt.value, error=str(e))
                errors.append(e)
                continue

            filename = derive_output_filename(request.name, fmt)
            log.debug("Encoded", actual=fmt.value, size=artifact.size, filename=filename)
            return EncodeSuccess(
                artifact=artifact,
                actual_format=fmt,
                filename=filename,
                fallback=decision,
            )

        error: ImageProcessingError
        if len(errors) == 1:
            error = errors[0]
        else:
            error = FallbackExhaustedError(request.name, errors)

        log.warning("Encoding failed", error=str(error), attempts=len(errors))
        return EncodeFailure(reason=str(error), error=error, fallback=decision)
