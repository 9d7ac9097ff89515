"""Host encoder seam and its Pillow implementation.

The core never touches Pillow directly. It talks to an :class:`ImageHost`,
which decodes source bytes, draws them onto a surface and encodes that
surface into a requested media type. The encoder is allowed to hand back
something other than what was asked for; callers verify the declared
media type of every :class:`Artifact`.
"""

from __future__ import annotations

import asyncio
import io
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

import PIL
from PIL import Image, ImageOps

from imgpress.exceptions import DecodeError, EncodeError, SurfaceError
from imgpress.formats import LOSSLESS_FORMATS, OutputFormat
from imgpress.utils.logging import get_logger

log = get_logger(__name__)

UNKNOWN_MEDIA_TYPE = "application/octet-stream"

# Background used when flattening alpha for formats without transparency
FLATTEN_BACKGROUND = (255, 255, 255)


@dataclass(frozen=True)
class Artifact:
    """Encoded (or original) image bytes with their declared media type."""

    data: bytes
    media_type: str

    @property
    def size(self) -> int:
        return len(self.data)


@runtime_checkable
class ImageHost(Protocol):
    """Asynchronous image decoder/encoder provided by the host environment."""

    name: str
    version: str

    async def decode(self, data: bytes, media_type: str | None = None, name: str = "image") -> Any:
        """Decode ``data`` into an image; raises DecodeError."""
        ...

    async def render(self, image: Any) -> Any:
        """Draw ``image`` onto a fresh surface at natural size; raises SurfaceError."""
        ...

    async def create_probe_surface(self) -> Any:
        """Return a 1x1 surface holding one opaque white pixel."""
        ...

    async def encode(self, surface: Any, media_type: str, quality: float) -> Artifact:
        """Encode ``surface``; raises EncodeError."""
        ...

    def release(self, obj: Any) -> None:
        """Discard a decoded image or surface. Safe to call more than once."""
        ...


def _pillow_format(media_type: str) -> str:
    """Map ``image/webp`` to Pillow's ``WEBP`` save format name."""
    subtype = media_type.split("/", 1)[-1].strip().lower()
    if subtype == "jpg":
        subtype = "jpeg"
    return subtype.upper()


def _identify_media_type(data: bytes) -> str:
    """Re-identify encoded bytes so a substituted format is visible."""
    try:
        with Image.open(io.BytesIO(data)) as check:
            return Image.MIME.get(check.format or "", UNKNOWN_MEDIA_TYPE)
    except Exception:
        return UNKNOWN_MEDIA_TYPE


class PillowImageHost:
    """:class:`ImageHost` backed by Pillow.

    Pillow calls are blocking and CPU-bound, so each one runs in a worker
    thread via ``asyncio.to_thread``.
    """

    name = "Pillow"
    version = PIL.__version__

    async def decode(self, data: bytes, media_type: str | None = None, name: str = "image") -> Image.Image:
        return await asyncio.to_thread(self._decode_sync, data, name)

    def _decode_sync(self, data: bytes, name: str) -> Image.Image:
        try:
            img = Image.open(io.BytesIO(data))
            # Multi-frame sources contribute their first frame only
            if getattr(img, "n_frames", 1) > 1:
                img.seek(0)
            img.load()
            # Upright pixels; the orientation tag does not survive re-encoding
            ImageOps.exif_transpose(img, in_place=True)
        except Exception as e:
            raise DecodeError(name, str(e) or type(e).__name__, e) from e

        log.debug("Image decoded", source_format=img.format, mode=img.mode, size=img.size)
        return img

    async def render(self, image: Image.Image) -> Image.Image:
        return await asyncio.to_thread(self._render_sync, image)

    def _render_sync(self, image: Image.Image) -> Image.Image:
        width, height = image.size
        if width <= 0 or height <= 0:
            raise SurfaceError(f"Cannot create a {width}x{height} surface")

        try:
            surface = Image.new("RGBA", (width, height), (0, 0, 0, 0))
            rgba = image if image.mode == "RGBA" else image.convert("RGBA")
            surface.alpha_composite(rgba)
            if rgba is not image:
                rgba.close()
        except Exception as e:
            raise SurfaceError(f"Could not draw image onto surface: {e}") from e

        return surface

    async def create_probe_surface(self) -> Image.Image:
        return Image.new("RGBA", (1, 1), (255, 255, 255, 255))

    async def encode(self, surface: Image.Image, media_type: str, quality: float) -> Artifact:
        return await asyncio.to_thread(self._encode_sync, surface, media_type, quality)

    def _encode_sync(self, surface: Image.Image, media_type: str, quality: float) -> Artifact:
        pil_format = _pillow_format(media_type)
        img = surface
        save_kwargs: dict[str, Any] = {}

        try:
            fmt = OutputFormat.parse(media_type)
        except ValueError:
            fmt = None

        if fmt in LOSSLESS_FORMATS:
            save_kwargs["optimize"] = True
        else:
            save_kwargs["quality"] = max(0, min(100, round(quality * 100)))

        if pil_format == "JPEG" and img.mode != "RGB":
            background = Image.new("RGB", img.size, FLATTEN_BACKGROUND)
            if img.mode == "RGBA":
                background.paste(img, mask=img.split()[3])
            else:
                background.paste(img.convert("RGB"))
            img = background

        buffer = io.BytesIO()
        try:
            img.save(buffer, format=pil_format, **save_kwargs)
        except Exception as e:
            raise EncodeError(media_type, str(e) or type(e).__name__, e) from e
        finally:
            if img is not surface:
                img.close()

        data = buffer.getvalue()
        return Artifact(data=data, media_type=_identify_media_type(data))

    def release(self, obj: Any) -> None:
        if isinstance(obj, Image.Image):
            obj.close()
