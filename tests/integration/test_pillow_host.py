"""End-to-end conversion through the Pillow encoder."""

import io

import pytest
from PIL import Image, features

from imgpress.core.batch import BatchCoordinator
from imgpress.core.pipeline import EncodeRequest, EncodingPipeline
from imgpress.core.state import SourceImage
from imgpress.exceptions import DecodeError
from imgpress.formats import OutputFormat
from imgpress.image.capabilities import CapabilityProbe
from imgpress.image.host import ImageHost, PillowImageHost

pytestmark = pytest.mark.integration

requires_webp = pytest.mark.skipif(not features.check("webp"), reason="Pillow built without WebP")


def _open(data: bytes) -> Image.Image:
    return Image.open(io.BytesIO(data))


def _rotated_jpeg(width: int = 40, height: int = 20) -> bytes:
    """JPEG whose EXIF orientation says 'rotate 90 degrees clockwise'."""
    img = Image.new("RGB", (width, height), (30, 160, 30))
    exif = Image.Exif()
    exif[0x0112] = 6
    buffer = io.BytesIO()
    img.save(buffer, format="JPEG", exif=exif)
    return buffer.getvalue()


class TestPillowImageHost:
    def test_satisfies_protocol(self):
        assert isinstance(PillowImageHost(), ImageHost)

    @pytest.mark.asyncio
    async def test_decode_rejects_garbage(self):
        with pytest.raises(DecodeError):
            await PillowImageHost().decode(b"not an image", name="junk.png")

    @pytest.mark.asyncio
    async def test_decode_applies_exif_orientation(self):
        host = PillowImageHost()

        image = await host.decode(_rotated_jpeg(), name="phone.jpg")
        surface = await host.render(image)

        assert image.size == (20, 40)
        assert surface.size == (20, 40)

    @pytest.mark.asyncio
    async def test_render_keeps_natural_size(self, png_bytes):
        host = PillowImageHost()
        image = await host.decode(png_bytes)

        surface = await host.render(image)

        assert surface.size == (4, 3)
        assert surface.mode == "RGBA"
        assert surface.getpixel((0, 0))[3] == 0

    @pytest.mark.asyncio
    async def test_jpeg_flattens_alpha_onto_white(self):
        host = PillowImageHost()
        transparent = Image.new("RGBA", (8, 8), (0, 0, 0, 0))

        artifact = await host.encode(transparent, "image/jpeg", 0.9)

        assert artifact.media_type == "image/jpeg"
        with _open(artifact.data) as img:
            assert img.mode == "RGB"
            assert all(channel >= 250 for channel in img.getpixel((4, 4)))

    @pytest.mark.asyncio
    async def test_png_is_lossless(self, png_bytes):
        host = PillowImageHost()
        surface = await host.render(await host.decode(png_bytes))

        artifact = await host.encode(surface, "image/png", 0.1)

        assert artifact.media_type == "image/png"
        with _open(artifact.data) as img:
            assert img.convert("RGBA").tobytes() == surface.tobytes()

    @pytest.mark.asyncio
    async def test_lower_quality_is_smaller(self):
        host = PillowImageHost()
        noisy = Image.effect_noise((64, 64), 80).convert("RGBA")

        high = await host.encode(noisy, "image/jpeg", 0.95)
        low = await host.encode(noisy, "image/jpeg", 0.2)

        assert low.size < high.size

    @pytest.mark.asyncio
    async def test_probe_surface(self):
        surface = await PillowImageHost().create_probe_surface()

        assert surface.size == (1, 1)
        assert surface.getpixel((0, 0)) == (255, 255, 255, 255)


class TestPillowPipeline:
    @pytest.mark.asyncio
    async def test_rotated_photo_encoded_upright(self):
        host = PillowImageHost()
        pipeline = EncodingPipeline(host, CapabilityProbe(host))

        result = await pipeline.encode(
            EncodeRequest(
                name="phone.jpg",
                data=_rotated_jpeg(),
                media_type="image/jpeg",
                format=OutputFormat.PNG,
                quality=0.8,
            )
        )

        assert result.ok
        with _open(result.artifact.data) as img:
            assert img.size == (20, 40)
            assert 0x0112 not in img.getexif()

    @requires_webp
    @pytest.mark.asyncio
    async def test_webp_detected_and_encoded(self, png_bytes):
        host = PillowImageHost()
        probe = CapabilityProbe(host)
        pipeline = EncodingPipeline(host, probe)

        assert (await probe.detect_support()).webp is True

        result = await pipeline.encode(
            EncodeRequest(
                name="photo.png",
                data=png_bytes,
                media_type="image/png",
                format=OutputFormat.WEBP,
                quality=0.8,
            )
        )

        assert result.ok
        assert result.actual_format == OutputFormat.WEBP
        assert result.filename == "photo.webp"
        assert result.fallback is None
        with _open(result.artifact.data) as img:
            assert img.format == "WEBP"

    @pytest.mark.asyncio
    async def test_batch_with_broken_input(self, png_bytes):
        host = PillowImageHost()
        pipeline = EncodingPipeline(host, CapabilityProbe(host))

        async with BatchCoordinator(pipeline, concurrency=2) as batch:
            items = await batch.submit(
                [
                    SourceImage(name="a.png", data=png_bytes, media_type="image/png"),
                    SourceImage(name="broken.png", data=b"not an image", media_type="image/png"),
                ],
                OutputFormat.JPEG,
                0.8,
            )

            assert [item.status for item in items] == ["succeeded", "failed"]
            assert items[1].state.error_type == "DecodeError"

            entries = batch.export_entries()
            assert [entry.filename for entry in entries] == ["a.jpg"]
            assert entries[0].data[:2] == b"\xff\xd8"
            registry = batch.registry

        assert registry.live_count == 0
