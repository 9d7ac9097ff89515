"""Pytest configuration and fixtures."""

import asyncio
import io
import os
from dataclasses import dataclass, field

import pytest

from imgpress.core.pipeline import EncodingPipeline
from imgpress.core.state import SourceImage
from imgpress.exceptions import DecodeError, EncodeError, SurfaceError
from imgpress.image.capabilities import CapabilityProbe
from imgpress.image.host import Artifact

UNDECODABLE = b"not an image"
UNRENDERABLE = b"no surface"
PROBE_NAME = "__probe__"


@dataclass(eq=False)
class FakeImage:
    name: str
    data: bytes


@dataclass(eq=False)
class FakeSurface:
    name: str


@dataclass
class FakeImageHost:
    """In-memory stand-in for an image encoder.

    ``supported`` lists the subtypes the encoder really produces; any other
    request comes back as PNG, the way a browser canvas silently substitutes.
    For item encodes, ``mismatch`` forces the declared media type for a
    requested one (only for the names in ``mismatch_names`` when given) and
    ``failing`` makes encode raise; ``probe_failing`` does
    the same for probe encodes. ``delays`` slows decoding per name.
    Source bytes equal to ``UNDECODABLE`` or ``UNRENDERABLE`` fail the
    matching stage.
    """

    supported: set[str] = field(default_factory=lambda: {"jpeg", "png", "webp", "avif"})
    mismatch: dict[str, str] = field(default_factory=dict)
    mismatch_names: set[str] | None = None
    failing: set[str] = field(default_factory=set)
    probe_failing: set[str] = field(default_factory=set)
    delays: dict[str, float] = field(default_factory=dict)
    probe_error: Exception | None = None

    name: str = "fake"
    version: str = "1.0"

    decode_calls: list[str] = field(default_factory=list)
    encode_calls: list[tuple[str, str, float]] = field(default_factory=list)
    probe_surfaces: int = 0
    live: set[int] = field(default_factory=set)
    in_flight: int = 0
    peak_in_flight: int = 0

    async def decode(self, data: bytes, media_type: str | None = None, name: str = "image") -> FakeImage:
        self.decode_calls.append(name)
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(name, 0))
        finally:
            self.in_flight -= 1
        if data == UNDECODABLE:
            raise DecodeError(name, "unrecognized image data")
        image = FakeImage(name=name, data=data)
        self.live.add(id(image))
        return image

    async def render(self, image: FakeImage) -> FakeSurface:
        await asyncio.sleep(0)
        if image.data == UNRENDERABLE:
            raise SurfaceError("surface unavailable")
        surface = FakeSurface(name=image.name)
        self.live.add(id(surface))
        return surface

    async def create_probe_surface(self) -> FakeSurface:
        await asyncio.sleep(0)
        if self.probe_error is not None:
            raise self.probe_error
        self.probe_surfaces += 1
        surface = FakeSurface(name=PROBE_NAME)
        self.live.add(id(surface))
        return surface

    async def encode(self, surface: FakeSurface, media_type: str, quality: float) -> Artifact:
        self.encode_calls.append((surface.name, media_type, quality))
        await asyncio.sleep(0)
        is_probe = surface.name == PROBE_NAME
        if media_type in (self.probe_failing if is_probe else self.failing):
            raise EncodeError(media_type, "encoder crashed")

        subtype = media_type.split("/", 1)[1]
        mismatched = self.mismatch_names is None or surface.name in self.mismatch_names
        if not is_probe and mismatched and media_type in self.mismatch:
            declared = self.mismatch[media_type]
        elif subtype in self.supported:
            declared = media_type
        else:
            declared = "image/png"

        payload = f"{declared}|{surface.name}|{quality:.2f}".encode()
        return Artifact(data=payload, media_type=declared)

    def release(self, obj: object) -> None:
        self.live.discard(id(obj))

    def item_encodes(self) -> list[tuple[str, str, float]]:
        """Encode calls made for real items (probe encodes excluded)."""
        return [call for call in self.encode_calls if call[0] != PROBE_NAME]

    def probe_encodes(self) -> list[str]:
        return [media_type for name, media_type, _ in self.encode_calls if name == PROBE_NAME]


@pytest.fixture
def make_host():
    """Factory for configured fake hosts."""
    return FakeImageHost


@pytest.fixture
def fake_host() -> FakeImageHost:
    """Host whose encoder supports every format."""
    return FakeImageHost()


@pytest.fixture
def probe(fake_host: FakeImageHost) -> CapabilityProbe:
    return CapabilityProbe(fake_host)


@pytest.fixture
def pipeline(fake_host: FakeImageHost, probe: CapabilityProbe) -> EncodingPipeline:
    return EncodingPipeline(fake_host, probe)


@pytest.fixture
def make_source():
    """Factory for in-memory source images."""

    def _make(
        name: str = "photo.png",
        data: bytes = b"pixels",
        media_type: str | None = "image/png",
    ) -> SourceImage:
        return SourceImage(name=name, data=data, media_type=media_type)

    return _make


@pytest.fixture
def png_bytes() -> bytes:
    """A real 4x3 RGBA PNG with one transparent pixel."""
    from PIL import Image

    img = Image.new("RGBA", (4, 3), (200, 30, 30, 255))
    img.putpixel((0, 0), (0, 0, 0, 0))
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def isolated_settings(tmp_path, monkeypatch):
    """Run in an isolated directory without imgpress.yaml or IMGPRESS_ variables."""
    monkeypatch.chdir(tmp_path)
    for key in list(os.environ):
        if key.startswith("IMGPRESS_"):
            monkeypatch.delenv(key, raising=False)

    from imgpress.config.settings import get_settings

    get_settings.cache_clear()
    yield tmp_path
    get_settings.cache_clear()
