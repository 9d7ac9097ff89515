"""Image host, artifact handles and capability detection."""

from imgpress.image.capabilities import (
    CapabilityProbe,
    FormatFallbackInfo,
    FormatInfo,
    FormatSupport,
)
from imgpress.image.handles import ArtifactHandle, HandleRegistry
from imgpress.image.host import Artifact, ImageHost, PillowImageHost

__all__ = [
    "Artifact",
    "ImageHost",
    "PillowImageHost",
    "ArtifactHandle",
    "HandleRegistry",
    "CapabilityProbe",
    "FormatSupport",
    "FormatInfo",
    "FormatFallbackInfo",
]
