"""Output format model and the fixed fallback chain.

Formats:
- WebP, AVIF: lossy, availability depends on the host encoder
- JPEG: lossy, always available (baseline)
- PNG: lossless, always available
"""

from collections.abc import Callable
from enum import Enum
from pathlib import PurePath


class OutputFormat(str, Enum):
    """Candidate output formats."""

    WEBP = "webp"
    JPEG = "jpeg"
    PNG = "png"
    AVIF = "avif"

    @property
    def media_type(self) -> str:
        """MIME type requested from the encoder."""
        return f"image/{self.value}"

    @property
    def extension(self) -> str:
        """Conventional file extension (without dot)."""
        return FORMAT_EXTENSIONS.get(self, self.value)

    @property
    def lossless(self) -> bool:
        """Whether the encoder ignores the quality parameter."""
        return self in LOSSLESS_FORMATS

    @classmethod
    def parse(cls, value: "str | OutputFormat") -> "OutputFormat":
        """Parse a format name, accepting ``jpg`` and media types.

        Raises:
            ValueError: If the name is not a known output format
        """
        if isinstance(value, OutputFormat):
            return value
        name = value.strip().lower()
        if name.startswith("image/"):
            name = name[len("image/") :]
        if name == "jpg":
            name = "jpeg"
        return cls(name)

    def __str__(self) -> str:
        return self.value


# The one format every host must encode; final fallback target
BASELINE_FORMAT = OutputFormat.JPEG

# Never probed, always reported as supported
GUARANTEED_FORMATS = frozenset({OutputFormat.JPEG, OutputFormat.PNG})

# Probed once per CapabilityProbe
PROBED_FORMATS = (OutputFormat.AVIF, OutputFormat.WEBP)

LOSSLESS_FORMATS = frozenset({OutputFormat.PNG})

FORMAT_EXTENSIONS = {
    OutputFormat.JPEG: "jpg",
}

# Substitutes tried in order when a format is unsupported, least lossy first.
# Every chain ends at BASELINE_FORMAT.
FALLBACK_CHAIN: dict[OutputFormat, tuple[OutputFormat, ...]] = {
    OutputFormat.AVIF: (OutputFormat.WEBP, OutputFormat.JPEG),
    OutputFormat.WEBP: (OutputFormat.JPEG,),
    OutputFormat.JPEG: (),
    OutputFormat.PNG: (),
}


def best_fallback(
    requested: OutputFormat,
    is_supported: Callable[[OutputFormat], bool],
) -> OutputFormat:
    """Pick the format to encode with for a requested format.

    Args:
        requested: Format the caller asked for
        is_supported: Predicate over the current capability snapshot

    Returns:
        ``requested`` if supported, else the first supported entry of its
        fallback chain, else the baseline format
    """
    if requested in GUARANTEED_FORMATS or is_supported(requested):
        return requested

    for candidate in FALLBACK_CHAIN.get(requested, ()):
        if candidate in GUARANTEED_FORMATS or is_supported(candidate):
            return candidate

    return BASELINE_FORMAT


def attempt_order(selected: OutputFormat) -> list[OutputFormat]:
    """Formats to try, in order, once ``selected`` has been chosen.

    A non-baseline format gets exactly one retry against the baseline.
    """
    if selected == BASELINE_FORMAT:
        return [selected]
    return [selected, BASELINE_FORMAT]


def derive_output_filename(original_name: str, fmt: OutputFormat) -> str:
    """Replace the trailing extension of ``original_name`` with the format's.

    Examples:
        >>> derive_output_filename("photo.png", OutputFormat.JPEG)
        'photo.jpg'
        >>> derive_output_filename("archive.tar.gz", OutputFormat.WEBP)
        'archive.tar.webp'
    """
    name = PurePath(original_name).name or original_name
    stem, dot, suffix = name.rpartition(".")
    if not dot or not suffix:
        stem = name
    return f"{stem}.{fmt.extension}"
