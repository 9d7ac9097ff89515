"""Custom exceptions for imgpress."""


class ImgpressError(Exception):
    """Base exception class for imgpress."""

    pass


class ImageProcessingError(ImgpressError):
    """Error during image processing."""

    pass


class DecodeError(ImageProcessingError):
    """Source bytes are not a recognizable image."""

    def __init__(self, name: str, message: str, cause: Exception | None = None) -> None:
        self.name = name
        self.cause = cause
        super().__init__(f"Could not decode {name}: {message}")


class SurfaceError(ImageProcessingError):
    """A drawable rendering surface could not be obtained."""

    pass


class EncodeError(ImageProcessingError):
    """The host encoder rejected or failed an encode request."""

    def __init__(self, media_type: str, message: str, cause: Exception | None = None) -> None:
        self.media_type = media_type
        self.cause = cause
        super().__init__(f"Encoding to {media_type} failed: {message}")


class VerificationError(EncodeError):
    """The encoder returned an artifact of a different media type."""

    def __init__(self, requested: str, actual: str) -> None:
        self.requested = requested
        self.actual = actual
        super().__init__(requested, f"encoder returned {actual or 'unknown type'}, expected {requested}")


class FallbackExhaustedError(ImageProcessingError):
    """Every format in the attempt list failed, including the baseline."""

    def __init__(self, name: str, errors: list[ImageProcessingError]) -> None:
        self.name = name
        self.errors = errors
        deepest = errors[-1] if errors else None
        message = f"All encoding attempts failed for {name}"
        if deepest is not None:
            message += f": {deepest}"
        super().__init__(message)


class HandleError(ImgpressError):
    """An artifact handle is unknown or has already been revoked."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Artifact handle is not live: {key}")


class ConfigurationError(ImgpressError):
    """Configuration error."""

    pass
