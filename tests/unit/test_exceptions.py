"""Tests for exceptions module."""

from imgpress.exceptions import (
    ConfigurationError,
    DecodeError,
    EncodeError,
    FallbackExhaustedError,
    HandleError,
    ImageProcessingError,
    ImgpressError,
    SurfaceError,
    VerificationError,
)


class TestExceptions:
    """Tests for custom exceptions."""

    def test_imgpress_error(self):
        """Test base ImgpressError."""
        error = ImgpressError("Test error")
        assert str(error) == "Test error"

    def test_decode_error(self):
        """Test DecodeError names the input."""
        cause = ValueError("bad header")
        error = DecodeError("cat.png", "bad header", cause=cause)

        assert "cat.png" in str(error)
        assert "bad header" in str(error)
        assert error.name == "cat.png"
        assert error.cause is cause

    def test_encode_error(self):
        """Test EncodeError carries the media type."""
        error = EncodeError("image/avif", "no encoder")

        assert error.media_type == "image/avif"
        assert "image/avif" in str(error)
        assert error.cause is None

    def test_verification_error(self):
        """Test VerificationError reports both media types."""
        error = VerificationError("image/webp", "image/png")

        assert isinstance(error, EncodeError)
        assert error.requested == "image/webp"
        assert error.actual == "image/png"
        assert "expected image/webp" in str(error)
        assert "image/png" in str(error)

    def test_fallback_exhausted_error(self):
        """Test FallbackExhaustedError keeps every attempt and reports the last."""
        errors: list[ImageProcessingError] = [
            EncodeError("image/webp", "crashed"),
            VerificationError("image/jpeg", "image/png"),
        ]
        error = FallbackExhaustedError("cat.png", errors)

        assert "All encoding attempts failed for cat.png" in str(error)
        assert "expected image/jpeg" in str(error)
        assert len(error.errors) == 2

    def test_handle_error(self):
        """Test HandleError carries the key."""
        error = HandleError("abc123")

        assert error.key == "abc123"
        assert "abc123" in str(error)

    def test_exception_hierarchy(self):
        """Test exception inheritance."""
        assert issubclass(ImageProcessingError, ImgpressError)
        assert issubclass(DecodeError, ImageProcessingError)
        assert issubclass(SurfaceError, ImageProcessingError)
        assert issubclass(EncodeError, ImageProcessingError)
        assert issubclass(VerificationError, EncodeError)
        assert issubclass(FallbackExhaustedError, ImageProcessingError)
        assert issubclass(HandleError, ImgpressError)
        assert issubclass(ConfigurationError, ImgpressError)
