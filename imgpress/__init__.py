"""imgpress - batch image conversion with runtime format detection and fallback."""

__version__ = "0.1.0"
