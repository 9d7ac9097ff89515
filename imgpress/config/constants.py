"""Constants for imgpress."""

# Default paths
DEFAULT_OUTPUT_DIR = "output"
DEFAULT_LOG_DIR = ".logs"
DEFAULT_CONFIG_FILE = "imgpress.yaml"
DEFAULT_ARCHIVE_NAME = "images.zip"

# Input image extensions accepted by the CLI
INPUT_EXTENSIONS = {
    ".png",
    ".jpg",
    ".jpeg",
    ".gif",
    ".webp",
    ".bmp",
    ".tif",
    ".tiff",
    ".avif",
}

# Conversion defaults
DEFAULT_OUTPUT_FORMAT = "webp"
DEFAULT_QUALITY = 0.8  # 0..1, ignored for lossless output
DEFAULT_PROBE_QUALITY = 0.8

# Concurrency defaults
DEFAULT_CONCURRENCY = 4

# Archive settings
DEFAULT_ARCHIVE_COMPRESSION_LEVEL = 6  # zlib: 0-9
