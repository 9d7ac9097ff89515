"""Logging configuration using structlog."""

import logging
import sys
import uuid
from collections.abc import Generator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from structlog.typing import EventDict, WrappedLogger

# Re-export BoundLogger for type hints in other modules
BoundLogger = structlog.stdlib.BoundLogger


# =============================================================================
# Item Context Infrastructure
# =============================================================================

# Context variables for per-item tracing (task-local via contextvars)
_item_id_var: ContextVar[str | None] = ContextVar("item_id", default=None)
_item_name_var: ContextVar[str | None] = ContextVar("item_name", default=None)
_format_var: ContextVar[str | None] = ContextVar("format", default=None)


def generate_trace_id() -> str:
    """Generate a short 8-character id for log correlation."""
    return str(uuid.uuid4())[:8]


def set_item_context(
    item_id: str | None = None,
    item_name: str | None = None,
    fmt: str | None = None,
) -> None:
    """Set item context variables for logging.

    These are injected into every log event by ``_inject_item_context``.

    Args:
        item_id: Work item identifier
        item_name: Original input name
        fmt: Requested output format
    """
    if item_id is not None:
        _item_id_var.set(item_id)
    if item_name is not None:
        _item_name_var.set(item_name)
    if fmt is not None:
        _format_var.set(fmt)


def clear_item_context() -> None:
    """Clear all item context variables."""
    _item_id_var.set(None)
    _item_name_var.set(None)
    _format_var.set(None)


def get_item_id() -> str | None:
    """Get the current item id from context."""
    return _item_id_var.get()


@contextmanager
def item_context(
    item_id: str | None = None,
    item_name: str | None = None,
    fmt: str | None = None,
) -> Generator[str, None, None]:
    """Context manager binding an item to every log event inside it.

    If no item id is given a short trace id is generated.

    Yields:
        The item id in effect

    Example:
        >>> with item_context(item_name="cat.png", fmt="webp"):
        ...     log.info("Encoding")  # includes item=cat.png format=webp
    """
    old_item_id = _item_id_var.get()
    old_name = _item_name_var.get()
    old_format = _format_var.get()

    new_item_id = item_id or generate_trace_id()
    set_item_context(item_id=new_item_id, item_name=item_name, fmt=fmt)

    try:
        yield new_item_id
    finally:
        _item_id_var.set(old_item_id)
        _item_name_var.set(old_name)
        _format_var.set(old_format)


def _inject_item_context(
    _logger: "WrappedLogger", _method_name: str, event_dict: "EventDict"
) -> "EventDict":
    """Inject item context variables that are set and not already present."""
    item_id = _item_id_var.get()
    if item_id and "item_id" not in event_dict:
        event_dict["item_id"] = item_id

    item_name = _item_name_var.get()
    if item_name and "item" not in event_dict:
        event_dict["item"] = item_name

    fmt = _format_var.get()
    if fmt and "format" not in event_dict:
        event_dict["format"] = fmt

    return event_dict


# =============================================================================
# Logging Configuration
# =============================================================================


class SafeStreamHandler(logging.StreamHandler):
    """A StreamHandler that handles encoding errors gracefully.

    On Windows, the console may use CP1252 encoding which cannot display
    every file name. Unencodable characters are replaced.
    """

    def emit(self, record: logging.LogRecord) -> None:
        """Emit a record, handling encoding errors gracefully."""
        try:
            msg = self.format(record)
            stream = self.stream
            try:
                stream.write(msg + self.terminator)
            except UnicodeEncodeError:
                safe_msg = msg.encode(stream.encoding or "utf-8", errors="replace").decode(
                    stream.encoding or "utf-8", errors="replace"
                )
                stream.write(safe_msg + self.terminator)
            self.flush()
        except RecursionError:
            raise
        except Exception:
            self.handleError(record)


# Noisy third-party loggers to suppress at DEBUG level
_NOISY_LOGGERS = [
    "PIL",
    "asyncio",
]


def _filter_event_dict(
    _logger: "WrappedLogger", _method_name: str, event_dict: "EventDict"
) -> "EventDict":
    """Replace image payloads and overly long strings with a short marker."""
    max_value_length = 500
    for key, value in list(event_dict.items()):
        if isinstance(value, (bytes, bytearray, memoryview)):
            event_dict[key] = f"[BINARY DATA: {len(value)} bytes]"
        elif isinstance(value, str) and len(value) > max_value_length:
            event_dict[key] = value[:max_value_length] + f"... [{len(value)} chars total]"
    return event_dict


# Keys that are handled specially by ConsoleRenderer (not user context)
_INTERNAL_KEYS = {"event", "level", "timestamp", "_record", "_from_structlog"}


def _add_separator(
    _logger: "WrappedLogger", _method_name: str, event_dict: "EventDict"
) -> "EventDict":
    """Add a visual separator between event message and context variables."""
    has_context = any(k not in _INTERNAL_KEYS for k in event_dict)

    if has_context and "event" in event_dict:
        event_dict["event"] = f"{event_dict['event']} |"

    return event_dict


def setup_logging(
    level: str = "INFO",
    log_file: str | None = None,
    json_format: bool = False,
    console_level: str | None = None,
    file_level: str | None = None,
) -> None:
    """Configure structlog for the application.

    Args:
        level: Root log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file path; rotated daily with 7-day retention
        json_format: If True, render JSON instead of console lines
        console_level: Optional override for console handler level
        file_level: Optional override for file handler level
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(log_level)

    for logger_name in _NOISY_LOGGERS:
        third_party_logger = logging.getLogger(logger_name)
        third_party_logger.setLevel(max(log_level, logging.WARNING))

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        _inject_item_context,
        _filter_event_dict,
        _add_separator,
    ]

    if json_format:
        final_processor: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        final_processor = structlog.dev.ConsoleRenderer(
            colors=True,
            exception_formatter=structlog.dev.plain_traceback,
            pad_event_to=0,
            pad_level=False,
            sort_keys=False,
        )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            final_processor,
        ],
    )

    console_handler = SafeStreamHandler(sys.stderr)
    c_level = getattr(logging, console_level.upper(), log_level) if console_level else log_level
    console_handler.setLevel(c_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        if json_format:
            file_renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
        else:
            file_renderer = structlog.dev.ConsoleRenderer(
                colors=False,
                exception_formatter=structlog.dev.plain_traceback,
                pad_event_to=0,
                pad_level=False,
                sort_keys=False,
            )
        file_formatter = structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                file_renderer,
            ],
        )

        file_handler = TimedRotatingFileHandler(
            log_file,
            when="midnight",
            interval=1,
            backupCount=7,
            encoding="utf-8",
        )
        file_handler.suffix = "%Y-%m-%d"

        f_level = getattr(logging, file_level.upper(), log_level) if file_level else log_level
        file_handler.setLevel(f_level)
        file_handler.setFormatter(file_formatter)
        root_logger.addHandler(file_handler)

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,  # Allow reconfiguration
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a logger instance.

    Args:
        name: Optional logger name

    Returns:
        A structlog bound logger
    """
    return structlog.get_logger(name)


def create_task_log_path(log_dir: str | Path, prefix: str = "task") -> tuple[str, Path]:
    """Create a unique task log file path with timestamp and short id.

    Args:
        log_dir: Directory to store log files
        prefix: Prefix for the log file name (e.g. "convert")

    Returns:
        Tuple of (task_id, log_file_path)

    Example:
        >>> task_id, log_path = create_task_log_path(".logs", "convert")
        >>> print(log_path)  # .logs/convert_20260109_143052_a1b2c3d4.log
    """
    log_dir_path = Path(log_dir)
    log_dir_path.mkdir(parents=True, exist_ok=True)

    task_id = generate_trace_id()
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir_path / f"{prefix}_{timestamp}_{task_id}.log"

    return task_id, log_file


def setup_task_logging(
    log_dir: str | Path,
    prefix: str = "task",
    verbose: bool = False,
    level: str = "DEBUG",
) -> tuple[str, Path]:
    """Setup logging for one CLI task.

    The console shows WARNING and above and the task log file records
    ``level`` and above; ``verbose`` lowers both to DEBUG.

    Args:
        log_dir: Directory to store log files
        prefix: Prefix for the log file name
        verbose: Enable verbose console and file output
        level: Task log file level (usually ``settings.log_level``)

    Returns:
        Tuple of (task_id, log_file_path)
    """
    task_id, log_path = create_task_log_path(log_dir, prefix)

    console_level = "DEBUG" if verbose else "WARNING"
    file_level = "DEBUG" if verbose else level

    setup_logging(
        level="DEBUG",
        log_file=str(log_path),
        console_level=console_level,
        file_level=file_level,
    )

    return task_id, log_path
