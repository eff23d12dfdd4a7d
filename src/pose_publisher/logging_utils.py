import logging
import sys
from collections.abc import Callable
from datetime import timedelta
from pathlib import Path
from typing import Any

from loguru import logger

DEFAULT_LOG_FILENAME = "pose-publisher.log"
DEFAULT_ROTATION = "10 MB"
DEFAULT_RETENTION = 20
CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan> | {message}"
)
RotationRule = str | int | float | timedelta | Callable[[Any, Any], bool]
RetentionRule = str | int | float | timedelta | Callable[[list[Any]], Any]


class InterceptHandler(logging.Handler):
    """Forward stdlib log records to loguru, keeping the caller's location."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except (ValueError, TypeError):
            level = record.levelno

        # Skip the logging module's own frames so {name} is the emitting module
        frame, depth = logging.currentframe(), 2
        while frame is not None and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back  # type: ignore[assignment]
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def _console_sink_options(level: str, as_json: bool) -> dict[str, Any]:
    options: dict[str, Any] = {
        "level": level.upper(),
        "serialize": as_json,
        "enqueue": True,
        "backtrace": False,
        "diagnose": False,
    }
    if not as_json:
        options["format"] = CONSOLE_FORMAT
    return options


def configure_logging(
    log_dir: Path | None,
    console_level: str = "INFO",
    console_json: bool = False,
    rotation: RotationRule | None = None,
    retention: RetentionRule | None = None,
) -> None:
    """
    Send every record, stdlib or loguru, to stderr and optionally to a file.

    Modules in this package log with ``logging.getLogger(__name__)``; the
    :class:`InterceptHandler` installed here hands those records to loguru.

    Args:
        log_dir: Where ``pose-publisher.log`` is written. None disables the file.
        console_level: Minimum console level name, case-insensitive.
        console_json: Serialize console records as JSON lines instead of text.
        rotation: loguru rotation rule for the file (default: 10 MB).
        retention: loguru retention rule for the file (default: newest 20).
    """
    logger.remove()
    logger.add(sys.stderr, **_console_sink_options(console_level, console_json))

    if log_dir is not None:
        directory = Path(log_dir)
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.error(f"File logging disabled, cannot create {directory}: {exc}")
        else:
            log_file = directory / DEFAULT_LOG_FILENAME
            logger.add(
                log_file,
                level="DEBUG",
                serialize=True,
                rotation=DEFAULT_ROTATION if rotation is None else rotation,
                retention=DEFAULT_RETENTION if retention is None else retention,
                enqueue=True,
                backtrace=False,
                diagnose=False,
            )
            logger.info(f"File logging enabled at {log_file}")

    logging.basicConfig(handlers=[InterceptHandler()], level=logging.NOTSET, force=True)
    logging.captureWarnings(True)


def shutdown_logging() -> None:
    """Wait for enqueued records to reach their sinks."""
    logger.complete()
