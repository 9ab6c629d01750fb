"""Structured JSON logging configuration using loguru.

The tracker runs unattended for days, so every quote cycle, timer
transition and skipped fetch is recorded twice:
- a colourised console sink for interactive runs
- a rotating JSON-lines file sink for later inspection

Modules never talk to loguru directly; they call get_logger(__name__)
and pass structured context as keyword arguments.
"""

import json
import sys
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from loguru import logger

from config.settings import GlobalConfig, get_config
from carttracker.exceptions import LoggingInitializationError

_RESERVED_EXTRA_KEYS = frozenset({"serialized"})


def _json_serializer(record: dict[str, Any]) -> str:
    """Render a loguru record as a single JSON line.

    Args:
        record: Loguru record dictionary containing log metadata.

    Returns:
        JSON-formatted string representation of the log record.
    """
    subset = {
        "timestamp": datetime.now(UTC).isoformat(),
        "level": record["level"].name,
        "message": record["message"],
        "module": record["name"],
        "function": record["function"],
        "line": record["line"],
    }

    exception = record["exception"]
    if exception is not None:
        subset["exception"] = {
            "type": exception.type.__name__ if exception.type else None,
            "value": str(exception.value) if exception.value else None,
            "traceback": exception.traceback is not None,
        }

    context = {
        k: v for k, v in record["extra"].items() if k not in _RESERVED_EXTRA_KEYS
    }
    if context:
        subset["context"] = context

    return json.dumps(subset, default=str) + "\n"


def _serialize_into_extra(record: dict[str, Any]) -> bool:
    """Sink filter attaching the JSON rendering to the record."""
    record["extra"]["serialized"] = _json_serializer(record)
    return True


def _validate_log_directory(log_dir: Path) -> None:
    """Validate log directory exists and is writable.

    Args:
        log_dir: Path to the log directory.

    Raises:
        LoggingInitializationError: If directory creation or write test fails.
    """
    try:
        log_dir.mkdir(parents=True, exist_ok=True)

        test_file = log_dir / ".write_test"
        test_file.write_text("write_test")
        test_file.unlink()

    except PermissionError as exc:
        raise LoggingInitializationError(
            log_dir=str(log_dir),
            reason=f"Permission denied: {exc}",
        ) from exc
    except OSError as exc:
        raise LoggingInitializationError(
            log_dir=str(log_dir),
            reason=f"OS error during directory validation: {exc}",
        ) from exc


def configure_logging(config: GlobalConfig | None = None) -> None:
    """Initialize the logging infrastructure.

    Must be called once during bootstrap, before the scheduler starts.

    Args:
        config: Optional GlobalConfig instance. If None, uses singleton.

    Raises:
        LoggingInitializationError: If log directory validation fails.
    """
    if config is None:
        config = get_config()

    logger.remove()

    _validate_log_directory(config.log_dir)

    console_format = (
        "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
        "<level>{message}</level>"
    )

    logger.add(
        sys.stderr,
        format=console_format,
        level=config.log_level,
        colorize=True,
        backtrace=config.debug,
        diagnose=config.debug,
    )

    log_file_path = config.log_dir / "carttracker_{time:YYYY-MM-DD}.json"

    logger.add(
        str(log_file_path),
        format="{extra[serialized]}",
        level=config.log_level,
        rotation=config.log_rotation,
        retention=config.log_retention,
        compression="gz",
        serialize=False,
        filter=_serialize_into_extra,
    )

    logger.info(
        "Logging infrastructure initialized",
        app_name=config.app_name,
        environment=config.environment,
        log_level=config.log_level,
        log_dir=str(config.log_dir),
        symbol=config.symbol,
    )


def get_logger(name: str) -> "logger":
    """Get a logger bound with the module name for log attribution.

    Args:
        name: Module or component name for log attribution.

    Returns:
        Loguru logger instance bound with the provided name context.

    Example:
        >>> log = get_logger(__name__)
        >>> log.info("Quote published", symbol="CART")
    """
    return logger.bind(module=name)
