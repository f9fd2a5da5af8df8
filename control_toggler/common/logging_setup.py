"""
Structured Logging Setup

Component loggers live under the "control_toggler" namespace and write one
JSON object per line unless text output is requested. Context bound to a
ServiceLoggerAdapter (service, device_id, control_id, ...) is attached to
every record it emits.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

LOGGER_NAMESPACE = "control_toggler"
LEVEL_ENV = "CONTROL_TOGGLER_LOG_LEVEL"
FORMAT_ENV = "CONTROL_TOGGLER_LOG_FORMAT"

TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
TEXT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Attributes of every LogRecord; anything else arrived through `extra`
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime", "service"}


class JsonFormatter(logging.Formatter):
    """One JSON object per record, with the record's extra fields inlined"""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "service": getattr(record, "service", "unknown"),
            "message": record.getMessage(),
        }
        entry.update(
            (key, value) for key, value in vars(record).items() if key not in _RECORD_ATTRS
        )
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class ServiceLoggerAdapter(logging.LoggerAdapter):
    """
    Adds the bound context to every record.

    Per-call `extra` fields are merged over the bound context.
    """

    def process(self, msg: str, kwargs: dict) -> tuple[str, dict]:
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs

    def bind(self, **context: Any) -> "ServiceLoggerAdapter":
        """A new adapter over the same logger with additional context"""
        return ServiceLoggerAdapter(self.logger, {**self.extra, **context})


def _build_formatter(json_format: bool) -> logging.Formatter:
    if json_format:
        return JsonFormatter()
    return logging.Formatter(TEXT_FORMAT, datefmt=TEXT_DATE_FORMAT)


def setup_logging(
    service_name: str,
    log_level: str = "INFO",
    json_format: bool = True,
) -> logging.Logger:
    """
    Configure the logger of one component.

    Safe to call again: the previous handler is replaced, which is how
    main() applies the config file settings to loggers created at import.

    Args:
        service_name: Component name (e.g., "toggler", "api")
        log_level: Level name; unknown names fall back to INFO
        json_format: JSON lines if True, plain text otherwise

    Returns:
        The configured logger
    """
    level = logging.getLevelName(str(log_level).upper())
    if not isinstance(level, int):
        level = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_build_formatter(json_format))

    logger = logging.getLogger(f"{LOGGER_NAMESPACE}.{service_name}")
    logger.handlers[:] = [handler]
    logger.setLevel(level)
    logger.propagate = False
    return logger


def get_service_logger(service_name: str, **context: Any) -> ServiceLoggerAdapter:
    """Logger adapter for a component, configured from the environment"""
    logger = setup_logging(
        service_name,
        os.environ.get(LEVEL_ENV, "INFO"),
        os.environ.get(FORMAT_ENV, "json").lower() == "json",
    )
    return ServiceLoggerAdapter(logger, {"service": service_name, **context})


def log_command(logger: logging.LoggerAdapter, action: str, command: Any) -> None:
    """Log a command lifecycle event (enqueued, observed)"""
    logger.debug(
        f"Command {action}: {command.id} {command.topic} "
        f"{command.control_id} -> {command.value} [{command.state_name}]",
        extra={
            "action": action,
            "command_id": command.id,
            "command_state": command.state_name,
        },
    )


def log_control_value(
    logger: logging.LoggerAdapter,
    device_id: int,
    control_id: str,
    value: Any,
    pending: bool,
) -> None:
    """Log the merged control value after a refresh"""
    logger.info(
        f"Current {device_id} control {control_id} value is "
        f"{value if value is not None else 'N/A'}"
        f"{' (pending change)' if pending else ''}",
        extra={"value": value, "pending": pending},
    )
