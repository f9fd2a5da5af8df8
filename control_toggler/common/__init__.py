"""
Common Utilities

Shared modules used across the toggler:
- config.py - Configuration dataclass and YAML loading
- exceptions.py - Custom exception classes
- logging_setup.py - Structured logging setup
- timestamp.py - Timestamp parsing and signing date formats
"""

from .config import TogglerConfig, load_toggler_config, load_config_file
from .exceptions import (
    TogglerError,
    ConfigError,
    InvalidCredentialsError,
    TransportError,
    ApplicationError,
)
from .logging_setup import (
    setup_logging,
    get_service_logger,
    log_command,
    log_control_value,
)

__all__ = [
    # Config
    "TogglerConfig",
    "load_toggler_config",
    "load_config_file",
    # Exceptions
    "TogglerError",
    "ConfigError",
    "InvalidCredentialsError",
    "TransportError",
    "ApplicationError",
    # Logging
    "setup_logging",
    "get_service_logger",
    "log_command",
    "log_control_value",
]
