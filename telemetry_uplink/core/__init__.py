"""Cross-cutting infrastructure: logging, configuration files, errors, events."""

from .config_loader import ConfigLoader
from .event_logger import EventLogger
from .exceptions import ConfigurationError, NoPathsConfigured, UplinkError
from .logging_config import configure_logging
from .logging_utils import StructuredLogger, ensure_structured_logger, get_module_logger

__all__ = [
    'ConfigLoader',
    'ConfigurationError',
    'EventLogger',
    'NoPathsConfigured',
    'StructuredLogger',
    'UplinkError',
    'configure_logging',
    'ensure_structured_logger',
    'get_module_logger',
]
