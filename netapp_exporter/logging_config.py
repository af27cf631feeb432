"""
Logging setup for the NetApp quota exporter.

Provides:
- a formatter that masks ONTAP credentials before anything is written
- a logger wrapper carrying key=value context (condition, volume, ...)
- a timing context manager for remote operations
"""

import logging
import logging.config
import re
import sys
import time
from typing import Dict, Any, Optional, Union
from contextlib import contextmanager

from netapp_exporter.config import LoggingConfig


class SanitizingFormatter(logging.Formatter):
    """
    Formatter that masks credentials in the final log line.

    ONTAP uses HTTP basic auth, so the things worth hiding are passwords,
    Authorization headers and user:password pairs embedded in URLs.
    """

    SENSITIVE_PATTERNS = [
        (re.compile(r'(password["\'\s]*[:=]["\'\s]*)([^"\'\s,}]+)', re.IGNORECASE), r'\1***REDACTED***'),
        (re.compile(r'(passwd["\'\s]*[:=]["\'\s]*)([^"\'\s,}]+)', re.IGNORECASE), r'\1***REDACTED***'),
        (re.compile(r'(Authorization["\'\s]*[:=]["\'\s]*)(Basic\s+)?([^"\'\s,}]+)', re.IGNORECASE),
         r'\1\2***REDACTED***'),
        (re.compile(r'(Basic\s+)([A-Za-z0-9+/=]{8,})'), r'\1***REDACTED***'),
        (re.compile(r'(https?://[^:/\s]+:)([^@\s]+)(@)', re.IGNORECASE), r'\1***REDACTED***\3'),
    ]

    def format(self, record: logging.LogRecord) -> str:
        formatted = super().format(record)
        return sanitize_text(formatted)


def sanitize_text(text: str) -> str:
    """Apply the credential masking patterns to a string."""
    for pattern, replacement in SanitizingFormatter.SENSITIVE_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


class ContextualLogger:
    """
    Logger wrapper that prefixes messages with ``[key=value ...]`` context.

    Instances are cheap; concurrent workers each get their own so context
    set in one thread never leaks into another thread's messages.
    """

    def __init__(self, logger: logging.Logger):
        self.logger = logger
        self.context: Dict[str, Any] = {}

    def set_context(self, **kwargs) -> None:
        self.context.update(kwargs)

    def clear_context(self) -> None:
        self.context.clear()

    def _format_message(self, message: str) -> str:
        if not self.context:
            return message

        context_str = " ".join(f"{key}={value}" for key, value in self.context.items())
        return f"[{context_str}] {message}"

    def debug(self, message: str, *args, **kwargs) -> None:
        self.logger.debug(self._format_message(message), *args, **kwargs)

    def info(self, message: str, *args, **kwargs) -> None:
        self.logger.info(self._format_message(message), *args, **kwargs)

    def warning(self, message: str, *args, **kwargs) -> None:
        self.logger.warning(self._format_message(message), *args, **kwargs)

    def error(self, message: str, *args, **kwargs) -> None:
        self.logger.error(self._format_message(message), *args, **kwargs)


def setup_logging(logging_config: LoggingConfig) -> None:
    """
    Configure logging for the whole process.

    Args:
        logging_config: Logging configuration object
    """
    level = logging_config.level.upper()

    config_dict = {
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'main': {
                '()': SanitizingFormatter,
                'format': logging_config.format,
                'datefmt': '%Y-%m-%d %H:%M:%S'
            },
            'detailed': {
                '()': SanitizingFormatter,
                'format': '%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s',
                'datefmt': '%Y-%m-%d %H:%M:%S'
            }
        },
        'handlers': {
            'console': {
                'class': 'logging.StreamHandler',
                'level': level,
                'formatter': 'main',
                'stream': sys.stdout
            },
            'error_console': {
                'class': 'logging.StreamHandler',
                'level': 'ERROR',
                'formatter': 'detailed',
                'stream': sys.stderr
            }
        },
        'loggers': {
            'netapp_exporter': {
                'level': level,
                'handlers': ['console', 'error_console'],
                'propagate': False
            },
            'urllib3': {
                'level': 'WARNING',
                'handlers': ['console'],
                'propagate': False
            },
            'werkzeug': {
                'level': 'WARNING',
                'handlers': ['console'],
                'propagate': False
            }
        },
        'root': {
            'level': level,
            'handlers': ['console']
        }
    }

    logging.config.dictConfig(config_dict)


def get_logger(name: str) -> ContextualLogger:
    """Get a contextual logger for the given name."""
    return ContextualLogger(logging.getLogger(name))


@contextmanager
def log_operation(logger: Union[logging.Logger, ContextualLogger],
                  operation: str,
                  level: str = 'INFO',
                  **context):
    """
    Log start, completion and failure of an operation with its duration.

    Exceptions are logged and re-raised unchanged.
    """
    original_context = None
    if isinstance(logger, ContextualLogger):
        original_context = logger.context.copy()
        logger.set_context(**context)
    log_func = getattr(logger, level.lower())

    start_time = time.time()
    log_func(f"Starting {operation}")

    try:
        yield
        log_func(f"Completed {operation} in {time.time() - start_time:.3f}s")

    except Exception as e:
        logger.error(f"Failed {operation} after {time.time() - start_time:.3f}s: {str(e)[:200]}")
        raise

    finally:
        if original_context is not None:
            logger.context = original_context


def log_api_request(logger: Union[logging.Logger, ContextualLogger],
                    method: str,
                    url: str,
                    api: Optional[str] = None,
                    status_code: Optional[int] = None,
                    duration: Optional[float] = None,
                    error: Optional[str] = None) -> None:
    """Log one ONTAP request in a uniform format."""
    target = sanitize_text(url)
    if api:
        target = f"{target} [{api}]"

    if error:
        logger.error(f"API request failed: {method} {target} - {error}")
    elif status_code:
        level = 'debug' if 200 <= status_code < 400 else 'warning'
        duration_str = f" ({duration:.3f}s)" if duration is not None else ""
        getattr(logger, level)(f"API request: {method} {target} - {status_code}{duration_str}")
    else:
        logger.debug(f"API request: {method} {target}")
