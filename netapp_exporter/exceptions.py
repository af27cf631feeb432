"""
Exception hierarchy for the NetApp quota exporter.

Remote call failures, value normalization failures and configuration
problems each have their own branch so callers can decide how far an
error is allowed to travel (a single sample, a single condition, or the
whole process).
"""

from typing import Optional, Dict, Any
from enum import Enum


class ErrorSeverity(Enum):
    """Error severity levels for categorizing exceptions."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Error categories for different types of failures."""
    AUTHENTICATION = "authentication"
    NETWORK = "network"
    API = "api"
    CONFIGURATION = "configuration"
    DATA_PROCESSING = "data_processing"
    TIMEOUT = "timeout"


class ExporterError(Exception):
    """
    Base exception for the exporter.

    Carries a category, a severity and retry hints so the retry handler
    and the log output can treat every failure the same way.
    """

    def __init__(self,
                 message: str,
                 category: ErrorCategory = ErrorCategory.API,
                 severity: ErrorSeverity = ErrorSeverity.MEDIUM,
                 retryable: bool = False,
                 retry_after: Optional[int] = None,
                 context: Optional[Dict[str, Any]] = None,
                 original_error: Optional[Exception] = None):
        """
        Initialize exporter error.

        Args:
            message: Error message
            category: Error category for classification
            severity: Error severity level
            retryable: Whether the failed operation may be retried
            retry_after: Suggested retry delay in seconds
            context: Additional error context
            original_error: Original exception that caused this error
        """
        super().__init__(message)
        self.category = category
        self.severity = severity
        self.retryable = retryable
        self.retry_after = retry_after
        self.context = context or {}
        self.original_error = original_error


# Remote API failures

class TransportError(ExporterError):
    """A call to the ONTAP API did not produce a usable result."""


class AuthenticationError(TransportError):
    """Authentication related errors."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault('category', ErrorCategory.AUTHENTICATION)
        kwargs.setdefault('severity', ErrorSeverity.HIGH)
        kwargs.setdefault('retryable', False)
        super().__init__(message, **kwargs)


class InvalidCredentialsError(AuthenticationError):
    """Rejected user name or password."""

    def __init__(self, message: str = "Invalid ONTAP credentials", **kwargs):
        kwargs.setdefault('severity', ErrorSeverity.CRITICAL)
        super().__init__(message, **kwargs)


class APIError(TransportError):
    """HTTP level failure talking to the ONTAP API."""

    def __init__(self, message: str, status_code: Optional[int] = None, **kwargs):
        kwargs.setdefault('category', ErrorCategory.API)
        kwargs.setdefault('severity', ErrorSeverity.MEDIUM)

        if status_code:
            kwargs.setdefault('retryable', status_code >= 500)
            if status_code >= 500:
                kwargs.setdefault('retry_after', 5)

        if 'context' not in kwargs or kwargs['context'] is None:
            kwargs['context'] = {}
        kwargs['context']['status_code'] = status_code

        super().__init__(message, **kwargs)
        self.status_code = status_code


class ZapiError(APIError):
    """ZAPI call answered with status="failed"."""

    def __init__(self, api: str, reason: str, errno: Optional[str] = None, **kwargs):
        if 'context' not in kwargs or kwargs['context'] is None:
            kwargs['context'] = {}
        kwargs['context'].update({'api': api, 'errno': errno})
        kwargs.setdefault('retryable', False)
        super().__init__(f"ZAPI {api} failed (errno {errno}): {reason}", **kwargs)
        self.api = api
        self.reason = reason
        self.errno = errno


class PaginationError(APIError):
    """Quota report pagination did not converge."""

    def __init__(self, message: str, pages: int = 0, **kwargs):
        if 'context' not in kwargs or kwargs['context'] is None:
            kwargs['context'] = {}
        kwargs['context']['pages'] = pages
        kwargs.setdefault('retryable', False)
        super().__init__(message, **kwargs)
        self.pages = pages


class NetworkError(TransportError):
    """Network connectivity errors."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault('category', ErrorCategory.NETWORK)
        kwargs.setdefault('severity', ErrorSeverity.MEDIUM)
        kwargs.setdefault('retryable', True)
        kwargs.setdefault('retry_after', 2)
        super().__init__(message, **kwargs)


class RequestTimeoutError(TransportError):
    """Request timeout errors."""

    def __init__(self, message: str, timeout_duration: Optional[float] = None, **kwargs):
        kwargs.setdefault('category', ErrorCategory.TIMEOUT)
        kwargs.setdefault('severity', ErrorSeverity.MEDIUM)
        kwargs.setdefault('retryable', True)
        kwargs.setdefault('retry_after', 2)

        if 'context' not in kwargs or kwargs['context'] is None:
            kwargs['context'] = {}
        kwargs['context']['timeout_duration'] = timeout_duration

        super().__init__(message, **kwargs)


# Startup

class ConfigurationError(ExporterError):
    """Invalid or unreadable configuration. Fatal at startup."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault('category', ErrorCategory.CONFIGURATION)
        kwargs.setdefault('severity', ErrorSeverity.CRITICAL)
        kwargs.setdefault('retryable', False)
        super().__init__(message, **kwargs)


# Metric production

class MetricsError(ExporterError):
    """Metrics processing errors."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault('category', ErrorCategory.DATA_PROCESSING)
        kwargs.setdefault('severity', ErrorSeverity.LOW)
        kwargs.setdefault('retryable', False)
        super().__init__(message, **kwargs)


class ValueNormalizationError(MetricsError):
    """A single remote field could not be turned into a float."""

    def __init__(self, message: str, invalid_value: Any = None, **kwargs):
        if 'context' not in kwargs or kwargs['context'] is None:
            kwargs['context'] = {}
        kwargs['context']['invalid_value_type'] = type(invalid_value).__name__
        super().__init__(message, **kwargs)
        self.invalid_value = invalid_value


class MalformedValueError(ValueNormalizationError):
    """String value is not a base-10 integer."""


class UnsupportedValueTypeError(ValueNormalizationError):
    """Value is neither int, float nor string."""


class LabelMismatchError(MetricsError):
    """Label values do not match the metric's label schema."""

    def __init__(self, metric_name: str, expected: int, actual: int, **kwargs):
        kwargs.setdefault('severity', ErrorSeverity.HIGH)
        super().__init__(
            f"Metric {metric_name} expects {expected} label values, got {actual}",
            **kwargs
        )


# Convenience functions for creating common errors

def create_network_error(original_error: Exception, context: Optional[Dict] = None) -> NetworkError:
    """Create a network error from an original exception."""
    return NetworkError(
        message=f"Network error: {str(original_error)}",
        original_error=original_error,
        context=context
    )


def create_timeout_error(timeout_duration: float, operation: str = "request") -> RequestTimeoutError:
    """Create a timeout error with duration context."""
    return RequestTimeoutError(
        message=f"Operation '{operation}' timed out after {timeout_duration:.1f} seconds",
        timeout_duration=timeout_duration
    )


def create_api_error(status_code: int, response_text: str = "", context: Optional[Dict] = None) -> APIError:
    """Create an API error with status code and response context."""
    message = f"API error {status_code}"
    if response_text:
        message += f": {response_text[:200]}"

    return APIError(
        message=message,
        status_code=status_code,
        context=context
    )
