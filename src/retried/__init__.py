"""Retry orchestration with exponential backoff."""

from .backoff import create_timeout, operation, timeouts
from .config import BackoffOptions, OperationOptions, TimeoutsOptions, load_options
from .errors import ConfigurationError, ExitCode, RetriedError, RetryTimeoutError
from .models import AttemptTimeout, OperationState
from .operation import RetryOperation
from .retry import FatalError, run_with_retry

__all__ = [
    "AttemptTimeout",
    "BackoffOptions",
    "ConfigurationError",
    "create_timeout",
    "ExitCode",
    "FatalError",
    "load_options",
    "operation",
    "OperationOptions",
    "OperationState",
    "RetriedError",
    "RetryOperation",
    "RetryTimeoutError",
    "run_with_retry",
    "timeouts",
    "TimeoutsOptions",
]
