"""Deterministic error model and exit code contract."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

RETRY_TIMEOUT_MESSAGE = "RetryOperation timeout occurred"


class ExitCode(IntEnum):
    SUCCESS = 0
    INVALID_ARGS = 2
    CONFIG_ERROR = 3
    RUNTIME_ERROR = 4
    RETRY_TIMEOUT = 5


@dataclass
class RetriedError(Exception):
    message: str
    code: ExitCode = ExitCode.RUNTIME_ERROR
    hint: str = ""

    def __str__(self) -> str:
        if self.hint:
            return f"{self.message} Hint: {self.hint}"
        return self.message


@dataclass
class ConfigurationError(RetriedError):
    """Invalid retry options; raised before any delay is computed."""

    code: ExitCode = ExitCode.CONFIG_ERROR


@dataclass
class RetryTimeoutError(RetriedError):
    """Marker stored at ``errors[0]`` when the retry time budget runs out."""

    message: str = RETRY_TIMEOUT_MESSAGE
    code: ExitCode = ExitCode.RETRY_TIMEOUT


def user_facing_error(message: str, *, hint: str = "") -> str:
    if hint:
        return f"Error: {message}. Next step: {hint}"
    return f"Error: {message}."
