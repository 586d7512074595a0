"""Retry option models and TOML option loading."""

from __future__ import annotations

import logging as py_logging
import math
import sys
from collections.abc import Mapping
from pathlib import Path
from typing import TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from typing_extensions import TypedDict

if sys.version_info >= (3, 11):
    import tomllib
else:  # pragma: no cover
    import tomli as tomllib

from retried.errors import ConfigurationError

logger = py_logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("~/.config/retried/config.toml").expanduser()
DEFAULT_RETRIES = 10
DEFAULT_FACTOR = 2.0
DEFAULT_MIN_TIMEOUT = 1000.0
DEFAULT_MAX_TIMEOUT = math.inf
DEFAULT_MAX_RETRY_TIME = math.inf
CONFIG_SECTION = "retry"

_UNBOUNDED_WORDS = {"inf", "+inf", "infinity", "+infinity"}


class OptionsPayload(TypedDict, total=False):
    retries: float
    factor: float
    min_timeout: float
    max_timeout: float
    randomize: bool
    forever: bool
    max_retry_time: float


def _parse_unbounded(value: object) -> object:
    if isinstance(value, str) and value.strip().lower() in _UNBOUNDED_WORDS:
        return math.inf
    return value


class BackoffOptions(BaseModel):
    """Inputs of a single delay computation."""

    model_config = ConfigDict(validate_assignment=True)

    factor: float = Field(default=DEFAULT_FACTOR, gt=0)
    min_timeout: float = Field(default=DEFAULT_MIN_TIMEOUT, ge=0)
    max_timeout: float = Field(default=DEFAULT_MAX_TIMEOUT, ge=0)
    randomize: bool = False

    @field_validator("factor", "min_timeout", "max_timeout", mode="before")
    @classmethod
    def _accept_unbounded_words(cls, value: object) -> object:
        return _parse_unbounded(value)


class TimeoutsOptions(BackoffOptions):
    """Backoff options plus the number of retries to schedule."""

    retries: float = Field(default=DEFAULT_RETRIES, ge=0)

    @field_validator("retries", mode="before")
    @classmethod
    def _parse_retries(cls, value: object) -> object:
        return _parse_unbounded(value)

    @field_validator("retries")
    @classmethod
    def _validate_retries(cls, value: float) -> float:
        if math.isinf(value):
            return value
        if not float(value).is_integer():
            raise ValueError(f"retries must be a whole number, got {value}")
        return int(value)


class OperationOptions(TimeoutsOptions):
    """Everything ``retried.operation`` understands."""

    forever: bool = False
    max_retry_time: float = Field(default=DEFAULT_MAX_RETRY_TIME, ge=0)

    @field_validator("max_retry_time", mode="before")
    @classmethod
    def _parse_max_retry_time(cls, value: object) -> object:
        return _parse_unbounded(value)


OptionsT = TypeVar("OptionsT", bound=BackoffOptions)
OptionsLike = Union[BackoffOptions, Mapping[str, object], None]


def coerce_options(options: OptionsLike, model: type[OptionsT]) -> OptionsT:
    if options is None:
        return model()
    if isinstance(options, model):
        return options
    if isinstance(options, BaseModel):
        payload: Mapping[str, object] = options.model_dump()
    elif isinstance(options, Mapping):
        payload = options
    else:
        raise ConfigurationError(
            f"Unsupported options type: {type(options).__name__}",
            hint="Pass an options model, a mapping, or None.",
        )
    try:
        return model.model_validate(dict(payload))
    except ValidationError as exc:
        fields = ", ".join(str(error["loc"][0]) for error in exc.errors() if error["loc"])
        raise ConfigurationError(
            f"Invalid retry options: {fields or 'unknown field'}",
            hint="Check the option values against their documented ranges.",
        ) from exc


def get_config_path(path: str | Path | None = None) -> Path:
    if path is None:
        return DEFAULT_CONFIG_PATH
    return Path(path).expanduser()


def _sanitize(raw: Mapping[str, object]) -> OperationOptions:
    options = OperationOptions()
    for name in OperationOptions.model_fields:
        if name not in raw:
            continue
        try:
            setattr(options, name, raw[name])
        except ValidationError:
            logger.warning("Ignoring invalid value for option %s: %r", name, raw[name])
    return options


def load_options(path: str | Path | None = None) -> OperationOptions:
    resolved = get_config_path(path)
    if not resolved.exists():
        return OperationOptions()
    try:
        with resolved.open("rb") as handle:
            raw = tomllib.load(handle)
    except (tomllib.TOMLDecodeError, OSError):
        logger.warning("Cannot read retry options from %s; using defaults", resolved)
        return OperationOptions()
    section = raw.get(CONFIG_SECTION, {})
    if not isinstance(section, dict):
        return OperationOptions()
    return _sanitize(section)
