"""Command line entrypoint printing a computed timeout schedule."""

from __future__ import annotations

import argparse
import json
import logging as py_logging
import math
import os
import sys
from collections.abc import Callable, Sequence
from pathlib import Path

from .backoff import operation
from .config import OperationOptions, coerce_options, load_options
from .errors import ExitCode, RetriedError, user_facing_error
from .logging import (
    LOG_LEVEL_ENV,
    LOG_LEVELS,
    configure_logging,
    default_log_path,
    normalize_level,
)


def _non_negative_number(flag: str) -> Callable[[str], float]:
    def parse(value: str) -> float:
        try:
            number = float(value)
        except ValueError as exc:
            raise argparse.ArgumentTypeError(f"{flag} must be a number") from exc
        if math.isnan(number) or number < 0:
            raise argparse.ArgumentTypeError(f"{flag} must be zero or greater")
        return number

    return parse


def _log_level_type(value: str) -> str:
    normalized = normalize_level(value)
    if normalized not in LOG_LEVELS:
        accepted = ", ".join(LOG_LEVELS)
        raise argparse.ArgumentTypeError(f"--log-level must be one of: {accepted}")
    return normalized


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="retried",
        description="Print the delays (ms) a retry operation would wait between attempts.",
    )
    parser.add_argument("--config", type=Path, default=None, help="TOML file with a [retry] table.")
    parser.add_argument("--retries", type=_non_negative_number("--retries"), default=None)
    parser.add_argument("--factor", type=_non_negative_number("--factor"), default=None)
    parser.add_argument("--min-timeout", type=_non_negative_number("--min-timeout"), default=None)
    parser.add_argument("--max-timeout", type=_non_negative_number("--max-timeout"), default=None)
    parser.add_argument("--randomize", action="store_true", default=None)
    parser.add_argument("--forever", action="store_true", default=None)
    parser.add_argument("--json", action="store_true", help="Emit a JSON object instead of lines.")
    parser.add_argument("--log-level", type=_log_level_type, default=None)
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Debug log destination. Defaults to the user cache directory.",
    )
    return parser


def resolve_options(namespace: argparse.Namespace) -> OperationOptions:
    base = load_options(namespace.config)
    overrides = {
        "retries": namespace.retries,
        "factor": namespace.factor,
        "min_timeout": namespace.min_timeout,
        "max_timeout": namespace.max_timeout,
        "randomize": namespace.randomize,
        "forever": namespace.forever,
    }
    payload = base.model_dump()
    payload.update({key: value for key, value in overrides.items() if value is not None})
    return coerce_options(payload, OperationOptions)


def _json_duration(value: float) -> int | str:
    if math.isinf(value):
        return "inf"
    return int(value)


def _format_duration(value: float) -> str:
    return str(_json_duration(value))


def render_schedule(timeouts: Sequence[float], *, forever: bool, as_json: bool) -> str:
    if as_json:
        return json.dumps(
            {
                "timeouts": [_json_duration(item) for item in timeouts],
                "total": _json_duration(sum(timeouts)),
                "forever": forever,
            }
        )
    lines = [_format_duration(item) for item in timeouts]
    if forever and timeouts:
        lines.append(f"... then {_format_duration(timeouts[-1])} forever")
    return "\n".join(lines)


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    try:
        namespace = parser.parse_args(argv)
    except SystemExit as exc:
        return int(exc.code or 0)

    log_path = namespace.log_file or default_log_path()
    level = namespace.log_level or os.getenv(LOG_LEVEL_ENV) or "WARN"
    logger = configure_logging(level=level, log_file=log_path)
    try:
        options = resolve_options(namespace)
        retry_operation = operation(options)
    except RetriedError as exc:
        logger.error(
            "Handled RetriedError (code=%s): %s",
            int(exc.code),
            exc.message,
            exc_info=LOG_LEVELS.get(normalize_level(level)) == py_logging.DEBUG,
        )
        print(user_facing_error(exc.message, hint=exc.hint), file=sys.stderr)
        return int(exc.code)

    print(
        render_schedule(
            retry_operation.original_timeouts,
            forever=retry_operation.forever,
            as_json=namespace.json,
        )
    )
    return int(ExitCode.SUCCESS)


def run(argv: Sequence[str] | None = None) -> int:
    return main(argv)
