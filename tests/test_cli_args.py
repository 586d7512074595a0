from __future__ import annotations

import io
import json
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path

from retried import cli
from retried.errors import ExitCode


def _run(argv: list[str]) -> tuple[int, str, str]:
    out = io.StringIO()
    err = io.StringIO()
    with redirect_stdout(out), redirect_stderr(err):
        code = cli.main(argv)
    return code, out.getvalue(), err.getvalue()


def test_cli_help_includes_public_flags() -> None:
    help_text = cli.build_parser().format_help()

    for flag in ("--retries", "--factor", "--min-timeout", "--max-timeout", "--randomize", "--forever"):
        assert flag in help_text


def test_cli_prints_one_delay_per_line() -> None:
    code, out, _ = _run(["--retries", "3", "--min-timeout", "100"])

    assert code == int(ExitCode.SUCCESS)
    assert out.splitlines() == ["100", "200", "400"]


def test_cli_json_output_reports_total() -> None:
    code, out, _ = _run(["--retries", "3", "--min-timeout", "100", "--max-timeout", "300", "--json"])

    payload = json.loads(out)
    assert code == 0
    assert payload == {"timeouts": [100, 200, 300], "total": 600, "forever": False}


def test_cli_forever_mentions_repeated_delay() -> None:
    code, out, _ = _run(["--retries", "0", "--min-timeout", "250", "--forever"])

    assert code == 0
    assert out.splitlines() == ["250", "... then 250 forever"]


def test_cli_reports_min_above_max_as_config_error() -> None:
    code, _, err = _run(["--min-timeout", "2000", "--max-timeout", "1000"])

    assert code == int(ExitCode.CONFIG_ERROR)
    assert "Error: minTimeout is greater than maxTimeout" in err


def test_cli_rejects_fractional_retries_as_config_error() -> None:
    code, _, err = _run(["--retries", "2.5"])

    assert code == int(ExitCode.CONFIG_ERROR)
    assert "retries" in err


def test_cli_rejects_negative_numbers() -> None:
    code, _, err = _run(["--factor", "-1"])

    assert code == int(ExitCode.INVALID_ARGS)
    assert "--factor must be zero or greater" in err


def test_cli_flags_override_config_file(tmp_path: Path) -> None:
    config = tmp_path / "config.toml"
    config.write_text("[retry]\nretries = 2\nmin_timeout = 10\nfactor = 3\n", encoding="utf-8")

    code, out, _ = _run(["--config", str(config), "--min-timeout", "20"])

    assert code == 0
    assert out.splitlines() == ["20", "60"]


def test_log_level_flag_is_accepted() -> None:
    code, _, _ = _run(["--retries", "1", "--log-level", "warning"])

    assert code == 0


def test_invalid_log_level_is_rejected() -> None:
    code, _, err = _run(["--log-level", "loud"])

    assert code == int(ExitCode.INVALID_ARGS)
    assert "--log-level must be one of" in err


def test_cli_writes_debug_log_to_cache_dir(isolated_log_dir: Path) -> None:
    code, _, _ = _run(["--retries", "1"])

    assert code == 0
    assert (isolated_log_dir / "retried" / "retried.log").exists()
