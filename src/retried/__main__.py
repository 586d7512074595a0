"""Module entrypoint for `python -m retried`."""

from retried.cli import run

if __name__ == "__main__":
    raise SystemExit(run())
