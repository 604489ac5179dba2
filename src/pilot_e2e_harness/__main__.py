"""Module entry point for `python -m pilot_e2e_harness`."""

from .cli import main

if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
