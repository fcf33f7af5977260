"""Module entrypoint for ``python -m code_quality_tools``."""

from __future__ import annotations

from code_quality_tools.main import cli_entrypoint

if __name__ == "__main__":
    raise SystemExit(cli_entrypoint())
