"""Module entrypoint for ``python -m rib``."""

from __future__ import annotations

from rib.main import cli_entrypoint

if __name__ == "__main__":
    raise SystemExit(cli_entrypoint())
