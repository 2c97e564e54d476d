"""Module entrypoint for ``python -m node_config``."""

from __future__ import annotations

from node_config.main import cli_entrypoint

if __name__ == "__main__":
    raise SystemExit(cli_entrypoint())
