"""Module entrypoint for ``python -m agent_host``."""

from __future__ import annotations

from agent_host.main import cli_entrypoint

if __name__ == "__main__":
    raise SystemExit(cli_entrypoint())
