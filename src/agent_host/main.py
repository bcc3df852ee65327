"""Executable CLI entrypoint for ``agent_host``."""

from __future__ import annotations

import sys
import traceback
from enum import IntEnum
from typing import TYPE_CHECKING

from agent_host.config.loader import HostConfigError
from agent_host.errors import ConfigurationMissingError
from agent_host.services.configuration_store import SettingsFileError

if TYPE_CHECKING:
    from collections.abc import Sequence

# Failures the commands let escape that an operator fixes in their setup.
_CONFIG_ERROR_TYPES: tuple[type[BaseException], ...] = (
    ConfigurationMissingError,
    HostConfigError,
    SettingsFileError,
)


class ExitCode(IntEnum):
    """Deterministic process exit-code contract."""

    SUCCESS = 0
    CONFIG_ERROR = 2
    INTERNAL_ERROR = 4


def cli_entrypoint(argv: Sequence[str] | None = None) -> int:
    """Entrypoint used by ``python -m agent_host`` and the console script."""

    try:
        from agent_host.ui.cli import run_cli

        return _normalize_exit_code(run_cli(argv))
    except SystemExit as exc:
        return _normalize_exit_code(exc.code)
    except Exception as exc:  # noqa: BLE001 - CLI boundary normalization.
        if isinstance(exc, _CONFIG_ERROR_TYPES):
            sys.stderr.write(f"{str(exc).strip() or type(exc).__name__}\n")
            return int(ExitCode.CONFIG_ERROR)
        traceback.print_exception(type(exc), exc, exc.__traceback__, file=sys.stderr)
        return int(ExitCode.INTERNAL_ERROR)


def _normalize_exit_code(raw_code: object) -> int:
    if raw_code is None:
        return int(ExitCode.SUCCESS)
    if isinstance(raw_code, int) and raw_code in {code.value for code in ExitCode}:
        return raw_code
    return int(ExitCode.INTERNAL_ERROR)


__all__ = ["ExitCode", "cli_entrypoint"]
