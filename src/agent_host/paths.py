"""
agent-host — well-known path resolution

File: src/agent_host/paths.py

Purpose
- Resolve the agent's well-known directories and config files from the binary
  location, the environment and the agent settings.

Functional requirements
- Each directory is derived by exactly one rule in ``DIRECTORY_RULES``; a
  rule may depend on other directories, which resolve first.
- Resolution is deterministic for a given binary directory, environment and
  settings snapshot.
- Identifiers outside the enums raise ``UnsupportedEnumValueError``.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Final, TypeVar

from agent_host import constants
from agent_host.errors import ConfigurationMissingError, UnsupportedEnumValueError
from agent_host.services.platform import OSPlatform, coerce_platform

if TYPE_CHECKING:
    from agent_host.observability.tracing import Tracing
    from agent_host.services.configuration_store import AgentSettings

SettingsProvider = Callable[[], "AgentSettings | None"]
E = TypeVar("E", bound=Enum)


class WellKnownDirectory(str, Enum):
    BIN = "bin"
    DIAG = "diag"
    EXTERNALS = "externals"
    LEGACY_PS_HOST = "legacy_ps_host"
    ROOT = "root"
    SERVER_OM = "server_om"
    TASKS = "tasks"
    TASK_ZIPS = "task_zips"
    TEE = "tee"
    TEMP = "temp"
    TF = "tf"
    TOOLS = "tools"
    UPDATE = "update"
    WORK = "work"


class WellKnownConfigFile(str, Enum):
    AGENT = "agent"
    CREDENTIALS = "credentials"
    RSA_CREDENTIALS = "rsa_credentials"
    SERVICE = "service"
    CREDENTIAL_STORE = "credential_store"
    CERTIFICATES = "certificates"
    PROXY = "proxy"
    PROXY_CREDENTIALS = "proxy_credentials"
    PROXY_BYPASS = "proxy_bypass"
    AUTOLOGON = "autologon"
    OPTIONS = "options"


CONFIG_FILE_NAMES: Final[Mapping[WellKnownConfigFile, str]] = {
    WellKnownConfigFile.AGENT: ".agent",
    WellKnownConfigFile.CREDENTIALS: ".credentials",
    WellKnownConfigFile.RSA_CREDENTIALS: ".credentials_rsaparams",
    WellKnownConfigFile.SERVICE: ".service",
    WellKnownConfigFile.CREDENTIAL_STORE: ".credential_store",
    WellKnownConfigFile.CERTIFICATES: ".certificates",
    WellKnownConfigFile.PROXY: ".proxy",
    WellKnownConfigFile.PROXY_CREDENTIALS: ".proxycredentials",
    WellKnownConfigFile.PROXY_BYPASS: ".proxybypass",
    WellKnownConfigFile.AUTOLOGON: ".autologon",
    WellKnownConfigFile.OPTIONS: ".options",
}

MACOS_CREDENTIAL_STORE_NAME: Final[str] = ".credential_store.keychain"


@dataclass(frozen=True, slots=True)
class DirectoryRule:
    """How one directory is derived.

    ``parent`` + ``name`` gives a fixed relative path. ``env_overrides`` are
    consulted first, in order; an empty value counts as unset.
    """

    parent: WellKnownDirectory | None = None
    name: str | None = None
    env_overrides: tuple[str, ...] = ()


_D = WellKnownDirectory

DIRECTORY_RULES: Final[Mapping[WellKnownDirectory, DirectoryRule]] = {
    _D.DIAG: DirectoryRule(_D.ROOT, constants.DIAG_DIRECTORY),
    _D.EXTERNALS: DirectoryRule(_D.ROOT, constants.EXTERNALS_DIRECTORY),
    _D.LEGACY_PS_HOST: DirectoryRule(_D.EXTERNALS, constants.LEGACY_PS_HOST_DIRECTORY),
    _D.SERVER_OM: DirectoryRule(_D.EXTERNALS, constants.SERVER_OM_DIRECTORY),
    _D.TF: DirectoryRule(_D.EXTERNALS, constants.TF_DIRECTORY),
    _D.TEE: DirectoryRule(_D.EXTERNALS, constants.TEE_DIRECTORY),
    _D.TEMP: DirectoryRule(_D.WORK, constants.TEMP_DIRECTORY),
    _D.TASKS: DirectoryRule(_D.WORK, constants.TASKS_DIRECTORY),
    _D.TASK_ZIPS: DirectoryRule(_D.WORK, constants.TASK_ZIPS_DIRECTORY),
    _D.TOOLS: DirectoryRule(
        _D.WORK,
        constants.TOOL_DIRECTORY,
        env_overrides=(constants.ENV_TOOLS_DIRECTORY, constants.ENV_TOOLS_DIRECTORY_VARIABLE),
    ),
    _D.UPDATE: DirectoryRule(_D.WORK, constants.UPDATE_DIRECTORY),
}


class PathResolver:
    """Resolves ``WellKnownDirectory`` and ``WellKnownConfigFile`` values."""

    def __init__(
        self,
        bin_dir: Path | str,
        *,
        environ: Mapping[str, str] | None = None,
        settings_provider: SettingsProvider | None = None,
        platform: OSPlatform | str | None = None,
        trace: Tracing | None = None,
    ) -> None:
        self._bin_dir = Path(os.path.abspath(bin_dir))
        self._environ = environ if environ is not None else os.environ
        self._settings_provider = settings_provider
        self._platform = coerce_platform(platform)
        self._trace = trace

    @property
    def platform(self) -> OSPlatform:
        return self._platform

    def attach_trace(self, trace: Tracing | None) -> None:
        self._trace = trace

    def get_directory(self, directory: WellKnownDirectory | str) -> str:
        resolved = _coerce(WellKnownDirectory, directory, "directory")
        return str(self._resolve_directory(resolved))

    def get_config_file(self, config_file: WellKnownConfigFile | str) -> str:
        resolved = _coerce(WellKnownConfigFile, config_file, "config file")
        name = CONFIG_FILE_NAMES[resolved]
        if resolved is WellKnownConfigFile.CREDENTIAL_STORE and self._platform is OSPlatform.MACOS:
            name = MACOS_CREDENTIAL_STORE_NAME
        path = self._resolve_directory(WellKnownDirectory.ROOT) / name
        if self._trace is not None:
            self._trace.info("Well known config file '%s': '%s'", resolved.name, path)
        return str(path)

    def _resolve_directory(self, directory: WellKnownDirectory) -> Path:
        # Parents trace their own line before the directory that needs them.
        path = self._derive_directory(directory)
        if self._trace is not None:
            self._trace.info("Well known directory '%s': '%s'", directory.name, path)
        return path

    def _derive_directory(self, directory: WellKnownDirectory) -> Path:
        if directory is WellKnownDirectory.BIN:
            return self._bin_dir
        if directory is WellKnownDirectory.ROOT:
            return self._resolve_directory(WellKnownDirectory.BIN).parent
        if directory is WellKnownDirectory.WORK:
            return self._resolve_work()

        rule = DIRECTORY_RULES.get(directory)
        if rule is None:
            raise UnsupportedEnumValueError("directory", directory.name)
        for variable in rule.env_overrides:
            value = self._environ.get(variable)
            if value:
                return Path(value)
        if rule.parent is None or rule.name is None:
            raise UnsupportedEnumValueError("directory", directory.name)
        return self._resolve_directory(rule.parent) / rule.name

    def _resolve_work(self) -> Path:
        settings = self._settings_provider() if self._settings_provider is not None else None
        if settings is None:
            raise ConfigurationMissingError(
                "settings", "agent settings are required to resolve the work directory"
            )
        work_folder = (settings.work_folder or "").strip()
        if not work_folder:
            raise ConfigurationMissingError(
                "work_folder", "agent settings do not define a work folder"
            )
        root = self._resolve_directory(WellKnownDirectory.ROOT)
        return Path(os.path.abspath(root / work_folder))


def _coerce(enum_type: type[E], value: object, kind: str) -> E:
    if isinstance(value, enum_type):
        return value
    if isinstance(value, str):
        # "TaskZips", "task_zips" and "TASK_ZIPS" name the same member.
        folded = value.replace("_", "").casefold()
        for member in enum_type:
            if value == member.value or folded == member.name.replace("_", "").casefold():
                return member
    raise UnsupportedEnumValueError(kind, getattr(value, "name", value))


__all__ = [
    "CONFIG_FILE_NAMES",
    "DIRECTORY_RULES",
    "DirectoryRule",
    "PathResolver",
    "SettingsProvider",
    "WellKnownConfigFile",
    "WellKnownDirectory",
]
