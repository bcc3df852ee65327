"""Configuration store capability: the agent settings the host paths depend on."""

from __future__ import annotations

import json
import threading
from collections.abc import Mapping
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from agent_host.errors import HostContextError
from agent_host.services.registry import AgentService, service_locator
from agent_host.utils.fs import atomic_write

_FIELD_ALIASES: dict[str, str] = {
    "agentId": "agent_id",
    "agentName": "agent_name",
    "poolId": "pool_id",
    "poolName": "pool_name",
    "serverUrl": "server_url",
    "workFolder": "work_folder",
}


class SettingsFileError(HostContextError):
    """Raised when the settings file exists but cannot be read or parsed."""


@dataclass(frozen=True, slots=True)
class AgentSettings:
    """Snapshot of the persisted agent configuration."""

    work_folder: str | None = None
    agent_id: int | None = None
    agent_name: str | None = None
    pool_id: int | None = None
    pool_name: str | None = None
    server_url: str | None = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> AgentSettings:
        known: dict[str, Any] = {}
        extra: dict[str, Any] = {}
        field_names = {"work_folder", "agent_id", "agent_name", "pool_id", "pool_name", "server_url"}
        for key, value in payload.items():
            name = _FIELD_ALIASES.get(key, key)
            if name in field_names:
                known[name] = value
            else:
                extra[key] = value
        return cls(**known, extra=extra)

    def to_mapping(self) -> dict[str, Any]:
        reverse = {snake: camel for camel, snake in _FIELD_ALIASES.items()}
        payload: dict[str, Any] = dict(self.extra)
        for key, value in asdict(self).items():
            if key == "extra" or value is None:
                continue
            payload[reverse.get(key, key)] = value
        return payload


@service_locator(default="agent_host.services.configuration_store:JsonConfigurationStore")
class ConfigurationStore(AgentService):
    """Access to the agent's persisted settings."""

    def is_configured(self) -> bool:
        raise NotImplementedError

    def get_settings(self) -> AgentSettings | None:
        raise NotImplementedError

    def save_settings(self, settings: AgentSettings) -> None:
        raise NotImplementedError

    def delete_settings(self) -> None:
        raise NotImplementedError


class JsonConfigurationStore(ConfigurationStore):
    """Reads and writes the ``.agent`` JSON settings file under the agent root."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._settings: AgentSettings | None = None

    @property
    def settings_path(self) -> Path:
        from agent_host.paths import WellKnownConfigFile

        return Path(self.host.get_config_file(WellKnownConfigFile.AGENT))

    def is_configured(self) -> bool:
        return self.settings_path.is_file()

    def get_settings(self) -> AgentSettings | None:
        with self._lock:
            if self._settings is None:
                self._settings = self._load()
            return self._settings

    def save_settings(self, settings: AgentSettings) -> None:
        path = self.settings_path
        path.parent.mkdir(parents=True, exist_ok=True)
        rendered = json.dumps(settings.to_mapping(), indent=2, sort_keys=True)
        with self._lock:
            atomic_write(path, rendered + "\n")
            self._settings = settings

    def delete_settings(self) -> None:
        with self._lock:
            self.settings_path.unlink(missing_ok=True)
            self._settings = None

    def _load(self) -> AgentSettings | None:
        return read_settings_file(self.settings_path)


def read_settings_file(path: Path | str) -> AgentSettings | None:
    """Parse a settings file; ``None`` when it does not exist."""

    settings_path = Path(path)
    if not settings_path.is_file():
        return None
    try:
        payload = json.loads(settings_path.read_text(encoding="utf-8-sig"))
    except (OSError, json.JSONDecodeError) as exc:
        raise SettingsFileError(f"unable to read agent settings {settings_path}: {exc}") from exc
    if not isinstance(payload, Mapping):
        raise SettingsFileError(f"agent settings root must be an object: {settings_path}")
    return AgentSettings.from_mapping(payload)


__all__ = [
    "AgentSettings",
    "ConfigurationStore",
    "JsonConfigurationStore",
    "SettingsFileError",
    "read_settings_file",
]
