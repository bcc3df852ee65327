"""
agent-host — unit tests for well-known path resolution

File: tests/unit/paths/test_path_resolver.py

Purpose
- Validate the derivation rules for well-known directories and config files.

What this test file should cover
- Directories derived from the binary directory and the work folder.
- Environment overrides for the tools directory.
- Missing settings and unsupported identifiers.
- Platform-specific config file names and the resolution trace lines.

Functional requirements
- Offline operation; nothing is created on disk.

Non-functional requirements
- Deterministic for a given binary directory, environment and settings.
"""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from agent_host.errors import ConfigurationMissingError, UnsupportedEnumValueError
from agent_host.paths import (
    CONFIG_FILE_NAMES,
    DIRECTORY_RULES,
    PathResolver,
    WellKnownConfigFile,
    WellKnownDirectory,
)
from agent_host.services.configuration_store import AgentSettings
from agent_host.services.platform import OSPlatform


class _RecordingTrace:
    def __init__(self) -> None:
        self.lines: list[str] = []

    def info(self, message: str, *args: object) -> None:
        self.lines.append(message % args)


@pytest.fixture
def agent_root(tmp_path: Path) -> Path:
    return tmp_path / "agent"


def _resolver(
    agent_root: Path,
    *,
    work_folder: str | None = "_work",
    environ: dict[str, str] | None = None,
    platform: OSPlatform = OSPlatform.LINUX,
) -> PathResolver:
    settings = AgentSettings(work_folder=work_folder) if work_folder is not None else None
    return PathResolver(
        agent_root / "bin",
        environ=environ if environ is not None else {},
        settings_provider=lambda: settings,
        platform=platform,
    )


@pytest.mark.parametrize(
    ("directory", "relative"),
    [
        (WellKnownDirectory.BIN, "bin"),
        (WellKnownDirectory.ROOT, ""),
        (WellKnownDirectory.DIAG, "_diag"),
        (WellKnownDirectory.EXTERNALS, "externals"),
        (WellKnownDirectory.LEGACY_PS_HOST, "externals/vstshost"),
        (WellKnownDirectory.SERVER_OM, "externals/vstsom"),
        (WellKnownDirectory.TF, "externals/tf"),
        (WellKnownDirectory.TEE, "externals/tee"),
        (WellKnownDirectory.WORK, "_work"),
        (WellKnownDirectory.TEMP, "_work/_temp"),
        (WellKnownDirectory.TASKS, "_work/_tasks"),
        (WellKnownDirectory.TASK_ZIPS, "_work/_taskzips"),
        (WellKnownDirectory.TOOLS, "_work/_tool"),
        (WellKnownDirectory.UPDATE, "_work/_update"),
    ],
)
def test_directories_follow_their_rules(
    agent_root: Path, directory: WellKnownDirectory, relative: str
) -> None:
    expected = agent_root / relative if relative else agent_root

    assert _resolver(agent_root).get_directory(directory) == str(expected)


def test_every_derived_directory_has_a_rule() -> None:
    derived = set(WellKnownDirectory) - {
        WellKnownDirectory.BIN,
        WellKnownDirectory.ROOT,
        WellKnownDirectory.WORK,
    }

    assert set(DIRECTORY_RULES) == derived


def test_work_folder_may_be_absolute_or_climb_out_of_root(agent_root: Path, tmp_path: Path) -> None:
    absolute = tmp_path / "elsewhere"

    assert _resolver(agent_root, work_folder=str(absolute)).get_directory("work") == str(absolute)
    assert _resolver(agent_root, work_folder="../shared").get_directory("work") == str(
        tmp_path / "shared"
    )


def test_tools_environment_override_wins(agent_root: Path) -> None:
    resolver = _resolver(agent_root, environ={"AGENT_TOOLSDIRECTORY": "/opt/hostedtoolcache"})

    assert resolver.get_directory(WellKnownDirectory.TOOLS) == str(Path("/opt/hostedtoolcache"))


def test_tools_variable_override_is_second(agent_root: Path) -> None:
    resolver = _resolver(
        agent_root,
        environ={"AGENT_TOOLSDIRECTORY": "", "agent.ToolsDirectory": "/opt/tools"},
    )

    assert resolver.get_directory(WellKnownDirectory.TOOLS) == str(Path("/opt/tools"))


def test_tools_override_does_not_need_settings(agent_root: Path) -> None:
    resolver = _resolver(
        agent_root, work_folder=None, environ={"AGENT_TOOLSDIRECTORY": "/opt/tools"}
    )

    assert resolver.get_directory(WellKnownDirectory.TOOLS) == str(Path("/opt/tools"))


@pytest.mark.parametrize(
    "directory",
    [WellKnownDirectory.WORK, WellKnownDirectory.TEMP, WellKnownDirectory.TOOLS],
)
def test_work_relative_directories_require_settings(
    agent_root: Path, directory: WellKnownDirectory
) -> None:
    with pytest.raises(ConfigurationMissingError) as excinfo:
        _resolver(agent_root, work_folder=None).get_directory(directory)

    assert excinfo.value.name == "settings"


def test_blank_work_folder_is_missing_configuration(agent_root: Path) -> None:
    with pytest.raises(ConfigurationMissingError) as excinfo:
        _resolver(agent_root, work_folder="  ").get_directory(WellKnownDirectory.WORK)

    assert excinfo.value.name == "work_folder"


def test_root_relative_directories_do_not_need_settings(agent_root: Path) -> None:
    resolver = _resolver(agent_root, work_folder=None)

    assert resolver.get_directory(WellKnownDirectory.DIAG) == str(agent_root / "_diag")


@pytest.mark.parametrize("value", ["DIAG", "diag", "task_zips", "TASK_ZIPS"])
def test_string_identifiers_are_accepted(agent_root: Path, value: str) -> None:
    resolver = _resolver(agent_root)

    assert resolver.get_directory(value) == resolver.get_directory(WellKnownDirectory(value.lower()))


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("TaskZips", WellKnownDirectory.TASK_ZIPS),
        ("LegacyPSHost", WellKnownDirectory.LEGACY_PS_HOST),
        ("ServerOM", WellKnownDirectory.SERVER_OM),
        ("Diag", WellKnownDirectory.DIAG),
    ],
)
def test_camel_case_directory_names_are_accepted(
    agent_root: Path, value: str, expected: WellKnownDirectory
) -> None:
    resolver = _resolver(agent_root)

    assert resolver.get_directory(value) == resolver.get_directory(expected)


def test_camel_case_config_file_names_are_accepted(agent_root: Path) -> None:
    resolver = _resolver(agent_root)

    assert resolver.get_config_file("RSACredentials") == str(agent_root / ".credentials_rsaparams")
    assert resolver.get_config_file("ProxyBypass") == str(agent_root / ".proxybypass")


@pytest.mark.parametrize("value", ["Diag2", "", 7, WellKnownConfigFile.AGENT])
def test_unknown_directory_is_rejected(agent_root: Path, value: object) -> None:
    with pytest.raises(UnsupportedEnumValueError) as excinfo:
        _resolver(agent_root).get_directory(value)  # type: ignore[arg-type]

    assert str(excinfo.value).startswith("Unexpected well known directory: ")


def test_unknown_config_file_is_rejected(agent_root: Path) -> None:
    with pytest.raises(UnsupportedEnumValueError, match="Unexpected well known config file: 'nope'"):
        _resolver(agent_root).get_config_file("nope")


@pytest.mark.parametrize("config_file", list(WellKnownConfigFile))
def test_config_files_live_in_the_agent_root(agent_root: Path, config_file: WellKnownConfigFile) -> None:
    path = _resolver(agent_root).get_config_file(config_file)

    assert path == str(agent_root / CONFIG_FILE_NAMES[config_file])


def test_credential_store_has_a_keychain_name_on_macos(agent_root: Path) -> None:
    macos = _resolver(agent_root, platform=OSPlatform.MACOS)
    linux = _resolver(agent_root, platform=OSPlatform.LINUX)

    assert macos.get_config_file(WellKnownConfigFile.CREDENTIAL_STORE) == str(
        agent_root / ".credential_store.keychain"
    )
    assert linux.get_config_file(WellKnownConfigFile.CREDENTIAL_STORE) == str(
        agent_root / ".credential_store"
    )


def test_config_files_do_not_need_settings(agent_root: Path) -> None:
    resolver = _resolver(agent_root, work_folder=None)

    assert resolver.get_config_file(WellKnownConfigFile.AGENT) == str(agent_root / ".agent")


def test_resolution_is_traced(agent_root: Path) -> None:
    trace = _RecordingTrace()
    resolver = _resolver(agent_root)
    resolver.attach_trace(trace)  # type: ignore[arg-type]

    resolver.get_directory(WellKnownDirectory.DIAG)
    resolver.get_config_file(WellKnownConfigFile.PROXY)

    assert trace.lines == [
        f"Well known directory 'BIN': '{agent_root / 'bin'}'",
        f"Well known directory 'ROOT': '{agent_root}'",
        f"Well known directory 'DIAG': '{agent_root / '_diag'}'",
        f"Well known directory 'BIN': '{agent_root / 'bin'}'",
        f"Well known directory 'ROOT': '{agent_root}'",
        f"Well known config file 'PROXY': '{agent_root / '.proxy'}'",
    ]


def test_work_relative_resolution_traces_each_parent(agent_root: Path) -> None:
    trace = _RecordingTrace()
    resolver = _resolver(agent_root)
    resolver.attach_trace(trace)  # type: ignore[arg-type]

    resolver.get_directory(WellKnownDirectory.TASKS)

    assert [line.split("'")[1] for line in trace.lines] == ["BIN", "ROOT", "WORK", "TASKS"]


def test_repeated_resolution_is_identical(agent_root: Path) -> None:
    resolver = _resolver(agent_root)

    first = {directory: resolver.get_directory(directory) for directory in WellKnownDirectory}
    second = {directory: resolver.get_directory(directory) for directory in WellKnownDirectory}

    assert first == second
    fresh = _resolver(agent_root)
    assert first == {directory: fresh.get_directory(directory) for directory in WellKnownDirectory}


@pytest.mark.parametrize("variable", ["AGENT_TOOLSDIRECTORY", "agent.ToolsDirectory"])
def test_tools_override_changes_only_the_tools_directory(
    agent_root: Path, tmp_path: Path, variable: str
) -> None:
    before = {
        directory: _resolver(agent_root).get_directory(directory)
        for directory in WellKnownDirectory
    }
    overridden = _resolver(agent_root, environ={variable: str(tmp_path / "toolcache")})
    after = {directory: overridden.get_directory(directory) for directory in WellKnownDirectory}

    changed = {
        directory for directory in WellKnownDirectory if before[directory] != after[directory]
    }
    assert changed == {WellKnownDirectory.TOOLS}
    assert after[WellKnownDirectory.TOOLS] == str(tmp_path / "toolcache")


def test_relative_bin_dir_is_made_absolute(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)

    resolver = PathResolver("agent/bin", environ={}, platform=OSPlatform.LINUX)

    assert resolver.get_directory(WellKnownDirectory.ROOT) == os.path.join(str(tmp_path), "agent")
