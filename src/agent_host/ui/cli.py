"""Command-line interface router for the agent-host diagnostics."""

from __future__ import annotations

import argparse
import re
import sys
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from agent_host.config.loader import DEFAULT_HOST_TYPE, HostConfigError, load_host_options
from agent_host.errors import ConfigurationMissingError
from agent_host.paths import PathResolver, WellKnownConfigFile, WellKnownDirectory
from agent_host.sandbox.containers import ContainerPathMapper, ContainerResource
from agent_host.security.secret_masker import create_default_masker
from agent_host.services.configuration_store import AgentSettings, read_settings_file
from agent_host.services.platform import OSPlatform, current_platform
from agent_host.ui.render import CLIRenderer, create_renderer

NOT_CONFIGURED = "<not configured>"


@dataclass(frozen=True, slots=True)
class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    message: str
    exit_code: int = 2

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse command router for the diagnostic commands."""

    parser = argparse.ArgumentParser(
        prog="agent-host",
        description=(
            "agent-host — runtime host context diagnostics.\n\n"
            "Common workflows:\n"
            "  agent-host paths                      Show well-known directories\n"
            "  agent-host container-mappings         Show default container mounts\n"
            "  agent-host mask TEXT --secret S       Mask secrets in TEXT\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--host-type",
        default=DEFAULT_HOST_TYPE,
        help=f"Host type used for env lookups and file names (default: {DEFAULT_HOST_TYPE}).",
    )
    common.add_argument(
        "--bin-dir",
        default=None,
        help="Agent binary directory; its parent is the agent root (default: current directory).",
    )
    common.add_argument(
        "--work-folder",
        default=None,
        help="Work folder relative to the agent root (default: read from the .agent file).",
    )
    common.add_argument("--json", action="store_true", help="Emit deterministic JSON output")
    common.add_argument(
        "--no-color",
        action="store_true",
        default=False,
        help="Disable colored output (also respects NO_COLOR env var).",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # paths ---------------------------------------------------------------
    paths_parser = subparsers.add_parser(
        "paths",
        parents=[common],
        help="Show well-known directories and config files",
    )
    paths_parser.set_defaults(handler=_cmd_paths)

    # container-mappings --------------------------------------------------
    containers_parser = subparsers.add_parser(
        "container-mappings",
        parents=[common],
        help="Show the default mounts and path mappings of a job container",
    )
    containers_parser.add_argument("--image", default="ubuntu:22.04", help="Container image")
    containers_parser.add_argument("--alias", default="job", help="Container alias")
    containers_parser.add_argument(
        "--windows",
        action="store_true",
        help="Use Windows in-container targets regardless of the running platform",
    )
    containers_parser.add_argument(
        "--no-docker-socket",
        action="store_true",
        help="Do not mount the docker socket into the job container",
    )
    containers_parser.set_defaults(handler=_cmd_container_mappings)

    # mask ----------------------------------------------------------------
    mask_parser = subparsers.add_parser(
        "mask",
        parents=[common],
        help="Print TEXT with registered secrets masked",
    )
    mask_parser.add_argument("text", help="Text to mask")
    mask_parser.add_argument(
        "--secret",
        action="append",
        default=[],
        help="Secret value to mask (repeatable)",
    )
    mask_parser.add_argument(
        "--pattern",
        action="append",
        default=[],
        help="Additional regex whose matches are masked (repeatable)",
    )
    mask_parser.set_defaults(handler=_cmd_mask)

    return parser


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse argv, route to a command handler, and return process exit code."""

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return 2

    try:
        result = handler(namespace)
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code
    return int(result)


def main(argv: Sequence[str] | None = None) -> int:
    return run_cli(argv)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_paths(args: argparse.Namespace) -> int:
    resolver = _resolver(args)
    renderer = _renderer(args)

    directories = {
        item.name: _directory_or_placeholder(resolver, item) for item in WellKnownDirectory
    }
    config_files = {item.name: resolver.get_config_file(item) for item in WellKnownConfigFile}
    if args.json:
        renderer.json({"directories": directories, "config_files": config_files})
        return 0

    renderer.heading(f"Host type: {args.host_type}")
    renderer.table(("Directory", "Path"), sorted(directories.items()), title="Directories")
    renderer.table(("Config file", "Path"), sorted(config_files.items()), title="Config files")
    return 0


def _cmd_container_mappings(args: argparse.Namespace) -> int:
    resolver = _resolver(args)
    renderer = _renderer(args)
    platform = OSPlatform.WINDOWS if args.windows else current_platform()
    mapper = ContainerPathMapper(resolver.get_directory, platform=platform)
    container = ContainerResource(
        alias=args.alias,
        image=args.image,
        map_docker_socket=not args.no_docker_socket,
    )
    try:
        info = mapper.create_container_info(container)
    except ConfigurationMissingError as exc:
        raise CLIError(f"{exc}; pass --work-folder or configure the agent") from exc

    if args.json:
        renderer.json(
            {
                "image": info.image,
                "platform": info.platform.value,
                "mounts": [mount.render() for mount in info.mount_volumes],
                "path_mappings": dict(info.path_mappings),
            }
        )
        return 0

    renderer.kv("Image", info.image)
    renderer.kv("Platform", info.platform.value)
    renderer.table(
        ("Source", "Target", "Mode"),
        [
            (mount.source or "", mount.target, "ro" if mount.read_only else "rw")
            for mount in info.mount_volumes
        ],
        title="Mounts",
    )
    renderer.table(
        ("Host path", "Container path"),
        sorted(info.path_mappings.items()),
        title="Path mappings",
    )
    return 0


def _cmd_mask(args: argparse.Namespace) -> int:
    masker = create_default_masker()
    for secret in args.secret:
        masker.add_value(secret)
    for pattern in args.pattern:
        try:
            masker.add_pattern(pattern)
        except (re.error, ValueError) as exc:
            raise CLIError(f"invalid pattern {pattern!r}: {exc}") from exc

    masked = masker.mask_secrets(args.text)
    renderer = _renderer(args)
    if args.json:
        renderer.json({"masked": masked})
    else:
        renderer.text(masked)
    return 0


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _renderer(args: argparse.Namespace) -> CLIRenderer:
    return create_renderer(no_color=bool(getattr(args, "no_color", False)))


def _resolver(args: argparse.Namespace) -> PathResolver:
    try:
        options = load_host_options(args.host_type)
    except HostConfigError as exc:
        raise CLIError(str(exc)) from exc
    for warning in options.warnings:
        print(f"warning: {warning}", file=sys.stderr)

    bin_dir = Path(args.bin_dir) if args.bin_dir else (options.bin_dir or Path.cwd())
    work_folder = args.work_folder

    def settings() -> AgentSettings | None:
        if work_folder:
            return AgentSettings(work_folder=work_folder)
        return read_settings_file(resolver.get_config_file(WellKnownConfigFile.AGENT))

    resolver = PathResolver(bin_dir, settings_provider=settings)
    return resolver


def _directory_or_placeholder(resolver: PathResolver, directory: WellKnownDirectory) -> str:
    try:
        return resolver.get_directory(directory)
    except ConfigurationMissingError:
        return NOT_CONFIGURED


__all__ = ["CLIError", "build_parser", "main", "run_cli"]
