"""Stable constants shared across the host context."""

from __future__ import annotations

from typing import Final

# Package identity used for the user agent.
PACKAGE_NAME: Final[str] = "agent-host"
PACKAGE_VERSION: Final[str] = "0.1.0"
USER_AGENT_PRODUCT: Final[str] = "VstsAgentCore"

# Directory names relative to their resolved parent.
DIAG_DIRECTORY: Final[str] = "_diag"
EXTERNALS_DIRECTORY: Final[str] = "externals"
LEGACY_PS_HOST_DIRECTORY: Final[str] = "vstshost"
SERVER_OM_DIRECTORY: Final[str] = "vstsom"
TF_DIRECTORY: Final[str] = "tf"
TEE_DIRECTORY: Final[str] = "tee"
TEMP_DIRECTORY: Final[str] = "_temp"
TASKS_DIRECTORY: Final[str] = "_tasks"
TASK_ZIPS_DIRECTORY: Final[str] = "_taskzips"
TOOL_DIRECTORY: Final[str] = "_tool"
UPDATE_DIRECTORY: Final[str] = "_update"
DEFAULT_WORK_FOLDER: Final[str] = "_work"

# Environment variables.
ENV_HTTP_TRACE: Final[str] = "VSTS_AGENT_HTTPTRACE"
ENV_PERF_LOG: Final[str] = "VSTS_AGENT_PERFLOG"
ENV_TOOLS_DIRECTORY: Final[str] = "AGENT_TOOLSDIRECTORY"
ENV_TOOLS_DIRECTORY_VARIABLE: Final[str] = "agent.ToolsDirectory"
ENV_LOG_SIZE_SUFFIX: Final[str] = "_LOGSIZE"
ENV_LOG_RETENTION_SUFFIX: Final[str] = "_LOGRETENTION"

# Trace defaults.
DEFAULT_LOG_PAGE_SIZE_MB: Final[int] = 8
DEFAULT_LOG_RETENTION_DAYS: Final[int] = 30
SECRET_MASK: Final[str] = "***"

# Well-known trace channel names.
HOST_TRACE_NAME: Final[str] = "HostContext"
VSS_TRACE_NAME: Final[str] = "VisualStudioServices"
HTTP_TRACE_NAME: Final[str] = "HttpTrace"

# Instrumentation sources observed by the diagnostic bridge.
VSS_HTTP_EVENT_SOURCE: Final[str] = "Microsoft-VSS-Http"
HTTP_HANDLER_DIAGNOSTIC_LISTENER: Final[str] = "HttpHandlerDiagnosticListener"

# In-container mount targets.
POSIX_CONTAINER_TOOLS: Final[str] = "/__t"
POSIX_CONTAINER_WORK: Final[str] = "/__w"
POSIX_CONTAINER_ROOT: Final[str] = "/__a"
WINDOWS_CONTAINER_TOOLS: Final[str] = "C:\\__t"
WINDOWS_CONTAINER_WORK: Final[str] = "C:\\__w"
WINDOWS_CONTAINER_ROOT: Final[str] = "C:\\__a"
DOCKER_SOCKET_PATH: Final[str] = "/var/run/docker.sock"

__all__ = [
    "DEFAULT_LOG_PAGE_SIZE_MB",
    "DEFAULT_LOG_RETENTION_DAYS",
    "DEFAULT_WORK_FOLDER",
    "DIAG_DIRECTORY",
    "DOCKER_SOCKET_PATH",
    "ENV_HTTP_TRACE",
    "ENV_LOG_RETENTION_SUFFIX",
    "ENV_LOG_SIZE_SUFFIX",
    "ENV_PERF_LOG",
    "ENV_TOOLS_DIRECTORY",
    "ENV_TOOLS_DIRECTORY_VARIABLE",
    "EXTERNALS_DIRECTORY",
    "HOST_TRACE_NAME",
    "HTTP_HANDLER_DIAGNOSTIC_LISTENER",
    "HTTP_TRACE_NAME",
    "LEGACY_PS_HOST_DIRECTORY",
    "PACKAGE_NAME",
    "PACKAGE_VERSION",
    "POSIX_CONTAINER_ROOT",
    "POSIX_CONTAINER_TOOLS",
    "POSIX_CONTAINER_WORK",
    "SECRET_MASK",
    "SERVER_OM_DIRECTORY",
    "TASKS_DIRECTORY",
    "TASK_ZIPS_DIRECTORY",
    "TEE_DIRECTORY",
    "TEMP_DIRECTORY",
    "TF_DIRECTORY",
    "TOOL_DIRECTORY",
    "UPDATE_DIRECTORY",
    "USER_AGENT_PRODUCT",
    "VSS_HTTP_EVENT_SOURCE",
    "VSS_TRACE_NAME",
    "WINDOWS_CONTAINER_ROOT",
    "WINDOWS_CONTAINER_TOOLS",
    "WINDOWS_CONTAINER_WORK",
]
