"""
agent-host — runtime host context for a long-lived agent process.

File: src/agent_host/__init__.py

Purpose
- Package root. Exposes the host context and the small set of types callers
  need to drive it.

Functional requirements
- Must not have side effects at import time (no sink setup, no atexit hooks).
"""

from agent_host.constants import PACKAGE_VERSION as __version__
from agent_host.errors import (
    ConfigurationMissingError,
    HostContextError,
    OperationCancelledError,
    ServiceMappingNotFoundError,
    UnsupportedEnumValueError,
)
from agent_host.host_context import HostContext
from agent_host.paths import WellKnownConfigFile, WellKnownDirectory
from agent_host.services.registry import AgentService, service_locator
from agent_host.shutdown import ShutdownReason, StartupType

__all__ = [
    "AgentService",
    "ConfigurationMissingError",
    "HostContext",
    "HostContextError",
    "OperationCancelledError",
    "ServiceMappingNotFoundError",
    "ShutdownReason",
    "StartupType",
    "UnsupportedEnumValueError",
    "WellKnownConfigFile",
    "WellKnownDirectory",
    "__version__",
]
