"""Error taxonomy shared by the host context and its collaborators."""

from __future__ import annotations


class HostContextError(RuntimeError):
    """Base error for host context failures."""


class ConfigurationMissingError(HostContextError):
    """Raised when required settings are absent for a settings-dependent path."""

    def __init__(self, name: str, message: str | None = None) -> None:
        self.name = name
        super().__init__(message or f"required configuration value is missing: {name}")


class ServiceMappingNotFoundError(HostContextError, KeyError):
    """Raised when no implementation can be resolved for a capability."""

    def __init__(self, capability: type) -> None:
        self.capability = capability
        super().__init__(f"Service mapping not found for key '{qualified_name(capability)}'.")

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message.
        return str(self.args[0])


class UnsupportedEnumValueError(HostContextError, ValueError):
    """Raised for an identifier outside a closed enumeration."""

    def __init__(self, kind: str, value: object) -> None:
        self.kind = kind
        self.value = value
        super().__init__(f"Unexpected well known {kind}: '{value}'")


class OperationCancelledError(HostContextError):
    """Raised when a cancellable operation observes its token."""


def qualified_name(value: type) -> str:
    module = getattr(value, "__module__", None)
    name = getattr(value, "__qualname__", None) or getattr(value, "__name__", repr(value))
    if not module or module == "builtins":
        return name
    return f"{module}.{name}"


__all__ = [
    "ConfigurationMissingError",
    "HostContextError",
    "OperationCancelledError",
    "ServiceMappingNotFoundError",
    "UnsupportedEnumValueError",
    "qualified_name",
]
