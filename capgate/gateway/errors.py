"""Error types for the gateway core.

These exceptions signal programming or wiring faults (duplicate registration,
registry mutation after startup) and lookups that callers translate into
``not_found`` outcomes. Expected request failures are never raised; they are
returned as ``ExecutionOutcome`` values.
"""

from __future__ import annotations

from typing import Optional


class GatewayError(Exception):
    """Base error for all gateway exceptions."""


class DuplicateCapabilityError(GatewayError):
    """Raised when a capability name or resource URI is registered twice."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Capability already registered: '{name}'")
        self.name = name


class CapabilityNotFoundError(GatewayError, KeyError):
    """Raised when no capability is registered under the requested name or URI."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Capability not found: '{name}'")
        self.name = name

    def __str__(self) -> str:
        return str(self.args[0])


class RegistryFrozenError(GatewayError):
    """Raised when the registry is mutated after the gateway started serving."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Registry is sealed; cannot register '{name}'")


class MissingPromptArgumentError(GatewayError):
    """Raised when a prompt template references a required argument that was not supplied."""

    def __init__(self, argument: str, prompt: Optional[str] = None) -> None:
        where = f"Prompt '{prompt}'" if prompt else "Prompt"
        super().__init__(f"{where} requires argument '{argument}'")
        self.argument = argument
        self.prompt = prompt
