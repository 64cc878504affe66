from __future__ import annotations

"""Capability registry.

The registry maps a capability name to its ``CapabilityDescriptor`` and keeps a
secondary index from resource URI to descriptor.

The ``Dispatcher`` resolves every request through this registry. The registry
is populated during startup and sealed when the first request arrives; after
that it is read-only and lookups need no locking.
"""

import logging
from typing import Dict, Optional, Tuple

from ..errors import CapabilityNotFoundError, DuplicateCapabilityError, RegistryFrozenError
from ..schemas.domain import CapabilityKind
from .base import CapabilityDescriptor

logger = logging.getLogger(__name__)


class CapabilityRegistry:
    """
    In-memory mapping of capability names to descriptors.

    Notes:
        - ``register`` rejects a name (or resource URI) that is already registered.
        - ``lookup`` raises ``CapabilityNotFoundError`` if the capability is missing.
        - ``list`` returns an immutable, insertion-ordered tuple.
    """

    def __init__(self) -> None:
        """Initialize an empty capability registry."""
        self._caps: Dict[str, CapabilityDescriptor] = {}
        self._by_uri: Dict[str, CapabilityDescriptor] = {}
        self._sealed = False

    def register(self, descriptor: CapabilityDescriptor) -> None:
        """
        Register a capability descriptor.

        Args:
            descriptor: The descriptor to register.

        Raises:
            DuplicateCapabilityError: If the name or resource URI is already registered.
            RegistryFrozenError: If the registry has been sealed.
        """
        if self._sealed:
            raise RegistryFrozenError(descriptor.name)
        if descriptor.name in self._caps:
            raise DuplicateCapabilityError(descriptor.name)
        if descriptor.uri is not None and descriptor.uri in self._by_uri:
            raise DuplicateCapabilityError(descriptor.uri)

        self._caps[descriptor.name] = descriptor
        if descriptor.uri is not None:
            self._by_uri[descriptor.uri] = descriptor
        logger.debug(f"Registered capability '{descriptor.name}' kind={descriptor.kind.value}")

    def lookup(self, name: str) -> CapabilityDescriptor:
        """
        Retrieve a registered capability by name.

        Raises:
            CapabilityNotFoundError: If no capability is registered with the given name.
        """
        try:
            return self._caps[name]
        except KeyError:
            raise CapabilityNotFoundError(name) from None

    def lookup_resource(self, uri: str) -> CapabilityDescriptor:
        """
        Retrieve a resource capability by its URI.

        Raises:
            CapabilityNotFoundError: If no resource is registered at ``uri``.
        """
        try:
            return self._by_uri[uri]
        except KeyError:
            raise CapabilityNotFoundError(uri) from None

    def get(self, name: str) -> Optional[CapabilityDescriptor]:
        """Return the descriptor registered under ``name`` or None."""
        return self._caps.get(name)

    def has(self, name: str) -> bool:
        return name in self._caps

    def has_resource(self, uri: str) -> bool:
        return uri in self._by_uri

    def list(self, kind: Optional[CapabilityKind] = None) -> Tuple[CapabilityDescriptor, ...]:
        """
        List registered descriptors in registration order.

        Args:
            kind: Only return descriptors of this kind. ``None`` returns all.
        """
        if kind is None:
            return tuple(self._caps.values())
        return tuple(d for d in self._caps.values() if d.kind == kind)

    def seal(self) -> None:
        """Forbid further registrations."""
        if not self._sealed:
            self._sealed = True
            logger.info(f"Capability registry sealed with {len(self._caps)} capabilities")

    @property
    def sealed(self) -> bool:
        return self._sealed

    def __len__(self) -> int:
        return len(self._caps)
