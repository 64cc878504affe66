"""Capability descriptors and the capability registry.

A *capability* is a named unit of functionality the gateway exposes to remote
callers: a ``tool`` (invoked with arguments), a ``resource`` (read by URI) or a
``prompt`` (a template rendered with arguments).

- ``CapabilityDescriptor``: immutable record describing one capability.
- ``InputSchema``/``FieldSpec``: declared argument constraints checked by the
  input validator before anything executes.
- ``CapabilityRegistry``: name and URI lookup, sealed once serving starts.

Built-in demo capabilities live in ``capgate.gateway.capabilities.builtin``.
"""

from .base import CapabilityDescriptor, FieldSpec, Handler, InputSchema
from .registry import CapabilityRegistry

__all__ = [
    "CapabilityDescriptor",
    "CapabilityRegistry",
    "FieldSpec",
    "Handler",
    "InputSchema",
]
