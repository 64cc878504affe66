from __future__ import annotations

"""Capability descriptor and input schema models.

A capability is a named, schema-described unit of functionality exposed by the
gateway. Capabilities are *records*, not subclasses: adding a capability means
building a ``CapabilityDescriptor`` and registering it with the
``CapabilityRegistry``.

Handlers follow a single calling convention, ``handler(arguments)``, and may be:

- a plain function returning the result (run in a worker thread),
- a coroutine function returning the result,
- a function returning an async iterator of ``str``/``bytes`` chunks
  (streamed output, measured incrementally by the executor),
- for ``runs_command`` capabilities, a function returning the argv list that
  the executor runs as an isolated subprocess.

Handlers should not perform policy decisions themselves; validation, rate
limiting and limits are enforced by the gateway before and around invocation.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from pydantic import ConfigDict, Field

from ..policy.models import ExecutionLimits
from ..schemas.base import BaseSchema
from ..schemas.domain import CapabilityKind, FieldType

Handler = Callable[[Dict[str, Any]], Any]


class FieldSpec(BaseSchema):
    """Declarative constraints for a single argument."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid", frozen=True)

    type: FieldType = FieldType.string
    required: bool = False
    description: str = ""
    enum: Optional[List[Any]] = Field(
        default=None,
        description="Allowed values when ``type`` is ``enum``.",
    )
    default: Any = Field(
        default=None,
        description="Fallback used by prompt rendering when an optional argument is omitted.",
    )
    path: bool = Field(
        default=False,
        description="The value is a filesystem path and is subject to traversal and safety checks.",
    )
    command: bool = Field(
        default=False,
        description="The value names an external command and must resolve to an allow-listed executable.",
    )


class InputSchema(BaseSchema):
    """Ordered mapping of argument names to their constraints."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid", frozen=True)

    fields: Dict[str, FieldSpec] = Field(default_factory=dict)
    allow_extra: bool = Field(
        default=True,
        description="When False, arguments not declared in ``fields`` are rejected.",
    )

    def required_fields(self) -> List[str]:
        return [name for name, spec in self.fields.items() if spec.required]

    def defaults(self) -> Dict[str, Any]:
        return {name: spec.default for name, spec in self.fields.items() if spec.default is not None}

    def to_json_schema(self) -> Dict[str, Any]:
        """Render the schema in JSON-Schema shape for capability listings."""
        props: Dict[str, Any] = {}
        for name, spec in self.fields.items():
            prop: Dict[str, Any] = {}
            if spec.type == FieldType.enum:
                prop["enum"] = list(spec.enum or [])
            else:
                prop["type"] = spec.type.value
            if spec.description:
                prop["description"] = spec.description
            if spec.default is not None:
                prop["default"] = spec.default
            if spec.path:
                prop["format"] = "path"
            props[name] = prop
        return {
            "type": "object",
            "properties": props,
            "required": self.required_fields(),
            "additionalProperties": self.allow_extra,
        }


@dataclass(frozen=True)
class CapabilityDescriptor:
    """
    Immutable description of a registered capability.

    Attributes:
        name: Unique capability name.
        kind: Tool, resource or prompt.
        handler: Callable invoked with the validated arguments.
        description: Human-readable summary shown in listings.
        input_schema: Declared argument constraints.
        read_only: Whether results may be cached. Mutating capabilities are never cached.
        uri: Address of a resource capability (``readResource`` lookups).
        mime_type: Content type reported for resource reads.
        template: Template text of a prompt capability.
        runs_command: The handler returns an argv list executed as a subprocess.
        limits: Per-capability override of the gateway execution limits.
        cache_ttl: Per-capability cache TTL in seconds.
    """

    name: str
    kind: CapabilityKind
    handler: Handler
    description: str = ""
    input_schema: InputSchema = field(default_factory=InputSchema)
    read_only: bool = False
    uri: Optional[str] = None
    mime_type: Optional[str] = None
    template: Optional[str] = None
    runs_command: bool = False
    limits: Optional[ExecutionLimits] = None
    cache_ttl: Optional[float] = None

    def summary(self) -> Dict[str, Any]:
        """Wire summary used by ``listCapabilities``."""
        out: Dict[str, Any] = {
            "name": self.name,
            "kind": self.kind.value,
            "description": self.description,
            "inputSchema": self.input_schema.to_json_schema(),
            "readOnly": self.read_only,
        }
        if self.uri is not None:
            out["uri"] = self.uri
        if self.mime_type is not None:
            out["mimeType"] = self.mime_type
        return out
