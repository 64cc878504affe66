from __future__ import annotations

"""Built-in capabilities.

A small set of capabilities that every gateway can expose out of the box and
that exercise each execution path of the pipeline:

- ``add``: pure, read-only tool (cacheable).
- ``echo``: mutating-by-convention tool (never cached).
- ``read_text_file``: read-only tool with a path argument resolved inside a
  base directory.
- ``run_command``: tool that runs an allow-listed executable as a subprocess.
- ``gateway://status``: resource reporting gateway health.
- ``summarize``: prompt template.
"""

import os
import shlex
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from ..errors import CapabilityNotFoundError
from ..prompts.render import make_prompt_handler
from ..schemas.domain import CapabilityKind, FieldType
from .base import CapabilityDescriptor, FieldSpec, InputSchema
from .registry import CapabilityRegistry

StatusProvider = Callable[[], Dict[str, Any]]

STATUS_URI = "gateway://status"

SUMMARIZE_TEMPLATE = (
    "Summarize the following text in a {style} style for {audience}.\n"
    "Keep the summary under {max_words} words.\n\n"
    "{text}"
)

_SUMMARIZE_SCHEMA = InputSchema(
    fields={
        "text": FieldSpec(type=FieldType.string, required=True, description="Text to summarize."),
        "style": FieldSpec(
            type=FieldType.enum,
            enum=["concise", "detailed", "bullet"],
            default="concise",
        ),
        "audience": FieldSpec(type=FieldType.string, default="a general audience"),
        "max_words": FieldSpec(type=FieldType.integer, default=100),
    },
    allow_extra=False,
)


def _add(arguments: Dict[str, Any]) -> Any:
    return arguments["a"] + arguments["b"]


def _echo(arguments: Dict[str, Any]) -> Any:
    return {"text": arguments["text"]}


def _command_argv(arguments: Dict[str, Any]) -> List[str]:
    argv = shlex.split(arguments["command"])
    argv.extend(str(a) for a in arguments.get("args") or [])
    return argv


def _within(path: Path, root: Path) -> bool:
    try:
        path.relative_to(root)
    except ValueError:
        return False
    return True


def make_read_text_file_handler(base_dir: str, *, max_bytes: int = 1_000_000):
    """
    Build a handler that reads UTF-8 text files below ``base_dir``.

    Relative paths are resolved against ``base_dir``. After symlinks are
    resolved the target must still lie inside ``base_dir``, otherwise the
    handler raises ``PermissionError``.
    """
    root = Path(base_dir).resolve()

    def _read_text_file(arguments: Dict[str, Any]) -> Dict[str, Any]:
        requested = Path(arguments["path"])
        target = (requested if requested.is_absolute() else root / requested).resolve()
        if not _within(target, root):
            raise PermissionError("path escapes the base directory")
        if not target.is_file():
            raise CapabilityNotFoundError(arguments["path"])
        with target.open("r", encoding="utf-8", errors="replace") as fh:
            content = fh.read(max_bytes + 1)
        return {
            "path": os.path.relpath(target, root),
            "content": content[:max_bytes],
            "truncated": len(content) > max_bytes,
        }

    return _read_text_file


def _default_status() -> Dict[str, Any]:
    return {"status": "ok"}


def builtin_capabilities(
    *,
    base_dir: Optional[str] = None,
    status_provider: Optional[StatusProvider] = None,
) -> List[CapabilityDescriptor]:
    """Build the descriptors of every built-in capability."""
    provider = status_provider or _default_status
    return [
        CapabilityDescriptor(
            name="add",
            kind=CapabilityKind.tool,
            handler=_add,
            description="Add two numbers.",
            input_schema=InputSchema(
                fields={
                    "a": FieldSpec(type=FieldType.number, required=True, description="First addend."),
                    "b": FieldSpec(type=FieldType.number, required=True, description="Second addend."),
                },
                allow_extra=False,
            ),
            read_only=True,
        ),
        CapabilityDescriptor(
            name="echo",
            kind=CapabilityKind.tool,
            handler=_echo,
            description="Return the given text unchanged.",
            input_schema=InputSchema(
                fields={"text": FieldSpec(type=FieldType.string, required=True)},
                allow_extra=False,
            ),
        ),
        CapabilityDescriptor(
            name="read_text_file",
            kind=CapabilityKind.tool,
            handler=make_read_text_file_handler(base_dir or os.getcwd()),
            description="Read a UTF-8 text file below the gateway working directory.",
            input_schema=InputSchema(
                fields={
                    "path": FieldSpec(
                        type=FieldType.string,
                        required=True,
                        path=True,
                        description="File path, relative to the working directory.",
                    )
                },
                allow_extra=False,
            ),
            read_only=True,
        ),
        CapabilityDescriptor(
            name="run_command",
            kind=CapabilityKind.tool,
            handler=_command_argv,
            description="Run an allow-listed command and capture its output.",
            input_schema=InputSchema(
                fields={
                    "command": FieldSpec(
                        type=FieldType.string,
                        required=True,
                        command=True,
                        description="Executable followed by its arguments.",
                    ),
                    "args": FieldSpec(type=FieldType.array, description="Additional arguments."),
                },
                allow_extra=False,
            ),
            runs_command=True,
        ),
        CapabilityDescriptor(
            name="status",
            kind=CapabilityKind.resource,
            handler=lambda arguments: provider(),
            description="Gateway health and usage summary.",
            uri=STATUS_URI,
            mime_type="application/json",
        ),
        CapabilityDescriptor(
            name="summarize",
            kind=CapabilityKind.prompt,
            handler=make_prompt_handler(
                SUMMARIZE_TEMPLATE,
                _SUMMARIZE_SCHEMA,
                prompt="summarize",
            ),
            description="Prompt asking a model to summarize text.",
            input_schema=_SUMMARIZE_SCHEMA,
            template=SUMMARIZE_TEMPLATE,
            read_only=True,
        ),
    ]


def register_builtin_capabilities(
    registry: CapabilityRegistry,
    *,
    base_dir: Optional[str] = None,
    status_provider: Optional[StatusProvider] = None,
) -> CapabilityRegistry:
    """
    Register every built-in capability with ``registry``.

    Args:
        registry: Registry to populate. Must not be sealed.
        base_dir: Directory ``read_text_file`` is confined to. Defaults to the
            current working directory.
        status_provider: Callable returning the ``gateway://status`` payload.

    Returns:
        The same registry, for chaining.
    """
    for descriptor in builtin_capabilities(base_dir=base_dir, status_provider=status_provider):
        registry.register(descriptor)
    return registry
