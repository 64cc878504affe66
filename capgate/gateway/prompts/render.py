from __future__ import annotations

"""Prompt template rendering.

Templates use ``str.format`` placeholder syntax: ``{name}`` is replaced by the
argument ``name`` and ``{{``/``}}`` produce literal braces. Argument values are
converted to ``str`` before substitution, so a template can only reach string
attributes of caller data.

Missing arguments resolve as follows:

- optional argument with a declared default: the default,
- optional (or undeclared) argument without a default: empty string,
- required argument: ``MissingPromptArgumentError``.
"""

from typing import Any, Dict, Optional

from ..capabilities.base import Handler, InputSchema
from ..errors import MissingPromptArgumentError


class _PromptArguments(dict):
    def __init__(self, values: Dict[str, str], schema: InputSchema, prompt: Optional[str]) -> None:
        super().__init__(values)
        self._schema = schema
        self._prompt = prompt

    def __missing__(self, key: str) -> str:
        spec = self._schema.fields.get(key)
        if spec is not None and spec.required:
            raise MissingPromptArgumentError(key, prompt=self._prompt)
        if spec is not None and spec.default is not None:
            return str(spec.default)
        return ""


def render_template(
    template: str,
    arguments: Dict[str, Any],
    schema: Optional[InputSchema] = None,
    *,
    prompt: Optional[str] = None,
) -> str:
    """
    Render ``template`` with ``arguments``.

    Args:
        template: Template text with ``{name}`` placeholders.
        arguments: Caller-supplied values. ``None`` values count as missing.
        schema: The prompt's declared arguments, used for defaults and
            required checks.
        prompt: Prompt name, used only in error messages.

    Returns:
        The rendered text.

    Raises:
        MissingPromptArgumentError: A required argument is absent.
    """
    values = {k: str(v) for k, v in (arguments or {}).items() if v is not None}
    return template.format_map(_PromptArguments(values, schema or InputSchema(), prompt))


def make_prompt_handler(template: str, schema: Optional[InputSchema] = None, *, prompt: Optional[str] = None) -> Handler:
    """Bind ``template`` into a capability handler returning ``{"renderedText": ...}``."""

    def _handler(arguments: Dict[str, Any]) -> Dict[str, Any]:
        return {"renderedText": render_template(template, arguments, schema, prompt=prompt)}

    return _handler
