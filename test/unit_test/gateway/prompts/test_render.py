from __future__ import annotations

import pytest

from capgate.gateway.capabilities.base import FieldSpec, InputSchema
from capgate.gateway.errors import MissingPromptArgumentError
from capgate.gateway.prompts.render import make_prompt_handler, render_template
from capgate.gateway.schemas.domain import FieldType

SCHEMA = InputSchema(
    fields={
        "topic": FieldSpec(type=FieldType.string, required=True),
        "tone": FieldSpec(type=FieldType.string, default="neutral"),
        "extra": FieldSpec(type=FieldType.string),
    }
)


def test_render_substitutes_arguments() -> None:
    text = render_template("Write about {topic} in a {tone} tone.", {"topic": "rivers", "tone": "playful"}, SCHEMA)
    assert text == "Write about rivers in a playful tone."


def test_render_uses_declared_default() -> None:
    text = render_template("{topic}/{tone}", {"topic": "rivers"}, SCHEMA)
    assert text == "rivers/neutral"


def test_render_optional_without_default_is_empty() -> None:
    assert render_template("[{extra}]", {"topic": "x"}, SCHEMA) == "[]"


def test_render_undeclared_placeholder_is_empty() -> None:
    assert render_template("a{unknown}b", {}) == "ab"


def test_render_missing_required_raises() -> None:
    with pytest.raises(MissingPromptArgumentError) as exc_info:
        render_template("{topic}", {}, SCHEMA, prompt="essay")

    assert exc_info.value.argument == "topic"
    assert exc_info.value.prompt == "essay"
    assert "essay" in str(exc_info.value)


def test_render_none_counts_as_missing() -> None:
    assert render_template("{tone}", {"topic": "x", "tone": None}, SCHEMA) == "neutral"


def test_render_converts_values_to_text() -> None:
    assert render_template("{n} items", {"n": 3}) == "3 items"


def test_render_keeps_escaped_braces() -> None:
    assert render_template("{{literal}} {topic}", {"topic": "x"}, SCHEMA) == "{literal} x"


def test_prompt_handler_wraps_rendered_text() -> None:
    handler = make_prompt_handler("Hello {topic}", SCHEMA, prompt="greet")
    assert handler({"topic": "world"}) == {"renderedText": "Hello world"}
