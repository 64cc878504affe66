"""Prompt template rendering for ``prompt`` capabilities."""

from .render import make_prompt_handler, render_template

__all__ = ["make_prompt_handler", "render_template"]
