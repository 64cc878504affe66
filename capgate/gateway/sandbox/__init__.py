"""Time- and output-bounded capability execution."""

from .executor import SandboxedExecutor

__all__ = ["SandboxedExecutor"]
