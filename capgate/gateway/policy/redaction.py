from __future__ import annotations

"""Redaction of caller-visible error text.

Error messages returned to callers must not echo credentials or reveal where
the gateway lives on disk. ``redact`` replaces known secret token shapes and
absolute filesystem paths with placeholders.
"""

import re

_SECRET_PATTERNS = (
    re.compile(r"sk-[A-Za-z0-9]{10,}"),
    re.compile(r"ghp_[A-Za-z0-9]{10,}"),
    re.compile(r"xoxb-[A-Za-z0-9-]{10,}"),
    re.compile(r"AKIA[0-9A-Z]{16}"),
    re.compile(r"(?i)bearer\s+[A-Za-z0-9._~+/=-]{10,}"),
)

_ABSOLUTE_PATHS = (
    re.compile(r"(?<![\w.:/])/(?:[^\s/'\"]+/)*[^\s/'\"]+"),
    re.compile(r"\b[A-Za-z]:[\\/][^\s'\"]*"),
)


def redact(text: str) -> str:
    """
    Redact secrets and absolute paths from ``text``.

    Args:
        text: Message that may be shown to a caller.

    Returns:
        The sanitized text with secrets replaced by '<redacted>' and absolute
        paths replaced by '<path>'.
    """
    if not text:
        return text
    out = text
    for pat in _SECRET_PATTERNS:
        out = pat.sub("<redacted>", out)
    for pat in _ABSOLUTE_PATHS:
        out = pat.sub("<path>", out)
    return out
