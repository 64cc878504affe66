from __future__ import annotations

"""Input validation for capability arguments.

``InputValidator`` is the gateway's first line of defence. It checks a
request's arguments against the capability's declared ``InputSchema`` and
against path/command safety rules before anything executes.

Validation is a pure function of ``(descriptor, arguments)``: it touches no
shared state and never blocks. The only filesystem access is resolving a
path-form command against the allow-list. Every violation is collected
(not just the first) so callers can fix all of them in one round trip.

Violations flagged with ``permission=True`` (commands or paths outside the
configured allow-lists) surface as ``permission_denied``; every other violation
surfaces as ``validation_error``.
"""

import json
import os
import posixpath
import re
import shlex
import shutil
from typing import Any, Dict, Iterable, List, Optional

from ..capabilities.base import CapabilityDescriptor, FieldSpec
from ..policy.models import SecurityPolicy
from ..schemas.domain import FieldType, ValidationResult, Violation

_UNSAFE_PATH_CHARS = frozenset('<>:"|?*')
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
_SHELL_METACHARACTERS = re.compile(r"[;&|`<>\n\r]|\$\(")
_WINDOWS_DRIVE = re.compile(r"^[A-Za-z]:[\\/]")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _type_matches(spec: FieldSpec, value: Any) -> bool:
    if spec.type == FieldType.string:
        return isinstance(value, str)
    if spec.type == FieldType.number:
        return _is_number(value)
    if spec.type == FieldType.integer:
        return isinstance(value, int) and not isinstance(value, bool)
    if spec.type == FieldType.boolean:
        return isinstance(value, bool)
    if spec.type == FieldType.array:
        return isinstance(value, (list, tuple))
    if spec.type == FieldType.object:
        return isinstance(value, dict)
    return True


def has_traversal(path: str) -> bool:
    """Return True if ``path`` contains a parent-directory component."""
    return any(part == ".." for part in re.split(r"[\\/]+", path))


def resolve_executable(value: Any) -> Optional[str]:
    """
    Resolve the executable from a command argument.

    Strings are tokenized with shell rules; arrays are treated as argv. The
    first token is returned as given, or None if no token exists.
    """
    if isinstance(value, str):
        try:
            tokens = shlex.split(value)
        except ValueError:
            return None
    elif isinstance(value, (list, tuple)):
        tokens = [str(v) for v in value]
    else:
        return None
    if not tokens or not tokens[0]:
        return None
    return tokens[0]


def is_command_permitted(executable: Optional[str], allowed_commands: Iterable[str]) -> bool:
    """
    Return True if ``executable`` may run under ``allowed_commands``.

    A bare name must appear in the allow-list. A path must either equal an
    allow-list entry or resolve to the same file as an allow-listed entry
    found with ``shutil.which``.
    """
    if not executable:
        return False
    allowed = set(allowed_commands)
    if executable in allowed:
        return True
    if "/" not in executable and "\\" not in executable:
        return False
    target = os.path.realpath(executable)
    for entry in allowed:
        located = shutil.which(entry)
        if located is not None and os.path.realpath(located) == target:
            return True
    return False


class InputValidator:
    """Validate capability arguments against schema and safety rules.

    Args:
        security: Allow-lists and size limits applied to every request.
    """

    def __init__(self, security: Optional[SecurityPolicy] = None) -> None:
        self._security = security or SecurityPolicy()
        self._allowed_commands = frozenset(self._security.allowed_commands)
        roots = self._security.allowed_path_roots
        self._roots = None if roots is None else tuple(posixpath.normpath(r.replace("\\", "/")) for r in roots)

    @property
    def security(self) -> SecurityPolicy:
        return self._security

    def is_command_allowed(self, command: Optional[str]) -> bool:
        return is_command_permitted(command, self._allowed_commands)

    def validate(self, descriptor: CapabilityDescriptor, arguments: Dict[str, Any]) -> ValidationResult:
        """
        Validate ``arguments`` for ``descriptor``.

        Args:
            descriptor: The capability being invoked.
            arguments: Caller-supplied arguments.

        Returns:
            A passing ``ValidationResult`` or one listing every violation in
            schema field order.
        """
        violations: List[Violation] = []
        schema = descriptor.input_schema

        if not isinstance(arguments, dict):
            return ValidationResult.failed(
                [Violation(field="arguments", reason="arguments must be an object", code="type_mismatch")]
            )

        try:
            raw = json.dumps(arguments, default=str).encode("utf-8")
        except (TypeError, ValueError):
            raw = b""
            violations.append(
                Violation(field="arguments", reason="arguments are not serializable", code="type_mismatch")
            )
        if len(raw) > self._security.max_argument_bytes:
            violations.append(
                Violation(field="arguments", reason="arguments too large", code="arguments_too_large")
            )

        for name, spec in schema.fields.items():
            if name not in arguments or arguments[name] is None:
                if spec.required:
                    violations.append(Violation(field=name, reason="required field missing", code="missing_field"))
                continue
            violations.extend(self._check_field(name, spec, arguments[name]))

        if not schema.allow_extra:
            for name in arguments:
                if name not in schema.fields:
                    violations.append(Violation(field=name, reason="unknown field", code="unknown_field"))

        if violations:
            return ValidationResult.failed(violations)
        return ValidationResult.passed()

    def _check_field(self, name: str, spec: FieldSpec, value: Any) -> List[Violation]:
        if spec.type == FieldType.enum:
            if value not in (spec.enum or []):
                return [Violation(field=name, reason="value not in allowed set", code="not_in_enum")]
            return []

        if not _type_matches(spec, value):
            return [Violation(field=name, reason=f"expected {spec.type.value}", code="type_mismatch")]

        out: List[Violation] = []
        if spec.path:
            values = value if isinstance(value, (list, tuple)) else [value]
            for item in values:
                out.extend(self._check_path(name, item))
        if spec.command:
            out.extend(self._check_command(name, value))
        return out

    def _check_path(self, name: str, value: Any) -> List[Violation]:
        if not isinstance(value, str):
            return [Violation(field=name, reason="expected string path", code="type_mismatch")]
        if has_traversal(value):
            return [Violation(field=name, reason="parent-directory traversal not allowed", code="path_traversal")]
        if _CONTROL_CHARS.search(value):
            return [Violation(field=name, reason="control characters not allowed", code="unsafe_path_chars")]
        stripped = value[2:] if _WINDOWS_DRIVE.match(value) else value
        if any(ch in _UNSAFE_PATH_CHARS for ch in stripped):
            return [Violation(field=name, reason="unsafe characters in path", code="unsafe_path_chars")]
        if self._roots is not None and (posixpath.isabs(value) or _WINDOWS_DRIVE.match(value)):
            normalized = posixpath.normpath(value.replace("\\", "/"))
            if not any(normalized == root or normalized.startswith(root.rstrip("/") + "/") for root in self._roots):
                return [
                    Violation(
                        field=name,
                        reason="path outside allowed roots",
                        code="path_outside_roots",
                        permission=True,
                    )
                ]
        return []

    def _check_command(self, name: str, value: Any) -> List[Violation]:
        if isinstance(value, str) and _SHELL_METACHARACTERS.search(value):
            return [Violation(field=name, reason="shell metacharacters not allowed", code="shell_metacharacters")]
        command = resolve_executable(value)
        if command is None:
            return [Violation(field=name, reason="empty or malformed command", code="type_mismatch")]
        if not self.is_command_allowed(command):
            return [
                Violation(
                    field=name,
                    reason=f"command not allowed: {command}",
                    code="command_not_allowed",
                    permission=True,
                )
            ]
        return []
