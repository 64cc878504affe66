"""Unit tests for the input validator."""

from __future__ import annotations

from pathlib import Path

import pytest

from capgate.gateway.capabilities.base import CapabilityDescriptor, FieldSpec, InputSchema
from capgate.gateway.policy.models import SecurityPolicy
from capgate.gateway.schemas.domain import CapabilityKind, FieldType, OutcomeStatus
from capgate.gateway.validation.validator import (
    InputValidator,
    has_traversal,
    is_command_permitted,
    resolve_executable,
)


def _descriptor(fields, allow_extra: bool = True) -> CapabilityDescriptor:
    return CapabilityDescriptor(
        name="cap",
        kind=CapabilityKind.tool,
        handler=lambda args: None,
        input_schema=InputSchema(fields=fields, allow_extra=allow_extra),
    )


def _codes(result) -> list[str]:
    return [v.code for v in result.violations]


@pytest.fixture
def validator() -> InputValidator:
    return InputValidator(SecurityPolicy(allowed_commands=["echo", "ls"], allowed_path_roots=["/srv/data"]))


class TestSchemaChecks:
    """Test required, unknown and type checks."""

    def test_valid_arguments_pass(self, validator: InputValidator):
        desc = _descriptor({"a": FieldSpec(type=FieldType.number, required=True)})
        result = validator.validate(desc, {"a": 1.5})
        assert result.ok is True
        assert result.status == OutcomeStatus.success

    def test_missing_required_field(self, validator: InputValidator):
        desc = _descriptor({"a": FieldSpec(type=FieldType.number, required=True)})
        result = validator.validate(desc, {})
        assert result.ok is False
        assert _codes(result) == ["missing_field"]
        assert result.status == OutcomeStatus.validation_error

    def test_none_counts_as_missing(self, validator: InputValidator):
        desc = _descriptor({"a": FieldSpec(type=FieldType.string, required=True)})
        assert _codes(validator.validate(desc, {"a": None})) == ["missing_field"]

    def test_optional_field_may_be_omitted(self, validator: InputValidator):
        desc = _descriptor({"a": FieldSpec(type=FieldType.string)})
        assert validator.validate(desc, {}).ok is True

    def test_unknown_field_rejected_when_extra_disallowed(self, validator: InputValidator):
        desc = _descriptor({"a": FieldSpec(type=FieldType.string)}, allow_extra=False)
        result = validator.validate(desc, {"a": "x", "b": 1})
        assert _codes(result) == ["unknown_field"]
        assert result.violations[0].field == "b"

    def test_unknown_field_allowed_by_default(self, validator: InputValidator):
        desc = _descriptor({"a": FieldSpec(type=FieldType.string)})
        assert validator.validate(desc, {"a": "x", "b": 1}).ok is True

    def test_non_mapping_arguments_rejected(self, validator: InputValidator):
        desc = _descriptor({})
        result = validator.validate(desc, ["not", "a", "dict"])  # type: ignore[arg-type]
        assert _codes(result) == ["type_mismatch"]

    @pytest.mark.parametrize(
        "field_type,value,ok",
        [
            (FieldType.number, 3, True),
            (FieldType.number, 3.5, True),
            (FieldType.number, True, False),
            (FieldType.number, "3", False),
            (FieldType.integer, 3, True),
            (FieldType.integer, 3.0, False),
            (FieldType.integer, False, False),
            (FieldType.boolean, False, True),
            (FieldType.boolean, 0, False),
            (FieldType.string, "s", True),
            (FieldType.string, 1, False),
            (FieldType.array, [1, 2], True),
            (FieldType.array, {"a": 1}, False),
            (FieldType.object, {"a": 1}, True),
            (FieldType.object, [1], False),
        ],
    )
    def test_type_checks(self, validator: InputValidator, field_type, value, ok):
        desc = _descriptor({"f": FieldSpec(type=field_type, required=True)})
        result = validator.validate(desc, {"f": value})
        assert result.ok is ok
        if not ok:
            assert _codes(result) == ["type_mismatch"]

    def test_enum_membership(self, validator: InputValidator):
        desc = _descriptor({"mode": FieldSpec(type=FieldType.enum, enum=["fast", "slow"], required=True)})
        assert validator.validate(desc, {"mode": "fast"}).ok is True
        assert _codes(validator.validate(desc, {"mode": "medium"})) == ["not_in_enum"]

    def test_all_violations_are_collected(self, validator: InputValidator):
        desc = _descriptor(
            {
                "a": FieldSpec(type=FieldType.number, required=True),
                "b": FieldSpec(type=FieldType.string, required=True),
            }
        )
        result = validator.validate(desc, {"b": 7})
        assert _codes(result) == ["missing_field", "type_mismatch"]
        assert "a: required field missing" in result.summary()

    def test_argument_size_ceiling(self):
        validator = InputValidator(SecurityPolicy(max_argument_bytes=32))
        desc = _descriptor({"a": FieldSpec(type=FieldType.string)})
        result = validator.validate(desc, {"a": "x" * 100})
        assert _codes(result) == ["arguments_too_large"]


class TestPathChecks:
    """Test path field safety checks."""

    @pytest.fixture
    def desc(self) -> CapabilityDescriptor:
        return _descriptor({"path": FieldSpec(type=FieldType.string, required=True, path=True)})

    @pytest.mark.parametrize(
        "path",
        ["../etc/passwd", "a/../../b", "..\\windows\\system32", "dir/..", ".."],
    )
    def test_traversal_rejected(self, validator: InputValidator, desc, path):
        result = validator.validate(desc, {"path": path})
        assert _codes(result) == ["path_traversal"]
        assert result.status == OutcomeStatus.validation_error

    @pytest.mark.parametrize("path", ["file\x00.txt", "a\nb", "bad|name", "what?", "a<b>"])
    def test_unsafe_characters_rejected(self, validator: InputValidator, desc, path):
        assert _codes(validator.validate(desc, {"path": path})) == ["unsafe_path_chars"]

    def test_dotted_names_are_not_traversal(self, validator: InputValidator, desc):
        assert validator.validate(desc, {"path": "notes..txt"}).ok is True
        assert validator.validate(desc, {"path": ".hidden/file"}).ok is True

    def test_absolute_path_inside_root_allowed(self, validator: InputValidator, desc):
        assert validator.validate(desc, {"path": "/srv/data/reports/q1.txt"}).ok is True

    def test_absolute_path_outside_root_is_permission_denied(self, validator: InputValidator, desc):
        result = validator.validate(desc, {"path": "/srv/database/x"})
        assert _codes(result) == ["path_outside_roots"]
        assert result.status == OutcomeStatus.permission_denied

    def test_relative_paths_not_checked_against_roots(self, validator: InputValidator, desc):
        assert validator.validate(desc, {"path": "reports/q1.txt"}).ok is True

    def test_path_arrays_are_checked_per_item(self, validator: InputValidator):
        desc = _descriptor({"paths": FieldSpec(type=FieldType.array, required=True, path=True)})
        result = validator.validate(desc, {"paths": ["ok.txt", "../nope"]})
        assert _codes(result) == ["path_traversal"]

    def test_has_traversal_helper(self):
        assert has_traversal("a/../b") is True
        assert has_traversal("a\\..\\b") is True
        assert has_traversal("a/b..c") is False


class TestCommandChecks:
    """Test command field allow-listing."""

    @pytest.fixture
    def desc(self) -> CapabilityDescriptor:
        return _descriptor({"command": FieldSpec(type=FieldType.string, required=True, command=True)})

    def test_allowed_command_passes(self, validator: InputValidator, desc):
        assert validator.validate(desc, {"command": "echo hello"}).ok is True
        assert validator.validate(desc, {"command": "ls -la"}).ok is True

    def test_disallowed_command_is_permission_denied(self, validator: InputValidator, desc):
        result = validator.validate(desc, {"command": "rm -rf /"})
        assert _codes(result) == ["command_not_allowed"]
        assert result.status == OutcomeStatus.permission_denied

    @pytest.mark.parametrize(
        "command",
        ["echo hi; rm -rf /", "echo hi && ls", "echo `id`", "echo $(id)", "ls > out", "echo hi | sh", "ls\nrm"],
    )
    def test_shell_metacharacters_rejected(self, validator: InputValidator, desc, command):
        result = validator.validate(desc, {"command": command})
        assert _codes(result) == ["shell_metacharacters"]
        assert result.status == OutcomeStatus.validation_error

    def test_empty_command_rejected(self, validator: InputValidator, desc):
        assert _codes(validator.validate(desc, {"command": "   "})) == ["type_mismatch"]

    def test_empty_allow_list_denies_everything(self, desc):
        validator = InputValidator(SecurityPolicy())
        assert validator.validate(desc, {"command": "echo hi"}).status == OutcomeStatus.permission_denied

    def test_resolve_executable(self):
        assert resolve_executable("/usr/bin/echo hi") == "/usr/bin/echo"
        assert resolve_executable(["ls", "-la"]) == "ls"
        assert resolve_executable("") is None
        assert resolve_executable("'unterminated") is None
        assert resolve_executable(42) is None


def _write_script(path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("#!/bin/sh\necho look-alike\n")
    path.chmod(0o755)
    return path


class TestCommandResolution:
    """Test how path-form commands are matched against the allow-list."""

    def test_look_alike_path_is_denied(self, validator: InputValidator, tmp_path: Path):
        desc = _descriptor({"command": FieldSpec(type=FieldType.string, required=True, command=True)})
        fake = _write_script(tmp_path / "evil" / "echo")

        result = validator.validate(desc, {"command": f"{fake} hello"})

        assert _codes(result) == ["command_not_allowed"]
        assert result.status == OutcomeStatus.permission_denied

    def test_bare_name_must_be_listed(self):
        assert is_command_permitted("echo", ["echo"]) is True
        assert is_command_permitted("cat", ["echo"]) is False
        assert is_command_permitted(None, ["echo"]) is False
        assert is_command_permitted("", ["echo"]) is False

    def test_path_equal_to_entry_is_permitted(self, tmp_path: Path):
        tool = _write_script(tmp_path / "bin" / "tool")
        assert is_command_permitted(str(tool), [str(tool)]) is True

    def test_path_resolving_to_listed_command_is_permitted(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        tool = _write_script(tmp_path / "bin" / "tool")
        monkeypatch.setenv("PATH", str(tool.parent))

        assert is_command_permitted(str(tool), ["tool"]) is True

    def test_symlink_to_listed_path_is_permitted(self, tmp_path: Path):
        tool = _write_script(tmp_path / "bin" / "tool")
        link = tmp_path / "link"
        link.symlink_to(tool)

        assert is_command_permitted(str(link), [str(tool)]) is True

    def test_same_basename_elsewhere_is_denied(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        real = _write_script(tmp_path / "bin" / "tool")
        fake = _write_script(tmp_path / "evil" / "tool")
        monkeypatch.setenv("PATH", str(real.parent))

        assert is_command_permitted(str(fake), ["tool"]) is False
