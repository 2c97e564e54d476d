"""
node-config — schema snapshots for compatibility checking.

File: src/node_config/compat/snapshot.py

Purpose
- Describe a versioned field layout independent of any config document.

What should be included in this file
- Immutable snapshot records (schema, messages, fields).
- Readers for the project's proto3 subset, YAML/JSON snapshot documents,
  and the in-code schema declaration; YAML/JSON writers.

Functional requirements
- proto subset: ``optional``/``repeated`` fields only, ``[required]`` marked
  by a trailing comment, version taken from a ``// schema-version: X.Y.Z``
  comment.
- Reject malformed snapshots with a path-qualified ``SnapshotError``.

Non-functional requirements
- No network, deterministic output ordering (declaration order).
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Final, Literal, NoReturn

import yaml

from node_config.config.schema import MESSAGES, FieldLabel
from node_config.constants import (
    JSON_SUFFIXES,
    PROTO_SUFFIXES,
    SCHEMA_PACKAGE,
    SCHEMA_VERSION,
    YAML_SUFFIXES,
)

SnapshotFormat = Literal["yaml", "json"]

_VERSION_RE: Final[re.Pattern[str]] = re.compile(r"^(\d{1,9})\.(\d{1,9})\.(\d{1,9})$")
_PROTO_PACKAGE_RE: Final[re.Pattern[str]] = re.compile(r"^package\s+([\w.]+)\s*;$")
_PROTO_SYNTAX_RE: Final[re.Pattern[str]] = re.compile(r'^syntax\s*=\s*"proto3"\s*;$')
_PROTO_MESSAGE_RE: Final[re.Pattern[str]] = re.compile(r"^message\s+(\w+)\s*\{$")
_PROTO_FIELD_RE: Final[re.Pattern[str]] = re.compile(
    r"^(?:(optional|repeated|required)\s+)?([\w.]+)\s+(\w+)\s*=\s*(\d+)\s*;$"
)
_PROTO_VERSION_RE: Final[re.Pattern[str]] = re.compile(r"schema-version:\s*(\S+)")
_PROTO_IGNORED_PREFIXES: Final[tuple[str, ...]] = ("reserved ", "option ", "import ")
_REQUIRED_MARKER: Final[str] = "[required]"
_DEFAULT_VERSION: Final[str] = "0.0.0"
_MAX_FIELD_NUMBER: Final[int] = (1 << 29) - 1


class SnapshotError(ValueError):
    """Raised when a schema snapshot cannot be read or is malformed."""


@dataclass(frozen=True, slots=True)
class FieldSnapshot:
    name: str
    number: int
    type: str
    label: FieldLabel = "optional"
    required: bool = False

    def to_dict(self) -> dict[str, object]:
        out: dict[str, object] = {"number": self.number, "type": self.type}
        if self.label != "optional":
            out["label"] = self.label
        if self.required:
            out["required"] = True
        return out


@dataclass(frozen=True, slots=True)
class MessageSnapshot:
    name: str
    fields: tuple[FieldSnapshot, ...]

    def __post_init__(self) -> None:
        seen_names: set[str] = set()
        seen_numbers: dict[int, str] = {}
        for item in self.fields:
            if item.name in seen_names:
                raise SnapshotError(f"{self.name}.{item.name}: duplicate field name")
            if not 1 <= item.number <= _MAX_FIELD_NUMBER:
                raise SnapshotError(
                    f"{self.name}.{item.name}: field number must be in 1..{_MAX_FIELD_NUMBER}"
                )
            if item.number in seen_numbers:
                raise SnapshotError(
                    f"{self.name}.{item.name}: field number {item.number} "
                    f"already used by {seen_numbers[item.number]}"
                )
            seen_names.add(item.name)
            seen_numbers[item.number] = item.name

    def field(self, name: str) -> FieldSnapshot | None:
        for item in self.fields:
            if item.name == name:
                return item
        return None

    def field_by_number(self, number: int) -> FieldSnapshot | None:
        for item in self.fields:
            if item.number == number:
                return item
        return None


@dataclass(frozen=True, slots=True)
class SchemaSnapshot:
    """A versioned field layout."""

    version: str
    package: str
    messages: tuple[MessageSnapshot, ...]

    def __post_init__(self) -> None:
        if not _VERSION_RE.fullmatch(self.version):
            raise SnapshotError(f"version: expected MAJOR.MINOR.PATCH, got {self.version!r}")
        names = [message.name for message in self.messages]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise SnapshotError(f"messages: duplicate message names {duplicates}")

    @property
    def major(self) -> int:
        match = _VERSION_RE.fullmatch(self.version)
        if match is None:
            raise SnapshotError(f"version: expected MAJOR.MINOR.PATCH, got {self.version!r}")
        return int(match.group(1))

    def message(self, name: str) -> MessageSnapshot | None:
        for item in self.messages:
            if item.name == name:
                return item
        return None

    def to_dict(self) -> dict[str, object]:
        return {
            "version": self.version,
            "package": self.package,
            "messages": {
                message.name: {item.name: item.to_dict() for item in message.fields}
                for message in self.messages
            },
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> SchemaSnapshot:
        root = _expect_object(data, "<root>")
        version = root.get("version", _DEFAULT_VERSION)
        if not isinstance(version, str):
            _fail("version", f"expected string, got {type(version).__name__}")
        package = root.get("package", "")
        if not isinstance(package, str):
            _fail("package", f"expected string, got {type(package).__name__}")

        messages_raw = _expect_object(root.get("messages", {}), "messages")
        messages: list[MessageSnapshot] = []
        for message_name, fields_raw in messages_raw.items():
            message_path = f"messages.{message_name}"
            fields: list[FieldSnapshot] = []
            for field_name, field_raw in _expect_object(fields_raw, message_path).items():
                fields.append(_field_from_dict(field_name, field_raw, f"{message_path}.{field_name}"))
            messages.append(MessageSnapshot(name=message_name, fields=tuple(fields)))
        return cls(version=version, package=package, messages=tuple(messages))


def current_snapshot() -> SchemaSnapshot:
    """Snapshot of the schema this package loads configs against."""

    return SchemaSnapshot(
        version=SCHEMA_VERSION,
        package=SCHEMA_PACKAGE,
        messages=tuple(
            MessageSnapshot(
                name=spec.name,
                fields=tuple(
                    FieldSnapshot(
                        name=item.name,
                        number=item.number,
                        type=item.type,
                        label=item.label,
                        required=item.required,
                    )
                    for item in spec.fields
                ),
            )
            for spec in MESSAGES.values()
        ),
    )


def parse_proto_snapshot(text: str, *, version: str | None = None) -> SchemaSnapshot:
    """Read a snapshot from proto source written in the config proto subset."""

    package = ""
    found_version: str | None = None
    messages: list[MessageSnapshot] = []
    current: str | None = None
    fields: list[FieldSnapshot] = []

    for lineno, raw_line in enumerate(text.splitlines(), start=1):
        code, _, comment = raw_line.partition("//")
        statement = code.strip()
        version_match = _PROTO_VERSION_RE.search(comment)
        if version_match is not None and found_version is None:
            found_version = version_match.group(1)
        if not statement:
            continue

        where = f"line {lineno}"
        if current is None:
            if _PROTO_SYNTAX_RE.match(statement) or statement.startswith(_PROTO_IGNORED_PREFIXES):
                continue
            package_match = _PROTO_PACKAGE_RE.match(statement)
            if package_match is not None:
                package = package_match.group(1)
                continue
            message_match = _PROTO_MESSAGE_RE.match(statement)
            if message_match is not None:
                current = message_match.group(1)
                fields = []
                continue
            _fail(where, f"unsupported statement {statement!r}")

        if statement == "}":
            messages.append(MessageSnapshot(name=current, fields=tuple(fields)))
            current = None
            continue
        if statement.startswith(_PROTO_IGNORED_PREFIXES):
            continue
        if _PROTO_MESSAGE_RE.match(statement):
            _fail(where, "nested messages are not supported")
        field_match = _PROTO_FIELD_RE.match(statement)
        if field_match is None:
            _fail(where, f"unsupported statement {statement!r}")
        label, type_name, name, number = field_match.groups()
        if label not in ("optional", "repeated"):
            _fail(where, f"field {name!r} must be declared optional or repeated")
        if len(number) > len(str(_MAX_FIELD_NUMBER)):
            _fail(where, f"field {name!r} number is out of range")
        fields.append(
            FieldSnapshot(
                name=name,
                number=int(number),
                type=_local_type_name(type_name, package),
                label="repeated" if label == "repeated" else "optional",
                required=_REQUIRED_MARKER in comment,
            )
        )

    if current is not None:
        _fail(f"message {current}", "missing closing '}'")
    return SchemaSnapshot(
        version=version or found_version or _DEFAULT_VERSION,
        package=package,
        messages=tuple(messages),
    )


def load_snapshot(path: str | Path) -> SchemaSnapshot:
    """Load a snapshot from a ``.proto``, ``.yaml``/``.yml`` or ``.json`` file."""

    resolved = Path(path).expanduser()
    try:
        text = resolved.read_text(encoding="utf-8")
    except OSError as exc:
        raise SnapshotError(f"unable to read schema snapshot {resolved}: {exc}") from exc

    suffix = resolved.suffix.lower()
    try:
        if suffix in PROTO_SUFFIXES:
            return parse_proto_snapshot(text)
        if suffix in YAML_SUFFIXES:
            loaded = yaml.safe_load(text)
        elif suffix in JSON_SUFFIXES:
            loaded = json.loads(text)
        else:
            raise SnapshotError(f"unsupported snapshot file type {suffix!r}")
        return SchemaSnapshot.from_dict(_expect_object(loaded, "<root>"))
    except yaml.YAMLError as exc:
        raise SnapshotError(f"invalid YAML in {resolved}: {exc}") from exc
    except SnapshotError as exc:
        raise SnapshotError(f"{resolved}: {exc}") from exc
    except ValueError as exc:
        # JSONDecodeError, or an integer literal past the int conversion limit
        kind = "YAML" if suffix in YAML_SUFFIXES else "JSON"
        raise SnapshotError(f"invalid {kind} in {resolved}: {exc}") from exc


def dump_snapshot(snapshot: SchemaSnapshot, fmt: SnapshotFormat = "yaml") -> str:
    payload = snapshot.to_dict()
    if fmt == "json":
        return json.dumps(payload, indent=2, ensure_ascii=False) + "\n"
    return yaml.safe_dump(payload, sort_keys=False, default_flow_style=False)


def _field_from_dict(name: str, raw: object, path: str) -> FieldSnapshot:
    data = _expect_object(raw, path)
    unknown = sorted(set(data) - {"number", "type", "label", "required"})
    if unknown:
        _fail(path, f"unknown keys {unknown}")

    number = data.get("number")
    if isinstance(number, bool) or not isinstance(number, int):
        _fail(f"{path}.number", f"expected integer, got {type(number).__name__}")
    type_name = data.get("type")
    if not isinstance(type_name, str) or not type_name:
        _fail(f"{path}.type", "expected non-empty string")
    label = data.get("label", "optional")
    if label not in ("optional", "repeated"):
        _fail(f"{path}.label", f"invalid value {label!r}; expected one of: optional, repeated")
    required = data.get("required", False)
    if not isinstance(required, bool):
        _fail(f"{path}.required", f"expected boolean, got {type(required).__name__}")

    return FieldSnapshot(
        name=name,
        number=number,
        type=type_name,
        label="repeated" if label == "repeated" else "optional",
        required=required,
    )


def _local_type_name(type_name: str, package: str) -> str:
    stripped = type_name.lstrip(".")
    if package and stripped.startswith(f"{package}."):
        return stripped[len(package) + 1 :]
    return stripped


def _expect_object(value: object, path: str) -> dict[str, object]:
    if not isinstance(value, Mapping):
        _fail(path, f"expected object, got {type(value).__name__}")
    out: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            _fail(path, f"object keys must be strings, got {type(key).__name__}")
        out[key] = item
    return out


def _fail(path: str, message: str) -> NoReturn:
    raise SnapshotError(f"{path}: {message}")


__all__ = [
    "FieldSnapshot",
    "MessageSnapshot",
    "SchemaSnapshot",
    "SnapshotError",
    "SnapshotFormat",
    "current_snapshot",
    "dump_snapshot",
    "load_snapshot",
    "parse_proto_snapshot",
]
