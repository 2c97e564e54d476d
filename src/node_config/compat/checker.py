"""Schema evolution rules: compare an old and a new snapshot.

Configs written against the old schema must keep loading after the upgrade,
and configs missing a field the new schema depends on must not slip through.
For every field of the old snapshot:

- its field number must not change;
- its type may only widen within the varint encoding (``int32 -> int64``,
  ``uint32 -> uint64``, ``sint32 -> sint64``); cardinality must not change;
- if it was required it stays required, unless the policy allows dropping it
  together with a major version bump.

Fields that only exist in the new snapshot must be optional and must not
take over a number that belonged to another field.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Final

import structlog

from node_config.compat.snapshot import FieldSnapshot, MessageSnapshot, SchemaSnapshot

_WIDENINGS: Final[frozenset[tuple[str, str]]] = frozenset(
    {
        ("int32", "int64"),
        ("uint32", "uint64"),
        ("sint32", "sint64"),
    }
)


class CompatibilityKind(StrEnum):
    FIELD_NUMBER_CHANGED = "FieldNumberChanged"
    REQUIRED_FIELD_REMOVED_WITHOUT_VERSION_BUMP = "RequiredFieldRemovedWithoutVersionBump"
    INCOMPATIBLE_WIRE_TYPE_CHANGE = "IncompatibleWireTypeChange"
    NEW_FIELD_REQUIRED = "NewFieldRequired"
    FIELD_NUMBER_REUSED = "FieldNumberReused"


@dataclass(frozen=True, slots=True)
class CompatibilityViolation:
    """One (field path, rule violated) pair."""

    path: str
    kind: CompatibilityKind
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"path": self.path, "kind": self.kind.value, "message": self.message}

    def render(self) -> str:
        return f"{self.path}: [{self.kind.value}] {self.message}"


@dataclass(frozen=True, slots=True)
class CompatibilityPolicy:
    allow_required_removal_on_major_bump: bool = True


def check_compatibility(
    old: SchemaSnapshot,
    new: SchemaSnapshot,
    policy: CompatibilityPolicy | None = None,
    *,
    logger: Any | None = None,
) -> tuple[CompatibilityViolation, ...]:
    """Return every evolution rule ``new`` breaks relative to ``old``, sorted by path."""

    selected = policy if policy is not None else CompatibilityPolicy()
    log = logger if logger is not None else structlog.get_logger(__name__)
    major_bump = new.major > old.major
    may_drop_required = selected.allow_required_removal_on_major_bump and major_bump

    violations: list[CompatibilityViolation] = []
    for old_message in old.messages:
        new_message = new.message(old_message.name)
        violations.extend(_check_existing_fields(old_message, new_message, may_drop_required))
        if new_message is not None:
            violations.extend(_check_added_fields(old_message, new_message))

    ordered = tuple(sorted(violations, key=lambda item: (item.path, item.kind.value, item.message)))
    kinds = Counter(item.kind.value for item in ordered)
    log.info(
        "schema_compat_checked",
        old_version=old.version,
        new_version=new.version,
        major_bump=major_bump,
        violation_count=len(ordered),
        kinds=dict(sorted(kinds.items())),
    )
    return ordered


def _check_existing_fields(
    old_message: MessageSnapshot,
    new_message: MessageSnapshot | None,
    may_drop_required: bool,
) -> list[CompatibilityViolation]:
    out: list[CompatibilityViolation] = []
    for old_field in old_message.fields:
        path = f"{old_message.name}.{old_field.name}"
        new_field = new_message.field(old_field.name) if new_message is not None else None

        if new_field is None:
            if old_field.required and not may_drop_required:
                where = "field" if new_message is not None else f"message {old_message.name}"
                out.append(
                    CompatibilityViolation(
                        path=path,
                        kind=CompatibilityKind.REQUIRED_FIELD_REMOVED_WITHOUT_VERSION_BUMP,
                        message=f"required {where} removed without a major version bump",
                    )
                )
            continue

        if new_field.number != old_field.number:
            out.append(
                CompatibilityViolation(
                    path=path,
                    kind=CompatibilityKind.FIELD_NUMBER_CHANGED,
                    message=f"field number changed from {old_field.number} to {new_field.number}",
                )
            )
        if not _wire_compatible(old_field, new_field):
            out.append(
                CompatibilityViolation(
                    path=path,
                    kind=CompatibilityKind.INCOMPATIBLE_WIRE_TYPE_CHANGE,
                    message=(
                        f"type changed from {_describe(old_field)} to {_describe(new_field)}"
                    ),
                )
            )
        if old_field.required and not new_field.required and not may_drop_required:
            out.append(
                CompatibilityViolation(
                    path=path,
                    kind=CompatibilityKind.REQUIRED_FIELD_REMOVED_WITHOUT_VERSION_BUMP,
                    message="field is no longer required but the major version was not bumped",
                )
            )
    return out


def _check_added_fields(
    old_message: MessageSnapshot, new_message: MessageSnapshot
) -> list[CompatibilityViolation]:
    out: list[CompatibilityViolation] = []
    for new_field in new_message.fields:
        if old_message.field(new_field.name) is not None:
            continue
        path = f"{new_message.name}.{new_field.name}"
        if new_field.required:
            out.append(
                CompatibilityViolation(
                    path=path,
                    kind=CompatibilityKind.NEW_FIELD_REQUIRED,
                    message="new fields must be optional so existing configs keep loading",
                )
            )
        previous = old_message.field_by_number(new_field.number)
        if previous is not None:
            out.append(
                CompatibilityViolation(
                    path=path,
                    kind=CompatibilityKind.FIELD_NUMBER_REUSED,
                    message=(
                        f"field number {new_field.number} previously belonged to "
                        f"{old_message.name}.{previous.name}"
                    ),
                )
            )
    return out


def _wire_compatible(old_field: FieldSnapshot, new_field: FieldSnapshot) -> bool:
    if old_field.label != new_field.label:
        return False
    if old_field.type == new_field.type:
        return True
    return (old_field.type, new_field.type) in _WIDENINGS


def _describe(item: FieldSnapshot) -> str:
    if item.label == "repeated":
        return f"repeated {item.type}"
    return item.type


__all__ = [
    "CompatibilityKind",
    "CompatibilityPolicy",
    "CompatibilityViolation",
    "check_compatibility",
]
