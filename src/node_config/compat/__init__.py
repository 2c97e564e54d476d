"""Offline schema-compatibility checking over schema snapshots."""

from node_config.compat.checker import (
    CompatibilityKind,
    CompatibilityPolicy,
    CompatibilityViolation,
    check_compatibility,
)
from node_config.compat.snapshot import (
    FieldSnapshot,
    MessageSnapshot,
    SchemaSnapshot,
    SnapshotError,
    current_snapshot,
    dump_snapshot,
    load_snapshot,
    parse_proto_snapshot,
)

__all__ = [
    "CompatibilityKind",
    "CompatibilityPolicy",
    "CompatibilityViolation",
    "FieldSnapshot",
    "MessageSnapshot",
    "SchemaSnapshot",
    "SnapshotError",
    "check_compatibility",
    "current_snapshot",
    "dump_snapshot",
    "load_snapshot",
    "parse_proto_snapshot",
]
