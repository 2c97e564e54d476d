"""
node-config — unit tests for the config schema declaration

File: tests/unit/config/test_schema.py

Purpose
- Validate the message/field table and the required-path table derived from it.

What this test file should cover
- Required paths, JSON names and field lookup rules.
- Agreement between the in-code declaration and schemas/node_config.proto.

Functional requirements
- Offline only.

Non-functional requirements
- Deterministic.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from node_config.compat.snapshot import current_snapshot, parse_proto_snapshot
from node_config.config import schema
from node_config.constants import SCHEMA_PACKAGE, SCHEMA_VERSION

REPO_ROOT = Path(__file__).resolve().parents[3]
PROTO_PATH = REPO_ROOT / "schemas" / "node_config.proto"


@pytest.mark.unit
def test_required_paths_follow_schema_annotations() -> None:
    assert schema.REQUIRED_PATHS == (
        "executor",
        "executor.serverAddr",
        "executor.gossip",
        "executor.gossip.key",
        "executor.gossip.dynamicInboundLimit",
        "executor.gossip.staticOutbound[].key",
        "executor.gossip.staticOutbound[].addr",
        "executor.genesisBlock",
        "executor.validators",
        "consensus.key",
        "consensus.publicAddr",
    )


@pytest.mark.unit
def test_optional_fields_are_not_required() -> None:
    root = schema.root_spec()

    assert not root.field("metrics_server_addr").required
    assert not root.field("consensus").required
    assert not schema.message_spec("GossipConfig").field("staticInbound").required


@pytest.mark.unit
@pytest.mark.parametrize(
    ("proto_name", "expected"),
    [
        ("key", "key"),
        ("server_addr", "serverAddr"),
        ("dynamic_inbound_limit", "dynamicInboundLimit"),
        ("metrics_server_addr", "metricsServerAddr"),
    ],
)
def test_json_name_is_lower_camel_case(proto_name: str, expected: str) -> None:
    assert schema.json_name(proto_name) == expected


@pytest.mark.unit
def test_lookup_prefers_json_name_and_accepts_proto_name() -> None:
    spec = schema.message_spec("ExecutorConfig").field("server_addr")

    assert schema.lookup({"serverAddr": "a", "server_addr": "b"}, spec) == "a"
    assert schema.lookup({"server_addr": "b"}, spec) == "b"
    assert schema.lookup({"serverAddr": None, "server_addr": "b"}, spec) == "b"
    assert schema.lookup({"serverAddr": None}, spec) is None
    assert schema.lookup({}, spec) is None


@pytest.mark.unit
def test_field_lookup_by_either_name() -> None:
    gossip = schema.message_spec("GossipConfig")

    assert gossip.field("static_outbound") is gossip.field("staticOutbound")
    with pytest.raises(KeyError, match="no field"):
        gossip.field("peers")
    with pytest.raises(KeyError, match="unknown message"):
        schema.message_spec("ValidatorConfig")


@pytest.mark.unit
def test_known_keys_include_both_spellings() -> None:
    keys = schema.known_keys(schema.root_spec())

    assert keys == frozenset(
        {"executor", "metrics_server_addr", "metricsServerAddr", "consensus"}
    )


@pytest.mark.unit
def test_display_name_mentions_string_encoding() -> None:
    field = schema.message_spec("ExecutorConfig").field("validators")

    assert field.display_name == "validator set public key (ValidatorPublicKey)"


@pytest.mark.unit
def test_field_numbers_are_unique_per_message() -> None:
    for spec in schema.MESSAGES.values():
        numbers = [item.number for item in spec.fields]
        assert len(numbers) == len(set(numbers)), spec.name


@pytest.mark.unit
def test_message_references_resolve() -> None:
    for spec in schema.MESSAGES.values():
        for item in spec.fields:
            assert item.type in schema.MESSAGES or item.type in {"string", "uint64"}


@pytest.mark.unit
def test_shipped_proto_matches_in_code_schema() -> None:
    from_proto = parse_proto_snapshot(PROTO_PATH.read_text(encoding="utf-8"))

    assert from_proto.version == SCHEMA_VERSION
    assert from_proto.package == SCHEMA_PACKAGE
    assert from_proto == current_snapshot()


@pytest.mark.unit
def test_validation_error_lists_every_violation() -> None:
    from node_config.domain.violations import ConfigViolation, ViolationKind

    error = schema.ConfigValidationError(
        [
            ConfigViolation("executor.serverAddr", ViolationKind.MISSING_REQUIRED_FIELD, "missing"),
            ConfigViolation("executor.genesisBlock", ViolationKind.INVALID_HEX_ENCODING, "bad hex"),
        ]
    )

    assert len(error.violations) == 2
    assert "executor.serverAddr: [MissingRequiredField] missing" in str(error)
    assert "executor.genesisBlock: [InvalidHexEncoding] bad hex" in str(error)
