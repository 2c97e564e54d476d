"""
node-config — unit tests for CLI routing

File: tests/unit/ui/test_cli.py

Purpose
- Verify argument wiring, output shapes and the exit-code contract of the
  check, compat and schema commands, run in-process.

What this test file should cover
- check: success, violations, unreadable files, self-reference policy flag.
- compat: compatible, incompatible, strict version policy, bad snapshots.
- schema: YAML and JSON snapshot output.
- Exception routing at the process boundary.

Functional requirements
- Offline only.

Non-functional requirements
- Deterministic.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING, Any

import pytest
import yaml

from node_config import main
from node_config.compat.snapshot import SchemaSnapshot, current_snapshot
from node_config.config.schema import ConfigValidationError
from node_config.observability import reset_logging
from node_config.ui.cli import run_cli

if TYPE_CHECKING:
    from collections.abc import Iterator

REPO_ROOT = Path(__file__).resolve().parents[3]
EXAMPLE_CONFIG = REPO_ROOT / "examples" / "node_config.json"
SCHEMA_PROTO = REPO_ROOT / "schemas" / "node_config.proto"


@pytest.fixture(autouse=True)
def _cleanup_logging() -> Iterator[None]:
    yield
    reset_logging()


def _example_document() -> dict[str, Any]:
    loaded = json.loads(EXAMPLE_CONFIG.read_text(encoding="utf-8"))
    assert isinstance(loaded, dict)
    return loaded


def _write(path: Path, contents: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(contents, encoding="utf-8")
    return path


def _proto_variant(tmp_path: Path, name: str, old: str, new: str) -> Path:
    text = SCHEMA_PROTO.read_text(encoding="utf-8")
    assert old in text
    return _write(tmp_path / name, text.replace(old, new))


# ---------------------------------------------------------------------------
# check
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_check_valid_config_prints_summary(capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = run_cli(["check", str(EXAMPLE_CONFIG)])

    out = capsys.readouterr().out
    assert exit_code == 0
    assert f"{EXAMPLE_CONFIG}: OK" in out
    assert "Validators: 1" in out
    assert "Consensus: enabled" in out


@pytest.mark.unit
def test_check_json_reports_every_violation(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    document = _example_document()
    del document["executor"]["serverAddr"]
    document["executor"]["genesisBlock"] = "abc"
    path = _write(tmp_path / "node.json", json.dumps(document))

    exit_code = run_cli(["check", str(path), "--json"])

    payload = json.loads(capsys.readouterr().out)
    assert exit_code == 2
    assert payload["valid"] is False
    assert "config" not in payload
    assert [(item["path"], item["kind"], item["category"]) for item in payload["violations"]] == [
        ("executor.serverAddr", "MissingRequiredField", "required"),
        ("executor.genesisBlock", "InvalidHexEncoding", "format"),
    ]


@pytest.mark.unit
def test_check_text_groups_violations_by_category(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    document = _example_document()
    del document["executor"]["gossip"]["key"]
    document["metricsServerAddr"] = "::1:9090"
    path = _write(tmp_path / "node.yaml", yaml.safe_dump(document))

    exit_code = run_cli(["check", str(path)])

    out = capsys.readouterr().out
    assert exit_code == 2
    assert "2 violations" in out
    assert out.index("Missing required fields:") < out.index("Malformed values:")
    assert "executor.gossip.key: [MissingRequiredField]" in out
    assert "metricsServerAddr: [InvalidNetworkAddressFormat]" in out


@pytest.mark.unit
def test_check_self_reference_flag(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    document = _example_document()
    gossip = document["executor"]["gossip"]
    gossip["staticInbound"].append(gossip["key"])
    path = _write(tmp_path / "node.json", json.dumps(document))

    assert run_cli(["check", str(path)]) == 2
    assert "SelfReferencePeerConflict" in capsys.readouterr().out
    assert run_cli(["check", str(path), "--self-reference", "ignore"]) == 0


@pytest.mark.unit
def test_check_oversized_numbers_are_config_errors(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    document = _example_document()
    document["executor"]["serverAddr"] = "0.0.0.0:" + "9" * 5000
    document["executor"]["gossip"]["dynamicInboundLimit"] = "9" * 5000
    path = _write(tmp_path / "node.json", json.dumps(document))

    exit_code = run_cli(["check", str(path), "--json"])

    payload = json.loads(capsys.readouterr().out)
    assert exit_code == 2
    assert [item["kind"] for item in payload["violations"]] == [
        "InvalidPortRange",
        "InvalidFieldType",
    ]


@pytest.mark.unit
def test_check_unreadable_config_is_a_config_error(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    exit_code = run_cli(["check", str(tmp_path / "missing.json")])

    assert exit_code == 2
    assert "error: unable to read config file" in capsys.readouterr().err


# ---------------------------------------------------------------------------
# compat
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_compat_identical_snapshots(capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = run_cli(["compat", str(SCHEMA_PROTO), str(SCHEMA_PROTO)])

    assert exit_code == 0
    assert "no evolution rule violated" in capsys.readouterr().out


@pytest.mark.unit
def test_compat_reports_renumbered_field(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    new = _proto_variant(
        tmp_path,
        "new.proto",
        "optional uint64 dynamic_inbound_limit = 2;",
        "optional uint64 dynamic_inbound_limit = 7;",
    )

    exit_code = run_cli(["compat", str(SCHEMA_PROTO), str(new), "--json"])

    payload = json.loads(capsys.readouterr().out)
    assert exit_code == 1
    assert payload["compatible"] is False
    assert payload["violations"] == [
        {
            "path": "GossipConfig.dynamic_inbound_limit",
            "kind": "FieldNumberChanged",
            "message": "field number changed from 2 to 7",
        }
    ]


@pytest.mark.unit
def test_compat_strict_version_flag(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    new = _proto_variant(
        tmp_path,
        "v2.proto",
        "// schema-version: 1.0.0",
        "// schema-version: 2.0.0",
    )
    text = new.read_text(encoding="utf-8").replace(
        "  optional string genesis_block = 5; // [required] FinalBlock\n", ""
    )
    _write(new, text)

    assert run_cli(["compat", str(SCHEMA_PROTO), str(new)]) == 0
    assert run_cli(["compat", str(SCHEMA_PROTO), str(new), "--strict-version"]) == 1
    assert "ExecutorConfig.genesis_block" in capsys.readouterr().out


@pytest.mark.unit
def test_compat_accepts_yaml_snapshot_from_schema_command(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    assert run_cli(["schema"]) == 0
    snapshot_path = _write(tmp_path / "snapshot.yaml", capsys.readouterr().out)

    assert run_cli(["compat", str(snapshot_path), str(SCHEMA_PROTO)]) == 0


@pytest.mark.unit
def test_compat_bad_snapshot_is_a_config_error(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    broken = _write(tmp_path / "old.proto", "message Broken {\n  string key = 1;\n}\n")

    exit_code = run_cli(["compat", str(broken), str(SCHEMA_PROTO)])

    assert exit_code == 2
    assert "must be declared optional or repeated" in capsys.readouterr().err


# ---------------------------------------------------------------------------
# schema and process boundary
# ---------------------------------------------------------------------------


@pytest.mark.unit
@pytest.mark.parametrize("fmt", ["yaml", "json"])
def test_schema_prints_current_snapshot(fmt: str, capsys: pytest.CaptureFixture[str]) -> None:
    assert run_cli(["schema", "--format", fmt]) == 0

    out = capsys.readouterr().out
    loaded = json.loads(out) if fmt == "json" else yaml.safe_load(out)
    assert SchemaSnapshot.from_dict(loaded) == current_snapshot()


@pytest.mark.unit
def test_invalid_log_level_is_a_config_error(capsys: pytest.CaptureFixture[str]) -> None:
    assert run_cli(["schema", "--log-level", "loud"]) == 2
    assert "unsupported logging level" in capsys.readouterr().err


@pytest.mark.unit
def test_entrypoint_normalizes_argparse_exit(capsys: pytest.CaptureFixture[str]) -> None:
    assert main.cli_entrypoint([]) == 2
    assert main.cli_entrypoint(["check", str(EXAMPLE_CONFIG)]) == 0
    capsys.readouterr()


@pytest.mark.unit
def test_exception_routing_follows_cause_chain() -> None:
    validation = ConfigValidationError([])
    wrapped = RuntimeError("wrapper")
    wrapped.__cause__ = validation

    assert main._route_exception(validation) is main.ExitCode.CONFIG_ERROR
    assert main._route_exception(wrapped) is main.ExitCode.CONFIG_ERROR
    assert main._route_exception(FileNotFoundError("x")) is main.ExitCode.CONFIG_ERROR
    assert main._route_exception(RuntimeError("boom")) is main.ExitCode.INTERNAL_ERROR


@pytest.mark.unit
def test_exception_routing_follows_implicit_context_unless_suppressed() -> None:
    implicit = RuntimeError("while handling")
    implicit.__context__ = ConfigValidationError([])
    suppressed = RuntimeError("from None")
    suppressed.__context__ = ConfigValidationError([])
    suppressed.__suppress_context__ = True

    assert main._route_exception(implicit) is main.ExitCode.CONFIG_ERROR
    assert main._route_exception(suppressed) is main.ExitCode.INTERNAL_ERROR
