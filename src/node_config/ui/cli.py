"""Command-line interface router for node-config."""

from __future__ import annotations

import argparse
import json
import sys
from collections import Counter
from collections.abc import Mapping, Sequence

from node_config.compat import (
    CompatibilityPolicy,
    CompatibilityViolation,
    SnapshotError,
    check_compatibility,
    current_snapshot,
    dump_snapshot,
    load_snapshot,
)
from node_config.config import (
    ConfigDecodeError,
    ConfigLoader,
    LoadPolicy,
    SelfReferencePolicy,
    read_document,
)
from node_config.domain.models import NodeConfig
from node_config.domain.violations import ConfigViolation
from node_config.main import ExitCode
from node_config.observability import LoggingConfig, log_context, setup_logging
from node_config.ui.render import CLIRenderer, create_renderer

_CATEGORY_TITLES: dict[str, str] = {
    "required": "Missing required fields:",
    "format": "Malformed values:",
    "consistency": "Inconsistent values:",
}


class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    def __init__(self, message: str, exit_code: int = int(ExitCode.CONFIG_ERROR)) -> None:
        super().__init__(message)
        self.message = message
        self.exit_code = exit_code

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse command router for all supported CLI workflows."""

    parser = argparse.ArgumentParser(
        prog="node-config",
        description=(
            "node-config — validate node configs and schema evolution.\n\n"
            "Common workflows:\n"
            "  node-config check node.json              Validate a node config\n"
            "  node-config compat old.proto new.proto   Check schema evolution rules\n"
            "  node-config schema                       Print the current schema snapshot\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--log-level",
        default="WARNING",
        help="Minimum level of log events written to stderr (default: WARNING).",
    )
    common.add_argument(
        "--log-json",
        action="store_true",
        default=False,
        help="Write log events as JSON lines instead of console text.",
    )
    common.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        default=False,
        help="Show detailed output.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # check ---------------------------------------------------------------
    check_parser = subparsers.add_parser(
        "check",
        parents=[common],
        help="Load and validate a node config document",
        description=(
            "Load a JSON or YAML node config and report every violation at once.\n\n"
            "Examples:\n"
            "  node-config check node.json\n"
            "  node-config check node.yaml --self-reference warn\n"
            "  node-config check node.json --json\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    check_parser.add_argument("config_path", help="Path to a .json, .yaml or .yml config")
    check_parser.add_argument(
        "--self-reference",
        choices=[item.value for item in SelfReferencePolicy],
        default=SelfReferencePolicy.ERROR.value,
        help="How to treat the node's own gossip key listed as a peer (default: error).",
    )
    check_parser.add_argument("--json", action="store_true", help="Emit deterministic JSON output")
    check_parser.set_defaults(handler=_cmd_check)

    # compat --------------------------------------------------------------
    compat_parser = subparsers.add_parser(
        "compat",
        parents=[common],
        help="Compare two schema snapshots for evolution-rule violations",
        description=(
            "Compare an old and a new schema snapshot (.proto, .yaml, .yml, .json).\n\n"
            "Examples:\n"
            "  node-config compat schemas/v1.proto schemas/node_config.proto\n"
            "  node-config compat old.yaml new.yaml --strict-version --json\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    compat_parser.add_argument("old_path", help="Snapshot the released configs were written for")
    compat_parser.add_argument("new_path", help="Snapshot about to be released")
    compat_parser.add_argument(
        "--strict-version",
        action="store_true",
        default=False,
        help="Reject required-field removal even together with a major version bump.",
    )
    compat_parser.add_argument("--json", action="store_true", help="Emit deterministic JSON output")
    compat_parser.set_defaults(handler=_cmd_compat)

    # schema --------------------------------------------------------------
    schema_parser = subparsers.add_parser(
        "schema",
        parents=[common],
        help="Print the schema snapshot configs are loaded against",
        description=(
            "Print the in-code schema as a snapshot document, suitable as the\n"
            "OLD input of a later compat run.\n\n"
            "Examples:\n"
            "  node-config schema > schemas/snapshot-1.0.0.yaml\n"
            "  node-config schema --format json\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    schema_parser.add_argument(
        "--format",
        dest="output_format",
        choices=["yaml", "json"],
        default="yaml",
        help="Snapshot document format (default: yaml).",
    )
    schema_parser.set_defaults(handler=_cmd_schema)

    return parser


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse argv, route to a command handler, and return process exit code."""

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return int(ExitCode.CONFIG_ERROR)

    try:
        setup_logging(
            LoggingConfig(level=namespace.log_level, json_output=_flag(namespace, "log_json"))
        )
    except ValueError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return int(ExitCode.CONFIG_ERROR)

    try:
        with log_context(command=namespace.command):
            result = handler(namespace)
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code
    return int(result)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_check(args: argparse.Namespace) -> int:
    try:
        document = read_document(args.config_path)
    except ConfigDecodeError as exc:
        raise CLIError(str(exc)) from exc

    loader = ConfigLoader(LoadPolicy(self_reference=SelfReferencePolicy(args.self_reference)))
    result = loader.validate(document)
    exit_code = ExitCode.SUCCESS if result.is_valid else ExitCode.CONFIG_ERROR

    if _flag(args, "json"):
        payload: dict[str, object] = {
            "command": "check",
            "path": str(args.config_path),
            "valid": result.is_valid,
            "violations": [item.to_dict() for item in result.violations],
        }
        if result.config is not None:
            payload["config"] = result.config.to_dict()
        _emit_json(payload)
        return int(exit_code)

    renderer = _get_renderer(args)
    if result.config is not None:
        renderer.heading(f"{args.config_path}: OK")
        _render_summary(renderer, result.config)
    else:
        _render_violations(renderer, str(args.config_path), result.violations)
    return int(exit_code)


def _cmd_compat(args: argparse.Namespace) -> int:
    try:
        old = load_snapshot(args.old_path)
        new = load_snapshot(args.new_path)
    except SnapshotError as exc:
        raise CLIError(str(exc)) from exc

    policy = CompatibilityPolicy(
        allow_required_removal_on_major_bump=not _flag(args, "strict_version")
    )
    violations = check_compatibility(old, new, policy)
    exit_code = ExitCode.COMPATIBILITY_VIOLATIONS if violations else ExitCode.SUCCESS

    if _flag(args, "json"):
        _emit_json(
            {
                "command": "compat",
                "old_version": old.version,
                "new_version": new.version,
                "compatible": not violations,
                "violations": [item.to_dict() for item in violations],
            }
        )
        return int(exit_code)

    renderer = _get_renderer(args)
    renderer.heading(f"Schema {old.version} -> {new.version}")
    if not violations:
        renderer.ok("no evolution rule violated")
        return int(exit_code)
    _render_compat_violations(renderer, violations)
    return int(exit_code)


def _cmd_schema(args: argparse.Namespace) -> int:
    sys.stdout.write(dump_snapshot(current_snapshot(), args.output_format))
    return int(ExitCode.SUCCESS)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _emit_json(payload: Mapping[str, object]) -> None:
    """Emit a JSON payload to stdout with deterministic formatting."""

    print(json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False))


def _get_renderer(args: argparse.Namespace) -> CLIRenderer:
    return create_renderer(verbose=_flag(args, "verbose"))


def _render_summary(renderer: CLIRenderer, config: NodeConfig) -> None:
    executor = config.executor
    renderer.kv("Server address", executor.server_addr)
    renderer.kv("Gossip key", executor.gossip.key)
    renderer.kv("Validators", len(executor.validators))
    renderer.kv(
        "Gossip peers",
        f"{len(executor.gossip.static_inbound)} inbound, "
        f"{len(executor.gossip.static_outbound)} outbound",
    )
    renderer.kv("Consensus", "enabled" if config.is_validator else "disabled")
    renderer.kv("Metrics", config.metrics_server_addr or "disabled")
    if renderer.verbose:
        renderer.kv("Genesis digest", executor.genesis_block.digest)


def _render_violations(
    renderer: CLIRenderer, path: str, violations: Sequence[ConfigViolation]
) -> None:
    counts = Counter(item.kind.category for item in violations)
    noun = "violation" if len(violations) == 1 else "violations"
    renderer.heading(f"{path}: {len(violations)} {noun}")
    for category, title in _CATEGORY_TITLES.items():
        if not counts[category]:
            continue
        renderer.section(title)
        for item in violations:
            if item.kind.category != category:
                continue
            renderer.fail(item.render())
            if renderer.verbose and item.field_name:
                renderer.items([f"field: {item.field_name}"], prefix="  ")


def _render_compat_violations(
    renderer: CLIRenderer, violations: Sequence[CompatibilityViolation]
) -> None:
    noun = "violation" if len(violations) == 1 else "violations"
    renderer.section(f"{len(violations)} evolution rule {noun}:")
    for item in violations:
        renderer.fail(item.render())


def _flag(args: argparse.Namespace, name: str) -> bool:
    return bool(getattr(args, name, False))


__all__ = ["CLIError", "build_parser", "run_cli"]
