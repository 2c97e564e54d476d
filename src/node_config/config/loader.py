"""
node-config — config loader.

File: src/node_config/config/loader.py

Purpose
- Turn a raw node config document into a typed ``NodeConfig`` or a complete,
  ordered list of violations.

What should be included in this file
- Document decoding (mapping, JSON text, or a JSON/YAML file).
- Required-field validation, per-field format parsing, and the gossip
  self-reference consistency check.
- Assembly of the immutable typed config.

Functional requirements
- Never stop at the first problem: report every violation of one document.
- Ignore unknown fields so newer documents load on older nodes.
- Unset optional fields stay ``None``; no silent defaults.

Non-functional requirements
- Pure and idempotent: the same document yields the same result.
"""

from __future__ import annotations

import json
from collections import Counter
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import Any, Final, TypeVar

import structlog
import yaml

from node_config.config.required import find_missing_required
from node_config.config.schema import (
    ConfigValidationError,
    MessageSpec,
    join_path,
    known_keys,
    lookup,
    message_spec,
)
from node_config.constants import MAX_UINT64, YAML_SUFFIXES
from node_config.domain.encodings import (
    NodeKey,
    parse_genesis_block,
    parse_network_address,
    parse_node_key,
    parse_validator_key,
)
from node_config.domain.models import (
    ConsensusConfig,
    ExecutorConfig,
    GossipConfig,
    NodeAddr,
    NodeConfig,
)
from node_config.domain.violations import (
    ConfigViolation,
    FormatError,
    ViolationCollector,
    ViolationKind,
)

T = TypeVar("T")

ConfigDocument = Mapping[str, object] | str | bytes

_ROOT_PATH: Final[str] = ""
_MAX_UINT64_DIGITS: Final[int] = len(str(MAX_UINT64))
_DESCRIBE_LIMIT: Final[int] = 64


class SelfReferencePolicy(StrEnum):
    """How to treat a node listing its own gossip key among its peers."""

    ERROR = "error"
    WARN = "warn"
    IGNORE = "ignore"


@dataclass(frozen=True, slots=True)
class LoadPolicy:
    self_reference: SelfReferencePolicy = SelfReferencePolicy.ERROR


class ConfigDecodeError(ValueError):
    """Raised when a document cannot be read or is not a JSON/YAML object."""


@dataclass(frozen=True, slots=True)
class ConfigLoadResult:
    """Typed config when loading succeeded, otherwise the violations."""

    config: NodeConfig | None
    violations: tuple[ConfigViolation, ...]

    @property
    def is_valid(self) -> bool:
        return self.config is not None and not self.violations

    def unwrap(self) -> NodeConfig:
        if self.config is None:
            raise ConfigValidationError(self.violations)
        return self.config


class ConfigLoader:
    """Validate raw documents and assemble ``NodeConfig`` instances."""

    def __init__(self, policy: LoadPolicy | None = None, *, logger: Any | None = None) -> None:
        self.policy = policy if policy is not None else LoadPolicy()
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    def validate(self, document: ConfigDocument) -> ConfigLoadResult:
        """Run every check and return the config or all violations."""

        root = decode_document(document)
        required = find_missing_required(root)
        assembler = _Assembler(self.policy, self._logger)
        config = assembler.node_config(root)
        violations = (*required, *assembler.violations(), *assembler.consistency_violations())

        if violations:
            kinds = Counter(item.kind.value for item in violations)
            self._logger.info(
                "config_load_rejected",
                violation_count=len(violations),
                kinds=dict(sorted(kinds.items())),
            )
            return ConfigLoadResult(config=None, violations=violations)

        if config is None:
            raise AssertionError("config assembly failed without reporting a violation")
        self._logger.info(
            "config_load_completed",
            validator=config.is_validator,
            metrics=config.metrics_server_addr is not None,
            validators=len(config.executor.validators),
            static_inbound=len(config.executor.gossip.static_inbound),
            static_outbound=len(config.executor.gossip.static_outbound),
        )
        return ConfigLoadResult(config=config, violations=())

    def load(self, document: ConfigDocument) -> NodeConfig:
        """Return the typed config or raise ``ConfigValidationError``."""

        return self.validate(document).unwrap()

    def load_file(self, path: str | Path) -> NodeConfig:
        return self.load(read_document(path))


def load_node_config(document: ConfigDocument, *, policy: LoadPolicy | None = None) -> NodeConfig:
    return ConfigLoader(policy).load(document)


def validate_node_config(
    document: ConfigDocument, *, policy: LoadPolicy | None = None
) -> ConfigLoadResult:
    return ConfigLoader(policy).validate(document)


def load_config_file(path: str | Path, *, policy: LoadPolicy | None = None) -> NodeConfig:
    """Load a config from a ``.json``, ``.yaml`` or ``.yml`` file."""

    return ConfigLoader(policy).load_file(path)


def decode_document(document: ConfigDocument) -> dict[str, object]:
    """Decode JSON text (or pass through a mapping) into a plain dict."""

    parsed: object
    if isinstance(document, bytes):
        try:
            document = document.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ConfigDecodeError(f"config document is not valid UTF-8: {exc}") from exc
    if isinstance(document, str):
        try:
            parsed = json.loads(document)
        except ValueError as exc:
            # JSONDecodeError, or an integer literal past the int conversion limit
            raise ConfigDecodeError(f"invalid JSON: {exc}") from exc
    else:
        parsed = document

    if not isinstance(parsed, Mapping):
        raise ConfigDecodeError(f"config root must be an object, got {type(parsed).__name__}")
    out: dict[str, object] = {}
    for key, value in parsed.items():
        if not isinstance(key, str):
            raise ConfigDecodeError(f"object keys must be strings, got {type(key).__name__}")
        out[key] = value
    return out


def read_document(path: str | Path) -> dict[str, object]:
    """Read and decode a JSON or YAML config file."""

    resolved = Path(path).expanduser()
    try:
        text = resolved.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigDecodeError(f"unable to read config file {resolved}: {exc}") from exc

    if resolved.suffix.lower() in YAML_SUFFIXES:
        try:
            loaded = yaml.safe_load(text)
        except (yaml.YAMLError, ValueError) as exc:
            raise ConfigDecodeError(f"invalid YAML in {resolved}: {exc}") from exc
        if loaded is None:
            loaded = {}
        return decode_document(loaded)

    try:
        return decode_document(text)
    except ConfigDecodeError as exc:
        raise ConfigDecodeError(f"{resolved}: {exc}") from exc


class _Assembler:
    """Walks a decoded document, parsing present fields and collecting failures.

    Builders return ``None`` whenever a part could not be built; the loader
    only trusts the result when no violation was collected.
    """

    def __init__(self, policy: LoadPolicy, logger: Any) -> None:
        self._policy = policy
        self._logger = logger
        self._collector = ViolationCollector()
        self._consistency = ViolationCollector()

    def violations(self) -> tuple[ConfigViolation, ...]:
        return self._collector.items()

    def consistency_violations(self) -> tuple[ConfigViolation, ...]:
        return self._consistency.items()

    def node_config(self, payload: Mapping[str, object]) -> NodeConfig | None:
        spec = message_spec("NodeConfig")
        self._note_unknown(payload, spec, _ROOT_PATH)
        executor = self._message(payload, spec, "executor", _ROOT_PATH, self.executor_config)
        metrics = self._parsed(
            payload, spec, "metrics_server_addr", _ROOT_PATH, parse_network_address
        )
        consensus = self._message(payload, spec, "consensus", _ROOT_PATH, self.consensus_config)
        if executor is None:
            return None
        return NodeConfig(executor=executor, metrics_server_addr=metrics, consensus=consensus)

    def executor_config(self, payload: Mapping[str, object], path: str) -> ExecutorConfig | None:
        spec = message_spec("ExecutorConfig")
        self._note_unknown(payload, spec, path)
        server_addr = self._parsed(payload, spec, "server_addr", path, parse_network_address)
        gossip = self._message(payload, spec, "gossip", path, self.gossip_config)
        genesis = self._parsed(payload, spec, "genesis_block", path, parse_genesis_block)
        validators = _complete(
            self._parsed_list(payload, spec, "validators", path, parse_validator_key)
        )
        if server_addr is None or gossip is None or genesis is None or not validators:
            return None
        return ExecutorConfig(
            server_addr=server_addr,
            gossip=gossip,
            genesis_block=genesis,
            validators=validators,
        )

    def gossip_config(self, payload: Mapping[str, object], path: str) -> GossipConfig | None:
        spec = message_spec("GossipConfig")
        self._note_unknown(payload, spec, path)
        key = self._parsed(payload, spec, "key", path, parse_node_key)
        limit = self._uint64(payload, spec, "dynamic_inbound_limit", path)
        inbound = self._parsed_list(payload, spec, "static_inbound", path, parse_node_key)
        outbound = self._message_list(payload, spec, "static_outbound", path, self.node_addr)
        if key is not None:
            self._scan_self_references(payload, spec, path, key, inbound)

        static_inbound = _complete(inbound)
        static_outbound = _complete(outbound)
        if key is None or limit is None or static_inbound is None or static_outbound is None:
            return None
        return GossipConfig(
            key=key,
            dynamic_inbound_limit=limit,
            static_inbound=frozenset(static_inbound),
            static_outbound=static_outbound,
        )

    def _scan_self_references(
        self,
        payload: Mapping[str, object],
        spec: MessageSpec,
        path: str,
        key: NodeKey,
        inbound: list[NodeKey | None] | None,
    ) -> None:
        # Runs on whatever peer entries parsed, so a conflict is reported
        # alongside failures in sibling fields.
        inbound_path = join_path(path, spec.field("static_inbound").json_name)
        for index, peer in enumerate(inbound or ()):
            if peer == key:
                self._self_reference(f"{inbound_path}[{index}]")

        outbound_field = spec.field("static_outbound")
        outbound_path = join_path(path, outbound_field.json_name)
        entries = lookup(payload, outbound_field)
        if not isinstance(entries, list):
            return
        key_field = message_spec("NodeAddr").field("key")
        for index, entry in enumerate(entries):
            if not isinstance(entry, Mapping):
                continue
            raw_key = lookup(entry, key_field)
            if raw_key is None:
                continue
            try:
                peer = parse_node_key(raw_key)
            except FormatError:
                # node_addr already collected this entry's key failure.
                continue
            if peer == key:
                self._self_reference(f"{outbound_path}[{index}].{key_field.json_name}")

    def node_addr(self, payload: Mapping[str, object], path: str) -> NodeAddr | None:
        spec = message_spec("NodeAddr")
        self._note_unknown(payload, spec, path)
        key = self._parsed(payload, spec, "key", path, parse_node_key)
        addr = self._parsed(payload, spec, "addr", path, parse_network_address)
        if key is None or addr is None:
            return None
        return NodeAddr(key=key, addr=addr)

    def consensus_config(
        self, payload: Mapping[str, object], path: str
    ) -> ConsensusConfig | None:
        spec = message_spec("ConsensusConfig")
        self._note_unknown(payload, spec, path)
        key = self._parsed(payload, spec, "key", path, parse_validator_key)
        public_addr = self._parsed(payload, spec, "public_addr", path, parse_network_address)
        if key is None or public_addr is None:
            return None
        return ConsensusConfig(key=key, public_addr=public_addr)

    def _parsed(
        self,
        payload: Mapping[str, object],
        spec: MessageSpec,
        name: str,
        path: str,
        parser: Callable[[object], T],
    ) -> T | None:
        field = spec.field(name)
        value = lookup(payload, field)
        if value is None:
            return None
        try:
            return parser(value)
        except FormatError as exc:
            self._collector.add(exc.at(join_path(path, field.json_name), field.display_name))
            return None

    def _parsed_list(
        self,
        payload: Mapping[str, object],
        spec: MessageSpec,
        name: str,
        path: str,
        parser: Callable[[object], T],
    ) -> list[T | None] | None:
        """Parse each entry; failed entries hold ``None`` in their slot."""
        field = spec.field(name)
        field_path = join_path(path, field.json_name)
        value = lookup(payload, field)
        if value is None:
            return []
        if not isinstance(value, list):
            self._type_error(field_path, field.display_name, "a list", value)
            return None

        parsed: list[T | None] = []
        for index, entry in enumerate(value):
            try:
                parsed.append(parser(entry))
            except FormatError as exc:
                self._collector.add(exc.at(f"{field_path}[{index}]", field.display_name))
                parsed.append(None)
        return parsed

    def _message(
        self,
        payload: Mapping[str, object],
        spec: MessageSpec,
        name: str,
        path: str,
        build: Callable[[Mapping[str, object], str], T | None],
    ) -> T | None:
        field = spec.field(name)
        value = lookup(payload, field)
        if value is None:
            return None
        field_path = join_path(path, field.json_name)
        if not isinstance(value, Mapping):
            self._type_error(field_path, field.display_name, "an object", value)
            return None
        return build(value, field_path)

    def _message_list(
        self,
        payload: Mapping[str, object],
        spec: MessageSpec,
        name: str,
        path: str,
        build: Callable[[Mapping[str, object], str], T | None],
    ) -> list[T | None] | None:
        field = spec.field(name)
        field_path = join_path(path, field.json_name)
        value = lookup(payload, field)
        if value is None:
            return []
        if not isinstance(value, list):
            self._type_error(field_path, field.display_name, "a list", value)
            return None

        built: list[T | None] = []
        for index, entry in enumerate(value):
            entry_path = f"{field_path}[{index}]"
            if not isinstance(entry, Mapping):
                self._type_error(entry_path, field.display_name, "an object", entry)
                built.append(None)
                continue
            built.append(build(entry, entry_path))
        return built

    def _uint64(
        self,
        payload: Mapping[str, object],
        spec: MessageSpec,
        name: str,
        path: str,
    ) -> int | None:
        # proto3 JSON carries 64-bit integers as numbers or decimal strings.
        field = spec.field(name)
        value = lookup(payload, field)
        if value is None:
            return None
        field_path = join_path(path, field.json_name)
        parsed: int | None = None
        if isinstance(value, int) and not isinstance(value, bool):
            parsed = value
        elif isinstance(value, str) and value.isascii() and value.isdigit():
            significant = value.lstrip("0")
            if len(significant) <= _MAX_UINT64_DIGITS:
                parsed = int(significant or "0")
        if parsed is None or not 0 <= parsed <= MAX_UINT64:
            self._type_error(field_path, field.display_name, "a non-negative 64-bit integer", value)
            return None
        return parsed

    def _type_error(self, path: str, field_name: str, expected: str, value: object) -> None:
        self._collector.add(
            ConfigViolation(
                path=path,
                kind=ViolationKind.INVALID_FIELD_TYPE,
                message=f"expected {expected}, got {_describe(value)}",
                field_name=field_name,
            )
        )

    def _self_reference(self, path: str) -> None:
        policy = self._policy.self_reference
        if policy is SelfReferencePolicy.IGNORE:
            return
        if policy is SelfReferencePolicy.WARN:
            self._logger.warning("config_self_reference_tolerated", path=path)
            return
        self._consistency.add(
            ConfigViolation(
                path=path,
                kind=ViolationKind.SELF_REFERENCE_PEER_CONFLICT,
                message="node lists its own gossip key as a peer",
                field_name="gossip peer key",
            )
        )

    def _note_unknown(self, payload: Mapping[str, object], spec: MessageSpec, path: str) -> None:
        allowed = known_keys(spec)
        for key in sorted(str(item) for item in payload):
            if key not in allowed:
                self._logger.debug("config_unknown_field_ignored", path=join_path(path, key))


def _complete(items: list[T | None] | None) -> tuple[T, ...] | None:
    if items is None or any(item is None for item in items):
        return None
    return tuple(item for item in items if item is not None)


def _describe(value: object) -> str:
    if isinstance(value, int) and not isinstance(value, bool):
        return f"integer {value}"
    if isinstance(value, str):
        if len(value) > _DESCRIBE_LIMIT:
            return f"string of length {len(value)}"
        return f"string {value!r}"
    return type(value).__name__


__all__ = [
    "ConfigDecodeError",
    "ConfigDocument",
    "ConfigLoadResult",
    "ConfigLoader",
    "LoadPolicy",
    "SelfReferencePolicy",
    "decode_document",
    "load_config_file",
    "load_node_config",
    "read_document",
    "validate_node_config",
]
