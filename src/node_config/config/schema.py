"""
node-config — config schema declaration.

File: src/node_config/config/schema.py

Purpose
- Declare the node config message layout: field names, field numbers,
  scalar types, cardinality, required-by-convention flags and string
  encodings.

What should be included in this file
- The message/field table (single source of truth for the loader, the
  required-field validator and the compatibility snapshot).
- The derived table of required document paths.
- The aggregated validation error raised by the loader.

Functional requirements
- Every field is optional on the wire; "required" lives only in this table.
- Field lookup follows the proto3 JSON mapping: lowerCamelCase name first,
  original snake_case name accepted, ``null`` treated as unset.

Non-functional requirements
- Declarative and deterministic; declaration order is report order.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Final, Literal

from node_config.constants import ROOT_MESSAGE
from node_config.domain.violations import ConfigViolation

FieldLabel = Literal["optional", "repeated"]

_SNAKE_PART: Final[re.Pattern[str]] = re.compile(r"_([a-z0-9])")


class Encoding(StrEnum):
    """String-encoded types carried in ``string`` fields."""

    NETWORK_ADDRESS = "IpAddr"
    VALIDATOR_KEY = "ValidatorPublicKey"
    NODE_KEY = "NodePublicKey"
    GENESIS_BLOCK = "FinalBlock"


@dataclass(frozen=True, slots=True)
class FieldSpec:
    """One field of a config message."""

    name: str
    number: int
    type: str
    label: FieldLabel = "optional"
    required: bool = False
    encoding: Encoding | None = None
    description: str = ""

    @property
    def json_name(self) -> str:
        return json_name(self.name)

    @property
    def repeated(self) -> bool:
        return self.label == "repeated"

    @property
    def is_message(self) -> bool:
        return self.type in MESSAGES

    @property
    def display_name(self) -> str:
        if self.encoding is None:
            return self.description or self.name
        return f"{self.description or self.name} ({self.encoding.value})"


@dataclass(frozen=True, slots=True)
class MessageSpec:
    name: str
    fields: tuple[FieldSpec, ...]
    description: str = ""

    def field(self, name: str) -> FieldSpec:
        for item in self.fields:
            if item.name == name or item.json_name == name:
                return item
        raise KeyError(f"{self.name} has no field {name!r}")


@dataclass(frozen=True, slots=True)
class RequiredRule:
    """A document path that must be present for a config to load."""

    path: str
    message: str
    field: FieldSpec


class ConfigValidationError(ValueError):
    """Raised when a config document fails required-field or format validation."""

    def __init__(self, violations: Sequence[ConfigViolation]) -> None:
        self.violations = tuple(violations)
        if not self.violations:
            rendered = "unknown validation failure"
        else:
            rendered = "\n".join(f"- {item.render()}" for item in self.violations)
        super().__init__(f"invalid node config:\n{rendered}")


_NODE_ADDR: Final[MessageSpec] = MessageSpec(
    name="NodeAddr",
    description="(public key, address) of a gossip network node",
    fields=(
        FieldSpec("key", 1, "string", required=True, encoding=Encoding.NODE_KEY,
                  description="peer public key"),
        FieldSpec("addr", 2, "string", required=True, encoding=Encoding.NETWORK_ADDRESS,
                  description="peer address"),
    ),
)

_CONSENSUS_CONFIG: Final[MessageSpec] = MessageSpec(
    name="ConsensusConfig",
    description="consensus network config",
    fields=(
        FieldSpec("key", 1, "string", required=True, encoding=Encoding.VALIDATOR_KEY,
                  description="validator public key"),
        FieldSpec("public_addr", 2, "string", required=True, encoding=Encoding.NETWORK_ADDRESS,
                  description="advertised consensus address"),
    ),
)

_GOSSIP_CONFIG: Final[MessageSpec] = MessageSpec(
    name="GossipConfig",
    description="gossip network config",
    fields=(
        FieldSpec("key", 1, "string", required=True, encoding=Encoding.NODE_KEY,
                  description="gossip public key of this node"),
        FieldSpec("dynamic_inbound_limit", 2, "uint64", required=True,
                  description="limit on inbound connections outside the static set"),
        FieldSpec("static_inbound", 3, "string", label="repeated", encoding=Encoding.NODE_KEY,
                  description="unconditionally accepted inbound peer"),
        FieldSpec("static_outbound", 4, "NodeAddr", label="repeated",
                  description="peer to dial and keep connected"),
    ),
)

_EXECUTOR_CONFIG: Final[MessageSpec] = MessageSpec(
    name="ExecutorConfig",
    description="top-level executor config",
    fields=(
        FieldSpec("server_addr", 1, "string", required=True, encoding=Encoding.NETWORK_ADDRESS,
                  description="listen address for incoming TCP connections"),
        FieldSpec("gossip", 4, "GossipConfig", required=True, description="gossip network config"),
        FieldSpec("genesis_block", 5, "string", required=True, encoding=Encoding.GENESIS_BLOCK,
                  description="genesis block of the chain"),
        FieldSpec("validators", 6, "string", label="repeated", required=True,
                  encoding=Encoding.VALIDATOR_KEY, description="validator set public key"),
    ),
)

_NODE_CONFIG: Final[MessageSpec] = MessageSpec(
    name=ROOT_MESSAGE,
    description="node config: executor plus optional validator and metrics settings",
    fields=(
        FieldSpec("executor", 1, "ExecutorConfig", required=True, description="executor config"),
        FieldSpec("metrics_server_addr", 2, "string", encoding=Encoding.NETWORK_ADDRESS,
                  description="metrics scraping address"),
        FieldSpec("consensus", 3, "ConsensusConfig", description="consensus network config"),
    ),
)

MESSAGES: Final[dict[str, MessageSpec]] = {
    spec.name: spec
    for spec in (_NODE_ADDR, _CONSENSUS_CONFIG, _GOSSIP_CONFIG, _EXECUTOR_CONFIG, _NODE_CONFIG)
}


def json_name(proto_name: str) -> str:
    """Return the proto3 JSON (lowerCamelCase) name of a snake_case field name."""

    return _SNAKE_PART.sub(lambda match: match.group(1).upper(), proto_name)


def message_spec(name: str) -> MessageSpec:
    try:
        return MESSAGES[name]
    except KeyError:
        raise KeyError(f"unknown message {name!r}") from None


def root_spec() -> MessageSpec:
    return message_spec(ROOT_MESSAGE)


def lookup(payload: Mapping[str, object], spec: FieldSpec) -> object | None:
    """Return the raw value of ``spec`` in ``payload`` or ``None`` when unset."""

    value = payload.get(spec.json_name)
    if value is None and spec.json_name != spec.name:
        value = payload.get(spec.name)
    return value


def known_keys(spec: MessageSpec) -> frozenset[str]:
    return frozenset(key for item in spec.fields for key in (item.name, item.json_name))


def join_path(path: str, key: str) -> str:
    if not path:
        return key
    return f"{path}.{key}"


def required_rules(message: str = ROOT_MESSAGE, prefix: str = "") -> tuple[RequiredRule, ...]:
    """Flatten the required-by-convention flags into document paths.

    Repeated message fields contribute their children with a ``[]`` suffix,
    e.g. ``executor.gossip.staticOutbound[].key``.
    """

    rules: list[RequiredRule] = []
    spec = message_spec(message)
    for item in spec.fields:
        path = join_path(prefix, item.json_name)
        if item.required:
            rules.append(RequiredRule(path=path, message=spec.name, field=item))
        if item.is_message:
            child_prefix = f"{path}[]" if item.repeated else path
            rules.extend(required_rules(item.type, child_prefix))
    return tuple(rules)


REQUIRED_PATHS: Final[tuple[str, ...]] = tuple(rule.path for rule in required_rules())

__all__ = [
    "ConfigValidationError",
    "Encoding",
    "FieldLabel",
    "FieldSpec",
    "MESSAGES",
    "MessageSpec",
    "REQUIRED_PATHS",
    "RequiredRule",
    "join_path",
    "json_name",
    "known_keys",
    "lookup",
    "message_spec",
    "required_rules",
    "root_spec",
]
