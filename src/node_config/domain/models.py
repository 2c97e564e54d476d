"""Typed, immutable node configuration models with canonical serialization.

Models are assembled by ``node_config.config.loader`` once the raw document
has passed required-field and format validation. ``to_dict()`` produces the
canonical document form (lowerCamelCase keys, canonical string encodings,
unset optional fields omitted), which the loader accepts back unchanged.
"""

from __future__ import annotations

import json
from dataclasses import dataclass

from node_config.domain.encodings import (
    GenesisBlock,
    NetworkAddress,
    NodeKey,
    ValidatorKey,
)

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]


class CanonicalModel:
    """Mixin for canonical dict/json serialization."""

    __slots__ = ()

    def to_dict(self) -> dict[str, JSONValue]:
        raise NotImplementedError

    def to_json(self) -> str:
        return _canonical_json(self.to_dict())


@dataclass(frozen=True, slots=True)
class NodeAddr(CanonicalModel):
    """(public key, address) of one gossip peer."""

    key: NodeKey
    addr: NetworkAddress

    def to_dict(self) -> dict[str, JSONValue]:
        return {"key": str(self.key), "addr": str(self.addr)}


@dataclass(frozen=True, slots=True)
class GossipConfig(CanonicalModel):
    key: NodeKey
    dynamic_inbound_limit: int
    static_inbound: frozenset[NodeKey] = frozenset()
    static_outbound: tuple[NodeAddr, ...] = ()

    def __post_init__(self) -> None:
        if isinstance(self.dynamic_inbound_limit, bool) or self.dynamic_inbound_limit < 0:
            raise ValueError("dynamic_inbound_limit must be a non-negative integer")

    @property
    def peer_keys(self) -> frozenset[NodeKey]:
        """Every key this node is configured to talk to explicitly."""
        return self.static_inbound | {peer.key for peer in self.static_outbound}

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "key": str(self.key),
            "dynamicInboundLimit": self.dynamic_inbound_limit,
            "staticInbound": sorted(str(key) for key in self.static_inbound),
            "staticOutbound": [peer.to_dict() for peer in self.static_outbound],
        }


@dataclass(frozen=True, slots=True)
class ConsensusConfig(CanonicalModel):
    key: ValidatorKey
    public_addr: NetworkAddress

    def to_dict(self) -> dict[str, JSONValue]:
        return {"key": str(self.key), "publicAddr": str(self.public_addr)}


@dataclass(frozen=True, slots=True)
class ExecutorConfig(CanonicalModel):
    server_addr: NetworkAddress
    gossip: GossipConfig
    genesis_block: GenesisBlock
    validators: tuple[ValidatorKey, ...]

    def __post_init__(self) -> None:
        if not self.validators:
            raise ValueError("validators must not be empty")

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "serverAddr": str(self.server_addr),
            "gossip": self.gossip.to_dict(),
            "genesisBlock": str(self.genesis_block),
            "validators": [str(key) for key in self.validators],
        }


@dataclass(frozen=True, slots=True)
class NodeConfig(CanonicalModel):
    """Fully validated node configuration."""

    executor: ExecutorConfig
    metrics_server_addr: NetworkAddress | None = None
    consensus: ConsensusConfig | None = None

    @property
    def is_validator(self) -> bool:
        return self.consensus is not None

    def to_dict(self) -> dict[str, JSONValue]:
        out: dict[str, JSONValue] = {"executor": self.executor.to_dict()}
        if self.metrics_server_addr is not None:
            out["metricsServerAddr"] = str(self.metrics_server_addr)
        if self.consensus is not None:
            out["consensus"] = self.consensus.to_dict()
        return out


def _canonical_json(value: JSONValue) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


__all__ = [
    "CanonicalModel",
    "ConsensusConfig",
    "ExecutorConfig",
    "GossipConfig",
    "JSONValue",
    "NodeAddr",
    "NodeConfig",
]
