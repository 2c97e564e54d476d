"""
node-config domain layer.

Purpose
- Value types for the string-encoded config fields, the typed config models,
  and the violation records shared by the loader and the CLI.

Non-functional requirements
- No IO, no logging, no dependency on the config or compat packages.
"""

from node_config.domain.encodings import (
    GenesisBlock,
    NetworkAddress,
    NodeKey,
    ValidatorKey,
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
from node_config.domain.violations import ConfigViolation, FormatError, ViolationKind

__all__ = [
    "ConfigViolation",
    "ConsensusConfig",
    "ExecutorConfig",
    "FormatError",
    "GenesisBlock",
    "GossipConfig",
    "NetworkAddress",
    "NodeAddr",
    "NodeConfig",
    "NodeKey",
    "ValidatorKey",
    "ViolationKind",
    "parse_genesis_block",
    "parse_network_address",
    "parse_node_key",
    "parse_validator_key",
]
