"""Stable constants shared by the parsers, loader, and schema tooling."""

from __future__ import annotations

from typing import Final

# Schema identity.
SCHEMA_PACKAGE: Final[str] = "node.executor.config"
SCHEMA_VERSION: Final[str] = "1.0.0"
ROOT_MESSAGE: Final[str] = "NodeConfig"

# Key string layout: "<role>:public:<scheme>:<hex>".
KEY_SEPARATOR: Final[str] = ":"
KEY_VISIBILITY: Final[str] = "public"
VALIDATOR_KEY_ROLE: Final[str] = "validator"
NODE_KEY_ROLE: Final[str] = "node"

# Supported signature schemes and their raw public key sizes in bytes.
VALIDATOR_KEY_SCHEMES: Final[dict[str, int]] = {"bn254": 64}
NODE_KEY_SCHEMES: Final[dict[str, int]] = {"ed25519": 32}

MAX_PORT: Final[int] = 65535
MAX_UINT64: Final[int] = (1 << 64) - 1

# Document file suffixes understood by the file helpers.
JSON_SUFFIXES: Final[frozenset[str]] = frozenset({".json"})
YAML_SUFFIXES: Final[frozenset[str]] = frozenset({".yaml", ".yml"})
PROTO_SUFFIXES: Final[frozenset[str]] = frozenset({".proto"})

__all__ = [
    "JSON_SUFFIXES",
    "KEY_SEPARATOR",
    "KEY_VISIBILITY",
    "MAX_PORT",
    "MAX_UINT64",
    "NODE_KEY_ROLE",
    "NODE_KEY_SCHEMES",
    "PROTO_SUFFIXES",
    "ROOT_MESSAGE",
    "SCHEMA_PACKAGE",
    "SCHEMA_VERSION",
    "VALIDATOR_KEY_ROLE",
    "VALIDATOR_KEY_SCHEMES",
    "YAML_SUFFIXES",
]
