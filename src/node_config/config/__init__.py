"""
node-config config package public API.

File: src/node_config/config/__init__.py

Purpose
- Export the schema declaration, the required-field validator and the
  loader entrypoints with their error types.

Functional requirements
- Load JSON/YAML node config documents into typed ``NodeConfig`` values.
- Fail with every structured violation at once.

Non-functional requirements
- Keep import-time surface small and side-effect free.
"""

from node_config.config.loader import (
    ConfigDecodeError,
    ConfigDocument,
    ConfigLoader,
    ConfigLoadResult,
    LoadPolicy,
    SelfReferencePolicy,
    decode_document,
    load_config_file,
    load_node_config,
    read_document,
    validate_node_config,
)
from node_config.config.required import find_missing_required
from node_config.config.schema import (
    MESSAGES,
    REQUIRED_PATHS,
    ConfigValidationError,
    Encoding,
    FieldSpec,
    MessageSpec,
    RequiredRule,
    required_rules,
)

__all__ = [
    "ConfigDecodeError",
    "ConfigDocument",
    "ConfigLoadResult",
    "ConfigLoader",
    "ConfigValidationError",
    "Encoding",
    "FieldSpec",
    "LoadPolicy",
    "MESSAGES",
    "MessageSpec",
    "REQUIRED_PATHS",
    "RequiredRule",
    "SelfReferencePolicy",
    "decode_document",
    "find_missing_required",
    "load_config_file",
    "load_node_config",
    "read_document",
    "required_rules",
    "validate_node_config",
]
