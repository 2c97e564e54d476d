"""
node-config — typed node configuration layer.

File: src/node_config/__init__.py

Purpose
- Package root. Defines package-level metadata and import boundaries.

What should be included in this file
- Version export and minimal public API surface (keep small).

Functional requirements
- Must not have side effects at import time (no config loading, no logging init).

Key interfaces / contracts
- ``node_config.config``: load and validate node config documents.
- ``node_config.compat``: schema snapshots and the evolution-rule checker.
"""

__version__ = "1.0.0"

__all__ = ["__version__"]
