"""Violation kinds and the structured records reported by config loading."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Literal

ViolationCategory = Literal["required", "format", "consistency"]


class ViolationKind(StrEnum):
    """Every way a config document can fail to load."""

    MISSING_REQUIRED_FIELD = "MissingRequiredField"
    INVALID_NETWORK_ADDRESS_FORMAT = "InvalidNetworkAddressFormat"
    INVALID_PORT_RANGE = "InvalidPortRange"
    UNRECOGNIZED_KEY_PREFIX = "UnrecognizedKeyPrefix"
    UNSUPPORTED_SIGNATURE_SCHEME = "UnsupportedSignatureScheme"
    WRONG_KEY_LENGTH = "WrongKeyLength"
    INVALID_HEX_ENCODING = "InvalidHexEncoding"
    EMPTY_GENESIS_BLOCK = "EmptyGenesisBlock"
    INVALID_FIELD_TYPE = "InvalidFieldType"
    SELF_REFERENCE_PEER_CONFLICT = "SelfReferencePeerConflict"

    @property
    def category(self) -> ViolationCategory:
        if self is ViolationKind.MISSING_REQUIRED_FIELD:
            return "required"
        if self is ViolationKind.SELF_REFERENCE_PEER_CONFLICT:
            return "consistency"
        return "format"


@dataclass(frozen=True, slots=True)
class ConfigViolation:
    """Single structured load failure."""

    path: str
    kind: ViolationKind
    message: str
    field_name: str = ""

    def to_dict(self) -> dict[str, str]:
        return {
            "path": self.path,
            "kind": self.kind.value,
            "category": self.kind.category,
            "message": self.message,
            "field_name": self.field_name,
        }

    def render(self) -> str:
        return f"{self.path}: [{self.kind.value}] {self.message}"


class FormatError(ValueError):
    """Raised by a format parser when a string does not match its grammar."""

    def __init__(self, kind: ViolationKind, message: str) -> None:
        self.kind = kind
        self.message = message
        super().__init__(f"{kind.value}: {message}")

    def at(self, path: str, field_name: str = "") -> ConfigViolation:
        """Attach a document location to this failure."""
        return ConfigViolation(path=path, kind=self.kind, message=self.message, field_name=field_name)


class ViolationCollector:
    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[ConfigViolation] = []

    def add(self, violation: ConfigViolation) -> None:
        self._items.append(violation)

    def extend(self, violations: tuple[ConfigViolation, ...] | list[ConfigViolation]) -> None:
        self._items.extend(violations)

    def items(self) -> tuple[ConfigViolation, ...]:
        return tuple(self._items)

    @property
    def has_violations(self) -> bool:
        return bool(self._items)


__all__ = [
    "ConfigViolation",
    "FormatError",
    "ViolationCollector",
    "ViolationCategory",
    "ViolationKind",
]
