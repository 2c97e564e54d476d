"""String-encoded config value types and their parsers.

Four field encodings appear in a node config document:

``NetworkAddress``
    ``"203.0.113.7:3456"`` or ``"[2001:db8::1]:4567"``. Brackets are required
    around IPv6 literals and forbidden around IPv4 literals.
``ValidatorKey``
    ``"validator:public:bn254:<128 hex chars>"``.
``NodeKey``
    ``"node:public:ed25519:<64 hex chars>"``.
``GenesisBlock``
    hex encoded serialized block, case-insensitive, non-empty.

Every value type re-checks its invariants on construction, so the only
instances that exist are well-formed ones. ``str()`` of a value yields its
canonical encoding, which parses back to an equal value.
"""

from __future__ import annotations

import hashlib
import ipaddress
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Final, NoReturn

from node_config.constants import (
    KEY_SEPARATOR,
    KEY_VISIBILITY,
    MAX_PORT,
    NODE_KEY_ROLE,
    NODE_KEY_SCHEMES,
    VALIDATOR_KEY_ROLE,
    VALIDATOR_KEY_SCHEMES,
)
from node_config.domain.violations import FormatError, ViolationKind

IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address

_HEX_RE: Final[re.Pattern[str]] = re.compile(r"[0-9A-Fa-f]*")
_KEY_PARTS: Final[int] = 4
_MAX_PORT_DIGITS: Final[int] = len(str(MAX_PORT))


@dataclass(frozen=True, slots=True)
class NetworkAddress:
    """TCP socket address: IP literal plus port."""

    ip: IPAddress
    port: int

    def __post_init__(self) -> None:
        if not isinstance(self.ip, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
            raise FormatError(
                ViolationKind.INVALID_NETWORK_ADDRESS_FORMAT,
                f"expected an IP address, got {type(self.ip).__name__}",
            )
        if isinstance(self.ip, ipaddress.IPv6Address) and self.ip.scope_id is not None:
            raise FormatError(
                ViolationKind.INVALID_NETWORK_ADDRESS_FORMAT,
                "IPv6 zone identifiers are not supported",
            )
        if isinstance(self.port, bool) or not isinstance(self.port, int):
            raise FormatError(
                ViolationKind.INVALID_NETWORK_ADDRESS_FORMAT,
                f"port must be an integer, got {type(self.port).__name__}",
            )
        if not 0 <= self.port <= MAX_PORT:
            raise FormatError(
                ViolationKind.INVALID_PORT_RANGE,
                f"port {self.port} is outside 0..{MAX_PORT}",
            )

    @classmethod
    def parse(cls, text: object) -> NetworkAddress:
        return parse_network_address(text)

    @property
    def is_ipv6(self) -> bool:
        return isinstance(self.ip, ipaddress.IPv6Address)

    def __str__(self) -> str:
        if self.is_ipv6:
            return f"[{self.ip}]:{self.port}"
        return f"{self.ip}:{self.port}"


@dataclass(frozen=True, slots=True)
class ValidatorKey:
    """Public key of a consensus participant."""

    scheme: str
    key_bytes: bytes

    def __post_init__(self) -> None:
        _check_key_material(VALIDATOR_KEY_ROLE, VALIDATOR_KEY_SCHEMES, self.scheme, self.key_bytes)

    @classmethod
    def parse(cls, text: object) -> ValidatorKey:
        return parse_validator_key(text)

    def __str__(self) -> str:
        return _encode_key(VALIDATOR_KEY_ROLE, self.scheme, self.key_bytes)


@dataclass(frozen=True, slots=True)
class NodeKey:
    """Public key of a gossip network participant."""

    scheme: str
    key_bytes: bytes

    def __post_init__(self) -> None:
        _check_key_material(NODE_KEY_ROLE, NODE_KEY_SCHEMES, self.scheme, self.key_bytes)

    @classmethod
    def parse(cls, text: object) -> NodeKey:
        return parse_node_key(text)

    def __str__(self) -> str:
        return _encode_key(NODE_KEY_ROLE, self.scheme, self.key_bytes)


@dataclass(frozen=True, slots=True, repr=False)
class GenesisBlock:
    """Opaque serialized genesis block; structure is checked by the consumer."""

    payload: bytes

    def __post_init__(self) -> None:
        if not isinstance(self.payload, bytes):
            raise FormatError(
                ViolationKind.INVALID_FIELD_TYPE,
                f"genesis block payload must be bytes, got {type(self.payload).__name__}",
            )
        if not self.payload:
            raise FormatError(ViolationKind.EMPTY_GENESIS_BLOCK, "genesis block must not be empty")

    @classmethod
    def parse(cls, text: object) -> GenesisBlock:
        return parse_genesis_block(text)

    @property
    def digest(self) -> str:
        return hashlib.sha256(self.payload).hexdigest()

    def __str__(self) -> str:
        return self.payload.hex()

    def __repr__(self) -> str:
        return f"GenesisBlock(size={len(self.payload)}, sha256={self.digest[:16]})"


def parse_network_address(text: object) -> NetworkAddress:
    """Parse ``ip:port`` / ``[ipv6]:port`` into a ``NetworkAddress``."""
    raw = _expect_text(text, "network address")
    ip: IPAddress
    if raw.startswith("["):
        close = raw.find("]")
        if close < 0:
            _fail_address(f"missing closing ']' in {raw!r}")
        host = raw[1:close]
        rest = raw[close + 1 :]
        if not rest.startswith(":"):
            _fail_address(f"expected ':<port>' after ']' in {raw!r}")
        ip = _parse_bracketed_host(host)
        port_text = rest[1:]
    else:
        host, separator, port_text = raw.rpartition(":")
        if not separator:
            _fail_address(f"missing ':<port>' suffix in {raw!r}")
        if ":" in host:
            _fail_address(f"IPv6 address must be enclosed in brackets: {raw!r}")
        if "[" in host or "]" in host:
            _fail_address(f"unbalanced brackets in {raw!r}")
        ip = _parse_ipv4_host(host)
    return NetworkAddress(ip=ip, port=_parse_port(port_text))


def parse_validator_key(text: object) -> ValidatorKey:
    """Parse ``validator:public:<scheme>:<hex>``."""
    scheme, key_bytes = _parse_key(text, VALIDATOR_KEY_ROLE, VALIDATOR_KEY_SCHEMES)
    return ValidatorKey(scheme=scheme, key_bytes=key_bytes)


def parse_node_key(text: object) -> NodeKey:
    """Parse ``node:public:<scheme>:<hex>``."""
    scheme, key_bytes = _parse_key(text, NODE_KEY_ROLE, NODE_KEY_SCHEMES)
    return NodeKey(scheme=scheme, key_bytes=key_bytes)


def parse_genesis_block(text: object) -> GenesisBlock:
    """Decode a hex encoded genesis block."""
    raw = _expect_text(text, "genesis block")
    if not raw:
        raise FormatError(ViolationKind.EMPTY_GENESIS_BLOCK, "genesis block must not be empty")
    return GenesisBlock(payload=decode_hex(raw))


def decode_hex(raw: str) -> bytes:
    """Strict hex decoding: even length, hex digits only, no separators."""
    if len(raw) % 2:
        raise FormatError(
            ViolationKind.INVALID_HEX_ENCODING,
            f"hex string has odd length {len(raw)}",
        )
    if not _HEX_RE.fullmatch(raw):
        bad = next(char for char in raw if char not in "0123456789abcdefABCDEF")
        raise FormatError(
            ViolationKind.INVALID_HEX_ENCODING,
            f"non-hex character {bad!r} in hex string",
        )
    return bytes.fromhex(raw)


def _parse_key(text: object, role: str, schemes: Mapping[str, int]) -> tuple[str, bytes]:
    raw = _expect_text(text, f"{role} public key")
    expected_prefix = f"{role}{KEY_SEPARATOR}{KEY_VISIBILITY}{KEY_SEPARATOR}"
    layout = f"{expected_prefix}<scheme>{KEY_SEPARATOR}<hex>"
    if not raw.startswith(expected_prefix):
        raise FormatError(
            ViolationKind.UNRECOGNIZED_KEY_PREFIX,
            f"expected a key of the form {layout!r}",
        )
    parts = raw.split(KEY_SEPARATOR, _KEY_PARTS - 1)
    if len(parts) != _KEY_PARTS:
        raise FormatError(
            ViolationKind.UNRECOGNIZED_KEY_PREFIX,
            f"expected a key of the form {layout!r}",
        )
    scheme, material = parts[2], parts[3]
    if scheme not in schemes:
        supported = ", ".join(sorted(schemes))
        raise FormatError(
            ViolationKind.UNSUPPORTED_SIGNATURE_SCHEME,
            f"signature scheme {scheme!r} is not supported for {role} keys; expected one of: {supported}",
        )
    key_bytes = decode_hex(material)
    _check_key_material(role, schemes, scheme, key_bytes)
    return scheme, key_bytes


def _check_key_material(role: str, schemes: Mapping[str, int], scheme: str, key_bytes: bytes) -> None:
    if scheme not in schemes:
        supported = ", ".join(sorted(schemes))
        raise FormatError(
            ViolationKind.UNSUPPORTED_SIGNATURE_SCHEME,
            f"signature scheme {scheme!r} is not supported for {role} keys; expected one of: {supported}",
        )
    if not isinstance(key_bytes, bytes):
        raise FormatError(
            ViolationKind.INVALID_FIELD_TYPE,
            f"key material must be bytes, got {type(key_bytes).__name__}",
        )
    expected = schemes[scheme]
    if len(key_bytes) != expected:
        raise FormatError(
            ViolationKind.WRONG_KEY_LENGTH,
            f"{scheme} {role} key must be {expected} bytes, got {len(key_bytes)}",
        )


def _encode_key(role: str, scheme: str, key_bytes: bytes) -> str:
    return KEY_SEPARATOR.join((role, KEY_VISIBILITY, scheme, key_bytes.hex()))


def _parse_bracketed_host(host: str) -> ipaddress.IPv6Address:
    if "%" in host:
        _fail_address(f"IPv6 zone identifiers are not supported: {host!r}")
    try:
        ipaddress.IPv4Address(host)
    except ValueError:
        pass
    else:
        _fail_address(f"brackets are only allowed around IPv6 addresses: {host!r}")
    try:
        return ipaddress.IPv6Address(host)
    except ValueError as exc:
        _fail_address(f"invalid IPv6 literal {host!r}: {exc}")


def _parse_ipv4_host(host: str) -> ipaddress.IPv4Address:
    if not host:
        _fail_address("missing IP address before ':<port>'")
    try:
        return ipaddress.IPv4Address(host)
    except ValueError as exc:
        _fail_address(f"invalid IPv4 literal {host!r}: {exc}")


def _parse_port(text: str) -> int:
    if not text:
        _fail_address("missing port")
    if not (text.isascii() and text.isdigit()):
        _fail_address(f"port must be a decimal number, got {text!r}")
    significant = text.lstrip("0")
    if len(significant) > _MAX_PORT_DIGITS:
        raise FormatError(
            ViolationKind.INVALID_PORT_RANGE,
            f"port of {len(text)} digits is outside 0..{MAX_PORT}",
        )
    port = int(significant or "0")
    if port > MAX_PORT:
        raise FormatError(ViolationKind.INVALID_PORT_RANGE, f"port {port} is outside 0..{MAX_PORT}")
    return port


def _fail_address(message: str) -> NoReturn:
    raise FormatError(ViolationKind.INVALID_NETWORK_ADDRESS_FORMAT, message)


def _expect_text(value: object, what: str) -> str:
    if not isinstance(value, str):
        raise FormatError(
            ViolationKind.INVALID_FIELD_TYPE,
            f"expected {what} string, got {type(value).__name__}",
        )
    return value


__all__ = [
    "GenesisBlock",
    "IPAddress",
    "NetworkAddress",
    "NodeKey",
    "ValidatorKey",
    "decode_hex",
    "parse_genesis_block",
    "parse_network_address",
    "parse_node_key",
    "parse_validator_key",
]
