"""
Utility functions for the ethr-did SDK.
"""
import re
from dataclasses import dataclass
from typing import Optional, Union

from eth_keys import keys
from eth_keys.exceptions import ValidationError
from eth_utils import is_hex_address, to_checksum_address

from .exceptions import InvalidDIDError

NULL_ADDRESS = "0x0000000000000000000000000000000000000000"
DEFAULT_NETWORK = "mainnet"

DID_PATTERN = re.compile(
    r"^did:ethr:(?:(?P<network>[a-zA-Z0-9_.-]+):)?"
    r"(?P<identifier>0x[0-9a-fA-F]{40}|0x[0-9a-fA-F]{66})"
    r"(?P<fragment>#.*)?$"
)


@dataclass(frozen=True)
class ParsedDID:
    """
    Components of a ``did:ethr`` identifier.

    Attributes:
        did: The DID without fragment
        network: Network name or hex chain id ("mainnet" when omitted)
        address: Checksummed identity address
        public_key: Compressed public key hex when the DID embeds one
        fragment: Fragment including the leading '#', if any
    """
    did: str
    network: str
    address: str
    public_key: Optional[str] = None
    fragment: Optional[str] = None


def public_key_to_address(public_key: Union[str, bytes]) -> str:
    """
    Derive the Ethereum address of a secp256k1 public key.

    Args:
        public_key: Compressed (33 bytes) or uncompressed (64/65 bytes) key,
            as bytes or hex string

    Returns:
        Checksummed address
    """
    if isinstance(public_key, str):
        public_key = bytes.fromhex(strip_0x(public_key))
    try:
        if len(public_key) == 33:
            key = keys.PublicKey.from_compressed_bytes(public_key)
        elif len(public_key) == 65 and public_key[0] == 4:
            key = keys.PublicKey(public_key[1:])
        else:
            key = keys.PublicKey(public_key)
    except (ValidationError, ValueError) as e:
        raise InvalidDIDError(f"Invalid secp256k1 public key: {e}") from e
    return key.to_checksum_address()


def parse_did(did: str) -> ParsedDID:
    """
    Parse a ``did:ethr`` string.

    Args:
        did: DID such as ``did:ethr:sepolia:0xabc...``

    Returns:
        ParsedDID

    Raises:
        InvalidDIDError: If the string is not a did:ethr identifier
    """
    match = DID_PATTERN.match(did or "")
    if not match:
        raise InvalidDIDError(f"Not a valid did:ethr identifier: {did}")

    identifier = match.group("identifier")
    fragment = match.group("fragment")
    network = match.group("network") or DEFAULT_NETWORK
    if network.startswith("0x") and not re.fullmatch(r"0x[0-9a-fA-F]+", network):
        raise InvalidDIDError(f"Invalid chain id in did:ethr identifier: {did}")
    base = did[: len(did) - len(fragment)] if fragment else did

    if len(identifier) == 42:
        return ParsedDID(did=base, network=network, address=to_checksum_address(identifier), fragment=fragment)
    return ParsedDID(
        did=base,
        network=network,
        address=public_key_to_address(identifier),
        public_key=identifier.lower(),
        fragment=fragment,
    )


def make_did(identifier: str, network: Optional[str] = None) -> str:
    """Build a DID from an address or public key, omitting the default network"""
    if network and network != DEFAULT_NETWORK:
        return f"did:ethr:{network}:{identifier}"
    return f"did:ethr:{identifier}"


def to_identity_address(identity: str) -> str:
    """
    Normalize an address, compressed public key or DID into a checksummed address.

    Raises:
        InvalidDIDError: If the value cannot be interpreted
    """
    if identity.startswith("did:"):
        return parse_did(identity).address
    if is_hex_address(identity):
        return to_checksum_address(identity)
    if re.fullmatch(r"0x[0-9a-fA-F]{66}", identity):
        return public_key_to_address(identity)
    raise InvalidDIDError(f"Not an address, public key or did:ethr: {identity}")


def strip_0x(value: str) -> str:
    return value[2:] if value.startswith("0x") else value


def string_to_bytes32(value: Union[str, bytes]) -> bytes:
    """
    Encode a delegate type or attribute name as bytes32.

    Short strings are UTF-8 encoded and right-padded with zeros; a 0x-prefixed
    64-digit hex string is taken as the raw value.
    """
    if isinstance(value, bytes):
        raw = value
    elif re.fullmatch(r"0x[0-9a-fA-F]{64}", value):
        return bytes.fromhex(value[2:])
    else:
        raw = value.encode("utf-8")
    if len(raw) > 32:
        raise ValueError(f"Value does not fit in bytes32: {value!r}")
    return raw.ljust(32, b"\x00")


def bytes32_to_string(value: Union[str, bytes]) -> str:
    """Decode a zero-padded bytes32 value back into a string"""
    if isinstance(value, str):
        value = bytes.fromhex(strip_0x(value))
    return value.rstrip(b"\x00").decode("utf-8", errors="replace")


def attribute_value_to_bytes(value: Union[str, bytes]) -> bytes:
    """
    Encode an attribute value for ``setAttribute``.

    0x-prefixed hex strings are decoded to their bytes, anything else is UTF-8.
    """
    if isinstance(value, bytes):
        return value
    if re.fullmatch(r"0x([0-9a-fA-F]{2})*", value):
        return bytes.fromhex(value[2:])
    return value.encode("utf-8")


def address_to_topic(address: str) -> str:
    """Left-pad an address into a 32-byte log topic"""
    return "0x" + "0" * 24 + strip_0x(address).lower()


def topic_to_address(topic: Union[str, bytes]) -> str:
    if isinstance(topic, str):
        topic = bytes.fromhex(strip_0x(topic))
    return to_checksum_address(topic[-20:])


def short_address(address: str) -> str:
    """Truncate an address for info-level logs"""
    return f"{address[:8]}…" if address else address
