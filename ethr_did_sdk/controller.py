"""
IdentityController - write-side API for one ERC-1056 identity.
"""
import logging
from typing import Any, List, Optional, Sequence, Tuple, Union

from eth_utils import to_checksum_address
from web3 import Web3

from .exceptions import SigningError
from .models import MetaSignature, TxReceipt
from .registry import RegistryAdapter
from .signer import LocalSigner, Signer
from .utils import (
    ParsedDID, attribute_value_to_bytes, make_did, parse_did, short_address,
    string_to_bytes32, strip_0x, to_identity_address
)

logger = logging.getLogger(__name__)

DEFAULT_VALIDITY = 86400

# Prefix of every meta-transaction hash: 0x19 0x00 (EIP-191 version 0)
_META_TYPES = ["bytes1", "bytes1", "address", "uint256", "address", "string"]

SignatureLike = Union[MetaSignature, bytes, str]


def coerce_signature(signature: SignatureLike) -> MetaSignature:
    """
    Accept a MetaSignature or a 65-byte ``r‖s‖v`` signature (bytes or hex).
    """
    if isinstance(signature, MetaSignature):
        return signature
    if isinstance(signature, str):
        signature = bytes.fromhex(strip_0x(signature))
    if len(signature) != 65:
        raise SigningError(f"Expected a 65-byte signature, got {len(signature)} bytes")
    v = signature[64]
    return MetaSignature(v=v if v >= 27 else v + 27, r=signature[:32], s=signature[32:64])


class IdentityController:
    """
    Manage owner, delegates and attributes of one identity.

    Every mutating method maps to a single registry call. Passing a
    ``signature`` turns the call into its relayed ``...Signed`` variant: the
    signature authorizes the change on behalf of the owner while the
    controller's signer only pays for the transaction.

    Mutations are confirmed before returning (unless ``wait_for_receipt``
    is False); callers that chain mutations must not assume a pending
    transaction has moved the change pointer yet.
    """

    def __init__(
        self,
        registry: RegistryAdapter,
        identity: str,
        signer: Optional[Signer] = None,
        network: Optional[str] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Args:
            registry: Adapter for the registry holding the identity
            identity: Address, compressed public key, or did:ethr string
            signer: Signer sending the transactions (owner or relayer)
            network: Network name used when building the DID string
            logger: Optional logger instance
        """
        self.registry = registry
        self.signer = signer
        self.logger = logger or logging.getLogger(__name__)

        if identity.startswith("did:"):
            parsed: ParsedDID = parse_did(identity)
            self.identity = parsed.address
            self.did = parsed.did
            self.network = parsed.network
        else:
            self.identity = to_identity_address(identity)
            self.network = network
            self.did = make_did(identity, network)

    @property
    def address(self) -> str:
        """Address of the transaction signer"""
        if self.signer is None:
            raise ValueError("No signer available")
        return self.signer.address

    def lookup_owner(self) -> str:
        """Current owner address of the identity"""
        return self.registry.get_owner(self.identity)

    # ── meta-transaction hashes ──────────────────────────────────────────

    def _meta_hash(self, operation: str, types: List[str], values: List[Any]) -> bytes:
        owner = self.registry.get_owner(self.identity)
        nonce = self.registry.get_nonce(owner)
        return bytes(Web3.solidity_keccak(
            _META_TYPES + types,
            [b"\x19", b"\x00", self.registry.registry_address, nonce, self.identity, operation] + values
        ))

    def create_change_owner_hash(self, new_owner: str) -> bytes:
        return self._meta_hash("changeOwner", ["address"], [to_checksum_address(new_owner)])

    def create_add_delegate_hash(
        self, delegate_type: str, delegate: str, validity_seconds: int = DEFAULT_VALIDITY
    ) -> bytes:
        return self._meta_hash(
            "addDelegate",
            ["bytes32", "address", "uint256"],
            [string_to_bytes32(delegate_type), to_checksum_address(delegate), int(validity_seconds)]
        )

    def create_revoke_delegate_hash(self, delegate_type: str, delegate: str) -> bytes:
        return self._meta_hash(
            "revokeDelegate",
            ["bytes32", "address"],
            [string_to_bytes32(delegate_type), to_checksum_address(delegate)]
        )

    def create_set_attribute_hash(
        self, name: str, value: Union[str, bytes], validity_seconds: int = DEFAULT_VALIDITY
    ) -> bytes:
        return self._meta_hash(
            "setAttribute",
            ["bytes32", "bytes", "uint256"],
            [string_to_bytes32(name), attribute_value_to_bytes(value), int(validity_seconds)]
        )

    def create_revoke_attribute_hash(self, name: str, value: Union[str, bytes]) -> bytes:
        return self._meta_hash(
            "revokeAttribute",
            ["bytes32", "bytes"],
            [string_to_bytes32(name), attribute_value_to_bytes(value)]
        )

    # ── mutations ────────────────────────────────────────────────────────

    def _submit(
        self,
        function_name: str,
        args: Sequence[Any],
        signature: Optional[SignatureLike] = None,
        gas: Optional[int] = None,
        wait_for_receipt: bool = True
    ) -> TxReceipt:
        """Send ``function_name`` (or its Signed variant when a signature is given)"""
        if self.signer is None:
            raise ValueError("A signer is required for registry writes")

        call_args: List[Any] = [self.identity]
        if signature is not None:
            function_name = f"{function_name}Signed"
            call_args.extend(coerce_signature(signature).as_args())
        call_args.extend(args)

        self.logger.info("%s for %s", function_name, short_address(self.identity))
        return self.registry.submit(
            function_name, call_args, self.signer, gas=gas, wait_for_receipt=wait_for_receipt
        )

    def change_owner(
        self, new_owner: str, signature: Optional[SignatureLike] = None, **tx_options
    ) -> TxReceipt:
        """
        Transfer ownership of the identity.

        Every transfer is an independent mutation; there is no rollback to a
        previous owner other than another transfer signed by the new owner.
        """
        return self._submit("changeOwner", [to_checksum_address(new_owner)], signature, **tx_options)

    def add_delegate(
        self,
        delegate_type: str,
        delegate: str,
        validity_seconds: int = DEFAULT_VALIDITY,
        signature: Optional[SignatureLike] = None,
        **tx_options
    ) -> TxReceipt:
        """
        Authorize ``delegate`` for ``delegate_type`` (e.g. "veriKey", "sigAuth")
        during ``validity_seconds``.
        """
        if validity_seconds <= 0:
            raise ValueError(f"validity_seconds must be positive, got {validity_seconds}")
        return self._submit(
            "addDelegate",
            [string_to_bytes32(delegate_type), to_checksum_address(delegate), int(validity_seconds)],
            signature,
            **tx_options
        )

    def revoke_delegate(
        self,
        delegate_type: str,
        delegate: str,
        signature: Optional[SignatureLike] = None,
        **tx_options
    ) -> TxReceipt:
        return self._submit(
            "revokeDelegate",
            [string_to_bytes32(delegate_type), to_checksum_address(delegate)],
            signature,
            **tx_options
        )

    def set_attribute(
        self,
        name: str,
        value: Union[str, bytes],
        validity_seconds: int = DEFAULT_VALIDITY,
        signature: Optional[SignatureLike] = None,
        **tx_options
    ) -> TxReceipt:
        """
        Publish a named value, e.g. ``did/svc/Messaging`` or
        ``did/pub/Secp256k1/sigAuth/hex``, for ``validity_seconds``.
        """
        if validity_seconds <= 0:
            raise ValueError(f"validity_seconds must be positive, got {validity_seconds}")
        return self._submit(
            "setAttribute",
            [string_to_bytes32(name), attribute_value_to_bytes(value), int(validity_seconds)],
            signature,
            **tx_options
        )

    def revoke_attribute(
        self,
        name: str,
        value: Union[str, bytes],
        signature: Optional[SignatureLike] = None,
        **tx_options
    ) -> TxReceipt:
        return self._submit(
            "revokeAttribute",
            [string_to_bytes32(name), attribute_value_to_bytes(value)],
            signature,
            **tx_options
        )

    def create_signing_delegate(
        self,
        delegate_type: str = "veriKey",
        validity_seconds: int = DEFAULT_VALIDITY,
        **tx_options
    ) -> Tuple[LocalSigner, TxReceipt]:
        """
        Generate a fresh key and register it as a delegate.

        The returned signer can sign ES256K-R JWTs for this identity.
        """
        delegate = LocalSigner.create()
        receipt = self.add_delegate(delegate_type, delegate.address, validity_seconds, **tx_options)
        self.logger.info(
            "Added signing delegate %s to %s", short_address(delegate.address), short_address(self.identity)
        )
        return delegate, receipt
