"""
Signer backed by an in-process private key.
"""
import logging
from typing import Any, Dict

from eth_account import Account
from eth_account.signers.local import LocalAccount
from eth_keys import keys

from ..models import MetaSignature
from ..signing import sign_meta_hash

logger = logging.getLogger(__name__)


class LocalSigner:
    """
    Signs transactions and meta-transaction hashes with a local key.

    Args:
        private_key: Hex private key (with or without 0x prefix)
    """

    def __init__(self, private_key: str):
        self._account: LocalAccount = Account.from_key(private_key)
        self.address = self._account.address

    @classmethod
    def create(cls) -> "LocalSigner":
        """Generate a signer with a fresh random key"""
        account = Account.create()
        return cls(account.key.hex())

    @property
    def private_key(self) -> bytes:
        return bytes(self._account.key)

    @property
    def public_key(self) -> str:
        """Compressed public key as 0x-prefixed hex"""
        return "0x" + keys.PrivateKey(self.private_key).public_key.to_compressed_bytes().hex()

    def sign_transaction(self, transaction_dict: Dict[str, Any]) -> Any:
        return self._account.sign_transaction(transaction_dict)

    def sign_meta_hash(self, message_hash: bytes) -> MetaSignature:
        """Sign a registry meta-transaction hash for relayed submission"""
        return sign_meta_hash(message_hash, self.private_key)

    def __repr__(self) -> str:
        return f"LocalSigner(address={self.address})"
