"""
Transaction signers for registry writes.

Anything exposing an ``address`` and a ``sign_transaction`` method can be
passed where a Signer is expected (hardware wallets, KMS clients, ...).
"""
from typing import Any, Dict, Protocol, runtime_checkable


@runtime_checkable
class Signer(Protocol):
    """Protocol for transaction signers"""
    address: str

    def sign_transaction(self, transaction_dict: Dict[str, Any]) -> Any:
        """Sign transaction and return signed tx object"""
        ...


from .local import LocalSigner  # noqa: E402

__all__ = ["Signer", "LocalSigner"]
