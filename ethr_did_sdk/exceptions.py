"""
Exceptions for the ethr-did SDK.
"""
from typing import Any, List, Optional


class EthrDIDError(Exception):
    """Base exception for all SDK errors."""
    pass


class RpcError(EthrDIDError):
    """Raised when the node or the network fails. Retriable by the caller."""

    def __init__(self, message: str, operation: Optional[str] = None):
        self.operation = operation
        super().__init__(message)


class ContractRevertError(EthrDIDError):
    """
    Raised when a registry call reverts.

    Covers authorization failures (``bad_actor``), bad or replayed
    meta-transaction signatures (``bad_signature``) and mined transactions
    with a failed status. Not retriable without changing the request.
    """

    def __init__(self, reason: str, operation: Optional[str] = None, tx_hash: Optional[str] = None):
        self.reason = reason
        self.operation = operation
        self.tx_hash = tx_hash
        message = f"{operation} reverted: {reason}" if operation else reason
        super().__init__(message)


class HistoryTruncatedError(EthrDIDError):
    """Raised when the history walk stops at the hop limit before the chain origin."""

    def __init__(self, identity: str, max_hops: int, cursor: int, partial_history: Optional[List[Any]] = None):
        self.identity = identity
        self.max_hops = max_hops
        self.cursor = cursor
        self.partial_history = partial_history or []
        super().__init__(
            f"History of {identity} truncated after {max_hops} blocks "
            f"(next block {cursor} not visited)"
        )


class NotFoundError(EthrDIDError):
    """Raised when a DID cannot be located on any configured registry."""
    pass


class InvalidDIDError(EthrDIDError, ValueError):
    """Raised when a DID or identifier string is malformed."""
    pass


class SigningError(EthrDIDError):
    """Raised when a signature cannot be produced or verified."""
    pass
