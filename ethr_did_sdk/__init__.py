"""
ethr-did SDK - manage and resolve did:ethr identities on ERC-1056 registries.
"""
from .config import NetworkConfig
from .controller import IdentityController
from .exceptions import (
    ContractRevertError, EthrDIDError, HistoryTruncatedError, InvalidDIDError,
    NotFoundError, RpcError, SigningError
)
from .history import EventHistoryWalker
from .models import (
    AttributeChanged, DelegateChanged, DIDDocument, DIDResolutionResult,
    MetaSignature, OwnerChanged, ServiceEndpoint, TxReceipt, VerificationMethod
)
from .reducer import DIDStateReducer, ReducedState
from .registry import RegistryAdapter
from .resolver import EthrDIDResolver
from .signer import LocalSigner, Signer
from .signing import sign_jwt, sign_meta_hash, verify_jwt
from .version import __version__

__all__ = [
    "AttributeChanged",
    "ContractRevertError",
    "DelegateChanged",
    "DIDDocument",
    "DIDResolutionResult",
    "DIDStateReducer",
    "EthrDIDError",
    "EthrDIDResolver",
    "EventHistoryWalker",
    "HistoryTruncatedError",
    "IdentityController",
    "InvalidDIDError",
    "LocalSigner",
    "MetaSignature",
    "NetworkConfig",
    "NotFoundError",
    "OwnerChanged",
    "ReducedState",
    "RegistryAdapter",
    "RpcError",
    "ServiceEndpoint",
    "Signer",
    "SigningError",
    "TxReceipt",
    "VerificationMethod",
    "sign_jwt",
    "sign_meta_hash",
    "verify_jwt",
    "__version__",
]
