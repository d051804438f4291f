"""
Data models for the ethr-did SDK.
"""
from typing import Any, ClassVar, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, Field

DID_CONTEXT = "https://www.w3.org/ns/did/v1"
SECP256K1_RECOVERY_CONTEXT = "https://w3id.org/security/suites/secp256k1recovery-2020/v2"
SECP256K1_CONTEXT = "https://w3id.org/security/v3-unstable"


class RegistryEvent(BaseModel):
    """Fields shared by every ERC-1056 registry event"""
    event_name: ClassVar[str] = ""

    identity: str
    previous_change: int = Field(..., alias="previousChange")
    block_number: int = Field(..., alias="blockNumber")
    log_index: int = Field(0, alias="logIndex")

    class Config:
        populate_by_name = True
        frozen = True

    @property
    def position(self) -> Tuple[int, int]:
        """Sort key: block height, then emission order inside the block"""
        return (self.block_number, self.log_index)


class OwnerChanged(RegistryEvent):
    """DIDOwnerChanged(identity, owner, previousChange)"""
    event_name: ClassVar[str] = "DIDOwnerChanged"

    owner: str


class DelegateChanged(RegistryEvent):
    """DIDDelegateChanged(identity, delegateType, delegate, validTo, previousChange)"""
    event_name: ClassVar[str] = "DIDDelegateChanged"

    delegate_type: str = Field(..., alias="delegateType")
    delegate: str
    valid_to: int = Field(..., alias="validTo")

    @property
    def key(self) -> Tuple[str, str, str]:
        return (self.event_name, self.delegate_type, self.delegate.lower())


class AttributeChanged(RegistryEvent):
    """DIDAttributeChanged(identity, name, value, validTo, previousChange)"""
    event_name: ClassVar[str] = "DIDAttributeChanged"

    name: str
    value: bytes
    valid_to: int = Field(..., alias="validTo")

    @property
    def key(self) -> Tuple[str, str, str]:
        return (self.event_name, self.name, self.value.hex())


Event = Union[OwnerChanged, DelegateChanged, AttributeChanged]


class MetaSignature(BaseModel):
    """Off-chain signature authorizing a relayed (``...Signed``) registry call"""
    v: int
    r: bytes
    s: bytes

    class Config:
        frozen = True

    def as_args(self) -> Tuple[int, bytes, bytes]:
        return (self.v, self.r, self.s)


class TxReceipt(BaseModel):
    """
    Transaction receipt from the blockchain.

    ``status`` is None for a transaction that was sent without waiting for
    it to be mined; block fields are then zero.
    """
    tx_hash: str = Field(..., alias="transactionHash")
    block_number: int = Field(..., alias="blockNumber")
    block_hash: str = Field(..., alias="blockHash")
    status: Optional[int] = None
    gas_used: int = Field(..., alias="gasUsed")
    from_address: str = Field(..., alias="from")
    to_address: Optional[str] = Field(None, alias="to")
    logs: List[Dict[str, Any]] = Field(default_factory=list)

    class Config:
        populate_by_name = True


class VerificationMethod(BaseModel):
    """Verification method entry of a DID document"""
    id: str
    type: str
    controller: str
    blockchain_account_id: Optional[str] = Field(None, alias="blockchainAccountId")
    public_key_hex: Optional[str] = Field(None, alias="publicKeyHex")
    public_key_base64: Optional[str] = Field(None, alias="publicKeyBase64")
    public_key_base58: Optional[str] = Field(None, alias="publicKeyBase58")
    public_key_pem: Optional[str] = Field(None, alias="publicKeyPem")
    value: Optional[str] = None

    class Config:
        populate_by_name = True
        frozen = True


class ServiceEndpoint(BaseModel):
    """Service entry of a DID document"""
    id: str
    type: str
    service_endpoint: Any = Field(..., alias="serviceEndpoint")

    class Config:
        populate_by_name = True
        frozen = True


class DIDDocument(BaseModel):
    """
    Snapshot of a did:ethr document at resolution time.

    The document is derived from registry events and never stored; use
    ``to_dict`` for the JSON-LD representation.
    """
    context: List[str] = Field(
        default_factory=lambda: [DID_CONTEXT, SECP256K1_RECOVERY_CONTEXT], alias="@context"
    )
    id: str
    controller: Optional[str] = None
    verification_method: List[VerificationMethod] = Field(default_factory=list, alias="verificationMethod")
    authentication: List[str] = Field(default_factory=list)
    assertion_method: List[str] = Field(default_factory=list, alias="assertionMethod")
    key_agreement: List[str] = Field(default_factory=list, alias="keyAgreement")
    service: List[ServiceEndpoint] = Field(default_factory=list)

    class Config:
        populate_by_name = True
        frozen = True

    @property
    def owner(self) -> Optional[str]:
        """Ethereum address of the current owner, parsed from the controller method"""
        for method in self.verification_method:
            if method.id == f"{self.id}#controller" and method.blockchain_account_id:
                return method.blockchain_account_id.rsplit(":", 1)[-1]
        return None

    def find_method(self, method_id: str) -> Optional[VerificationMethod]:
        for method in self.verification_method:
            if method.id == method_id:
                return method
        return None

    def to_dict(self) -> Dict[str, Any]:
        data = self.model_dump(by_alias=True, exclude_none=True)
        # Empty optional sections are omitted from the JSON-LD form
        for section in ("authentication", "assertionMethod", "keyAgreement", "service", "verificationMethod"):
            if not data.get(section):
                data.pop(section, None)
        return data


class DIDResolutionResult(BaseModel):
    """Document plus resolution metadata"""
    did_document: DIDDocument = Field(..., alias="didDocument")
    did_document_metadata: Dict[str, Any] = Field(default_factory=dict, alias="didDocumentMetadata")
    did_resolution_metadata: Dict[str, Any] = Field(
        default_factory=lambda: {"contentType": "application/did+ld+json"},
        alias="didResolutionMetadata"
    )

    class Config:
        populate_by_name = True
