"""
DIDStateReducer - folds registry events into a DID document.

Events are replayed oldest first against one fixed clock. Owner changes
overwrite the owner; delegate and attribute events are keyed by
``(kind, type-or-name, delegate-or-value)`` and either (re)activate the key
when still valid or remove it when expired or revoked.
"""
import base64
import json
import logging
import re
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, NamedTuple, Optional, Tuple, Union

import base58
from eth_utils import to_checksum_address

from .models import (
    DID_CONTEXT, SECP256K1_CONTEXT, SECP256K1_RECOVERY_CONTEXT,
    AttributeChanged, DelegateChanged, DIDDocument, Event, OwnerChanged,
    ServiceEndpoint, VerificationMethod
)
from .utils import NULL_ADDRESS, make_did, public_key_to_address, short_address, strip_0x

logger = logging.getLogger(__name__)

RECOVERY_METHOD_TYPE = "EcdsaSecp256k1RecoveryMethod2020"
SECP256K1_KEY_TYPE = "EcdsaSecp256k1VerificationKey2019"

# Delegate types that act as verification methods of the document
DELEGATE_TYPES = ("veriKey", "sigAuth")

VERIFICATION_METHOD_TYPES = {
    "Secp256k1": SECP256K1_KEY_TYPE,
    "Ed25519": "Ed25519VerificationKey2018",
    "X25519": "X25519KeyAgreementKey2019",
    "Rsa": "RsaVerificationKey2018",
}

LEGACY_ATTRIBUTE_TYPES = {
    "sigAuth": "SignatureAuthentication2018",
    "veriKey": "VerificationKey2018",
    "enc": "KeyAgreementKey2019",
}

ATTRIBUTE_PATTERN = re.compile(r"^did/(pub|svc)/(\w+)(?:/(\w+))?(?:/(\w+))?$")


class ActiveEntry(NamedTuple):
    """An active delegate or attribute and the ordinal used for its fragment id"""
    event: Union[DelegateChanged, AttributeChanged]
    ordinal: int
    section: str  # "delegate", "pub", "svc" or "" when not rendered


@dataclass(frozen=True)
class ReducedState:
    """
    Identity state at one instant.

    Attributes:
        identity: Identity address
        owner: Current owner address
        entries: Active delegates and attributes, in activation order
        version_id: Block of the latest applied event (0 without history)
        deactivated: True when ownership was given to the zero address
        now: Clock the state was reduced against
    """
    identity: str
    owner: str
    entries: Tuple[ActiveEntry, ...] = field(default_factory=tuple)
    version_id: int = 0
    deactivated: bool = False
    now: int = 0

    @property
    def delegates(self) -> List[DelegateChanged]:
        return [e.event for e in self.entries if isinstance(e.event, DelegateChanged)]

    @property
    def attributes(self) -> List[AttributeChanged]:
        return [e.event for e in self.entries if isinstance(e.event, AttributeChanged)]


def is_valid_at(valid_to: int, now: int) -> bool:
    """Validity window check: an entry expires at exactly ``valid_to``"""
    return now < valid_to


def _service_endpoint(value: bytes):
    text = value.decode("utf-8", errors="replace")
    stripped = text.strip()
    if stripped[:1] in ("{", "["):
        try:
            return json.loads(stripped)
        except ValueError:
            logger.debug("Service endpoint is not JSON, keeping the raw string")
    return text


class DIDStateReducer:
    """
    Replays an ordered event history into identity state and DID documents.

    The reducer is pure: it holds only the chain id used for
    ``blockchainAccountId`` references, so one instance can serve
    concurrent resolutions.
    """

    def __init__(self, chain_id: int, logger: Optional[logging.Logger] = None):
        self.chain_id = int(chain_id)
        self.logger = logger or logging.getLogger(__name__)

    def reduce(self, identity: str, events: Iterable[Event], now: int) -> ReducedState:
        """
        Fold events into the identity's state.

        Args:
            identity: Identity address
            events: Events of the identity, oldest first
            now: Unix timestamp used for every validity check of this pass

        Returns:
            ReducedState
        """
        identity = to_checksum_address(identity)
        owner = identity
        version_id = 0
        delegate_count = 0
        service_count = 0
        active: "OrderedDict[Tuple[str, str, str], ActiveEntry]" = OrderedDict()

        # Stable on (block, log index) so emission order breaks ties
        for event in sorted(events, key=lambda e: e.position):
            version_id = max(version_id, event.block_number)

            if isinstance(event, OwnerChanged):
                owner = event.owner
                continue

            key = event.key
            if not is_valid_at(event.valid_to, now):
                active.pop(key, None)
                continue

            section = ""
            ordinal = 0
            if isinstance(event, DelegateChanged):
                if event.delegate_type in DELEGATE_TYPES:
                    delegate_count += 1
                    section, ordinal = "delegate", delegate_count
            else:
                match = ATTRIBUTE_PATTERN.match(event.name)
                if match and match.group(1) == "pub":
                    delegate_count += 1
                    section, ordinal = "pub", delegate_count
                elif match and match.group(1) == "svc":
                    service_count += 1
                    section, ordinal = "svc", service_count
                else:
                    self.logger.debug("Attribute %r does not map to a document section", event.name)

            # Re-activation moves the key to the end, like a fresh insert
            active.pop(key, None)
            active[key] = ActiveEntry(event=event, ordinal=ordinal, section=section)

        return ReducedState(
            identity=identity,
            owner=owner,
            entries=tuple(active.values()),
            version_id=version_id,
            deactivated=owner.lower() == NULL_ADDRESS,
            now=now,
        )

    def to_document(
        self,
        did: str,
        state: ReducedState,
        public_key: Optional[str] = None,
        network: Optional[str] = None
    ) -> DIDDocument:
        """
        Render reduced state as a DID document.

        Args:
            did: DID used as document id and method prefix
            state: Output of ``reduce``
            public_key: Compressed public key embedded in the DID, if any
            network: Network name for the controller DID

        Returns:
            DIDDocument
        """
        if state.deactivated:
            self.logger.info("DID %s is deactivated", did)
            return DIDDocument(id=did, context=[DID_CONTEXT])

        controller_id = f"{did}#controller"
        methods: List[VerificationMethod] = [
            VerificationMethod(
                id=controller_id,
                type=RECOVERY_METHOD_TYPE,
                controller=did,
                blockchain_account_id=self._account_id(state.owner),
            )
        ]
        authentication = [controller_id]
        key_agreement: List[str] = []
        services: List[ServiceEndpoint] = []
        context = [DID_CONTEXT, SECP256K1_RECOVERY_CONTEXT]

        if public_key and public_key_to_address(public_key).lower() == state.owner.lower():
            methods.append(VerificationMethod(
                id=f"{did}#controllerKey",
                type=SECP256K1_KEY_TYPE,
                controller=did,
                public_key_hex=strip_0x(public_key),
            ))
            authentication.append(f"{did}#controllerKey")
            context.append(SECP256K1_CONTEXT)

        for entry in state.entries:
            event = entry.event
            if entry.section == "delegate":
                method_id = f"{did}#delegate-{entry.ordinal}"
                methods.append(VerificationMethod(
                    id=method_id,
                    type=RECOVERY_METHOD_TYPE,
                    controller=did,
                    blockchain_account_id=self._account_id(event.delegate),
                ))
                if event.delegate_type == "sigAuth":
                    authentication.append(method_id)
            elif entry.section == "pub":
                method = self._key_attribute(did, entry)
                methods.append(method)
                purpose = ATTRIBUTE_PATTERN.match(event.name).group(3)
                if purpose == "sigAuth":
                    authentication.append(method.id)
                elif purpose == "enc":
                    key_agreement.append(method.id)
            elif entry.section == "svc":
                services.append(ServiceEndpoint(
                    id=f"{did}#service-{entry.ordinal}",
                    type=ATTRIBUTE_PATTERN.match(event.name).group(2),
                    service_endpoint=_service_endpoint(event.value),
                ))

        assertion_method = [m.id for m in methods if m.id not in key_agreement]
        controller = did if state.owner.lower() == state.identity.lower() else make_did(state.owner, network)

        self.logger.debug(
            "Document for %s: %d methods, %d services",
            short_address(state.identity), len(methods), len(services)
        )
        return DIDDocument(
            context=context,
            id=did,
            controller=controller,
            verification_method=methods,
            authentication=authentication,
            assertion_method=assertion_method,
            key_agreement=key_agreement,
            service=services,
        )

    def _account_id(self, address: str) -> str:
        return f"eip155:{self.chain_id}:{to_checksum_address(address)}"

    def _key_attribute(self, did: str, entry: ActiveEntry) -> VerificationMethod:
        """Map a ``did/pub/<Algo>/<Purpose>/<Encoding>`` attribute to a verification method"""
        event = entry.event
        _, algorithm, purpose, encoding = ATTRIBUTE_PATTERN.match(event.name).groups()
        method_type = VERIFICATION_METHOD_TYPES.get(algorithm) or (
            f"{algorithm}{LEGACY_ATTRIBUTE_TYPES.get(purpose, purpose or '')}"
        )
        key_fields: Dict[str, str] = {}
        if encoding in (None, "hex"):
            key_fields["public_key_hex"] = event.value.hex()
        elif encoding == "base64":
            key_fields["public_key_base64"] = base64.b64encode(event.value).decode("ascii")
        elif encoding == "base58":
            key_fields["public_key_base58"] = base58.b58encode(event.value).decode("ascii")
        elif encoding == "pem":
            key_fields["public_key_pem"] = event.value.decode("utf-8", errors="replace")
        else:
            key_fields["value"] = event.value.hex()

        return VerificationMethod(
            id=f"{did}#delegate-{entry.ordinal}",
            type=method_type,
            controller=did,
            **key_fields
        )
