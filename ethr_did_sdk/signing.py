"""
Signatures used around the registry.

Two formats are supported:

- Meta-transaction signatures: a raw secp256k1 signature over the 32-byte
  hash the registry recomputes in its ``...Signed`` functions.
- ES256K-R compact JWS, the format delegates use to sign JWTs on behalf of
  a did:ethr identity. Verification recovers the signer address and
  matches it against the issuer's DID document.
"""
import base64
import hashlib
import json
import logging
import time
from typing import TYPE_CHECKING, Any, Dict, Optional, Union

import jwt
from eth_keys import keys
from eth_keys.exceptions import BadSignature, ValidationError

from .exceptions import SigningError
from .models import DIDDocument, MetaSignature, VerificationMethod
from .utils import public_key_to_address, strip_0x

if TYPE_CHECKING:
    from .resolver import EthrDIDResolver

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "ES256K-R"


def _to_private_key(private_key: Union[str, bytes]) -> keys.PrivateKey:
    if isinstance(private_key, str):
        private_key = bytes.fromhex(strip_0x(private_key))
    try:
        return keys.PrivateKey(private_key)
    except ValidationError as e:
        raise SigningError(f"Invalid private key: {e}") from e


def sign_meta_hash(message_hash: bytes, private_key: Union[str, bytes]) -> MetaSignature:
    """
    Sign a meta-transaction hash.

    The registry runs ``ecrecover`` directly on the hash, so no EIP-191
    prefix is applied here.

    Args:
        message_hash: 32-byte hash from one of the controller's ``create_*_hash`` methods
        private_key: Key of the identity owner

    Returns:
        MetaSignature with ``v`` in {27, 28}
    """
    if len(message_hash) != 32:
        raise SigningError(f"Meta-transaction hash must be 32 bytes, got {len(message_hash)}")
    signature = _to_private_key(private_key).sign_msg_hash(message_hash)
    return MetaSignature(
        v=signature.v + 27,
        r=signature.r.to_bytes(32, "big"),
        s=signature.s.to_bytes(32, "big"),
    )


def recover_meta_signer(message_hash: bytes, signature: MetaSignature) -> str:
    """Recover the checksummed address that produced a meta-transaction signature"""
    v = signature.v - 27 if signature.v >= 27 else signature.v
    try:
        sig = keys.Signature(vrs=(v, int.from_bytes(signature.r, "big"), int.from_bytes(signature.s, "big")))
        return sig.recover_public_key_from_msg_hash(message_hash).to_checksum_address()
    except (BadSignature, ValidationError) as e:
        raise SigningError(f"Cannot recover meta-transaction signer: {e}") from e


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64url_decode(data: str) -> bytes:
    return base64.urlsafe_b64decode(data + "=" * (-len(data) % 4))


def sign_jwt(
    payload: Dict[str, Any],
    private_key: Union[str, bytes],
    issuer: str,
    expires_in: Optional[int] = None,
    issued_at: Optional[int] = None,
) -> str:
    """
    Create an ES256K-R signed JWT.

    Args:
        payload: Claims to sign
        private_key: Key of a signing delegate (or the owner) of ``issuer``
        issuer: DID placed in the ``iss`` claim
        expires_in: Optional lifetime in seconds, sets ``exp``
        issued_at: Override for ``iat`` (defaults to now)

    Returns:
        Compact JWS string
    """
    claims = dict(payload)
    claims["iss"] = issuer
    claims.setdefault("iat", issued_at if issued_at is not None else int(time.time()))
    if expires_in is not None:
        claims["exp"] = claims["iat"] + int(expires_in)

    header = {"alg": JWT_ALGORITHM, "typ": "JWT"}
    signing_input = ".".join([
        _b64url(json.dumps(header, separators=(",", ":")).encode("utf-8")),
        _b64url(json.dumps(claims, separators=(",", ":")).encode("utf-8")),
    ])
    digest = hashlib.sha256(signing_input.encode("ascii")).digest()
    sig = _to_private_key(private_key).sign_msg_hash(digest)
    raw = sig.r.to_bytes(32, "big") + sig.s.to_bytes(32, "big") + bytes([sig.v])
    return f"{signing_input}.{_b64url(raw)}"


def recover_jwt_signer(token: str) -> str:
    """Recover the address that signed an ES256K-R JWT"""
    try:
        signing_input, encoded_sig = token.rsplit(".", 1)
        raw = _b64url_decode(encoded_sig)
    except ValueError as e:
        raise SigningError(f"Malformed JWT: {e}") from e
    if len(raw) != 65:
        raise SigningError(f"ES256K-R signature must be 65 bytes, got {len(raw)}")

    recovery = raw[64] - 27 if raw[64] >= 27 else raw[64]
    digest = hashlib.sha256(signing_input.encode("ascii")).digest()
    try:
        sig = keys.Signature(vrs=(recovery, int.from_bytes(raw[:32], "big"), int.from_bytes(raw[32:64], "big")))
        return sig.recover_public_key_from_msg_hash(digest).to_checksum_address()
    except (BadSignature, ValidationError) as e:
        raise SigningError(f"Invalid JWT signature: {e}") from e


def _method_address(method: VerificationMethod) -> Optional[str]:
    if method.blockchain_account_id:
        return method.blockchain_account_id.rsplit(":", 1)[-1]
    if method.public_key_hex and method.type.startswith("EcdsaSecp256k1"):
        try:
            return public_key_to_address(method.public_key_hex)
        except ValueError:
            logger.debug("Skipping undecodable key %s", method.id)
    return None


def find_signing_method(
    document: DIDDocument, signer: str, auth: bool = False
) -> Optional[VerificationMethod]:
    """
    Find the verification method of ``document`` controlled by ``signer``.

    Args:
        document: Issuer's DID document
        signer: Recovered signer address
        auth: Restrict the search to authentication methods
    """
    allowed = set(document.authentication if auth else document.assertion_method + document.authentication)
    for method in document.verification_method:
        if method.id not in allowed:
            continue
        address = _method_address(method)
        if address and address.lower() == signer.lower():
            return method
    return None


def verify_jwt(
    token: str,
    resolver: "EthrDIDResolver",
    auth: bool = False,
    audience: Optional[str] = None,
    now: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Verify an ES256K-R JWT against its issuer's current DID document.

    Returns:
        Dict with ``payload``, ``issuer``, ``signer`` (VerificationMethod)
        and ``did_document``

    Raises:
        SigningError: If the token is malformed, expired, or not signed by
            a key listed in the issuer's document
    """
    try:
        header = jwt.get_unverified_header(token)
        payload = jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError as e:
        raise SigningError(f"Malformed JWT: {e}") from e

    if header.get("alg") != JWT_ALGORITHM:
        raise SigningError(f"Unsupported JWT algorithm: {header.get('alg')}")

    issuer = payload.get("iss")
    if not issuer:
        raise SigningError("JWT has no iss claim")

    current = now if now is not None else int(time.time())
    if "exp" in payload and int(payload["exp"]) <= current:
        raise SigningError(f"JWT expired at {payload['exp']}")
    if "nbf" in payload and int(payload["nbf"]) > current:
        raise SigningError(f"JWT not valid before {payload['nbf']}")
    if audience is not None:
        aud = payload.get("aud")
        audiences = aud if isinstance(aud, list) else [aud]
        if audience not in audiences:
            raise SigningError(f"JWT audience {aud!r} does not include {audience}")

    signer_address = recover_jwt_signer(token)
    document = resolver.resolve(issuer)
    method = find_signing_method(document, signer_address, auth=auth)
    if method is None:
        raise SigningError(f"Signer {signer_address} is not authorized by {issuer}")

    logger.debug("Verified JWT from %s signed by %s", issuer, method.id)
    return {"payload": payload, "issuer": issuer, "signer": method, "did_document": document}
