"""API request stamping (X-Stamp header).

A stamp proves the request body came from the holder of the API private
key (P-256). Construction:

  1. ECDSA/SHA-256 over the body bytes, RFC 6979 nonces, DER encoded
  2. hex(DER signature)
  3. {"publicKey", "signature", "scheme"} as compact JSON
  4. base64url without padding

Two digest modes exist in the protocol history and they are NOT
interchangeable: RAW signs the body bytes (current), SHA256 signs
sha256(body) (legacy). RAW is the default; SHA256 must be asked for.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from enum import Enum

from ecdsa import BadSignatureError, NIST256p, SigningKey, VerifyingKey
from ecdsa.der import UnexpectedDER
from ecdsa.errors import MalformedPointError
from ecdsa.util import sigdecode_der, sigencode_der
from pydantic import ValidationError

from turnkey_signer.errors import CryptoError, EncodingError, SerializationError
from turnkey_signer.models import SIGNATURE_SCHEME_TK_API_P256, ApiStamp
from turnkey_signer.utils.encoding import (
    base64url_to_bytes,
    bytes_to_base64url,
    bytes_to_hex,
    hex_to_bytes,
)

STAMP_HEADER = "X-Stamp"


class StampDigest(str, Enum):
    """Which bytes the ECDSA signature is computed over."""
    RAW = "raw"         # body bytes
    SHA256 = "sha256"   # sha256(body), legacy servers


@dataclass(frozen=True)
class Credential:
    """API key pair held for the lifetime of a client."""

    api_public_key: str
    api_private_key: str = field(repr=False)

    def signing_key(self) -> SigningKey:
        """Parse the private key hex into a P-256 signing key."""
        raw = hex_to_bytes(self.api_private_key)
        try:
            return SigningKey.from_string(raw, curve=NIST256p)
        except (MalformedPointError, ValueError, AssertionError):
            # Exception text can echo the scalar; keep it out of the message
            raise CryptoError(
                f"Invalid P-256 private key ({len(raw)} bytes)"
            ) from None


def _message(body: bytes, digest: StampDigest) -> bytes:
    if digest is StampDigest.SHA256:
        return hashlib.sha256(body).digest()
    return body


def _as_bytes(body: str | bytes) -> bytes:
    return body.encode("utf-8") if isinstance(body, str) else body


def stamp(
    body: str | bytes,
    credential: Credential,
    digest: StampDigest = StampDigest.RAW,
) -> str:
    """Compute the X-Stamp value for an exact request body."""
    signing_key = credential.signing_key()
    try:
        der_signature = signing_key.sign_deterministic(
            _message(_as_bytes(body), digest),
            hashfunc=hashlib.sha256,
            sigencode=sigencode_der,
        )
    except Exception as e:
        raise CryptoError(f"Stamp signing failed: {type(e).__name__}") from None

    envelope = ApiStamp(
        public_key=credential.api_public_key,
        signature=bytes_to_hex(der_signature),
        scheme=SIGNATURE_SCHEME_TK_API_P256,
    )
    try:
        json_stamp = envelope.model_dump_json(by_alias=True)
    except (ValueError, TypeError) as e:
        raise SerializationError(f"Stamp serialization failed: {e}") from e

    return bytes_to_base64url(json_stamp.encode("utf-8"))


def decode_stamp(x_stamp: str) -> ApiStamp:
    """Decode an X-Stamp value back into its envelope."""
    raw = base64url_to_bytes(x_stamp)
    try:
        return ApiStamp.model_validate(json.loads(raw))
    except (ValueError, ValidationError) as e:
        raise SerializationError(f"Malformed stamp envelope: {e}") from e


def verify_stamp(
    body: str | bytes,
    x_stamp: str,
    digest: StampDigest = StampDigest.RAW,
) -> bool:
    """Check a stamp against a body using the public key it carries.

    Returns False on any mismatch: tampered body, wrong scheme, bad
    public key or signature encoding.
    """
    try:
        envelope = decode_stamp(x_stamp)
        if envelope.scheme != SIGNATURE_SCHEME_TK_API_P256:
            return False
        vk = VerifyingKey.from_string(
            hex_to_bytes(envelope.public_key), curve=NIST256p,
        )
        return vk.verify(
            hex_to_bytes(envelope.signature),
            _message(_as_bytes(body), digest),
            hashfunc=hashlib.sha256,
            sigdecode=sigdecode_der,
        )
    except (BadSignatureError, MalformedPointError, UnexpectedDER,
            EncodingError, SerializationError, ValueError):
        return False


def generate_api_key_pair() -> Credential:
    """Create a fresh API key pair.

    Private key: 32-byte scalar as hex. Public key: compressed point
    (33 bytes) as hex, the form the API registers.
    """
    sk = SigningKey.generate(curve=NIST256p)
    vk = sk.get_verifying_key()
    return Credential(
        api_public_key=vk.to_string("compressed").hex(),
        api_private_key=sk.to_string().hex(),
    )
