"""Turnkey request stamping and delegated Solana transaction signing.

Stamp:    turnkey_signer/signer/stamp.py    (X-Stamp, ECDSA P-256)
Registry: turnkey_signer/signer/registry.py (KeySelector -> KeyIdentity)
Inject:   turnkey_signer/signer/injector.py (signature slot matching)
Client:   turnkey_signer/clients/turnkey.py (sign_raw_payload, whoami)
"""

from turnkey_signer.clients.turnkey import TurnkeyClient
from turnkey_signer.errors import (
    ConfigError,
    CryptoError,
    EncodingError,
    MissingResultError,
    RemoteMethodError,
    SerializationError,
    SignatureFormatError,
    TransportError,
    TurnkeyError,
    UnknownSelectorError,
    UnknownSignerError,
)
from turnkey_signer.signer.registry import KeyIdentity, KeyRegistry, KeySelector
from turnkey_signer.signer.stamp import (
    Credential,
    StampDigest,
    generate_api_key_pair,
    stamp,
    verify_stamp,
)

__all__ = [
    "TurnkeyClient",
    "Credential",
    "StampDigest",
    "stamp",
    "verify_stamp",
    "generate_api_key_pair",
    "KeyIdentity",
    "KeyRegistry",
    "KeySelector",
    "TurnkeyError",
    "ConfigError",
    "CryptoError",
    "EncodingError",
    "MissingResultError",
    "RemoteMethodError",
    "SerializationError",
    "SignatureFormatError",
    "TransportError",
    "UnknownSelectorError",
    "UnknownSignerError",
]
