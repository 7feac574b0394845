"""Error taxonomy for the Turnkey client.

Every failure the package surfaces is a TurnkeyError subclass. None of
them is retried internally; retry policy belongs to the caller.
Messages never contain private key material.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from turnkey_signer.models import FieldViolation, TurnkeyResponseError


class TurnkeyError(Exception):
    """Base class for all client errors."""
    pass


class EncodingError(TurnkeyError):
    """Malformed hex or base64 input."""
    pass


class CryptoError(TurnkeyError):
    """Key parsing or signing failure."""
    pass


class SerializationError(TurnkeyError):
    """Request or response JSON did not have the expected shape."""
    pass


class TransportError(TurnkeyError):
    """Network or connection failure while talking to the API."""
    pass


class RemoteMethodError(TurnkeyError):
    """The API answered with a structured error body."""

    def __init__(self, error: TurnkeyResponseError, status_code: int = 0):
        super().__init__(str(error))
        self.error = error
        self.status_code = status_code

    @property
    def code(self) -> int:
        return self.error.code

    @property
    def field_violations(self) -> list[FieldViolation]:
        return [v for d in self.error.details for v in d.field_violations]


class MissingResultError(TurnkeyError):
    """The call succeeded but carried no usable signature."""
    pass


class UnknownSelectorError(TurnkeyError):
    """No identity is registered for a key selector."""
    pass


class UnknownSignerError(TurnkeyError):
    """The signer's public key has no signature slot in the transaction."""
    pass


class SignatureFormatError(TurnkeyError):
    """Signature bytes do not fit the target signature type."""
    pass


class ConfigError(TurnkeyError):
    """Missing or invalid environment / keys.yaml configuration."""
    pass
