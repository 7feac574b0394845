"""Hex / base64url codecs and the secure random source.

Pure functions. Hex decoding is strict: no whitespace, no 0x prefix,
even length only.
"""

from __future__ import annotations

import base64
import binascii
import os
import re

from turnkey_signer.errors import EncodingError

_HEX_RE = re.compile(r"[0-9a-fA-F]*")
_B64URL_RE = re.compile(r"[A-Za-z0-9_-]*")


def hex_to_bytes(text: str) -> bytes:
    """Decode an even-length string of hex digit pairs."""
    if len(text) % 2:
        raise EncodingError(f"Hex string has odd length ({len(text)})")
    if not _HEX_RE.fullmatch(text):
        raise EncodingError("Hex string contains non-hex characters")
    return bytes.fromhex(text)


def bytes_to_hex(data: bytes) -> str:
    return data.hex()


def random_bytes(n: int) -> bytes:
    """n bytes from the OS entropy source."""
    if n < 0:
        raise ValueError("n must be non-negative")
    return os.urandom(n)


def bytes_to_base64url(data: bytes) -> str:
    """URL-safe base64 with the trailing '=' padding removed."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def base64url_to_bytes(text: str) -> bytes:
    """Inverse of bytes_to_base64url. Accepts padded or unpadded input."""
    stripped = text.rstrip("=")
    if not _B64URL_RE.fullmatch(stripped) or len(stripped) % 4 == 1:
        raise EncodingError("Invalid base64url input")
    padded = stripped + "=" * (-len(stripped) % 4)
    try:
        return base64.urlsafe_b64decode(padded)
    except binascii.Error as e:
        raise EncodingError(f"Invalid base64url: {e}") from e
