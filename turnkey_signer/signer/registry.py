"""Key Registry: logical signer roles to Turnkey signing identities.

The set of roles is a closed enum. Adding a signer means adding a
KeySelector member, not inserting configuration at runtime. The mapping
is fixed when the registry is built and read-only afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Iterator, Mapping

from solders.pubkey import Pubkey

from turnkey_signer.errors import UnknownSelectorError


class KeySelector(str, Enum):
    """Logical signer roles known to this client."""
    EXAMPLE_KEY = "example_key"
    FEE_PAYER = "fee_payer"


@dataclass(frozen=True)
class KeyIdentity:
    """One signable identity held by the custody service.

    private_key_id is the opaque handle Turnkey signs with; public_key is
    what appears in a transaction's account-key list.
    """

    private_key_id: str
    public_key: Pubkey


class KeyRegistry:
    """Immutable KeySelector -> KeyIdentity mapping."""

    def __init__(self, identities: Mapping[KeySelector, KeyIdentity] | None = None):
        entries: dict[KeySelector, KeyIdentity] = {}
        for selector, identity in (identities or {}).items():
            entries[KeySelector(selector)] = identity
        self._identities = MappingProxyType(entries)

    def resolve(self, selector: KeySelector) -> KeyIdentity:
        try:
            return self._identities[KeySelector(selector)]
        except (KeyError, ValueError):
            raise UnknownSelectorError(
                f"No signing identity registered for selector {selector!r}"
            ) from None

    def __contains__(self, selector: object) -> bool:
        return selector in self._identities

    def __iter__(self) -> Iterator[KeySelector]:
        return iter(self._identities)

    def __len__(self) -> int:
        return len(self._identities)

    def __repr__(self) -> str:
        names = ", ".join(s.value for s in self._identities)
        return f"KeyRegistry({names})"
