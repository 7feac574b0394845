"""Signature injection into Solana transactions.

Slot i of tx.signatures belongs to account key i of tx.message. A
signature is placed by exact public-key match; a key with no slot is an
error, never a silent no-op. The caller's transaction is written once,
after the slot is validated, so a failed injection leaves it unchanged.
"""

from __future__ import annotations

from typing import Union

from solders.message import to_bytes_versioned
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import Transaction, VersionedTransaction

from turnkey_signer.errors import SignatureFormatError, UnknownSignerError

SIGNATURE_LENGTH = 64

AnyTransaction = Union[Transaction, VersionedTransaction]


def message_bytes(transaction: AnyTransaction) -> bytes:
    """The canonical bytes a signer signs for this transaction."""
    if isinstance(transaction, VersionedTransaction):
        return bytes(to_bytes_versioned(transaction.message))
    return bytes(transaction.message_data())


def to_signature(raw: bytes) -> Signature:
    """Convert raw r||s bytes into a solders Signature."""
    if len(raw) != SIGNATURE_LENGTH:
        raise SignatureFormatError(
            f"Expected {SIGNATURE_LENGTH} signature bytes, got {len(raw)}"
        )
    try:
        return Signature.from_bytes(raw)
    except ValueError as e:
        raise SignatureFormatError(f"Invalid signature bytes: {e}") from e


def find_signer_index(transaction: AnyTransaction, public_key: Pubkey) -> int:
    """Index of the signer's slot. First account-key match wins.

    Raises UnknownSignerError if the key is absent or sits past the end
    of the signature list (i.e. it is not a required signer).
    """
    account_keys = list(transaction.message.account_keys)
    try:
        index = account_keys.index(public_key)
    except ValueError:
        raise UnknownSignerError(
            f"unknown signer: {public_key} is not in the transaction's account keys"
        ) from None

    slots = len(transaction.signatures)
    if index >= slots:
        raise UnknownSignerError(
            f"unknown signer: {public_key} is account {index} but the "
            f"transaction has {slots} signature slot(s)"
        )
    return index


def inject_signature(
    transaction: AnyTransaction,
    public_key: Pubkey,
    signature: Signature,
) -> AnyTransaction:
    """Fill the signer's slot in place and return a copy of the signed transaction."""
    index = find_signer_index(transaction, public_key)
    signatures = list(transaction.signatures)
    signatures[index] = signature
    transaction.signatures = signatures
    return type(transaction).populate(transaction.message, signatures)
