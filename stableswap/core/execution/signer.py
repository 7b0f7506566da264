"""
Signing identity for Jupiter-built Solana transactions.

Jupiter returns a serialized transaction whose signature slots are zero
filled. Signing means locating the wallet among the message's required
signers and writing an ed25519 signature of the message bytes into that slot.

Wire layout (legacy and v0 share the signature section):
    shortvec(num_signatures) | num_signatures * 64-byte signature | message
    message = [0x80 | version] header(3 bytes) shortvec(num_keys) keys...
"""

from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass
from typing import List, Tuple

import base58
from nacl.exceptions import CryptoError
from nacl.signing import SigningKey

from ..recovery.errors import ConfigurationError, TransactionBuildError

logger = logging.getLogger(__name__)

SIGNATURE_LENGTH = 64
PUBKEY_LENGTH = 32
VERSION_PREFIX_MASK = 0x80


@dataclass(frozen=True)
class SignedTransaction:
    """A signed transaction ready for sendTransaction."""
    serialized: str   # base64
    signature: str    # base58, the transaction id


def decode_shortvec(data: bytes, offset: int) -> Tuple[int, int]:
    """Decode a compact-u16 length; returns (value, next_offset)."""
    value = 0
    shift = 0
    for i in range(3):
        if offset + i >= len(data):
            raise ValueError("Truncated shortvec length")
        byte = data[offset + i]
        value |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return value, offset + i + 1
        shift += 7
    raise ValueError("Shortvec length longer than 3 bytes")


def required_signers(message: bytes) -> List[bytes]:
    """Public keys that must sign the message, in signature-slot order."""
    index = 1 if message and message[0] & VERSION_PREFIX_MASK else 0
    if len(message) < index + 3:
        raise ValueError("Truncated message header")
    num_required = message[index]
    num_keys, index = decode_shortvec(message, index + 3)
    if num_required > num_keys:
        raise ValueError("Header requires more signers than account keys")
    end = index + num_keys * PUBKEY_LENGTH
    if len(message) < end:
        raise ValueError("Truncated account keys")
    return [
        message[index + i * PUBKEY_LENGTH:index + (i + 1) * PUBKEY_LENGTH]
        for i in range(num_required)
    ]


class TransactionSigner:
    """
    Holds the wallet key and signs serialized transactions.

    Usage:
        signer = TransactionSigner.from_base58(settings.solana_private_key)
        signed = signer.sign_serialized(swap.swap_transaction)
        await executor.send_transaction(signed.serialized, skip_preflight=True)
    """

    def __init__(self, signing_key: SigningKey):
        self._signing_key = signing_key
        self._public_key_bytes = bytes(signing_key.verify_key)

    @classmethod
    def from_base58(cls, secret: str) -> "TransactionSigner":
        """Load a signer from a base58 encoded 64-byte secret key (seed + public key)."""
        secret = (secret or "").strip()
        if not secret:
            raise ConfigurationError("Missing wallet secret key")
        try:
            raw = base58.b58decode(secret)
        except ValueError:
            raise ConfigurationError("Invalid wallet secret key: not base58") from None
        if len(raw) != 64:
            raise ConfigurationError(f"Invalid wallet secret key: expected 64 bytes, got {len(raw)}")

        signing_key = SigningKey(raw[:32])
        if bytes(signing_key.verify_key) != raw[32:]:
            raise ConfigurationError("Invalid wallet secret key: public half does not match")
        return cls(signing_key)

    @property
    def public_key(self) -> str:
        return base58.b58encode(self._public_key_bytes).decode("ascii")

    @property
    def masked_public_key(self) -> str:
        pubkey = self.public_key
        return f"{pubkey[:4]}...{pubkey[-4:]}"

    def sign_serialized(self, transaction_b64: str) -> SignedTransaction:
        """
        Sign a base64 serialized transaction with the wallet key.

        Raises TransactionBuildError when the payload cannot be parsed or the
        wallet is not one of its required signers.
        """
        try:
            raw = base64.b64decode(transaction_b64, validate=True)
            num_signatures, sig_offset = decode_shortvec(raw, 0)
            message_offset = sig_offset + num_signatures * SIGNATURE_LENGTH
            message = raw[message_offset:]
            signers = required_signers(message)
        except (binascii.Error, ValueError) as e:
            raise TransactionBuildError(f"Could not deserialize swap transaction: {e}") from e

        if len(signers) != num_signatures:
            raise TransactionBuildError(
                f"Transaction has {num_signatures} signature slots for {len(signers)} signers"
            )
        try:
            slot = signers.index(self._public_key_bytes)
        except ValueError:
            raise TransactionBuildError(
                f"Wallet {self.masked_public_key} is not a required signer of the swap transaction"
            ) from None

        try:
            signature = self._signing_key.sign(message).signature
        except CryptoError as e:
            raise TransactionBuildError(f"Signing failed: {e}") from e

        start = sig_offset + slot * SIGNATURE_LENGTH
        signed = raw[:start] + signature + raw[start + SIGNATURE_LENGTH:]

        tx_id = base58.b58encode(signature).decode("ascii")
        logger.debug(f"Signed transaction {tx_id}")
        return SignedTransaction(
            serialized=base64.b64encode(signed).decode("ascii"),
            signature=tx_id,
        )
