"""
Ethereum Wallet Signature Utilities

This module handles the wallet-specific cryptography of the link flow.
Wallets sign challenges with ``personal_sign`` (EIP-191 version 0x45): the
message is prefixed with ``"\\x19Ethereum Signed Message:\\n" + len(message)``
before hashing, and the signer's address is recovered from the 65-byte
``r || s || v`` signature.

Verification Flow:
1. Backend validates and normalizes the claimed address -> normalize_address()
2. Wallet signs the challenge message (personal_sign)
3. Backend recovers the signer address -> recover_address()
4. Caller compares the recovered address with the claimed one

The recovery uses:
- eth-account for EIP-191 hashing and public key recovery
- eth-utils for address syntax and EIP-55 checksum validation
"""

import binascii
import logging

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_keys.exceptions import BadSignature
from eth_keys.exceptions import ValidationError as KeyValidationError
from eth_utils import ValidationError as EthValidationError
from eth_utils import is_checksum_address, is_hex_address

from fanlink.core.errors import InvalidAddressFormat, MalformedSignature

logger = logging.getLogger(__name__)

SIGNATURE_NUM_BYTES = 65  # r (32) + s (32) + v (1)
_VALID_V = (0, 1, 27, 28)


def is_valid_address(address: str) -> bool:
    """
    Check that ``address`` is a 0x-prefixed 20-byte hex address.

    All-lowercase and all-uppercase hex are accepted as-is. A mixed-case
    address is taken to carry an EIP-55 checksum, which must be valid.
    """
    if not isinstance(address, str) or not address.startswith("0x"):
        return False
    if not is_hex_address(address):
        return False
    body = address[2:]
    if body != body.lower() and body != body.upper():
        return is_checksum_address(address)
    return True


def normalize_address(address: str) -> str:
    """
    Validate an address and return its canonical lowercase form.

    Raises:
        InvalidAddressFormat: If the address is not a valid hex address
    """
    address = (address or "").strip()
    if not is_valid_address(address):
        raise InvalidAddressFormat()
    return address.lower()


def _decode_signature(signature: str) -> bytes:
    """Helper: Decode a 0x-prefixed hex signature and check its byte layout."""
    value = (signature or "").strip()
    if value[:2] in ("0x", "0X"):
        value = value[2:]
    try:
        sig_bytes = binascii.unhexlify(value)
    except (binascii.Error, ValueError):
        raise MalformedSignature("Signature must be hex encoded")

    if len(sig_bytes) != SIGNATURE_NUM_BYTES:
        raise MalformedSignature(
            f"Signature must be {SIGNATURE_NUM_BYTES} bytes, got {len(sig_bytes)}"
        )

    v = sig_bytes[-1]
    if v not in _VALID_V:
        raise MalformedSignature(f"Invalid signature recovery byte: {v}")
    if v < 27:
        # some hardware wallets emit the raw recovery id
        sig_bytes = sig_bytes[:-1] + bytes([v + 27])
    return sig_bytes


def recover_address(message: str, signature: str) -> str:
    """
    Recover the address that signed ``message`` with ``personal_sign``.

    This is a pure function: it does not compare against any expected
    address. A well-formed signature by some other key recovers that other
    key's address, and the caller decides what a mismatch means.

    Args:
        message: The exact text the wallet was asked to sign
        signature: 65-byte signature, hex encoded (0x prefix optional)

    Returns:
        The recovered signer address, lowercase

    Raises:
        MalformedSignature: If the signature cannot be decoded or recovered
    """
    sig_bytes = _decode_signature(signature)
    signable = encode_defunct(text=message)
    try:
        recovered = Account.recover_message(signable, signature=sig_bytes)
    except (BadSignature, KeyValidationError, EthValidationError, ValueError) as e:
        logger.debug("signature recovery failed: %s", e)
        raise MalformedSignature("Signature could not be recovered")
    return recovered.lower()
