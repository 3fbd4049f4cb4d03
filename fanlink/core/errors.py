"""
Wallet link error taxonomy.

Every failure of the wallet link flow is a typed exception carrying a stable
``code`` for clients and the HTTP status it maps to. Challenge store failures
are kept separate: the service folds all of them into ``ChallengeInvalid`` so
a caller cannot tell an expired challenge from a replayed one.
"""

from fastapi import status


class WalletLinkError(Exception):
    """Base exception for all wallet link errors."""

    code = "WALLET_LINK_ERROR"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Wallet link failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidAddressFormat(WalletLinkError):
    code = "INVALID_ADDRESS_FORMAT"
    default_message = "Invalid wallet address"


class MalformedMessage(WalletLinkError):
    code = "MALFORMED_MESSAGE"
    default_message = "Message does not match the issued challenge format"


class ChallengeInvalid(WalletLinkError):
    code = "CHALLENGE_INVALID"
    default_message = "Invalid or expired challenge. Please request a new one."


class MalformedSignature(WalletLinkError):
    code = "MALFORMED_SIGNATURE"
    default_message = "Malformed signature"


class SignatureMismatch(WalletLinkError):
    code = "SIGNATURE_MISMATCH"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Signature was not produced by the claimed wallet"


class AlreadyLinkedToOtherAccount(WalletLinkError):
    code = "ALREADY_LINKED_TO_OTHER_ACCOUNT"
    status_code = status.HTTP_409_CONFLICT
    default_message = "This wallet is already linked to another account"


class AccountAlreadyHasWallet(WalletLinkError):
    code = "ACCOUNT_ALREADY_HAS_WALLET"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Account already has a linked wallet. Unlink it first."


class NotLinked(WalletLinkError):
    code = "NOT_LINKED"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "No wallet linked to this account"


class ChallengeStoreError(Exception):
    """Raised by the challenge store; never shown to clients as-is."""


class ChallengeNotFound(ChallengeStoreError):
    pass


class ChallengeExpired(ChallengeStoreError):
    pass


class ChallengeAlreadyConsumed(ChallengeStoreError):
    pass


class WalletLinkConflict(Exception):
    """Unique constraint violation on insert, ``kind`` is "address" or "account"."""

    def __init__(self, kind: str):
        self.kind = kind
        super().__init__(f"wallet link {kind} already taken")
