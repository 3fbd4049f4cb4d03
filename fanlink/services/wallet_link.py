"""
Wallet link service.

Orchestrates the two halves of the link flow:

- request_challenge: unauthenticated, scoped to an address. Issues a fresh
  single-use challenge for the wallet to sign.
- link_wallet: authenticated, scoped to an account. Consumes the challenge,
  recovers the signer and binds the address to the account.

A stale challenge (e.g. the user switched wallets mid-flow) simply fails to
consume; it can never link a different address than the one that signed.
"""

import logging
from typing import Callable, Optional

from fanlink.core.challenge_store import Challenge, ChallengeStore, parse_challenge_message
from fanlink.core.errors import (
    AccountAlreadyHasWallet,
    AlreadyLinkedToOtherAccount,
    ChallengeInvalid,
    ChallengeStoreError,
    MalformedMessage,
    NotLinked,
    SignatureMismatch,
    WalletLinkConflict,
)
from fanlink.core.eth_auth import normalize_address, recover_address
from fanlink.db.wallet_repository import WalletLinkRepository
from fanlink.models.wallet import WalletLink

logger = logging.getLogger(__name__)

SignatureVerifier = Callable[[str, str], str]


class WalletLinkService:
    def __init__(
        self,
        challenge_store: ChallengeStore,
        repository: WalletLinkRepository,
        verifier: SignatureVerifier = recover_address,
    ):
        self.challenge_store = challenge_store
        self.repository = repository
        self.verifier = verifier

    def request_challenge(self, address: str) -> Challenge:
        """
        Issue a challenge for ``address``.

        Raises:
            InvalidAddressFormat: If the address is not a valid hex address
        """
        return self.challenge_store.issue(normalize_address(address))

    def link_wallet(
        self,
        account_id: str,
        address: str,
        message: str,
        signature: str,
        chain_id: Optional[int] = None,
    ) -> WalletLink:
        """
        Prove ownership of ``address`` and bind it to ``account_id``.

        ``chain_id`` is stored as metadata only, it is not part of the proof.

        Raises:
            InvalidAddressFormat, MalformedMessage, ChallengeInvalid,
            MalformedSignature, SignatureMismatch,
            AlreadyLinkedToOtherAccount, AccountAlreadyHasWallet
        """
        address = normalize_address(address)

        parsed = parse_challenge_message(message)
        if parsed is None:
            raise MalformedMessage()

        try:
            challenge = self.challenge_store.consume(address, parsed["nonce"])
        except ChallengeStoreError as e:
            logger.warning(
                "link rejected for account %s: challenge %s", account_id, type(e).__name__
            )
            raise ChallengeInvalid()

        # the nonce matched but the rest of the text was altered
        if challenge.message != message:
            logger.warning("link rejected for account %s: message altered", account_id)
            raise ChallengeInvalid()

        recovered = self.verifier(message, signature)
        if recovered.lower() != address:
            logger.warning(
                "link rejected for account %s: signer %s is not %s",
                account_id, _short(recovered), _short(address),
            )
            raise SignatureMismatch()

        return self._insert_link(account_id, address, chain_id)

    def unlink_wallet(self, account_id: str) -> None:
        """
        Remove the account's wallet link.

        Raises:
            NotLinked: If the account has no linked wallet
        """
        if not self.repository.delete_wallet_link(account_id):
            raise NotLinked()
        logger.info("wallet unlinked from account %s", account_id)

    def get_linked_wallet(self, account_id: str) -> Optional[WalletLink]:
        return self.repository.find_wallet_link_by_account(account_id)

    def _insert_link(self, account_id: str, address: str, chain_id: Optional[int]) -> WalletLink:
        # Pre-checks give the common case a clean answer; the unique
        # constraints decide any race that slips between check and insert.
        owner = self.repository.find_wallet_link_by_address(address)
        if owner is not None and owner.account_id != account_id:
            raise AlreadyLinkedToOtherAccount()
        if owner is not None or self.repository.find_wallet_link_by_account(account_id):
            raise AccountAlreadyHasWallet()

        link = WalletLink(
            account_id=account_id,
            address=address,
            chain_id=chain_id,
            is_external=True,
        )
        try:
            link = self.repository.insert_wallet_link(link)
        except WalletLinkConflict as e:
            if e.kind == "address":
                raise AlreadyLinkedToOtherAccount()
            raise AccountAlreadyHasWallet()

        logger.info("wallet %s linked to account %s", _short(address), account_id)
        return link


def _short(address: str) -> str:
    return f"{address[:6]}...{address[-4:]}"
