"""
Client-side wallet link flow.

LinkOrchestrator drives connect -> request challenge -> sign -> submit
against a connected wallet and the wallet link API. It runs on a single
asyncio loop and may suspend at every network round trip and while the
wallet waits for the user to approve the signature.

Local state only changes after the server confirms: a rejected signature
or a failed request leaves ``linked_wallet`` showing the true prior link.
"""

import logging
from typing import Optional, Protocol

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_account.signers.local import LocalAccount

from fanlink.client.api_client import LinkedWallet, WalletLinkApi

logger = logging.getLogger(__name__)

CONNECT_FIRST_ERROR = "Please connect your wallet and login first"
LINK_IN_PROGRESS_ERROR = "Wallet link already in progress"
UNLINK_IN_PROGRESS_ERROR = "Wallet unlink already in progress"


class WalletConnection(Protocol):
    """A connected wallet able to sign messages"""

    @property
    def address(self) -> Optional[str]: ...

    @property
    def chain_id(self) -> Optional[int]: ...

    @property
    def is_connected(self) -> bool: ...

    async def sign_message(self, message: str) -> str: ...


class LocalAccountWallet:
    """WalletConnection backed by a private key held in process"""

    def __init__(self, account: LocalAccount, chain_id: Optional[int] = 1):
        self.account = account
        self.chain_id = chain_id
        self.is_connected = True

    @classmethod
    def from_key(cls, private_key: str, chain_id: Optional[int] = 1) -> "LocalAccountWallet":
        return cls(Account.from_key(private_key), chain_id)

    @property
    def address(self) -> Optional[str]:
        return self.account.address if self.is_connected else None

    async def sign_message(self, message: str) -> str:
        signed = self.account.sign_message(encode_defunct(text=message))
        return "0x" + bytes(signed.signature).hex()


class LinkOrchestrator:
    def __init__(
        self,
        wallet: WalletConnection,
        api: WalletLinkApi,
        is_authenticated: bool = False,
    ):
        self.wallet = wallet
        self.api = api
        self.is_authenticated = is_authenticated

        self.linked_wallet: Optional[LinkedWallet] = None
        self.is_linking = False
        self.is_unlinking = False
        self.is_loading = False
        self.error: Optional[str] = None

    @property
    def is_wallet_linked(self) -> bool:
        """True when the connected wallet is the linked one"""
        connected = self.wallet.address if self.wallet.is_connected else None
        if not connected or self.linked_wallet is None:
            return False
        return self.linked_wallet.address.lower() == connected.lower()

    async def on_auth_change(self, is_authenticated: bool) -> None:
        self.is_authenticated = is_authenticated
        await self.refresh()

    async def refresh(self) -> None:
        """Load the account's current link, or clear it when logged out"""
        if not self.is_authenticated:
            self.linked_wallet = None
            self.is_loading = False
            return

        self.is_loading = True
        try:
            self.linked_wallet = await self.api.get_linked_wallet()
        except Exception as e:
            logger.warning("could not load linked wallet: %s", e)
            self.linked_wallet = None
        finally:
            self.is_loading = False

    async def link(self) -> Optional[LinkedWallet]:
        """
        Run the whole link flow for the connected wallet.

        Returns the new link, or None when the call was rejected up front
        (not connected, not logged in, or a link already in flight). Any
        failure along the way is stored in ``error`` and re-raised.
        """
        address = self.wallet.address
        if not address or not self.wallet.is_connected or not self.is_authenticated:
            self.error = CONNECT_FIRST_ERROR
            return None
        if self.is_linking:
            self.error = LINK_IN_PROGRESS_ERROR
            return None

        self.is_linking = True
        self.error = None
        try:
            message = await self.api.request_challenge(address)
            signature = await self.wallet.sign_message(message)
            linked = await self.api.link_wallet(
                address, message, signature, self.wallet.chain_id
            )
            self.linked_wallet = linked
            return linked
        except Exception as e:
            self.error = str(e) or "Failed to link wallet"
            raise
        finally:
            self.is_linking = False

    async def unlink(self) -> None:
        if not self.is_authenticated or self.linked_wallet is None:
            return
        if self.is_unlinking:
            self.error = UNLINK_IN_PROGRESS_ERROR
            return

        self.is_unlinking = True
        self.error = None
        try:
            await self.api.unlink_wallet()
            self.linked_wallet = None
        except Exception as e:
            self.error = str(e) or "Failed to unlink wallet"
            raise
        finally:
            self.is_unlinking = False
