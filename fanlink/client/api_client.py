"""
HTTP client for the wallet link endpoints.

Thin async wrapper over httpx that turns error responses into
WalletApiError so callers can show the server's message.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

import httpx

logger = logging.getLogger(__name__)


class WalletApiError(Exception):
    """Raised for any non-2xx answer from the wallet endpoints"""

    def __init__(self, code: str, message: str, status_code: int):
        self.code = code
        self.message = message
        self.status_code = status_code
        super().__init__(message)


@dataclass
class LinkedWallet:
    id: str
    account_id: str
    address: str
    chain_id: Optional[int]
    is_external: bool
    linked_at: Optional[str]

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "LinkedWallet":
        return cls(
            id=data.get("id", ""),
            account_id=data.get("accountId", ""),
            address=data.get("address", ""),
            chain_id=data.get("chainId"),
            is_external=bool(data.get("isExternal", True)),
            linked_at=data.get("linkedAt"),
        )


class WalletLinkApi(Protocol):
    async def request_challenge(self, address: str) -> str: ...

    async def link_wallet(
        self, address: str, message: str, signature: str, chain_id: Optional[int]
    ) -> LinkedWallet: ...

    async def unlink_wallet(self) -> None: ...

    async def get_linked_wallet(self) -> Optional[LinkedWallet]: ...


class HttpWalletLinkApi:
    """WalletLinkApi over HTTP, authenticated with the account's bearer token"""

    def __init__(self, client: httpx.AsyncClient, access_token: Optional[str] = None):
        self.client = client
        self.access_token = access_token

    def _headers(self) -> Dict[str, str]:
        if not self.access_token:
            return {}
        return {"Authorization": f"Bearer {self.access_token}"}

    async def request_challenge(self, address: str) -> str:
        """Ask for a challenge and return the message to sign"""
        response = await self.client.post("/wallet/nonce", json={"address": address})
        _raise_for_error(response)
        return response.json()["message"]

    async def link_wallet(
        self, address: str, message: str, signature: str, chain_id: Optional[int]
    ) -> LinkedWallet:
        response = await self.client.post(
            "/wallet/link",
            json={
                "address": address,
                "message": message,
                "signature": signature,
                "chainId": chain_id,
            },
            headers=self._headers(),
        )
        _raise_for_error(response)
        return LinkedWallet.from_json(response.json())

    async def unlink_wallet(self) -> None:
        response = await self.client.delete("/wallet/link", headers=self._headers())
        _raise_for_error(response)

    async def get_linked_wallet(self) -> Optional[LinkedWallet]:
        """Return the account's linked wallet, None when there is none"""
        response = await self.client.get("/wallet/me", headers=self._headers())
        if response.status_code == httpx.codes.NOT_FOUND:
            return None
        _raise_for_error(response)
        return LinkedWallet.from_json(response.json())


def _raise_for_error(response: httpx.Response) -> None:
    if response.is_success:
        return
    code, message = "HTTP_ERROR", response.reason_phrase or "Request failed"
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        code = body.get("error", code)
        # FastAPI HTTPException bodies carry "detail"
        message = body.get("message") or body.get("detail") or message
    logger.debug("wallet api error %s %s: %s", response.status_code, code, message)
    raise WalletApiError(code, str(message), response.status_code)
