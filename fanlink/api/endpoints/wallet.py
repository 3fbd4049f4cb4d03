from enum import Enum
from typing import List

from fastapi import APIRouter, Depends, Response, status

from fanlink.core.dependencies import get_current_account_id, get_wallet_link_service
from fanlink.core.errors import NotLinked
from fanlink.schemas.wallet import (
    ErrorResponse,
    LinkWalletRequest,
    NonceRequest,
    NonceResponse,
    WalletLinkResponse,
)
from fanlink.services.wallet_link import WalletLinkService

router = APIRouter()
group_tags: List[str | Enum] = ["wallet"]

error_responses = {
    status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
    status.HTTP_401_UNAUTHORIZED: {"model": ErrorResponse},
    status.HTTP_404_NOT_FOUND: {"model": ErrorResponse},
    status.HTTP_409_CONFLICT: {"model": ErrorResponse},
}


@router.post(
    "/nonce",
    tags=group_tags,
    response_model=NonceResponse,
    status_code=status.HTTP_201_CREATED,
    responses=error_responses,
)
def request_nonce(
    body: NonceRequest,
    service: WalletLinkService = Depends(get_wallet_link_service),
) -> NonceResponse:
    """
    Issue a sign-in challenge for a wallet address.

    No login is required: the address is unproven until the signed
    challenge comes back through /wallet/link. Requesting a new challenge
    invalidates the previous one for the same address.
    """
    challenge = service.request_challenge(body.address)
    return NonceResponse(
        nonce=challenge.nonce,
        message=challenge.message,
        expires_at=challenge.expires_at,
        expires_in=challenge.expires_at - challenge.issued_at,
    )


@router.post(
    "/link",
    tags=group_tags,
    response_model=WalletLinkResponse,
    status_code=status.HTTP_201_CREATED,
    responses=error_responses,
)
def link_wallet(
    body: LinkWalletRequest,
    account_id: str = Depends(get_current_account_id),
    service: WalletLinkService = Depends(get_wallet_link_service),
) -> WalletLinkResponse:
    """
    Link the wallet that signed the challenge to the current account.

    Body:
    - address: wallet address the challenge was issued for
    - message: challenge message exactly as returned by /wallet/nonce
    - signature: personal_sign signature of the message
    - chainId: optional, stored as metadata
    """
    link = service.link_wallet(
        account_id,
        body.address,
        body.message,
        body.signature,
        body.chain_id,
    )
    return WalletLinkResponse.from_record(link)


@router.delete(
    "/link",
    tags=group_tags,
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    responses=error_responses,
)
def unlink_wallet(
    account_id: str = Depends(get_current_account_id),
    service: WalletLinkService = Depends(get_wallet_link_service),
) -> Response:
    """Remove the current account's wallet link"""
    service.unlink_wallet(account_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/me",
    tags=group_tags,
    response_model=WalletLinkResponse,
    responses=error_responses,
)
def get_my_wallet(
    account_id: str = Depends(get_current_account_id),
    service: WalletLinkService = Depends(get_wallet_link_service),
) -> WalletLinkResponse:
    """Return the current account's linked wallet, 404 when none"""
    link = service.get_linked_wallet(account_id)
    if link is None:
        raise NotLinked()
    return WalletLinkResponse.from_record(link)
