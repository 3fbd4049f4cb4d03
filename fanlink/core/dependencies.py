"""
FastAPI Dependencies
This module provides FastAPI dependency functions that can be injected into route handlers.
Usage in endpoints:
    @router.get("/protected")
    def protected_route(account_id: str = Depends(get_current_account_id)):
        # account_id is automatically extracted from JWT token
        return {"account": account_id}
Flow:
1. Client sends request with Authorization: Bearer <token> header
2. FastAPI calls get_current_account_id() dependency
3. _extract_token() extracts token from header
4. verify_token() validates the JWT (from jwt_utils.py)
5. Returns account_id to the route handler
"""

from typing import Any, Dict, Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from fanlink.core.challenge_store import ChallengeStore, get_challenge_store
from fanlink.core.jwt_utils import verify_token
from fanlink.db.session import get_db
from fanlink.db.wallet_repository import WalletLinkRepository
from fanlink.services.wallet_link import WalletLinkService


def _extract_token(authorization: Optional[str]) -> Dict[str, Any]:
    """
    Extract JWT token from Authorization header.
    Supports both "Bearer <token>" and plain token formats.
    Raises:
        HTTPException 401: If Authorization header is missing or invalid
    """
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header missing",
        )

    authorization = authorization.strip()
    if authorization.lower().startswith("bearer "):
        token = authorization[7:].strip()
    else:
        token = authorization
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header",
        )

    return verify_token(token)


def get_current_account_id(
    authorization: Optional[str] = Header(None, alias="Authorization"),
) -> str:
    """
    returning account id.
    """
    payload = _extract_token(authorization)
    return str(payload["account_id"])


def get_wallet_link_service(
    db: Session = Depends(get_db),
    challenge_store: ChallengeStore = Depends(get_challenge_store),
) -> WalletLinkService:
    return WalletLinkService(challenge_store, WalletLinkRepository(db))
