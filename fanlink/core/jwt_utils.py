"""
JWT Token Utilities

This module handles JSON Web Token (JWT) verification for the authenticated
account context. Tokens are issued by the account service at login; the
wallet endpoints only need to know which account is calling.

Flow:
1. User logs in through the account service -> create_access_token() generates JWT
2. User calls a wallet endpoint with JWT in Authorization header -> verify_token() validates it
3. Protected endpoints use get_current_account_id() from dependencies.py to extract account_id

The JWT contains:
- account_id: The authenticated account
- iat: Issued at timestamp
- exp: Expiration timestamp (configurable via ACCESS_TOKEN_EXPIRE_SECONDS)
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from fastapi import HTTPException, status

from fanlink.core.config import settings


if not settings.ENCODE_KEY:
    raise RuntimeError("ENCODE_KEY is not configured")


def create_access_token(account_id: str, extra_claims: Optional[Dict[str, Any]] = None) -> str:
    """
    Create a JWT access token for an authenticated account.

    Args:
        account_id: The account the token speaks for
        extra_claims: Optional additional claims to include in the JWT payload

    Returns:
        A JWT token string that can be used in Authorization: Bearer <token> header

    Raises:
        ValueError: If account_id is empty
    """
    if not account_id:
        raise ValueError("account_id is required")

    now = datetime.now(timezone.utc)
    payload: Dict[str, Any] = {
        "account_id": account_id,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=settings.ACCESS_TOKEN_EXPIRE_SECONDS)).timestamp()),
    }
    if extra_claims:
        payload.update(extra_claims)

    return jwt.encode(payload, settings.ENCODE_KEY, algorithm=settings.ENCODE_ALGORITHM)


def verify_token(token: str) -> Dict[str, Any]:
    """
    Verify and decode a JWT token.

    Raises:
        HTTPException 401: If token is missing, expired, invalid, or missing account_id
    """
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing token")

    try:
        payload = jwt.decode(token, settings.ENCODE_KEY, algorithms=[settings.ENCODE_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    if not payload.get("account_id"):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token payload")

    return payload
