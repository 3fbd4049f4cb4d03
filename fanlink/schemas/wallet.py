from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from fanlink.schemas.my_base_model import CustomBaseModel


class NonceRequest(BaseModel):
    """Request model for challenge generation - input validation"""

    address: str = Field(..., description="Wallet address, 0x-prefixed hex")


class NonceResponse(CustomBaseModel):
    """Response model for challenge generation - output"""

    model_config = ConfigDict(populate_by_name=True)

    nonce: str = ""
    message: str = ""
    expires_at: int = Field(0, alias="expiresAt")
    expires_in: int = Field(0, alias="expiresIn")


class LinkWalletRequest(BaseModel):
    """Request model for wallet linking - input validation"""

    model_config = ConfigDict(populate_by_name=True)

    address: str = Field(..., description="Wallet address that signed the message")
    signature: str = Field(..., description="personal_sign signature, 0x-prefixed hex")
    message: str = Field(..., description="Challenge message exactly as issued")
    chain_id: Optional[int] = Field(None, alias="chainId", description="Chain the wallet was on")


class WalletLinkResponse(CustomBaseModel):
    """Response model for a linked wallet - output"""

    model_config = ConfigDict(populate_by_name=True)

    id: str = ""
    account_id: str = Field("", alias="accountId")
    address: str = ""
    chain_id: Optional[int] = Field(None, alias="chainId")
    is_external: bool = Field(True, alias="isExternal")
    linked_at: Optional[datetime] = Field(None, alias="linkedAt")


class ErrorResponse(BaseModel):
    """Error body returned for every wallet link failure"""

    error: str
    message: str
