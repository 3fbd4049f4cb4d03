import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String, UniqueConstraint, text

from fanlink.db.base import Base


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class WalletLink(Base):
    """Model for wallet_links table, binds one address to one account
    Example:
    {
        "id": "550e8400-e29b-41d4-a716-446655440000",
        "account_id": "user-1",
        "address": "0x5b38da6a701c568545dcfcb03fcb875f56beddc4",
        "chain_id": 1,
        "is_external": true,
        "linked_at": "2024-01-01T12:00:00"
    }
    """

    __tablename__ = "wallet_links"
    __table_args__ = (
        UniqueConstraint("address", name="uq_wallet_links_address"),
        # an account holds at most one externally verified wallet
        Index(
            "uq_wallet_links_external_account",
            "account_id",
            unique=True,
            postgresql_where=text("is_external"),
            sqlite_where=text("is_external = 1"),
        ),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    account_id = Column(String(64), nullable=False)
    address = Column(String(42), nullable=False)
    chain_id = Column(Integer, nullable=True)
    is_external = Column(Boolean, nullable=False, default=True)
    linked_at = Column(DateTime(timezone=True), nullable=False, default=_utc_now)
