"""
Account storage for wallet links.

The unique constraints on ``wallet_links`` are the final arbiter of who owns
an address: inserts that lose a race surface as WalletLinkConflict, tagged
with the constraint that was hit.
"""

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fanlink.core.errors import WalletLinkConflict
from fanlink.models.wallet import WalletLink

logger = logging.getLogger(__name__)


class WalletLinkRepository:
    def __init__(self, db: Session):
        self.db = db

    def find_wallet_link_by_account(self, account_id: str) -> Optional[WalletLink]:
        return (
            self.db.query(WalletLink)
            .filter(WalletLink.account_id == account_id, WalletLink.is_external.is_(True))
            .first()
        )

    def find_wallet_link_by_address(self, address: str) -> Optional[WalletLink]:
        return self.db.query(WalletLink).filter(WalletLink.address == address).first()

    def insert_wallet_link(self, link: WalletLink) -> WalletLink:
        """
        Insert and commit a wallet link.

        Raises:
            WalletLinkConflict: kind "address" when the address belongs to
                another account, kind "account" when the account already
                holds an external wallet
        """
        self.db.add(link)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            # the winner may be gone again by now, the address was still taken
            kind = self._conflict_kind(link) or "address"
            logger.warning("wallet link insert hit %s constraint: %s", kind, e.orig)
            raise WalletLinkConflict(kind) from e
        self.db.refresh(link)
        return link

    def delete_wallet_link(self, account_id: str) -> bool:
        """Delete the account's external wallet link, returns False if there was none"""
        deleted = (
            self.db.query(WalletLink)
            .filter(WalletLink.account_id == account_id, WalletLink.is_external.is_(True))
            .delete(synchronize_session=False)
        )
        self.db.commit()
        return deleted > 0

    def _conflict_kind(self, link: WalletLink) -> Optional[str]:
        # read the committed winner after rollback
        existing = self.find_wallet_link_by_address(link.address)
        if existing is not None and existing.account_id != link.account_id:
            return "address"
        if existing is not None or self.find_wallet_link_by_account(link.account_id) is not None:
            return "account"
        return None
