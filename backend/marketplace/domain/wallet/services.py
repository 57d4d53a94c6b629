"""Wallet domain services."""
import logging
from typing import Optional, List
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.domain.common.errors import NotFoundError, ValidationError
from marketplace.domain.wallet.ledger import WalletLedger, validate_amount
from marketplace.domain.wallet.models import TokenTransaction, TransactionType, Wallet
from marketplace.infra.db.atomic import run_atomic
from marketplace.infra.db.repositories.wallet_repo import WalletRepository
from marketplace.settings import settings

logger = logging.getLogger(__name__)


class WalletService:
    """Read side of the wallet plus the user-initiated purchase/withdraw flows."""

    def __init__(self, repo: WalletRepository, db: AsyncSession):
        self.repo = repo
        self.db = db
        self.ledger = WalletLedger(repo)

    async def get_wallet(self, user_id: str) -> Wallet:
        """Get the user's wallet."""
        wallet = await self.repo.get_by_user(user_id)
        if wallet is None:
            raise NotFoundError("Wallet", user_id)
        return wallet

    async def purchase_tokens(self, user_id: str, amount: int) -> tuple[Wallet, TokenTransaction]:
        """Credit purchased tokens. Payment capture happens upstream of this service."""
        validate_amount(amount)
        if amount < settings.min_token_purchase:
            raise ValidationError(
                f"Minimum purchase is {settings.min_token_purchase} tokens", field="amount"
            )

        async def _purchase() -> TokenTransaction:
            return await self.ledger.credit(
                user_id, amount, TransactionType.PURCHASE, description=f"Purchased {amount} tokens"
            )

        tx = await run_atomic(self.db, _purchase, label="token purchase")
        return await self.get_wallet(user_id), tx

    async def withdraw_tokens(self, user_id: str, amount: int) -> tuple[Wallet, TokenTransaction]:
        """Withdraw spendable tokens."""

        async def _withdraw() -> TokenTransaction:
            return await self.ledger.withdraw(user_id, amount)

        tx = await run_atomic(self.db, _withdraw, label="token withdrawal")
        return await self.get_wallet(user_id), tx

    async def get_transactions(
        self,
        user_id: str,
        limit: int = 50,
        offset: int = 0,
        type: Optional[TransactionType] = None,
    ) -> tuple[List[TokenTransaction], int]:
        """Page of the user's ledger rows plus total count."""
        items = await self.repo.list_transactions(user_id, limit=limit, offset=offset, type=type)
        total = await self.repo.count_transactions(user_id, type=type)
        return items, total
