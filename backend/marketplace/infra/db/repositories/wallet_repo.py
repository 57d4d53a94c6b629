"""Wallet repository implementation.

Balance mutations are conditional UPDATEs: the precondition (enough balance or
escrow) is part of the WHERE clause, so a stale read can never overdraw a
wallet. Methods flush but never commit; the caller owns the transaction.
"""
from typing import Optional, List
from datetime import datetime
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func

from marketplace.domain.wallet.models import Wallet, TokenTransaction, TransactionType
from marketplace.infra.db.models.wallet import WalletModel, TokenTransactionModel


class WalletRepository:
    """Wallet repository interface."""

    async def create_wallet(self, wallet: Wallet) -> Wallet:
        """Create a wallet."""
        raise NotImplementedError

    async def get_by_user(self, user_id: str) -> Optional[Wallet]:
        """Get a user's wallet."""
        raise NotImplementedError

    async def get_by_user_for_update(self, user_id: str) -> Optional[Wallet]:
        """Get a user's wallet with a row-level lock."""
        raise NotImplementedError

    async def move_to_escrow(self, wallet_id: str, amount: int) -> bool:
        """balance -> escrow if balance covers amount."""
        raise NotImplementedError

    async def release_escrow(self, wallet_id: str, amount: int) -> bool:
        """Drop escrow if escrow covers amount."""
        raise NotImplementedError

    async def return_escrow(self, wallet_id: str, amount: int) -> bool:
        """escrow -> balance if escrow covers amount."""
        raise NotImplementedError

    async def add_balance(self, wallet_id: str, amount: int, earned: bool = False) -> bool:
        """Credit balance (and total_earned when earned)."""
        raise NotImplementedError

    async def deduct_balance(self, wallet_id: str, amount: int) -> bool:
        """Debit balance if it covers amount."""
        raise NotImplementedError

    async def add_transaction(self, transaction: TokenTransaction) -> TokenTransaction:
        """Append a ledger row."""
        raise NotImplementedError

    async def list_transactions(
        self,
        user_id: str,
        limit: int = 50,
        offset: int = 0,
        type: Optional[TransactionType] = None,
    ) -> List[TokenTransaction]:
        """List ledger rows for a user, newest first."""
        raise NotImplementedError

    async def count_transactions(self, user_id: str, type: Optional[TransactionType] = None) -> int:
        """Count ledger rows for a user."""
        raise NotImplementedError

    async def list_transactions_for_booking(self, booking_id: str) -> List[TokenTransaction]:
        """Ledger rows tied to a booking, oldest first."""
        raise NotImplementedError


class WalletRepositoryImpl(WalletRepository):
    """Wallet repository implementation."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_wallet(self, wallet: Wallet) -> Wallet:
        """Create a wallet."""
        model = WalletModel.from_entity(wallet)
        self.session.add(model)
        await self.session.flush()
        return model.to_entity()

    async def get_by_user(self, user_id: str) -> Optional[Wallet]:
        """Get a user's wallet."""
        result = await self.session.execute(
            select(WalletModel)
            .where(WalletModel.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        model = result.scalar_one_or_none()
        return model.to_entity() if model else None

    async def get_by_user_for_update(self, user_id: str) -> Optional[Wallet]:
        """Get a user's wallet with a row-level lock (SELECT ... FOR UPDATE; ignored by SQLite)."""
        result = await self.session.execute(
            select(WalletModel)
            .where(WalletModel.user_id == user_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        model = result.scalar_one_or_none()
        return model.to_entity() if model else None

    async def _conditional_update(self, wallet_id: str, condition, **values) -> bool:
        stmt = (
            update(WalletModel)
            .where(WalletModel.id == wallet_id)
            .values(updated_at=datetime.utcnow(), **values)
            .execution_options(synchronize_session=False)
        )
        if condition is not None:
            stmt = stmt.where(condition)
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def move_to_escrow(self, wallet_id: str, amount: int) -> bool:
        """balance -> escrow if balance covers amount."""
        return await self._conditional_update(
            wallet_id,
            WalletModel.balance >= amount,
            balance=WalletModel.balance - amount,
            escrow_balance=WalletModel.escrow_balance + amount,
            total_spent=WalletModel.total_spent + amount,
        )

    async def release_escrow(self, wallet_id: str, amount: int) -> bool:
        """Drop escrow if escrow covers amount."""
        return await self._conditional_update(
            wallet_id,
            WalletModel.escrow_balance >= amount,
            escrow_balance=WalletModel.escrow_balance - amount,
        )

    async def return_escrow(self, wallet_id: str, amount: int) -> bool:
        """escrow -> balance if escrow covers amount."""
        return await self._conditional_update(
            wallet_id,
            WalletModel.escrow_balance >= amount,
            escrow_balance=WalletModel.escrow_balance - amount,
            balance=WalletModel.balance + amount,
            total_spent=WalletModel.total_spent - amount,
        )

    async def add_balance(self, wallet_id: str, amount: int, earned: bool = False) -> bool:
        """Credit balance (and total_earned when earned)."""
        values = {"balance": WalletModel.balance + amount}
        if earned:
            values["total_earned"] = WalletModel.total_earned + amount
        return await self._conditional_update(wallet_id, None, **values)

    async def deduct_balance(self, wallet_id: str, amount: int) -> bool:
        """Debit balance if it covers amount."""
        return await self._conditional_update(
            wallet_id,
            WalletModel.balance >= amount,
            balance=WalletModel.balance - amount,
        )

    async def add_transaction(self, transaction: TokenTransaction) -> TokenTransaction:
        """Append a ledger row."""
        model = TokenTransactionModel.from_entity(transaction)
        self.session.add(model)
        await self.session.flush()
        return model.to_entity()

    async def list_transactions(
        self,
        user_id: str,
        limit: int = 50,
        offset: int = 0,
        type: Optional[TransactionType] = None,
    ) -> List[TokenTransaction]:
        """List ledger rows for a user, newest first."""
        q = select(TokenTransactionModel).where(TokenTransactionModel.user_id == user_id)
        if type is not None:
            q = q.where(TokenTransactionModel.type == type.value)
        q = q.order_by(TokenTransactionModel.created_at.desc()).limit(limit).offset(offset)
        result = await self.session.execute(q)
        return [m.to_entity() for m in result.scalars().all()]

    async def count_transactions(self, user_id: str, type: Optional[TransactionType] = None) -> int:
        """Count ledger rows for a user."""
        q = select(func.count()).select_from(TokenTransactionModel).where(
            TokenTransactionModel.user_id == user_id
        )
        if type is not None:
            q = q.where(TokenTransactionModel.type == type.value)
        result = await self.session.execute(q)
        return result.scalar() or 0

    async def list_transactions_for_booking(self, booking_id: str) -> List[TokenTransaction]:
        """Ledger rows tied to a booking, oldest first."""
        result = await self.session.execute(
            select(TokenTransactionModel)
            .where(TokenTransactionModel.booking_id == booking_id)
            .order_by(TokenTransactionModel.created_at.asc())
        )
        return [m.to_entity() for m in result.scalars().all()]
