"""Wallet and token ledger database models."""
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, CheckConstraint, Index, Text

from marketplace.infra.db.base import Base
from marketplace.domain.wallet.models import Wallet, TokenTransaction, TransactionType


class WalletModel(Base):
    """Wallet model - one per user, created alongside the user."""

    __tablename__ = "wallets"

    id = Column(String, primary_key=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, unique=True)
    balance = Column(Integer, default=0, nullable=False)
    escrow_balance = Column(Integer, default=0, nullable=False)
    total_earned = Column(Integer, default=0, nullable=False)
    total_spent = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_wallet_balance_non_negative"),
        CheckConstraint("escrow_balance >= 0", name="ck_wallet_escrow_non_negative"),
    )

    def to_entity(self) -> Wallet:
        """Convert to domain entity."""
        return Wallet(
            id=self.id,
            user_id=self.user_id,
            balance=self.balance,
            escrow_balance=self.escrow_balance,
            total_earned=self.total_earned,
            total_spent=self.total_spent,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    @classmethod
    def from_entity(cls, entity: Wallet) -> "WalletModel":
        """Create from domain entity."""
        return cls(
            id=entity.id,
            user_id=entity.user_id,
            balance=entity.balance,
            escrow_balance=entity.escrow_balance,
            total_earned=entity.total_earned,
            total_spent=entity.total_spent,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )


class TokenTransactionModel(Base):
    """Append-only ledger row. Written by every wallet operation; never updated."""

    __tablename__ = "token_transactions"

    id = Column(String, primary_key=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    wallet_id = Column(String, ForeignKey("wallets.id", ondelete="RESTRICT"), nullable=False)
    type = Column(String, nullable=False)
    amount = Column(Integer, nullable=False)
    previous_balance = Column(Integer, nullable=False)
    new_balance = Column(Integer, nullable=False)
    booking_id = Column(String, ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_token_transaction_amount_positive"),
        Index("ix_token_transactions_wallet_id", "wallet_id"),
        Index("ix_token_transactions_user_id_created_at", "user_id", "created_at"),
        Index("ix_token_transactions_booking_id", "booking_id"),
    )

    def to_entity(self) -> TokenTransaction:
        """Convert to domain entity."""
        return TokenTransaction(
            id=self.id,
            user_id=self.user_id,
            wallet_id=self.wallet_id,
            type=TransactionType(self.type),
            amount=self.amount,
            previous_balance=self.previous_balance,
            new_balance=self.new_balance,
            booking_id=self.booking_id,
            description=self.description,
            created_at=self.created_at,
        )

    @classmethod
    def from_entity(cls, entity: TokenTransaction) -> "TokenTransactionModel":
        """Create from domain entity."""
        return cls(
            id=entity.id,
            user_id=entity.user_id,
            wallet_id=entity.wallet_id,
            type=entity.type.value,
            amount=entity.amount,
            previous_balance=entity.previous_balance,
            new_balance=entity.new_balance,
            booking_id=entity.booking_id,
            description=entity.description,
            created_at=entity.created_at,
        )
