"""Wallet domain models."""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from enum import Enum


class TransactionType(str, Enum):
    """Ledger entry type."""
    PURCHASE = "PURCHASE"
    BOOKING_PAYMENT = "BOOKING_PAYMENT"
    BOOKING_REFUND = "BOOKING_REFUND"
    WITHDRAWAL = "WITHDRAWAL"
    EARNING = "EARNING"


# Credit() only mints tokens through these paths
CREDIT_TYPES = frozenset({TransactionType.PURCHASE, TransactionType.EARNING})


@dataclass
class Wallet:
    """Wallet domain model. Amounts are integer tokens."""
    id: str
    user_id: str
    balance: int
    escrow_balance: int
    total_earned: int
    total_spent: int
    created_at: datetime
    updated_at: datetime


@dataclass
class TokenTransaction:
    """Immutable ledger entry; previous/new balance refer to the spendable balance."""
    id: str
    user_id: str
    wallet_id: str
    type: TransactionType
    amount: int
    previous_balance: int
    new_balance: int
    booking_id: Optional[str]
    description: Optional[str]
    created_at: datetime
