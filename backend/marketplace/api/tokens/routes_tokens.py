"""Wallet and token ledger routes."""
from datetime import datetime
from typing import Optional, List
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.api.deps import get_current_user, get_db
from marketplace.api.schemas import CamelModel, Pagination
from marketplace.domain.admin.models import User
from marketplace.domain.common.errors import ValidationError
from marketplace.domain.wallet.models import TokenTransaction, TransactionType, Wallet
from marketplace.domain.wallet.services import WalletService
from marketplace.infra.db.repositories.wallet_repo import WalletRepositoryImpl

router = APIRouter()


class WalletResponse(CamelModel):
    id: str
    balance: int
    escrow_balance: int
    total_earned: int
    total_spent: int
    updated_at: datetime

    @classmethod
    def from_entity(cls, wallet: Wallet) -> "WalletResponse":
        return cls(
            id=wallet.id,
            balance=wallet.balance,
            escrow_balance=wallet.escrow_balance,
            total_earned=wallet.total_earned,
            total_spent=wallet.total_spent,
            updated_at=wallet.updated_at,
        )


class TransactionResponse(CamelModel):
    id: str
    type: str
    amount: int
    previous_balance: int
    new_balance: int
    booking_id: Optional[str] = None
    description: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_entity(cls, tx: TokenTransaction) -> "TransactionResponse":
        return cls(
            id=tx.id,
            type=tx.type.value,
            amount=tx.amount,
            previous_balance=tx.previous_balance,
            new_balance=tx.new_balance,
            booking_id=tx.booking_id,
            description=tx.description,
            created_at=tx.created_at,
        )


class AmountRequest(CamelModel):
    amount: int


def _service(db: AsyncSession) -> WalletService:
    return WalletService(WalletRepositoryImpl(db), db)


@router.get("/wallet")
async def get_wallet(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Balance, escrow and lifetime totals."""
    wallet = await _service(db).get_wallet(current_user.id)
    return {"success": True, "wallet": WalletResponse.from_entity(wallet)}


@router.get("/balance")
async def get_balance(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    wallet = await _service(db).get_wallet(current_user.id)
    return {"success": True, "balance": wallet.balance, "escrowBalance": wallet.escrow_balance}


@router.get("/transactions")
async def list_transactions(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    type: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """The caller's ledger rows, newest first."""
    tx_type = None
    if type:
        try:
            tx_type = TransactionType(type)
        except ValueError:
            raise ValidationError(f"Invalid transaction type: {type}", field="type")
    items, total = await _service(db).get_transactions(
        current_user.id, limit=limit, offset=(page - 1) * limit, type=tx_type
    )
    transactions: List[TransactionResponse] = [TransactionResponse.from_entity(tx) for tx in items]
    return {"success": True, "transactions": transactions, "pagination": Pagination.of(page, limit, total)}


@router.post("/purchase")
async def purchase_tokens(
    request: AmountRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Credit purchased tokens to the caller's wallet."""
    wallet, tx = await _service(db).purchase_tokens(current_user.id, request.amount)
    return {
        "success": True,
        "wallet": WalletResponse.from_entity(wallet),
        "transaction": TransactionResponse.from_entity(tx),
    }


@router.post("/withdraw")
async def withdraw_tokens(
    request: AmountRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Withdraw spendable tokens. Escrowed tokens cannot be withdrawn."""
    wallet, tx = await _service(db).withdraw_tokens(current_user.id, request.amount)
    return {
        "success": True,
        "wallet": WalletResponse.from_entity(wallet),
        "transaction": TransactionResponse.from_entity(tx),
    }
