"""Wallet ledger: Hold / Release / Refund / Credit (and Withdraw).

Each operation runs inside the caller's open transaction and writes exactly one
TokenTransaction per wallet it touches. Nothing here commits; wrap calls in
``run_atomic`` (or an enclosing service transaction) so the wallet updates and
their ledger rows land together or not at all.
"""
import logging
from datetime import datetime
from typing import Optional

from marketplace.domain.common.errors import InsufficientFundsError, NotFoundError, ValidationError
from marketplace.domain.common.types import generate_id
from marketplace.domain.wallet.models import CREDIT_TYPES, TokenTransaction, TransactionType, Wallet
from marketplace.infra.db.repositories.wallet_repo import WalletRepository

logger = logging.getLogger(__name__)


def validate_amount(amount) -> int:
    """Token amounts are positive integers; bool is rejected even though it is an int."""
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValidationError("Token amount must be an integer", field="amount")
    if amount <= 0:
        raise ValidationError("Token amount must be positive", field="amount")
    return amount


class WalletLedger:
    """Atomic token movements between balance, escrow and other wallets."""

    def __init__(self, repo: WalletRepository):
        self.repo = repo

    async def _locked_wallet(self, user_id: str) -> Wallet:
        wallet = await self.repo.get_by_user_for_update(user_id)
        if wallet is None:
            raise NotFoundError("Wallet", user_id)
        return wallet

    async def _record(
        self,
        wallet: Wallet,
        type: TransactionType,
        amount: int,
        previous_balance: int,
        new_balance: int,
        booking_id: Optional[str],
        description: str,
    ) -> TokenTransaction:
        return await self.repo.add_transaction(
            TokenTransaction(
                id=generate_id(),
                user_id=wallet.user_id,
                wallet_id=wallet.id,
                type=type,
                amount=amount,
                previous_balance=previous_balance,
                new_balance=new_balance,
                booking_id=booking_id,
                description=description,
                created_at=datetime.utcnow(),
            )
        )

    async def hold(self, seeker_id: str, amount: int, booking_id: str) -> TokenTransaction:
        """Move ``amount`` from the seeker's balance into escrow."""
        validate_amount(amount)
        wallet = await self._locked_wallet(seeker_id)
        if not await self.repo.move_to_escrow(wallet.id, amount):
            logger.info("Hold rejected: wallet=%s amount=%s balance=%s", wallet.id, amount, wallet.balance)
            raise InsufficientFundsError(
                f"Insufficient funds: required {amount}, available {wallet.balance}"
            )
        logger.info("Hold: wallet=%s booking=%s amount=%s", wallet.id, booking_id, amount)
        return await self._record(
            wallet,
            TransactionType.BOOKING_PAYMENT,
            amount,
            wallet.balance,
            wallet.balance - amount,
            booking_id,
            f"Escrow hold for booking {booking_id}",
        )

    async def release(
        self, seeker_id: str, provider_id: str, amount: int, booking_id: str
    ) -> tuple[TokenTransaction, TokenTransaction]:
        """Pay ``amount`` out of the seeker's escrow into the provider's balance."""
        validate_amount(amount)
        # Lock both rows in a stable order so concurrent releases cannot deadlock
        locked = {}
        for user_id in sorted({seeker_id, provider_id}):
            locked[user_id] = await self._locked_wallet(user_id)
        seeker, provider = locked[seeker_id], locked[provider_id]

        if not await self.repo.release_escrow(seeker.id, amount):
            raise InsufficientFundsError(
                f"Escrow does not cover release: required {amount}, held {seeker.escrow_balance}"
            )
        await self.repo.add_balance(provider.id, amount, earned=True)
        logger.info(
            "Release: booking=%s amount=%s seeker_wallet=%s provider_wallet=%s",
            booking_id, amount, seeker.id, provider.id,
        )
        seeker_tx = await self._record(
            seeker,
            TransactionType.BOOKING_PAYMENT,
            amount,
            seeker.balance,
            seeker.balance,
            booking_id,
            f"Escrow released for completed booking {booking_id}",
        )
        provider_tx = await self._record(
            provider,
            TransactionType.EARNING,
            amount,
            provider.balance,
            provider.balance + amount,
            booking_id,
            f"Payment for completed booking {booking_id}",
        )
        return seeker_tx, provider_tx

    async def refund(self, seeker_id: str, amount: int, booking_id: str) -> TokenTransaction:
        """Return ``amount`` from the seeker's escrow to their balance."""
        validate_amount(amount)
        wallet = await self._locked_wallet(seeker_id)
        if not await self.repo.return_escrow(wallet.id, amount):
            raise InsufficientFundsError(
                f"Escrow does not cover refund: required {amount}, held {wallet.escrow_balance}"
            )
        logger.info("Refund: wallet=%s booking=%s amount=%s", wallet.id, booking_id, amount)
        return await self._record(
            wallet,
            TransactionType.BOOKING_REFUND,
            amount,
            wallet.balance,
            wallet.balance + amount,
            booking_id,
            f"Refund for cancelled booking {booking_id}",
        )

    async def credit(
        self,
        user_id: str,
        amount: int,
        type: TransactionType,
        description: Optional[str] = None,
        booking_id: Optional[str] = None,
    ) -> TokenTransaction:
        """Mint tokens into a wallet via PURCHASE or EARNING."""
        validate_amount(amount)
        if type not in CREDIT_TYPES:
            raise ValidationError(f"Credit type must be one of {sorted(t.value for t in CREDIT_TYPES)}", field="type")
        wallet = await self._locked_wallet(user_id)
        await self.repo.add_balance(wallet.id, amount, earned=type == TransactionType.EARNING)
        logger.info("Credit: wallet=%s type=%s amount=%s", wallet.id, type.value, amount)
        return await self._record(
            wallet,
            type,
            amount,
            wallet.balance,
            wallet.balance + amount,
            booking_id,
            description or f"{type.value.title()} of {amount} tokens",
        )

    async def withdraw(self, user_id: str, amount: int) -> TokenTransaction:
        """Take ``amount`` out of the platform."""
        validate_amount(amount)
        wallet = await self._locked_wallet(user_id)
        if not await self.repo.deduct_balance(wallet.id, amount):
            raise InsufficientFundsError(
                f"Insufficient funds: required {amount}, available {wallet.balance}"
            )
        logger.info("Withdraw: wallet=%s amount=%s", wallet.id, amount)
        return await self._record(
            wallet,
            TransactionType.WITHDRAWAL,
            amount,
            wallet.balance,
            wallet.balance - amount,
            None,
            f"Withdrawal of {amount} tokens",
        )
