"""Wallet ledger tests: hold, release, refund, credit, withdraw."""
import pytest

from marketplace.domain.admin.models import UserRole
from marketplace.domain.common.errors import InsufficientFundsError, ValidationError
from marketplace.domain.wallet.ledger import WalletLedger, validate_amount
from marketplace.domain.wallet.models import TransactionType
from marketplace.infra.db.atomic import run_atomic
from marketplace.infra.db.repositories.wallet_repo import WalletRepositoryImpl


@pytest.fixture
def ledger(db_session):
    return WalletLedger(WalletRepositoryImpl(db_session))


async def test_credit_purchase_records_transaction(make_user, get_wallet, db_session):
    user = await make_user(balance=1000)
    wallet = await get_wallet(user.id)
    assert wallet.balance == 1000
    assert wallet.escrow_balance == 0

    txs = await WalletRepositoryImpl(db_session).list_transactions(user.id)
    assert len(txs) == 1
    assert txs[0].type == TransactionType.PURCHASE
    assert txs[0].amount == 1000
    assert txs[0].previous_balance == 0
    assert txs[0].new_balance == 1000


async def test_credit_rejects_non_minting_type(make_user, ledger, db_session):
    user = await make_user()
    with pytest.raises(ValidationError):
        await run_atomic(db_session, lambda: ledger.credit(user.id, 50, TransactionType.WITHDRAWAL))


async def test_hold_moves_balance_into_escrow(make_user, get_wallet, ledger, db_session):
    user = await make_user(balance=500)
    tx = await run_atomic(db_session, lambda: ledger.hold(user.id, 200, None))

    wallet = await get_wallet(user.id)
    assert wallet.balance == 300
    assert wallet.escrow_balance == 200
    assert wallet.total_spent == 200
    assert tx.type == TransactionType.BOOKING_PAYMENT
    assert (tx.previous_balance, tx.new_balance) == (500, 300)


async def test_hold_more_than_balance_fails_and_changes_nothing(make_user, get_wallet, ledger, db_session):
    user = await make_user(balance=100)
    with pytest.raises(InsufficientFundsError):
        await run_atomic(db_session, lambda: ledger.hold(user.id, 101, None))

    wallet = await get_wallet(user.id)
    assert wallet.balance == 100
    assert wallet.escrow_balance == 0
    txs = await WalletRepositoryImpl(db_session).list_transactions(user.id)
    assert [t.type for t in txs] == [TransactionType.PURCHASE]


async def test_hold_then_refund_restores_wallet(make_user, get_wallet, ledger, db_session):
    user = await make_user(balance=750)
    before = await get_wallet(user.id)

    await run_atomic(db_session, lambda: ledger.hold(user.id, 300, None))
    tx = await run_atomic(db_session, lambda: ledger.refund(user.id, 300, None))

    after = await get_wallet(user.id)
    assert after.balance == before.balance
    assert after.escrow_balance == before.escrow_balance
    assert tx.type == TransactionType.BOOKING_REFUND


async def test_release_pays_provider_from_escrow(make_user, get_wallet, ledger, db_session):
    seeker = await make_user(balance=600)
    provider = await make_user(role=UserRole.PROVIDER)
    await run_atomic(db_session, lambda: ledger.hold(seeker.id, 400, None))

    seeker_tx, provider_tx = await run_atomic(
        db_session, lambda: ledger.release(seeker.id, provider.id, 400, None)
    )

    seeker_wallet = await get_wallet(seeker.id)
    provider_wallet = await get_wallet(provider.id)
    assert (seeker_wallet.balance, seeker_wallet.escrow_balance) == (200, 0)
    assert provider_wallet.balance == 400
    assert provider_wallet.total_earned == 400
    assert seeker_tx.type == TransactionType.BOOKING_PAYMENT
    assert provider_tx.type == TransactionType.EARNING


async def test_release_without_escrow_fails(make_user, get_wallet, ledger, db_session):
    seeker = await make_user(balance=600)
    provider = await make_user(role=UserRole.PROVIDER)
    with pytest.raises(InsufficientFundsError):
        await run_atomic(db_session, lambda: ledger.release(seeker.id, provider.id, 100, None))

    assert (await get_wallet(provider.id)).balance == 0
    assert (await get_wallet(seeker.id)).balance == 600


async def test_withdraw_cannot_touch_escrow(make_user, get_wallet, ledger, db_session):
    user = await make_user(balance=300)
    await run_atomic(db_session, lambda: ledger.hold(user.id, 200, None))

    with pytest.raises(InsufficientFundsError):
        await run_atomic(db_session, lambda: ledger.withdraw(user.id, 150))

    tx = await run_atomic(db_session, lambda: ledger.withdraw(user.id, 100))
    wallet = await get_wallet(user.id)
    assert (wallet.balance, wallet.escrow_balance) == (0, 200)
    assert tx.type == TransactionType.WITHDRAWAL


@pytest.mark.unit
@pytest.mark.parametrize("amount", [0, -5, 1.5, "10", True, None])
def test_validate_amount_rejects_non_positive_integers(amount):
    with pytest.raises(ValidationError):
        validate_amount(amount)


@pytest.mark.unit
def test_validate_amount_accepts_positive_integer():
    assert validate_amount(25) == 25
