"""
Balance-consistent mutation of transactions.

Each account caches its balance. Every function here that writes a
transaction row also moves the owning account's balance by the same signed
amount, inside one unit of work, so that

    account.balance == sum(+amount for income) - sum(amount for expense)

holds after each commit. adjust_balance is the one deliberate exception.

Balances are moved with ``UPDATE accounts SET balance = balance + :delta``
rather than read into Python and written back, so concurrent requests on
the same account serialize in the database instead of overwriting each
other.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional, Tuple

from sqlalchemy import update
from sqlalchemy.orm import Session

from .. import models, schemas
from ..config import get_settings
from ..database import unit_of_work, utcnow
from ..errors import BusinessRuleError, InvalidReferenceError, NotFoundError
from ..log import get_logger

logger = get_logger(__name__)


def shift_balance(
    db: Session, account_id: int, delta: Decimal, minimum: Optional[Decimal] = None
) -> bool:
    """
    Add ``delta`` to an account's balance in a single UPDATE.

    With ``minimum`` set the row only changes while its balance is at least
    that much. Returns whether the row was updated.
    """
    stmt = (
        update(models.Account)
        .where(models.Account.id == account_id)
        .values(balance=models.Account.balance + delta, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if minimum is not None:
        stmt = stmt.where(models.Account.balance >= minimum)
    return db.execute(stmt).rowcount == 1


def apply_effect(
    db: Session, account: models.Account, amount: Decimal, tx_type: models.TransactionType
) -> None:
    shift_balance(db, account.id, models.signed_amount(amount, tx_type))


def reverse_effect(
    db: Session, account: models.Account, amount: Decimal, tx_type: models.TransactionType
) -> None:
    shift_balance(db, account.id, -models.signed_amount(amount, tx_type))


def get_transaction(db: Session, transaction_id: int) -> models.Transaction:
    tx = db.get(models.Transaction, transaction_id)
    if tx is None:
        raise NotFoundError(f"Transaction with ID {transaction_id} not found")
    return tx


def _referenced_account(db: Session, account_id: int) -> models.Account:
    account = db.get(models.Account, account_id)
    if account is None:
        raise InvalidReferenceError("Invalid account ID.")
    return account


def create_transaction(db: Session, data: schemas.TransactionCreate) -> models.Transaction:
    """Insert a transaction and apply it to its account's balance."""
    account = _referenced_account(db, data.account_id)

    with unit_of_work(db):
        tx = models.Transaction(
            description=data.description,
            amount=data.amount,
            type=data.type,
            category=data.category,
            account=account,
            date=data.date,
            notes=data.notes,
        )
        db.add(tx)
        apply_effect(db, account, tx.amount, tx.type)

    logger.info(
        "transaction_created",
        transaction_id=tx.id,
        account_id=account.id,
        type=tx.type.value,
        amount=str(tx.amount),
        balance=str(account.balance),
    )
    return tx


def update_transaction(
    db: Session, transaction_id: int, data: schemas.TransactionUpdate
) -> models.Transaction:
    """
    Replace a transaction's fields.

    The old effect is always reversed on the old account before the new
    effect is applied on the new account, even when only the amount changes.
    When the account is unchanged both steps land on the same row.
    """
    tx = get_transaction(db, transaction_id)
    old_account = tx.account
    new_account = _referenced_account(db, data.account_id)

    with unit_of_work(db):
        reverse_effect(db, old_account, tx.amount, tx.type)
        apply_effect(db, new_account, data.amount, data.type)

        tx.description = data.description
        tx.amount = data.amount
        tx.type = data.type
        tx.category = data.category
        tx.account = new_account
        tx.date = data.date
        tx.notes = data.notes

    logger.info(
        "transaction_updated",
        transaction_id=tx.id,
        old_account_id=old_account.id,
        account_id=new_account.id,
        amount=str(tx.amount),
    )
    return tx


def delete_transaction(db: Session, transaction_id: int) -> None:
    tx = get_transaction(db, transaction_id)
    account = tx.account

    with unit_of_work(db):
        reverse_effect(db, account, tx.amount, tx.type)
        db.delete(tx)

    logger.info(
        "transaction_deleted",
        transaction_id=transaction_id,
        account_id=account.id,
        balance=str(account.balance),
    )


def _lock_accounts(db: Session, *account_ids: int) -> dict:
    """Load accounts FOR UPDATE in id order, keyed by id."""
    accounts = (
        db.query(models.Account)
        .filter(models.Account.id.in_(account_ids))
        .order_by(models.Account.id)
        .with_for_update()
        .all()
    )
    return {account.id: account for account in accounts}


def transfer_money(
    db: Session,
    from_account_id: int,
    to_account_id: int,
    amount: Decimal,
    description: Optional[str] = None,
    date: Optional[datetime] = None,
) -> Tuple[models.Transaction, models.Transaction]:
    """
    Move money between two accounts.

    Writes an expense on the source and an income on the destination, both in
    the "Transfer" category, and moves both balances. Returns (debit, credit).

    Both account rows are locked in id order, so two opposite transfers
    cannot deadlock. When negative transfers are disabled the funds check is
    part of the debit UPDATE itself.
    """
    if from_account_id == to_account_id:
        raise BusinessRuleError("Cannot transfer to the same account")
    if amount is None or amount <= 0:
        raise BusinessRuleError("Transfer amount must be positive")

    if date is None:
        today = datetime.now().date()
        date = datetime(today.year, today.month, today.day)
    minimum = None if get_settings().allow_negative_transfers else amount

    with unit_of_work(db):
        accounts = _lock_accounts(db, from_account_id, to_account_id)
        from_account = accounts.get(from_account_id)
        to_account = accounts.get(to_account_id)
        if from_account is None or to_account is None:
            raise NotFoundError("One or both accounts not found")
        if not description:
            description = f"Transfer from {from_account.name} to {to_account.name}"

        debit = models.Transaction(
            description=description,
            amount=amount,
            type=models.TransactionType.EXPENSE,
            category=models.TRANSFER_CATEGORY,
            account=from_account,
            date=date,
        )
        credit = models.Transaction(
            description=description,
            amount=amount,
            type=models.TransactionType.INCOME,
            category=models.TRANSFER_CATEGORY,
            account=to_account,
            date=date,
        )
        db.add_all([debit, credit])
        if not shift_balance(db, from_account.id, -amount, minimum=minimum):
            raise BusinessRuleError("Insufficient funds in source account")
        shift_balance(db, to_account.id, amount)

    logger.info(
        "transfer_completed",
        from_account_id=from_account.id,
        to_account_id=to_account.id,
        amount=str(amount),
        from_balance=str(from_account.balance),
        to_balance=str(to_account.balance),
    )
    return debit, credit


def adjust_balance(
    db: Session,
    account_id: int,
    amount: Decimal,
    tx_type: models.TransactionType,
    description: Optional[str] = None,
) -> models.Account:
    """
    Manual balance override with no transaction row behind it.

    After this call the account's balance no longer equals the sum of its
    transactions. Only the adjust-balance endpoint calls it.
    """
    if amount is None or amount <= 0:
        raise BusinessRuleError("Adjustment amount must be positive")

    account = db.get(models.Account, account_id)
    if account is None:
        raise NotFoundError(f"Account with ID {account_id} not found")

    with unit_of_work(db):
        apply_effect(db, account, amount, tx_type)

    logger.warning(
        "balance_adjusted",
        account_id=account.id,
        type=tx_type.value,
        amount=str(amount),
        balance=str(account.balance),
        description=description,
    )
    return account
