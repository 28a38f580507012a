from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from .. import models, schemas
from ..database import unit_of_work
from ..errors import BusinessRuleError, NotFoundError
from ..log import get_logger

logger = get_logger(__name__)


def list_accounts(db: Session) -> List[models.Account]:
    return db.query(models.Account).order_by(models.Account.name).all()


def get_account(db: Session, account_id: int) -> models.Account:
    account = db.get(models.Account, account_id)
    if account is None:
        raise NotFoundError(f"Account with ID {account_id} not found")
    return account


def _name_taken(db: Session, name: str, exclude_id: Optional[int] = None) -> bool:
    query = db.query(models.Account).filter(
        func.lower(models.Account.name) == name.lower()
    )
    if exclude_id is not None:
        query = query.filter(models.Account.id != exclude_id)
    return query.first() is not None


def create_account(db: Session, data: schemas.AccountCreate) -> models.Account:
    """
    Create a user account.

    A non-zero initial balance is booked as an "Opening Balance" transaction
    so the balance still equals the sum of the account's transactions.
    """
    if _name_taken(db, data.name):
        raise BusinessRuleError("An account with this name already exists.")

    with unit_of_work(db):
        account = models.Account(
            name=data.name,
            description=data.description,
            type=data.type,
            icon=data.icon,
            # the row is new, so the opening transaction's effect is set directly
            balance=data.initial_balance or Decimal("0"),
            is_default=False,
        )
        db.add(account)

        if data.initial_balance:
            tx_type = (
                models.TransactionType.INCOME
                if data.initial_balance > 0
                else models.TransactionType.EXPENSE
            )
            opening = models.Transaction(
                description="Opening balance",
                amount=abs(data.initial_balance),
                type=tx_type,
                category=models.OPENING_BALANCE_CATEGORY,
                account=account,
                date=datetime.now(),
            )
            db.add(opening)

    logger.info(
        "account_created",
        account_id=account.id,
        name=account.name,
        balance=str(account.balance),
    )
    return account


def update_account(db: Session, account_id: int, data: schemas.AccountUpdate) -> models.Account:
    account = get_account(db, account_id)

    if account.is_default and data.name != account.name:
        raise BusinessRuleError("Cannot rename default accounts.")
    if _name_taken(db, data.name, exclude_id=account_id):
        raise BusinessRuleError("An account with this name already exists.")

    with unit_of_work(db):
        account.name = data.name
        account.description = data.description
        account.type = data.type
        account.icon = data.icon

    logger.info("account_updated", account_id=account.id, name=account.name)
    return account


def delete_account(db: Session, account_id: int) -> None:
    account = get_account(db, account_id)

    if account.is_default:
        raise BusinessRuleError("Cannot delete default accounts.")

    has_transactions = (
        db.query(models.Transaction)
        .filter(models.Transaction.account_id == account_id)
        .first()
        is not None
    )
    if has_transactions:
        raise BusinessRuleError(
            "Cannot delete account that has transactions. "
            "Please move or delete all transactions first."
        )

    with unit_of_work(db):
        db.delete(account)

    logger.info("account_deleted", account_id=account_id)
